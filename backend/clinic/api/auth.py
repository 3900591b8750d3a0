from fastapi import APIRouter, Depends, HTTPException
from fastapi import Request
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select
from datetime import datetime, timezone

from clinic.core.limiter import limiter
from clinic.core.logging import log
from clinic.core.settings import settings
from clinic.db.session import get_db
from clinic.api.deps import Caller, get_caller, get_pollers
from clinic.api.schemas import RegisterIn, LoginIn, TokenOut
from clinic.models import User
from clinic.services.auth import hash_password, verify_password, create_access_token, new_session_id
from clinic.services.crypto import crypto
from clinic.services.poller import PollerRegistry

router = APIRouter(prefix="/auth", tags=["auth"])

@router.post("/register", response_model=dict, status_code=201)
async def register(data: RegisterIn, db: AsyncSession = Depends(get_db)):
    sealed = crypto.seal_email(data.email)
    existing = await db.execute(select(User.id).where(User.email_lookup_hmac == sealed.lookup))
    if existing.scalar_one_or_none():
        raise HTTPException(status_code=409, detail="Account already exists")
    user = User(
        role=data.role,
        first_name=data.first_name,
        last_name=data.last_name,
        password_hash=hash_password(data.password),
        email_lookup_hmac=sealed.lookup,
        email_ciphertext=sealed.ciphertext,
        email_nonce=sealed.nonce,
        created_at=datetime.now(timezone.utc),
    )
    db.add(user)
    await db.commit()
    log.info("registered user %s (%s)", user.id, user.role)
    return {"ok": True, "user_id": user.id}

@router.post("/login", response_model=TokenOut)
@limiter.limit(settings.login_rate_limit)
async def login(data: LoginIn, request: Request, db: AsyncSession = Depends(get_db)):
    email_lookup = crypto.email_lookup(data.email)
    res = await db.execute(select(User).where(User.email_lookup_hmac == email_lookup))
    user = res.scalar_one_or_none()
    if not user or not verify_password(data.password, user.password_hash):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    token = create_access_token(user.id, user.role, new_session_id())
    return TokenOut(access_token=token, user_id=user.id, role=user.role)

@router.post("/logout")
async def logout(caller: Caller = Depends(get_caller), pollers: PollerRegistry = Depends(get_pollers)):
    stopped = await pollers.stop(caller.session_id)
    return {"ok": True, "poller_stopped": stopped}
