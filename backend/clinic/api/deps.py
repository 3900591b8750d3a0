from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime
from fastapi import Depends, Request
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from clinic.core.errors import Unauthenticated
from clinic.db.session import AsyncSessionLocal, get_db
from clinic.services.auth import InvalidToken, TokenClaims, decode_token
from clinic.services.notifications import NotificationTransport
from clinic.services.poller import PollerRegistry
from clinic.models import User

bearer = HTTPBearer(auto_error=False)

@dataclass
class Caller:
    user: User
    session_id: str
    expires_at: datetime

def _claims(cred: HTTPAuthorizationCredentials | None) -> TokenClaims:
    if cred is None:
        raise Unauthenticated("Missing token")
    try:
        return decode_token(cred.credentials)
    except InvalidToken:
        raise Unauthenticated("Invalid token")

async def _resolve(db: AsyncSession, claims: TokenClaims) -> Caller:
    res = await db.execute(select(User).where(User.id == claims.user_id))
    user = res.scalar_one_or_none()
    if not user:
        raise Unauthenticated("Unknown user")
    return Caller(user=user, session_id=claims.session_id, expires_at=claims.expires_at)

async def get_caller(
    cred: HTTPAuthorizationCredentials | None = Depends(bearer),
    db: AsyncSession = Depends(get_db),
) -> Caller:
    return await _resolve(db, _claims(cred))

async def get_detached_caller(cred: HTTPAuthorizationCredentials | None = Depends(bearer)) -> Caller:
    """Like ``get_caller``, but the lookup session is closed before the handler runs.

    Long-polling handlers use this so a waiting client holds no pooled connection.
    """
    claims = _claims(cred)
    async with AsyncSessionLocal() as db:
        return await _resolve(db, claims)

async def get_current_user(caller: Caller = Depends(get_caller)) -> User:
    return caller.user

def get_pollers(request: Request) -> PollerRegistry:
    return request.app.state.pollers

def get_transport(request: Request) -> NotificationTransport:
    return request.app.state.transport
