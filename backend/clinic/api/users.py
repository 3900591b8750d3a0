from __future__ import annotations
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import select

from clinic.db.session import get_db
from clinic.api.deps import get_current_user
from clinic.api.schemas import Role, UserOut
from clinic.models import User
from clinic.services.crypto import crypto

router = APIRouter(prefix="/users", tags=["users"])

@router.get("", response_model=list[UserOut])
async def list_users(role: Role | None = None, user: User = Depends(get_current_user), db: AsyncSession = Depends(get_db)):
    # Directory of colleagues to start a conversation with; the caller is left out.
    stmt = select(User).where(User.id != user.id).order_by(User.last_name, User.first_name, User.id)
    if role is not None:
        stmt = stmt.where(User.role == role)
    res = await db.execute(stmt)
    return [UserOut(id=u.id, role=u.role, first_name=u.first_name, last_name=u.last_name, email=crypto.open_email(u)) for u in res.scalars().all()]
