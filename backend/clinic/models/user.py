from __future__ import annotations
from datetime import datetime
from sqlalchemy import CheckConstraint, Integer, String, DateTime, LargeBinary
from sqlalchemy.orm import Mapped, mapped_column
from clinic.db.base import Base

class User(Base):
    __tablename__ = "users"
    __table_args__ = (
        CheckConstraint("role IN ('DOCTOR', 'NURSE', 'ADMIN')", name="ck_users_role"),
    )
    id: Mapped[int] = mapped_column(Integer(), primary_key=True, autoincrement=True)
    role: Mapped[str] = mapped_column(String(20), nullable=False)
    first_name: Mapped[str] = mapped_column(String(255), nullable=False)
    last_name: Mapped[str] = mapped_column(String(255), nullable=False)
    password_hash: Mapped[str] = mapped_column(String(256), nullable=False)

    # e-mail lives in the encrypted field store; lookups go through the HMAC
    email_lookup_hmac: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    email_ciphertext: Mapped[bytes] = mapped_column(LargeBinary(), nullable=False)
    email_nonce: Mapped[bytes] = mapped_column(LargeBinary(), nullable=False)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
