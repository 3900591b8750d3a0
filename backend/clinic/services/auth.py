from __future__ import annotations
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import uuid4
from jose import JWTError, jwt
from argon2 import PasswordHasher
from argon2.exceptions import VerificationError
from clinic.core.settings import settings

ALGORITHM = "HS256"

_hasher = PasswordHasher()


@dataclass(frozen=True)
class TokenClaims:
    """Identity carried by an access token. ``sid`` names one login session."""

    user_id: int
    role: str
    session_id: str
    expires_at: datetime


class InvalidToken(Exception):
    pass


def hash_password(password: str) -> str:
    return _hasher.hash(password)


def verify_password(password: str, password_hash: str) -> bool:
    try:
        return _hasher.verify(password_hash, password)
    except VerificationError:
        return False


def new_session_id() -> str:
    return uuid4().hex


def create_access_token(user_id: int, role: str, session_id: str | None = None) -> str:
    issued = datetime.now(timezone.utc)
    expires = issued + timedelta(minutes=settings.access_token_minutes)
    claims = {
        "iss": settings.jwt_issuer,
        "sub": str(user_id),
        "role": role,
        "sid": session_id or new_session_id(),
        "iat": int(issued.timestamp()),
        "exp": int(expires.timestamp()),
    }
    return jwt.encode(claims, settings.jwt_secret, algorithm=ALGORITHM)


def decode_token(token: str) -> TokenClaims:
    try:
        raw = jwt.decode(token, settings.jwt_secret, algorithms=[ALGORITHM], issuer=settings.jwt_issuer)
        return TokenClaims(
            user_id=int(raw["sub"]),
            role=str(raw["role"]),
            session_id=str(raw["sid"]),
            expires_at=datetime.fromtimestamp(int(raw["exp"]), tz=timezone.utc),
        )
    except (JWTError, KeyError, ValueError) as exc:
        raise InvalidToken(str(exc)) from exc
