import base64
import os
from datetime import datetime, timezone

os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite://")
os.environ.setdefault("AUTO_CREATE_SCHEMA", "true")
os.environ.setdefault("JWT_SECRET", "test-secret")
os.environ.setdefault("CONTENT_ENC_KEY_B64", base64.b64encode(b"k" * 32).decode())
os.environ.setdefault("EMAIL_LOOKUP_PEPPER", "test-pepper")
os.environ.setdefault("LOGIN_RATE_LIMIT", "1000/minute")
os.environ.setdefault("POLL_INTERVAL_SECONDS", "0.05")
os.environ.setdefault("NOTIFICATION_TRANSPORT", "memory")

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient
from sqlalchemy.ext.asyncio import async_sessionmaker

from clinic.db.base import Base
from clinic.db.session import build_engine
from clinic.models import User
from clinic.services.auth import hash_password
from clinic.services.crypto import crypto


@pytest_asyncio.fixture
async def engine(tmp_path):
    # file-backed so every session gets its own pooled connection
    eng = build_engine(f"sqlite+aiosqlite:///{tmp_path / 'services.db'}")
    async with eng.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield eng
    await eng.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


async def _make_user(session_factory, email: str, role: str, first: str, last: str) -> int:
    sealed = crypto.seal_email(email)
    async with session_factory() as s:
        user = User(
            role=role,
            first_name=first,
            last_name=last,
            password_hash=hash_password("password123"),
            email_lookup_hmac=sealed.lookup,
            email_ciphertext=sealed.ciphertext,
            email_nonce=sealed.nonce,
            created_at=datetime.now(timezone.utc),
        )
        s.add(user)
        await s.commit()
        return user.id


@pytest_asyncio.fixture
async def users(session_factory):
    """Three users: (alice, bob, carol) ids."""
    alice = await _make_user(session_factory, "alice@clinic.test", "DOCTOR", "Alice", "Johnson")
    bob = await _make_user(session_factory, "bob@clinic.test", "NURSE", "Bob", "Sweeney")
    carol = await _make_user(session_factory, "carol@clinic.test", "DOCTOR", "Carol", "Reyes")
    return alice, bob, carol


@pytest.fixture
def app_engine(tmp_path):
    return build_engine(f"sqlite+aiosqlite:///{tmp_path / 'api.db'}")


#scope : function < class < module < package < session
@pytest.fixture(scope="function")
def client(app_engine, monkeypatch):
    from clinic import main
    from clinic.db import session

    monkeypatch.setattr(main, "engine", app_engine)
    session.AsyncSessionLocal.configure(bind=app_engine)
    try:
        with TestClient(main.app) as c:
            yield c
    finally:
        session.AsyncSessionLocal.configure(bind=session.engine)


@pytest.fixture
def register(client):
    def _register(email: str, role: str = "DOCTOR", first: str = "Test", last: str = "User") -> dict:
        r = client.post(
            "/auth/register",
            json={"email": email, "password": "password123", "first_name": first, "last_name": last, "role": role},
        )
        assert r.status_code == 201, r.text
        r = client.post("/auth/login", json={"email": email, "password": "password123"})
        assert r.status_code == 200, r.text
        body = r.json()
        return {"id": body["user_id"], "headers": {"Authorization": f"Bearer {body['access_token']}"}}

    return _register
