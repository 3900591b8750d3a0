from __future__ import annotations
from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from slowapi.errors import RateLimitExceeded
from starlette.responses import JSONResponse
from starlette.requests import Request

from clinic import __version__
from clinic.core.errors import IntegrityFault, MessagingError, StorageUnavailable
from clinic.core.limiter import limiter
from clinic.core.settings import settings
from clinic.core.logging import configure_logging, log
from clinic.core.middleware import SecurityHeadersMiddleware, RequestLogMiddleware
from clinic.db.base import Base
from clinic.db.session import AsyncSessionLocal, engine
from clinic.api import auth, users, messaging
from clinic.services.notifications import build_transport
from clinic.services.poller import PollerRegistry
from clinic import models  # noqa: F401

configure_logging()

@asynccontextmanager
async def lifespan(app: FastAPI):
    if settings.auto_create_schema:
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
    transport = build_transport()
    app.state.transport = transport
    app.state.pollers = PollerRegistry(AsyncSessionLocal, transport, settings.poll_interval_seconds)
    log.info("clinic api started (env=%s, transport=%s)", settings.env, settings.notification_transport)
    yield
    await app.state.pollers.stop_all()
    await transport.close()
    await engine.dispose()

app = FastAPI(title="Clinic Records API", version=__version__, lifespan=lifespan)
app.state.limiter = limiter

@app.exception_handler(RateLimitExceeded)
async def rate_limit_handler(request: Request, exc: RateLimitExceeded):
    return JSONResponse({"detail": "rate limit exceeded"}, status_code=429)

@app.exception_handler(MessagingError)
async def messaging_error_handler(request: Request, exc: MessagingError):
    if isinstance(exc, (IntegrityFault, StorageUnavailable)):
        log.error("%s %s failed: %s (%s)", request.method, request.url.path, exc.kind, exc.message)
    return JSONResponse({"error": exc.kind, "detail": exc.message}, status_code=exc.status_code)

app.add_middleware(SecurityHeadersMiddleware)
app.add_middleware(RequestLogMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins_list,
    allow_credentials=False,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(auth.router)
app.include_router(users.router)
app.include_router(messaging.router)

@app.get("/health")
async def health():
    return {"ok": True}
