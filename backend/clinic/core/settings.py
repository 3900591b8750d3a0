from __future__ import annotations

from pydantic_settings import BaseSettings
from pydantic import field_validator
from typing import List, Literal

class Settings(BaseSettings):
    env: str = "dev"
    database_url: str
    redis_url: str = "redis://localhost:6379/0"
    auto_create_schema: bool = False

    # pool shared by every request and poller tick; no extra locking on top
    db_pool_size: int = 10
    db_max_overflow: int = 5

    jwt_secret: str
    jwt_issuer: str = "clinic"
    access_token_minutes: int = 60 * 12

    content_enc_key_b64: str
    email_lookup_pepper: str

    poll_interval_seconds: float = 2.0
    notification_transport: Literal["memory", "redis"] = "memory"
    notification_ttl_seconds: int = 300

    login_rate_limit: str = "10/minute"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:1420"

    @field_validator("poll_interval_seconds")
    @classmethod
    def _positive_interval(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("POLL_INTERVAL_SECONDS must be positive")
        return v

    @property
    def cors_origins_list(self) -> List[str]:
        return [o.strip() for o in self.cors_origins.split(",") if o.strip()]

    class Config:
        env_file = ".env"
        case_sensitive = False

settings = Settings()
