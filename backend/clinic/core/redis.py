from __future__ import annotations

import redis.asyncio as aioredis
from clinic.core.settings import settings

def get_redis() -> aioredis.Redis:
    # notification payloads are small JSON strings
    return aioredis.Redis.from_url(settings.redis_url, decode_responses=True)
