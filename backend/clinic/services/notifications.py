"""
Notification transports.

The poller decides when a batch of unread messages should reach a login
session; a transport only carries the batch. Queues are keyed by session id,
so two logins of the same user each receive every batch. Clients collect
pending batches through ``drain``, which long-polls for up to ``wait``
seconds.
"""

from __future__ import annotations

import asyncio
import json
from typing import Protocol

import redis.asyncio as aioredis

from clinic.core.redis import get_redis
from clinic.core.settings import settings

Batch = list[dict]


class NotificationTransport(Protocol):
    async def publish(self, session_id: str, batch: Batch) -> None: ...

    async def drain(self, session_id: str, wait: float = 0.0) -> list[Batch]: ...

    async def discard(self, session_id: str) -> None: ...

    async def close(self) -> None: ...


class InMemoryTransport:
    """Per-session queues inside this process."""

    def __init__(self, maxsize: int = 100) -> None:
        self._maxsize = maxsize
        self._queues: dict[str, asyncio.Queue[Batch]] = {}

    def _queue(self, session_id: str) -> asyncio.Queue[Batch]:
        q = self._queues.get(session_id)
        if q is None:
            q = self._queues[session_id] = asyncio.Queue(maxsize=self._maxsize)
        return q

    async def publish(self, session_id: str, batch: Batch) -> None:
        q = self._queue(session_id)
        if q.full():
            # oldest batch is dropped; the next tick republishes anything still unread
            q.get_nowait()
        q.put_nowait(batch)

    async def drain(self, session_id: str, wait: float = 0.0) -> list[Batch]:
        q = self._queue(session_id)
        batches: list[Batch] = []
        if q.empty() and wait > 0:
            try:
                batches.append(await asyncio.wait_for(q.get(), timeout=wait))
            except asyncio.TimeoutError:
                return batches
        while not q.empty():
            batches.append(q.get_nowait())
        return batches

    async def discard(self, session_id: str) -> None:
        self._queues.pop(session_id, None)

    async def close(self) -> None:
        self._queues.clear()


class RedisTransport:
    """Redis list per session, so any API worker can hand out the batches."""

    def __init__(self, client: aioredis.Redis, ttl_seconds: int = 300, maxlen: int = 100) -> None:
        self.client = client
        self.ttl_seconds = ttl_seconds
        self.maxlen = maxlen

    @staticmethod
    def key(session_id: str) -> str:
        return f"notifications:{session_id}"

    async def publish(self, session_id: str, batch: Batch) -> None:
        key = self.key(session_id)
        async with self.client.pipeline(transaction=True) as pipe:
            pipe.rpush(key, json.dumps(batch))
            pipe.ltrim(key, -self.maxlen, -1)
            pipe.expire(key, self.ttl_seconds)
            await pipe.execute()

    async def drain(self, session_id: str, wait: float = 0.0) -> list[Batch]:
        key = self.key(session_id)
        raw: list = []
        if wait > 0:
            first = await self.client.blpop([key], timeout=wait)
            if first is None:
                return []
            raw.append(first[1])
        while True:
            item = await self.client.lpop(key)
            if item is None:
                break
            raw.append(item)
        return [json.loads(item) for item in raw]

    async def discard(self, session_id: str) -> None:
        await self.client.delete(self.key(session_id))

    async def close(self) -> None:
        await self.client.aclose()


def build_transport() -> NotificationTransport:
    if settings.notification_transport == "redis":
        return RedisTransport(get_redis(), ttl_seconds=settings.notification_ttl_seconds)
    return InMemoryTransport()
