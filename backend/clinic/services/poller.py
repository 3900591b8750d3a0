"""
Live-update poller.

Each logged-in session may run one background loop that re-reads the
user's unread status rows every ``interval`` seconds and, whenever any are
unread, publishes all of them to the session's notification queue. A lost
batch is therefore repaired by the next tick. A loop ends when its stop event
is set (logout, an explicit stop request, shutdown) or when the session's
access token expires.
"""

from __future__ import annotations

import asyncio
from datetime import datetime, timezone

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from clinic.core.errors import StorageUnavailable
from clinic.core.logging import log
from clinic.services.delivery import UnreadMessage, unread_for
from clinic.services.notifications import NotificationTransport


class LivePoller:
    def __init__(
        self,
        session_id: str,
        user_id: int,
        session_factory: async_sessionmaker[AsyncSession],
        transport: NotificationTransport,
        interval: float = 2.0,
        expires_at: datetime | None = None,
    ) -> None:
        self.session_id = session_id
        self.user_id = user_id
        self.session_factory = session_factory
        self.transport = transport
        self.interval = interval
        self.expires_at = expires_at
        self._stop = asyncio.Event()

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def stop(self) -> None:
        self._stop.set()

    def _remaining(self) -> float | None:
        if self.expires_at is None:
            return None
        return (self.expires_at - datetime.now(timezone.utc)).total_seconds()

    @property
    def expired(self) -> bool:
        remaining = self._remaining()
        return remaining is not None and remaining <= 0

    async def _fetch(self) -> list[UnreadMessage]:
        try:
            async with self.session_factory() as db:
                return await unread_for(db, self.user_id)
        except (StorageUnavailable, SQLAlchemyError) as exc:
            # next tick is the retry
            log.warning("poll for user %s failed: %s", self.user_id, exc)
            return []

    async def tick(self) -> list[UnreadMessage]:
        """Run one poll; return the rows published in this tick."""
        unread = await self._fetch()
        if not unread:
            return []
        try:
            await self.transport.publish(self.session_id, [row.to_payload() for row in unread])
        except Exception:
            log.exception("notification publish for session %s failed", self.session_id)
            return []
        return unread

    async def run(self) -> None:
        log.info("poller started for session %s (user %s)", self.session_id, self.user_id)
        try:
            while not self._stop.is_set() and not self.expired:
                await self.tick()
                timeout = self.interval
                remaining = self._remaining()
                if remaining is not None:
                    timeout = max(0.0, min(timeout, remaining))
                try:
                    await asyncio.wait_for(self._stop.wait(), timeout=timeout)
                except asyncio.TimeoutError:
                    pass
        finally:
            try:
                await self.transport.discard(self.session_id)
            except Exception:
                log.exception("dropping notifications for session %s failed", self.session_id)
        reason = "expired" if self.expired and not self.stopped else "stopped"
        log.info("poller %s for session %s", reason, self.session_id)


class PollerRegistry:
    """session id -> running poller task."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        transport: NotificationTransport,
        interval: float = 2.0,
    ) -> None:
        self.session_factory = session_factory
        self.transport = transport
        self.interval = interval
        self._pollers: dict[str, tuple[LivePoller, asyncio.Task]] = {}

    def __contains__(self, session_id: str) -> bool:
        entry = self._pollers.get(session_id)
        return entry is not None and not entry[1].done()

    def __len__(self) -> int:
        return sum(1 for sid in list(self._pollers) if sid in self)

    def _forget(self, session_id: str, task: asyncio.Task) -> None:
        entry = self._pollers.get(session_id)
        if entry is not None and entry[1] is task:
            del self._pollers[session_id]

    def start(self, session_id: str, user_id: int, expires_at: datetime | None = None) -> LivePoller:
        entry = self._pollers.get(session_id)
        if entry is not None and not entry[1].done():
            return entry[0]
        poller = LivePoller(session_id, user_id, self.session_factory, self.transport, self.interval, expires_at)
        task = asyncio.create_task(poller.run(), name=f"poller:{session_id}")
        self._pollers[session_id] = (poller, task)
        # an expired loop ends on its own; drop its entry when it does
        task.add_done_callback(lambda done: self._forget(session_id, done))
        return poller

    async def stop(self, session_id: str) -> bool:
        entry = self._pollers.pop(session_id, None)
        if entry is None:
            return False
        poller, task = entry
        poller.stop()
        await task
        return True

    async def stop_all(self) -> None:
        for session_id in list(self._pollers):
            await self.stop(session_id)
