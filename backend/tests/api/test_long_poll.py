import time
from concurrent.futures import ThreadPoolExecutor
from uuid import uuid4

import pytest
from sqlalchemy.ext.asyncio import create_async_engine
from sqlalchemy.pool import AsyncAdaptedQueuePool

from clinic.db.session import enable_sqlite_foreign_keys


@pytest.fixture
def app_engine(tmp_path):
    # a single pooled connection: a request that holds it starves every other one
    eng = create_async_engine(
        f"sqlite+aiosqlite:///{tmp_path / 'api.db'}",
        poolclass=AsyncAdaptedQueuePool,
        pool_size=1,
        max_overflow=0,
        pool_timeout=0.5,
        connect_args={"check_same_thread": False},
    )
    enable_sqlite_foreign_keys(eng)
    return eng


def test_waiting_long_poll_leaves_the_pool_free(client, register):
    bob = register(f"bob-{uuid4().hex[:8]}@clinic.test")

    with ThreadPoolExecutor(max_workers=2) as pool:
        waiting = [
            pool.submit(client.get, "/messaging/notifications", params={"wait": 2}, headers=bob["headers"])
            for _ in range(2)
        ]
        time.sleep(0.3)
        for _ in range(5):
            inbox = client.get("/messaging/conversations", headers=bob["headers"])
            assert inbox.status_code == 200
            assert inbox.json() == []

        for future in waiting:
            response = future.result()
            assert response.status_code == 200
            assert response.json() == {"batches": []}
