from __future__ import annotations

import asyncio
import sys
from pathlib import Path
from typing import Any

import pytest
from fastapi.testclient import TestClient

API_DIR = Path(__file__).resolve().parents[1] / "api"
if str(API_DIR) not in sys.path:  # pragma: no cover - path setup
    sys.path.insert(0, str(API_DIR))

from main import create_app


class FakePool:
    """In-memory stand-in for asyncpg.Pool over a single `filings` table."""

    def __init__(
        self,
        ids: list[int] | None = None,
        *,
        delay: float = 0.0,
        error: Exception | None = None,
    ) -> None:
        self.ids = list(ids or [])
        self.delay = delay
        self.error = error
        self.closed = False
        self.queries: list[str] = []

    async def _run(self, sql: str) -> None:
        self.queries.append(" ".join(sql.split()))
        if self.delay:
            await asyncio.sleep(self.delay)
        if self.error is not None:
            raise self.error

    async def fetchval(self, sql: str, *args: Any, timeout: float | None = None) -> Any:
        await self._run(sql)
        if "count(" in sql.lower():
            return len(self.ids)
        return 1

    async def fetchrow(self, sql: str, *args: Any, timeout: float | None = None) -> dict | None:
        await self._run(sql)
        if not self.ids:
            return None
        return {"id": self.ids[0]}

    async def execute(self, sql: str, *args: Any, timeout: float | None = None) -> str:
        await self._run(sql)
        return "SELECT 1"

    async def close(self) -> None:
        self.closed = True


@pytest.fixture
def anyio_backend() -> str:
    return "asyncio"


@pytest.fixture
def fake_pool() -> FakePool:
    return FakePool([7, 8, 9])


@pytest.fixture
def client(fake_pool: FakePool):
    with TestClient(create_app(pool=fake_pool)) as test_client:
        yield test_client
