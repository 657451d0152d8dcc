"""
Filing query gateway.

Two read-only query kinds share one contract: run against the shared pool,
honor the caller's deadline, and wrap every driver failure in QueryError.

Cancellation of the calling task is not wrapped: asyncio.CancelledError
propagates as-is so the task actually stops.
"""

from __future__ import annotations

import asyncio
import logging
from enum import Enum

import asyncpg

from core.db import QueryError, QueryTimeoutError

from . import repository

logger = logging.getLogger(__name__)


class QueryKind(str, Enum):
    COUNT_ALL = "count_all"
    FETCH_FIRST = "fetch_first"


async def _count_all(pool: asyncpg.Pool) -> int:
    count = await repository.count_filings(pool)
    logger.info("count_all_done count=%s", count)
    return count


async def _fetch_first(pool: asyncpg.Pool) -> int:
    row = await repository.first_filing(pool)
    if row is None:
        raise QueryError("no filings found")
    logger.info("fetch_first_done filing=%s", row)
    return int(row["id"])


_HANDLERS = {
    QueryKind.COUNT_ALL: _count_all,
    QueryKind.FETCH_FIRST: _fetch_first,
}


async def execute(kind: QueryKind, pool: asyncpg.Pool, *, timeout: float | None = None) -> int:
    """
    Run one query kind and return its integer result.

    `timeout` is the remaining deadline in seconds (None = unbounded). An
    already-expired deadline fails without touching the database.

    Raises:
        QueryTimeoutError: the deadline passed before the query finished.
        QueryError: any other failure; the driver error is kept as __cause__.
    """
    kind = QueryKind(kind)
    handler = _HANDLERS[kind]
    if timeout is not None and timeout <= 0:
        raise QueryTimeoutError(f"{kind.value}: deadline already expired")

    try:
        return await asyncio.wait_for(handler(pool), timeout)
    except QueryError:
        raise
    except asyncio.TimeoutError as exc:
        raise QueryTimeoutError(f"{kind.value}: timed out after {timeout}s") from exc
    except Exception as exc:
        raise QueryError(f"{kind.value} failed: {exc}") from exc


async def count_all(pool: asyncpg.Pool, *, timeout: float | None = None) -> int:
    return await execute(QueryKind.COUNT_ALL, pool, timeout=timeout)


async def fetch_first(pool: asyncpg.Pool, *, timeout: float | None = None) -> int:
    return await execute(QueryKind.FETCH_FIRST, pool, timeout=timeout)
