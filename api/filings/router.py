"""
Filing API endpoints.

Query failures are logged and answered with 200 and zero values, never with
an error status. Tests pin this behaviour.
"""

from __future__ import annotations

import logging
import time

import asyncpg
from fastapi import APIRouter, Depends

from core.dependencies import get_pool

from . import schemas, service

LONG_QUERY_TIMEOUT_S = 30.0

logger = logging.getLogger(__name__)

router = APIRouter()


def _format_units(value: int, unit: int) -> str:
    whole, frac = divmod(value, unit)
    if not frac:
        return str(whole)
    digits = len(str(unit)) - 1
    return f"{whole}.{frac:0{digits}d}".rstrip("0")


def format_duration(seconds: float) -> str:
    """
    Render a duration like Go's time.Duration: "0s", "850µs", "2.5ms", "1m30s".
    """
    ns = int(round(seconds * 1_000_000_000))
    if ns == 0:
        return "0s"
    sign = "-" if ns < 0 else ""
    ns = abs(ns)
    if ns < 1_000:
        return f"{sign}{ns}ns"
    if ns < 1_000_000:
        return f"{sign}{_format_units(ns, 1_000)}µs"
    if ns < 1_000_000_000:
        return f"{sign}{_format_units(ns, 1_000_000)}ms"

    hours, rest = divmod(ns, 3_600_000_000_000)
    minutes, rest = divmod(rest, 60_000_000_000)
    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    return out + f"{_format_units(rest, 1_000_000_000)}s"


async def _timed_count(pool: asyncpg.Pool, *, timeout: float | None) -> schemas.CountResponse:
    started = time.perf_counter()
    try:
        count = await service.count_all(pool, timeout=timeout)
    except service.QueryError:
        logger.exception("count_all_request_failed timeout_s=%s", timeout)
        count = 0
    return schemas.CountResponse(count=count, time=format_duration(time.perf_counter() - started))


@router.get("/long", response_model=schemas.CountResponse)
async def long_query(pool: asyncpg.Pool = Depends(get_pool)) -> schemas.CountResponse:
    """
    Count all filings with no server-side deadline.
    """
    logger.debug("long_query_started")
    return await _timed_count(pool, timeout=None)


@router.get("/long-timeout", response_model=schemas.CountResponse)
async def long_query_with_timeout(pool: asyncpg.Pool = Depends(get_pool)) -> schemas.CountResponse:
    """
    Count all filings, giving up after LONG_QUERY_TIMEOUT_S.
    """
    logger.debug("long_query_with_timeout_started timeout_s=%s", LONG_QUERY_TIMEOUT_S)
    return await _timed_count(pool, timeout=LONG_QUERY_TIMEOUT_S)


@router.get("/fast", response_model=schemas.FirstResponse)
async def fast_query(pool: asyncpg.Pool = Depends(get_pool)) -> schemas.FirstResponse:
    logger.debug("fast_query_started")
    try:
        filing_id = await service.fetch_first(pool)
    except service.QueryError:
        logger.exception("fetch_first_request_failed")
        filing_id = 0
    return schemas.FirstResponse(id=filing_id)
