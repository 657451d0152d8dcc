"""
Filing queries (raw SQL).

No ORDER BY on the first-row query: which row comes back is whatever the
storage engine scans first. Callers must not depend on it.
"""

from __future__ import annotations

from typing import Any

import asyncpg

from core import db


async def count_filings(pool: asyncpg.Pool) -> int:
    count = await db.fetch_value(
        pool,
        """
        SELECT count(*)
        FROM filings
        """,
    )
    return int(count or 0)


async def first_filing(pool: asyncpg.Pool) -> dict[str, Any] | None:
    return await db.fetch_one(
        pool,
        """
        SELECT *
        FROM filings
        LIMIT 1
        """,
    )
