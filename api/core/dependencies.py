"""
Shared FastAPI dependencies.
"""

from __future__ import annotations

import asyncpg
from fastapi import HTTPException, Request, status


def get_pool(request: Request) -> asyncpg.Pool:
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Database is not connected.",
        )
    return pool
