"""
Async database access helpers (raw SQL) using asyncpg.

This module owns the connection bootstrap. The app lifespan calls
`connect_with_timeout()` once at startup and closes the returned pool on
shutdown (see `api/main.py`). The pool is the shared handle for every request.

SQL parameter style:
- asyncpg uses positional placeholders: $1, $2, $3, ...
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from typing import Any
from urllib.parse import unquote, urlsplit

import asyncpg

PROBE_SQL = "SELECT 1"
POOL_MIN_SIZE = 1
POOL_MAX_SIZE = 5

_SCHEMES = ("postgres", "postgresql")

logger = logging.getLogger(__name__)


# Connection failures are split by whether waiting can fix them.
class DatabaseError(RuntimeError):
    pass


class ConfigurationError(DatabaseError):
    pass


class TransientConnectionError(DatabaseError):
    pass


class ConnectTimeoutError(DatabaseError, TimeoutError):
    def __init__(self, message: str, last_error: BaseException | None = None) -> None:
        super().__init__(message)
        self.last_error = last_error


class QueryError(DatabaseError):
    pass


class QueryTimeoutError(QueryError):
    pass


@dataclass(frozen=True)
class ConnectOptions:
    dsn: str
    host: str
    port: int
    database: str
    user: str

    def redacted(self) -> str:
        user = f"{self.user}@" if self.user else ""
        host = self.host or "<default-host>"
        return f"postgresql://{user}{host}:{self.port}/{self.database}"


def parse_connection_string(connection_string: str) -> ConnectOptions:
    """
    Validate a postgres URL and split it into connect options.

    Raises ConfigurationError for anything that cannot become valid by retrying.
    """
    raw = (connection_string or "").strip()
    if not raw:
        raise ConfigurationError("missing connection string")

    parts = urlsplit(raw)
    if parts.scheme not in _SCHEMES:
        raise ConfigurationError(f"unsupported connection scheme: {parts.scheme or '<none>'!r}")
    try:
        port = parts.port or 5432
    except ValueError as exc:
        raise ConfigurationError("invalid port in connection string") from exc
    # No host means asyncpg picks one (PGHOST, ?host=, or the local socket).
    host = parts.hostname or ""

    database = unquote(parts.path.lstrip("/")) or unquote(parts.username or "")
    return ConnectOptions(
        dsn=raw,
        host=host,
        port=port,
        database=database,
        user=unquote(parts.username or ""),
    )


async def open_pool(options: ConnectOptions) -> asyncpg.Pool:
    """
    Open a pool and prove the server answers queries, not just accepts sockets.
    """
    try:
        pool = await asyncpg.create_pool(
            dsn=options.dsn,
            min_size=POOL_MIN_SIZE,
            max_size=POOL_MAX_SIZE,
        )
    except ValueError as exc:
        # asyncpg.ClientConfigurationError is a ValueError too.
        raise ConfigurationError(f"rejected connection options for {options.redacted()}") from exc
    except Exception as exc:
        raise TransientConnectionError(f"cannot connect to {options.redacted()}: {exc}") from exc

    try:
        await execute(pool, PROBE_SQL)
    except Exception as exc:
        await pool.close()
        raise TransientConnectionError(f"liveness probe failed on {options.redacted()}: {exc}") from exc
    return pool


async def connect(connection_string: str) -> asyncpg.Pool:
    """
    One connection attempt: parse, open, probe.
    """
    options = parse_connection_string(connection_string)
    logger.debug("db_connect_attempt target=%s", options.redacted())
    return await open_pool(options)


@dataclass
class _AttemptState:
    attempts: int = 0
    last_error: Exception | None = None


async def _attempt_loop(
    connection_string: str,
    *,
    retry: float,
    give_up: asyncio.Event,
    state: _AttemptState,
) -> asyncpg.Pool | None:
    while True:
        if give_up.is_set():
            logger.debug("db_connect_giving_up attempts=%s", state.attempts)
            return None

        state.attempts += 1
        try:
            pool = await connect(connection_string)
        except TransientConnectionError as exc:
            state.last_error = exc
            logger.warning("db_connect_failed attempt=%s error=%s", state.attempts, exc)
            await asyncio.sleep(retry)
            continue

        if give_up.is_set():
            # The caller already returned; nobody will ever read this pool.
            await pool.close()
            return None
        return pool


async def connect_with_timeout(connection_string: str, *, timeout: float, retry: float) -> asyncpg.Pool:
    """
    Connect to Postgres, retrying every `retry` seconds until `timeout` elapses.

    The retry loop runs as a background task and races the deadline. Whichever
    finishes first decides the outcome; the loop is told to stop either way.

    Raises:
        ConfigurationError: empty or malformed connection string, bad timings.
        ConnectTimeoutError: no successful attempt before the deadline. The
            latest transient failure (if any) is kept in `last_error`.
    """
    problem = None
    if not (connection_string or "").strip():
        problem = "missing connection string"
    elif retry <= 0:
        problem = f"retry interval must be positive, got {retry}"
    elif timeout < 0:
        problem = f"timeout must not be negative, got {timeout}"
    if problem is not None:
        logger.error("db_connect_fatal error=%s", problem)
        raise ConfigurationError(problem)

    give_up = asyncio.Event()
    state = _AttemptState()
    task = asyncio.create_task(
        _attempt_loop(connection_string, retry=retry, give_up=give_up, state=state)
    )
    try:
        done, _ = await asyncio.wait({task}, timeout=timeout)
    finally:
        # Runs on timeout and when the caller itself is cancelled.
        give_up.set()
        if not task.done():
            task.cancel()
            await asyncio.gather(task, return_exceptions=True)

    if task in done:
        try:
            pool = task.result()
        except ConfigurationError as exc:
            logger.error("db_connect_fatal error=%s", exc)
            raise
        logger.info("db_connected attempts=%s", state.attempts)
        return pool

    logger.error("db_connect_timeout timeout_s=%s attempts=%s", timeout, state.attempts)
    raise ConnectTimeoutError(
        f"timeout {timeout}s connecting to db: {state.last_error}",
        state.last_error,
    ) from state.last_error


async def ping(pool: asyncpg.Pool, *, timeout: float | None = None) -> None:
    await execute(pool, PROBE_SQL, timeout=timeout)


def _record_to_dict(record: asyncpg.Record) -> dict[str, Any]:
    return dict(record)


async def fetch_one(pool: asyncpg.Pool, sql: str, *args: Any) -> dict[str, Any] | None:
    """
    Run a query and return a single row as a dict (or None).
    """
    row = await pool.fetchrow(sql, *args)
    return _record_to_dict(row) if row is not None else None


async def fetch_value(pool: asyncpg.Pool, sql: str, *args: Any) -> Any:
    """
    Run a query and return the first column of the first row.
    """
    return await pool.fetchval(sql, *args)


async def execute(pool: asyncpg.Pool, sql: str, *args: Any, timeout: float | None = None) -> None:
    """
    Run a statement. No result returned.
    """
    await pool.execute(sql, *args, timeout=timeout)
