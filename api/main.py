from __future__ import annotations

import logging
import sys
from contextlib import asynccontextmanager

import asyncpg
import uvicorn
from fastapi import Depends, FastAPI
from fastapi.responses import JSONResponse

from core import db, settings
from core.dependencies import get_pool
from core.log import configure_logging
from filings import router as filings_router

HEALTH_TIMEOUT_S = 2.0

logger = logging.getLogger(__name__)


def create_app(*, pool: asyncpg.Pool | None = None) -> FastAPI:
    """
    Build the app. A pool passed in is used as-is and left open on shutdown.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if pool is not None:
            app.state.pool = pool
            yield
            return

        # Bootstrap once per process; failure aborts startup.
        connection_string = settings.database_url()
        app.state.pool = await db.connect_with_timeout(
            connection_string,
            timeout=settings.connect_timeout_s(),
            retry=settings.connect_retry_s(),
        )
        logger.info("connected to db %s", db.parse_connection_string(connection_string).redacted())
        try:
            yield
        finally:
            await app.state.pool.close()
            app.state.pool = None

    app = FastAPI(lifespan=lifespan)
    app.include_router(filings_router.router, tags=["filings"])

    @app.get("/health")
    async def health(pool: asyncpg.Pool = Depends(get_pool)):
        try:
            await db.ping(pool, timeout=HEALTH_TIMEOUT_S)
        except Exception:
            logger.exception("health_probe_failed")
            return JSONResponse(status_code=503, content={"status": "unavailable"})
        return {"status": "ok"}

    return app


app = create_app()


def run() -> None:
    configure_logging(settings.log_level())
    try:
        settings.database_url()
    except db.ConfigurationError as exc:
        logger.critical("%s", exc)
        sys.exit(1)

    port = settings.port()
    logger.debug("listening port=%s", port)
    uvicorn.run(app, host=settings.host(), port=port, lifespan="on", log_config=None)


if __name__ == "__main__":  # pragma: no cover
    run()
