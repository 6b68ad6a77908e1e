"""
FastAPI application for the indexer status surface.

``create_app()`` builds the app. Its lifespan:

1. Initializes the database schema.
2. Builds the :class:`IndexerService` (unless one was injected) and stores it
   on ``app.state.indexer``.
3. Starts the indexer in a background task so HTTP status is served while the
   backfill pass runs.
4. On shutdown, cancels the task if still running and closes the service.

Indexer start-up failures are logged; the app keeps serving status.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from yibi_indexer import __version__
from yibi_indexer.api.routes import router
from yibi_indexer.config import IndexerConfig
from yibi_indexer.indexer.service import IndexerService

logger = logging.getLogger(__name__)


def create_app(
    service: IndexerService | None = None,
    *,
    cfg: IndexerConfig | None = None,
    start_indexer: bool = True,
) -> FastAPI:
    """
    Build the FastAPI application.

    Args:
        service: Pre-built service (tests inject one backed by a fake source).
        cfg: Configuration used to build the service when none is injected;
            defaults to the module-level config.
        start_indexer: When False the lifespan does not start synchronization.
    """

    @asynccontextmanager
    async def lifespan(app: FastAPI) -> AsyncIterator[None]:
        from yibi_indexer.db import schema

        schema.init_database()

        indexer = service
        if indexer is None:
            from yibi_indexer.config import config as loaded_config

            try:
                indexer = IndexerService(cfg or loaded_config)
            except Exception:
                logger.error("Indexer could not be created; serving status only", exc_info=True)
        app.state.indexer = indexer

        task: asyncio.Task | None = None
        if indexer is not None and start_indexer:
            task = asyncio.create_task(indexer.start(), name="yibi-indexer-start")
        try:
            yield
        finally:
            if task is not None and not task.done():
                task.cancel()
                try:
                    await task
                except asyncio.CancelledError:
                    pass
            if indexer is not None:
                await indexer.close()

    app = FastAPI(title="YiBi Level Indexer", version=__version__, lifespan=lifespan)

    # The status endpoint is read by a browser frontend on another origin.
    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_methods=["GET"],
        allow_headers=["*"],
    )
    app.include_router(router)
    return app


def start_server(host: str, port: int, cfg: IndexerConfig | None = None) -> None:
    """Serve the app with uvicorn until interrupted."""
    import uvicorn

    app = create_app(cfg=cfg)
    logger.info("Starting status server on %s:%s", host, port)
    uvicorn.run(app, host=host, port=port, log_config=None)
