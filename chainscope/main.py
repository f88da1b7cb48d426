"""
FastAPI application factory.
"""

import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import FastAPI

from chainscope import __version__
from chainscope.api.router import router
from chainscope.config import configure_logging, settings
from chainscope.db.base import Base
from chainscope.db.session import engine
from chainscope.jobs.queue import AnalysisQueue

logger = logging.getLogger(__name__)


def create_app(job_queue: Optional[AnalysisQueue] = None) -> FastAPI:
    """
    Create and configure the FastAPI application.

    Args:
        job_queue: Queue to serve (a database-backed queue from settings when omitted)

    Returns:
        Configured FastAPI instance
    """
    configure_logging()
    owns_queue = job_queue is None
    queue = job_queue or AnalysisQueue()

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        if owns_queue:
            async with engine.begin() as conn:
                await conn.run_sync(Base.metadata.create_all)
            logger.info("Database tables ready")
        await queue.resume_pending()
        yield
        await queue.close()
        if owns_queue:
            await engine.dispose()

    app = FastAPI(
        title=settings.app_name,
        version=settings.app_version,
        debug=settings.debug,
        lifespan=lifespan,
    )
    app.state.job_queue = queue
    app.include_router(router, prefix="/api/v1")

    @app.get("/")
    async def root():
        return {
            "project": settings.app_name,
            "version": __version__,
            "docs": "/docs",
            "api": "/api/v1",
            "disclaimer": (
                "Heuristic analysis of public on-chain data. "
                "Findings are indicators, not proof of wrongdoing."
            ),
        }

    return app


app = create_app()
