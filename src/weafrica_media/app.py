"""FastAPI application factory hosting the upload processing worker.

Run with any ASGI server, e.g. ``uvicorn weafrica_media.app:create_app --factory``.
"""

import asyncio
from contextlib import asynccontextmanager
from dataclasses import dataclass
from typing import Optional

import structlog
from fastapi import FastAPI, Response, status
from sqlalchemy import text

from weafrica_media.core.config import Settings, configure_logging
from weafrica_media.core.database import close_db_session, setup_db_session
from weafrica_media.workers.upload_processing_worker import (
    BatchSummary,
    run_upload_processing_worker,
)

logger = structlog.get_logger()

RESTART_DELAY = 1  # Fixed 1 second delay between restarts


@dataclass
class ResilientWorker:
    """Handle on a self-restarting worker; ``task`` always points at the live task."""

    name: str
    task: Optional[asyncio.Task] = None
    restart_task: Optional[asyncio.Task] = None

    async def stop(self) -> None:
        """Cancel the live task and any pending restart, then wait for them."""
        tasks = [t for t in (self.restart_task, self.task) if t is not None]
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)


def create_resilient_worker(
    coro_factory, worker_name: str, shutdown_event: asyncio.Event
) -> ResilientWorker:
    """Create a worker task that is restarted when it crashes.

    Args:
        coro_factory: Zero-argument callable returning the worker coroutine
        worker_name: Human-readable worker name for logging
        shutdown_event: Event to signal graceful shutdown

    Returns:
        ResilientWorker whose ``task`` is replaced on every restart
    """
    worker = ResilientWorker(name=worker_name)

    def start() -> None:
        worker.task = asyncio.create_task(coro_factory())
        worker.task.add_done_callback(on_worker_done)

    def on_worker_done(task: asyncio.Task):
        if shutdown_event.is_set():
            logger.info("worker.shutdown_complete", worker=worker_name)
            return

        if task.cancelled():
            logger.info("worker.cancelled", worker=worker_name)
            return

        exc = task.exception()
        if exc:
            logger.error(
                "worker.crashed",
                worker=worker_name,
                error=str(exc),
                error_type=type(exc).__name__,
                retry_in_seconds=RESTART_DELAY,
                exc_info=exc,
            )
        else:
            logger.warning(
                "worker.stopped_unexpectedly",
                worker=worker_name,
                retry_in_seconds=RESTART_DELAY,
            )

        async def restart_worker():
            await asyncio.sleep(RESTART_DELAY)
            if shutdown_event.is_set():
                return

            logger.info("worker.restarting", worker=worker_name)
            start()

        worker.restart_task = asyncio.create_task(restart_worker())

    start()
    return worker


@asynccontextmanager
async def lifespan(app: FastAPI):
    """Application lifespan context manager.

    - Startup: configure logging, create the session factory, start the worker
    - Shutdown: stop the worker, dispose of the connection pool
    """
    settings: Settings = app.state.settings
    configure_logging(settings)

    session_factory = setup_db_session(settings.database_url, settings.db_pool_size)
    app.state.session_factory = session_factory

    def record_batch(summary: BatchSummary) -> None:
        app.state.last_batch = summary

    shutdown_event = asyncio.Event()
    worker = create_resilient_worker(
        lambda: run_upload_processing_worker(session_factory, settings, on_batch=record_batch),
        "upload_processing",
        shutdown_event,
    )

    logger.info("application.startup", db_url=settings.database_url.split("@")[-1])

    yield

    logger.info("application.shutdown")
    shutdown_event.set()
    await worker.stop()
    await close_db_session(session_factory)


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """Create and configure FastAPI application.

    Args:
        settings: Settings to use (loaded from the environment when omitted)

    Returns:
        Configured FastAPI application instance
    """
    app = FastAPI(
        title="WeAfrica Media Worker",
        description="Upload transcoding and publishing worker",
        version="0.1.0",
        lifespan=lifespan,
    )
    app.state.settings = settings or Settings()  # type: ignore[call-arg]
    app.state.last_batch = None

    @app.get("/health")
    async def health_check(response: Response):
        """Health check endpoint with database connectivity test.

        Returns:
            200: {"status": "healthy", ...} if database connection succeeds
            503: {"status": "unhealthy", "error": {...}} if database connection fails
        """
        last_batch: Optional[BatchSummary] = app.state.last_batch
        batch_info = (
            {
                "claimed": last_batch.claimed,
                "published": last_batch.published,
                "rejected": last_batch.rejected,
            }
            if last_batch is not None
            else None
        )

        try:
            async with app.state.session_factory() as session:
                await session.execute(text("SELECT 1"))
        except Exception as e:
            logger.error("health_check.failed", error=str(e), error_type=type(e).__name__)
            response.status_code = status.HTTP_503_SERVICE_UNAVAILABLE
            return {
                "status": "unhealthy",
                "error": {"type": type(e).__name__, "message": str(e)},
                "last_batch": batch_info,
            }

        return {"status": "healthy", "last_batch": batch_info}

    return app
