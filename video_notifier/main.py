"""FastAPI application for the video notification pipeline.

Web surface:
- GET  /health                       - liveness
- GET  /api/v1/workers               - worker status
- POST /api/v1/workers/{name}/...    - worker control
- POST /api/v1/queue/videos          - video event ingestion

Workers listed in WORKERS_AUTOSTART are started with the app and stopped
(after their current iteration) on shutdown. Deployments that prefer a
dedicated process run `python -m video_notifier.worker` instead.
"""

from contextlib import asynccontextmanager
from typing import AsyncIterator

import structlog
from fastapi import FastAPI, status
from fastapi.responses import JSONResponse

from video_notifier import database
from video_notifier.config import get_autostart_workers
from video_notifier.exceptions import ConfigurationError, UnknownWorkerError
from video_notifier.queue import NotificationQueue
from video_notifier.routes import queue as queue_routes
from video_notifier.routes import workers as worker_routes
from video_notifier.supervisor import build_registry
from video_notifier.utils.logging import configure_logging

log = structlog.get_logger()


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Build the queue and worker registry, autostart workers, stop them on exit."""
    configure_logging()

    app.state.queue = None
    app.state.registry = None

    session_factory = database.async_session_factory
    if session_factory is None:
        log.warning(
            "workers_disabled",
            message="DATABASE_URL not set, queue and workers are unavailable",
        )
    else:
        app.state.queue = NotificationQueue(session_factory)
        app.state.registry = build_registry(session_factory, app.state.queue)

        for name in get_autostart_workers():
            try:
                await app.state.registry.start(name)
            except (UnknownWorkerError, ConfigurationError) as e:
                log.error("worker_autostart_failed", worker=name, error=str(e))

    yield

    if app.state.registry is not None:
        log.info("stopping_workers")
        await app.state.registry.stop_all()
    await database.dispose_engine()


app = FastAPI(
    title="Video Notifier",
    description="New-video email notifications with AI summaries for followed YouTube channels",
    version="0.1.0",
    lifespan=lifespan,
)

app.include_router(worker_routes.router)
app.include_router(queue_routes.router)


@app.get("/health", status_code=status.HTTP_200_OK)
async def health_check() -> JSONResponse:
    registry = getattr(app.state, "registry", None)
    return JSONResponse(
        content={
            "status": "healthy",
            "service": "video-notifier",
            "workers": registry.statuses() if registry is not None else {},
        }
    )


if __name__ == "__main__":
    import uvicorn

    # Binding to 0.0.0.0 is intentional for container deployments
    uvicorn.run(
        "video_notifier.main:app",
        host="0.0.0.0",  # noqa: S104
        port=8000,
        reload=True,
    )
