"""Request-scoped access to the objects the app builds at startup."""

from fastapi import HTTPException, Request, status

from video_notifier.queue import NotificationQueue
from video_notifier.supervisor import WorkerRegistry


def get_registry(request: Request) -> WorkerRegistry:
    registry = getattr(request.app.state, "registry", None)
    if registry is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Workers unavailable: database not configured",
        )
    return registry


def get_queue(request: Request) -> NotificationQueue:
    queue = getattr(request.app.state, "queue", None)
    if queue is None:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Queue unavailable: database not configured",
        )
    return queue
