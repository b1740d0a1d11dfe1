"""Pydantic schemas for validation and serialization."""

from video_notifier.schemas.video_event import (
    QueuedVideoResponse,
    VideoEvent,
    WorkerStatusResponse,
)

__all__ = [
    "QueuedVideoResponse",
    "VideoEvent",
    "WorkerStatusResponse",
]
