"""Normalized YouTube video event schemas.

The PubSubHubbub webhook parses the Atom feed and hands the pipeline a
VideoEvent. The wire format is camelCase JSON; Python code uses snake_case.
"""

from pydantic import BaseModel, ConfigDict, Field


class VideoEvent(BaseModel):
    """New-video event for one channel.

    videoId and channelId are required and non-empty; an event without them
    cannot be fanned out and is dropped by the queue worker.
    """

    model_config = ConfigDict(populate_by_name=True)

    video_id: str = Field(..., alias="videoId", min_length=1, max_length=32)
    channel_id: str = Field(..., alias="channelId", min_length=1, max_length=64)
    title: str = ""
    author_name: str = Field("", alias="authorName")
    published: str = ""
    updated: str = ""
    timestamp: str | None = None

    def to_payload(self) -> dict[str, str | None]:
        """Serialize with camelCase keys for queue storage."""
        return self.model_dump(by_alias=True)


class QueuedVideoResponse(BaseModel):
    """Ingestion response: the event is durable in the queue."""

    status: str = "queued"
    msg_id: int


class WorkerStatusResponse(BaseModel):
    """Result of a worker control command."""

    name: str
    status: str
