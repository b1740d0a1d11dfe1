"""Video event ingestion.

- POST /api/v1/queue/videos - enqueue a normalized VideoEvent

The PubSubHubbub webhook (outside this service) parses the Atom push and
posts the normalized event here. The response is returned as soon as the
event is durable in the queue; fan-out happens in the queue worker.
"""

from datetime import datetime, timezone

import structlog
from fastapi import APIRouter, Depends, status

from video_notifier.queue import NotificationQueue
from video_notifier.routes.deps import get_queue
from video_notifier.schemas.video_event import QueuedVideoResponse, VideoEvent

log = structlog.get_logger()
router = APIRouter(prefix="/api/v1/queue", tags=["queue"])


@router.post("/videos", status_code=status.HTTP_202_ACCEPTED)
async def enqueue_video(
    event: VideoEvent, queue: NotificationQueue = Depends(get_queue)
) -> QueuedVideoResponse:
    """Queue a new-video event.

    Returns:
        202 Accepted: {"status": "queued", "msg_id": ...}
        422 Unprocessable Entity: body is not a valid VideoEvent
    """
    stamped = event.model_copy(
        update={"timestamp": datetime.now(timezone.utc).isoformat()}
    )
    msg_id = await queue.enqueue(stamped)

    log.info(
        "video_event_queued",
        msg_id=msg_id,
        video_id=event.video_id,
        channel_id=event.channel_id,
    )
    return QueuedVideoResponse(msg_id=msg_id)
