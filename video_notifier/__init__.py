"""Video Notifier.

Email notifications with AI summaries for new videos on followed YouTube
channels. A durable queue feeds a fan-out worker that writes one ledger row
per subscriber; a delivery worker turns those rows into sent emails.
"""

from video_notifier.database import async_session_factory
from video_notifier.models import Base, EmailNotification

__all__ = [
    "Base",
    "EmailNotification",
    "async_session_factory",
]
