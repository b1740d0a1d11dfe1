"""Business logic services for the notification pipeline."""

from video_notifier.services.ai_content import AIContentCache
from video_notifier.services.usage import UsageAccounting

__all__ = [
    "AIContentCache",
    "UsageAccounting",
]
