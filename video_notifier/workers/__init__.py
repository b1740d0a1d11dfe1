"""Pipeline workers built on the PollingWorker loop."""

from video_notifier.workers.base import PollingWorker
from video_notifier.workers.email_worker import EmailWorker
from video_notifier.workers.hub_renewal_worker import HubRenewalWorker
from video_notifier.workers.queue_worker import QueueWorker
from video_notifier.workers.subscription_check_worker import SubscriptionCheckWorker

__all__ = [
    "EmailWorker",
    "HubRenewalWorker",
    "PollingWorker",
    "QueueWorker",
    "SubscriptionCheckWorker",
]
