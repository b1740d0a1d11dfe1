"""Worker supervisor: typed registry with start/stop/status.

Each worker is registered under a fixed name with a factory. The worker is
built on first start (so a missing API key only affects the worker that
needs it) and then reused across stop/start cycles. All control operations
are serialized by one asyncio.Lock.

Names:
    queue, email, subscription-check, hub-renewal
"""

import asyncio
from collections.abc import Callable
from dataclasses import dataclass
from functools import partial

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from video_notifier.clients.captions import CaptionFetcher
from video_notifier.clients.email import ResendEmailSender
from video_notifier.clients.hub import HubClient
from video_notifier.clients.summarizer import Summarizer
from video_notifier.exceptions import UnknownWorkerError
from video_notifier.queue import NotificationQueue
from video_notifier.services.ai_content import AIContentCache
from video_notifier.services.usage import UsageAccounting
from video_notifier.utils.logging import get_logger
from video_notifier.workers import (
    EmailWorker,
    HubRenewalWorker,
    PollingWorker,
    QueueWorker,
    SubscriptionCheckWorker,
)

log = get_logger(__name__)

RUNNING = "running"
STOPPED = "stopped"

# Seconds stop() waits for the in-flight iteration before returning
STOP_GRACE_SECONDS = 30.0


def _log_task_exit(name: str, task: asyncio.Task) -> None:
    """Retrieve a finished worker task's exception so a crash shows up as stopped."""
    if task.cancelled():
        return
    error = task.exception()
    if error is not None:
        log.error(
            "worker_task_failed",
            worker=name,
            error=str(error),
            error_type=type(error).__name__,
        )


@dataclass
class WorkerHandle:
    name: str
    factory: Callable[[], PollingWorker]
    worker: PollingWorker | None = None
    task: asyncio.Task | None = None

    @property
    def is_running(self) -> bool:
        return self.task is not None and not self.task.done()


class WorkerRegistry:
    """Start, stop and inspect named workers."""

    def __init__(self, stop_grace: float = STOP_GRACE_SECONDS):
        self._handles: dict[str, WorkerHandle] = {}
        self._lock = asyncio.Lock()
        self.stop_grace = stop_grace

    def register(self, name: str, factory: Callable[[], PollingWorker]) -> None:
        self._handles[name] = WorkerHandle(name=name, factory=factory)

    @property
    def names(self) -> list[str]:
        return list(self._handles)

    def _get(self, name: str) -> WorkerHandle:
        try:
            return self._handles[name]
        except KeyError:
            raise UnknownWorkerError(name) from None

    def get_worker(self, name: str) -> PollingWorker | None:
        return self._get(name).worker

    def status(self, name: str) -> str:
        return RUNNING if self._get(name).is_running else STOPPED

    def statuses(self) -> dict[str, str]:
        return {name: self.status(name) for name in self._handles}

    async def start(self, name: str) -> str:
        """Start a worker; starting a running worker is a no-op.

        Raises:
            UnknownWorkerError: No worker registered under this name.
            ConfigurationError: The worker's dependencies are not configured.
        """
        async with self._lock:
            handle = self._get(name)
            if handle.is_running:
                return RUNNING

            if handle.worker is None:
                handle.worker = handle.factory()

            handle.worker.reset()
            handle.task = asyncio.create_task(handle.worker.run(), name=f"worker-{name}")
            handle.task.add_done_callback(partial(_log_task_exit, name))
            log.info("worker_task_started", worker=name)
            return RUNNING

    async def stop(self, name: str) -> str:
        """Ask a worker to stop and wait (bounded) for its current iteration.

        Raises:
            UnknownWorkerError: No worker registered under this name.
        """
        async with self._lock:
            handle = self._get(name)
            if not handle.is_running or handle.worker is None:
                return STOPPED

            handle.worker.stop()
            _, pending = await asyncio.wait({handle.task}, timeout=self.stop_grace)
            if pending:
                log.warning("worker_stop_grace_exceeded", worker=name, grace=self.stop_grace)

            return self.status(name)

    async def stop_all(self) -> None:
        for name in self.names:
            await self.stop(name)


def build_registry(
    session_factory: async_sessionmaker[AsyncSession],
    queue: NotificationQueue | None = None,
) -> WorkerRegistry:
    """Registry wired with the production clients for every pipeline worker."""
    queue = queue or NotificationQueue(session_factory)
    usage = UsageAccounting(session_factory)

    def make_queue_worker() -> QueueWorker:
        return QueueWorker(
            session_factory=session_factory,
            queue=queue,
            captions=CaptionFetcher(session_factory),
            summarizer=Summarizer(),
            ai_content=AIContentCache(session_factory),
            usage=usage,
            hub=HubClient(),
        )

    def make_email_worker() -> EmailWorker:
        return EmailWorker(session_factory, sender=ResendEmailSender(), usage=usage)

    registry = WorkerRegistry()
    registry.register(QueueWorker.name, make_queue_worker)
    registry.register(EmailWorker.name, make_email_worker)
    registry.register(
        SubscriptionCheckWorker.name,
        lambda: SubscriptionCheckWorker(session_factory, usage),
    )
    registry.register(
        HubRenewalWorker.name,
        lambda: HubRenewalWorker(session_factory, HubClient()),
    )
    return registry
