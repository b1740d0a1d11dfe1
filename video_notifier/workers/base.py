"""Cooperative polling loop shared by all pipeline workers.

A worker does one unit of work per iteration (run_once) and then waits for
its interval. The wait is on a stop event, so stop() is observed immediately
while an in-flight iteration always runs to completion first.

Lifecycle:
    worker = QueueWorker(...)
    task = asyncio.create_task(worker.run())
    ...
    worker.stop()
    await task  # returns after the current iteration finishes

Tests drive run_once() directly and never sleep.
"""

import asyncio
import uuid

import httpx
from sqlalchemy.exc import SQLAlchemyError

from video_notifier.utils.logging import get_logger

log = get_logger(__name__)

# Errors that end one iteration but never the loop
RECOVERABLE_ERRORS = (SQLAlchemyError, httpx.HTTPError, RuntimeError, OSError, TimeoutError)


class PollingWorker:
    """Base class: subclasses set `name` and implement run_once()."""

    name = "worker"

    def __init__(self, interval: float):
        self.interval = interval
        self._stop_event = asyncio.Event()
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    async def run_once(self) -> None:
        raise NotImplementedError

    def stop(self) -> None:
        """Request shutdown; the loop exits after the current iteration."""
        if self._running:
            log.info("worker_stop_requested", worker=self.name)
        self._stop_event.set()

    def reset(self) -> None:
        """Clear an earlier stop request so the worker can be run again."""
        self._stop_event.clear()

    async def run(self) -> None:
        """Run iterations until stop() is called."""
        self._running = True
        log.info("worker_started", worker=self.name, interval_seconds=self.interval)

        try:
            while not self._stop_event.is_set():
                try:
                    await self.run_once()
                except RECOVERABLE_ERRORS as e:
                    log.error(
                        "worker_iteration_failed",
                        worker=self.name,
                        correlation_id=str(uuid.uuid4()),
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                except Exception as e:
                    log.critical(
                        "worker_crashed",
                        worker=self.name,
                        correlation_id=str(uuid.uuid4()),
                        error=str(e),
                        error_type=type(e).__name__,
                        exc_info=True,
                    )
                    raise

                await self._wait_interval()
        finally:
            self._running = False
            log.info("worker_stopped", worker=self.name)

    async def _wait_interval(self) -> None:
        try:
            await asyncio.wait_for(self._stop_event.wait(), timeout=self.interval)
        except TimeoutError:
            pass
