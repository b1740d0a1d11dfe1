"""Standalone worker process for the notification pipeline.

Runs the pipeline workers in one asyncio process until SIGTERM/SIGINT, then
stops each worker after its current iteration and closes the database pool.

Architecture Pattern:
    - Separate Process: web app and workers can be deployed independently
    - Short Transactions: no session held across captions, summaries, or sends
    - Graceful Shutdown: SIGTERM → stop workers → dispose engine → exit 0

Usage:
    python -m video_notifier.worker

Environment Variables:
    DATABASE_URL: required
    WORKERS: comma-separated worker names (default: all registered workers)
"""

import asyncio
import os
import signal
import sys
from dataclasses import dataclass

from dotenv import load_dotenv

# DATABASE_URL must be in the environment before video_notifier.database is imported
load_dotenv()

from video_notifier import database  # noqa: E402
from video_notifier.config import get_database_url  # noqa: E402
from video_notifier.exceptions import ConfigurationError, UnknownWorkerError  # noqa: E402
from video_notifier.supervisor import build_registry  # noqa: E402
from video_notifier.utils.logging import configure_logging, get_logger  # noqa: E402

log = get_logger(__name__)

shutdown_requested = False

_shutdown_event: asyncio.Event | None = None
_loop: asyncio.AbstractEventLoop | None = None


@dataclass
class WorkerConfig:
    """Worker configuration loaded from environment variables."""

    database_url: str
    worker_names: list[str]


def get_config() -> WorkerConfig:
    """Load and validate worker configuration.

    Raises:
        ValueError: If DATABASE_URL is not set.
    """
    raw_names = os.getenv("WORKERS", "")
    return WorkerConfig(
        database_url=get_database_url(),
        worker_names=[name.strip() for name in raw_names.split(",") if name.strip()],
    )


def signal_handler(signum: int, frame: object) -> None:
    """Handle SIGTERM/SIGINT: request a graceful shutdown.

    Args:
        signum: Signal number
        frame: Current stack frame (unused)
    """
    global shutdown_requested
    log.info(
        "shutdown_signal_received",
        signal=signum,
        signal_name=signal.Signals(signum).name,
    )
    shutdown_requested = True
    if _loop is not None and _shutdown_event is not None:
        _loop.call_soon_threadsafe(_shutdown_event.set)


async def worker_main_loop(config: WorkerConfig) -> None:
    """Start the configured workers and block until shutdown is requested."""
    global _shutdown_event, _loop
    _loop = asyncio.get_running_loop()
    _shutdown_event = asyncio.Event()
    if shutdown_requested:
        _shutdown_event.set()

    registry = build_registry(database.require_session_factory())
    names = config.worker_names or registry.names

    started = []
    for name in names:
        try:
            await registry.start(name)
            started.append(name)
        except (UnknownWorkerError, ConfigurationError) as e:
            log.error("worker_start_failed", worker=name, error=str(e))

    if not started:
        log.error("no_workers_started", requested=names)
        await shutdown_worker()
        return

    log.info("worker_process_started", workers=started)
    try:
        await _shutdown_event.wait()
    finally:
        await registry.stop_all()
        log.info("worker_process_stopped", workers=started)
        await shutdown_worker()


async def shutdown_worker() -> None:
    """Close the SQLAlchemy connection pool."""
    log.info("closing_database_connections")
    await database.dispose_engine()
    log.info("database_connections_closed")


def main() -> None:
    """Worker process entry point.

    Exit Codes:
        0: Successful shutdown (SIGTERM received)
        1: Fatal error (configuration invalid, database unreachable)
    """
    configure_logging()

    try:
        config = get_config()
    except ValueError as e:
        log.error("configuration_load_failed", error=str(e))
        sys.exit(1)

    database_host = (
        config.database_url.split("@")[-1].split("/")[0]
        if "@" in config.database_url
        else "local"
    )
    log.info("worker_configuration_loaded", database_url_host=database_host)

    signal.signal(signal.SIGTERM, signal_handler)
    signal.signal(signal.SIGINT, signal_handler)

    exit_code = 0
    try:
        asyncio.run(worker_main_loop(config))
    except Exception as e:
        log.error("worker_fatal_error", error=str(e), exc_info=True)
        exit_code = 1

    log.info("worker_exited", exit_code=exit_code)
    sys.exit(exit_code)


if __name__ == "__main__":
    main()
