"""Tests for the worker registry (start/stop/status)."""

import asyncio

import pytest

from video_notifier.exceptions import ConfigurationError, UnknownWorkerError
from video_notifier.supervisor import RUNNING, STOPPED, WorkerRegistry, build_registry
from video_notifier.workers.base import PollingWorker


class IdleWorker(PollingWorker):
    name = "idle"

    def __init__(self):
        super().__init__(interval=3600)
        self.iterations = 0

    async def run_once(self) -> None:
        self.iterations += 1


class SlowWorker(PollingWorker):
    """One iteration that outlives the stop grace period."""

    name = "slow"

    def __init__(self):
        super().__init__(interval=3600)
        self.release = asyncio.Event()

    async def run_once(self) -> None:
        await self.release.wait()


class CrashingWorker(PollingWorker):
    name = "crashing"

    def __init__(self):
        super().__init__(interval=3600)

    async def run_once(self) -> None:
        raise KeyError("missing")


@pytest.fixture
def registry() -> WorkerRegistry:
    registry = WorkerRegistry(stop_grace=1.0)
    registry.register("idle", IdleWorker)
    return registry


class TestWorkerRegistry:
    @pytest.mark.asyncio
    async def test_start_stop_status(self, registry):
        assert registry.statuses() == {"idle": STOPPED}

        assert await registry.start("idle") == RUNNING
        assert registry.status("idle") == RUNNING

        assert await registry.stop("idle") == STOPPED
        assert registry.statuses() == {"idle": STOPPED}

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self, registry):
        await registry.start("idle")
        worker = registry.get_worker("idle")

        assert await registry.start("idle") == RUNNING
        assert registry.get_worker("idle") is worker

        await registry.stop_all()

    @pytest.mark.asyncio
    async def test_worker_reused_after_restart(self, registry):
        await registry.start("idle")
        worker = registry.get_worker("idle")
        await registry.stop("idle")

        await registry.start("idle")
        assert registry.get_worker("idle") is worker
        assert registry.status("idle") == RUNNING

        await registry.stop_all()

    @pytest.mark.asyncio
    async def test_stop_when_not_running(self, registry):
        assert await registry.stop("idle") == STOPPED

    @pytest.mark.asyncio
    async def test_unknown_worker(self, registry):
        with pytest.raises(UnknownWorkerError):
            await registry.start("nope")
        with pytest.raises(UnknownWorkerError):
            await registry.stop("nope")
        with pytest.raises(UnknownWorkerError):
            registry.status("nope")

    @pytest.mark.asyncio
    async def test_configuration_error_surfaces_on_start(self, registry):
        def broken_factory() -> PollingWorker:
            raise ConfigurationError("OPENAI_API_KEY environment variable is required")

        registry.register("broken", broken_factory)

        with pytest.raises(ConfigurationError):
            await registry.start("broken")
        assert registry.status("broken") == STOPPED

    @pytest.mark.asyncio
    async def test_stop_returns_after_grace_when_iteration_is_slow(self):
        registry = WorkerRegistry(stop_grace=0.05)
        registry.register("slow", SlowWorker)
        await registry.start("slow")
        await asyncio.sleep(0)

        assert await registry.stop("slow") == RUNNING

        # The in-flight iteration was not cancelled and finishes on its own
        worker = registry.get_worker("slow")
        worker.release.set()
        for _ in range(100):
            if registry.status("slow") == STOPPED:
                break
            await asyncio.sleep(0.01)
        assert registry.status("slow") == STOPPED

    @pytest.mark.asyncio
    async def test_crashed_worker_reports_stopped_and_is_logged(self, mocker):
        mock_log = mocker.patch("video_notifier.supervisor.log")
        registry = WorkerRegistry(stop_grace=1.0)
        registry.register("crashing", CrashingWorker)

        await registry.start("crashing")
        for _ in range(100):
            if registry.status("crashing") == STOPPED:
                break
            await asyncio.sleep(0.01)
        await asyncio.sleep(0)

        assert registry.status("crashing") == STOPPED
        mock_log.error.assert_called_once()
        assert mock_log.error.call_args.args == ("worker_task_failed",)
        assert mock_log.error.call_args.kwargs == {
            "worker": "crashing",
            "error": "'missing'",
            "error_type": "KeyError",
        }
        assert await registry.stop("crashing") == STOPPED


class TestBuildRegistry:
    def test_registers_pipeline_workers(self, session_factory):
        registry = build_registry(session_factory)
        assert registry.names == ["queue", "email", "subscription-check", "hub-renewal"]

    @pytest.mark.asyncio
    async def test_missing_api_keys_only_affect_their_workers(self, session_factory):
        registry = build_registry(session_factory)

        with pytest.raises(ConfigurationError):
            await registry.start("queue")
        with pytest.raises(ConfigurationError):
            await registry.start("email")

        # Runs as a logged no-op outside production
        assert await registry.start("subscription-check") == RUNNING
        await registry.stop_all()
