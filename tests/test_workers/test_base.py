"""Tests for the cooperative polling loop."""

import asyncio

import pytest
from sqlalchemy.exc import OperationalError

from video_notifier.workers.base import PollingWorker


class CountingWorker(PollingWorker):
    name = "counting"

    def __init__(self, interval: float = 3600, errors=None):
        super().__init__(interval)
        self.calls = 0
        self.errors = list(errors or [])
        self.called = asyncio.Event()

    async def run_once(self) -> None:
        self.calls += 1
        self.called.set()
        if self.errors:
            raise self.errors.pop(0)


class TestPollingWorker:
    @pytest.mark.asyncio
    async def test_stop_interrupts_interval_wait(self):
        """A long interval never delays shutdown."""
        worker = CountingWorker(interval=3600)
        task = asyncio.create_task(worker.run())
        await asyncio.wait_for(worker.called.wait(), timeout=1)
        assert worker.running is True

        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert worker.calls == 1
        assert worker.running is False

    @pytest.mark.asyncio
    async def test_stop_before_run_skips_iterations(self):
        worker = CountingWorker()
        worker.stop()

        await asyncio.wait_for(worker.run(), timeout=1)
        assert worker.calls == 0

    @pytest.mark.asyncio
    async def test_reset_allows_restart(self):
        worker = CountingWorker()
        worker.stop()
        await worker.run()

        worker.reset()
        task = asyncio.create_task(worker.run())
        await asyncio.wait_for(worker.called.wait(), timeout=1)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert worker.calls == 1

    @pytest.mark.asyncio
    async def test_recoverable_error_does_not_end_loop(self):
        worker = CountingWorker(
            interval=0.001,
            errors=[OperationalError("SELECT 1", {}, Exception("db down")), RuntimeError("x")],
        )
        task = asyncio.create_task(worker.run())

        for _ in range(100):
            if worker.calls >= 3:
                break
            await asyncio.sleep(0.01)
        worker.stop()
        await asyncio.wait_for(task, timeout=1)

        assert worker.calls >= 3

    @pytest.mark.asyncio
    async def test_unexpected_error_is_logged_and_ends_loop(self, mocker):
        mock_log = mocker.patch("video_notifier.workers.base.log")
        worker = CountingWorker(interval=0.001, errors=[ValueError("bad row")])

        with pytest.raises(ValueError):
            await asyncio.wait_for(worker.run(), timeout=1)

        assert worker.calls == 1
        assert worker.running is False
        mock_log.critical.assert_called_once()
        assert mock_log.critical.call_args.args == ("worker_crashed",)
        assert mock_log.critical.call_args.kwargs["error_type"] == "ValueError"

    @pytest.mark.asyncio
    async def test_base_run_once_not_implemented(self):
        with pytest.raises(NotImplementedError):
            await PollingWorker(interval=1).run_once()
