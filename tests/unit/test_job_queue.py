"""Unit tests for the in-process ingestion queue and worker pool."""

from __future__ import annotations

import asyncio

import pytest

from src.services.ingestion.job_queue import IngestionQueue, IngestWorkItem


def _item(n: int) -> IngestWorkItem:
    return IngestWorkItem(job_id=f"job-{n}", url=f"https://x.test/{n}")


class TestIngestionQueue:
    def test_concurrency_must_be_positive(self) -> None:
        with pytest.raises(ValueError):
            IngestionQueue(concurrency=0)

    @pytest.mark.asyncio
    async def test_items_are_handled_in_fifo_order(self) -> None:
        handled: list[str] = []

        async def handler(item: IngestWorkItem) -> None:
            handled.append(item.job_id)

        queue = IngestionQueue(concurrency=1)
        for n in range(3):
            await queue.enqueue(_item(n))
        assert queue.pending == 3

        queue.start(handler)
        await queue.join()
        await queue.stop()

        assert handled == ["job-0", "job-1", "job-2"]
        assert queue.pending == 0

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self) -> None:
        active = 0
        peak = 0

        async def handler(item: IngestWorkItem) -> None:
            nonlocal active, peak
            active += 1
            peak = max(peak, active)
            await asyncio.sleep(0.01)
            active -= 1

        queue = IngestionQueue(concurrency=2)
        queue.start(handler)
        for n in range(6):
            await queue.enqueue(_item(n))
        await queue.join()
        await queue.stop()

        assert peak == 2

    @pytest.mark.asyncio
    async def test_handler_exception_does_not_kill_worker(self) -> None:
        handled: list[str] = []

        async def handler(item: IngestWorkItem) -> None:
            if item.job_id == "job-0":
                raise RuntimeError("boom")
            handled.append(item.job_id)

        queue = IngestionQueue(concurrency=1)
        queue.start(handler)
        await queue.enqueue(_item(0))
        await queue.enqueue(_item(1))
        await queue.join()
        await queue.stop()

        assert handled == ["job-1"]

    @pytest.mark.asyncio
    async def test_stop_waits_for_running_job(self) -> None:
        started = asyncio.Event()
        finished: list[str] = []

        async def handler(item: IngestWorkItem) -> None:
            started.set()
            await asyncio.sleep(0.02)
            finished.append(item.job_id)

        queue = IngestionQueue(concurrency=1)
        queue.start(handler)
        await queue.enqueue(_item(0))
        await started.wait()
        await queue.stop()

        assert finished == ["job-0"]
        assert queue.running is False

    @pytest.mark.asyncio
    async def test_enqueue_after_stop_raises(self) -> None:
        async def handler(item: IngestWorkItem) -> None:
            return None

        queue = IngestionQueue()
        queue.start(handler)
        await queue.stop()
        with pytest.raises(RuntimeError):
            await queue.enqueue(_item(0))

    @pytest.mark.asyncio
    async def test_start_is_idempotent(self) -> None:
        async def handler(item: IngestWorkItem) -> None:
            return None

        queue = IngestionQueue(concurrency=2)
        queue.start(handler)
        queue.start(handler)
        assert queue.running is True
        assert queue.concurrency == 2
        await queue.stop()
