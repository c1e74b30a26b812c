"""In-process ingestion work queue with a bounded worker pool.

Submitted jobs are put on an ``asyncio.Queue`` and drained by a fixed
number of worker tasks, which caps how many extractions share the browser
and how many embedding calls run at once.

Shutdown lets jobs that are already running finish; anything still queued
stays ``pending`` in the store and is re-enqueued on the next startup by
:meth:`~src.services.ingestion.job_coordinator.JobCoordinator.recover_pending_jobs`.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from typing import Any, Awaitable, Callable

import structlog

logger = structlog.get_logger(logger_name=__name__)


@dataclass(frozen=True)
class IngestWorkItem:
    job_id: str
    url: str


JobHandler = Callable[[IngestWorkItem], Awaitable[Any]]


class IngestionQueue:
    """FIFO of ingestion work items processed by *concurrency* workers."""

    def __init__(self, concurrency: int = 2) -> None:
        if concurrency < 1:
            raise ValueError(f"concurrency must be >= 1, got {concurrency}")
        self._concurrency = concurrency
        self._queue: asyncio.Queue[IngestWorkItem] = asyncio.Queue()
        self._workers: list[asyncio.Task[None]] = []
        self._busy: set[int] = set()
        self._closed = False

    @property
    def concurrency(self) -> int:
        return self._concurrency

    @property
    def pending(self) -> int:
        return self._queue.qsize()

    @property
    def running(self) -> bool:
        return bool(self._workers) and not self._closed

    async def enqueue(self, item: IngestWorkItem) -> None:
        if self._closed:
            raise RuntimeError("Ingestion queue is stopped")
        await self._queue.put(item)
        logger.debug("ingest_job_enqueued", job_id=item.job_id, pending=self._queue.qsize())

    def start(self, handler: JobHandler) -> None:
        """Spawn the worker tasks.  Must be called from a running event loop."""
        if self._workers:
            return
        self._closed = False
        self._workers = [
            asyncio.create_task(self._worker(worker_id, handler), name=f"ingest-worker-{worker_id}")
            for worker_id in range(self._concurrency)
        ]
        logger.info("ingest_workers_started", concurrency=self._concurrency)

    async def join(self) -> None:
        """Wait until every enqueued item has been handled."""
        await self._queue.join()

    async def stop(self) -> None:
        """Stop accepting work, cancel idle workers and wait for busy ones."""
        self._closed = True
        for worker_id, task in enumerate(self._workers):
            if worker_id not in self._busy:
                task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        logger.info("ingest_workers_stopped", left_in_queue=self._queue.qsize())

    async def _worker(self, worker_id: int, handler: JobHandler) -> None:
        while not self._closed:
            item = await self._queue.get()
            self._busy.add(worker_id)
            try:
                await handler(item)
            except Exception:
                # Handlers record their own failures; this keeps the worker alive.
                logger.exception("ingest_handler_crashed", job_id=item.job_id, worker=worker_id)
            finally:
                self._busy.discard(worker_id)
                self._queue.task_done()
