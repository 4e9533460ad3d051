"""Bounded in-process worker pool for CSV imports.

Two independent limits apply: at most ``max_concurrent`` imports run at
once, and at most ``queue_capacity`` more wait for a free worker. Anything
beyond that is rejected on the spot, so submitting never blocks.

Workers are asyncio tasks created on demand up to the concurrency ceiling.
Each one hands the synchronous import function to a thread executor so the
event loop stays free while rows are parsed and written. Idle workers exit
after ``idle_timeout`` seconds.
"""

import asyncio
import functools
import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional, Set, Tuple

from tedtalks.jobs.dispatcher import ImportDispatcher

logger = logging.getLogger(__name__)


@dataclass
class _Work:
    job_id: str
    fn: Callable[..., Any]
    args: Tuple[Any, ...]


class ImportWorkerPool(ImportDispatcher):
    """Admission-controlled asyncio worker pool."""

    def __init__(
        self,
        max_concurrent: int,
        queue_capacity: int,
        idle_timeout: float = 60.0,
    ):
        if max_concurrent < 1:
            raise ValueError("max_concurrent must be at least 1")
        if queue_capacity < 0:
            raise ValueError("queue_capacity must not be negative")
        self._max_concurrent = max_concurrent
        self._queue_capacity = queue_capacity
        self._idle_timeout = idle_timeout
        self._backlog: asyncio.Queue[_Work] = asyncio.Queue()
        self._workers: Set[asyncio.Task] = set()
        self._executor: Optional[ThreadPoolExecutor] = None
        self._accepting = False
        # Accepted and not yet finished: running plus waiting
        self._pending = 0
        self._running = 0
        self._waiting: Set[str] = set()
        self._cancelled: Set[str] = set()

    def submit(self, job_id: str, fn: Callable[..., Any], *args: Any) -> bool:
        if not self.has_capacity():
            logger.warning("Import %s rejected: pool at capacity (%s)", job_id, self.stats())
            return False
        self._pending += 1
        self._waiting.add(job_id)
        self._backlog.put_nowait(_Work(job_id, fn, args))
        idle = len(self._workers) - self._running
        if len(self._workers) < self._max_concurrent and self._backlog.qsize() > idle:
            self._spawn_worker()
        return True

    def cancel(self, job_id: str) -> bool:
        if job_id not in self._waiting:
            return False
        # The entry stays in the backlog; the worker that dequeues it drops it
        self._waiting.discard(job_id)
        self._cancelled.add(job_id)
        self._pending -= 1
        logger.info("Import %s withdrawn before it started", job_id)
        return True

    def has_capacity(self) -> bool:
        return self._accepting and self._pending < self._max_concurrent + self._queue_capacity

    def stats(self) -> Dict[str, int]:
        return {
            "running": self._running,
            "queued": self._pending - self._running,
            "workers": len(self._workers),
            "max_concurrent": self._max_concurrent,
            "queue_capacity": self._queue_capacity,
        }

    async def start(self) -> None:
        self._executor = ThreadPoolExecutor(
            max_workers=self._max_concurrent, thread_name_prefix="csv-import"
        )
        self._accepting = True

    async def stop(self) -> None:
        """Stop admission, run everything already accepted, then shut down."""
        self._accepting = False
        if self._pending:
            logger.info("Draining %d accepted import(s) before shutdown", self._pending)
        await self._backlog.join()
        workers = list(self._workers)
        for task in workers:
            task.cancel()
        await asyncio.gather(*workers, return_exceptions=True)
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def _spawn_worker(self) -> None:
        self._workers.add(asyncio.create_task(self._worker_loop()))

    async def _worker_loop(self) -> None:
        try:
            await self._process_backlog()
        finally:
            # submit() must never count a finished worker as idle
            self._workers.discard(asyncio.current_task())

    async def _process_backlog(self) -> None:
        loop = asyncio.get_running_loop()
        while True:
            try:
                work = await asyncio.wait_for(self._backlog.get(), timeout=self._idle_timeout)
            except asyncio.TimeoutError:
                if self._backlog.empty():
                    return
                continue

            self._waiting.discard(work.job_id)
            if work.job_id in self._cancelled:
                self._cancelled.discard(work.job_id)
                self._backlog.task_done()
                continue

            self._running += 1
            try:
                await loop.run_in_executor(
                    self._executor, functools.partial(work.fn, *work.args)
                )
            except Exception:
                logger.exception("Import task failed [%s]", work.job_id)
            finally:
                self._running -= 1
                self._pending -= 1
                self._backlog.task_done()
