"""
GuardSpine — Background Tasks

Bounded fire-and-forget queue for side effects the caller must not wait on
(interrupt approvals, escalation webhooks). Submissions return immediately;
drain() lets callers and tests wait for completion deterministically.

  - Inside a running event loop, work is scheduled as asyncio tasks.
  - Without one, work runs on a small thread pool, one event loop per job.
  - At most `max_pending` jobs are in flight; extra submissions are dropped
    with a warning (at-most-once, no retries).

Jobs are expected to handle their own failures; anything that escapes is
logged here and never re-raised.
"""

from __future__ import annotations

import asyncio
import logging
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Awaitable, Callable

from guardspine.errors import serialize_error

logger = logging.getLogger("guardspine.background")

DEFAULT_MAX_PENDING = 64
DEFAULT_WORKERS = 4

Job = Callable[[], Awaitable[Any]]


class BackgroundTasks:

    def __init__(self, max_pending: int = DEFAULT_MAX_PENDING, workers: int = DEFAULT_WORKERS):
        self.max_pending = max_pending
        self.workers = workers
        self._tasks: set[asyncio.Task] = set()
        self._futures: set[Future] = set()
        self._executor: ThreadPoolExecutor | None = None
        self.dropped = 0

    @property
    def pending(self) -> int:
        return len(self._tasks) + len(self._futures)

    def submit(self, job: Job, name: str = "") -> bool:
        """
        Schedule job() without waiting for it.
        Returns False when the queue is full and the job was dropped.
        """
        if self.pending >= self.max_pending:
            self.dropped += 1
            logger.warning(
                "Background queue full (%d pending), dropping %s",
                self.pending, name or "job",
            )
            return False

        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            loop = None

        if loop is not None:
            task = loop.create_task(self._run(job, name))
            self._tasks.add(task)
            task.add_done_callback(self._tasks.discard)
        else:
            if self._executor is None:
                self._executor = ThreadPoolExecutor(
                    max_workers=self.workers, thread_name_prefix="guardspine-bg",
                )
            future = self._executor.submit(asyncio.run, self._run(job, name))
            self._futures.add(future)
            future.add_done_callback(self._futures.discard)
        return True

    async def _run(self, job: Job, name: str) -> None:
        try:
            await job()
        except Exception as e:
            logger.error("Background job %s failed: %s", name or "job", serialize_error(e))

    async def drain(self, timeout: float | None = None) -> bool:
        """
        Wait for every job submitted so far.

        Only jobs of the current event loop (plus thread-pool jobs) can be
        awaited here. Tasks still pending on another loop are skipped with
        a warning and count as unfinished.

        Returns False if the timeout expired first or a job is still pending.
        """
        loop = asyncio.get_running_loop()
        local = [t for t in self._tasks if t.get_loop() is loop]
        foreign = len(self._tasks) - len(local)
        if foreign:
            logger.warning("Cannot drain %d task(s) bound to another event loop", foreign)

        waitables = local + [asyncio.wrap_future(f) for f in list(self._futures)]
        if not waitables:
            return not foreign
        _, not_done = await asyncio.wait(waitables, timeout=timeout)
        return not not_done and not foreign

    def shutdown(self, wait: bool = True) -> None:
        """Stop the thread pool, if one was started."""
        if self._executor is not None:
            self._executor.shutdown(wait=wait)
            self._executor = None
