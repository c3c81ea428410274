"""Fixed-size pool of scoring worker threads with a global FIFO task queue."""

from __future__ import annotations

import logging
import os
import threading
from collections import deque
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from queue import Queue

from ..model.types import ScoringRequest, ScoringResponse
from .scorer import score_request

logger = logging.getLogger(__name__)


def default_pool_size() -> int:
    return max(1, os.cpu_count() or 4)


@dataclass(frozen=True)
class WorkerTask:
    """One scoring request and its completion callbacks."""

    request: ScoringRequest
    on_complete: Callable[[ScoringResponse], None]
    on_error: Callable[[BaseException], None]


@dataclass(frozen=True)
class PoolStats:
    total_workers: int
    free_workers: int
    queued_tasks: int


class _Worker:
    """One thread with a private inbox; runs at most one task at a time."""

    def __init__(self, pool: WorkerPool, index: int) -> None:
        self.index = index
        self._pool = pool
        self.inbox: Queue[WorkerTask | None] = Queue()
        self.thread = threading.Thread(
            target=self._run,
            name=f"checkfilter-worker-{index}",
            daemon=True,
        )

    def _run(self) -> None:
        while True:
            task = self.inbox.get()
            if task is None:
                return
            self._pool._execute(self, task)


class WorkerPool:
    """Bounded scoring pool.

    ``submit`` hands the task to an idle worker or queues it. When a worker
    finishes, it takes the next queued task itself instead of returning to
    the free list first.
    """

    def __init__(
        self,
        size: int | None = None,
        *,
        score_fn: Callable[[ScoringRequest], ScoringResponse] = score_request,
        on_task_start: Callable[[ScoringRequest], None] | None = None,
        on_task_end: Callable[[ScoringRequest], None] | None = None,
    ) -> None:
        self.size = max(1, size if size is not None else default_pool_size())
        self._score_fn = score_fn
        self._on_task_start = on_task_start
        self._on_task_end = on_task_end
        self._lock = threading.Lock()
        self._queue: deque[WorkerTask] = deque()
        self._closed = False
        self._workers = [_Worker(self, index) for index in range(self.size)]
        self._free: list[_Worker] = list(self._workers)
        for worker in self._workers:
            worker.thread.start()

    def submit(self, request: ScoringRequest) -> Future[ScoringResponse]:
        """Schedule ``request``; the returned future resolves on a worker thread."""
        future: Future[ScoringResponse] = Future()
        future.set_running_or_notify_cancel()
        task = WorkerTask(
            request=request,
            on_complete=future.set_result,
            on_error=future.set_exception,
        )
        self.submit_task(task)
        return future

    def submit_task(self, task: WorkerTask) -> None:
        with self._lock:
            if self._closed:
                raise RuntimeError("worker pool is shut down")
            worker = self._free.pop() if self._free else None
            if worker is None:
                self._queue.append(task)
                return
        worker.inbox.put(task)

    def _execute(self, worker: _Worker, task: WorkerTask) -> None:
        self._run_hook(self._on_task_start, task.request)
        try:
            response = self._score_fn(task.request)
        except Exception as exc:
            logger.warning("scoring task failed on worker %d: %s", worker.index, exc)
            self._finish(task, error=exc)
        else:
            self._finish(task, response=response)
        self._conclude(worker)

    def _finish(
        self,
        task: WorkerTask,
        *,
        response: ScoringResponse | None = None,
        error: BaseException | None = None,
    ) -> None:
        self._run_hook(self._on_task_end, task.request)
        try:
            if error is not None:
                task.on_error(error)
            else:
                task.on_complete(response)
        except Exception:
            logger.exception("scoring task callback raised")

    @staticmethod
    def _run_hook(hook: Callable[[ScoringRequest], None] | None, request: ScoringRequest) -> None:
        if hook is None:
            return
        try:
            hook(request)
        except Exception:
            logger.exception("worker pool hook raised")

    def _conclude(self, worker: _Worker) -> None:
        with self._lock:
            if self._queue:
                next_task = self._queue.popleft()
            else:
                self._free.append(worker)
                return
        worker.inbox.put(next_task)

    def stats(self) -> PoolStats:
        with self._lock:
            return PoolStats(
                total_workers=len(self._workers),
                free_workers=len(self._free),
                queued_tasks=len(self._queue),
            )

    def shutdown(self, wait: bool = False, timeout: float | None = None) -> None:
        """Stop accepting tasks; queued tasks are dropped with an error."""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            dropped = list(self._queue)
            self._queue.clear()
        for task in dropped:
            task.on_error(RuntimeError("worker pool is shut down"))
        for worker in self._workers:
            worker.inbox.put(None)
        if wait:
            for worker in self._workers:
                worker.thread.join(timeout)

    def __enter__(self) -> WorkerPool:
        return self

    def __exit__(self, *exc_info: object) -> None:
        self.shutdown(wait=True, timeout=1.0)


__all__ = [
    "PoolStats",
    "WorkerPool",
    "WorkerTask",
    "default_pool_size",
]
