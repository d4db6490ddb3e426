"""Background work with a thread-safe hand-off back to the main loop.

Work functions run on a worker pool and must never touch screen or node
state.  When one finishes, the task is queued; the main loop calls
:meth:`TaskRunner.drain` once per iteration and applies results there.
Cancellation is cooperative: :meth:`BackgroundTask.cancel` only sets a flag
the work function is expected to poll.
"""

from __future__ import annotations

import itertools
import logging
import queue
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Callable

__all__ = ["BackgroundTask", "TaskRunner"]

logger = logging.getLogger(__name__)

_ids = itertools.count(1)


class BackgroundTask:
    """A unit of background work and, once finished, its outcome."""

    def __init__(
        self,
        fn: Callable[[BackgroundTask], Any],
        on_done: Callable[[BackgroundTask], Any] | None = None,
        name: str | None = None,
    ) -> None:
        self.id = next(_ids)
        self.name = name or getattr(fn, "__name__", f"task-{self.id}")
        self.fn = fn
        self.on_done = on_done
        self.result: Any = None
        self.error: BaseException | None = None
        self._cancel = threading.Event()
        self._done = threading.Event()

    def cancel(self) -> None:
        """Ask the work function to stop at its next check."""
        self._cancel.set()

    @property
    def cancelled(self) -> bool:
        return self._cancel.is_set()

    @property
    def done(self) -> bool:
        return self._done.is_set()

    @property
    def ok(self) -> bool:
        return self.done and self.error is None and not self.cancelled

    def wait(self, timeout: float | None = None) -> bool:
        return self._done.wait(timeout)

    def run(self) -> None:
        """Execute on the calling (worker) thread and record the outcome."""
        try:
            if not self.cancelled:
                self.result = self.fn(self)
        except Exception as exc:
            logger.warning("background task %s failed: %r", self.name, exc)
            self.error = exc
        finally:
            self._done.set()

    def __repr__(self) -> str:
        state = "done" if self.done else "running"
        if self.cancelled:
            state += ",cancelled"
        return f"<BackgroundTask {self.id} {self.name!r} {state}>"


class TaskRunner:
    """Runs tasks on a thread pool and queues them when they finish."""

    def __init__(self, max_workers: int = 4) -> None:
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="tessera-task")
        self._completed: queue.Queue[BackgroundTask] = queue.Queue()
        self._pending: set[BackgroundTask] = set()
        self._lock = threading.Lock()

    def submit(
        self,
        fn: Callable[[BackgroundTask], Any],
        on_done: Callable[[BackgroundTask], Any] | None = None,
        name: str | None = None,
    ) -> BackgroundTask:
        task = BackgroundTask(fn, on_done, name)
        with self._lock:
            self._pending.add(task)
        self._executor.submit(self._run, task)
        return task

    def _run(self, task: BackgroundTask) -> None:
        task.run()
        self._completed.put(task)

    def drain(self) -> list[BackgroundTask]:
        """Return every task that finished since the last drain (non-blocking)."""
        finished: list[BackgroundTask] = []
        while True:
            try:
                task = self._completed.get_nowait()
            except queue.Empty:
                break
            finished.append(task)
        if finished:
            with self._lock:
                self._pending.difference_update(finished)
        return finished

    @property
    def pending(self) -> int:
        with self._lock:
            return len(self._pending)

    def cancel_all(self) -> None:
        with self._lock:
            for task in self._pending:
                task.cancel()

    def shutdown(self, wait: bool = False) -> None:
        """Cancel outstanding tasks and stop accepting new ones."""
        self.cancel_all()
        self._executor.shutdown(wait=wait)
