"""Tests for background tasks and the main-loop hand-off."""

from __future__ import annotations

import threading
import time

import pytest

from tessera.tasks import BackgroundTask, TaskRunner


def _drain_until(runner: TaskRunner, count: int, timeout: float = 5.0) -> list[BackgroundTask]:
    finished: list[BackgroundTask] = []
    deadline = time.monotonic() + timeout
    while len(finished) < count and time.monotonic() < deadline:
        finished.extend(runner.drain())
        time.sleep(0.005)
    return finished


@pytest.fixture()
def runner():
    runner = TaskRunner(max_workers=2)
    yield runner
    runner.shutdown(wait=True)


class TestBackgroundTask:
    def test_run_records_result(self) -> None:
        task = BackgroundTask(lambda t: 41 + 1)
        task.run()
        assert task.done and task.ok
        assert task.result == 42

    def test_run_records_error(self) -> None:
        def fail(task: BackgroundTask) -> None:
            raise IOError("disk")

        task = BackgroundTask(fail)
        task.run()
        assert task.done and not task.ok
        assert isinstance(task.error, OSError)

    def test_cancelled_before_start_skips_work(self) -> None:
        calls: list[int] = []
        task = BackgroundTask(lambda t: calls.append(1))
        task.cancel()
        task.run()
        assert calls == []
        assert task.cancelled and task.done and not task.ok

    def test_name_defaults_to_function(self) -> None:
        def fetch(task: BackgroundTask) -> None:
            pass

        assert BackgroundTask(fetch).name == "fetch"


class TestTaskRunner:
    def test_drain_is_empty_before_completion(self, runner: TaskRunner) -> None:
        gate = threading.Event()
        runner.submit(lambda t: gate.wait(5))
        assert runner.drain() == []
        assert runner.pending == 1
        gate.set()
        assert len(_drain_until(runner, 1)) == 1
        assert runner.pending == 0

    def test_on_done_not_called_on_worker(self, runner: TaskRunner) -> None:
        calls: list[str] = []
        task = runner.submit(lambda t: "data", on_done=lambda t: calls.append(t.result))
        task.wait(5)
        assert calls == []
        finished = _drain_until(runner, 1)
        assert finished == [task]
        assert task.result == "data"

    def test_cooperative_cancel(self, runner: TaskRunner) -> None:
        started = threading.Event()

        def loop(task: BackgroundTask) -> str:
            started.set()
            while not task.cancelled:
                time.sleep(0.001)
            return "stopped"

        task = runner.submit(loop)
        assert started.wait(5)
        task.cancel()
        assert task.wait(5)
        assert task.result == "stopped"
        assert task.cancelled

    def test_cancel_all(self, runner: TaskRunner) -> None:
        gate = threading.Event()
        tasks = [runner.submit(lambda t: gate.wait(5)) for _ in range(2)]
        runner.cancel_all()
        gate.set()
        assert all(t.cancelled for t in tasks)
