"""Tests for the SQLite task queue."""

from __future__ import annotations

import pytest

from chunk_store.scheduler.queue import TaskQueue


def test_tasks_run_only_when_due_and_in_order(queue: TaskQueue, clock) -> None:
    seen: list[int] = []
    queue.register("job", lambda args: seen.append(args["n"]))
    queue.schedule(30, "job", {"n": 3})
    queue.schedule(10, "job", {"n": 1})
    queue.schedule(10, "job", {"n": 2})

    assert queue.run_pending() == 0
    clock.advance(10)
    assert queue.run_pending() == 2
    assert seen == [1, 2]

    clock.advance(20)
    assert queue.run_pending() == 1
    assert seen == [1, 2, 3]
    assert queue.pending() == []


def test_failing_handler_marks_task_failed(queue: TaskQueue) -> None:
    def boom(args):
        raise RuntimeError("kaput")

    queue.register("boom", boom)
    queue.schedule(0, "boom", {})

    assert queue.run_pending() == 0
    assert queue.pending() == []
    [failed] = queue.failed()
    assert failed.task_name == "boom"
    assert failed.last_error == "kaput"


def test_unregistered_task_is_marked_failed(queue: TaskQueue) -> None:
    queue.schedule(0, "ghost", {"x": 1})
    assert queue.run_pending() == 0
    [failed] = queue.failed("ghost")
    assert failed.args == {"x": 1}
    assert failed.last_error == "no handler registered"


def test_negative_delay_is_clamped(queue: TaskQueue, clock) -> None:
    queue.schedule(-5, "job", {})
    [task] = queue.pending()
    assert task.run_at == pytest.approx(clock.now)


def test_limit_and_explicit_now(queue: TaskQueue, clock) -> None:
    seen: list[int] = []
    queue.register("job", lambda args: seen.append(args["n"]))
    for n in range(3):
        queue.schedule(100, "job", {"n": n})

    assert queue.run_pending(now=clock.now + 100, limit=2) == 2
    assert seen == [0, 1]
    assert len(queue.pending("job")) == 1


def test_tasks_survive_a_new_queue_instance(db, clock) -> None:
    TaskQueue(db, clock=clock).schedule(0, "job", {"n": 1})
    fresh = TaskQueue(db, clock=clock)
    seen: list[dict] = []
    fresh.register("job", seen.append)
    assert fresh.run_pending() == 1
    assert seen == [{"n": 1}]
