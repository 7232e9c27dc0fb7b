"""SQLite-backed delayed task queue.

Tasks are rows in ``scheduled_tasks``. ``schedule`` never blocks; a worker
calls ``run_pending`` to execute every task whose ``run_at`` has passed.
Delivery is at-least-once: a task row is removed only after its handler
returns, and a handler that raises leaves the row behind as ``failed`` with
the error text for diagnosis.
"""

from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol

import orjson

from chunk_store.core.logging import get_logger
from chunk_store.core.metrics import TASKS_EXECUTED
from chunk_store.db.sqlite import SQLiteDatabase

logger = get_logger(__name__)

TaskHandler = Callable[[dict[str, Any]], Any]
Clock = Callable[[], float]


class Scheduler(Protocol):
    def schedule(self, delay_seconds: float, task_name: str, args: Mapping[str, Any]) -> None: ...


@dataclass(slots=True)
class ScheduledTask:
    id: int
    task_name: str
    args: dict[str, Any]
    run_at: float
    status: str
    last_error: str | None = None


class TaskQueue:
    """Fire-and-forget scheduler with a handler registry."""

    def __init__(self, db: SQLiteDatabase, clock: Clock = time.time) -> None:
        self.db = db
        self._clock = clock
        self._handlers: dict[str, TaskHandler] = {}

    def register(self, task_name: str, handler: TaskHandler) -> None:
        self._handlers[task_name] = handler

    def schedule(self, delay_seconds: float, task_name: str, args: Mapping[str, Any]) -> None:
        now = self._clock()
        self.db.execute(
            "INSERT INTO scheduled_tasks (task_name, args_json, run_at, created_at) VALUES (?, ?, ?, ?)",
            [task_name, orjson.dumps(dict(args)).decode("utf-8"), now + max(delay_seconds, 0), now],
        )
        self.db.commit()
        logger.debug("Scheduled %s in %ss", task_name, delay_seconds)

    def pending(self, task_name: str | None = None) -> list[ScheduledTask]:
        return self._select("pending", task_name)

    def failed(self, task_name: str | None = None) -> list[ScheduledTask]:
        return self._select("failed", task_name)

    def run_pending(self, now: float | None = None, limit: int | None = None) -> int:
        """Run due tasks in due order; return how many ran successfully.

        Tasks scheduled by a handler during this call are picked up only if
        already due when the batch was selected, i.e. never in the same call
        for a positive delay.
        """
        cutoff = self._clock() if now is None else now
        sql = "SELECT * FROM scheduled_tasks WHERE status = 'pending' AND run_at <= ? ORDER BY run_at, id"
        params: list[Any] = [cutoff]
        if limit is not None:
            sql += " LIMIT ?"
            params.append(limit)
        due = [_row_to_task(row) for row in self.db.query(sql, params)]

        completed = 0
        for task in due:
            handler = self._handlers.get(task.task_name)
            if handler is None:
                logger.error("No handler registered for task %s", task.task_name, extra={"ctx_task": task.task_name})
                self._mark_failed(task, "no handler registered")
                TASKS_EXECUTED.labels(task=task.task_name, status="unhandled").inc()
                continue
            try:
                handler(task.args)
            except Exception as exc:
                logger.exception("Task %s (%s) failed", task.id, task.task_name, extra={"ctx_task": task.task_name})
                self._mark_failed(task, str(exc) or exc.__class__.__name__)
                TASKS_EXECUTED.labels(task=task.task_name, status="failed").inc()
                continue
            self.db.execute("DELETE FROM scheduled_tasks WHERE id = ?", [task.id])
            self.db.commit()
            TASKS_EXECUTED.labels(task=task.task_name, status="ok").inc()
            completed += 1
        return completed

    def _mark_failed(self, task: ScheduledTask, error: str) -> None:
        self.db.execute(
            "UPDATE scheduled_tasks SET status = 'failed', last_error = ? WHERE id = ?",
            [error, task.id],
        )
        self.db.commit()

    def _select(self, status: str, task_name: str | None) -> list[ScheduledTask]:
        sql = "SELECT * FROM scheduled_tasks WHERE status = ?"
        params: list[Any] = [status]
        if task_name is not None:
            sql += " AND task_name = ?"
            params.append(task_name)
        sql += " ORDER BY run_at, id"
        return [_row_to_task(row) for row in self.db.query(sql, params)]


def _row_to_task(row) -> ScheduledTask:
    return ScheduledTask(
        id=row["id"],
        task_name=row["task_name"],
        args=orjson.loads(row["args_json"]),
        run_at=row["run_at"],
        status=row["status"],
        last_error=row["last_error"],
    )


__all__ = ["ScheduledTask", "Scheduler", "TaskHandler", "TaskQueue"]
