"""Boundary contracts for the collaborators this core depends on.

The scheduling core talks to persistence and HR systems only through these
protocols. In-memory implementations back the tests and the demo script.
"""

import threading
from typing import Iterable, Optional, Protocol

from warehouse_ops.models.task import ACTIVE_STATUSES, Task, TaskKind, TaskStatus
from warehouse_ops.models.worker import WorkerProfile


class TaskStore(Protocol):
    def find(self, task_id: str) -> Optional[Task]: ...

    def save(self, task: Task) -> None: ...

    def find_by_status(self, status: TaskStatus, limit: Optional[int] = None) -> list[Task]: ...

    def count(self, status: Optional[TaskStatus] = None) -> int: ...


class WorkerDirectory(Protocol):
    def find_active_workers(self, skill_categories: Optional[Iterable[str]] = None) -> list[WorkerProfile]: ...

    def current_active_task_count(self, worker_id: int) -> int: ...

    def performance_score(self, worker_id: int, kind: TaskKind) -> Optional[float]: ...


def queue_order(task: Task) -> tuple:
    """Sort key for the pending queue: priority desc, then oldest first."""
    return (-task.priority, task.created_at)


class InMemoryTaskStore:
    """Arena of tasks keyed by id."""

    def __init__(self, tasks: Iterable[Task] = ()):
        self._tasks: dict[str, Task] = {}
        self._lock = threading.RLock()
        for task in tasks:
            self.save(task)

    def find(self, task_id: str) -> Optional[Task]:
        with self._lock:
            return self._tasks.get(task_id)

    def save(self, task: Task) -> None:
        with self._lock:
            self._tasks[task.id] = task

    def find_by_status(self, status: TaskStatus, limit: Optional[int] = None) -> list[Task]:
        with self._lock:
            matches = sorted(
                (t for t in self._tasks.values() if t.status == status),
                key=queue_order,
            )
        return matches if limit is None else matches[:limit]

    def count(self, status: Optional[TaskStatus] = None) -> int:
        with self._lock:
            if status is None:
                return len(self._tasks)
            return sum(1 for t in self._tasks.values() if t.status == status)

    def all(self) -> list[Task]:
        with self._lock:
            return list(self._tasks.values())

    def __len__(self) -> int:
        return self.count()


class InMemoryWorkerDirectory:
    """Worker profiles plus load/performance lookups.

    Active-task counts come from an attached task store when there is one,
    otherwise from the static ``loads`` map.
    """

    def __init__(
        self,
        workers: Iterable[WorkerProfile] = (),
        task_store: Optional[InMemoryTaskStore] = None,
        loads: Optional[dict[int, int]] = None,
        performance: Optional[dict[int, float]] = None,
    ):
        self.workers: dict[int, WorkerProfile] = {w.worker_id: w for w in workers}
        self.task_store = task_store
        self.loads = loads or {}
        self.performance = performance or {}

    def find(self, worker_id: int) -> Optional[WorkerProfile]:
        return self.workers.get(worker_id)

    def find_active_workers(self, skill_categories: Optional[Iterable[str]] = None) -> list[WorkerProfile]:
        categories = set(skill_categories) if skill_categories is not None else None
        return [
            w for w in sorted(self.workers.values(), key=lambda w: w.worker_id)
            if w.active and (categories is None or w.skill_category in categories)
        ]

    def current_active_task_count(self, worker_id: int) -> int:
        if self.task_store is None:
            return self.loads.get(worker_id, 0)
        return sum(
            1 for t in self.task_store.all()
            if t.assigned_worker_id == worker_id and t.status in ACTIVE_STATUSES
        )

    def performance_score(self, worker_id: int, kind: TaskKind) -> Optional[float]:
        return self.performance.get(worker_id)
