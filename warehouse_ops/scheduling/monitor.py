"""Queue Monitor — aggregate health of the scheduling backlog.

A snapshot counts pending and active (assigned + in progress) tasks, maps
each busy worker to its active-task count, and classifies the backlog:
HEALTHY below the pending threshold, WARNING at or above it. When the task
store cannot list tasks, the monitor falls back to plain counts.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Callable, Optional

from warehouse_ops.collaborators import TaskStore
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.exceptions import CollaboratorUnavailableError
from warehouse_ops.models.task import ACTIVE_STATUSES, TaskStatus, utcnow

logger = logging.getLogger(__name__)


class QueueHealth(str, Enum):
    HEALTHY = "healthy"
    WARNING = "warning"
    ERROR = "error"


@dataclass
class QueueSnapshot:
    """Point-in-time view of the task queue."""
    pending_count: int = 0
    active_count: int = 0
    worker_utilization: dict[int, int] = field(default_factory=dict)
    queue_health: QueueHealth = QueueHealth.HEALTHY
    mode: str = "full"
    message: str = ""
    average_wait_minutes: Optional[float] = None
    timestamp: Optional[datetime] = None


class QueueMonitor:
    """Builds queue snapshots. Never raises; failures become ERROR snapshots."""

    def __init__(
        self,
        task_store: TaskStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
        warning_threshold: Optional[int] = None,
    ):
        self.task_store = task_store
        self.settings = settings or get_settings()
        self.clock = clock
        self.warning_threshold = warning_threshold or self.settings.queue_warning_threshold

    def snapshot(self) -> QueueSnapshot:
        try:
            return self._full_snapshot()
        except CollaboratorUnavailableError as exc:
            logger.warning("Full queue statistics unavailable, using basic mode: %s", exc)
            return self.basic_snapshot()
        except Exception as exc:
            logger.error("Failed to build queue snapshot", exc_info=True)
            return QueueSnapshot(
                queue_health=QueueHealth.ERROR,
                mode="error",
                message=str(exc),
                timestamp=self.clock(),
            )

    def basic_snapshot(self) -> QueueSnapshot:
        """Counts only: no per-worker breakdown, no wait times."""
        now = self.clock()
        try:
            pending = self.task_store.count(TaskStatus.PENDING)
            active = sum(self.task_store.count(status) for status in ACTIVE_STATUSES)
        except Exception as exc:
            logger.error("Task store count failed", exc_info=True)
            return QueueSnapshot(queue_health=QueueHealth.ERROR, mode="error", message=str(exc), timestamp=now)

        return QueueSnapshot(
            pending_count=pending,
            active_count=active,
            queue_health=self.classify(pending),
            mode="basic",
            message="Scheduling engine unavailable; basic statistics only",
            timestamp=now,
        )

    def classify(self, pending_count: int) -> QueueHealth:
        if pending_count < self.warning_threshold:
            return QueueHealth.HEALTHY
        return QueueHealth.WARNING

    def _full_snapshot(self) -> QueueSnapshot:
        if not callable(getattr(self.task_store, "find_by_status", None)):
            raise CollaboratorUnavailableError("task listing", "store only supports counts")

        now = self.clock()
        pending = self.task_store.find_by_status(TaskStatus.PENDING)
        active = [
            task
            for status in (TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS)
            for task in self.task_store.find_by_status(status)
        ]

        utilization: dict[int, int] = {}
        for task in active:
            if task.assigned_worker_id is not None:
                utilization[task.assigned_worker_id] = utilization.get(task.assigned_worker_id, 0) + 1

        average_wait = None
        if pending:
            waits = [(now - t.created_at).total_seconds() / 60.0 for t in pending]
            average_wait = round(sum(waits) / len(waits), 2)

        return QueueSnapshot(
            pending_count=len(pending),
            active_count=len(active),
            worker_utilization=dict(sorted(utilization.items())),
            queue_health=self.classify(len(pending)),
            mode="full",
            average_wait_minutes=average_wait,
            timestamp=now,
        )
