"""Basic strategy — priority ordering only, humans make the assignments."""

import logging
from datetime import datetime
from typing import Callable, Optional

from warehouse_ops.collaborators import TaskStore, queue_order
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.exceptions import InvalidTransitionError
from warehouse_ops.models.task import Task, TaskStatus, clamp_priority, utcnow
from warehouse_ops.scheduling.base import SchedulingConstraints, SchedulingStrategy, UrgencyLevel
from warehouse_ops.scheduling.batch import BatchScheduleResult, BatchStatistics, no_pending_recommendation
from warehouse_ops.scheduling.matcher import MatchResult
from warehouse_ops.scheduling.monitor import QueueMonitor, QueueSnapshot
from warehouse_ops.scheduling.priority import PriorityRecalculation
from warehouse_ops.scheduling.reassign import BatchReassigner, ReassignmentResult
from warehouse_ops.scheduling.urgent import UrgentTaskResult

logger = logging.getLogger(__name__)

BASIC_URGENT_PRIORITY = 90


class BasicSchedulingStrategy(SchedulingStrategy):
    """Fallback used when no worker matching is configured.

    Batches are sorted by priority but nothing is assigned; urgent tasks get
    a priority bump; reassignment only returns tasks to the pending queue.
    """

    def __init__(
        self,
        task_store: TaskStore,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.task_store = task_store
        self.settings = settings or get_settings()
        self.clock = clock
        self.monitor = QueueMonitor(task_store, self.settings, clock)
        self.reassigner = BatchReassigner()

    @property
    def name(self) -> str:
        return "basic"

    def schedule_batch(self, tasks: list[Task], constraints: SchedulingConstraints) -> BatchScheduleResult:
        result = BatchScheduleResult(mode="basic")
        if not tasks:
            result.recommendations = [no_pending_recommendation()]
            return result

        ordered = sorted(tasks, key=queue_order)
        result.unassigned = ordered
        result.statistics = BatchStatistics(total_tasks=len(ordered), unassigned_count=len(ordered))
        result.recommendations = [{
            "type": "highest_priority_task",
            "task_id": ordered[0].id,
            "task_priority": ordered[0].priority,
            "message": "Basic mode: tasks sorted by priority, assign manually",
            "priority": "medium",
        }]
        return result

    def recalculate_priorities(self, context: dict) -> PriorityRecalculation:
        logger.warning("Basic scheduling mode, skipping priority recalculation")
        return PriorityRecalculation(
            trigger_reason=str(context.get("trigger_reason", "manual")),
            recalculated_at=self.clock(),
        )

    def assign_worker_by_skill(self, task: Task, constraints: SchedulingConstraints) -> Optional[MatchResult]:
        logger.warning("Basic scheduling mode, no skill matching for task %s", task.id)
        return None

    def queue_status(self) -> QueueSnapshot:
        return self.monitor.basic_snapshot()

    def handle_urgent_task(self, task: Task, urgency: UrgencyLevel) -> UrgentTaskResult:
        if task.status != TaskStatus.PENDING:
            raise InvalidTransitionError(task.id, task.status.value, "urgent_assign")

        before = task.priority
        task.priority = clamp_priority(max(task.priority, BASIC_URGENT_PRIORITY))
        task.payload = {**task.payload, "urgent": True}
        self.task_store.save(task)
        logger.warning("Urgent task %s raised to priority %d in basic mode", task.id, task.priority)
        return UrgentTaskResult(
            task_id=task.id,
            assigned=False,
            priority_before=before,
            priority_after=task.priority,
            handling_strategy="priority_bump",
            impact_analysis={
                "message": "Basic mode: priority raised, manual assignment required",
                "max_delay_minutes": urgency.max_delay_minutes,
            },
        )

    def batch_reassign(
        self, tasks: list[Task], reason: str, constraints: SchedulingConstraints,
    ) -> ReassignmentResult:
        return self.reassigner.reassign(tasks, reason, constraints)
