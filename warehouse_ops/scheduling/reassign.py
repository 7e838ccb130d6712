"""Batch reassignment — moves work off workers that became unavailable."""

import logging
from dataclasses import dataclass, field
from typing import Any, Optional

from warehouse_ops.exceptions import InvalidTransitionError
from warehouse_ops.models.task import Task
from warehouse_ops.scheduling.base import AssignmentRecord, SchedulingConstraints
from warehouse_ops.scheduling.batch import BatchScheduler

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class ReassignmentFailure:
    task_id: str
    reason: str


@dataclass
class ReassignmentResult:
    reason: str
    released_task_ids: list[str] = field(default_factory=list)
    new_assignments: list[AssignmentRecord] = field(default_factory=list)
    still_pending: list[str] = field(default_factory=list)
    failed_reassignments: list[ReassignmentFailure] = field(default_factory=list)
    message: str = ""

    @property
    def successful_reassignments(self) -> int:
        return len(self.new_assignments)


class BatchReassigner:
    """Releases assigned tasks and reschedules them away from their old workers.

    With no scheduler (basic mode) tasks are only released back to PENDING.
    """

    def __init__(self, batch_scheduler: Optional[BatchScheduler] = None):
        self.batch_scheduler = batch_scheduler

    def reassign(
        self,
        tasks: list[Task],
        reason: str,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
    ) -> ReassignmentResult:
        constraints = SchedulingConstraints.coerce(constraints)
        result = ReassignmentResult(reason=reason)

        released: list[Task] = []
        previous_workers: set[int] = set()
        for task in tasks:
            try:
                worker_id = task.release()
            except InvalidTransitionError as exc:
                result.failed_reassignments.append(ReassignmentFailure(task.id, str(exc)))
                continue
            released.append(task)
            if worker_id is not None:
                previous_workers.add(worker_id)
        result.released_task_ids = [t.id for t in released]

        if self.batch_scheduler is None or not released:
            result.still_pending = list(result.released_task_ids)
            result.message = "Tasks reset to pending for manual assignment"
            logger.info("Released %d tasks (%s)", len(released), reason)
            return result

        batch = self.batch_scheduler.schedule_batch(released, constraints.excluding(previous_workers))
        result.new_assignments = list(batch.assignments)
        result.still_pending = [t.id for t in batch.unassigned]
        for failure in batch.failures:
            result.failed_reassignments.append(ReassignmentFailure(failure.task_id, failure.error))
        result.message = f"Reassigned {len(batch.assignments)} of {len(released)} released tasks"
        logger.info(
            "Batch reassignment (%s): %d released, %d reassigned",
            reason, len(released), len(batch.assignments),
        )
        return result
