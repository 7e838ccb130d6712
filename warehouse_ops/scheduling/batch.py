"""Batch Scheduler — assigns a snapshot of pending tasks in one pass.

Tasks are visited in queue order (priority desc, oldest first). Each one is
matched against the worker pool with loads that include the assignments made
earlier in the same pass. A task that throws is logged and skipped; the batch
always returns a well-formed result.
"""

import logging
import threading
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import queue_order
from warehouse_ops.events import EventSink, NullEventSink, TaskEvent, TaskEventType, publish_event
from warehouse_ops.models.task import Task, utcnow
from warehouse_ops.scheduling.base import AssignmentRecord, SchedulingConstraints
from warehouse_ops.scheduling.matcher import WorkerMatcher

logger = logging.getLogger(__name__)

ADJUST_PRIORITIES_THRESHOLD = 0.3


@dataclass(frozen=True)
class BatchFailure:
    """A task whose assignment raised during a batch run."""
    task_id: str
    error: str


@dataclass
class BatchStatistics:
    total_tasks: int = 0
    assigned_count: int = 0
    unassigned_count: int = 0
    failed_count: int = 0
    assignment_rate: float = 0.0
    processing_time_ms: float = 0.0
    average_match_score: float = 0.0
    worker_utilization: dict[int, dict[str, int]] = field(default_factory=dict)


@dataclass
class BatchScheduleResult:
    """Everything a batch run decided, skipped and recommends."""
    assignments: list[AssignmentRecord] = field(default_factory=list)
    unassigned: list[Task] = field(default_factory=list)
    failures: list[BatchFailure] = field(default_factory=list)
    statistics: BatchStatistics = field(default_factory=BatchStatistics)
    recommendations: list[dict[str, Any]] = field(default_factory=list)
    cancelled: bool = False
    mode: str = "smart"


def no_pending_recommendation() -> dict[str, Any]:
    return {"type": "no_pending_tasks", "message": "No pending tasks to schedule", "priority": "low"}


class BatchScheduler:
    """Runs WorkerMatcher over a batch and commits each match via Task.assign."""

    def __init__(
        self,
        matcher: WorkerMatcher,
        event_sink: Optional[EventSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.matcher = matcher
        self.event_sink = event_sink or NullEventSink()
        self.clock = clock

    def schedule_batch(
        self,
        pending_tasks: list[Task],
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchScheduleResult:
        """Assign as many of ``pending_tasks`` as the worker pool allows.

        Setting ``cancel_event`` stops the pass between tasks; tasks not yet
        visited land in ``unassigned``. Committed assignments are kept.
        """
        constraints = SchedulingConstraints.coerce(constraints)
        started = time.perf_counter()
        logger.info("Starting batch scheduling for %d tasks", len(pending_tasks))

        result = BatchScheduleResult()
        if not pending_tasks:
            result.recommendations = [no_pending_recommendation()]
            return result

        ordered = sorted(pending_tasks, key=queue_order)
        loads = self._snapshot_loads()
        loads_before = dict(loads)

        for index, task in enumerate(ordered):
            if cancel_event is not None and cancel_event.is_set():
                logger.warning("Batch cancelled with %d tasks unvisited", len(ordered) - index)
                result.cancelled = True
                result.unassigned.extend(ordered[index:])
                break

            try:
                record = self._assign_one(task, constraints, loads)
            except Exception as exc:
                logger.warning("Assignment failed for task %s, skipping", task.id, exc_info=True)
                result.failures.append(BatchFailure(task_id=task.id, error=str(exc)))
                result.unassigned.append(task)
                continue

            if record is None:
                result.unassigned.append(task)
            else:
                result.assignments.append(record)
                loads[record.worker_id] = loads.get(record.worker_id, 0) + 1

        result.statistics = self._statistics(result, len(pending_tasks), started, loads_before, loads)
        result.recommendations = self._recommendations(result)
        logger.info(
            "Batch scheduling done: %d/%d assigned in %.1f ms",
            result.statistics.assigned_count, result.statistics.total_tasks,
            result.statistics.processing_time_ms,
        )
        return result

    def _assign_one(
        self, task: Task, constraints: SchedulingConstraints, loads: dict[int, int],
    ) -> Optional[AssignmentRecord]:
        match = self.matcher.match(task, constraints, loads=loads)
        if match is None:
            return None

        now = self.clock()
        task.assign(match.worker_id, at=now)
        publish_event(self.event_sink, TaskEvent(
            event_type=TaskEventType.TASK_ASSIGNED,
            task=task,
            actor_id="system",
            timestamp=now,
            context={
                "worker_id": match.worker_id,
                "assignment_type": "batch",
                "match_score": match.match_score,
            },
        ))
        return AssignmentRecord(
            task_id=task.id,
            worker_id=match.worker_id,
            match_score=match.match_score,
            assignment_reason=match.assignment_reason,
            assigned_at=now,
        )

    def _snapshot_loads(self) -> dict[int, int]:
        directory = self.matcher.directory
        return {
            w.worker_id: directory.current_active_task_count(w.worker_id)
            for w in directory.find_active_workers()
        }

    def _statistics(
        self,
        result: BatchScheduleResult,
        total: int,
        started: float,
        loads_before: dict[int, int],
        loads_after: dict[int, int],
    ) -> BatchStatistics:
        assigned = len(result.assignments)
        scores = [a.match_score for a in result.assignments]
        return BatchStatistics(
            total_tasks=total,
            assigned_count=assigned,
            unassigned_count=len(result.unassigned),
            failed_count=len(result.failures),
            assignment_rate=assigned / total if total else 0.0,
            processing_time_ms=round((time.perf_counter() - started) * 1000, 2),
            average_match_score=round(sum(scores) / len(scores), 3) if scores else 0.0,
            worker_utilization={
                worker_id: {
                    "workload_before": loads_before.get(worker_id, 0),
                    "workload_after": after,
                    "assigned": after - loads_before.get(worker_id, 0),
                }
                for worker_id, after in loads_after.items()
            },
        )

    @staticmethod
    def _recommendations(result: BatchScheduleResult) -> list[dict[str, Any]]:
        recommendations: list[dict[str, Any]] = []
        total = result.statistics.total_tasks

        if result.unassigned:
            top = result.unassigned[0]
            recommendations.append({
                "type": "highest_priority_unassigned",
                "task_id": top.id,
                "task_priority": top.priority,
                "priority": "high",
            })
            recommendations.append({
                "type": "increase_workers",
                "message": "Add available workers or relax constraints",
                "priority": "high",
            })
            if total and len(result.unassigned) / total > ADJUST_PRIORITIES_THRESHOLD:
                recommendations.append({
                    "type": "adjust_priorities",
                    "message": "Review priority strategy; most of the batch could not be placed",
                    "priority": "medium",
                })

        if result.failures:
            recommendations.append({
                "type": "review_failures",
                "task_ids": [f.task_id for f in result.failures],
                "priority": "medium",
            })

        if result.cancelled:
            recommendations.append({
                "type": "batch_cancelled",
                "message": "Batch stopped early; rerun for the remaining tasks",
                "priority": "medium",
            })

        if not recommendations:
            recommendations.append({"type": "none", "message": "All tasks assigned", "priority": "low"})
        return recommendations
