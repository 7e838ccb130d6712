"""TaskManager — id-based entry point the host application calls.

Looks tasks up in the store, drives the state machine, persists the result
and publishes events. Scheduling work is delegated to the configured
strategy; when it fails, the manager falls back to basic mode instead of
propagating the error.
"""

import logging
from datetime import datetime, timedelta
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import TaskStore, WorkerDirectory
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.events import EventSink, NullEventSink, TaskEvent, TaskEventType, publish_event
from warehouse_ops.exceptions import InvalidTransitionError, TaskNotFoundError, WorkerNotFoundError
from warehouse_ops.models.task import ACTIVE_STATUSES, TERMINAL_STATUSES, Task, TaskKind, TaskStatus, utcnow
from warehouse_ops.scheduling.base import SchedulingConstraints, SchedulingStrategy, UrgencyLevel
from warehouse_ops.scheduling.basic import BasicSchedulingStrategy
from warehouse_ops.scheduling.batch import BatchScheduleResult, BatchStatistics
from warehouse_ops.scheduling.matcher import MatchResult
from warehouse_ops.scheduling.monitor import QueueSnapshot
from warehouse_ops.scheduling.priority import PriorityRecalculation
from warehouse_ops.scheduling.reassign import ReassignmentFailure, ReassignmentResult
from warehouse_ops.scheduling.urgent import UrgentTaskResult

logger = logging.getLogger(__name__)

BASIC_BATCH_LIMIT = 50


class TaskManager:
    def __init__(
        self,
        task_store: TaskStore,
        worker_directory: WorkerDirectory,
        strategy: Optional[SchedulingStrategy] = None,
        event_sink: Optional[EventSink] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.task_store = task_store
        self.worker_directory = worker_directory
        self.settings = settings or get_settings()
        self.event_sink = event_sink or NullEventSink()
        self.clock = clock
        self.basic_strategy = BasicSchedulingStrategy(task_store, self.settings, clock)
        self.strategy = strategy or self.basic_strategy

    @property
    def smart_mode(self) -> bool:
        return self.strategy is not self.basic_strategy

    # ── Lifecycle ─────────────────────────────────────────────────────

    def create_task(
        self,
        kind: TaskKind,
        priority: int = 1,
        payload: Optional[dict[str, Any]] = None,
        task_id: Optional[str] = None,
    ) -> Task:
        fields: dict[str, Any] = {
            "kind": kind,
            "priority": priority,
            "payload": payload or {},
            "created_at": self.clock(),
        }
        if task_id is not None:
            fields["id"] = task_id
        task = Task(**fields)
        self.task_store.save(task)
        self._publish(TaskEventType.TASK_CREATED, task)
        logger.info("Created %s task %s (priority=%d)", task.kind.value, task.id, task.priority)
        return task

    def assign_task(self, task_id: str, worker_id: int) -> Task:
        task = self._find_task(task_id)
        if worker_id not in {w.worker_id for w in self.worker_directory.find_active_workers()}:
            raise WorkerNotFoundError(worker_id)
        now = self.clock()
        task.assign(worker_id, at=now)
        self.task_store.save(task)
        self._publish(TaskEventType.TASK_ASSIGNED, task, actor_id=worker_id, timestamp=now,
                      context={"worker_id": worker_id, "assignment_type": "manual"})
        return task

    def start_task(self, task_id: str) -> Task:
        task = self._find_task(task_id)
        now = self.clock()
        task.start(at=now)
        self.task_store.save(task)
        self._publish(TaskEventType.TASK_STARTED, task, actor_id=task.assigned_worker_id, timestamp=now)
        return task

    def complete_task(self, task_id: str, result: Optional[dict[str, Any]] = None) -> Task:
        task = self._find_task(task_id)
        now = self.clock()
        task.complete(result or {}, at=now)
        self.task_store.save(task)
        self._publish(TaskEventType.TASK_COMPLETED, task, actor_id=task.completed_by, timestamp=now)
        return task

    def fail_task(self, task_id: str, reason: str) -> Task:
        task = self._find_task(task_id)
        now = self.clock()
        task.fail(reason, at=now)
        self.task_store.save(task)
        self._publish(TaskEventType.TASK_FAILED, task, actor_id=task.completed_by, timestamp=now,
                      context={"reason": reason})
        return task

    def pause_task(self, task_id: str, reason: str) -> Task:
        task = self._find_task(task_id)
        task.pause(reason)
        self.task_store.save(task)
        logger.info("Paused task %s: %s", task.id, reason)
        return task

    def resume_task(self, task_id: str) -> Task:
        task = self._find_task(task_id)
        restored = task.resume()
        self.task_store.save(task)
        logger.info("Resumed task %s to %s", task.id, restored.value)
        return task

    def cancel_task(self, task_id: str, reason: str) -> Task:
        task = self._find_task(task_id)
        task.cancel(reason)
        self.task_store.save(task)
        logger.info("Cancelled task %s: %s", task.id, reason)
        return task

    # ── Scheduling ────────────────────────────────────────────────────

    def assign_tasks_intelligently(
        self,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
        limit: Optional[int] = None,
    ) -> BatchScheduleResult:
        """Run one batch over the pending queue and persist the assignments.

        Capacity is ``max_concurrent_tasks`` minus tasks already active; with
        ``auto_assign`` off the queue is only ordered.
        """
        constraints = SchedulingConstraints.coerce(constraints)
        if not self.settings.auto_assign or not self.smart_mode:
            if self.smart_mode:
                logger.info("Auto-assignment disabled, ordering queue only")
            return self._assign_basic(limit)

        capacity = self.settings.max_concurrent_tasks - self._active_count()
        if capacity <= 0:
            logger.warning("Concurrent task limit %d reached, skipping batch", self.settings.max_concurrent_tasks)
            pending = self.task_store.find_by_status(TaskStatus.PENDING, limit)
            return BatchScheduleResult(
                unassigned=pending,
                statistics=BatchStatistics(total_tasks=len(pending), unassigned_count=len(pending)),
                recommendations=[{
                    "type": "capacity_reached",
                    "message": "Concurrent task limit reached; complete work before assigning more",
                    "priority": "high",
                }],
            )

        batch_size = capacity if limit is None else min(limit, capacity)
        pending = self.task_store.find_by_status(TaskStatus.PENDING, batch_size)
        try:
            result = self.strategy.schedule_batch(pending, constraints)
        except Exception:
            logger.error("Smart assignment failed, falling back to basic mode", exc_info=True)
            return self._assign_basic(limit)

        assigned_ids = {a.task_id for a in result.assignments}
        for task in pending:
            if task.id in assigned_ids:
                self.task_store.save(task)
        return result

    def recalculate_task_priorities(self, context: Optional[dict[str, Any]] = None) -> PriorityRecalculation:
        context = context or {}
        try:
            return self.strategy.recalculate_priorities(context)
        except Exception as exc:
            logger.error("Priority recalculation failed", exc_info=True)
            return PriorityRecalculation(
                trigger_reason=str(context.get("trigger_reason", "manual")),
                recalculated_at=self.clock(),
                error=str(exc),
            )

    def assign_worker_by_skill(
        self,
        task_id: str,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
    ) -> Optional[MatchResult]:
        """Suggest a worker for one pending task; nothing is committed."""
        task = self._find_task(task_id)
        if task.status != TaskStatus.PENDING:
            raise InvalidTransitionError(task.id, task.status.value, "assign")
        try:
            return self.strategy.assign_worker_by_skill(task, SchedulingConstraints.coerce(constraints))
        except Exception:
            logger.error("Skill matching failed for task %s", task.id, exc_info=True)
            return None

    def scheduling_queue_status(self) -> QueueSnapshot:
        try:
            return self.strategy.queue_status()
        except Exception:
            logger.error("Queue status failed, using basic statistics", exc_info=True)
            return self.basic_strategy.queue_status()

    def handle_urgent_task(
        self,
        task_id: str,
        urgency: UrgencyLevel | dict[str, Any] | None = None,
    ) -> UrgentTaskResult:
        task = self._find_task(task_id)
        urgency = UrgencyLevel.coerce(urgency)
        priority_before = task.priority
        try:
            result = self.strategy.handle_urgent_task(task, urgency)
        except Exception as exc:
            logger.error("Urgent handling failed for task %s", task.id, exc_info=True)
            return UrgentTaskResult(
                task_id=task.id,
                assigned=False,
                priority_before=priority_before,
                priority_after=task.priority,
                handling_strategy="error",
                impact_analysis={"error": str(exc)},
            )
        self.task_store.save(task)
        return result

    def batch_reassign_tasks(
        self,
        task_ids: list[str],
        reason: str,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
    ) -> ReassignmentResult:
        tasks: list[Task] = []
        missing: list[ReassignmentFailure] = []
        for task_id in task_ids:
            task = self.task_store.find(task_id)
            if task is None:
                missing.append(ReassignmentFailure(task_id, f"Task not found: {task_id}"))
            else:
                tasks.append(task)

        try:
            result = self.strategy.batch_reassign(tasks, reason, SchedulingConstraints.coerce(constraints))
        except Exception as exc:
            logger.error("Batch reassignment failed", exc_info=True)
            result = ReassignmentResult(reason=reason, message=f"Reassignment failed: {exc}")

        result.failed_reassignments = missing + result.failed_reassignments
        for task in tasks:
            self.task_store.save(task)
        return result

    # ── Queries ───────────────────────────────────────────────────────

    def find_tasks_by_status(self, status: TaskStatus, limit: Optional[int] = None) -> list[Task]:
        return self.task_store.find_by_status(status, limit)

    def find_timeout_tasks(self, limit: Optional[int] = None) -> list[Task]:
        """Unresolved tasks created more than ``task_timeout`` seconds ago, oldest first."""
        cutoff = self.clock() - timedelta(seconds=self.settings.task_timeout)
        stale = [
            task
            for status in TaskStatus if status not in TERMINAL_STATUSES
            for task in self.task_store.find_by_status(status)
            if task.created_at < cutoff
        ]
        stale.sort(key=lambda t: t.created_at)
        return stale if limit is None else stale[:limit]

    def max_concurrent_tasks(self) -> int:
        return self.settings.max_concurrent_tasks

    # ── Internals ─────────────────────────────────────────────────────

    def _find_task(self, task_id: str) -> Task:
        task = self.task_store.find(task_id)
        if task is None:
            raise TaskNotFoundError(task_id)
        return task

    def _active_count(self) -> int:
        return sum(self.task_store.count(status) for status in ACTIVE_STATUSES)

    def _assign_basic(self, limit: Optional[int]) -> BatchScheduleResult:
        pending = self.task_store.find_by_status(TaskStatus.PENDING, limit or BASIC_BATCH_LIMIT)
        return self.basic_strategy.schedule_batch(pending, SchedulingConstraints())

    def _publish(
        self,
        event_type: TaskEventType,
        task: Task,
        actor_id: Optional[int | str] = None,
        timestamp: Optional[datetime] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> None:
        publish_event(self.event_sink, TaskEvent(
            event_type=event_type,
            task=task,
            actor_id=actor_id,
            timestamp=timestamp or self.clock(),
            context=context or {},
        ))
