"""Urgent Task Handler — fast-path assignment that jumps the batch queue."""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import TaskStore, queue_order
from warehouse_ops.events import EventSink, NullEventSink, TaskEvent, TaskEventType, publish_event
from warehouse_ops.exceptions import InvalidTransitionError
from warehouse_ops.models.task import Task, TaskStatus, clamp_priority, utcnow
from warehouse_ops.scheduling.base import SchedulingConstraints, UrgencyLevel
from warehouse_ops.scheduling.matcher import MatchResult, WorkerMatcher

logger = logging.getLogger(__name__)

PRIORITY_QUEUE_DELAY_MINUTES = 15


@dataclass
class UrgentTaskResult:
    task_id: str
    assigned: bool
    priority_before: int
    priority_after: int
    handling_strategy: str
    worker_id: Optional[int] = None
    displaced_task_ids: list[str] = field(default_factory=list)
    impact_analysis: dict[str, Any] = field(default_factory=dict)
    match: Optional[MatchResult] = None


class UrgentTaskHandler:
    """Assigns one task immediately, preempting lower-priority work if allowed."""

    def __init__(
        self,
        matcher: WorkerMatcher,
        task_store: Optional[TaskStore] = None,
        event_sink: Optional[EventSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.matcher = matcher
        self.task_store = task_store
        self.event_sink = event_sink or NullEventSink()
        self.clock = clock

    def handle(
        self,
        task: Task,
        urgency: UrgencyLevel | dict[str, Any] | None = None,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
    ) -> UrgentTaskResult:
        urgency = UrgencyLevel.coerce(urgency)
        constraints = SchedulingConstraints.coerce(constraints)
        logger.warning("Handling urgent task %s (urgency=%s)", task.id, urgency.model_dump())

        if task.status != TaskStatus.PENDING:
            raise InvalidTransitionError(task.id, task.status.value, "urgent_assign")

        priority_before = task.priority
        jumped = self._queued_ahead(task)

        task.priority = clamp_priority(max(task.priority, urgency.priority))
        task.payload = {
            **task.payload,
            "urgent": True,
            "max_delay_minutes": urgency.max_delay_minutes,
            "preempt_allowed": urgency.preempt_allowed,
        }

        result = UrgentTaskResult(
            task_id=task.id,
            assigned=False,
            priority_before=priority_before,
            priority_after=task.priority,
            handling_strategy=self._queue_strategy(urgency),
        )

        match = self.matcher.match(task, constraints)
        if match is not None:
            self._commit(task, match.worker_id, "urgent", match.match_score)
            result.assigned = True
            result.worker_id = match.worker_id
            result.match = match
            result.handling_strategy = "immediate_assignment"
            result.displaced_task_ids = [t.id for t in jumped]
        elif urgency.preempt_allowed:
            victim = self._preempt(task, constraints)
            if victim is not None:
                result.assigned = True
                result.worker_id = task.assigned_worker_id
                result.handling_strategy = "immediate_preemption"
                result.displaced_task_ids = [victim.id]

        if not result.assigned:
            logger.warning("No worker available for urgent task %s; queued at priority %d", task.id, task.priority)
            result.impact_analysis = {
                "message": "No worker available; task raised in the pending queue",
                "max_delay_minutes": urgency.max_delay_minutes,
                "tasks_ahead": len(self._queued_ahead(task)),
            }
        else:
            result.impact_analysis = {
                "displaced_count": len(result.displaced_task_ids),
                "max_delay_minutes": urgency.max_delay_minutes,
            }

        if self.task_store is not None:
            self.task_store.save(task)
        return result

    def _preempt(self, task: Task, constraints: SchedulingConstraints) -> Optional[Task]:
        """Take the worker of the least important not-yet-started task."""
        if self.task_store is None:
            return None

        eligible = {w.worker_id for w in self.matcher.eligible_workers(constraints)}
        victims = [
            t for t in self.task_store.find_by_status(TaskStatus.ASSIGNED)
            if t.id != task.id and t.priority < task.priority and t.assigned_worker_id in eligible
        ]
        victims.sort(key=lambda t: (t.priority, -(t.assigned_at or t.created_at).timestamp()))

        for victim in victims:
            assigned_at = victim.assigned_at
            try:
                worker_id = victim.release()
            except InvalidTransitionError:
                # started or reassigned since we looked
                continue
            self.task_store.save(victim)
            logger.info("Preempted task %s from worker %s for urgent task %s", victim.id, worker_id, task.id)
            try:
                self._commit(task, worker_id, "preemption", None)
            except InvalidTransitionError:
                self._restore(victim, worker_id, assigned_at)
                raise
            return victim
        return None

    def _restore(self, victim: Task, worker_id: int, assigned_at: Optional[datetime]) -> None:
        """Hand a preempted task back to its worker after a failed urgent commit."""
        try:
            victim.assign(worker_id, at=assigned_at)
        except InvalidTransitionError:
            logger.error("Could not return task %s to worker %s", victim.id, worker_id, exc_info=True)
            return
        self.task_store.save(victim)

    def _commit(self, task: Task, worker_id: int, assignment_type: str, score: Optional[float]) -> None:
        now = self.clock()
        task.assign(worker_id, at=now)
        publish_event(self.event_sink, TaskEvent(
            event_type=TaskEventType.TASK_ASSIGNED,
            task=task,
            actor_id="system",
            timestamp=now,
            context={"worker_id": worker_id, "assignment_type": assignment_type, "match_score": score},
        ))

    def _queued_ahead(self, task: Task) -> list[Task]:
        if self.task_store is None:
            return []
        key = queue_order(task)
        return [
            t for t in self.task_store.find_by_status(TaskStatus.PENDING)
            if t.id != task.id and queue_order(t) < key
        ]

    @staticmethod
    def _queue_strategy(urgency: UrgencyLevel) -> str:
        if urgency.max_delay_minutes < PRIORITY_QUEUE_DELAY_MINUTES:
            return "priority_queue"
        return "standard_queue"
