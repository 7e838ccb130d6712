"""Smart strategy — skill matching, priority recalculation and preemption."""

import threading
from datetime import datetime
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import TaskStore, WorkerDirectory
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.events import EventSink, NullEventSink
from warehouse_ops.models.task import Task, utcnow
from warehouse_ops.scheduling.base import SchedulingConstraints, SchedulingStrategy, UrgencyLevel
from warehouse_ops.scheduling.batch import BatchScheduler, BatchScheduleResult
from warehouse_ops.scheduling.matcher import MatchResult, WorkerMatcher
from warehouse_ops.scheduling.monitor import QueueMonitor, QueueSnapshot
from warehouse_ops.scheduling.priority import PriorityCalculator, PriorityRecalculation
from warehouse_ops.scheduling.reassign import BatchReassigner, ReassignmentResult
from warehouse_ops.scheduling.urgent import UrgentTaskHandler, UrgentTaskResult


class SmartSchedulingStrategy(SchedulingStrategy):
    """Wires the matcher into batch, urgent and reassignment flows."""

    def __init__(
        self,
        task_store: TaskStore,
        worker_directory: WorkerDirectory,
        settings: Optional[Settings] = None,
        event_sink: Optional[EventSink] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.settings = settings or get_settings()
        self.event_sink = event_sink or NullEventSink()
        self.matcher = WorkerMatcher(worker_directory, self.settings, clock)
        self.batch_scheduler = BatchScheduler(self.matcher, self.event_sink, clock)
        self.urgent_handler = UrgentTaskHandler(self.matcher, task_store, self.event_sink, clock)
        self.priority_calculator = PriorityCalculator(task_store, self.settings, clock)
        self.monitor = QueueMonitor(task_store, self.settings, clock)
        self.reassigner = BatchReassigner(self.batch_scheduler)

    @property
    def name(self) -> str:
        return "smart"

    def schedule_batch(
        self,
        tasks: list[Task],
        constraints: SchedulingConstraints,
        cancel_event: Optional[threading.Event] = None,
    ) -> BatchScheduleResult:
        return self.batch_scheduler.schedule_batch(tasks, constraints, cancel_event)

    def recalculate_priorities(self, context: dict[str, Any]) -> PriorityRecalculation:
        return self.priority_calculator.recalculate(context=context)

    def assign_worker_by_skill(self, task: Task, constraints: SchedulingConstraints) -> Optional[MatchResult]:
        return self.matcher.match(task, constraints)

    def queue_status(self) -> QueueSnapshot:
        return self.monitor.snapshot()

    def handle_urgent_task(
        self,
        task: Task,
        urgency: UrgencyLevel,
        constraints: Optional[SchedulingConstraints] = None,
    ) -> UrgentTaskResult:
        return self.urgent_handler.handle(task, urgency, constraints)

    def batch_reassign(
        self, tasks: list[Task], reason: str, constraints: SchedulingConstraints,
    ) -> ReassignmentResult:
        return self.reassigner.reassign(tasks, reason, constraints)
