"""Scheduling primitives shared by every strategy."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from datetime import datetime
from typing import TYPE_CHECKING, Any, Optional

from pydantic import BaseModel, Field, field_validator

from warehouse_ops.models.task import MAX_PRIORITY, Task, clamp_priority

if TYPE_CHECKING:
    from warehouse_ops.scheduling.batch import BatchScheduleResult
    from warehouse_ops.scheduling.matcher import MatchResult
    from warehouse_ops.scheduling.monitor import QueueSnapshot
    from warehouse_ops.scheduling.priority import PriorityRecalculation
    from warehouse_ops.scheduling.reassign import ReassignmentResult
    from warehouse_ops.scheduling.urgent import UrgentTaskResult


class SchedulingConstraints(BaseModel):
    """Request-scoped limits on who may take which task."""

    worker_availability: dict[int, bool] = Field(default_factory=dict, description="False marks a worker unavailable")
    equipment_constraints: list[str] = Field(default_factory=list, description="Certifications a worker must hold")
    zone_restrictions: list[int] = Field(default_factory=list, description="Zones candidates must currently be in")
    time_windows: dict[int, tuple[datetime, datetime]] = Field(default_factory=dict, description="Worker shift windows")
    exclude_workers: list[int] = Field(default_factory=list)
    max_tasks_per_worker: Optional[int] = Field(default=None, ge=1)

    skill_weight: Optional[float] = Field(default=None, ge=0)
    workload_weight: Optional[float] = Field(default=None, ge=0)
    location_weight: Optional[float] = Field(default=None, ge=0)
    performance_weight: Optional[float] = Field(default=None, ge=0)

    @classmethod
    def coerce(cls, value: SchedulingConstraints | dict[str, Any] | None) -> SchedulingConstraints:
        if isinstance(value, cls):
            return value
        return cls.model_validate(value or {})

    def weight_overrides(self) -> dict[str, float]:
        overrides = {
            "skill": self.skill_weight,
            "workload": self.workload_weight,
            "location": self.location_weight,
            "performance": self.performance_weight,
        }
        return {k: v for k, v in overrides.items() if v is not None}

    def excluding(self, worker_ids: set[int]) -> SchedulingConstraints:
        merged = sorted(set(self.exclude_workers) | worker_ids)
        return self.model_copy(update={"exclude_workers": merged})


class UrgencyLevel(BaseModel):
    """How hard an urgent task may push into the queue."""

    priority: int = Field(default=MAX_PRIORITY, description="Target priority, bounded to [1, 100]")
    max_delay_minutes: int = Field(default=30, ge=0)
    preempt_allowed: bool = False

    @field_validator("priority")
    @classmethod
    def _bound_priority(cls, value: int) -> int:
        return clamp_priority(value)

    @classmethod
    def coerce(cls, value: UrgencyLevel | dict[str, Any] | None) -> UrgencyLevel:
        if isinstance(value, cls):
            return value
        return cls.model_validate(value or {})


@dataclass(frozen=True)
class AssignmentRecord:
    """Immutable scheduling decision: a task went to a worker."""
    task_id: str
    worker_id: int
    match_score: float
    assignment_reason: str
    assigned_at: datetime


class SchedulingStrategy(ABC):
    """The scheduling engine behind TaskManager.

    ``BasicSchedulingStrategy`` only orders work; ``SmartSchedulingStrategy``
    matches workers. The manager picks one at construction time.
    """

    @abstractmethod
    def schedule_batch(
        self, tasks: list[Task], constraints: SchedulingConstraints,
    ) -> BatchScheduleResult:
        """Decide assignments for a snapshot of pending tasks."""
        ...

    @abstractmethod
    def recalculate_priorities(self, context: dict[str, Any]) -> PriorityRecalculation:
        ...

    @abstractmethod
    def assign_worker_by_skill(
        self, task: Task, constraints: SchedulingConstraints,
    ) -> Optional[MatchResult]:
        """Pick a worker for one task without committing the assignment."""
        ...

    @abstractmethod
    def queue_status(self) -> QueueSnapshot:
        ...

    @abstractmethod
    def handle_urgent_task(self, task: Task, urgency: UrgencyLevel) -> UrgentTaskResult:
        ...

    @abstractmethod
    def batch_reassign(
        self, tasks: list[Task], reason: str, constraints: SchedulingConstraints,
    ) -> ReassignmentResult:
        ...

    @property
    def name(self) -> str:
        """Human-readable strategy name for reports."""
        return self.__class__.__name__
