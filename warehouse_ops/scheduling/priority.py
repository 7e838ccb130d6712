"""Priority Calculator — recomputes pending-task priorities from context.

new_priority = round(base × kind_multiplier × (1 + weighted_score)),
clamped to [1, 100]. The weighted score blends urgency, customer tier and
deadline proximity; resource availability and business impact are held at a
neutral 0.5 until real feeds exist.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import TaskStore
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.models.task import Task, TaskKind, TaskStatus, clamp_priority, utcnow

logger = logging.getLogger(__name__)

RECALCULATION_LIMIT = 100
HIGH_IMPACT_DELTA = 20

KIND_MULTIPLIERS = {
    TaskKind.QUALITY: 1.2,
    TaskKind.OUTBOUND: 1.1,
    TaskKind.INBOUND: 1.0,
    TaskKind.COUNT: 0.9,
    TaskKind.TRANSFER: 0.8,
}

CUSTOMER_TIER_SCORES = {
    "vip": 1.0,
    "premium": 0.8,
    "plus": 0.6,
    "standard": 0.4,
}


@dataclass(frozen=True)
class PriorityChange:
    old: int
    new: int

    @property
    def delta(self) -> int:
        return self.new - self.old


@dataclass
class PriorityRecalculation:
    """Result of one recalculation pass."""
    updated_count: int = 0
    priority_changes: dict[str, PriorityChange] = field(default_factory=dict)
    trigger_reason: str = "manual"
    total_analyzed: int = 0
    affected_assignments: dict[str, Any] = field(default_factory=dict)
    priority_distribution: dict[str, int] = field(default_factory=dict)
    recalculated_at: Optional[datetime] = None
    error: Optional[str] = None


class PriorityCalculator:
    """Deterministic priority recomputation for pending tasks."""

    def __init__(
        self,
        task_store: Optional[TaskStore] = None,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.task_store = task_store
        self.settings = settings or get_settings()
        self.clock = clock

    def recalculate(
        self,
        tasks: Optional[list[Task]] = None,
        context: Optional[dict[str, Any]] = None,
    ) -> PriorityRecalculation:
        """Recompute priorities and persist the ones that changed.

        Context keys: ``priority_factors`` (weight map), ``affected_zones``
        (only tasks in these zones are touched), ``trigger_reason`` and
        ``now`` (reference time for deadline scoring).
        """
        context = context or {}
        trigger_reason = str(context.get("trigger_reason", "manual"))
        factors = {**self.settings.priority_factors, **(context.get("priority_factors") or {})}
        now = context.get("now") or self.clock()
        logger.info("Recalculating task priorities (trigger=%s)", trigger_reason)

        if tasks is None:
            tasks = self._load_pending()
        affected_zones = set(context.get("affected_zones") or ())
        if affected_zones:
            tasks = [t for t in tasks if t.target_zone_id in affected_zones]

        result = PriorityRecalculation(trigger_reason=trigger_reason, total_analyzed=len(tasks), recalculated_at=now)
        for task in tasks:
            old = task.priority
            new = self.calculate_task_priority(task, factors, now)
            if new == old:
                continue
            task.priority = new
            if self.task_store is not None:
                self.task_store.save(task)
            result.priority_changes[task.id] = PriorityChange(old=old, new=new)
            result.updated_count += 1

        high_impact = [
            task_id for task_id, change in result.priority_changes.items()
            if abs(change.delta) > HIGH_IMPACT_DELTA
        ]
        result.affected_assignments = {
            "reassignment_needed": result.updated_count > 0,
            "affected_count": result.updated_count,
            "high_impact_changes": high_impact,
        }
        result.priority_distribution = self.priority_distribution(tasks)

        logger.info(
            "Priority recalculation done: %d of %d tasks updated",
            result.updated_count, result.total_analyzed,
        )
        return result

    def calculate_task_priority(self, task: Task, factors: dict[str, float], now: datetime) -> int:
        weighted = (
            self.urgency_score(task) * factors.get("urgency", 0.0)
            + self.customer_tier_score(task) * factors.get("customer_tier", 0.0)
            + self.deadline_score(task, now) * factors.get("deadline_proximity", 0.0)
            + 0.5 * factors.get("resource_availability", 0.0)
            + 0.5 * factors.get("business_impact", 0.0)
        )
        multiplier = KIND_MULTIPLIERS.get(task.kind, 1.0)
        return clamp_priority(task.priority * multiplier * (1 + weighted))

    @staticmethod
    def urgency_score(task: Task) -> float:
        if task.payload.get("urgent") is True:
            return 1.0
        if task.payload.get("priority_flag") == "high":
            return 0.8
        return 0.5

    @staticmethod
    def customer_tier_score(task: Task) -> float:
        return CUSTOMER_TIER_SCORES.get(task.payload.get("customer_tier", "standard"), 0.4)

    @staticmethod
    def deadline_score(task: Task, now: datetime) -> float:
        deadline = task.payload.get("deadline")
        if isinstance(deadline, str):
            try:
                deadline = datetime.fromisoformat(deadline)
            except ValueError:
                return 0.5
        if not isinstance(deadline, datetime):
            return 0.5
        if deadline.tzinfo is None and now.tzinfo is not None:
            deadline = deadline.replace(tzinfo=now.tzinfo)
        elif now.tzinfo is None and deadline.tzinfo is not None:
            now = now.replace(tzinfo=deadline.tzinfo)

        remaining = (deadline - now).total_seconds()
        if remaining <= 0:
            return 1.0
        if remaining <= 3600:
            return 0.9
        if remaining <= 7200:
            return 0.7
        if remaining <= 86400:
            return 0.5
        return 0.3

    @staticmethod
    def priority_distribution(tasks: list[Task]) -> dict[str, int]:
        distribution = {"low": 0, "medium": 0, "high": 0}
        for task in tasks:
            if task.priority <= 30:
                distribution["low"] += 1
            elif task.priority <= 70:
                distribution["medium"] += 1
            else:
                distribution["high"] += 1
        return distribution

    def _load_pending(self) -> list[Task]:
        if self.task_store is None:
            return []
        return self.task_store.find_by_status(TaskStatus.PENDING, RECALCULATION_LIMIT)
