"""Task model — a unit of warehouse work and its status lifecycle."""

import threading
import uuid
from contextlib import contextmanager
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Iterator, Optional

from pydantic import BaseModel, ConfigDict, Field, PrivateAttr

from warehouse_ops.exceptions import InvalidTransitionError

PREVIOUS_STATUS_KEY = "_previous_status"

MIN_PRIORITY = 1
MAX_PRIORITY = 100


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def clamp_priority(value: float) -> int:
    """Bound a raw priority to [1, 100] (clamp, never wrap)."""
    return max(MIN_PRIORITY, min(MAX_PRIORITY, int(round(value))))


class TaskKind(str, Enum):
    """What sort of warehouse work a task represents."""
    INBOUND = "inbound"
    OUTBOUND = "outbound"
    QUALITY = "quality"
    COUNT = "count"
    TRANSFER = "transfer"


class TaskStatus(str, Enum):
    """Lifecycle: PENDING → ASSIGNED → IN_PROGRESS → COMPLETED | FAILED | PAUSED"""
    PENDING = "pending"
    ASSIGNED = "assigned"
    IN_PROGRESS = "in_progress"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"
    FAILED = "failed"


ACTIVE_STATUSES = frozenset({TaskStatus.ASSIGNED, TaskStatus.IN_PROGRESS})
TERMINAL_STATUSES = frozenset({TaskStatus.COMPLETED, TaskStatus.CANCELLED, TaskStatus.FAILED})


def _new_task_id() -> str:
    return f"task-{uuid.uuid4().hex[:12]}"


class Task(BaseModel):
    """A unit of warehouse work.

    Kind-specific data (zone, locations, urgency flags, deadline) lives in
    ``payload``. Status changes go through the transition methods only; each
    one re-checks the current status under a per-task lock before mutating,
    so two racing ``assign`` calls cannot both succeed.
    """

    model_config = ConfigDict(validate_assignment=True)

    id: str = Field(default_factory=_new_task_id, description="Opaque task identifier")
    kind: TaskKind = Field(description="Work category")
    status: TaskStatus = Field(default=TaskStatus.PENDING, description="Current lifecycle state")
    priority: int = Field(default=1, ge=MIN_PRIORITY, le=MAX_PRIORITY, description="1=low, 100=critical")
    payload: dict[str, Any] = Field(default_factory=dict, description="Kind-specific domain data")
    assigned_worker_id: Optional[int] = Field(default=None, description="Worker currently holding the task")
    completed_by: Optional[int] = Field(default=None, description="Worker that held the task when it resolved")
    created_at: datetime = Field(default_factory=utcnow)
    assigned_at: Optional[datetime] = None
    started_at: Optional[datetime] = None
    completed_at: Optional[datetime] = None
    notes: Optional[str] = None

    _lock: threading.Lock = PrivateAttr(default_factory=threading.Lock)

    # ── Derived properties ────────────────────────────────────────────

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    @property
    def target_zone_id(self) -> Optional[int]:
        """Zone the work happens in, if the payload names one."""
        zone_id = self.payload.get("zone_id")
        return zone_id if isinstance(zone_id, int) else None

    @property
    def location_ids(self) -> list[int]:
        raw = self.payload.get("location_ids") or []
        return [loc for loc in raw if isinstance(loc, int)]

    # ── Transitions ───────────────────────────────────────────────────

    @contextmanager
    def _guard(self, action: str, allowed: frozenset[TaskStatus]) -> Iterator[None]:
        with self._lock:
            if self.status not in allowed:
                raise InvalidTransitionError(self.id, self.status.value, action)
            yield

    def assign(self, worker_id: int, at: Optional[datetime] = None) -> None:
        """PENDING → ASSIGNED."""
        with self._guard("assign", frozenset({TaskStatus.PENDING})):
            self.assigned_worker_id = worker_id
            self.assigned_at = at or utcnow()
            self.status = TaskStatus.ASSIGNED

    def release(self) -> int:
        """ASSIGNED → PENDING, returning the worker that held the task."""
        with self._guard("release", frozenset({TaskStatus.ASSIGNED})):
            worker_id = self.assigned_worker_id
            self.assigned_worker_id = None
            self.assigned_at = None
            self.status = TaskStatus.PENDING
            return worker_id

    def start(self, at: Optional[datetime] = None) -> None:
        """ASSIGNED → IN_PROGRESS."""
        with self._guard("start", frozenset({TaskStatus.ASSIGNED})):
            self.started_at = at or utcnow()
            self.status = TaskStatus.IN_PROGRESS

    def complete(self, result: dict[str, Any], at: Optional[datetime] = None) -> None:
        """ASSIGNED | IN_PROGRESS → COMPLETED; the result replaces the payload."""
        with self._guard("complete", ACTIVE_STATUSES):
            self.payload = dict(result)
            self._resolve(TaskStatus.COMPLETED, at)

    def fail(self, reason: str, at: Optional[datetime] = None) -> None:
        """ASSIGNED | IN_PROGRESS → FAILED."""
        with self._guard("fail", ACTIVE_STATUSES):
            self.notes = reason
            self._resolve(TaskStatus.FAILED, at)

    def pause(self, reason: str) -> None:
        """ASSIGNED | IN_PROGRESS → PAUSED, remembering the prior status."""
        with self._guard("pause", ACTIVE_STATUSES):
            self.payload = {**self.payload, PREVIOUS_STATUS_KEY: self.status.value}
            self.notes = reason
            self.status = TaskStatus.PAUSED

    def resume(self) -> TaskStatus:
        """PAUSED → whatever status the task had when it was paused."""
        with self._guard("resume", frozenset({TaskStatus.PAUSED})):
            payload = dict(self.payload)
            previous = payload.pop(PREVIOUS_STATUS_KEY, None)
            if previous is None:
                restored = TaskStatus.ASSIGNED if self.assigned_worker_id is not None else TaskStatus.PENDING
            else:
                restored = TaskStatus(previous)
            self.payload = payload
            self.notes = None
            self.status = restored
            return restored

    def cancel(self, reason: str) -> None:
        """Any status except COMPLETED or CANCELLED → CANCELLED."""
        allowed = frozenset(TaskStatus) - {TaskStatus.COMPLETED, TaskStatus.CANCELLED}
        with self._guard("cancel", allowed):
            payload = dict(self.payload)
            payload.pop(PREVIOUS_STATUS_KEY, None)
            self.payload = payload
            self.notes = reason
            self.assigned_worker_id = None
            self.status = TaskStatus.CANCELLED

    def _resolve(self, status: TaskStatus, at: Optional[datetime]) -> None:
        self.completed_by = self.assigned_worker_id
        self.assigned_worker_id = None
        self.completed_at = at or utcnow()
        self.status = status

    def __repr__(self) -> str:
        return (
            f"Task(id={self.id!r}, kind={self.kind.value}, priority={self.priority}, "
            f"status={self.status.value}, worker={self.assigned_worker_id})"
        )
