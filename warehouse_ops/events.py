"""Domain events emitted at task state changes, and sinks that receive them.

The core never depends on a message bus: it hands a ``TaskEvent`` to an
injected sink and carries on. Delivery is fire-and-forget.
"""

import logging
from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Protocol

from warehouse_ops.models.task import Task, utcnow

logger = logging.getLogger(__name__)


class TaskEventType(str, Enum):
    """Kinds of task events published to the host application."""
    TASK_CREATED = "task_created"
    TASK_ASSIGNED = "task_assigned"
    TASK_STARTED = "task_started"
    TASK_COMPLETED = "task_completed"
    TASK_FAILED = "task_failed"


@dataclass(frozen=True)
class TaskEvent:
    """Something happened to a task. ``context`` is free-form."""
    event_type: TaskEventType
    task: Task
    actor_id: Optional[int | str] = None
    timestamp: datetime = field(default_factory=utcnow)
    context: dict[str, Any] = field(default_factory=dict)

    @property
    def task_id(self) -> str:
        return self.task.id

    def __repr__(self) -> str:
        return (
            f"TaskEvent(type={self.event_type.value}, task={self.task.id}, "
            f"actor={self.actor_id})"
        )


class EventSink(Protocol):
    def publish(self, event: TaskEvent) -> None: ...


class NullEventSink:
    """Discards every event."""

    def publish(self, event: TaskEvent) -> None:
        return None


class CollectingEventSink:
    """Keeps events in memory, in publish order."""

    def __init__(self):
        self.events: list[TaskEvent] = []

    def publish(self, event: TaskEvent) -> None:
        self.events.append(event)

    def of_type(self, event_type: TaskEventType) -> list[TaskEvent]:
        return [e for e in self.events if e.event_type == event_type]


class LoggingEventSink:
    """Writes each event to the log at INFO."""

    def publish(self, event: TaskEvent) -> None:
        logger.info(
            "%s task=%s actor=%s context=%s",
            event.event_type.value, event.task_id, event.actor_id, event.context,
        )


def publish_event(sink: EventSink, event: TaskEvent) -> bool:
    """Hand ``event`` to ``sink``. A raising sink is logged, never propagated."""
    try:
        sink.publish(event)
    except Exception:
        logger.warning("Event sink failed for %r", event, exc_info=True)
        return False
    return True
