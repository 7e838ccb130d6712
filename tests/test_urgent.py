"""
Tests for the UrgentTaskHandler.

Verifies:
1. Immediate assignment and the priority bump
2. Queue strategy when nobody is free
3. Preemption of the least important assigned task
4. Guards and priority bounds
"""

from datetime import datetime, timedelta, timezone

import pytest

from warehouse_ops.collaborators import InMemoryTaskStore, InMemoryWorkerDirectory
from warehouse_ops.config import Settings
from warehouse_ops.events import CollectingEventSink, TaskEventType
from warehouse_ops.exceptions import InvalidTransitionError
from warehouse_ops.models.task import Task, TaskKind, TaskStatus
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.base import UrgencyLevel
from warehouse_ops.scheduling.matcher import WorkerMatcher
from warehouse_ops.scheduling.urgent import UrgentTaskHandler

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_task(task_id: str, priority: int = 20, **overrides) -> Task:
    return Task(id=task_id, kind=TaskKind.OUTBOUND, priority=priority, created_at=NOW, **overrides)


def make_handler(workers, tasks=(), settings=None, sink=None):
    store = InMemoryTaskStore(tasks)
    directory = InMemoryWorkerDirectory(workers, task_store=store)
    matcher = WorkerMatcher(directory, settings or Settings(), clock=lambda: NOW)
    return UrgentTaskHandler(matcher, store, sink or CollectingEventSink(), clock=lambda: NOW), store


def picker(worker_id: int = 1) -> WorkerProfile:
    return WorkerProfile(worker_id=worker_id, skill_category="picking")


class TestUrgencyLevel:

    def test_defaults(self):
        urgency = UrgencyLevel()
        assert urgency.priority == 100
        assert urgency.max_delay_minutes == 30
        assert urgency.preempt_allowed is False

    @pytest.mark.parametrize("raw,expected", [(500, 100), (-4, 1), (75, 75)])
    def test_priority_bounded(self, raw, expected):
        assert UrgencyLevel(priority=raw).priority == expected


class TestUrgentTaskHandler:

    def test_immediate_assignment(self):
        sink = CollectingEventSink()
        ahead = make_task("ahead", priority=60)
        urgent = make_task("urgent", priority=20)
        handler, _ = make_handler([picker()], [ahead, urgent], sink=sink)

        result = handler.handle(urgent, {"priority": 95})

        assert result.assigned
        assert result.handling_strategy == "immediate_assignment"
        assert result.worker_id == 1
        assert result.priority_before == 20
        assert result.priority_after == 95
        assert result.displaced_task_ids == ["ahead"]
        assert urgent.status == TaskStatus.ASSIGNED
        assert urgent.payload["urgent"] is True
        event = sink.of_type(TaskEventType.TASK_ASSIGNED)[0]
        assert event.context["assignment_type"] == "urgent"

    def test_priority_never_lowered(self):
        urgent = make_task("urgent", priority=99)
        handler, _ = make_handler([picker()], [urgent])
        result = handler.handle(urgent, {"priority": 50})
        assert result.priority_after == 99

    @pytest.mark.parametrize("delay,strategy", [(10, "priority_queue"), (15, "standard_queue"), (60, "standard_queue")])
    def test_no_worker_queues(self, delay, strategy):
        urgent = make_task("urgent")
        handler, store = make_handler([], [urgent, make_task("other", priority=100)])

        result = handler.handle(urgent, {"priority": 90, "max_delay_minutes": delay})

        assert not result.assigned
        assert result.handling_strategy == strategy
        assert result.impact_analysis["tasks_ahead"] == 1
        assert store.find("urgent").priority == 90
        assert urgent.status == TaskStatus.PENDING

    def test_preemption(self):
        settings = Settings(max_tasks_per_worker=1)
        victim = make_task("victim", priority=10, status=TaskStatus.ASSIGNED,
                           assigned_worker_id=1, assigned_at=NOW - timedelta(minutes=5))
        urgent = make_task("urgent")
        handler, store = make_handler([picker(1)], [victim, urgent], settings=settings)

        result = handler.handle(urgent, {"preempt_allowed": True})

        assert result.assigned
        assert result.handling_strategy == "immediate_preemption"
        assert result.displaced_task_ids == ["victim"]
        assert urgent.assigned_worker_id == 1
        assert store.find("victim").status == TaskStatus.PENDING
        assert store.find("victim").assigned_worker_id is None

    def test_started_work_is_not_preempted(self):
        settings = Settings(max_tasks_per_worker=1)
        busy = make_task("busy", priority=10, status=TaskStatus.IN_PROGRESS, assigned_worker_id=1)
        urgent = make_task("urgent")
        handler, _ = make_handler([picker(1)], [busy, urgent], settings=settings)

        result = handler.handle(urgent, {"preempt_allowed": True, "max_delay_minutes": 5})
        assert not result.assigned
        assert result.handling_strategy == "priority_queue"
        assert busy.status == TaskStatus.IN_PROGRESS

    def test_non_pending_rejected(self):
        task = make_task("t", status=TaskStatus.COMPLETED)
        handler, _ = make_handler([picker()], [task])
        with pytest.raises(InvalidTransitionError):
            handler.handle(task)

    def test_raising_sink_keeps_assignment(self):
        class BrokenSink:
            def publish(self, event):
                raise RuntimeError("sink down")

        urgent = make_task("urgent")
        handler, store = make_handler([picker()], [urgent], sink=BrokenSink())

        result = handler.handle(urgent)

        assert result.assigned
        assert store.find("urgent").status == TaskStatus.ASSIGNED

    def test_failed_preemption_returns_victim(self):
        settings = Settings(max_tasks_per_worker=1)
        assigned_at = NOW - timedelta(minutes=5)
        victim = make_task("victim", priority=10, status=TaskStatus.ASSIGNED,
                           assigned_worker_id=1, assigned_at=assigned_at)
        urgent = make_task("urgent")
        handler, store = make_handler([picker(1)], [victim, urgent], settings=settings)
        save = store.save

        def save_then_race(task):
            save(task)
            # another caller grabs the urgent task while its worker is free
            if task.id == "victim" and urgent.status == TaskStatus.PENDING:
                urgent.assign(7)

        store.save = save_then_race

        with pytest.raises(InvalidTransitionError):
            handler.handle(urgent, {"preempt_allowed": True})

        assert victim.status == TaskStatus.ASSIGNED
        assert victim.assigned_worker_id == 1
        assert victim.assigned_at == assigned_at
        assert urgent.assigned_worker_id == 7
