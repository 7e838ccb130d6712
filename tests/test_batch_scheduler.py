"""
Tests for the BatchScheduler.

Verifies:
1. Queue order (priority desc, oldest first) drives who gets assigned
2. Loads accumulate within a run and respect the per-worker cap
3. No workers → every task unassigned, never an exception
4. Stale tasks fail individually without aborting the batch
5. Cooperative cancellation keeps committed assignments
6. Statistics identities and recommendations
"""

import threading
from datetime import datetime, timedelta, timezone

import pytest

from warehouse_ops.collaborators import InMemoryWorkerDirectory
from warehouse_ops.config import Settings
from warehouse_ops.events import CollectingEventSink, TaskEventType
from warehouse_ops.models.task import Task, TaskKind, TaskStatus
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.batch import BatchScheduler
from warehouse_ops.scheduling.matcher import WorkerMatcher

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_task(task_id: str, priority: int = 50, minutes_ago: int = 0, **overrides) -> Task:
    return Task(
        id=task_id, kind=TaskKind.OUTBOUND, priority=priority,
        created_at=NOW - timedelta(minutes=minutes_ago), **overrides,
    )


def make_worker(worker_id: int, **overrides) -> WorkerProfile:
    defaults = dict(worker_id=worker_id, skill_category="picking", skill_level=3, skill_score=70)
    defaults.update(overrides)
    return WorkerProfile(**defaults)


def make_scheduler(workers, loads=None, sink=None) -> BatchScheduler:
    directory = InMemoryWorkerDirectory(workers, loads=loads)
    matcher = WorkerMatcher(directory, Settings(), clock=lambda: NOW)
    return BatchScheduler(matcher, sink or CollectingEventSink(), clock=lambda: NOW)


def assert_statistics_identities(result):
    stats = result.statistics
    assert stats.assigned_count + len(result.unassigned) == stats.total_tasks
    if stats.total_tasks:
        assert stats.assignment_rate == pytest.approx(stats.assigned_count / stats.total_tasks)


class TestBatchScheduler:

    def test_assigns_all_when_capacity_allows(self):
        sink = CollectingEventSink()
        tasks = [make_task("a"), make_task("b"), make_task("c")]
        result = make_scheduler([make_worker(1), make_worker(2)], sink=sink).schedule_batch(tasks)

        assert len(result.assignments) == 3
        assert result.unassigned == []
        assert all(t.status == TaskStatus.ASSIGNED for t in tasks)
        assert len(sink.of_type(TaskEventType.TASK_ASSIGNED)) == 3
        assert result.recommendations[0]["type"] == "none"
        assert_statistics_identities(result)

    def test_spreads_load_within_run(self):
        tasks = [make_task("a"), make_task("b")]
        result = make_scheduler([make_worker(1), make_worker(2)]).schedule_batch(tasks)
        assert {a.worker_id for a in result.assignments} == {1, 2}
        assert result.statistics.worker_utilization[1]["workload_after"] == 1

    def test_priority_order_under_scarcity(self):
        tasks = [
            make_task("low", priority=10),
            make_task("high", priority=90),
            make_task("mid-new", priority=50, minutes_ago=1),
            make_task("mid-old", priority=50, minutes_ago=30),
        ]
        scheduler = make_scheduler([make_worker(1)], loads={1: 8})
        result = scheduler.schedule_batch(tasks)

        assert [a.task_id for a in result.assignments] == ["high", "mid-old"]
        assert [t.id for t in result.unassigned] == ["mid-new", "low"]
        assert result.recommendations[0] == {
            "type": "highest_priority_unassigned",
            "task_id": "mid-new",
            "task_priority": 50,
            "priority": "high",
        }
        assert_statistics_identities(result)

    def test_no_workers_leaves_everything_unassigned(self):
        tasks = [make_task("a"), make_task("b")]
        result = make_scheduler([]).schedule_batch(tasks)

        assert result.assignments == []
        assert [t.id for t in result.unassigned] == ["a", "b"]
        assert result.statistics.assignment_rate == 0.0
        types = [r["type"] for r in result.recommendations]
        assert "increase_workers" in types
        assert "adjust_priorities" in types
        assert all(t.status == TaskStatus.PENDING for t in tasks)
        assert_statistics_identities(result)

    def test_empty_batch(self):
        result = make_scheduler([make_worker(1)]).schedule_batch([])
        assert result.statistics.total_tasks == 0
        assert result.statistics.assignment_rate == 0.0
        assert result.recommendations[0]["type"] == "no_pending_tasks"

    def test_stale_task_fails_individually(self):
        stale = make_task("stale", priority=90, status=TaskStatus.ASSIGNED, assigned_worker_id=9)
        fresh = make_task("fresh", priority=10)
        result = make_scheduler([make_worker(1)]).schedule_batch([stale, fresh])

        assert [a.task_id for a in result.assignments] == ["fresh"]
        assert [f.task_id for f in result.failures] == ["stale"]
        assert "status is ASSIGNED" in result.failures[0].error
        assert result.statistics.failed_count == 1
        assert stale.assigned_worker_id == 9
        assert any(r["type"] == "review_failures" for r in result.recommendations)
        assert_statistics_identities(result)

    def test_constraints_exclude_workers(self):
        tasks = [make_task("a")]
        result = make_scheduler([make_worker(1), make_worker(2)]).schedule_batch(tasks, {"exclude_workers": [1]})
        assert result.assignments[0].worker_id == 2


class TestBatchCancellation:

    def test_cancel_before_start(self):
        cancel = threading.Event()
        cancel.set()
        tasks = [make_task("a"), make_task("b")]
        result = make_scheduler([make_worker(1)]).schedule_batch(tasks, cancel_event=cancel)

        assert result.cancelled
        assert result.assignments == []
        assert len(result.unassigned) == 2
        assert_statistics_identities(result)

    def test_cancel_mid_batch_keeps_committed(self):
        cancel = threading.Event()

        class CancellingSink(CollectingEventSink):
            def publish(self, event):
                super().publish(event)
                cancel.set()

        tasks = [make_task("a", priority=90), make_task("b", priority=50), make_task("c", priority=10)]
        result = make_scheduler([make_worker(1)], sink=CancellingSink()).schedule_batch(tasks, cancel_event=cancel)

        assert [a.task_id for a in result.assignments] == ["a"]
        assert [t.id for t in result.unassigned] == ["b", "c"]
        assert tasks[0].status == TaskStatus.ASSIGNED
        assert any(r["type"] == "batch_cancelled" for r in result.recommendations)
        assert_statistics_identities(result)


class BrokenSink:
    def publish(self, event):
        raise RuntimeError("sink down")


class TestSinkFailures:

    def test_raising_sink_keeps_assignment(self, caplog):
        caplog.set_level("WARNING", logger="warehouse_ops.events")
        tasks = [make_task("a"), make_task("b")]
        result = make_scheduler([make_worker(1)], loads={1: 9}, sink=BrokenSink()).schedule_batch(tasks)

        assert [a.task_id for a in result.assignments] == ["a"]
        assert [t.id for t in result.unassigned] == ["b"]
        assert result.failures == []
        assert result.statistics.worker_utilization[1]["workload_after"] == 10
        assert tasks[0].status == TaskStatus.ASSIGNED
        assert "Event sink failed" in caplog.text
        assert_statistics_identities(result)
