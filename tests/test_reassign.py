"""
Tests for batch reassignment in both scheduling modes.

Verifies:
1. Smart mode releases tasks and reschedules them away from the old workers
2. Basic mode only returns tasks to the pending queue
3. Tasks that are not ASSIGNED are reported, not moved
"""

from datetime import datetime, timezone

from warehouse_ops.collaborators import InMemoryTaskStore, InMemoryWorkerDirectory
from warehouse_ops.config import Settings
from warehouse_ops.models.task import Task, TaskKind, TaskStatus
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.base import SchedulingConstraints
from warehouse_ops.scheduling.batch import BatchScheduler
from warehouse_ops.scheduling.matcher import WorkerMatcher
from warehouse_ops.scheduling.reassign import BatchReassigner

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_assigned(task_id: str, worker_id: int, priority: int = 50) -> Task:
    return Task(id=task_id, kind=TaskKind.INBOUND, priority=priority, created_at=NOW,
                status=TaskStatus.ASSIGNED, assigned_worker_id=worker_id, assigned_at=NOW)


def make_reassigner(workers, tasks) -> BatchReassigner:
    store = InMemoryTaskStore(tasks)
    directory = InMemoryWorkerDirectory(workers, task_store=store)
    matcher = WorkerMatcher(directory, Settings(), clock=lambda: NOW)
    return BatchReassigner(BatchScheduler(matcher, clock=lambda: NOW))


class TestSmartReassignment:

    def test_moves_tasks_off_previous_worker(self):
        workers = [WorkerProfile(worker_id=i, skill_category="receiving") for i in (1, 2)]
        tasks = [make_assigned("a", 1), make_assigned("b", 1)]
        result = make_reassigner(workers, tasks).reassign(tasks, "worker 1 went home")

        assert result.released_task_ids == ["a", "b"]
        assert result.successful_reassignments == 2
        assert {a.worker_id for a in result.new_assignments} == {2}
        assert all(t.assigned_worker_id == 2 for t in tasks)
        assert result.still_pending == []
        assert result.reason == "worker 1 went home"

    def test_no_replacement_leaves_tasks_pending(self):
        workers = [WorkerProfile(worker_id=1, skill_category="receiving")]
        tasks = [make_assigned("a", 1)]
        result = make_reassigner(workers, tasks).reassign(tasks, "sick")

        assert result.successful_reassignments == 0
        assert result.still_pending == ["a"]
        assert tasks[0].status == TaskStatus.PENDING

    def test_respects_extra_exclusions(self):
        workers = [WorkerProfile(worker_id=i, skill_category="receiving") for i in (1, 2, 3)]
        tasks = [make_assigned("a", 1)]
        constraints = SchedulingConstraints(exclude_workers=[2])
        result = make_reassigner(workers, tasks).reassign(tasks, "rebalance", constraints)
        assert result.new_assignments[0].worker_id == 3

    def test_non_assigned_tasks_reported(self):
        workers = [WorkerProfile(worker_id=2, skill_category="receiving")]
        running = Task(id="run", kind=TaskKind.INBOUND, status=TaskStatus.IN_PROGRESS, assigned_worker_id=1)
        result = make_reassigner(workers, [running]).reassign([running], "rebalance")

        assert result.released_task_ids == []
        assert [f.task_id for f in result.failed_reassignments] == ["run"]
        assert running.status == TaskStatus.IN_PROGRESS


class TestBasicReassignment:

    def test_resets_to_pending(self):
        tasks = [make_assigned("a", 1), make_assigned("b", 2)]
        result = BatchReassigner().reassign(tasks, "shift change")

        assert result.successful_reassignments == 0
        assert result.still_pending == ["a", "b"]
        assert all(t.status == TaskStatus.PENDING and t.assigned_worker_id is None for t in tasks)
