"""
Tests for the WorkerMatcher.

Verifies:
1. Composite score and the best-worker pick
2. Eligibility filters (inactive, excluded, availability, certs, zones, shifts)
3. Capacity limit and batch-local load overrides
4. Tie-breaking by load then id
5. Weight overrides and normalization
"""

from datetime import datetime, timedelta, timezone

import pytest

from warehouse_ops.collaborators import InMemoryWorkerDirectory
from warehouse_ops.config import Settings
from warehouse_ops.models.task import Task, TaskKind
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.base import SchedulingConstraints
from warehouse_ops.scheduling.matcher import WorkerMatcher, normalize_weights, required_skills

NOW = datetime(2024, 3, 1, 12, 0, tzinfo=timezone.utc)


def make_task(**overrides) -> Task:
    defaults = dict(id="t1", kind=TaskKind.OUTBOUND, priority=50)
    defaults.update(overrides)
    return Task(**defaults)


def make_worker(**overrides) -> WorkerProfile:
    defaults = dict(worker_id=1, name="ana", skill_category="picking", skill_level=5, skill_score=100)
    defaults.update(overrides)
    return WorkerProfile(**defaults)


def make_matcher(workers, loads=None, performance=None, settings=None) -> WorkerMatcher:
    directory = InMemoryWorkerDirectory(workers, loads=loads, performance=performance)
    return WorkerMatcher(directory, settings or Settings(), clock=lambda: NOW)


class TestRequiredSkills:

    def test_base_skills_by_kind(self):
        assert required_skills(make_task(kind=TaskKind.OUTBOUND)) == ["picking", "packing"]
        assert required_skills(make_task(kind=TaskKind.TRANSFER)) == ["equipment"]

    def test_special_flags_add_skills(self):
        task = make_task(kind=TaskKind.QUALITY, payload={"hazardous": True, "requires_quality_check": True})
        assert required_skills(task) == ["quality", "hazardous"]

    def test_flag_must_be_true(self):
        assert required_skills(make_task(payload={"cold_storage": "yes"})) == ["picking", "packing"]


class TestNormalizeWeights:

    def test_scales_to_one(self):
        weights = normalize_weights({"skill": 2.0, "workload": 2.0}, {"skill": 0.5, "workload": 0.5})
        assert weights == {"skill": pytest.approx(0.5), "workload": pytest.approx(0.5)}

    def test_all_zero_falls_back(self):
        fallback = {"skill": 0.4, "workload": 0.3, "location": 0.2, "performance": 0.1}
        weights = normalize_weights({k: 0.0 for k in fallback}, fallback)
        assert sum(weights.values()) == pytest.approx(1.0)
        assert weights["skill"] == pytest.approx(0.4)


class TestWorkerMatcher:

    def test_skill_match_wins(self):
        picker = make_worker(worker_id=1, skill_category="picking")
        inspector = make_worker(worker_id=2, skill_category="quality")
        result = make_matcher([inspector, picker]).match(make_task())

        assert result.worker_id == 1
        # 0.4*1.0 + 0.3*1.0 + 0.2*0.5 + 0.1*0.5
        assert result.match_score == pytest.approx(0.85)
        assert result.score_breakdown["skill"] == pytest.approx(1.0)
        assert result.skill_analysis["matched_skills"] == ["picking"]
        assert result.assignment_reason.startswith("highest skill match")

    def test_unmatched_skill_is_discounted(self):
        inspector = make_worker(worker_id=2, skill_category="quality")
        result = make_matcher([inspector]).match(make_task())
        assert result.score_breakdown["skill"] == pytest.approx(0.3)
        assert result.match_score == pytest.approx(0.57)

    def test_no_active_workers(self):
        assert make_matcher([]).match(make_task()) is None
        assert make_matcher([make_worker(active=False)]).match(make_task()) is None

    def test_capacity_limit(self):
        matcher = make_matcher([make_worker()], loads={1: 10})
        assert matcher.match(make_task()) is None
        assert matcher.match(make_task(), {"max_tasks_per_worker": 11}) is not None

    def test_load_override(self):
        matcher = make_matcher([make_worker(worker_id=1), make_worker(worker_id=2)])
        result = matcher.match(make_task(), loads={1: 3, 2: 0})
        assert result.worker_id == 2
        assert result.current_workload == 0

    def test_tie_goes_to_lowest_id(self):
        matcher = make_matcher([make_worker(worker_id=5), make_worker(worker_id=3)])
        assert matcher.match(make_task()).worker_id == 3

    def test_location_prefers_same_zone(self):
        near = make_worker(worker_id=2, last_zone_id=4)
        far = make_worker(worker_id=1, last_zone_id=1)
        result = make_matcher([far, near]).match(make_task(payload={"zone_id": 4}))
        assert result.worker_id == 2
        assert result.score_breakdown["location"] == pytest.approx(1.0)

    def test_performance_score(self):
        steady = make_worker(worker_id=1)
        star = make_worker(worker_id=2)
        result = make_matcher([steady, star], performance={1: 0.2, 2: 0.9}).match(make_task())
        assert result.worker_id == 2

    def test_weight_overrides(self):
        loaded_expert = make_worker(worker_id=1, skill_level=5, skill_score=100)
        idle_novice = make_worker(worker_id=2, skill_level=1, skill_score=10)
        matcher = make_matcher([loaded_expert, idle_novice], loads={1: 9, 2: 0})

        by_skill = matcher.match(make_task(), {"skill_weight": 1, "workload_weight": 0,
                                               "location_weight": 0, "performance_weight": 0})
        assert by_skill.worker_id == 1
        assert by_skill.match_score == pytest.approx(1.0)

        by_load = matcher.match(make_task(), {"skill_weight": 0, "workload_weight": 1,
                                              "location_weight": 0, "performance_weight": 0})
        assert by_load.worker_id == 2


class TestEligibility:

    def _matcher(self):
        workers = [
            make_worker(worker_id=1, certifications={"forklift": True}, last_zone_id=1),
            make_worker(worker_id=2, last_zone_id=2),
            make_worker(worker_id=3, last_zone_id=2, active=False),
        ]
        return make_matcher(workers)

    def _ids(self, constraints) -> list[int]:
        matcher = self._matcher()
        return [w.worker_id for w in matcher.eligible_workers(SchedulingConstraints.coerce(constraints))]

    def test_defaults_only_drop_inactive(self):
        assert self._ids({}) == [1, 2]

    def test_exclude_workers(self):
        assert self._ids({"exclude_workers": [1]}) == [2]

    def test_worker_availability(self):
        assert self._ids({"worker_availability": {2: False, 1: True}}) == [1]

    def test_equipment_constraints(self):
        assert self._ids({"equipment_constraints": ["forklift"]}) == [1]

    def test_zone_restrictions(self):
        assert self._ids({"zone_restrictions": [2]}) == [2]

    def test_time_windows(self):
        on_shift = (NOW - timedelta(hours=1), NOW + timedelta(hours=1))
        off_shift = (NOW + timedelta(hours=1), NOW + timedelta(hours=9))
        assert self._ids({"time_windows": {1: on_shift, 2: off_shift}}) == [1]

    def test_naive_time_windows(self):
        naive_now = NOW.replace(tzinfo=None)
        on_shift = (naive_now - timedelta(hours=1), naive_now + timedelta(hours=7))
        off_shift = (naive_now + timedelta(hours=1), naive_now + timedelta(hours=9))
        assert self._ids({"time_windows": {1: on_shift, 2: off_shift}}) == [1]
