"""Worker Matcher — skill-based scoring of workers against a task.

Each candidate is scored by four objectives, each in [0, 1]:

  skill        does the worker's category cover what the task needs, and how
               proficient are they
  workload     fewer active tasks = higher score
  location     how close the worker's last zone is to the task's zone
  performance  historical completion quality (neutral 0.5 when unknown)

The composite is a weighted sum with weights normalized to 1.0. Highest
composite wins; ties go to the lighter-loaded worker, then the lowest id.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Optional

from warehouse_ops.collaborators import WorkerDirectory
from warehouse_ops.config import Settings, get_settings
from warehouse_ops.models.location import FAR_DISTANCE, LocationGraph
from warehouse_ops.models.task import Task, TaskKind, utcnow
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.base import SchedulingConstraints

logger = logging.getLogger(__name__)

BASE_SKILLS: dict[TaskKind, list[str]] = {
    TaskKind.INBOUND: ["receiving"],
    TaskKind.OUTBOUND: ["picking", "packing"],
    TaskKind.QUALITY: ["quality"],
    TaskKind.COUNT: ["counting"],
    TaskKind.TRANSFER: ["equipment"],
}

# payload flag → extra skill it demands
SPECIAL_SKILLS = {
    "requires_quality_check": "quality",
    "hazardous": "hazardous",
    "cold_storage": "cold_storage",
}

UNMATCHED_SKILL_FACTOR = 0.3
NEUTRAL_SCORE = 0.5

REASONS = {
    "skill": "highest skill match",
    "workload": "lightest current workload",
    "location": "closest to the task zone",
    "performance": "best historical performance",
}


def required_skills(task: Task) -> list[str]:
    """Skills a task needs: the kind's base skills plus payload flags."""
    skills = list(BASE_SKILLS.get(task.kind, []))
    for flag, skill in SPECIAL_SKILLS.items():
        if task.payload.get(flag) is True and skill not in skills:
            skills.append(skill)
    return skills


def normalize_weights(weights: dict[str, float], fallback: dict[str, float]) -> dict[str, float]:
    """Scale weights to sum to 1.0; fall back when they are all zero."""
    merged = {key: max(0.0, float(weights.get(key, fallback[key]))) for key in fallback}
    total = sum(merged.values())
    if total <= 0:
        merged = dict(fallback)
        total = sum(merged.values())
    return {key: value / total for key, value in merged.items()}


def _within(window: tuple[datetime, datetime], now: datetime) -> bool:
    """Shift-window check; naive bounds take the clock's timezone and vice versa."""
    start, end = window
    if now.tzinfo is None:
        start, end = start.replace(tzinfo=None), end.replace(tzinfo=None)
    else:
        start = start if start.tzinfo is not None else start.replace(tzinfo=now.tzinfo)
        end = end if end.tzinfo is not None else end.replace(tzinfo=now.tzinfo)
    return start <= now <= end


@dataclass
class MatchContext:
    """Per-task inputs shared by every objective."""
    required_skills: list[str]
    loads: dict[int, int]
    max_tasks_per_worker: int
    target_zone_id: Optional[int]
    performance: Callable[[int], Optional[float]]


class Objective(ABC):
    """One scoring dimension. Returns a value in [0, 1]."""

    key: str = ""

    @abstractmethod
    def evaluate(self, task: Task, worker: WorkerProfile, context: MatchContext) -> float:
        ...


class SkillObjective(Objective):
    key = "skill"

    def evaluate(self, task: Task, worker: WorkerProfile, context: MatchContext) -> float:
        if worker.skill_category in context.required_skills:
            return worker.proficiency
        return UNMATCHED_SKILL_FACTOR * worker.proficiency


class WorkloadObjective(Objective):
    key = "workload"

    def evaluate(self, task: Task, worker: WorkerProfile, context: MatchContext) -> float:
        load = context.loads.get(worker.worker_id, 0)
        return max(0.0, 1.0 - load / context.max_tasks_per_worker)


class LocationObjective(Objective):
    key = "location"

    def evaluate(self, task: Task, worker: WorkerProfile, context: MatchContext) -> float:
        if context.target_zone_id is None:
            return NEUTRAL_SCORE
        distance = LocationGraph.zone_distance(worker.last_zone_id, context.target_zone_id)
        return 1.0 - distance / FAR_DISTANCE


class PerformanceObjective(Objective):
    key = "performance"

    def evaluate(self, task: Task, worker: WorkerProfile, context: MatchContext) -> float:
        score = context.performance(worker.worker_id)
        if score is None:
            return NEUTRAL_SCORE
        return max(0.0, min(1.0, score))


@dataclass
class MatchResult:
    """The chosen worker for a task and why."""
    task_id: str
    worker_id: int
    worker_name: str
    match_score: float
    assignment_reason: str
    current_workload: int
    skill_analysis: dict[str, Any] = field(default_factory=dict)
    score_breakdown: dict[str, float] = field(default_factory=dict)


class WorkerMatcher:
    """Scores active workers against a task and picks the best."""

    def __init__(
        self,
        directory: WorkerDirectory,
        settings: Optional[Settings] = None,
        clock: Callable[[], datetime] = utcnow,
    ):
        self.directory = directory
        self.settings = settings or get_settings()
        self.clock = clock
        self.objectives: list[Objective] = [
            SkillObjective(),
            WorkloadObjective(),
            LocationObjective(),
            PerformanceObjective(),
        ]

    def match(
        self,
        task: Task,
        constraints: SchedulingConstraints | dict[str, Any] | None = None,
        loads: Optional[dict[int, int]] = None,
    ) -> Optional[MatchResult]:
        """Return the best eligible worker, or None when nobody qualifies.

        ``loads`` overrides the directory's active-task counts; the batch
        scheduler uses it to account for assignments made earlier in a run.
        """
        constraints = SchedulingConstraints.coerce(constraints)
        weights = normalize_weights(constraints.weight_overrides(), self.settings.matcher_weights)
        max_tasks = constraints.max_tasks_per_worker or self.settings.max_tasks_per_worker

        workers = self.eligible_workers(constraints)
        current_loads = {
            w.worker_id: (loads[w.worker_id] if loads is not None and w.worker_id in loads
                          else self.directory.current_active_task_count(w.worker_id))
            for w in workers
        }
        candidates = [w for w in workers if current_loads[w.worker_id] < max_tasks]

        if not candidates:
            logger.debug("No eligible worker for task %s", task.id)
            return None

        context = MatchContext(
            required_skills=required_skills(task),
            loads=current_loads,
            max_tasks_per_worker=max_tasks,
            target_zone_id=task.target_zone_id,
            performance=lambda worker_id: self.directory.performance_score(worker_id, task.kind),
        )

        scored = []
        for worker in candidates:
            breakdown = self.score_breakdown(task, worker, context)
            total = sum(weights[key] * breakdown[key] for key in weights)
            logger.debug(
                "Candidate worker=%s task=%s total=%.3f breakdown=%s",
                worker.worker_id, task.id, total, breakdown,
            )
            scored.append((total, worker, breakdown))

        scored.sort(key=lambda item: (-item[0], current_loads[item[1].worker_id], item[1].worker_id))
        total, best, breakdown = scored[0]

        result = MatchResult(
            task_id=task.id,
            worker_id=best.worker_id,
            worker_name=best.name,
            match_score=round(total, 3),
            assignment_reason=self._reason(breakdown, weights),
            current_workload=current_loads[best.worker_id],
            skill_analysis=self._skill_analysis(best, context.required_skills),
            score_breakdown={k: round(v, 3) for k, v in breakdown.items()},
        )
        logger.info(
            "Matched task %s to worker %s (score=%.3f)",
            task.id, result.worker_id, result.match_score,
        )
        return result

    def eligible_workers(self, constraints: SchedulingConstraints) -> list[WorkerProfile]:
        """Active workers that pass every request-scoped filter."""
        now = self.clock()
        excluded = set(constraints.exclude_workers)
        zones = set(constraints.zone_restrictions)

        eligible = []
        for worker in self.directory.find_active_workers():
            if not worker.active or worker.worker_id in excluded:
                continue
            if constraints.worker_availability.get(worker.worker_id) is False:
                continue
            if any(not worker.holds(cert) for cert in constraints.equipment_constraints):
                continue
            if zones and worker.last_zone_id not in zones:
                continue
            window = constraints.time_windows.get(worker.worker_id)
            if window is not None and not _within(window, now):
                continue
            eligible.append(worker)
        return eligible

    def score_breakdown(self, task: Task, worker: WorkerProfile, context: MatchContext) -> dict[str, float]:
        return {obj.key: obj.evaluate(task, worker, context) for obj in self.objectives}

    def _reason(self, breakdown: dict[str, float], weights: dict[str, float]) -> str:
        dominant = max(weights, key=lambda key: weights[key] * breakdown[key])
        return f"{REASONS[dominant]} ({breakdown[dominant]:.2f})"

    @staticmethod
    def _skill_analysis(worker: WorkerProfile, required: list[str]) -> dict[str, Any]:
        matched = [s for s in required if s == worker.skill_category]
        return {
            "required_skills": required,
            "worker_skill": worker.skill_category,
            "matched_skills": matched,
            "missing_skills": [s for s in required if s not in matched],
            "coverage": len(matched) / len(required) if required else 1.0,
            "skill_level": worker.skill_level,
            "skill_score": worker.skill_score,
        }
