"""Path Optimizer — orders storage locations into a short visiting sequence.

Strategies:
  shortest  greedy nearest neighbour from the first location
  s_shape   group by zone (first-seen order), nearest neighbour inside each
  z_shape   group by shelf (first-seen order), ascending location id inside
  dynamic   pick one of the above from the zone/shelf spread of the input

Any other strategy tag leaves the order untouched.
"""

import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, Optional

from warehouse_ops.config import Settings, get_settings
from warehouse_ops.models.location import Location, LocationGraph

logger = logging.getLogger(__name__)


class RouteStrategy(str, Enum):
    SHORTEST = "shortest"
    S_SHAPE = "s_shape"
    Z_SHAPE = "z_shape"
    DYNAMIC = "dynamic"


@dataclass(frozen=True)
class RouteConstraints:
    """Optional limits applied to a single route."""
    max_distance: Optional[float] = None
    avoid_zones: frozenset[int] = frozenset()
    # zone id → equipment needed to work in it
    equipment_restrictions: dict[int, str] = field(default_factory=dict)
    available_equipment: frozenset[str] = frozenset()

    @classmethod
    def from_mapping(cls, raw: Optional[dict[str, Any]]) -> "RouteConstraints":
        raw = raw or {}
        return cls(
            max_distance=raw.get("max_distance"),
            avoid_zones=frozenset(raw.get("avoid_zones") or ()),
            equipment_restrictions=dict(raw.get("equipment_restrictions") or {}),
            available_equipment=frozenset(raw.get("available_equipment") or ()),
        )


@dataclass
class PathResult:
    """Outcome of optimizing one route."""
    sequence: list[Location]
    total_distance: float = 0.0
    estimated_time: float = 0.0
    improvement: float = 0.0
    original_distance: float = 0.0
    strategy_used: str = RouteStrategy.SHORTEST.value
    skipped: list[Location] = field(default_factory=list)
    within_max_distance: bool = True

    @property
    def location_ids(self) -> list[int]:
        return [loc.id for loc in self.sequence]


@dataclass
class BatchRouteEntry:
    task_index: int
    result: PathResult
    distance_saved: float
    time_saved: float


@dataclass
class BatchPathResult:
    results: list[BatchRouteEntry] = field(default_factory=list)
    total_distance_saved: float = 0.0
    total_time_saved: float = 0.0
    average_improvement: float = 0.0


class PathOptimizer:
    """Sequences locations using the hierarchy distance of a LocationGraph."""

    def __init__(self, graph: LocationGraph, settings: Optional[Settings] = None):
        self.graph = graph
        self.settings = settings or get_settings()

    def optimize_path(
        self,
        locations: list[Location],
        strategy: str | RouteStrategy = RouteStrategy.SHORTEST,
        constraints: Optional[RouteConstraints | dict[str, Any]] = None,
    ) -> PathResult:
        """Reorder ``locations`` and report distance, time and improvement."""
        strategy_tag = strategy.value if isinstance(strategy, RouteStrategy) else str(strategy)
        if not isinstance(constraints, RouteConstraints):
            constraints = RouteConstraints.from_mapping(constraints)

        route, skipped = self._apply_constraints(list(locations), constraints)

        if len(route) <= 1:
            return PathResult(sequence=route, strategy_used=strategy_tag, skipped=skipped)

        original = self.graph.path_distance(route)
        sequence, strategy_used = self._apply_strategy(route, strategy_tag)
        optimized = self.graph.path_distance(sequence)

        improvement = (original - optimized) / original * 100 if original > 0 else 0.0
        within = constraints.max_distance is None or optimized <= constraints.max_distance
        if not within:
            logger.warning(
                "Route of %d locations exceeds max distance: %.1f > %.1f",
                len(sequence), optimized, constraints.max_distance,
            )

        return PathResult(
            sequence=sequence,
            total_distance=optimized,
            estimated_time=self.estimate_time(optimized),
            improvement=round(improvement, 2),
            original_distance=original,
            strategy_used=strategy_used,
            skipped=skipped,
            within_max_distance=within,
        )

    def optimize_batch_paths(
        self,
        location_sets: Iterable[list[Location]],
        strategy: str | RouteStrategy = RouteStrategy.SHORTEST,
        constraints: Optional[RouteConstraints | dict[str, Any]] = None,
    ) -> BatchPathResult:
        """Optimize one route per task and aggregate the savings.

        Empty location sets are skipped and do not count toward the average.
        """
        batch = BatchPathResult()
        improvements: list[float] = []

        for index, locations in enumerate(location_sets):
            if not locations:
                continue
            result = self.optimize_path(locations, strategy, constraints)
            distance_saved = result.original_distance - result.total_distance
            time_saved = self.estimate_time(distance_saved)

            batch.results.append(BatchRouteEntry(
                task_index=index,
                result=result,
                distance_saved=round(distance_saved, 2),
                time_saved=time_saved,
            ))
            batch.total_distance_saved += distance_saved
            batch.total_time_saved += time_saved
            if result.original_distance > 0:
                improvements.append(distance_saved / result.original_distance * 100)
            else:
                improvements.append(0.0)

        batch.total_distance_saved = round(batch.total_distance_saved, 2)
        batch.total_time_saved = round(batch.total_time_saved, 2)
        if improvements:
            batch.average_improvement = round(sum(improvements) / len(improvements), 2)
        return batch

    def estimate_time(self, distance: float) -> float:
        return round(distance / self.settings.average_speed, 2)

    # ── Strategies ────────────────────────────────────────────────────

    def _apply_strategy(self, locations: list[Location], strategy: str) -> tuple[list[Location], str]:
        match strategy:
            case RouteStrategy.SHORTEST.value:
                return self._shortest(locations), strategy
            case RouteStrategy.S_SHAPE.value:
                return self._s_shape(locations), strategy
            case RouteStrategy.Z_SHAPE.value:
                return self._z_shape(locations), strategy
            case RouteStrategy.DYNAMIC.value:
                chosen = self.choose_dynamic_strategy(locations)
                sequence, _ = self._apply_strategy(locations, chosen.value)
                return sequence, chosen.value
            case _:
                return list(locations), strategy

    def _shortest(self, locations: list[Location]) -> list[Location]:
        """Nearest neighbour; ties go to the earliest remaining input."""
        if len(locations) <= 1:
            return list(locations)

        remaining = list(locations)
        current = remaining.pop(0)
        ordered = [current]
        while remaining:
            nearest = min(
                range(len(remaining)),
                key=lambda i: self.graph.distance(current, remaining[i]),
            )
            current = remaining.pop(nearest)
            ordered.append(current)
        return ordered

    def _s_shape(self, locations: list[Location]) -> list[Location]:
        ordered: list[Location] = []
        for group in self._group_by_zone(locations).values():
            ordered.extend(self._shortest(group))
        return ordered

    def _z_shape(self, locations: list[Location]) -> list[Location]:
        ordered: list[Location] = []
        for group in self._group_by_shelf(locations).values():
            ordered.extend(sorted(group, key=lambda loc: loc.id))
        return ordered

    def choose_dynamic_strategy(self, locations: list[Location]) -> RouteStrategy:
        """Pick a concrete strategy from how spread out the locations are."""
        zone_count = len(self._group_by_zone(locations))
        shelf_count = len(self._group_by_shelf(locations))

        if zone_count > 1 and shelf_count / zone_count > self.settings.dynamic_zone_ratio:
            return RouteStrategy.S_SHAPE
        if shelf_count > self.settings.dynamic_shelf_threshold:
            return RouteStrategy.Z_SHAPE
        return RouteStrategy.SHORTEST

    # ── Helpers ───────────────────────────────────────────────────────

    def _group_by_zone(self, locations: list[Location]) -> dict[Optional[int], list[Location]]:
        groups: dict[Optional[int], list[Location]] = {}
        for loc in locations:
            groups.setdefault(self.graph.zone_of(loc), []).append(loc)
        return groups

    def _group_by_shelf(self, locations: list[Location]) -> dict[Optional[int], list[Location]]:
        groups: dict[Optional[int], list[Location]] = {}
        for loc in locations:
            groups.setdefault(loc.shelf_id, []).append(loc)
        return groups

    def _apply_constraints(
        self, locations: list[Location], constraints: RouteConstraints,
    ) -> tuple[list[Location], list[Location]]:
        kept: list[Location] = []
        skipped: list[Location] = []
        for loc in locations:
            zone_id = self.graph.zone_of(loc)
            needed = constraints.equipment_restrictions.get(zone_id) if zone_id is not None else None
            if zone_id in constraints.avoid_zones or (
                needed is not None and needed not in constraints.available_equipment
            ):
                skipped.append(loc)
            else:
                kept.append(loc)
        if skipped:
            logger.debug("Skipped %d locations due to route constraints", len(skipped))
        return kept, skipped
