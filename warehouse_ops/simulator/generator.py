"""Scenario generator — reproducible warehouses, workforces and task queues."""

import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Optional

from warehouse_ops.models.location import Location, LocationGraph, Shelf, Zone
from warehouse_ops.models.task import Task, TaskKind, utcnow
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.scheduling.matcher import BASE_SKILLS

CUSTOMER_TIERS = ["standard", "standard", "plus", "premium", "vip"]
CERTIFICATIONS = ["forklift", "reach_truck", "hazmat"]


@dataclass
class Scenario:
    graph: LocationGraph
    workers: list[WorkerProfile] = field(default_factory=list)
    tasks: list[Task] = field(default_factory=list)


class ScenarioGenerator:
    """Generates deterministic layouts, workers and tasks using a seeded RNG."""

    def __init__(self, seed: int = 42, now: Optional[datetime] = None):
        self.rng = random.Random(seed)
        self.now = now or utcnow()
        self._task_counter = 0
        self._worker_counter = 0

    def generate_layout(
        self,
        num_zones: int = 3,
        shelves_per_zone: int = 4,
        locations_per_shelf: int = 5,
        warehouse_id: int = 1,
    ) -> LocationGraph:
        """Build a full Zone → Shelf → Location hierarchy with sequential ids."""
        graph = LocationGraph()
        shelf_id = 0
        location_id = 0
        for zone_index in range(1, num_zones + 1):
            graph.add_zone(Zone(id=zone_index, warehouse_id=warehouse_id, name=f"Zone {chr(64 + zone_index)}"))
            for _ in range(shelves_per_zone):
                shelf_id += 1
                graph.add_shelf(Shelf(id=shelf_id, zone_id=zone_index, name=f"S{shelf_id:03d}"))
                for slot in range(locations_per_shelf):
                    location_id += 1
                    graph.add_location(Location(
                        id=location_id,
                        shelf_id=shelf_id,
                        code=f"{chr(64 + zone_index)}-{shelf_id:03d}-{slot + 1:02d}",
                    ))
        return graph

    def generate_workers(self, num_workers: int = 6, zone_ids: Optional[list[int]] = None) -> list[WorkerProfile]:
        """Workers spread over every skill category the task kinds need."""
        categories = sorted({skill for skills in BASE_SKILLS.values() for skill in skills})
        zone_ids = zone_ids or [1]

        workers: list[WorkerProfile] = []
        for i in range(num_workers):
            self._worker_counter += 1
            worker_id = self._worker_counter
            certifications = {
                cert: True for cert in CERTIFICATIONS if self.rng.random() < 0.3
            }
            workers.append(WorkerProfile(
                worker_id=worker_id,
                name=f"worker-{worker_id:03d}",
                skill_category=categories[i % len(categories)],
                skill_level=self.rng.randint(1, 5),
                skill_score=self.rng.randint(40, 100),
                active=self.rng.random() > 0.1,
                certifications=certifications,
                last_zone_id=self.rng.choice(zone_ids),
            ))
        return workers

    def generate_tasks(
        self,
        graph: LocationGraph,
        num_tasks: int = 20,
        locations_per_task: tuple[int, int] = (2, 6),
        deadline_hours: float = 24.0,
    ) -> list[Task]:
        """Pending tasks with zones, pick lists, tiers and deadlines."""
        location_ids = sorted(graph.locations)
        kinds = list(TaskKind)

        tasks: list[Task] = []
        for _ in range(num_tasks):
            self._task_counter += 1
            picks = self.rng.sample(location_ids, min(len(location_ids), self.rng.randint(*locations_per_task)))
            first = graph.location(picks[0]) if picks else None
            payload = {
                "zone_id": graph.zone_of(first) if first is not None else None,
                "location_ids": picks,
                "customer_tier": self.rng.choice(CUSTOMER_TIERS),
                "deadline": self.now + timedelta(hours=self.rng.uniform(0.25, deadline_hours)),
            }
            if self.rng.random() < 0.1:
                payload["priority_flag"] = "high"

            tasks.append(Task(
                id=f"task-{self._task_counter:04d}",
                kind=self.rng.choice(kinds),
                priority=self.rng.randint(1, 80),
                payload=payload,
                created_at=self.now - timedelta(minutes=self.rng.uniform(0, 120)),
            ))
        return tasks

    def generate(
        self,
        num_tasks: int = 20,
        num_workers: int = 6,
        num_zones: int = 3,
        shelves_per_zone: int = 4,
        locations_per_shelf: int = 5,
    ) -> Scenario:
        graph = self.generate_layout(num_zones, shelves_per_zone, locations_per_shelf)
        workers = self.generate_workers(num_workers, sorted(graph.zones))
        tasks = self.generate_tasks(graph, num_tasks)
        return Scenario(graph=graph, workers=workers, tasks=tasks)
