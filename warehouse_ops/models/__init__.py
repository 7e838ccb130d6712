from warehouse_ops.models.task import Task, TaskKind, TaskStatus
from warehouse_ops.models.worker import WorkerProfile
from warehouse_ops.models.location import Location, LocationGraph, Shelf, Zone

__all__ = [
    "Task", "TaskKind", "TaskStatus", "WorkerProfile",
    "Location", "LocationGraph", "Shelf", "Zone",
]
