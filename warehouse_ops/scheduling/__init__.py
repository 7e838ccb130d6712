from warehouse_ops.scheduling.base import (
    AssignmentRecord,
    SchedulingConstraints,
    SchedulingStrategy,
    UrgencyLevel,
)
from warehouse_ops.scheduling.basic import BasicSchedulingStrategy
from warehouse_ops.scheduling.batch import BatchScheduler, BatchScheduleResult, BatchStatistics
from warehouse_ops.scheduling.matcher import MatchResult, WorkerMatcher
from warehouse_ops.scheduling.monitor import QueueHealth, QueueMonitor, QueueSnapshot
from warehouse_ops.scheduling.priority import PriorityCalculator, PriorityRecalculation
from warehouse_ops.scheduling.reassign import BatchReassigner, ReassignmentResult
from warehouse_ops.scheduling.smart import SmartSchedulingStrategy
from warehouse_ops.scheduling.urgent import UrgentTaskHandler, UrgentTaskResult

__all__ = [
    "AssignmentRecord",
    "BasicSchedulingStrategy",
    "BatchReassigner",
    "BatchScheduleResult",
    "BatchScheduler",
    "BatchStatistics",
    "MatchResult",
    "PriorityCalculator",
    "PriorityRecalculation",
    "QueueHealth",
    "QueueMonitor",
    "QueueSnapshot",
    "ReassignmentResult",
    "SchedulingConstraints",
    "SchedulingStrategy",
    "SmartSchedulingStrategy",
    "UrgencyLevel",
    "UrgentTaskHandler",
    "UrgentTaskResult",
]
