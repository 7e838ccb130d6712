"""Entry point for a warehouse scheduling demo run.

Usage:
    python scripts/run_scheduling.py --tasks 30 --workers 6 --strategy smart
"""

import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from rich.console import Console
from rich.logging import RichHandler

from warehouse_ops.collaborators import InMemoryTaskStore, InMemoryWorkerDirectory
from warehouse_ops.config import get_settings
from warehouse_ops.events import CollectingEventSink
from warehouse_ops.manager import TaskManager
from warehouse_ops.metrics.report import SchedulingReport, TaskSummary
from warehouse_ops.models.task import TaskStatus
from warehouse_ops.routing.path_optimizer import PathOptimizer, RouteStrategy
from warehouse_ops.scheduling.smart import SmartSchedulingStrategy
from warehouse_ops.simulator.generator import ScenarioGenerator

console = Console()


def build_manager(strategy: str, store, directory, sink, settings) -> TaskManager:
    """Factory for the manager with the requested scheduling strategy."""
    if strategy == "basic":
        return TaskManager(store, directory, event_sink=sink, settings=settings)
    if strategy == "smart":
        smart = SmartSchedulingStrategy(store, directory, settings, sink)
        return TaskManager(store, directory, strategy=smart, event_sink=sink, settings=settings)
    raise ValueError(f"Unknown strategy: {strategy}. Available: basic, smart")


def main():
    parser = argparse.ArgumentParser(description="Warehouse Ops — task scheduling and route optimization demo")
    parser.add_argument("--tasks", type=int, default=30, help="Number of tasks (default: 30)")
    parser.add_argument("--workers", type=int, default=6, help="Number of workers (default: 6)")
    parser.add_argument("--zones", type=int, default=3, help="Number of zones (default: 3)")
    parser.add_argument("--strategy", type=str, default="smart", help="Scheduling strategy: basic, smart (default: smart)")
    parser.add_argument("--route", type=str, default="dynamic",
                        choices=[s.value for s in RouteStrategy], help="Route strategy (default: dynamic)")
    parser.add_argument("--seed", type=int, default=42, help="Random seed (default: 42)")
    parser.add_argument("--verbose", action="store_true", help="Show scheduler debug logs")

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.WARNING,
        format="%(message)s",
        handlers=[RichHandler(console=console, show_path=False)],
    )

    settings = get_settings()
    scenario = ScenarioGenerator(seed=args.seed).generate(
        num_tasks=args.tasks, num_workers=args.workers, num_zones=args.zones,
    )
    store = InMemoryTaskStore(scenario.tasks)
    directory = InMemoryWorkerDirectory(scenario.workers, task_store=store)
    sink = CollectingEventSink()
    manager = build_manager(args.strategy, store, directory, sink, settings)

    report = SchedulingReport(console)
    report.print_header(manager.strategy.name)

    recalculation = manager.recalculate_task_priorities({"trigger_reason": "demo"})
    console.print(f"[dim]Priorities updated: {recalculation.updated_count} of {recalculation.total_analyzed}[/dim]")

    batch = manager.assign_tasks_intelligently()
    report.print_batch(batch)

    pending = manager.find_tasks_by_status(TaskStatus.PENDING)
    if pending:
        urgent = manager.handle_urgent_task(pending[-1].id, {"priority": 95, "preempt_allowed": True})
        report.print_urgent(urgent)

    optimizer = PathOptimizer(scenario.graph, settings)
    assigned = manager.find_tasks_by_status(TaskStatus.ASSIGNED, limit=3)
    routes = optimizer.optimize_batch_paths(
        [scenario.graph.resolve(task.location_ids) for task in assigned], args.route,
    )
    report.print_batch_routes(routes)

    report.print_queue(manager.scheduling_queue_status())
    report.print_task_summary(TaskSummary.of(store.all()))
    console.print(f"\n[dim]Published {len(sink.events)} task events[/dim]")


if __name__ == "__main__":
    main()
