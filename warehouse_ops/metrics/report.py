"""Scheduling reports — rich tables for batch, urgent, queue and route results."""

from collections import Counter
from dataclasses import dataclass, field
from typing import Optional

from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from warehouse_ops.models.task import Task, TaskStatus
from warehouse_ops.routing.path_optimizer import BatchPathResult, PathResult
from warehouse_ops.scheduling.batch import BatchScheduleResult
from warehouse_ops.scheduling.monitor import QueueHealth, QueueSnapshot
from warehouse_ops.scheduling.urgent import UrgentTaskResult

HEALTH_STYLES = {
    QueueHealth.HEALTHY: "green",
    QueueHealth.WARNING: "yellow",
    QueueHealth.ERROR: "red",
}


@dataclass
class TaskSummary:
    """Status counts over a set of tasks."""
    total_tasks: int = 0
    by_status: dict[TaskStatus, int] = field(default_factory=dict)
    average_priority: float = 0.0

    @classmethod
    def of(cls, tasks: list[Task]) -> "TaskSummary":
        counts = Counter(t.status for t in tasks)
        return cls(
            total_tasks=len(tasks),
            by_status={status: counts.get(status, 0) for status in TaskStatus},
            average_priority=sum(t.priority for t in tasks) / len(tasks) if tasks else 0.0,
        )


class SchedulingReport:
    """Prints scheduling outcomes to a rich console."""

    def __init__(self, console: Optional[Console] = None, title: str = "Warehouse Ops"):
        self.console = console or Console()
        self.title = title

    def print_header(self, strategy_name: str) -> None:
        self.console.print(Panel(
            f"[bold cyan]{self.title} — Scheduling Report[/bold cyan]\n"
            f"Strategy: [bold yellow]{strategy_name}[/bold yellow]",
            border_style="cyan",
        ))

    def print_task_summary(self, summary: TaskSummary) -> None:
        table = Table(title="Task Summary", border_style="blue")
        table.add_column("Status", style="bold")
        table.add_column("Count", justify="right")
        for status, count in summary.by_status.items():
            table.add_row(status.value, str(count))
        table.add_row("[bold]Total[/bold]", f"[bold]{summary.total_tasks}[/bold]")
        table.add_row("Avg priority", f"{summary.average_priority:.1f}")
        self.console.print(table)

    def print_batch(self, result: BatchScheduleResult) -> None:
        stats = result.statistics
        table = Table(title=f"Batch Assignment ({result.mode})", border_style="green")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Total Tasks", str(stats.total_tasks))
        table.add_row("Assigned", f"[green]{stats.assigned_count}[/green]")
        table.add_row("Unassigned", f"[yellow]{stats.unassigned_count}[/yellow]")
        table.add_row("Failed", f"[red]{stats.failed_count}[/red]")
        table.add_row(
            "Assignment Rate",
            f"[{'green' if stats.assignment_rate >= 0.7 else 'red'}]{stats.assignment_rate:.1%}[/]",
        )
        table.add_row("Avg Match Score", f"{stats.average_match_score:.3f}")
        table.add_row("Processing Time (ms)", f"{stats.processing_time_ms:.2f}")
        self.console.print(table)

        if result.assignments:
            assignments = Table(title="Assignments", border_style="magenta")
            assignments.add_column("Task", style="bold")
            assignments.add_column("Worker", justify="right")
            assignments.add_column("Score", justify="right")
            assignments.add_column("Reason")
            for record in result.assignments:
                assignments.add_row(
                    record.task_id, str(record.worker_id),
                    f"{record.match_score:.3f}", record.assignment_reason,
                )
            self.console.print(assignments)

        for rec in result.recommendations:
            self.console.print(f"  [dim]→ {rec['type']}[/dim] {rec.get('message', rec.get('task_id', ''))}")

    def print_urgent(self, result: UrgentTaskResult) -> None:
        style = "green" if result.assigned else "yellow"
        worker = result.worker_id if result.worker_id is not None else "—"
        self.console.print(Panel(
            f"Task [bold]{result.task_id}[/bold]: priority {result.priority_before} → {result.priority_after}\n"
            f"Strategy: [{style}]{result.handling_strategy}[/{style}]  Worker: {worker}\n"
            f"Displaced: {len(result.displaced_task_ids)}",
            title="Urgent Task",
            border_style=style,
        ))

    def print_queue(self, snapshot: QueueSnapshot) -> None:
        style = HEALTH_STYLES[snapshot.queue_health]
        table = Table(title=f"Queue Status ({snapshot.mode})", border_style=style)
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Health", f"[{style}]{snapshot.queue_health.value}[/{style}]")
        table.add_row("Pending", str(snapshot.pending_count))
        table.add_row("Active", str(snapshot.active_count))
        if snapshot.average_wait_minutes is not None:
            table.add_row("Avg Wait (min)", f"{snapshot.average_wait_minutes:.2f}")
        for worker_id, count in snapshot.worker_utilization.items():
            bar = "█" * min(count, 20) + "░" * (20 - min(count, 20))
            table.add_row(f"Worker {worker_id}", f"{bar} {count}")
        if snapshot.message:
            table.add_row("Note", snapshot.message)
        self.console.print(table)

    def print_route(self, result: PathResult, label: str = "Route") -> None:
        table = Table(title=f"{label} ({result.strategy_used})", border_style="blue")
        table.add_column("Metric", style="bold")
        table.add_column("Value", justify="right")
        table.add_row("Sequence", " → ".join(str(i) for i in result.location_ids) or "—")
        table.add_row("Distance", f"{result.total_distance:.1f}")
        table.add_row("Original Distance", f"{result.original_distance:.1f}")
        table.add_row("Est. Time", f"{result.estimated_time:.2f}")
        table.add_row("Improvement", f"{result.improvement:.2f}%")
        if result.skipped:
            table.add_row("Skipped", ", ".join(str(loc.id) for loc in result.skipped))
        self.console.print(table)

    def print_batch_routes(self, result: BatchPathResult) -> None:
        for entry in result.results:
            self.print_route(entry.result, label=f"Route #{entry.task_index}")
        self.console.print(
            f"[dim]Saved {result.total_distance_saved:.1f} distance, "
            f"{result.total_time_saved:.2f} time; avg improvement {result.average_improvement:.2f}%[/dim]"
        )
