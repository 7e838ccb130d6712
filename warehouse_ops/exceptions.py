"""Exception hierarchy for the warehouse operations core."""

from typing import Optional


class WarehouseOpsError(Exception):
    """Base class for every error raised by this package."""


class TaskNotFoundError(WarehouseOpsError):
    """A referenced task does not exist in the task store."""

    def __init__(self, task_id: str):
        self.task_id = task_id
        super().__init__(f"Task not found: {task_id}")


class WorkerNotFoundError(WarehouseOpsError):
    """A referenced worker does not exist in the worker directory."""

    def __init__(self, worker_id: int):
        self.worker_id = worker_id
        super().__init__(f"Worker not found: {worker_id}")


class InvalidTransitionError(WarehouseOpsError):
    """A state-machine guard rejected the requested action.

    Carries enough context for the caller to reconcile state and retry.
    """

    def __init__(self, task_id: str, current_status: str, action: str):
        self.task_id = task_id
        self.current_status = current_status
        self.action = action
        super().__init__(
            f"Cannot {action} task {task_id}: status is {current_status.upper()}"
        )


class CollaboratorUnavailableError(WarehouseOpsError):
    """An optional collaborator is not configured or not reachable."""

    def __init__(self, collaborator: str, detail: Optional[str] = None):
        self.collaborator = collaborator
        message = f"Collaborator unavailable: {collaborator}"
        if detail:
            message = f"{message} ({detail})"
        super().__init__(message)
