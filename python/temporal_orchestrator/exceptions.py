"""Exception hierarchy for the temporal orchestrator.

Every error raised by this package inherits from OrchestratorError, so
callers can catch the whole family with one clause. Caller-facing
problems (bad input, unknown ids) are raised; lifecycle and health-check
failures are captured into status fields by the components that own
them.

Example:
    >>> from temporal_orchestrator import OrchestratorError, ScheduleNotFoundError
    >>>
    >>> try:
    ...     await orchestrator.pause_schedule("nightly")
    ... except ScheduleNotFoundError as e:
    ...     print(e.resource_id)
    ... except OrchestratorError as e:
    ...     print(e.to_dict())
"""

from __future__ import annotations

from typing import Any

UNKNOWN_ERROR_MESSAGE = "Unknown error"


class OrchestratorError(Exception):
    """Base exception for all temporal orchestrator errors.

    Args:
        message: Human-readable error message.
        metadata: Optional structured context attached to the error.

    Example:
        >>> try:
        ...     orchestrator.get_discovery_stats()
        ... except OrchestratorError as e:
        ...     print(f"Orchestrator error: {e}")
    """

    error_type = "orchestrator_error"

    def __init__(self, message: str, *, metadata: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.metadata = metadata or {}

    def to_dict(self) -> dict[str, Any]:
        """Convert the error to a dict for logging or API responses."""
        return {
            "error_type": self.error_type,
            "message": self.message,
            "metadata": self.metadata,
        }


class ValidationError(OrchestratorError):
    """Raised when configuration or input is malformed or incomplete.

    Always raised before any remote call is attempted.

    Example:
        >>> try:
        ...     registry.scan([BrokenController()])
        ... except ValidationError as e:
        ...     print(f"Invalid controller: {e}")
    """

    error_type = "validation_error"


class ScheduleValidationError(ValidationError):
    """Raised when a schedule descriptor cannot be turned into a spec."""

    error_type = "schedule_validation_error"


class NotFoundError(OrchestratorError):
    """Raised when an operation references an id that cannot be resolved.

    The missing id is always part of the message and is kept on
    ``resource_id``.
    """

    error_type = "not_found"
    resource_kind = "Resource"

    def __init__(
        self,
        resource_id: str,
        message: str | None = None,
        *,
        metadata: dict[str, Any] | None = None,
    ) -> None:
        self.resource_id = resource_id
        super().__init__(
            message or f"{self.resource_kind} '{resource_id}' not found",
            metadata={"resource_id": resource_id, **(metadata or {})},
        )


class ScheduleNotFoundError(NotFoundError):
    """Raised when a schedule id is neither cached nor known remotely."""

    error_type = "schedule_not_found"
    resource_kind = "Schedule"


class WorkerNotFoundError(NotFoundError):
    """Raised when no worker is registered for a task queue."""

    error_type = "worker_not_found"
    resource_kind = "Worker for task queue"


class WorkflowNotFoundError(NotFoundError):
    """Raised when a workflow or scheduled method is not in the inventory."""

    error_type = "workflow_not_found"
    resource_kind = "Workflow"


class ConnectivityError(OrchestratorError):
    """Raised when the Temporal cluster cannot be reached.

    Example:
        >>> try:
        ...     client = await connect(config.connection)
        ... except ConnectivityError as e:
        ...     print(f"Temporal unavailable: {e}")
    """

    error_type = "connectivity_error"


class InitializationError(OrchestratorError):
    """Raised when a subsystem fails during bootstrap.

    Only raised when the subsystem's allow-failure flag is off; otherwise
    the failure is recorded and surfaced through health status.
    """

    error_type = "initialization_error"


class WorkerStartError(InitializationError):
    """Raised when a worker cannot be constructed or started."""

    error_type = "worker_start_error"


class NotInitializedError(OrchestratorError):
    """Raised when the orchestrator is used before initialize() completed.

    Example:
        >>> orchestrator = TemporalOrchestrator(config, client=client)
        >>> try:
        ...     await orchestrator.start_workflow("Sync")
        ... except NotInitializedError:
        ...     print("call initialize() first")
    """

    error_type = "not_initialized"


class ScheduleOperationError(OrchestratorError):
    """Raised when a remote call on a schedule fails."""

    error_type = "schedule_operation_error"


class WorkflowOperationError(OrchestratorError):
    """Raised when a remote call on a workflow execution fails."""

    error_type = "workflow_operation_error"


def extract_error_message(error: Any) -> str:
    """Normalize any raised value into a human-readable message.

    Args:
        error: An exception, a string, or anything else.

    Returns:
        The exception message (or its class name when the message is
        empty), the string itself, or ``"Unknown error"``.

    Example:
        >>> extract_error_message(ValueError("x"))
        'x'
        >>> extract_error_message({"code": 1})
        'Unknown error'
    """
    if isinstance(error, BaseException):
        return str(error) or type(error).__name__
    if isinstance(error, str):
        return error
    return UNKNOWN_ERROR_MESSAGE


__all__ = [
    "UNKNOWN_ERROR_MESSAGE",
    "ConnectivityError",
    "InitializationError",
    "NotFoundError",
    "NotInitializedError",
    "OrchestratorError",
    "ScheduleNotFoundError",
    "ScheduleOperationError",
    "ScheduleValidationError",
    "ValidationError",
    "WorkerNotFoundError",
    "WorkerStartError",
    "WorkflowNotFoundError",
    "WorkflowOperationError",
    "extract_error_message",
]
