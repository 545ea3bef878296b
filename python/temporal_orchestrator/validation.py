"""Input validation helpers shared by the orchestrator components."""

from __future__ import annotations

import re
from collections.abc import Awaitable, Callable
from typing import TypeVar

from .exceptions import ValidationError, extract_error_message
from .logging import log_error, log_warn

T = TypeVar("T")

WORKFLOW_ID_REQUIRED = "Workflow ID is required"

_CRON_FIELD = re.compile(r"^[\d*\-,/?LW]+$")
_INTERVAL = re.compile(r"^\d+(ms|[smh])$")


def _require(value: str | None, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(message)
    return value


def validate_workflow_id(workflow_id: str | None) -> str:
    """Ensure a workflow id is present and not blank.

    Raises:
        ValidationError: With message "Workflow ID is required".
    """
    return _require(workflow_id, WORKFLOW_ID_REQUIRED)


def validate_workflow_type(workflow_type: str | None) -> str:
    return _require(workflow_type, "Workflow type is required")


def validate_task_queue(task_queue: str | None) -> str:
    return _require(task_queue, "Task queue is required")


def validate_signal_name(signal_name: str | None) -> str:
    """Ensure a signal name is present and contains no whitespace."""
    name = _require(signal_name, "Signal name is required")
    if re.search(r"\s", name):
        raise ValidationError(f"Signal name '{name}' must not contain whitespace")
    return name


def validate_query_name(query_name: str | None) -> str:
    """Ensure a query name is present and contains no whitespace."""
    name = _require(query_name, "Query name is required")
    if re.search(r"\s", name):
        raise ValidationError(f"Query name '{name}' must not contain whitespace")
    return name


def is_valid_cron_expression(expression: str) -> bool:
    """Check the shape of a 5 or 6 field cron expression.

    Only the character set and field count are checked; the remote
    scheduler remains the authority on semantics.

    Example:
        >>> is_valid_cron_expression("0 8 * * *")
        True
        >>> is_valid_cron_expression("60 0 8 * * *")
        False
    """
    if not isinstance(expression, str) or any(c in expression for c in "@&#"):
        return False
    fields = expression.split()
    if len(fields) not in (5, 6):
        return False
    if not all(_CRON_FIELD.match(f) for f in fields):
        return False
    if len(fields) == 6 and fields[0].isdigit() and int(fields[0]) > 59:
        return False
    return True


def is_valid_interval_expression(expression: str) -> bool:
    """Check an interval string such as ``500ms``, ``30s`` or ``5m``.

    Only the units ScheduleSpecBuilder passes through are accepted; ``1d``
    is normalized to ``1dms`` by the builder and fails here.
    """
    return isinstance(expression, str) and bool(_INTERVAL.match(expression))


async def safe_initialize(
    name: str,
    init: Callable[[], Awaitable[T]],
    *,
    allow_failure: bool = False,
) -> T | None:
    """Run an async initialization step under an allow-failure policy.

    Args:
        name: Subsystem name, used in log messages.
        init: Zero-argument coroutine function performing the step.
        allow_failure: When True, a failure is logged and None returned.

    Returns:
        The step's result, or None when it failed and failure is allowed.

    Raises:
        Exception: The original failure when ``allow_failure`` is False.
    """
    try:
        return await init()
    except Exception as e:
        message = extract_error_message(e)
        if allow_failure:
            log_warn(
                f"{name} initialization failed, continuing in degraded mode",
                {"component": name, "error": message},
            )
            return None
        log_error(f"{name} initialization failed", {"component": name, "error": message})
        raise


__all__ = [
    "WORKFLOW_ID_REQUIRED",
    "is_valid_cron_expression",
    "is_valid_interval_expression",
    "safe_initialize",
    "validate_query_name",
    "validate_signal_name",
    "validate_task_queue",
    "validate_workflow_id",
    "validate_workflow_type",
]
