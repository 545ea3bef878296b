"""Annotation metadata for workflow controllers.

Controllers are plain classes whose methods are annotated with the
decorators below. Decorators only record metadata through a
MetadataStore; they never wrap the function, so decorated methods stay
callable exactly as written. Discovery reads the metadata back through
the same MetadataStore interface, so any other annotation mechanism can
be plugged in by supplying a different store.

Example:
    >>> from temporal_orchestrator import workflow_controller, workflow_method, scheduled
    >>>
    >>> @workflow_controller(task_queue="orders")
    ... class ReportController:
    ...     @workflow_method(name="DailyReport")
    ...     @scheduled("daily-report", cron="0 8 * * *")
    ...     async def daily_report(self) -> None:
    ...         ...
"""

from __future__ import annotations

from collections.abc import Callable, Sequence
from typing import Any, Protocol, TypeVar, runtime_checkable

F = TypeVar("F", bound=Callable[..., Any])

CONTROLLER_KEY = "workflow_controller"
WORKFLOW_METHOD_KEY = "workflow_method"
SIGNAL_METHOD_KEY = "signal_method"
QUERY_METHOD_KEY = "query_method"
ACTIVITY_METHOD_KEY = "activity_method"
SCHEDULED_KEY = "scheduled"

METHOD_KEYS = (
    WORKFLOW_METHOD_KEY,
    SIGNAL_METHOD_KEY,
    QUERY_METHOD_KEY,
    ACTIVITY_METHOD_KEY,
    SCHEDULED_KEY,
)


@runtime_checkable
class MetadataStore(Protocol):
    """Capability for attaching metadata to classes and functions."""

    def get(self, target: Any, key: str) -> Any:
        """Return the value stored under key on target, or None."""
        ...

    def set(self, target: Any, key: str, value: Any) -> None:
        """Store value under key on target."""
        ...


class AttributeMetadataStore:
    """Stores metadata in a dict attribute on the target itself.

    Only the target's own ``__dict__`` is read, so a subclass does not
    inherit its parent's controller metadata.
    """

    attribute = "__orchestrator_metadata__"

    def get(self, target: Any, key: str) -> Any:
        data = getattr(target, "__dict__", {}).get(self.attribute)
        if not data:
            return None
        return data.get(key)

    def set(self, target: Any, key: str, value: Any) -> None:
        data = getattr(target, "__dict__", {}).get(self.attribute)
        if data is None:
            data = {}
            setattr(target, self.attribute, data)
        data[key] = value


class InMemoryMetadataStore:
    """Keeps metadata in a dict keyed by target identity.

    Useful when targets must not be mutated, and in tests.
    """

    def __init__(self) -> None:
        self._data: dict[int, tuple[Any, dict[str, Any]]] = {}

    def get(self, target: Any, key: str) -> Any:
        entry = self._data.get(id(target))
        if entry is None or entry[0] is not target:
            return None
        return entry[1].get(key)

    def set(self, target: Any, key: str, value: Any) -> None:
        entry = self._data.get(id(target))
        if entry is None or entry[0] is not target:
            entry = (target, {})
            self._data[id(target)] = entry
        entry[1][key] = value


DEFAULT_STORE: MetadataStore = AttributeMetadataStore()


def _method_decorator(key: str, func: F | None, options: dict[str, Any]) -> Any:
    def decorate(fn: F) -> F:
        DEFAULT_STORE.set(fn, key, {k: v for k, v in options.items() if v is not None})
        return fn

    if func is not None:
        return decorate(func)
    return decorate


def workflow_controller(
    cls: type | None = None,
    *,
    task_queue: str | None = None,
    name: str | None = None,
    **options: Any,
) -> Any:
    """Mark a class as a workflow controller.

    Usable bare (``@workflow_controller``) or with options.

    Args:
        task_queue: Default task queue for the controller's methods.
        name: Controller name. Defaults to the class name.
        **options: Extra options kept on the controller info.
    """

    def decorate(target: type) -> type:
        DEFAULT_STORE.set(
            target,
            CONTROLLER_KEY,
            {"task_queue": task_queue, "name": name or target.__name__, **options},
        )
        return target

    if cls is not None:
        return decorate(cls)
    return decorate


def workflow_method(func: F | None = None, *, name: str | None = None, **options: Any) -> Any:
    """Mark a method as a workflow entry point.

    Args:
        name: Workflow type name. Defaults to the method name.
        **options: Workflow options such as ``task_queue``.
    """
    return _method_decorator(WORKFLOW_METHOD_KEY, func, {"name": name, **options})


def signal(func: F | None = None, *, name: str | None = None, **options: Any) -> Any:
    """Mark a method as a signal handler."""
    return _method_decorator(SIGNAL_METHOD_KEY, func, {"name": name, **options})


def query(func: F | None = None, *, name: str | None = None, **options: Any) -> Any:
    """Mark a method as a query handler."""
    return _method_decorator(QUERY_METHOD_KEY, func, {"name": name, **options})


def activity(func: F | None = None, *, name: str | None = None, **options: Any) -> Any:
    """Mark a method as an activity implementation."""
    return _method_decorator(ACTIVITY_METHOD_KEY, func, {"name": name, **options})


def scheduled(
    schedule_id: str,
    *,
    cron: str | Sequence[str] | None = None,
    interval: int | float | str | Sequence[int | float | str] | None = None,
    calendar: Any = None,
    timezone: str | None = None,
    jitter: str | None = None,
    task_queue: str | None = None,
    workflow_type: str | None = None,
    workflow_id: str | None = None,
    args: Sequence[Any] | None = None,
    memo: dict[str, Any] | None = None,
    search_attributes: Any = None,
    description: str | None = None,
    paused: bool = False,
) -> Callable[[F], F]:
    """Attach a schedule to a method.

    At least one of ``cron``, ``interval`` or ``calendar`` is required;
    this is checked during discovery.

    Args:
        schedule_id: Unique schedule id.
        cron: One cron expression or a sequence of them.
        interval: Milliseconds, a duration string, or a sequence of either.
        calendar: One calendar rule or a sequence of them.
        timezone: Time zone for the schedule. Defaults to the registry's.
        jitter: Optional jitter duration.
        task_queue: Overrides the controller's task queue.
        workflow_type: Workflow to start. Defaults to the method's
            workflow name.

    Example:
        >>> @scheduled("cleanup", interval="1h")
        ... async def cleanup(self) -> None:
        ...     ...
    """
    options = {
        "schedule_id": schedule_id,
        "cron": cron,
        "interval": interval,
        "calendar": calendar,
        "timezone": timezone,
        "jitter": jitter,
        "task_queue": task_queue,
        "workflow_type": workflow_type,
        "workflow_id": workflow_id,
        "args": list(args) if args is not None else None,
        "memo": memo,
        "search_attributes": search_attributes,
        "description": description,
        "paused": paused or None,
    }
    return _method_decorator(SCHEDULED_KEY, None, options)


def cron_schedule(expression: str, *, schedule_id: str, **kwargs: Any) -> Callable[[F], F]:
    """Shortcut for ``scheduled(schedule_id, cron=expression, ...)``."""
    return scheduled(schedule_id, cron=expression, **kwargs)


def interval_schedule(every: int | str, *, schedule_id: str, **kwargs: Any) -> Callable[[F], F]:
    """Shortcut for ``scheduled(schedule_id, interval=every, ...)``."""
    return scheduled(schedule_id, interval=every, **kwargs)


__all__ = [
    "ACTIVITY_METHOD_KEY",
    "CONTROLLER_KEY",
    "DEFAULT_STORE",
    "METHOD_KEYS",
    "QUERY_METHOD_KEY",
    "SCHEDULED_KEY",
    "SIGNAL_METHOD_KEY",
    "WORKFLOW_METHOD_KEY",
    "AttributeMetadataStore",
    "InMemoryMetadataStore",
    "MetadataStore",
    "activity",
    "cron_schedule",
    "interval_schedule",
    "query",
    "scheduled",
    "signal",
    "workflow_controller",
    "workflow_method",
]
