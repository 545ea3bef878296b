"""Workflow discovery and the metadata registry.

The MetadataRegistry turns annotated controller instances into a method
inventory: workflow, signal, query, activity and scheduled methods,
plus summary counters. It reads annotations only through a
MetadataStore and obtains controllers only from a ControllerProvider,
so it has no dependency on a particular decorator or container.

Scanning validates the inventory up front: duplicate public names, a
scheduled method without a resolvable task queue, duplicate schedule ids
and empty schedule descriptors all raise ValidationError before any
remote call is made.

Example:
    >>> registry = MetadataRegistry(StaticControllerProvider([ReportController()]))
    >>> registry.scan()
    >>> registry.get_stats().scheduled
    1
    >>> registry.get_scheduled_workflow("daily-report").workflow_name
    'DailyReport'
"""

from __future__ import annotations

import inspect
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from typing import Any, Protocol

from .exceptions import ValidationError
from .logging import log_debug, log_info, log_warn
from .metadata import (
    ACTIVITY_METHOD_KEY,
    CONTROLLER_KEY,
    DEFAULT_STORE,
    METHOD_KEYS,
    QUERY_METHOD_KEY,
    SCHEDULED_KEY,
    SIGNAL_METHOD_KEY,
    WORKFLOW_METHOD_KEY,
    MetadataStore,
)
from .schedule_spec import ScheduleSpecBuilder
from .types import DiscoveryStats, ScheduleSpec
from .validation import is_valid_cron_expression, is_valid_interval_expression

# =============================================================================
# Inventory records
# =============================================================================


@dataclass
class MethodInfo:
    """A discovered method.

    Attributes:
        method_name: Python attribute name of the method.
        public_name: Wire-visible name; the explicit ``name`` option
            wins over ``method_name``.
        options: Options recorded by the decorator.
        handler: The bound method.
        task_queue: Resolved task queue, if any.
    """

    method_name: str
    public_name: str
    options: dict[str, Any] = field(default_factory=dict)
    handler: Callable[..., Any] | None = None
    task_queue: str | None = None


@dataclass
class WorkflowMethodInfo(MethodInfo):
    """A workflow entry point."""


@dataclass
class SignalMethodInfo(MethodInfo):
    """A signal handler."""


@dataclass
class QueryMethodInfo(MethodInfo):
    """A query handler."""


@dataclass
class ActivityMethodInfo(MethodInfo):
    """An activity implementation."""


@dataclass
class ScheduledMethodInfo:
    """A method with a schedule attached.

    ``controller`` is a non-owning back-reference and is excluded from
    comparison and repr.
    """

    method_name: str
    workflow_name: str
    schedule_id: str
    spec: ScheduleSpec
    schedule_options: dict[str, Any] = field(default_factory=dict)
    workflow_options: dict[str, Any] = field(default_factory=dict)
    handler: Callable[..., Any] | None = None
    controller: ControllerInfo | None = field(default=None, repr=False, compare=False)

    @property
    def task_queue(self) -> str | None:
        return self.workflow_options.get("task_queue")


@dataclass
class ControllerInfo:
    """A scanned controller and the methods it owns."""

    name: str
    instance: Any = field(repr=False)
    task_queue: str | None = None
    options: dict[str, Any] = field(default_factory=dict)
    workflow_methods: list[WorkflowMethodInfo] = field(default_factory=list)
    signal_methods: list[SignalMethodInfo] = field(default_factory=list)
    query_methods: list[QueryMethodInfo] = field(default_factory=list)
    activity_methods: list[ActivityMethodInfo] = field(default_factory=list)
    scheduled_methods: list[ScheduledMethodInfo] = field(default_factory=list)

    @property
    def method_count(self) -> int:
        return (
            len(self.workflow_methods)
            + len(self.signal_methods)
            + len(self.query_methods)
            + len(self.activity_methods)
        )


# =============================================================================
# Controller providers
# =============================================================================


class ControllerProvider(Protocol):
    """Supplies controller instances to scan."""

    def get_controllers(self) -> Sequence[Any]: ...


class StaticControllerProvider:
    """ControllerProvider over a fixed list of instances."""

    def __init__(self, controllers: Sequence[Any] | None = None) -> None:
        self._controllers = list(controllers or [])

    def add(self, controller: Any) -> None:
        self._controllers.append(controller)

    def get_controllers(self) -> Sequence[Any]:
        return list(self._controllers)


# =============================================================================
# Registry
# =============================================================================


_CATEGORY_LABELS = {
    WORKFLOW_METHOD_KEY: "workflow",
    SIGNAL_METHOD_KEY: "signal",
    QUERY_METHOD_KEY: "query",
    ACTIVITY_METHOD_KEY: "activity",
}


class MetadataRegistry:
    """Builds and indexes the inventory of annotated controllers.

    The registry never talks to the Temporal cluster.
    """

    def __init__(
        self,
        provider: ControllerProvider | None = None,
        store: MetadataStore = DEFAULT_STORE,
    ) -> None:
        self._provider = provider or StaticControllerProvider()
        self._store = store
        self._complete = False
        self._clear()

    def _clear(self) -> None:
        self._controllers: list[ControllerInfo] = []
        self._workflows: dict[str, WorkflowMethodInfo] = {}
        self._scheduled: dict[str, ScheduledMethodInfo] = {}
        self._activities: list[ActivityMethodInfo] = []
        self._public_names: set[tuple[str | None, str, str]] = set()

    # -------------------------------------------------------------------------
    # Scanning
    # -------------------------------------------------------------------------

    def scan(self, controllers: Sequence[Any] | None = None) -> list[ControllerInfo]:
        """Scan controller instances and rebuild the inventory.

        Args:
            controllers: Instances to scan. Defaults to the provider's.

        Returns:
            The scanned controllers, in input order.

        Raises:
            ValidationError: If the inventory is inconsistent. The previous
                inventory is discarded either way.
        """
        self._complete = False
        self._clear()
        instances = self._provider.get_controllers() if controllers is None else controllers

        for instance in instances:
            info = self._scan_controller(instance)
            if info is not None:
                self._controllers.append(info)

        self._complete = True
        stats = self.get_stats()
        log_info(
            "Workflow discovery completed",
            {
                "controllers": stats.controllers,
                "methods": stats.methods,
                "signals": stats.signals,
                "queries": stats.queries,
                "scheduled": stats.scheduled,
                "activities": stats.activities,
            },
        )
        return list(self._controllers)

    def _scan_controller(self, instance: Any) -> ControllerInfo | None:
        cls = type(instance)
        controller_options = self._store.get(cls, CONTROLLER_KEY)
        methods = list(self._annotated_methods(cls))

        if controller_options is None and not methods:
            return None

        options = dict(controller_options or {})
        info = ControllerInfo(
            name=options.get("name") or cls.__name__,
            instance=instance,
            task_queue=options.get("task_queue"),
            options=options,
        )

        for name, function in methods:
            self._process_method(info, name, function, getattr(instance, name))

        log_debug(
            f"Scanned controller {info.name}",
            {"controller": info.name, "task_queue": info.task_queue, "methods": info.method_count},
        )
        return info

    def _annotated_methods(self, cls: type) -> list[tuple[str, Any]]:
        """Annotated functions of cls, in definition order, overrides first."""
        seen: set[str] = set()
        found = []
        for klass in cls.__mro__:
            if klass is object:
                continue
            for name in vars(klass):
                if name in seen:
                    continue
                seen.add(name)
                attr = inspect.getattr_static(cls, name)
                function = getattr(attr, "__func__", attr)
                if not callable(function):
                    continue
                if any(self._store.get(function, key) is not None for key in METHOD_KEYS):
                    found.append((name, function))
        return found

    def _process_method(
        self, controller: ControllerInfo, name: str, function: Any, handler: Any
    ) -> None:
        workflow_options = self._store.get(function, WORKFLOW_METHOD_KEY)
        workflow_info = None

        if workflow_options is not None:
            workflow_info = self._method_info(
                WorkflowMethodInfo, WORKFLOW_METHOD_KEY, controller, name, workflow_options, handler
            )
            controller.workflow_methods.append(workflow_info)
            self._workflows.setdefault(workflow_info.public_name, workflow_info)

        for key, cls, target in (
            (SIGNAL_METHOD_KEY, SignalMethodInfo, controller.signal_methods),
            (QUERY_METHOD_KEY, QueryMethodInfo, controller.query_methods),
        ):
            options = self._store.get(function, key)
            if options is not None:
                target.append(self._method_info(cls, key, controller, name, options, handler))

        activity_options = self._store.get(function, ACTIVITY_METHOD_KEY)
        if activity_options is not None:
            activity_info = self._method_info(
                ActivityMethodInfo, ACTIVITY_METHOD_KEY, controller, name, activity_options, handler
            )
            controller.activity_methods.append(activity_info)
            self._activities.append(activity_info)

        schedule_options = self._store.get(function, SCHEDULED_KEY)
        if schedule_options is not None:
            scheduled = self._scheduled_info(controller, name, schedule_options, workflow_info, handler)
            controller.scheduled_methods.append(scheduled)
            self._scheduled[scheduled.schedule_id] = scheduled

    def _method_info(
        self,
        cls: type[MethodInfo],
        key: str,
        controller: ControllerInfo,
        method_name: str,
        options: dict[str, Any],
        handler: Any,
    ) -> Any:
        public_name = options.get("name") or method_name
        task_queue = options.get("task_queue") or controller.task_queue
        category = _CATEGORY_LABELS[key]

        # Signals and queries are routed by workflow id, not task queue, and
        # their decorators take no task queue; a controller may hold only these.
        if key in (WORKFLOW_METHOD_KEY, ACTIVITY_METHOD_KEY) and not task_queue:
            raise ValidationError(
                f"No task queue for {category} method {controller.name}.{method_name}: "
                "set task_queue on the method or its controller"
            )

        unique_key = (task_queue, category, public_name)
        if unique_key in self._public_names:
            raise ValidationError(
                f"Duplicate {category} name '{public_name}' on task queue '{task_queue}' "
                f"({controller.name}.{method_name})"
            )
        self._public_names.add(unique_key)

        return cls(
            method_name=method_name,
            public_name=public_name,
            options=dict(options),
            handler=handler,
            task_queue=task_queue,
        )

    def _scheduled_info(
        self,
        controller: ControllerInfo,
        method_name: str,
        options: dict[str, Any],
        workflow_info: WorkflowMethodInfo | None,
        handler: Any,
    ) -> ScheduledMethodInfo:
        location = f"{controller.name}.{method_name}"
        schedule_id = options.get("schedule_id")
        if not schedule_id:
            raise ValidationError(f"Scheduled method {location} has no schedule_id")
        if schedule_id in self._scheduled:
            raise ValidationError(f"Duplicate schedule_id '{schedule_id}' ({location})")

        task_queue = (
            options.get("task_queue")
            or (workflow_info.task_queue if workflow_info else None)
            or controller.task_queue
        )
        if not task_queue:
            raise ValidationError(
                f"No task queue for scheduled method {location} (schedule '{schedule_id}'): "
                "set task_queue on the schedule, the method or its controller"
            )

        try:
            spec = ScheduleSpecBuilder.build(options)
        except ValidationError as e:
            raise type(e)(f"Schedule '{schedule_id}' ({location}): {e.message}") from e

        # Shape check only; expressions are kept verbatim.
        for expression in spec.cron_expressions:
            if not is_valid_cron_expression(expression):
                log_warn(
                    "Cron expression may be rejected by the scheduler",
                    {"schedule_id": schedule_id, "cron": expression},
                )
        for interval in spec.intervals:
            if not is_valid_interval_expression(interval.every):
                log_warn(
                    "Interval may be rejected by the scheduler",
                    {"schedule_id": schedule_id, "interval": interval.every},
                )

        workflow_name = options.get("workflow_type") or (
            workflow_info.public_name if workflow_info else method_name
        )
        workflow_options = {
            "workflow_type": workflow_name,
            "task_queue": task_queue,
            "args": list(options.get("args") or []),
            "workflow_id": options.get("workflow_id"),
            "memo": options.get("memo"),
            "search_attributes": options.get("search_attributes"),
        }

        return ScheduledMethodInfo(
            method_name=method_name,
            workflow_name=workflow_name,
            schedule_id=schedule_id,
            spec=spec,
            schedule_options=dict(options),
            workflow_options=workflow_options,
            handler=handler,
            controller=controller,
        )

    # -------------------------------------------------------------------------
    # Lookups
    # -------------------------------------------------------------------------

    def is_complete(self) -> bool:
        """True once a scan has finished without error."""
        return self._complete

    def get_controllers(self) -> list[ControllerInfo]:
        return list(self._controllers)

    def get_controller(self, name: str) -> ControllerInfo | None:
        for controller in self._controllers:
            if controller.name == name:
                return controller
        return None

    def get_workflow_method(self, name: str) -> WorkflowMethodInfo | None:
        return self._workflows.get(name)

    def get_workflow_names(self) -> list[str]:
        return list(self._workflows)

    def has_workflow(self, name: str) -> bool:
        return name in self._workflows

    def get_scheduled_workflows(self) -> list[ScheduledMethodInfo]:
        return list(self._scheduled.values())

    def get_scheduled_workflow(self, schedule_id: str) -> ScheduledMethodInfo | None:
        return self._scheduled.get(schedule_id)

    def get_schedule_ids(self) -> list[str]:
        return list(self._scheduled)

    def has_schedule(self, schedule_id: str) -> bool:
        return schedule_id in self._scheduled

    def get_activities(self, task_queue: str | None = None) -> list[ActivityMethodInfo]:
        """Activity methods, optionally limited to one task queue."""
        return [
            info
            for info in self._activities
            if task_queue is None or info.task_queue == task_queue
        ]

    def get_stats(self) -> DiscoveryStats:
        """Summary counters over the current inventory."""
        return DiscoveryStats(
            controllers=len(self._controllers),
            methods=sum(len(c.workflow_methods) for c in self._controllers),
            signals=sum(len(c.signal_methods) for c in self._controllers),
            queries=sum(len(c.query_methods) for c in self._controllers),
            scheduled=len(self._scheduled),
            activities=len(self._activities),
        )


__all__ = [
    "ActivityMethodInfo",
    "ControllerInfo",
    "ControllerProvider",
    "MetadataRegistry",
    "MethodInfo",
    "QueryMethodInfo",
    "ScheduledMethodInfo",
    "SignalMethodInfo",
    "StaticControllerProvider",
    "WorkflowMethodInfo",
]
