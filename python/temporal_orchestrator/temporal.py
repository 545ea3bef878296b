"""Adapters binding the orchestrator to the ``temporalio`` SDK.

This is the only module that imports ``temporalio``. It provides:

- ``connect``: open a Client from a ConnectionConfig.
- ``TemporalScheduleClient``: the ScheduleClient used by ScheduleRegistry.
- ``TemporalWorkerFactory``: the WorkerFactory used by
  WorkerLifecycleManager.

Example:
    >>> client = await connect(config.connection)
    >>> orchestrator = TemporalOrchestrator(
    ...     config,
    ...     client=client,
    ...     schedule_client=TemporalScheduleClient(client),
    ...     worker_factory=TemporalWorkerFactory(client),
    ... )
"""

from __future__ import annotations

import importlib
import inspect
import pkgutil
from collections.abc import Callable, Sequence
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path
from typing import Any

from temporalio import activity as temporal_activity
from temporalio.client import (
    Client,
    Schedule,
    ScheduleActionStartWorkflow,
    ScheduleCalendarSpec,
    ScheduleIntervalSpec,
    ScheduleOverlapPolicy,
    ScheduleRange,
    ScheduleState,
    TLSConfig,
)
from temporalio.client import ScheduleHandle as TemporalHandle
from temporalio.client import ScheduleSpec as TemporalScheduleSpec
from temporalio.service import RPCError, RPCStatusCode
from temporalio.worker import Worker

from .config import ConnectionConfig
from .discovery import ActivityMethodInfo
from .exceptions import ConnectivityError, ScheduleValidationError, ValidationError, extract_error_message
from .logging import log_debug, log_info
from .schedule_spec import interval_to_timedelta
from .types import ScheduleAction, ScheduleSpec
from .worker import WorkerDefinition

WORKFLOW_DEFINITION_ATTR = "__temporal_workflow_definition"

_CALENDAR_BOUNDS = {
    "second": (0, 59),
    "minute": (0, 59),
    "hour": (0, 23),
    "day_of_month": (1, 31),
    "month": (1, 12),
    "day_of_week": (0, 6),
}


# =============================================================================
# Connection
# =============================================================================


def _read_pem(path: str | None) -> bytes | None:
    if not path:
        return None
    return Path(path).read_bytes()


def build_tls_config(connection: ConnectionConfig) -> TLSConfig | bool:
    """TLSConfig from file paths, or False when TLS is off."""
    tls = connection.tls
    if not tls.enabled:
        return False
    return TLSConfig(
        server_root_ca_cert=_read_pem(tls.server_root_ca_path),
        domain=tls.domain,
        client_cert=_read_pem(tls.client_cert_path),
        client_private_key=_read_pem(tls.client_key_path),
    )


async def connect(connection: ConnectionConfig) -> Client:
    """Connect to the Temporal frontend.

    Raises:
        ConnectivityError: If the connection cannot be established.
    """
    kwargs: dict[str, Any] = {
        "namespace": connection.namespace,
        "tls": build_tls_config(connection),
        "rpc_metadata": dict(connection.metadata),
    }
    if connection.api_key:
        kwargs["api_key"] = connection.api_key
    if connection.identity:
        kwargs["identity"] = connection.identity

    try:
        client = await Client.connect(connection.address, **kwargs)
    except Exception as e:
        raise ConnectivityError(
            f"Failed to connect to Temporal at {connection.address}: {extract_error_message(e)}",
            metadata={"address": connection.address, "namespace": connection.namespace},
        ) from e

    log_info(
        "Connected to Temporal",
        {"address": connection.address, "namespace": connection.namespace},
    )
    return client


# =============================================================================
# Schedules
# =============================================================================


def _calendar_ranges(field_name: str, value: Any) -> list[ScheduleRange]:
    low, high = _CALENDAR_BOUNDS[field_name]
    ranges = []
    for part in value if isinstance(value, (list, tuple)) else [value]:
        if isinstance(part, ScheduleRange):
            ranges.append(part)
            continue
        if isinstance(part, int):
            ranges.append(ScheduleRange(part))
            continue
        text = str(part).strip()
        base, _, step = text.partition("/")
        if base == "*":
            start, end = low, high
        elif "-" in base:
            first, _, last = base.partition("-")
            start, end = int(first), int(last)
        else:
            start = end = int(base)
        ranges.append(ScheduleRange(start, end, int(step) if step else 0))
    return ranges


def to_temporal_calendar(rule: Any) -> ScheduleCalendarSpec:
    """Convert a calendar rule mapping to a ScheduleCalendarSpec.

    Keys are ``second``, ``minute``, ``hour``, ``day_of_month``, ``month``,
    ``day_of_week`` and ``comment``; values are ints, ``"*"``, ``"a-b"``,
    ``"*/n"`` or lists of those. Omitted fields keep the SDK defaults.
    """
    if isinstance(rule, ScheduleCalendarSpec):
        return rule
    if not isinstance(rule, dict):
        raise ScheduleValidationError(f"Unsupported calendar rule: {rule!r}")
    kwargs: dict[str, Any] = {}
    for key, value in rule.items():
        if key == "comment":
            kwargs["comment"] = value
        elif key in _CALENDAR_BOUNDS:
            try:
                kwargs[key] = _calendar_ranges(key, value)
            except ValueError as e:
                raise ScheduleValidationError(f"Invalid calendar {key}: {value!r}") from e
        else:
            raise ScheduleValidationError(f"Unknown calendar field '{key}'")
    return ScheduleCalendarSpec(**kwargs)


def to_temporal_spec(spec: ScheduleSpec) -> TemporalScheduleSpec:
    return TemporalScheduleSpec(
        cron_expressions=list(spec.cron_expressions),
        intervals=[
            ScheduleIntervalSpec(
                every=interval_to_timedelta(interval.every),
                offset=interval_to_timedelta(interval.offset) if interval.offset else None,
            )
            for interval in spec.intervals
        ],
        calendars=[to_temporal_calendar(rule) for rule in spec.calendars],
        time_zone_name=spec.time_zone,
        jitter=interval_to_timedelta(spec.jitter) if spec.jitter else None,
    )


def to_temporal_action(schedule_id: str, action: ScheduleAction) -> ScheduleActionStartWorkflow:
    return ScheduleActionStartWorkflow(
        action.workflow_type,
        args=list(action.args),
        id=action.workflow_id or schedule_id,
        task_queue=action.task_queue,
        execution_timeout=interval_to_timedelta(action.execution_timeout)
        if action.execution_timeout
        else None,
        run_timeout=interval_to_timedelta(action.run_timeout) if action.run_timeout else None,
        task_timeout=interval_to_timedelta(action.task_timeout) if action.task_timeout else None,
        memo=action.memo,
    )


class TemporalScheduleHandle:
    """RemoteScheduleHandle over a ``temporalio`` schedule handle."""

    def __init__(self, handle: TemporalHandle) -> None:
        self._handle = handle
        self.id = handle.id

    async def trigger(self, overlap: str | None = None) -> None:
        policy = ScheduleOverlapPolicy[overlap] if overlap else None
        await self._handle.trigger(overlap=policy)

    async def pause(self, note: str | None = None) -> None:
        await self._handle.pause(note=note)

    async def unpause(self, note: str | None = None) -> None:
        await self._handle.unpause(note=note)

    async def delete(self) -> None:
        await self._handle.delete()

    async def describe(self) -> Any:
        return await self._handle.describe()

    async def update(self, updater: Callable[[Any], Any]) -> None:
        await self._handle.update(updater)


class TemporalScheduleClient:
    """ScheduleClient backed by a ``temporalio`` Client."""

    def __init__(self, client: Client) -> None:
        self._client = client

    async def create_schedule(
        self,
        schedule_id: str,
        spec: ScheduleSpec,
        action: ScheduleAction,
        *,
        memo: dict[str, Any] | None = None,
        search_attributes: Any = None,
        paused: bool = False,
        note: str | None = None,
    ) -> TemporalScheduleHandle:
        schedule = Schedule(
            action=to_temporal_action(schedule_id, action),
            spec=to_temporal_spec(spec),
            state=ScheduleState(paused=paused, note=note),
        )
        kwargs: dict[str, Any] = {}
        if memo:
            kwargs["memo"] = memo
        if search_attributes is not None:
            kwargs["search_attributes"] = search_attributes
        handle = await self._client.create_schedule(schedule_id, schedule, **kwargs)
        return TemporalScheduleHandle(handle)

    async def get_schedule(self, schedule_id: str) -> TemporalScheduleHandle | None:
        handle = self._client.get_schedule_handle(schedule_id)
        try:
            await handle.describe()
        except RPCError as e:
            if e.status == RPCStatusCode.NOT_FOUND:
                return None
            raise
        return TemporalScheduleHandle(handle)

    async def list_schedules(self, max_items: int = 100) -> list[dict[str, Any]]:
        schedules: list[dict[str, Any]] = []
        async for entry in await self._client.list_schedules():
            state = getattr(getattr(entry, "schedule", None), "state", None)
            schedules.append(
                {
                    "schedule_id": entry.id,
                    "paused": getattr(state, "paused", False),
                    "note": getattr(state, "note", None),
                }
            )
            if len(schedules) >= max_items:
                break
        return schedules


# =============================================================================
# Workers
# =============================================================================


def _is_workflow_class(obj: Any) -> bool:
    return inspect.isclass(obj) and getattr(obj, WORKFLOW_DEFINITION_ATTR, None) is not None


def _import_object(path: str) -> Any:
    module_name, sep, attr = path.partition(":")
    if not sep:
        module_name, _, attr = path.rpartition(".")
    try:
        module = importlib.import_module(module_name)
        return getattr(module, attr)
    except (ImportError, AttributeError, ValueError) as e:
        raise ValidationError(f"Cannot import workflow '{path}': {e}") from e


def _workflows_in_module(module: Any) -> list[type]:
    return [
        obj
        for _, obj in inspect.getmembers(module, _is_workflow_class)
        if obj.__module__ == module.__name__
    ]


def discover_workflows(package_name: str) -> list[type]:
    """Collect workflow classes defined in a module or package tree.

    Raises:
        ValidationError: If the module cannot be imported.
    """
    try:
        package = importlib.import_module(package_name)
    except ImportError as e:
        raise ValidationError(f"Cannot import workflows_path '{package_name}': {e}") from e

    workflows = _workflows_in_module(package)
    if hasattr(package, "__path__"):
        for _, modname, _ in pkgutil.walk_packages(package.__path__, prefix=f"{package_name}."):
            try:
                module = importlib.import_module(modname)
            except ImportError as e:
                raise ValidationError(f"Cannot import workflow module '{modname}': {e}") from e
            workflows.extend(_workflows_in_module(module))

    log_debug(
        f"Discovered {len(workflows)} workflow(s) in {package_name}",
        {"workflows_path": package_name},
    )
    return workflows


def resolve_workflows(definition: WorkerDefinition) -> list[type]:
    if definition.workflows_path:
        return discover_workflows(definition.workflows_path)
    return [_import_object(w) if isinstance(w, str) else w for w in definition.workflows]


def as_temporal_activity(info: ActivityMethodInfo) -> Callable[..., Any]:
    """Register a discovered activity method under its public name."""
    handler = info.handler
    if handler is None:
        raise ValidationError(f"Activity '{info.public_name}' has no handler")

    if inspect.iscoroutinefunction(handler):

        async def run(*args: Any) -> Any:
            return await handler(*args)

    else:

        def run(*args: Any) -> Any:
            return handler(*args)

    run.__name__ = info.method_name
    run.__qualname__ = info.method_name
    return temporal_activity.defn(name=info.public_name)(run)


class TemporalWorkerFactory:
    """WorkerFactory building ``temporalio.worker.Worker`` instances."""

    def __init__(self, client: Client, *, activity_executor: ThreadPoolExecutor | None = None) -> None:
        self._client = client
        self._activity_executor = activity_executor

    def _client_for(self, namespace: str) -> Client:
        if namespace == self._client.namespace:
            return self._client
        return Client(
            self._client.service_client,
            namespace=namespace,
            data_converter=self._client.data_converter,
        )

    async def create_worker(
        self,
        definition: WorkerDefinition,
        namespace: str,
        activities: Sequence[ActivityMethodInfo],
    ) -> Worker:
        activity_fns = [as_temporal_activity(info) for info in activities]
        kwargs: dict[str, Any] = dict(definition.worker_options)
        if definition.max_concurrent_activities:
            kwargs["max_concurrent_activities"] = definition.max_concurrent_activities
        if definition.max_concurrent_workflow_tasks:
            kwargs["max_concurrent_workflow_tasks"] = definition.max_concurrent_workflow_tasks
        if any(not inspect.iscoroutinefunction(info.handler) for info in activities):
            if self._activity_executor is None:
                self._activity_executor = ThreadPoolExecutor(thread_name_prefix="temporal-activity")
            kwargs.setdefault("activity_executor", self._activity_executor)

        return Worker(
            self._client_for(namespace),
            task_queue=definition.task_queue,
            workflows=resolve_workflows(definition),
            activities=activity_fns,
            **kwargs,
        )


__all__ = [
    "TemporalScheduleClient",
    "TemporalScheduleHandle",
    "TemporalWorkerFactory",
    "as_temporal_activity",
    "build_tls_config",
    "connect",
    "discover_workflows",
    "resolve_workflows",
    "to_temporal_action",
    "to_temporal_calendar",
    "to_temporal_spec",
]
