"""Schedule registration and the schedule handle cache.

ScheduleRegistry creates, tracks and mutates schedules on the remote
scheduler through a ScheduleClient. It keeps a local write-through cache
of handles keyed by schedule id:

- ``create`` returns the cached handle on a hit without a remote call.
- ``get`` falls back to the remote scheduler and caches what it finds.
- ``delete`` evicts.

The cache is a restart-volatile mirror; the remote scheduler remains the
source of truth. A schedule deleted out-of-band stays cached until the
process restarts.

Example:
    >>> registry = ScheduleRegistry(schedule_client, default_time_zone="UTC")
    >>> spec = ScheduleSpecBuilder.build({"cron": "0 8 * * *"})
    >>> action = ScheduleAction(workflow_type="DailyReport", task_queue="orders")
    >>> handle = await registry.create("daily-report", spec, action)
    >>> await registry.pause("daily-report")
"""

from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Sequence
from dataclasses import dataclass
from typing import Any, Protocol

from .discovery import ScheduledMethodInfo
from .exceptions import (
    NotFoundError,
    OrchestratorError,
    ScheduleNotFoundError,
    ScheduleOperationError,
    ScheduleValidationError,
    ValidationError,
    extract_error_message,
)
from .logging import log_debug, log_error, log_info
from .schedule_spec import ScheduleSpecBuilder
from .types import ScheduleAction, ScheduleSpec, ScheduleStats
from .validation import validate_task_queue

DEFAULT_SCHEDULE_TASK_QUEUE = "default"
DEFAULT_LIST_LIMIT = 100

OVERLAP_POLICIES = {
    "skip": "SKIP",
    "buffer_one": "BUFFER_ONE",
    "buffer_all": "BUFFER_ALL",
    "cancel_other": "CANCEL_OTHER",
    "terminate_other": "TERMINATE_OTHER",
    "allow_all": "ALLOW_ALL",
}


class RemoteScheduleHandle(Protocol):
    """Handle to one schedule on the remote scheduler."""

    id: str

    async def trigger(self, overlap: str | None = None) -> None: ...

    async def pause(self, note: str | None = None) -> None: ...

    async def unpause(self, note: str | None = None) -> None: ...

    async def delete(self) -> None: ...

    async def describe(self) -> Any: ...

    async def update(self, updater: Callable[[Any], Any]) -> None: ...


class ScheduleClient(Protocol):
    """Remote scheduler operations used by the registry."""

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
    ) -> RemoteScheduleHandle: ...

    async def get_schedule(self, schedule_id: str) -> RemoteScheduleHandle | None:
        """Return a handle, or None if the scheduler has no such schedule."""
        ...

    async def list_schedules(self, max_items: int = DEFAULT_LIST_LIMIT) -> list[dict[str, Any]]: ...


@dataclass
class ScheduleHandle:
    """Cached reference to a remote schedule."""

    schedule_id: str
    handle: RemoteScheduleHandle


def build_schedule_action(info: ScheduledMethodInfo) -> ScheduleAction:
    """Assemble the start-workflow action for a discovered schedule.

    An absent task queue defaults to ``"default"``.
    """
    options = info.workflow_options
    return ScheduleAction(
        workflow_type=options.get("workflow_type") or info.workflow_name,
        task_queue=options.get("task_queue") or DEFAULT_SCHEDULE_TASK_QUEUE,
        args=list(options.get("args") or []),
        workflow_id=options.get("workflow_id"),
        memo=options.get("memo"),
    )


class ScheduleRegistry:
    """Creates, caches and mutates remote schedules."""

    def __init__(self, client: ScheduleClient, *, default_time_zone: str = "UTC") -> None:
        self._client = client
        self._default_time_zone = default_time_zone
        self._handles: dict[str, ScheduleHandle] = {}
        self._paused: set[str] = set()
        self._failures: dict[str, str] = {}

    # -------------------------------------------------------------------------
    # Creation and lookup
    # -------------------------------------------------------------------------

    async def create(
        self,
        schedule_id: str,
        spec: ScheduleSpec,
        action: ScheduleAction,
        memo: dict[str, Any] | None = None,
        search_attributes: Any = None,
        *,
        paused: bool = False,
        note: str | None = None,
    ) -> ScheduleHandle:
        """Create a schedule, or return the cached handle for its id.

        Raises:
            ScheduleValidationError: If the id is blank or the spec is empty.
            ValidationError: If the action has a blank task queue.
            ScheduleOperationError: If the remote create call fails.
        """
        if not schedule_id or not schedule_id.strip():
            raise ScheduleValidationError("Schedule ID is required")

        cached = self._handles.get(schedule_id)
        if cached is not None:
            log_debug("Schedule already cached, skipping create", {"schedule_id": schedule_id})
            return cached

        if spec.is_empty():
            raise ScheduleValidationError("Either cron or interval must be provided")
        validate_task_queue(action.task_queue)
        if spec.time_zone is None:
            spec = spec.model_copy(update={"time_zone": self._default_time_zone})

        try:
            remote = await self._client.create_schedule(
                schedule_id,
                spec,
                action,
                memo=memo,
                search_attributes=search_attributes,
                paused=paused,
                note=note,
            )
        except OrchestratorError:
            raise
        except Exception as e:
            raise ScheduleOperationError(
                f"Failed to create schedule '{schedule_id}': {extract_error_message(e)}",
                metadata={"schedule_id": schedule_id},
            ) from e

        handle = ScheduleHandle(schedule_id=schedule_id, handle=remote)
        self._handles[schedule_id] = handle
        if paused:
            self._paused.add(schedule_id)
        log_info(
            "Created schedule",
            {
                "schedule_id": schedule_id,
                "workflow_type": action.workflow_type,
                "task_queue": action.task_queue,
            },
        )
        return handle

    async def get(self, schedule_id: str) -> ScheduleHandle:
        """Return the handle for an id, fetching it remotely when not cached.

        Raises:
            ScheduleNotFoundError: If neither the cache nor the scheduler
                knows the id.
        """
        cached = self._handles.get(schedule_id)
        if cached is not None:
            return cached

        try:
            remote = await self._client.get_schedule(schedule_id)
        except NotFoundError as e:
            raise ScheduleNotFoundError(schedule_id) from e
        except OrchestratorError:
            raise
        except Exception as e:
            raise ScheduleOperationError(
                f"Failed to get schedule '{schedule_id}': {extract_error_message(e)}",
                metadata={"schedule_id": schedule_id},
            ) from e

        if remote is None:
            raise ScheduleNotFoundError(schedule_id)

        handle = ScheduleHandle(schedule_id=schedule_id, handle=remote)
        self._handles[schedule_id] = handle
        return handle

    async def exists(self, schedule_id: str) -> bool:
        try:
            await self.get(schedule_id)
        except ScheduleNotFoundError:
            return False
        return True

    def handles(self) -> dict[str, ScheduleHandle]:
        """Snapshot of the local handle cache."""
        return dict(self._handles)

    # -------------------------------------------------------------------------
    # Mutations
    # -------------------------------------------------------------------------

    async def _call(
        self,
        operation: str,
        schedule_id: str,
        call: Callable[[RemoteScheduleHandle], Awaitable[Any]],
    ) -> Any:
        handle = await self.get(schedule_id)
        try:
            return await call(handle.handle)
        except OrchestratorError:
            raise
        except Exception as e:
            raise ScheduleOperationError(
                f"Failed to {operation} schedule '{schedule_id}': {extract_error_message(e)}",
                metadata={"schedule_id": schedule_id, "operation": operation},
            ) from e

    async def trigger(self, schedule_id: str, overlap: str | None = None) -> None:
        """Fire a schedule immediately.

        Args:
            overlap: One of skip, buffer_one, buffer_all, cancel_other,
                terminate_other, allow_all. Defaults to allow_all.
        """
        policy = OVERLAP_POLICIES.get((overlap or "allow_all").lower())
        if policy is None:
            raise ValidationError(
                f"Unknown overlap policy '{overlap}', expected one of {sorted(OVERLAP_POLICIES)}"
            )
        await self._call("trigger", schedule_id, lambda h: h.trigger(policy))
        log_info("Triggered schedule", {"schedule_id": schedule_id, "overlap": policy})

    async def pause(self, schedule_id: str, note: str = "Paused via orchestrator") -> None:
        await self._call("pause", schedule_id, lambda h: h.pause(note))
        self._paused.add(schedule_id)
        log_info("Paused schedule", {"schedule_id": schedule_id})

    async def resume(self, schedule_id: str, note: str = "Resumed via orchestrator") -> None:
        await self._call("resume", schedule_id, lambda h: h.unpause(note))
        self._paused.discard(schedule_id)
        log_info("Resumed schedule", {"schedule_id": schedule_id})

    async def delete(self, schedule_id: str) -> None:
        await self._call("delete", schedule_id, lambda h: h.delete())
        self._handles.pop(schedule_id, None)
        self._paused.discard(schedule_id)
        log_info("Deleted schedule", {"schedule_id": schedule_id})

    async def describe(self, schedule_id: str) -> Any:
        return await self._call("describe", schedule_id, lambda h: h.describe())

    async def update(self, schedule_id: str, updater: Callable[[Any], Any]) -> None:
        """Apply an updater callback to the remote schedule description."""
        await self._call("update", schedule_id, lambda h: h.update(updater))
        log_info("Updated schedule", {"schedule_id": schedule_id})

    async def list(self, max_items: int = DEFAULT_LIST_LIMIT) -> list[dict[str, Any]]:
        """List schedules known to the remote scheduler."""
        try:
            return await self._client.list_schedules(max_items)
        except Exception as e:
            raise ScheduleOperationError(
                f"Failed to list schedules: {extract_error_message(e)}"
            ) from e

    # -------------------------------------------------------------------------
    # Convenience constructors
    # -------------------------------------------------------------------------

    async def create_cron_schedule(
        self,
        schedule_id: str,
        workflow_type: str,
        cron: str | Sequence[str],
        *,
        task_queue: str = DEFAULT_SCHEDULE_TASK_QUEUE,
        args: Sequence[Any] | None = None,
        timezone: str | None = None,
        memo: dict[str, Any] | None = None,
    ) -> ScheduleHandle:
        spec = ScheduleSpecBuilder.build({"cron": cron, "timezone": timezone})
        action = ScheduleAction(
            workflow_type=workflow_type, task_queue=task_queue, args=list(args or [])
        )
        return await self.create(schedule_id, spec, action, memo)

    async def create_interval_schedule(
        self,
        schedule_id: str,
        workflow_type: str,
        interval: int | str | Sequence[int | str],
        *,
        task_queue: str = DEFAULT_SCHEDULE_TASK_QUEUE,
        args: Sequence[Any] | None = None,
        memo: dict[str, Any] | None = None,
    ) -> ScheduleHandle:
        spec = ScheduleSpecBuilder.build({"interval": interval})
        action = ScheduleAction(
            workflow_type=workflow_type, task_queue=task_queue, args=list(args or [])
        )
        return await self.create(schedule_id, spec, action, memo)

    # -------------------------------------------------------------------------
    # Discovered schedules
    # -------------------------------------------------------------------------

    async def register_discovered(self, scheduled: Iterable[ScheduledMethodInfo]) -> int:
        """Materialize discovered schedules on the remote scheduler.

        A schedule that already exists remotely is adopted into the cache
        instead of being re-created. Failures are counted and logged; they
        do not stop the remaining registrations.

        Returns:
            Number of schedules now held in the cache for the given infos.
        """
        registered = 0
        for info in scheduled:
            try:
                if await self.exists(info.schedule_id):
                    log_debug(
                        "Schedule already exists, skipping creation",
                        {"schedule_id": info.schedule_id},
                    )
                else:
                    paused = bool(info.schedule_options.get("paused"))
                    await self.create(
                        info.schedule_id,
                        info.spec,
                        build_schedule_action(info),
                        info.workflow_options.get("memo"),
                        info.workflow_options.get("search_attributes"),
                        paused=paused,
                        note="Started in paused state" if paused else None,
                    )
                self._failures.pop(info.schedule_id, None)
                registered += 1
            except OrchestratorError as e:
                self._failures[info.schedule_id] = e.message
                log_error(
                    "Failed to register schedule",
                    {"schedule_id": info.schedule_id, "error": e.message},
                )
        return registered

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def get_stats(self) -> ScheduleStats:
        total = len(self._handles)
        paused = len(self._paused & self._handles.keys())
        return ScheduleStats(
            total=total,
            active=total - paused,
            paused=paused,
            errors=len(self._failures),
        )

    def get_failures(self) -> dict[str, str]:
        """Last registration error per schedule id."""
        return dict(self._failures)

    def is_healthy(self) -> bool:
        return not self._failures


__all__ = [
    "DEFAULT_SCHEDULE_TASK_QUEUE",
    "OVERLAP_POLICIES",
    "RemoteScheduleHandle",
    "ScheduleClient",
    "ScheduleHandle",
    "ScheduleRegistry",
    "build_schedule_action",
]
