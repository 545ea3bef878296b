"""Pydantic models for the temporal orchestrator.

This module provides the type-safe data models shared by the discovery,
scheduling, worker and health components, using Pydantic v2 for
validation and serialization.

Groups:
- Schedules: ScheduleSpec, IntervalSpec, ScheduleAction, ScheduleStats
- Workers: WorkerState, WorkflowSource, WorkerStatus, MultipleWorkersInfo
- Health: HealthStatus, ComponentHealth, ClientHealth, HealthReport
- Facade results: WorkflowExecution, WorkflowActionResult, InitializationResult
"""

from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel, Field

# =============================================================================
# Schedules
# =============================================================================


class IntervalSpec(BaseModel):
    """One interval entry of a schedule spec.

    Example:
        >>> IntervalSpec(every="10s").every
        '10s'
    """

    every: str = Field(description="Duration string with a unit suffix (ms, s, m, h).")
    offset: str | None = Field(
        default=None,
        description="Optional offset within each interval.",
    )


class ScheduleSpec(BaseModel):
    """Normalized schedule specification handed to the remote scheduler.

    Multiple entries within one field are OR-combined: any match fires
    the schedule. ``time_zone`` is left unset by the builder so the
    registry can apply its deployment default.
    """

    cron_expressions: list[str] = Field(
        default_factory=list,
        description="Cron expressions, stored verbatim.",
    )
    intervals: list[IntervalSpec] = Field(
        default_factory=list,
        description="Interval entries.",
    )
    calendars: list[Any] = Field(
        default_factory=list,
        description="Calendar rules, stored as given.",
    )
    time_zone: str | None = Field(
        default=None,
        description="IANA time zone name. Defaulted to UTC by the registry.",
    )
    jitter: str | None = Field(
        default=None,
        description="Optional jitter duration, copied through unchanged.",
    )

    def is_empty(self) -> bool:
        """Return True when no cron, interval or calendar entry is present."""
        return not (self.cron_expressions or self.intervals or self.calendars)


class ScheduleAction(BaseModel):
    """Start-workflow action executed each time a schedule fires."""

    workflow_type: str = Field(description="Workflow type name to start.")
    task_queue: str = Field(default="default", description="Task queue to dispatch to.")
    args: list[Any] = Field(default_factory=list, description="Workflow arguments.")
    workflow_id: str | None = Field(
        default=None,
        description="Workflow id prefix. Defaults to the schedule id.",
    )
    memo: dict[str, Any] | None = Field(default=None, description="Workflow memo.")
    execution_timeout: str | None = Field(
        default=None,
        description="Workflow execution timeout as a duration string.",
    )
    run_timeout: str | None = Field(
        default=None,
        description="Workflow run timeout as a duration string.",
    )
    task_timeout: str | None = Field(
        default=None,
        description="Workflow task timeout as a duration string.",
    )


class ScheduleStats(BaseModel):
    """Counters reported by the schedule registry."""

    total: int = Field(default=0, description="Schedules held in the local cache.")
    active: int = Field(default=0, description="Cached schedules not paused locally.")
    paused: int = Field(default=0, description="Cached schedules paused through the registry.")
    errors: int = Field(default=0, description="Schedules whose latest registration attempt failed.")


# =============================================================================
# Workers
# =============================================================================


class WorkerState(str, Enum):
    """Worker lifecycle states.

    ``uninitialized -> initializing -> running <-> stopping -> stopped``,
    with ``error`` reachable from initializing, running and stopping.
    """

    UNINITIALIZED = "uninitialized"
    """Worker is registered but has not been constructed."""

    INITIALIZING = "initializing"
    """Worker is being constructed and launched."""

    RUNNING = "running"
    """Worker is polling its task queue."""

    STOPPING = "stopping"
    """Worker is draining and shutting down."""

    STOPPED = "stopped"
    """Worker has fully stopped."""

    ERROR = "error"
    """Worker failed to start, run or stop."""


class WorkflowSource(str, Enum):
    """Where a worker's workflow definitions come from."""

    BUNDLE = "bundle"
    FILESYSTEM = "filesystem"
    NONE = "none"


class WorkerStatus(BaseModel):
    """Snapshot of a single worker.

    ``is_initialized``, ``is_running`` and ``is_healthy`` are independent:
    ``is_healthy`` is an externally reported liveness signal.
    """

    is_initialized: bool = Field(default=False, description="Worker object was constructed.")
    is_running: bool = Field(default=False, description="Worker is polling its task queue.")
    is_healthy: bool = Field(default=False, description="Last reported liveness signal.")
    state: WorkerState = Field(default=WorkerState.UNINITIALIZED, description="Lifecycle state.")
    task_queue: str = Field(description="Task queue the worker polls.")
    namespace: str = Field(default="default", description="Temporal namespace.")
    workflow_source: WorkflowSource = Field(
        default=WorkflowSource.NONE,
        description="Where workflow definitions come from.",
    )
    activities_count: int = Field(default=0, description="Number of registered activities.")
    last_error: str | None = Field(default=None, description="Most recent error message.")
    started_at: datetime | None = Field(default=None, description="When the worker last started.")
    uptime: float | None = Field(
        default=None,
        description="Seconds since started_at while running.",
    )
    restart_count: int = Field(default=0, description="Completed restarts.")


class MultipleWorkersInfo(BaseModel):
    """Status of every worker known to the lifecycle manager."""

    workers: dict[str, WorkerStatus] = Field(
        default_factory=dict,
        description="Worker status keyed by task queue.",
    )
    total_workers: int = Field(default=0, description="Registered workers.")
    running_workers: int = Field(default=0, description="Workers currently running.")
    healthy_workers: int = Field(default=0, description="Workers reporting healthy.")


# =============================================================================
# Discovery
# =============================================================================


class DiscoveryStats(BaseModel):
    """Summary counters of the discovered inventory."""

    controllers: int = Field(default=0, description="Scanned controllers.")
    methods: int = Field(default=0, description="Workflow methods.")
    signals: int = Field(default=0, description="Signal methods.")
    queries: int = Field(default=0, description="Query methods.")
    scheduled: int = Field(default=0, description="Scheduled methods.")
    activities: int = Field(default=0, description="Activity methods.")


# =============================================================================
# Health
# =============================================================================


class HealthStatus(str, Enum):
    """Aggregated health states, ordered from best to worst."""

    HEALTHY = "healthy"
    DEGRADED = "degraded"
    UNHEALTHY = "unhealthy"
    NOT_AVAILABLE = "not_available"


class ClientHealth(BaseModel):
    """Connectivity signal for the Temporal client."""

    status: HealthStatus = Field(description="healthy or unhealthy.")
    namespace: str | None = Field(default=None, description="Connected namespace.")
    last_check: datetime | None = Field(default=None, description="When connectivity was last checked.")
    error: str | None = Field(default=None, description="Last connectivity error.")

    @property
    def is_healthy(self) -> bool:
        return self.status == HealthStatus.HEALTHY


class ComponentHealth(BaseModel):
    """Health of one component inside a HealthReport."""

    name: str = Field(description="Component name.")
    status: HealthStatus = Field(description="Component status.")
    message: str | None = Field(default=None, description="Why the component has this status.")
    details: dict[str, Any] = Field(default_factory=dict, description="Component snapshot.")


class HealthReport(BaseModel):
    """Overall status derived from all component snapshots.

    Never persisted; recomputed on every query.
    """

    status: HealthStatus = Field(description="Overall status.")
    components: dict[str, ComponentHealth] = Field(
        default_factory=dict,
        description="Per-component health keyed by component name.",
    )
    reasons: list[str] = Field(
        default_factory=list,
        description="Conditions that lowered the overall status.",
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the report was computed.",
    )


class ServiceStatistics(BaseModel):
    """Aggregated counters returned by the orchestrator's get_stats()."""

    activities: dict[str, int] = Field(default_factory=dict, description="Activity counters.")
    schedules: ScheduleStats = Field(default_factory=ScheduleStats, description="Schedule counters.")
    discovery: DiscoveryStats = Field(default_factory=DiscoveryStats, description="Discovery counters.")
    workers: MultipleWorkersInfo = Field(
        default_factory=MultipleWorkersInfo,
        description="Worker counters.",
    )
    client_connected: bool = Field(default=False, description="Whether the client is healthy.")
    initialized: bool = Field(default=False, description="Whether initialize() completed.")
    error: str | None = Field(default=None, description="Set when stats could not be collected.")


# =============================================================================
# Facade results
# =============================================================================


class WorkflowExecution(BaseModel):
    """Handle to a started workflow execution."""

    workflow_id: str = Field(description="Workflow id.")
    run_id: str | None = Field(default=None, description="Run id of the first execution.")


class WorkflowActionResult(BaseModel):
    """Outcome of a fire-and-report workflow operation (terminate, cancel)."""

    success: bool = Field(description="Whether the operation succeeded.")
    workflow_id: str = Field(description="Target workflow id.")
    reason: str | None = Field(default=None, description="Reason passed to the engine.")
    error: str | None = Field(default=None, description="Error message when success is False.")


class InitializationResult(BaseModel):
    """Outcome of TemporalOrchestrator.initialize()."""

    success: bool = Field(description="Whether initialization completed.")
    services_initialized: dict[str, bool] = Field(
        default_factory=dict,
        description="Per-subsystem readiness after initialization.",
    )
    initialization_time: float = Field(default=0.0, description="Seconds spent initializing.")
    errors: list[str] = Field(default_factory=list, description="Non-fatal errors.")


class ProbeResult(BaseModel):
    """Result of a liveness, readiness or startup probe."""

    status: str = Field(description="ok, ready, not_ready, started or starting.")
    checks: dict[str, bool] = Field(default_factory=dict, description="Individual check results.")
    timestamp: datetime = Field(default_factory=datetime.now, description="When the probe ran.")


# =============================================================================
# Logging
# =============================================================================


class LogContext(BaseModel):
    """Structured logging context.

    Example:
        >>> ctx = LogContext(task_queue="orders", schedule_id="daily-report")
        >>> log_info("Schedule created", ctx)
    """

    task_queue: str | None = Field(default=None, description="Task queue involved.")
    workflow_id: str | None = Field(default=None, description="Workflow id involved.")
    workflow_type: str | None = Field(default=None, description="Workflow type involved.")
    schedule_id: str | None = Field(default=None, description="Schedule id involved.")
    namespace: str | None = Field(default=None, description="Temporal namespace.")
    operation: str | None = Field(default=None, description="Operation being performed.")

    model_config = {"extra": "allow"}


__all__ = [
    "ClientHealth",
    "ComponentHealth",
    "DiscoveryStats",
    "HealthReport",
    "HealthStatus",
    "InitializationResult",
    "IntervalSpec",
    "LogContext",
    "MultipleWorkersInfo",
    "ProbeResult",
    "ScheduleAction",
    "ScheduleSpec",
    "ScheduleStats",
    "ServiceStatistics",
    "WorkerState",
    "WorkerStatus",
    "WorkflowActionResult",
    "WorkflowExecution",
    "WorkflowSource",
]
