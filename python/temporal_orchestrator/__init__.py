"""
Temporal Orchestrator

This package sits in front of a Temporal cluster: it discovers annotated
workflow controllers, turns their scheduling metadata into remote
schedules, manages workers per task queue, and aggregates the health of
all of these into one status.

Example:
    >>> from temporal_orchestrator import (
    ...     TemporalOrchestrator, StaticControllerProvider,
    ...     workflow_controller, workflow_method, scheduled,
    ... )
    >>>
    >>> @workflow_controller(task_queue="orders")
    ... class ReportController:
    ...     @workflow_method(name="DailyReport")
    ...     @scheduled("daily-report", cron="0 8 * * *")
    ...     async def daily_report(self) -> None:
    ...         ...

    >>> # Bootstrap against a real cluster
    >>> orchestrator = await bootstrap_orchestrator(controllers=[ReportController()])
    >>> orchestrator.get_discovery_stats().scheduled
    1

    >>> # Use structured logging
    >>> log_info("Report requested", {"schedule_id": "daily-report"})

    >>> await stop_orchestrator()
"""

from __future__ import annotations

__version__ = "0.1.0"

# Bootstrap
from temporal_orchestrator.bootstrap import (
    bootstrap_orchestrator,
    get_orchestrator,
    is_orchestrator_running,
    stop_orchestrator,
)

# Workflow client
from temporal_orchestrator.client import WorkflowClientService, generate_workflow_id

# Configuration
from temporal_orchestrator.config import (
    DEFAULT_TASK_QUEUE,
    ConnectionConfig,
    OrchestratorConfig,
    ReadinessSettings,
    ScheduleSettings,
    TLSSettings,
    load_config,
)

# Discovery
from temporal_orchestrator.discovery import (
    ActivityMethodInfo,
    ControllerInfo,
    ControllerProvider,
    MetadataRegistry,
    QueryMethodInfo,
    ScheduledMethodInfo,
    SignalMethodInfo,
    StaticControllerProvider,
    WorkflowMethodInfo,
)

# Exceptions
from temporal_orchestrator.exceptions import (
    ConnectivityError,
    InitializationError,
    NotFoundError,
    NotInitializedError,
    OrchestratorError,
    ScheduleNotFoundError,
    ScheduleOperationError,
    ScheduleValidationError,
    ValidationError,
    WorkerNotFoundError,
    WorkerStartError,
    WorkflowNotFoundError,
    WorkflowOperationError,
    extract_error_message,
)

# Logging
from temporal_orchestrator.logging import (
    LoggingConfig,
    get_logger,
    log_debug,
    log_error,
    log_info,
    log_trace,
    log_warn,
)

# Annotations
from temporal_orchestrator.metadata import (
    AttributeMetadataStore,
    InMemoryMetadataStore,
    MetadataStore,
    activity,
    cron_schedule,
    interval_schedule,
    query,
    scheduled,
    signal,
    workflow_controller,
    workflow_method,
)

# Health
from temporal_orchestrator.observability import aggregate_health, worker_health

# Schedules
from temporal_orchestrator.schedule_spec import ScheduleSpecBuilder, interval_to_timedelta
from temporal_orchestrator.schedules import ScheduleHandle, ScheduleRegistry, build_schedule_action

# Facade
from temporal_orchestrator.service import TemporalOrchestrator

# Temporal adapters
from temporal_orchestrator.temporal import (
    TemporalScheduleClient,
    TemporalWorkerFactory,
    connect,
)

# Models
from temporal_orchestrator.types import (
    ClientHealth,
    ComponentHealth,
    DiscoveryStats,
    HealthReport,
    HealthStatus,
    InitializationResult,
    IntervalSpec,
    LogContext,
    MultipleWorkersInfo,
    ProbeResult,
    ScheduleAction,
    ScheduleSpec,
    ScheduleStats,
    ServiceStatistics,
    WorkerState,
    WorkerStatus,
    WorkflowActionResult,
    WorkflowExecution,
    WorkflowSource,
)

# Workers
from temporal_orchestrator.worker import WorkerDefinition, WorkerLifecycleManager

__all__ = [
    # Version
    "__version__",
    # Bootstrap
    "bootstrap_orchestrator",
    "get_orchestrator",
    "is_orchestrator_running",
    "stop_orchestrator",
    # Facade
    "TemporalOrchestrator",
    # Client
    "WorkflowClientService",
    "generate_workflow_id",
    # Configuration
    "DEFAULT_TASK_QUEUE",
    "ConnectionConfig",
    "OrchestratorConfig",
    "ReadinessSettings",
    "ScheduleSettings",
    "TLSSettings",
    "load_config",
    # Discovery
    "ActivityMethodInfo",
    "ControllerInfo",
    "ControllerProvider",
    "MetadataRegistry",
    "QueryMethodInfo",
    "ScheduledMethodInfo",
    "SignalMethodInfo",
    "StaticControllerProvider",
    "WorkflowMethodInfo",
    # Annotations
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
    # Schedules
    "ScheduleHandle",
    "ScheduleRegistry",
    "ScheduleSpecBuilder",
    "build_schedule_action",
    "interval_to_timedelta",
    # Workers
    "WorkerDefinition",
    "WorkerLifecycleManager",
    # Health
    "aggregate_health",
    "worker_health",
    # Temporal adapters
    "TemporalScheduleClient",
    "TemporalWorkerFactory",
    "connect",
    # Exceptions
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
    # Logging
    "LoggingConfig",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_trace",
    "log_warn",
    # Models
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
