"""The orchestrator facade.

TemporalOrchestrator composes discovery, schedule registration, worker
lifecycle and health aggregation behind one API.

Initialization order:
1. Scan controllers (validation errors abort here, before any remote call).
2. Wait, bounded, for client connectivity and discovery completeness.
   The wait is best effort: on timeout a warning is logged and
   initialization continues.
3. Register discovered schedules.
4. Register configured workers and start those with auto_start.

Error policy per operation:
- start/signal/query workflow: validate, log failures, raise.
- terminate/cancel workflow: never raise for engine failures; return a
  WorkflowActionResult with ``success=False``.
- schedule operations: raise; unknown ids raise ScheduleNotFoundError.
- get_health/get_overall_health/get_stats: never raise.

Every operation except the health and statistics reads raises
NotInitializedError until initialize() has completed.

Example:
    >>> orchestrator = TemporalOrchestrator(
    ...     config,
    ...     client=client,
    ...     schedule_client=TemporalScheduleClient(client),
    ...     worker_factory=TemporalWorkerFactory(client),
    ...     controller_provider=StaticControllerProvider([ReportController()]),
    ... )
    >>> await orchestrator.initialize()
    >>> await orchestrator.start_workflow("DailyReport", task_queue="orders")
    >>> await orchestrator.shutdown()
"""

from __future__ import annotations

import asyncio
import time
from collections.abc import Callable, Mapping, Sequence
from typing import Any

from .client import WorkflowClientService
from .config import OrchestratorConfig
from .discovery import (
    ControllerProvider,
    MetadataRegistry,
    ScheduledMethodInfo,
    WorkflowMethodInfo,
)
from .exceptions import (
    ConnectivityError,
    NotInitializedError,
    ValidationError,
    WorkflowNotFoundError,
    extract_error_message,
)
from .logging import log_error, log_info, log_warn
from .metadata import DEFAULT_STORE, MetadataStore
from .observability import aggregate_health, worker_health
from .schedule_spec import ScheduleSpecBuilder
from .schedules import ScheduleClient, ScheduleHandle, ScheduleRegistry
from .types import (
    ComponentHealth,
    DiscoveryStats,
    HealthReport,
    HealthStatus,
    InitializationResult,
    MultipleWorkersInfo,
    ProbeResult,
    ScheduleAction,
    ScheduleSpec,
    ScheduleStats,
    ServiceStatistics,
    WorkerStatus,
    WorkflowActionResult,
    WorkflowExecution,
)
from .validation import (
    validate_query_name,
    validate_signal_name,
    validate_workflow_id,
    validate_workflow_type,
)
from .worker import WorkerDefinition, WorkerFactory, WorkerLifecycleManager


class TemporalOrchestrator:
    """Unified facade over discovery, schedules, workers and health."""

    def __init__(
        self,
        config: OrchestratorConfig | None = None,
        *,
        client: Any = None,
        schedule_client: ScheduleClient | None = None,
        worker_factory: WorkerFactory | None = None,
        controller_provider: ControllerProvider | None = None,
        metadata_store: MetadataStore = DEFAULT_STORE,
    ) -> None:
        self.config = config or OrchestratorConfig()
        if self.config.workers and worker_factory is None:
            raise ValidationError("Workers are configured but no worker factory was supplied")

        namespace = self.config.connection.namespace
        self._client = WorkflowClientService(client, namespace=namespace)
        self._discovery = MetadataRegistry(controller_provider, metadata_store)
        self._schedules = (
            ScheduleRegistry(
                schedule_client,
                default_time_zone=self.config.schedules.default_time_zone,
            )
            if schedule_client is not None
            else None
        )
        self._workers = (
            WorkerLifecycleManager(
                worker_factory,
                namespace=namespace,
                allow_worker_failure=self.config.allow_worker_failure,
                activities_provider=self._discovery.get_activities,
            )
            if worker_factory is not None
            else None
        )

        self._initialized = False
        self._initializing: asyncio.Future[InitializationResult] | None = None
        self._shutdown: asyncio.Future[None] | None = None

    # -------------------------------------------------------------------------
    # Components
    # -------------------------------------------------------------------------

    @property
    def client(self) -> WorkflowClientService:
        return self._client

    @property
    def discovery(self) -> MetadataRegistry:
        return self._discovery

    @property
    def schedules(self) -> ScheduleRegistry:
        if self._schedules is None:
            raise ConnectivityError("No schedule client is configured")
        return self._schedules

    @property
    def workers(self) -> WorkerLifecycleManager:
        if self._workers is None:
            raise ValidationError("No worker factory is configured")
        return self._workers

    @property
    def default_task_queue(self) -> str:
        return self.config.default_task_queue

    def is_initialized(self) -> bool:
        return self._initialized

    def ensure_initialized(self) -> None:
        if not self._initialized:
            raise NotInitializedError(
                "Temporal orchestrator is not initialized; call initialize() first"
            )

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def initialize(self) -> InitializationResult:
        """Bring up all subsystems. Concurrent calls share one initialization."""
        if self._initializing is None or (self._initializing.done() and not self._initialized):
            self._initializing = asyncio.ensure_future(self._perform_initialize())
        return await asyncio.shield(self._initializing)

    async def _perform_initialize(self) -> InitializationResult:
        started = time.monotonic()
        errors: list[str] = []
        log_info("Initializing Temporal orchestrator", {"namespace": self.config.connection.namespace})

        self._discovery.scan()

        if self._client.is_connected():
            await self._client.check_health()
        ready = await self.wait_for_readiness()
        if not ready:
            errors.append("Readiness wait timed out")

        if self._schedules is not None and self.config.schedules.auto_register:
            await self._schedules.register_discovered(self._discovery.get_scheduled_workflows())
            errors.extend(
                f"Schedule '{sid}': {message}"
                for sid, message in self._schedules.get_failures().items()
            )

        if self._workers is not None:
            for definition in self.config.workers:
                if self._workers.get_worker(definition.task_queue) is None:
                    self._workers.register_worker(definition)
            await self._workers.start_all()
            errors.extend(
                f"Worker '{tq}': {status.last_error}"
                for tq, status in self._workers.get_all_workers().workers.items()
                if status.last_error
            )

        self._initialized = True
        result = InitializationResult(
            success=True,
            services_initialized={
                "client": self._client.is_healthy(),
                "discovery": self._discovery.is_complete(),
                "schedules": self._schedules is not None,
                "workers": self._workers is not None and self._workers.has_workers(),
            },
            initialization_time=time.monotonic() - started,
            errors=errors,
        )
        log_info(
            "Temporal orchestrator initialized",
            {
                "duration_s": f"{result.initialization_time:.3f}",
                "errors": len(errors),
            },
        )
        return result

    async def wait_for_readiness(self) -> bool:
        """Poll client connectivity and discovery completeness, bounded.

        Returns:
            True if both became ready, False on timeout.
        """
        settings = self.config.readiness
        loop = asyncio.get_running_loop()
        deadline = loop.time() + settings.timeout_ms / 1000
        while True:
            if self._client.is_healthy() and self._discovery.is_complete():
                return True
            if loop.time() >= deadline:
                log_warn(
                    "Services not ready within timeout, continuing anyway",
                    {
                        "client": self._client.is_healthy(),
                        "discovery": self._discovery.is_complete(),
                        "timeout_ms": settings.timeout_ms,
                    },
                )
                return False
            await asyncio.sleep(settings.poll_interval_ms / 1000)

    async def shutdown(self) -> None:
        """Tear everything down. Concurrent calls share one teardown.

        Once the teardown finishes the next call runs a fresh one, so an
        orchestrator initialized again can be shut down again.
        """
        if self._shutdown is None:
            self._shutdown = asyncio.ensure_future(self._perform_shutdown())

            def _forget(future: asyncio.Future[None]) -> None:
                if self._shutdown is future:
                    self._shutdown = None

            self._shutdown.add_done_callback(_forget)
        await asyncio.shield(self._shutdown)

    async def _perform_shutdown(self) -> None:
        log_info("Shutting down Temporal orchestrator")
        self._initialized = False
        if self._workers is not None:
            await self._workers.shutdown()
        log_info("Temporal orchestrator shut down")

    # -------------------------------------------------------------------------
    # Workflows
    # -------------------------------------------------------------------------

    async def start_workflow(
        self,
        workflow_type: str,
        args: Sequence[Any] = (),
        *,
        task_queue: str | None = None,
        workflow_id: str | None = None,
        **options: Any,
    ) -> WorkflowExecution:
        """Start a workflow. ``task_queue`` defaults to the configured one."""
        self.ensure_initialized()
        validate_workflow_type(workflow_type)
        task_queue = task_queue or self.default_task_queue
        try:
            execution = await self._client.start_workflow(
                workflow_type, args, task_queue=task_queue, workflow_id=workflow_id, **options
            )
        except Exception as e:
            log_error(
                "Failed to start workflow",
                {"workflow_type": workflow_type, "task_queue": task_queue, "error": extract_error_message(e)},
            )
            raise
        log_info(
            "Started workflow",
            {"workflow_type": workflow_type, "workflow_id": execution.workflow_id, "task_queue": task_queue},
        )
        return execution

    async def signal_workflow(
        self, workflow_id: str, signal_name: str, args: Sequence[Any] = ()
    ) -> None:
        self.ensure_initialized()
        validate_workflow_id(workflow_id)
        validate_signal_name(signal_name)
        try:
            await self._client.signal_workflow(workflow_id, signal_name, args)
        except Exception as e:
            log_error(
                "Failed to signal workflow",
                {"workflow_id": workflow_id, "signal": signal_name, "error": extract_error_message(e)},
            )
            raise

    async def query_workflow(
        self, workflow_id: str, query_name: str, args: Sequence[Any] = ()
    ) -> Any:
        self.ensure_initialized()
        validate_workflow_id(workflow_id)
        validate_query_name(query_name)
        try:
            return await self._client.query_workflow(workflow_id, query_name, args)
        except Exception as e:
            log_error(
                "Failed to query workflow",
                {"workflow_id": workflow_id, "query": query_name, "error": extract_error_message(e)},
            )
            raise

    async def _report_action(
        self,
        operation: str,
        workflow_id: str,
        call: Callable[[], Any],
        reason: str | None = None,
    ) -> WorkflowActionResult:
        try:
            validate_workflow_id(workflow_id)
            await call()
        except Exception as e:
            message = extract_error_message(e)
            log_error(
                f"Failed to {operation} workflow",
                {"workflow_id": workflow_id, "error": message},
            )
            return WorkflowActionResult(
                success=False, workflow_id=workflow_id or "", reason=reason, error=message
            )
        log_info(f"Workflow {operation} requested", {"workflow_id": workflow_id})
        return WorkflowActionResult(success=True, workflow_id=workflow_id, reason=reason)

    async def terminate_workflow(
        self, workflow_id: str, reason: str | None = None
    ) -> WorkflowActionResult:
        self.ensure_initialized()
        return await self._report_action(
            "terminate",
            workflow_id,
            lambda: self._client.terminate_workflow(workflow_id, reason),
            reason,
        )

    async def cancel_workflow(self, workflow_id: str) -> WorkflowActionResult:
        self.ensure_initialized()
        return await self._report_action(
            "cancel", workflow_id, lambda: self._client.cancel_workflow(workflow_id)
        )

    async def describe_workflow(self, workflow_id: str, run_id: str | None = None) -> Any:
        self.ensure_initialized()
        validate_workflow_id(workflow_id)
        return await self._client.describe_workflow(workflow_id, run_id)

    async def get_workflow_result(self, workflow_id: str, run_id: str | None = None) -> Any:
        self.ensure_initialized()
        validate_workflow_id(workflow_id)
        return await self._client.get_workflow_result(workflow_id, run_id)

    def get_workflow_handle(self, workflow_id: str, run_id: str | None = None) -> Any:
        self.ensure_initialized()
        validate_workflow_id(workflow_id)
        return self._client.get_workflow_handle(workflow_id, run_id)

    # -------------------------------------------------------------------------
    # Schedules
    # -------------------------------------------------------------------------

    async def create_schedule(
        self,
        schedule_id: str,
        spec: ScheduleSpec | Mapping[str, Any],
        action: ScheduleAction | Mapping[str, Any],
        memo: dict[str, Any] | None = None,
        search_attributes: Any = None,
    ) -> ScheduleHandle:
        """Create a schedule from a spec (or raw descriptor) and an action.

        A mapping action without ``task_queue`` gets the default task queue.
        """
        self.ensure_initialized()
        if not isinstance(spec, ScheduleSpec):
            spec = ScheduleSpecBuilder.build(spec)
        if not isinstance(action, ScheduleAction):
            fields = {k: v for k, v in action.items() if v is not None}
            action = ScheduleAction(**{"task_queue": self.default_task_queue, **fields})
        return await self.schedules.create(schedule_id, spec, action, memo, search_attributes)

    async def create_cron_schedule(
        self,
        schedule_id: str,
        workflow_type: str,
        cron: str | Sequence[str],
        *,
        task_queue: str | None = None,
        args: Sequence[Any] | None = None,
        timezone: str | None = None,
    ) -> ScheduleHandle:
        self.ensure_initialized()
        return await self.schedules.create_cron_schedule(
            schedule_id,
            workflow_type,
            cron,
            task_queue=task_queue or self.default_task_queue,
            args=args,
            timezone=timezone,
        )

    async def create_interval_schedule(
        self,
        schedule_id: str,
        workflow_type: str,
        interval: int | str | Sequence[int | str],
        *,
        task_queue: str | None = None,
        args: Sequence[Any] | None = None,
    ) -> ScheduleHandle:
        self.ensure_initialized()
        return await self.schedules.create_interval_schedule(
            schedule_id,
            workflow_type,
            interval,
            task_queue=task_queue or self.default_task_queue,
            args=args,
        )

    async def get_schedule(self, schedule_id: str) -> ScheduleHandle:
        self.ensure_initialized()
        return await self.schedules.get(schedule_id)

    async def pause_schedule(self, schedule_id: str, note: str | None = None) -> None:
        self.ensure_initialized()
        if note is None:
            await self.schedules.pause(schedule_id)
        else:
            await self.schedules.pause(schedule_id, note)

    async def resume_schedule(self, schedule_id: str, note: str | None = None) -> None:
        self.ensure_initialized()
        if note is None:
            await self.schedules.resume(schedule_id)
        else:
            await self.schedules.resume(schedule_id, note)

    async def trigger_schedule(self, schedule_id: str, overlap: str | None = None) -> None:
        self.ensure_initialized()
        await self.schedules.trigger(schedule_id, overlap)

    async def delete_schedule(self, schedule_id: str) -> None:
        self.ensure_initialized()
        await self.schedules.delete(schedule_id)

    async def describe_schedule(self, schedule_id: str) -> Any:
        self.ensure_initialized()
        return await self.schedules.describe(schedule_id)

    async def update_schedule(self, schedule_id: str, updater: Callable[[Any], Any]) -> None:
        self.ensure_initialized()
        await self.schedules.update(schedule_id, updater)

    async def list_schedules(self, max_items: int = 100) -> list[dict[str, Any]]:
        self.ensure_initialized()
        return await self.schedules.list(max_items)

    async def schedule_exists(self, schedule_id: str) -> bool:
        self.ensure_initialized()
        return await self.schedules.exists(schedule_id)

    def get_schedule_stats(self) -> ScheduleStats:
        if self._schedules is None:
            return ScheduleStats()
        return self._schedules.get_stats()

    # -------------------------------------------------------------------------
    # Workers
    # -------------------------------------------------------------------------

    def _task_queue(self, task_queue: str | None) -> str:
        return task_queue or self.config.task_queue or self._first_worker_queue()

    def _first_worker_queue(self) -> str:
        queues = self.workers.task_queues()
        return queues[0] if queues else self.default_task_queue

    async def register_worker(
        self, definition: WorkerDefinition | dict[str, Any], *, start: bool = False
    ) -> WorkerStatus:
        self.ensure_initialized()
        status = self.workers.register_worker(definition)
        if start:
            status = await self.workers.start(status.task_queue)
        return status

    async def start_worker(self, task_queue: str | None = None) -> WorkerStatus:
        self.ensure_initialized()
        return await self.workers.start(self._task_queue(task_queue))

    async def stop_worker(self, task_queue: str | None = None) -> WorkerStatus:
        self.ensure_initialized()
        return await self.workers.stop(self._task_queue(task_queue))

    async def restart_worker(self, task_queue: str | None = None) -> WorkerStatus:
        self.ensure_initialized()
        return await self.workers.restart(self._task_queue(task_queue))

    def report_worker_health(self, task_queue: str, healthy: bool) -> WorkerStatus:
        return self.workers.report_health(task_queue, healthy)

    def get_worker_status(self, task_queue: str | None = None) -> WorkerStatus | None:
        """Status of one worker; None when no worker is configured."""
        if self._workers is None or not self._workers.has_workers():
            return None
        return self._workers.get_worker_status(self._task_queue(task_queue))

    def get_all_workers(self) -> MultipleWorkersInfo:
        if self._workers is None:
            return MultipleWorkersInfo()
        return self._workers.get_all_workers()

    def get_worker_health(self, task_queue: str | None = None) -> ComponentHealth:
        """Worker component health: one worker, or all when task_queue is None."""
        workers = self.get_all_workers().workers
        if task_queue is not None:
            return worker_health(workers.get(task_queue))
        return worker_health(list(workers.values()))

    # -------------------------------------------------------------------------
    # Discovery
    # -------------------------------------------------------------------------

    def get_discovery_stats(self) -> DiscoveryStats:
        return self._discovery.get_stats()

    def get_workflow_info(self, workflow_name: str) -> WorkflowMethodInfo:
        """Discovered workflow method by public name.

        Raises:
            WorkflowNotFoundError: If no scanned controller defines it.
        """
        info = self._discovery.get_workflow_method(workflow_name)
        if info is None:
            raise WorkflowNotFoundError(workflow_name)
        return info

    def get_scheduled_workflow(self, schedule_id: str) -> ScheduledMethodInfo:
        info = self._discovery.get_scheduled_workflow(schedule_id)
        if info is None:
            raise WorkflowNotFoundError(
                schedule_id, f"No scheduled workflow with schedule id '{schedule_id}'"
            )
        return info

    # -------------------------------------------------------------------------
    # Health and statistics
    # -------------------------------------------------------------------------

    def get_health(self) -> HealthReport:
        """Aggregate the last known component states. Never raises."""
        try:
            workers = list(self.get_all_workers().workers.values())
            return aggregate_health(
                self._client.get_health(),
                workers or None,
                self.get_schedule_stats(),
                self._discovery.get_stats(),
            )
        except Exception as e:
            message = extract_error_message(e)
            log_error("Health aggregation failed", {"error": message})
            return HealthReport(status=HealthStatus.UNHEALTHY, reasons=[message])

    async def get_overall_health(self) -> HealthReport:
        """Ping the cluster, then aggregate. Never raises."""
        try:
            await self._client.check_health()
        except Exception as e:
            log_warn("Client health check failed", {"error": extract_error_message(e)})
        return self.get_health()

    def get_stats(self) -> ServiceStatistics:
        """Counters from every subsystem. Never raises."""
        try:
            discovery = self._discovery.get_stats()
            return ServiceStatistics(
                activities={"classes": discovery.controllers, "methods": discovery.activities},
                schedules=self.get_schedule_stats(),
                discovery=discovery,
                workers=self.get_all_workers(),
                client_connected=self._client.is_healthy(),
                initialized=self._initialized,
            )
        except Exception as e:
            message = extract_error_message(e)
            log_error("Statistics collection failed", {"error": message})
            return ServiceStatistics(initialized=self._initialized, error=message)

    def get_liveness(self) -> ProbeResult:
        return ProbeResult(status="ok", checks={"process": True})

    def get_readiness(self) -> ProbeResult:
        checks = {
            "initialized": self._initialized,
            "client": self._client.is_healthy(),
            "discovery": self._discovery.is_complete(),
            "schedules": self._schedules is None or self._schedules.is_healthy(),
        }
        if self._workers is not None and self._workers.has_workers():
            checks["workers"] = self._workers.get_all_workers().running_workers > 0
        return ProbeResult(status="ready" if all(checks.values()) else "not_ready", checks=checks)

    def get_startup(self) -> ProbeResult:
        return ProbeResult(
            status="started" if self._initialized else "starting",
            checks={"initialized": self._initialized},
        )


__all__ = [
    "TemporalOrchestrator",
]
