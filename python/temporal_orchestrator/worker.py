"""Worker lifecycle management.

The WorkerLifecycleManager owns zero or more workers keyed by task queue.
Each worker moves through::

    uninitialized -> initializing -> running <-> stopping -> stopped

with ``error`` reachable from initializing, running and stopping.

Concurrent ``restart`` calls for one task queue share a single in-flight
stop/start cycle, and ``shutdown`` is single-flight across the whole
manager. Status reads are pure in-memory reads.

Example:
    >>> manager = WorkerLifecycleManager(TemporalWorkerFactory(client))
    >>> manager.register_worker(WorkerDefinition(task_queue="orders", workflows=[OrderWorkflow]))
    >>> await manager.start("orders")
    >>> manager.get_worker_status("orders").is_running
    True
    >>> await manager.shutdown()
"""

from __future__ import annotations

import asyncio
import contextlib
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Protocol

import pydantic
from pydantic import BaseModel, Field, field_validator, model_validator

from .discovery import ActivityMethodInfo
from .exceptions import ValidationError, WorkerNotFoundError, WorkerStartError, extract_error_message
from .logging import log_debug, log_error, log_info, log_warn
from .types import MultipleWorkersInfo, WorkerState, WorkerStatus, WorkflowSource


class WorkerDefinition(BaseModel):
    """Configuration of one worker.

    ``workflows`` (classes or ``module:attr`` import strings) and
    ``workflows_path`` (a module or package to scan) are mutually
    exclusive.
    """

    task_queue: str = Field(description="Task queue the worker polls.")
    namespace: str | None = Field(
        default=None,
        description="Temporal namespace. Defaults to the manager's.",
    )
    workflows: list[Any] = Field(
        default_factory=list,
        description="Workflow classes or import strings.",
    )
    workflows_path: str | None = Field(
        default=None,
        description="Dotted module or package path scanned for workflow classes.",
    )
    activities: list[str] | None = Field(
        default=None,
        description="Names of discovered activities to register. None means all for the queue.",
    )
    auto_start: bool = Field(default=True, description="Start during initialization.")
    max_concurrent_activities: int | None = Field(default=None, ge=1)
    max_concurrent_workflow_tasks: int | None = Field(default=None, ge=1)
    worker_options: dict[str, Any] = Field(
        default_factory=dict,
        description="Extra keyword arguments passed to the worker.",
    )

    model_config = {"extra": "forbid", "arbitrary_types_allowed": True}

    @field_validator("task_queue")
    @classmethod
    def _task_queue_not_blank(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("Task queue is required")
        return value

    @model_validator(mode="after")
    def _single_workflow_source(self) -> WorkerDefinition:
        if self.workflows and self.workflows_path:
            raise ValueError("Cannot specify both workflows and workflows_path")
        return self

    @property
    def workflow_source(self) -> WorkflowSource:
        if self.workflows:
            return WorkflowSource.BUNDLE
        if self.workflows_path:
            return WorkflowSource.FILESYSTEM
        return WorkflowSource.NONE


class RemoteWorker(Protocol):
    """A worker polling one task queue."""

    async def run(self) -> None:
        """Poll until shutdown() is called."""
        ...

    async def shutdown(self) -> None: ...


class WorkerFactory(Protocol):
    """Constructs workers from their definitions."""

    async def create_worker(
        self,
        definition: WorkerDefinition,
        namespace: str,
        activities: Sequence[ActivityMethodInfo],
    ) -> RemoteWorker: ...


@dataclass
class WorkerInstance:
    """Mutable state for one managed worker."""

    definition: WorkerDefinition
    namespace: str
    worker: RemoteWorker | None = None
    run_task: asyncio.Task[None] | None = field(default=None, repr=False)
    state: WorkerState = WorkerState.UNINITIALIZED
    is_initialized: bool = False
    is_running: bool = False
    is_healthy: bool = False
    activities_count: int = 0
    last_error: str | None = None
    started_at: datetime | None = None
    restart_count: int = 0

    @property
    def task_queue(self) -> str:
        return self.definition.task_queue

    def snapshot(self) -> WorkerStatus:
        uptime = None
        if self.is_running and self.started_at is not None:
            uptime = (datetime.now(timezone.utc) - self.started_at).total_seconds()
        return WorkerStatus(
            is_initialized=self.is_initialized,
            is_running=self.is_running,
            is_healthy=self.is_healthy,
            state=self.state,
            task_queue=self.task_queue,
            namespace=self.namespace,
            workflow_source=self.definition.workflow_source,
            activities_count=self.activities_count,
            last_error=self.last_error,
            started_at=self.started_at,
            uptime=uptime,
            restart_count=self.restart_count,
        )


class WorkerLifecycleManager:
    """Starts, stops and restarts workers keyed by task queue."""

    def __init__(
        self,
        factory: WorkerFactory,
        *,
        namespace: str = "default",
        allow_worker_failure: bool = False,
        activities_provider: Callable[[str], Sequence[ActivityMethodInfo]] | None = None,
    ) -> None:
        self._factory = factory
        self._namespace = namespace
        self._allow_worker_failure = allow_worker_failure
        self._activities_provider = activities_provider
        self._workers: dict[str, WorkerInstance] = {}
        self._restarts: dict[str, asyncio.Future[WorkerStatus]] = {}
        self._shutdown: asyncio.Future[None] | None = None

    # -------------------------------------------------------------------------
    # Registration
    # -------------------------------------------------------------------------

    def register_worker(self, definition: WorkerDefinition | dict[str, Any]) -> WorkerStatus:
        """Add a worker in the uninitialized state.

        Raises:
            ValidationError: If the definition is incomplete, conflicting,
                or its task queue is already registered.
        """
        if not isinstance(definition, WorkerDefinition):
            try:
                definition = WorkerDefinition.model_validate(definition)
            except pydantic.ValidationError as e:
                raise ValidationError(f"Invalid worker definition: {e}") from e

        task_queue = definition.task_queue
        if task_queue in self._workers:
            raise ValidationError(f"Worker for task queue '{task_queue}' already exists")

        instance = WorkerInstance(
            definition=definition,
            namespace=definition.namespace or self._namespace,
        )
        self._workers[task_queue] = instance
        log_info(
            "Registered worker",
            {
                "task_queue": task_queue,
                "namespace": instance.namespace,
                "workflow_source": definition.workflow_source.value,
            },
        )
        return instance.snapshot()

    def _require(self, task_queue: str) -> WorkerInstance:
        instance = self._workers.get(task_queue)
        if instance is None:
            raise WorkerNotFoundError(task_queue)
        return instance

    def _activities_for(self, definition: WorkerDefinition) -> list[ActivityMethodInfo]:
        if self._activities_provider is None:
            return []
        activities = list(self._activities_provider(definition.task_queue))
        if definition.activities is not None:
            wanted = set(definition.activities)
            activities = [a for a in activities if a.public_name in wanted]
        return activities

    # -------------------------------------------------------------------------
    # Lifecycle
    # -------------------------------------------------------------------------

    async def start(self, task_queue: str) -> WorkerStatus:
        """Construct (if needed) and launch a worker.

        A running worker is left alone. On failure the error is recorded;
        it is re-raised as WorkerStartError unless worker failure is
        allowed.
        """
        instance = self._require(task_queue)
        if instance.is_running:
            log_debug("Worker already running", {"task_queue": task_queue})
            return instance.snapshot()

        instance.state = WorkerState.INITIALIZING
        instance.last_error = None
        try:
            if instance.worker is None:
                activities = self._activities_for(instance.definition)
                instance.worker = await self._factory.create_worker(
                    instance.definition, instance.namespace, activities
                )
                instance.is_initialized = True
                instance.activities_count = len(activities)
            instance.run_task = asyncio.create_task(
                self._run(instance), name=f"temporal-worker:{task_queue}"
            )
        except Exception as e:
            self._record_failure(instance, e)
            if self._allow_worker_failure:
                log_warn(
                    "Worker failed to start, continuing without it",
                    {"task_queue": task_queue, "error": instance.last_error},
                )
                return instance.snapshot()
            raise WorkerStartError(
                f"Failed to start worker for task queue '{task_queue}': {instance.last_error}",
                metadata={"task_queue": task_queue},
            ) from e

        instance.state = WorkerState.RUNNING
        instance.is_running = True
        instance.is_healthy = True
        instance.started_at = datetime.now(timezone.utc)
        log_info(
            "Worker started",
            {"task_queue": task_queue, "activities": instance.activities_count},
        )
        return instance.snapshot()

    async def _run(self, instance: WorkerInstance) -> None:
        worker = instance.worker
        if worker is None:
            return
        try:
            await worker.run()
        except asyncio.CancelledError:
            raise
        except Exception as e:
            self._record_failure(instance, e)
            instance.worker = None
            log_error(
                "Worker stopped with error",
                {"task_queue": instance.task_queue, "error": instance.last_error},
            )
            return

        if instance.state is WorkerState.RUNNING:
            instance.is_running = False
            instance.worker = None
            instance.state = WorkerState.STOPPED
            log_warn("Worker exited unexpectedly", {"task_queue": instance.task_queue})

    def _record_failure(self, instance: WorkerInstance, error: BaseException) -> None:
        instance.state = WorkerState.ERROR
        instance.last_error = extract_error_message(error)
        instance.is_running = False
        instance.is_healthy = False

    async def stop(self, task_queue: str) -> WorkerStatus:
        """Shut a worker down. Stopping a worker that is not running is a no-op."""
        instance = self._require(task_queue)
        if not instance.is_running:
            return instance.snapshot()

        instance.state = WorkerState.STOPPING
        try:
            if instance.worker is not None:
                await instance.worker.shutdown()
            if instance.run_task is not None:
                await instance.run_task
        except Exception as e:
            self._record_failure(instance, e)
            log_error(
                "Worker failed to stop cleanly",
                {"task_queue": task_queue, "error": instance.last_error},
            )
            # The run loop must not outlive the worker reference.
            await self._cancel_run_task(instance)
            return instance.snapshot()
        finally:
            instance.run_task = None
            # A shut-down worker cannot poll again; start() builds a new one.
            instance.worker = None

        if instance.state is WorkerState.STOPPING:
            instance.state = WorkerState.STOPPED
            instance.is_running = False
            instance.is_healthy = False
        log_info("Worker stopped", {"task_queue": task_queue})
        return instance.snapshot()

    @staticmethod
    async def _cancel_run_task(instance: WorkerInstance) -> None:
        task = instance.run_task
        if task is None or task.done():
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def restart(self, task_queue: str) -> WorkerStatus:
        """Stop then start a worker.

        Calls that arrive while a restart of the same task queue is in
        flight await that restart and receive its result.
        """
        pending = self._restarts.get(task_queue)
        if pending is None:
            self._require(task_queue)
            pending = asyncio.ensure_future(self._restart(task_queue))
            self._restarts[task_queue] = pending

            def _forget(future: asyncio.Future[WorkerStatus]) -> None:
                if self._restarts.get(task_queue) is future:
                    del self._restarts[task_queue]

            pending.add_done_callback(_forget)
        else:
            log_debug("Restart already in flight", {"task_queue": task_queue})
        return await asyncio.shield(pending)

    async def _restart(self, task_queue: str) -> WorkerStatus:
        log_info("Restarting worker", {"task_queue": task_queue})
        await self.stop(task_queue)
        await self.start(task_queue)
        instance = self._workers[task_queue]
        instance.restart_count += 1
        return instance.snapshot()

    async def start_all(self) -> MultipleWorkersInfo:
        """Start every registered worker whose definition has auto_start."""
        for task_queue, instance in list(self._workers.items()):
            if instance.definition.auto_start:
                await self.start(task_queue)
        return self.get_all_workers()

    async def shutdown(self) -> None:
        """Stop all workers.

        Concurrent calls share one teardown; a call after it finished
        starts a new one, stopping workers started in between.
        """
        if self._shutdown is None:
            self._shutdown = asyncio.ensure_future(self._shutdown_all())

            def _forget(future: asyncio.Future[None]) -> None:
                if self._shutdown is future:
                    self._shutdown = None

            self._shutdown.add_done_callback(_forget)
        await asyncio.shield(self._shutdown)

    async def _shutdown_all(self) -> None:
        running = [tq for tq, instance in self._workers.items() if instance.is_running]
        if running:
            log_info("Shutting down workers", {"count": len(running)})
        await asyncio.gather(*(self.stop(tq) for tq in running))

    def report_health(self, task_queue: str, healthy: bool) -> WorkerStatus:
        """Record an externally observed liveness signal."""
        instance = self._require(task_queue)
        instance.is_healthy = healthy
        return instance.snapshot()

    # -------------------------------------------------------------------------
    # Status
    # -------------------------------------------------------------------------

    def has_workers(self) -> bool:
        return bool(self._workers)

    def task_queues(self) -> list[str]:
        return list(self._workers)

    def get_worker(self, task_queue: str) -> WorkerInstance | None:
        return self._workers.get(task_queue)

    def get_worker_status(self, task_queue: str) -> WorkerStatus:
        return self._require(task_queue).snapshot()

    def get_status(self) -> WorkerStatus | None:
        """Status of the first registered worker, or None if there is none."""
        for instance in self._workers.values():
            return instance.snapshot()
        return None

    def get_all_workers(self) -> MultipleWorkersInfo:
        workers = {tq: instance.snapshot() for tq, instance in self._workers.items()}
        return MultipleWorkersInfo(
            workers=workers,
            total_workers=len(workers),
            running_workers=sum(1 for s in workers.values() if s.is_running),
            healthy_workers=sum(1 for s in workers.values() if s.is_healthy),
        )


__all__ = [
    "RemoteWorker",
    "WorkerDefinition",
    "WorkerFactory",
    "WorkerInstance",
    "WorkerLifecycleManager",
]
