"""pytest configuration and fixtures for temporal_orchestrator tests.

This module provides in-memory stand-ins for the Temporal collaborators
(workflow client, schedule client, workers) and shared fixtures for the
registries and the orchestrator facade.
"""

from __future__ import annotations

import asyncio
from collections.abc import Generator
from typing import Any

import pytest


class FakeScheduleHandle:
    """Remote schedule handle recording every call."""

    def __init__(self, schedule_id: str) -> None:
        self.id = schedule_id
        self.calls: list[tuple[str, Any]] = []
        self.fail_with: Exception | None = None

    async def _record(self, name: str, value: Any = None) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.calls.append((name, value))

    async def trigger(self, overlap: str | None = None) -> None:
        await self._record("trigger", overlap)

    async def pause(self, note: str | None = None) -> None:
        await self._record("pause", note)

    async def unpause(self, note: str | None = None) -> None:
        await self._record("unpause", note)

    async def delete(self) -> None:
        await self._record("delete")

    async def describe(self) -> dict[str, Any]:
        await self._record("describe")
        return {"id": self.id}

    async def update(self, updater: Any) -> None:
        await self._record("update", updater)


class FakeScheduleClient:
    """In-memory remote scheduler."""

    def __init__(self) -> None:
        self.remote: dict[str, FakeScheduleHandle] = {}
        self.create_calls: list[dict[str, Any]] = []
        self.get_calls: list[str] = []
        self.fail_create: Exception | None = None

    async def create_schedule(
        self,
        schedule_id: str,
        spec: Any,
        action: Any,
        *,
        memo: dict[str, Any] | None = None,
        search_attributes: Any = None,
        paused: bool = False,
        note: str | None = None,
    ) -> FakeScheduleHandle:
        self.create_calls.append(
            {
                "schedule_id": schedule_id,
                "spec": spec,
                "action": action,
                "memo": memo,
                "paused": paused,
                "note": note,
            }
        )
        if self.fail_create is not None:
            raise self.fail_create
        if schedule_id in self.remote:
            raise RuntimeError("schedule already exists")
        handle = FakeScheduleHandle(schedule_id)
        self.remote[schedule_id] = handle
        return handle

    async def get_schedule(self, schedule_id: str) -> FakeScheduleHandle | None:
        self.get_calls.append(schedule_id)
        return self.remote.get(schedule_id)

    async def list_schedules(self, max_items: int = 100) -> list[dict[str, Any]]:
        return [{"schedule_id": sid, "paused": False} for sid in list(self.remote)[:max_items]]


class FakeWorker:
    """Worker whose run() blocks until shutdown() is called."""

    def __init__(
        self, fail_run: Exception | None = None, fail_shutdown: Exception | None = None
    ) -> None:
        self._stopped = asyncio.Event()
        self.fail_run = fail_run
        self.fail_shutdown = fail_shutdown
        self.run_calls = 0
        self.shutdown_calls = 0
        self.run_cancelled = False

    async def run(self) -> None:
        self.run_calls += 1
        if self.fail_run is not None:
            raise self.fail_run
        try:
            await self._stopped.wait()
        except asyncio.CancelledError:
            self.run_cancelled = True
            raise

    async def shutdown(self) -> None:
        self.shutdown_calls += 1
        # Yield so concurrent callers can interleave.
        await asyncio.sleep(0)
        if self.fail_shutdown is not None:
            raise self.fail_shutdown
        self._stopped.set()


class FakeWorkerFactory:
    """WorkerFactory producing FakeWorker instances."""

    def __init__(self) -> None:
        self.created: list[FakeWorker] = []
        self.definitions: list[Any] = []
        self.activities: list[Any] = []
        self.fail_with: Exception | None = None
        self.fail_run: Exception | None = None
        self.fail_shutdown: Exception | None = None

    async def create_worker(self, definition: Any, namespace: str, activities: Any) -> FakeWorker:
        if self.fail_with is not None:
            raise self.fail_with
        worker = FakeWorker(fail_run=self.fail_run, fail_shutdown=self.fail_shutdown)
        self.created.append(worker)
        self.definitions.append(definition)
        self.activities.append(list(activities))
        return worker

    @property
    def shutdown_calls(self) -> int:
        return sum(w.shutdown_calls for w in self.created)


class FakeWorkflowHandle:
    def __init__(self, client: FakeTemporalClient, workflow_id: str) -> None:
        self.client = client
        self.id = workflow_id
        self.first_execution_run_id = f"run-{workflow_id}"

    async def signal(self, name: str, args: Any = ()) -> None:
        self.client.maybe_fail()
        self.client.calls.append(("signal", self.id, name, list(args)))

    async def query(self, name: str, args: Any = ()) -> Any:
        self.client.maybe_fail()
        self.client.calls.append(("query", self.id, name, list(args)))
        return {"query": name, "workflow_id": self.id}

    async def terminate(self, reason: str | None = None) -> None:
        self.client.maybe_fail()
        self.client.calls.append(("terminate", self.id, reason))

    async def cancel(self) -> None:
        self.client.maybe_fail()
        self.client.calls.append(("cancel", self.id))

    async def describe(self) -> dict[str, Any]:
        return {"id": self.id}

    async def result(self) -> str:
        return "done"


class FakeServiceClient:
    def __init__(self) -> None:
        self.healthy = True
        self.checks = 0

    async def check_health(self) -> bool:
        self.checks += 1
        if not self.healthy:
            raise ConnectionError("connection refused")
        return True


class FakeTemporalClient:
    """Client shaped like temporalio.client.Client."""

    def __init__(self) -> None:
        self.namespace = "default"
        self.service_client = FakeServiceClient()
        self.calls: list[tuple[Any, ...]] = []
        self.fail_with: Exception | None = None

    def maybe_fail(self) -> None:
        if self.fail_with is not None:
            raise self.fail_with

    async def start_workflow(self, workflow: str, *, args: Any, id: str, task_queue: str, **kwargs: Any):
        self.maybe_fail()
        self.calls.append(("start", workflow, list(args), id, task_queue, kwargs))
        return FakeWorkflowHandle(self, id)

    def get_workflow_handle(self, workflow_id: str, run_id: str | None = None) -> FakeWorkflowHandle:
        return FakeWorkflowHandle(self, workflow_id)


@pytest.fixture(autouse=True)
def reset_logging() -> Generator[None, None, None]:
    """Restore default logging configuration around each test."""
    from temporal_orchestrator import logging as orchestrator_logging

    orchestrator_logging.reset()
    yield
    orchestrator_logging.reset()


@pytest.fixture(scope="session")
def orchestrator_module():
    """Provide the temporal_orchestrator module as a fixture."""
    import temporal_orchestrator

    return temporal_orchestrator


@pytest.fixture
def schedule_client() -> FakeScheduleClient:
    return FakeScheduleClient()


@pytest.fixture
def worker_factory() -> FakeWorkerFactory:
    return FakeWorkerFactory()


@pytest.fixture
def temporal_client() -> FakeTemporalClient:
    return FakeTemporalClient()


@pytest.fixture
def fast_config():
    """OrchestratorConfig with a short readiness wait."""
    from temporal_orchestrator import OrchestratorConfig

    return OrchestratorConfig(readiness={"poll_interval_ms": 1, "timeout_ms": 20})


def pytest_configure(config):
    """Configure custom pytest markers."""
    config.addinivalue_line("markers", "integration: mark test as requiring a Temporal server")
    config.addinivalue_line("markers", "slow: mark test as slow running")
