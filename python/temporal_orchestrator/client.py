"""Workflow client pass-through.

WorkflowClientService wraps a connected Temporal client (anything shaped
like ``temporalio.client.Client``) and exposes start, signal, query,
terminate and cancel as thin pass-throughs, plus the connectivity signal
used by the health aggregator.
"""

from __future__ import annotations

import secrets
import time
from collections.abc import Sequence
from datetime import datetime, timezone
from typing import Any

from .exceptions import ConnectivityError, WorkflowOperationError, extract_error_message
from .logging import log_debug, log_info, log_warn
from .types import ClientHealth, HealthStatus, WorkflowExecution


def generate_workflow_id(workflow_type: str) -> str:
    """Build ``<workflow_type>-<epoch ms>-<6 random chars>``.

    Example:
        >>> generate_workflow_id("DailyReport")  # doctest: +SKIP
        'DailyReport-1760688000000-3fa9c1'
    """
    return f"{workflow_type}-{int(time.time() * 1000)}-{secrets.token_hex(3)}"


class WorkflowClientService:
    """Thin service over a Temporal client."""

    def __init__(self, client: Any = None, *, namespace: str = "default") -> None:
        self._client = client
        self._namespace = namespace
        self._last_check: datetime | None = None
        self._last_error: str | None = None

    @property
    def client(self) -> Any:
        return self._client

    def set_client(self, client: Any) -> None:
        """Attach a connected client, e.g. after a delayed connect."""
        self._client = client
        self._last_error = None
        log_info("Temporal client attached", {"namespace": self._namespace})

    def is_connected(self) -> bool:
        return self._client is not None

    def _require_client(self) -> Any:
        if self._client is None:
            raise ConnectivityError("Temporal client is not connected")
        return self._client

    # -------------------------------------------------------------------------
    # Workflow operations
    # -------------------------------------------------------------------------

    async def start_workflow(
        self,
        workflow_type: str,
        args: Sequence[Any] = (),
        *,
        task_queue: str,
        workflow_id: str | None = None,
        signal: str | None = None,
        signal_args: Sequence[Any] = (),
        **options: Any,
    ) -> WorkflowExecution:
        """Start a workflow execution.

        Args:
            workflow_type: Workflow type name.
            args: Workflow arguments.
            task_queue: Task queue to dispatch to.
            workflow_id: Workflow id. Generated when omitted.
            signal: Optional signal to deliver right after start.
            signal_args: Arguments for ``signal``.
            **options: Passed through to the client (timeouts, retry
                policy, memo, search attributes, ...).

        Raises:
            ConnectivityError: If no client is attached.
            WorkflowOperationError: If the client rejects the start.
        """
        client = self._require_client()
        workflow_id = workflow_id or generate_workflow_id(workflow_type)
        try:
            handle = await client.start_workflow(
                workflow_type,
                args=list(args),
                id=workflow_id,
                task_queue=task_queue,
                **options,
            )
            if signal:
                await handle.signal(signal, args=list(signal_args))
        except Exception as e:
            raise WorkflowOperationError(
                f"Failed to start workflow '{workflow_type}': {extract_error_message(e)}",
                metadata={"workflow_id": workflow_id, "task_queue": task_queue},
            ) from e

        run_id = getattr(handle, "first_execution_run_id", None) or getattr(
            handle, "result_run_id", None
        )
        log_debug(
            "Started workflow",
            {"workflow_type": workflow_type, "workflow_id": workflow_id, "task_queue": task_queue},
        )
        return WorkflowExecution(workflow_id=handle.id, run_id=run_id)

    def get_workflow_handle(self, workflow_id: str, run_id: str | None = None) -> Any:
        return self._require_client().get_workflow_handle(workflow_id, run_id=run_id)

    async def signal_workflow(
        self, workflow_id: str, signal_name: str, args: Sequence[Any] = ()
    ) -> None:
        await self.get_workflow_handle(workflow_id).signal(signal_name, args=list(args))

    async def query_workflow(
        self, workflow_id: str, query_name: str, args: Sequence[Any] = ()
    ) -> Any:
        return await self.get_workflow_handle(workflow_id).query(query_name, args=list(args))

    async def terminate_workflow(self, workflow_id: str, reason: str | None = None) -> None:
        await self.get_workflow_handle(workflow_id).terminate(reason=reason)

    async def cancel_workflow(self, workflow_id: str) -> None:
        await self.get_workflow_handle(workflow_id).cancel()

    async def describe_workflow(self, workflow_id: str, run_id: str | None = None) -> Any:
        return await self.get_workflow_handle(workflow_id, run_id).describe()

    async def get_workflow_result(self, workflow_id: str, run_id: str | None = None) -> Any:
        return await self.get_workflow_handle(workflow_id, run_id).result()

    # -------------------------------------------------------------------------
    # Health
    # -------------------------------------------------------------------------

    async def check_health(self) -> ClientHealth:
        """Ping the cluster and record the outcome. Never raises."""
        self._last_check = datetime.now(timezone.utc)
        if self._client is None:
            self._last_error = "Temporal client is not connected"
            return self.get_health()
        try:
            await self._client.service_client.check_health()
        except Exception as e:
            self._last_error = extract_error_message(e)
            log_warn("Temporal health check failed", {"error": self._last_error})
        else:
            self._last_error = None
        return self.get_health()

    def is_healthy(self) -> bool:
        return self._client is not None and self._last_error is None

    def get_health(self) -> ClientHealth:
        """Last known connectivity state, without I/O."""
        return ClientHealth(
            status=HealthStatus.HEALTHY if self.is_healthy() else HealthStatus.UNHEALTHY,
            namespace=self._namespace,
            last_check=self._last_check,
            error=None if self.is_healthy() else (self._last_error or "Temporal client is not connected"),
        )


__all__ = [
    "WorkflowClientService",
    "generate_workflow_id",
]
