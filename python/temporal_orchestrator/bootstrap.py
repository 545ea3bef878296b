"""Orchestrator bootstrap and process-level lifecycle.

This module wires a TemporalOrchestrator to a real Temporal cluster:
it loads configuration, applies the logging settings, connects, builds
the ``temporalio`` adapters and runs initialization. The running
orchestrator is kept as the process-wide instance.

Example:
    >>> from temporal_orchestrator import bootstrap_orchestrator, stop_orchestrator
    >>>
    >>> orchestrator = await bootstrap_orchestrator(controllers=[ReportController()])
    >>> print(orchestrator.get_health().status)
    >>>
    >>> await stop_orchestrator()
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

from . import logging as orchestrator_logging
from .config import OrchestratorConfig, load_config
from .discovery import ControllerProvider, StaticControllerProvider
from .exceptions import NotInitializedError
from .logging import log_info, log_warn
from .service import TemporalOrchestrator
from .temporal import TemporalScheduleClient, TemporalWorkerFactory, connect
from .validation import safe_initialize

_orchestrator: TemporalOrchestrator | None = None


async def bootstrap_orchestrator(
    config: OrchestratorConfig | None = None,
    *,
    controllers: Sequence[Any] | None = None,
    controller_provider: ControllerProvider | None = None,
) -> TemporalOrchestrator:
    """Connect to Temporal and initialize the process-wide orchestrator.

    Args:
        config: Configuration. Loaded with ``load_config()`` when omitted.
        controllers: Controller instances to scan.
        controller_provider: Alternative source of controllers.

    Returns:
        The initialized orchestrator.

    Raises:
        ConnectivityError: If the cluster is unreachable and
            ``allow_connection_failure`` is off.
        ValidationError: If configuration or controllers are invalid.
        WorkerStartError: If a worker fails and ``allow_worker_failure``
            is off.

    Example:
        >>> orchestrator = await bootstrap_orchestrator(load_config("temporal.yaml"))
        >>> orchestrator.get_startup().status
        'started'
    """
    global _orchestrator
    config = config or load_config()
    orchestrator_logging.configure(config.logging)

    if _orchestrator is not None and _orchestrator.is_initialized():
        log_warn("Orchestrator already running, returning existing instance")
        return _orchestrator

    client = await safe_initialize(
        "Temporal client",
        lambda: connect(config.connection),
        allow_failure=config.allow_connection_failure,
    )
    if client is None:
        log_warn(
            "Starting without client, schedules or workers",
            {"address": config.connection.address},
        )
        config = config.model_copy(update={"workers": []})

    orchestrator = TemporalOrchestrator(
        config,
        client=client,
        schedule_client=TemporalScheduleClient(client) if client is not None else None,
        worker_factory=TemporalWorkerFactory(client) if client is not None else None,
        controller_provider=controller_provider or StaticControllerProvider(controllers),
    )
    result = await orchestrator.initialize()
    _orchestrator = orchestrator
    log_info(
        "Orchestrator bootstrapped",
        {"namespace": config.connection.namespace, "errors": len(result.errors)},
    )
    return orchestrator


def get_orchestrator() -> TemporalOrchestrator:
    """Return the process-wide orchestrator.

    Raises:
        NotInitializedError: If bootstrap_orchestrator() has not run.
    """
    if _orchestrator is None:
        raise NotInitializedError("Orchestrator not bootstrapped; call bootstrap_orchestrator()")
    return _orchestrator


def is_orchestrator_running() -> bool:
    return _orchestrator is not None and _orchestrator.is_initialized()


async def stop_orchestrator() -> None:
    """Shut down the process-wide orchestrator. Safe to call when none runs."""
    global _orchestrator
    if _orchestrator is None:
        return
    orchestrator = _orchestrator
    await orchestrator.shutdown()
    _orchestrator = None


__all__ = [
    "bootstrap_orchestrator",
    "get_orchestrator",
    "is_orchestrator_running",
    "stop_orchestrator",
]
