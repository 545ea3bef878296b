"""Health aggregation for the temporal orchestrator.

``aggregate_health`` combines the client connectivity signal, worker
snapshots, schedule registry counters and discovery counters into one
HealthReport. It is a pure function: no I/O, no caching, and the same
inputs always give the same status.

Precedence (first match wins):

1. Client unhealthy -> unhealthy.
2. A worker initialized but not running -> unhealthy.
3. Any soft condition -> degraded: a running worker reporting unhealthy,
   a configured worker that was never constructed, schedule
   registration errors, or controllers discovered with no scheduled
   workflows.
4. Otherwise healthy.

With no worker configured the worker component is ``not_available`` and
does not affect the overall status.

Example:
    >>> report = aggregate_health(
    ...     ClientHealth(status=HealthStatus.HEALTHY),
    ...     None,
    ...     ScheduleStats(),
    ...     DiscoveryStats(),
    ... )
    >>> report.status
    <HealthStatus.HEALTHY: 'healthy'>
"""

from __future__ import annotations

from collections.abc import Sequence

from .types import (
    ClientHealth,
    ComponentHealth,
    DiscoveryStats,
    HealthReport,
    HealthStatus,
    ScheduleStats,
    WorkerStatus,
)

_SEVERITY = {
    HealthStatus.HEALTHY: 0,
    HealthStatus.DEGRADED: 1,
    HealthStatus.UNHEALTHY: 2,
}


def worst_status(statuses: Sequence[HealthStatus]) -> HealthStatus:
    """Most severe of the given statuses, ignoring not_available.

    Returns not_available when nothing else is present.
    """
    ranked = [s for s in statuses if s in _SEVERITY]
    if not ranked:
        return HealthStatus.NOT_AVAILABLE
    return max(ranked, key=_SEVERITY.__getitem__)


def _client_component(client: ClientHealth) -> ComponentHealth:
    if client.is_healthy:
        return ComponentHealth(
            name="client",
            status=HealthStatus.HEALTHY,
            details=client.model_dump(mode="json"),
        )
    return ComponentHealth(
        name="client",
        status=HealthStatus.UNHEALTHY,
        message=client.error or "Temporal client is not connected",
        details=client.model_dump(mode="json"),
    )


def _worker_status(worker: WorkerStatus) -> tuple[HealthStatus, str | None]:
    if worker.is_initialized and not worker.is_running:
        return HealthStatus.UNHEALTHY, f"worker '{worker.task_queue}' is not running"
    if worker.is_running and not worker.is_healthy:
        return HealthStatus.DEGRADED, f"worker '{worker.task_queue}' reports unhealthy"
    if not worker.is_initialized:
        return HealthStatus.DEGRADED, f"worker '{worker.task_queue}' is not initialized"
    return HealthStatus.HEALTHY, None


def _worker_component(workers: Sequence[WorkerStatus]) -> tuple[ComponentHealth, list[str]]:
    if not workers:
        return (
            ComponentHealth(
                name="worker",
                status=HealthStatus.NOT_AVAILABLE,
                message="No worker configured",
            ),
            [],
        )

    statuses = []
    reasons = []
    for worker in workers:
        status, reason = _worker_status(worker)
        statuses.append(status)
        if reason:
            reasons.append(reason)

    status = worst_status(statuses)
    return (
        ComponentHealth(
            name="worker",
            status=status,
            message="; ".join(reasons) or None,
            details={w.task_queue: w.model_dump(mode="json") for w in workers},
        ),
        reasons,
    )


def _schedule_component(schedule: ScheduleStats) -> ComponentHealth:
    if schedule.errors > 0:
        return ComponentHealth(
            name="schedules",
            status=HealthStatus.DEGRADED,
            message=f"{schedule.errors} schedule registration error(s)",
            details=schedule.model_dump(),
        )
    return ComponentHealth(name="schedules", status=HealthStatus.HEALTHY, details=schedule.model_dump())


def _discovery_component(discovery: DiscoveryStats) -> ComponentHealth:
    if discovery.controllers > 0 and discovery.scheduled == 0:
        return ComponentHealth(
            name="discovery",
            status=HealthStatus.DEGRADED,
            message="controllers discovered but no scheduled workflows",
            details=discovery.model_dump(),
        )
    return ComponentHealth(name="discovery", status=HealthStatus.HEALTHY, details=discovery.model_dump())


def worker_health(workers: WorkerStatus | Sequence[WorkerStatus] | None) -> ComponentHealth:
    """Health of the worker component alone.

    not_available when no worker is configured; otherwise the worst status
    across the given workers.
    """
    return _worker_component(_as_worker_list(workers))[0]


def _as_worker_list(workers: WorkerStatus | Sequence[WorkerStatus] | None) -> list[WorkerStatus]:
    if workers is None:
        return []
    if isinstance(workers, WorkerStatus):
        return [workers]
    return list(workers)


def aggregate_health(
    client: ClientHealth,
    workers: WorkerStatus | Sequence[WorkerStatus] | None,
    schedule: ScheduleStats,
    discovery: DiscoveryStats,
) -> HealthReport:
    """Combine component snapshots into one status.

    Args:
        client: Connectivity signal for the Temporal client.
        workers: One worker snapshot, several, or None when no worker
            is configured.
        schedule: Schedule registry counters.
        discovery: Discovery counters.

    Returns:
        HealthReport with the overall status, per-component health and
        the reasons that lowered the status.
    """
    worker_list = _as_worker_list(workers)

    client_component = _client_component(client)
    worker_component, worker_reasons = _worker_component(worker_list)
    schedule_component = _schedule_component(schedule)
    discovery_component = _discovery_component(discovery)

    components = {
        c.name: c
        for c in (client_component, worker_component, schedule_component, discovery_component)
    }

    if client_component.status is HealthStatus.UNHEALTHY:
        return HealthReport(
            status=HealthStatus.UNHEALTHY,
            components=components,
            reasons=[client_component.message or "client unhealthy"],
        )

    reasons = list(worker_reasons)
    for component in (schedule_component, discovery_component):
        if component.message:
            reasons.append(component.message)

    status = worst_status(
        [worker_component.status, schedule_component.status, discovery_component.status]
    )
    return HealthReport(status=status, components=components, reasons=reasons)


__all__ = [
    "aggregate_health",
    "worker_health",
    "worst_status",
]
