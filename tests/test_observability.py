"""Health aggregation tests.

The aggregation rules are exercised table-style: each case names the
component snapshots and the expected overall status.
"""

from __future__ import annotations

import pytest

from temporal_orchestrator import (
    ClientHealth,
    DiscoveryStats,
    HealthStatus,
    ScheduleStats,
    WorkerStatus,
    aggregate_health,
    worker_health,
)
from temporal_orchestrator.observability import worst_status

HEALTHY_CLIENT = ClientHealth(status=HealthStatus.HEALTHY, namespace="default")
DOWN_CLIENT = ClientHealth(status=HealthStatus.UNHEALTHY, error="connection refused")

RUNNING = WorkerStatus(task_queue="orders", is_initialized=True, is_running=True, is_healthy=True)
STOPPED = WorkerStatus(task_queue="orders", is_initialized=True, is_running=False)
SICK = WorkerStatus(task_queue="orders", is_initialized=True, is_running=True, is_healthy=False)
NEVER_BUILT = WorkerStatus(task_queue="orders")

NO_ERRORS = ScheduleStats(total=1, active=1)
SCHEDULE_ERRORS = ScheduleStats(total=1, active=1, errors=2)

SCHEDULED = DiscoveryStats(controllers=1, methods=1, scheduled=1)
NOTHING_SCHEDULED = DiscoveryStats(controllers=2, methods=3, scheduled=0)
NOTHING_DISCOVERED = DiscoveryStats()


class TestAggregateHealth:
    """Test the overall status table."""

    @pytest.mark.parametrize(
        ("client", "workers", "schedule", "discovery", "expected"),
        [
            pytest.param(HEALTHY_CLIENT, RUNNING, NO_ERRORS, SCHEDULED, HealthStatus.HEALTHY, id="all-good"),
            pytest.param(HEALTHY_CLIENT, None, NO_ERRORS, SCHEDULED, HealthStatus.HEALTHY, id="no-worker"),
            pytest.param(HEALTHY_CLIENT, None, NO_ERRORS, NOTHING_DISCOVERED, HealthStatus.HEALTHY, id="empty"),
            pytest.param(DOWN_CLIENT, RUNNING, NO_ERRORS, SCHEDULED, HealthStatus.UNHEALTHY, id="client-down"),
            pytest.param(DOWN_CLIENT, SICK, SCHEDULE_ERRORS, NOTHING_SCHEDULED, HealthStatus.UNHEALTHY, id="client-wins"),
            pytest.param(HEALTHY_CLIENT, STOPPED, NO_ERRORS, SCHEDULED, HealthStatus.UNHEALTHY, id="worker-stopped"),
            pytest.param(HEALTHY_CLIENT, SICK, NO_ERRORS, SCHEDULED, HealthStatus.DEGRADED, id="worker-sick"),
            pytest.param(HEALTHY_CLIENT, NEVER_BUILT, NO_ERRORS, SCHEDULED, HealthStatus.DEGRADED, id="worker-not-built"),
            pytest.param(HEALTHY_CLIENT, RUNNING, SCHEDULE_ERRORS, SCHEDULED, HealthStatus.DEGRADED, id="schedule-errors"),
            pytest.param(HEALTHY_CLIENT, RUNNING, NO_ERRORS, NOTHING_SCHEDULED, HealthStatus.DEGRADED, id="nothing-scheduled"),
            pytest.param(HEALTHY_CLIENT, STOPPED, SCHEDULE_ERRORS, NOTHING_SCHEDULED, HealthStatus.UNHEALTHY, id="stopped-beats-degraded"),
            pytest.param(HEALTHY_CLIENT, [RUNNING, SICK], NO_ERRORS, SCHEDULED, HealthStatus.DEGRADED, id="one-of-two-sick"),
            pytest.param(HEALTHY_CLIENT, [], NO_ERRORS, SCHEDULED, HealthStatus.HEALTHY, id="empty-worker-list"),
        ],
    )
    def test_status(self, client, workers, schedule, discovery, expected):
        report = aggregate_health(client, workers, schedule, discovery)

        assert report.status is expected

    def test_reasons_listed(self):
        report = aggregate_health(HEALTHY_CLIENT, SICK, SCHEDULE_ERRORS, NOTHING_SCHEDULED)

        assert report.reasons == [
            "worker 'orders' reports unhealthy",
            "2 schedule registration error(s)",
            "controllers discovered but no scheduled workflows",
        ]

    def test_client_reason(self):
        report = aggregate_health(DOWN_CLIENT, RUNNING, NO_ERRORS, SCHEDULED)

        assert report.reasons == ["connection refused"]

    def test_components_present(self):
        report = aggregate_health(HEALTHY_CLIENT, None, NO_ERRORS, SCHEDULED)

        assert set(report.components) == {"client", "worker", "schedules", "discovery"}
        assert report.components["worker"].status is HealthStatus.NOT_AVAILABLE

    def test_is_pure(self):
        """Test identical inputs give identical statuses and inputs stay unchanged."""
        before = SICK.model_copy()

        first = aggregate_health(HEALTHY_CLIENT, SICK, NO_ERRORS, SCHEDULED)
        second = aggregate_health(HEALTHY_CLIENT, SICK, NO_ERRORS, SCHEDULED)

        assert first.status == second.status
        assert first.components == second.components
        assert SICK == before


class TestWorkerHealth:
    """Test the worker component on its own."""

    def test_not_available_without_worker(self):
        assert worker_health(None).status is HealthStatus.NOT_AVAILABLE

    def test_single_worker(self):
        assert worker_health(RUNNING).status is HealthStatus.HEALTHY
        assert worker_health(STOPPED).status is HealthStatus.UNHEALTHY

    def test_details_keyed_by_task_queue(self):
        component = worker_health([RUNNING])

        assert component.details["orders"]["is_running"] is True


class TestWorstStatus:
    @pytest.mark.parametrize(
        ("statuses", "expected"),
        [
            ([], HealthStatus.NOT_AVAILABLE),
            ([HealthStatus.NOT_AVAILABLE], HealthStatus.NOT_AVAILABLE),
            ([HealthStatus.HEALTHY, HealthStatus.NOT_AVAILABLE], HealthStatus.HEALTHY),
            ([HealthStatus.DEGRADED, HealthStatus.HEALTHY], HealthStatus.DEGRADED),
            ([HealthStatus.DEGRADED, HealthStatus.UNHEALTHY], HealthStatus.UNHEALTHY),
        ],
    )
    def test_worst_status(self, statuses, expected):
        assert worst_status(statuses) is expected
