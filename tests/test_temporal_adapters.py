"""temporalio adapter tests.

These tests verify the conversions between orchestrator models and the
SDK types, using mocks in place of a running Temporal server.
"""

from __future__ import annotations

from datetime import timedelta
from types import SimpleNamespace
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from temporalio import workflow
from temporalio.client import ScheduleOverlapPolicy, ScheduleRange
from temporalio.service import RPCError, RPCStatusCode

from temporal_orchestrator import (
    ConnectionConfig,
    ConnectivityError,
    ScheduleAction,
    ScheduleSpecBuilder,
    ScheduleValidationError,
    TemporalScheduleClient,
    TemporalWorkerFactory,
    ValidationError,
    WorkerDefinition,
    connect,
)
from temporal_orchestrator.discovery import ActivityMethodInfo
from temporal_orchestrator.temporal import (
    TemporalScheduleHandle,
    as_temporal_activity,
    build_tls_config,
    discover_workflows,
    resolve_workflows,
    to_temporal_action,
    to_temporal_calendar,
    to_temporal_spec,
)


@workflow.defn(name="Ping")
class PingWorkflow:
    @workflow.run
    async def run(self) -> str:
        return "pong"


class NotAWorkflow:
    pass


class TestSpecConversion:
    """Test ScheduleSpec to SDK conversion."""

    def test_cron_interval_and_time_zone(self):
        spec = ScheduleSpecBuilder.build(
            {"cron": "0 8 * * *", "interval": ["90s", 500], "timezone": "UTC", "jitter": "30s"}
        )

        converted = to_temporal_spec(spec)

        assert converted.cron_expressions == ["0 8 * * *"]
        assert [i.every for i in converted.intervals] == [timedelta(seconds=90), timedelta(milliseconds=500)]
        assert converted.time_zone_name == "UTC"
        assert converted.jitter == timedelta(seconds=30)

    def test_calendar_rule(self):
        calendar = to_temporal_calendar(
            {"hour": 8, "minute": "*/15", "day_of_week": "1-5", "comment": "weekday mornings"}
        )

        assert calendar.hour == [ScheduleRange(8)]
        assert calendar.minute == [ScheduleRange(0, 59, 15)]
        assert calendar.day_of_week == [ScheduleRange(1, 5)]
        assert calendar.comment == "weekday mornings"

    def test_calendar_list_values(self):
        calendar = to_temporal_calendar({"hour": [8, 20]})

        assert calendar.hour == [ScheduleRange(8), ScheduleRange(20)]

    @pytest.mark.parametrize(
        "rule",
        [{"hours": 8}, {"hour": "noon"}, "0 8 * * *"],
    )
    def test_invalid_calendar(self, rule):
        with pytest.raises(ScheduleValidationError):
            to_temporal_calendar(rule)


class TestActionConversion:
    def test_action_defaults_id_to_schedule_id(self):
        action = ScheduleAction(
            workflow_type="DailyReport",
            task_queue="orders",
            args=["summary"],
            execution_timeout="1h",
        )

        converted = to_temporal_action("daily-report", action)

        assert converted.workflow == "DailyReport"
        assert converted.id == "daily-report"
        assert converted.task_queue == "orders"
        assert list(converted.args) == ["summary"]
        assert converted.execution_timeout == timedelta(hours=1)

    def test_explicit_workflow_id(self):
        action = ScheduleAction(workflow_type="DailyReport", workflow_id="report")

        assert to_temporal_action("daily-report", action).id == "report"


class TestScheduleClient:
    """Test TemporalScheduleClient against a mocked SDK client."""

    @pytest.mark.asyncio
    async def test_create_schedule(self):
        client = MagicMock()
        client.create_schedule = AsyncMock(return_value=SimpleNamespace(id="daily-report"))
        spec = ScheduleSpecBuilder.build({"cron": "0 8 * * *", "timezone": "UTC"})
        action = ScheduleAction(workflow_type="DailyReport", task_queue="orders")

        handle = await TemporalScheduleClient(client).create_schedule(
            "daily-report", spec, action, paused=True, note="Started in paused state"
        )

        assert handle.id == "daily-report"
        schedule_id, schedule = client.create_schedule.await_args.args
        assert schedule_id == "daily-report"
        assert schedule.state.paused is True
        assert schedule.state.note == "Started in paused state"
        assert schedule.spec.time_zone_name == "UTC"
        assert client.create_schedule.await_args.kwargs == {}

    @pytest.mark.asyncio
    async def test_get_schedule_not_found(self):
        remote = MagicMock()
        remote.describe = AsyncMock(side_effect=RPCError("not found", RPCStatusCode.NOT_FOUND, b""))
        client = MagicMock()
        client.get_schedule_handle.return_value = remote

        assert await TemporalScheduleClient(client).get_schedule("nightly") is None

    @pytest.mark.asyncio
    async def test_get_schedule_other_error_raised(self):
        remote = MagicMock()
        remote.describe = AsyncMock(side_effect=RPCError("denied", RPCStatusCode.PERMISSION_DENIED, b""))
        client = MagicMock()
        client.get_schedule_handle.return_value = remote

        with pytest.raises(RPCError):
            await TemporalScheduleClient(client).get_schedule("nightly")

    @pytest.mark.asyncio
    async def test_list_schedules(self):
        async def entries():
            for sid in ("a", "b", "c"):
                state = SimpleNamespace(paused=sid == "b", note=None)
                yield SimpleNamespace(id=sid, schedule=SimpleNamespace(state=state))

        client = MagicMock()
        client.list_schedules = AsyncMock(return_value=entries())

        listed = await TemporalScheduleClient(client).list_schedules(max_items=2)

        assert listed == [
            {"schedule_id": "a", "paused": False, "note": None},
            {"schedule_id": "b", "paused": True, "note": None},
        ]

    @pytest.mark.asyncio
    async def test_trigger_maps_overlap_policy(self):
        remote = MagicMock()
        remote.id = "daily-report"
        remote.trigger = AsyncMock()

        await TemporalScheduleHandle(remote).trigger("BUFFER_ONE")

        remote.trigger.assert_awaited_once_with(overlap=ScheduleOverlapPolicy.BUFFER_ONE)


class TestConnect:
    @pytest.mark.asyncio
    async def test_connect_failure(self):
        with patch(
            "temporal_orchestrator.temporal.Client.connect",
            new=AsyncMock(side_effect=RuntimeError("connection refused")),
        ):
            with pytest.raises(ConnectivityError, match="connection refused"):
                await connect(ConnectionConfig(address="nowhere:7233"))

    @pytest.mark.asyncio
    async def test_connect_passes_options(self):
        mock_connect = AsyncMock(return_value=MagicMock())
        with patch("temporal_orchestrator.temporal.Client.connect", new=mock_connect):
            await connect(ConnectionConfig(namespace="billing", api_key="key", metadata={"x-team": "ops"}))

        args, kwargs = mock_connect.await_args
        assert args == ("localhost:7233",)
        assert kwargs["namespace"] == "billing"
        assert kwargs["api_key"] == "key"
        assert kwargs["rpc_metadata"] == {"x-team": "ops"}
        assert kwargs["tls"] is False

    def test_tls_from_files(self, tmp_path):
        cert = tmp_path / "client.pem"
        key = tmp_path / "client.key"
        cert.write_bytes(b"CERT")
        key.write_bytes(b"KEY")

        tls = build_tls_config(
            ConnectionConfig(
                tls={"enabled": True, "client_cert_path": str(cert), "client_key_path": str(key)}
            )
        )

        assert tls.client_cert == b"CERT"
        assert tls.client_private_key == b"KEY"
        assert tls.server_root_ca_cert is None


class TestWorkflowResolution:
    def test_resolve_classes_and_import_strings(self):
        definition = WorkerDefinition(task_queue="q", workflows=[PingWorkflow, f"{__name__}:PingWorkflow"])

        assert resolve_workflows(definition) == [PingWorkflow, PingWorkflow]

    def test_discover_in_module(self):
        assert discover_workflows(__name__) == [PingWorkflow]

    def test_bad_import_string(self):
        definition = WorkerDefinition(task_queue="q", workflows=["no_such_module:Missing"])

        with pytest.raises(ValidationError, match="Cannot import workflow"):
            resolve_workflows(definition)

    def test_missing_workflows_path(self):
        with pytest.raises(ValidationError, match="workflows_path"):
            discover_workflows("no_such_package.workflows")


class TestActivities:
    @pytest.mark.asyncio
    async def test_async_activity_registered_under_public_name(self):
        async def send(recipient: str) -> str:
            return f"sent to {recipient}"

        fn = as_temporal_activity(
            ActivityMethodInfo(method_name="send", public_name="send_report", handler=send)
        )

        assert getattr(fn, "__temporal_activity_definition").name == "send_report"
        assert await fn("ops") == "sent to ops"

    def test_activity_without_handler(self):
        with pytest.raises(ValidationError):
            as_temporal_activity(ActivityMethodInfo(method_name="x", public_name="x"))


class TestWorkerFactory:
    """Test TemporalWorkerFactory worker construction."""

    @pytest.mark.asyncio
    async def test_create_worker(self):
        client = MagicMock()
        client.namespace = "default"

        def sync_activity(value: int) -> int:
            return value

        with patch("temporal_orchestrator.temporal.Worker") as mock_worker:
            await TemporalWorkerFactory(client).create_worker(
                WorkerDefinition(task_queue="orders", workflows=[PingWorkflow], max_concurrent_activities=5),
                "default",
                [ActivityMethodInfo(method_name="sync_activity", public_name="double", handler=sync_activity)],
            )

        args, kwargs = mock_worker.call_args
        assert args == (client,)
        assert kwargs["task_queue"] == "orders"
        assert kwargs["workflows"] == [PingWorkflow]
        assert len(kwargs["activities"]) == 1
        assert kwargs["max_concurrent_activities"] == 5
        assert kwargs["activity_executor"] is not None

    @pytest.mark.asyncio
    async def test_other_namespace_gets_own_client(self):
        client = MagicMock()
        client.namespace = "default"

        with patch("temporal_orchestrator.temporal.Worker") as mock_worker, patch(
            "temporal_orchestrator.temporal.Client"
        ) as mock_client:
            await TemporalWorkerFactory(client).create_worker(
                WorkerDefinition(task_queue="orders"), "billing", []
            )

        assert mock_client.call_args.kwargs["namespace"] == "billing"
        assert mock_worker.call_args.args == (mock_client.return_value,)
        assert "activity_executor" not in mock_worker.call_args.kwargs
