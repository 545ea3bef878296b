"""Validation helper tests."""

from __future__ import annotations

import pytest

from temporal_orchestrator import ValidationError
from temporal_orchestrator.validation import (
    is_valid_cron_expression,
    is_valid_interval_expression,
    safe_initialize,
    validate_query_name,
    validate_signal_name,
    validate_task_queue,
    validate_workflow_id,
    validate_workflow_type,
)


class TestRequiredValues:
    """Test presence checks."""

    @pytest.mark.parametrize("value", [None, "", "   "])
    def test_workflow_id_required(self, value):
        with pytest.raises(ValidationError, match="Workflow ID is required"):
            validate_workflow_id(value)

    def test_valid_values_returned(self):
        assert validate_workflow_id("order-1") == "order-1"
        assert validate_workflow_type("ProcessOrder") == "ProcessOrder"
        assert validate_task_queue("orders") == "orders"

    def test_blank_task_queue(self):
        with pytest.raises(ValidationError, match="Task queue is required"):
            validate_task_queue("")

    @pytest.mark.parametrize("validator", [validate_signal_name, validate_query_name])
    def test_names_reject_whitespace(self, validator):
        assert validator("approve") == "approve"
        with pytest.raises(ValidationError, match="whitespace"):
            validator("approve order")


class TestExpressions:
    """Test cron and interval shape checks."""

    @pytest.mark.parametrize(
        ("expression", "valid"),
        [
            ("0 8 * * *", True),
            ("*/15 * * * *", True),
            ("0 0 12 ? * MON-FRI", False),
            ("30 0 8 * * *", True),
            ("0 0 L * *", True),
            ("60 0 8 * * *", False),
            ("@daily", False),
            ("0 8 * *", False),
            ("0 8 * * * * *", False),
            ("0 8 # * *", False),
        ],
    )
    def test_cron(self, expression, valid):
        assert is_valid_cron_expression(expression) is valid

    @pytest.mark.parametrize(
        ("expression", "valid"),
        [("30s", True), ("500ms", True), ("5m", True), ("1d", False), ("1dms", False), ("5", False), ("1.5h", False), ("h", False)],
    )
    def test_interval(self, expression, valid):
        assert is_valid_interval_expression(expression) is valid


class TestSafeInitialize:
    """Test allow-failure initialization."""

    @pytest.mark.asyncio
    async def test_success_returns_result(self):
        async def init():
            return "ready"

        assert await safe_initialize("schedules", init) == "ready"

    @pytest.mark.asyncio
    async def test_failure_allowed_returns_none(self):
        async def init():
            raise RuntimeError("boom")

        assert await safe_initialize("workers", init, allow_failure=True) is None

    @pytest.mark.asyncio
    async def test_failure_raised(self):
        async def init():
            raise RuntimeError("boom")

        with pytest.raises(RuntimeError, match="boom"):
            await safe_initialize("workers", init)
