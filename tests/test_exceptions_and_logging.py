"""Exception hierarchy and logging tests.

These tests verify:
- OrchestratorError is the base exception class
- Not-found errors always carry the missing id
- extract_error_message normalizes any raised value
- Logging functions are callable and accept context
- configure() invalidates cached logger handles
"""

from __future__ import annotations

import logging

import pytest


class TestExceptionHierarchy:
    """Test exception class hierarchy."""

    def test_orchestrator_error_is_base(self):
        """Test OrchestratorError is the base class."""
        from temporal_orchestrator import (
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
        )

        for exc_class in [
            ValidationError,
            ScheduleValidationError,
            NotFoundError,
            ScheduleNotFoundError,
            WorkerNotFoundError,
            WorkflowNotFoundError,
            ConnectivityError,
            InitializationError,
            WorkerStartError,
            NotInitializedError,
            ScheduleOperationError,
            WorkflowOperationError,
        ]:
            assert issubclass(exc_class, OrchestratorError)
            assert issubclass(exc_class, Exception)

    def test_can_catch_by_base_class(self):
        """Test exceptions can be caught by base class."""
        from temporal_orchestrator import OrchestratorError, WorkerStartError

        with pytest.raises(OrchestratorError):
            raise WorkerStartError("Test error")

    def test_schedule_not_found_message(self):
        """Test the missing id is in the message and on the error."""
        from temporal_orchestrator import ScheduleNotFoundError

        error = ScheduleNotFoundError("nightly")

        assert str(error) == "Schedule 'nightly' not found"
        assert error.resource_id == "nightly"
        assert error.metadata["resource_id"] == "nightly"

    def test_to_dict(self):
        from temporal_orchestrator import ScheduleOperationError

        error = ScheduleOperationError("boom", metadata={"schedule_id": "x"})

        assert error.to_dict() == {
            "error_type": "schedule_operation_error",
            "message": "boom",
            "metadata": {"schedule_id": "x"},
        }


class TestExtractErrorMessage:
    """Test error message normalization."""

    @pytest.mark.parametrize(
        ("value", "expected"),
        [
            (ValueError("bad input"), "bad input"),
            (RuntimeError(), "RuntimeError"),
            ("plain string", "plain string"),
            ({"code": 1}, "Unknown error"),
            (None, "Unknown error"),
            (42, "Unknown error"),
        ],
    )
    def test_extract_error_message(self, value, expected):
        from temporal_orchestrator import extract_error_message

        assert extract_error_message(value) == expected


class TestLogging:
    """Test logging functions."""

    def test_log_info_callable(self):
        """Test log_info is callable without raising."""
        from temporal_orchestrator import log_info

        log_info("Test message")
        log_info("Test with fields", {"key": "value"})

    def test_all_levels_callable(self):
        from temporal_orchestrator import log_debug, log_error, log_trace, log_warn

        log_error("Error message", {"schedule_id": "abc"})
        log_warn("Warning message")
        log_debug("Debug message")
        log_trace("Trace message")

    def test_log_with_log_context(self, caplog):
        """Test logging with LogContext model."""
        from temporal_orchestrator import LogContext, log_info

        caplog.set_level(logging.INFO, logger="temporal_orchestrator")
        context = LogContext(task_queue="orders", schedule_id="daily-report", operation="create")

        log_info("Schedule created", context)

        record = caplog.records[-1]
        assert record.getMessage() == (
            "Schedule created [task_queue=orders schedule_id=daily-report operation=create]"
        )
        assert record.fields == {
            "task_queue": "orders",
            "schedule_id": "daily-report",
            "operation": "create",
        }

    def test_none_fields_dropped(self, caplog):
        from temporal_orchestrator import log_info

        caplog.set_level(logging.INFO, logger="temporal_orchestrator")

        log_info("Worker started", {"task_queue": "orders", "error": None})

        assert caplog.records[-1].getMessage() == "Worker started [task_queue=orders]"

    def test_level_filtering(self, caplog):
        from temporal_orchestrator import log_info, log_warn
        from temporal_orchestrator.logging import TRACE, configure

        configure(level="warn")
        caplog.set_level(TRACE, logger="temporal_orchestrator")

        log_info("hidden")
        log_warn("shown")

        assert [r.getMessage() for r in caplog.records] == ["shown"]

    def test_disabled(self, caplog):
        from temporal_orchestrator import log_error
        from temporal_orchestrator.logging import TRACE, configure

        configure(enabled=False)
        caplog.set_level(TRACE, logger="temporal_orchestrator")

        log_error("nothing")

        assert caplog.records == []

    def test_trace_level(self, caplog):
        from temporal_orchestrator import log_trace
        from temporal_orchestrator.logging import TRACE, configure

        configure(level="trace")
        caplog.set_level(TRACE, logger="temporal_orchestrator")

        log_trace("deep detail")

        assert caplog.records[-1].levelname == "TRACE"


class TestLoggerCache:
    """Test logger handle caching across configuration changes."""

    def test_handles_cached_per_context(self):
        from temporal_orchestrator import get_logger

        assert get_logger("schedules") is get_logger("schedules")
        assert get_logger("schedules") is not get_logger("workers")

    def test_configure_invalidates_cache(self):
        """Test handles obtained after configure() carry the new level."""
        from temporal_orchestrator import LoggingConfig, get_logger
        from temporal_orchestrator.logging import configure

        before = get_logger("schedules")
        assert not before.should_log("debug")

        configure(LoggingConfig(level="debug"))
        after = get_logger("schedules")

        assert after is not before
        assert after.should_log("debug")
        assert before.is_stale
        assert not after.is_stale

    def test_reset_restores_defaults(self):
        from temporal_orchestrator.logging import configure, get_config, reset

        configure(level="error", logger_name="custom")
        reset()

        config = get_config()
        assert config.level == "info"
        assert config.logger_name == "temporal_orchestrator"

    def test_invalid_level_rejected(self):
        import pydantic

        from temporal_orchestrator import LoggingConfig

        with pytest.raises(pydantic.ValidationError):
            LoggingConfig(level="verbose")
