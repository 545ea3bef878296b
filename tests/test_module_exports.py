"""Module export tests.

These tests verify:
- All expected symbols are exported from temporal_orchestrator
- __all__ only names attributes that exist
"""

from __future__ import annotations

import temporal_orchestrator


class TestExports:
    """Test the public surface of the package."""

    def test_version(self):
        assert temporal_orchestrator.__version__ == "0.1.0"

    def test_all_names_resolve(self):
        """Test every name in __all__ is an attribute of the package."""
        for name in temporal_orchestrator.__all__:
            assert hasattr(temporal_orchestrator, name), name

    def test_components_exported(self):
        expected = {
            "MetadataRegistry",
            "ScheduleSpecBuilder",
            "ScheduleRegistry",
            "WorkerLifecycleManager",
            "aggregate_health",
            "TemporalOrchestrator",
        }

        assert expected <= set(temporal_orchestrator.__all__)

    def test_annotations_exported(self):
        from temporal_orchestrator import (
            activity,
            cron_schedule,
            interval_schedule,
            query,
            scheduled,
            signal,
            workflow_controller,
            workflow_method,
        )

        for decorator in [
            activity,
            cron_schedule,
            interval_schedule,
            query,
            scheduled,
            signal,
            workflow_controller,
            workflow_method,
        ]:
            assert callable(decorator)

    def test_bootstrap_exported(self):
        from temporal_orchestrator import (
            bootstrap_orchestrator,
            get_orchestrator,
            is_orchestrator_running,
            stop_orchestrator,
        )

        assert callable(bootstrap_orchestrator)
        assert callable(get_orchestrator)
        assert callable(is_orchestrator_running)
        assert callable(stop_orchestrator)

    def test_no_duplicates_in_all(self):
        assert len(temporal_orchestrator.__all__) == len(set(temporal_orchestrator.__all__))
