"""Configuration loading tests."""

from __future__ import annotations

import pytest

from temporal_orchestrator import DEFAULT_TASK_QUEUE, OrchestratorConfig, ValidationError, load_config
from temporal_orchestrator.config import CONFIG_PATH_ENV

CONFIG_YAML = """
connection:
  address: temporal.internal:7233
  namespace: billing
task_queue: orders
allow_worker_failure: true
workers:
  - task_queue: orders
    workflows_path: billing.workflows
    max_concurrent_activities: 10
schedules:
  default_time_zone: Europe/Berlin
logging:
  level: debug
"""


class TestDefaults:
    def test_defaults(self):
        config = load_config(env={})

        assert config.connection.address == "localhost:7233"
        assert config.connection.namespace == "default"
        assert config.task_queue is None
        assert config.default_task_queue == DEFAULT_TASK_QUEUE
        assert config.allow_worker_failure is False
        assert config.allow_connection_failure is True
        assert config.schedules.default_time_zone == "UTC"
        assert config.readiness.timeout_ms == 30000
        assert config.workers == []


class TestLoadFile:
    """Test YAML loading."""

    def test_load_from_path(self, tmp_path):
        path = tmp_path / "temporal.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(path, env={})

        assert config.connection.address == "temporal.internal:7233"
        assert config.connection.namespace == "billing"
        assert config.default_task_queue == "orders"
        assert config.allow_worker_failure is True
        assert config.workers[0].workflows_path == "billing.workflows"
        assert config.workers[0].max_concurrent_activities == 10
        assert config.schedules.default_time_zone == "Europe/Berlin"
        assert config.logging.level == "debug"

    def test_load_from_env_path(self, tmp_path):
        path = tmp_path / "temporal.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(env={CONFIG_PATH_ENV: str(path)})

        assert config.connection.namespace == "billing"

    def test_empty_file(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("")

        assert load_config(path, env={}) == OrchestratorConfig()

    def test_missing_file(self, tmp_path):
        with pytest.raises(ValidationError, match="Config file not found"):
            load_config(tmp_path / "missing.yaml", env={})

    def test_non_mapping_file(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- one\n- two\n")

        with pytest.raises(ValidationError, match="must contain a mapping"):
            load_config(path, env={})

    def test_unknown_key_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("conection:\n  address: typo:7233\n")

        with pytest.raises(ValidationError, match="Invalid configuration"):
            load_config(path, env={})

    def test_conflicting_worker_sources_rejected(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text(
            "workers:\n  - task_queue: orders\n    workflows: ['m:W']\n    workflows_path: pkg\n"
        )

        with pytest.raises(ValidationError):
            load_config(path, env={})


class TestEnvOverrides:
    """Test environment variable overrides."""

    def test_env_overrides_file(self, tmp_path):
        path = tmp_path / "temporal.yaml"
        path.write_text(CONFIG_YAML)

        config = load_config(
            path,
            env={
                "TEMPORAL_ADDRESS": "prod:7233",
                "TEMPORAL_NAMESPACE": "prod",
                "TEMPORAL_API_KEY": "secret",
                "TEMPORAL_TASK_QUEUE": "priority",
                "TEMPORAL_LOG_LEVEL": "WARN",
                "TEMPORAL_ALLOW_WORKER_FAILURE": "false",
            },
        )

        assert config.connection.address == "prod:7233"
        assert config.connection.namespace == "prod"
        assert config.connection.api_key == "secret"
        assert config.task_queue == "priority"
        assert config.logging.level == "warn"
        assert config.allow_worker_failure is False

    def test_invalid_log_level_env(self):
        with pytest.raises(ValidationError):
            load_config(env={"TEMPORAL_LOG_LEVEL": "loud"})
