"""Configuration for the temporal orchestrator.

Configuration is a Pydantic model, loaded from a YAML file and then
overridden from environment variables.

Config file resolution priority:
1. Explicit ``path`` argument
2. TEMPORAL_ORCHESTRATOR_CONFIG environment variable
3. No file: defaults plus environment overrides

Environment overrides:
    TEMPORAL_ADDRESS, TEMPORAL_NAMESPACE, TEMPORAL_API_KEY,
    TEMPORAL_TASK_QUEUE, TEMPORAL_LOG_LEVEL, TEMPORAL_ALLOW_WORKER_FAILURE

Example YAML:
    connection:
      address: temporal.internal:7233
      namespace: billing
    task_queue: orders
    workers:
      - task_queue: orders
        workflows_path: billing.workflows
    schedules:
      default_time_zone: Europe/Berlin
"""

from __future__ import annotations

import os
from collections.abc import Mapping
from pathlib import Path
from typing import Any

import pydantic
import yaml
from pydantic import BaseModel, Field

from .exceptions import ValidationError
from .logging import LoggingConfig
from .worker import WorkerDefinition

CONFIG_PATH_ENV = "TEMPORAL_ORCHESTRATOR_CONFIG"

DEFAULT_ADDRESS = "localhost:7233"
DEFAULT_NAMESPACE = "default"
DEFAULT_TASK_QUEUE = "default-task-queue"

_TRUE_VALUES = {"1", "true", "yes", "on"}


class TLSSettings(BaseModel):
    """TLS material for the cluster connection. Paths point at PEM files."""

    enabled: bool = Field(default=False, description="Connect with TLS.")
    client_cert_path: str | None = Field(default=None, description="Client certificate.")
    client_key_path: str | None = Field(default=None, description="Client private key.")
    server_root_ca_path: str | None = Field(default=None, description="Server root CA.")
    domain: str | None = Field(default=None, description="Server name override.")

    model_config = {"extra": "forbid"}


class ConnectionConfig(BaseModel):
    """How to reach the Temporal cluster."""

    address: str = Field(default=DEFAULT_ADDRESS, description="host:port of the frontend.")
    namespace: str = Field(default=DEFAULT_NAMESPACE, description="Temporal namespace.")
    api_key: str | None = Field(default=None, description="API key for Temporal Cloud.")
    identity: str | None = Field(default=None, description="Client identity.")
    tls: TLSSettings = Field(default_factory=TLSSettings)
    metadata: dict[str, str] = Field(default_factory=dict, description="gRPC headers.")

    model_config = {"extra": "forbid"}


class ScheduleSettings(BaseModel):
    default_time_zone: str = Field(default="UTC", description="Applied when a schedule has none.")
    auto_register: bool = Field(
        default=True,
        description="Create discovered schedules during initialization.",
    )

    model_config = {"extra": "forbid"}


class ReadinessSettings(BaseModel):
    """Bounded best-effort wait for client and discovery readiness."""

    poll_interval_ms: int = Field(default=100, ge=1)
    timeout_ms: int = Field(default=30000, ge=0)

    model_config = {"extra": "forbid"}


class OrchestratorConfig(BaseModel):
    """Top-level orchestrator configuration."""

    connection: ConnectionConfig = Field(default_factory=ConnectionConfig)
    task_queue: str | None = Field(
        default=None,
        description="Default task queue for workflow operations.",
    )
    allow_worker_failure: bool = Field(
        default=False,
        description="Record worker start failures instead of aborting initialization.",
    )
    allow_connection_failure: bool = Field(
        default=True,
        description="Continue initialization when the first connection attempt fails.",
    )
    workers: list[WorkerDefinition] = Field(default_factory=list)
    schedules: ScheduleSettings = Field(default_factory=ScheduleSettings)
    readiness: ReadinessSettings = Field(default_factory=ReadinessSettings)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"extra": "forbid"}

    @property
    def default_task_queue(self) -> str:
        return self.task_queue or DEFAULT_TASK_QUEUE


def _apply_env_overrides(data: dict[str, Any], env: Mapping[str, str]) -> dict[str, Any]:
    data = dict(data)
    connection = dict(data.get("connection") or {})
    for env_name, key in (
        ("TEMPORAL_ADDRESS", "address"),
        ("TEMPORAL_NAMESPACE", "namespace"),
        ("TEMPORAL_API_KEY", "api_key"),
    ):
        if env.get(env_name):
            connection[key] = env[env_name]
    if connection:
        data["connection"] = connection

    if env.get("TEMPORAL_TASK_QUEUE"):
        data["task_queue"] = env["TEMPORAL_TASK_QUEUE"]
    if env.get("TEMPORAL_ALLOW_WORKER_FAILURE"):
        data["allow_worker_failure"] = env["TEMPORAL_ALLOW_WORKER_FAILURE"].lower() in _TRUE_VALUES
    if env.get("TEMPORAL_LOG_LEVEL"):
        data["logging"] = {**(data.get("logging") or {}), "level": env["TEMPORAL_LOG_LEVEL"].lower()}
    return data


def load_config(
    path: str | Path | None = None,
    *,
    env: Mapping[str, str] | None = None,
) -> OrchestratorConfig:
    """Load configuration from YAML and the environment.

    Args:
        path: YAML file. Defaults to TEMPORAL_ORCHESTRATOR_CONFIG.
        env: Environment mapping. Defaults to ``os.environ``.

    Returns:
        Validated OrchestratorConfig.

    Raises:
        ValidationError: If the file is missing or the configuration is
            invalid.
    """
    env = os.environ if env is None else env
    path = path or env.get(CONFIG_PATH_ENV)

    data: dict[str, Any] = {}
    if path:
        config_file = Path(path)
        if not config_file.is_file():
            raise ValidationError(f"Config file not found: {config_file}")
        with config_file.open() as f:
            loaded = yaml.safe_load(f)
        if loaded is not None and not isinstance(loaded, dict):
            raise ValidationError(f"Config file must contain a mapping: {config_file}")
        data = loaded or {}

    try:
        return OrchestratorConfig.model_validate(_apply_env_overrides(data, env))
    except pydantic.ValidationError as e:
        raise ValidationError(f"Invalid configuration: {e}") from e


__all__ = [
    "CONFIG_PATH_ENV",
    "DEFAULT_ADDRESS",
    "DEFAULT_NAMESPACE",
    "DEFAULT_TASK_QUEUE",
    "ConnectionConfig",
    "OrchestratorConfig",
    "ReadinessSettings",
    "ScheduleSettings",
    "TLSSettings",
    "load_config",
]
