"""Structured logging for the temporal orchestrator.

This module provides structured logging functions backed by the standard
library ``logging`` package, plus a process-wide logging configuration
with an explicit ``configure()``/``reset()`` lifecycle.

Logger handles returned by ``get_logger()`` are cached per context.
Changing the configuration invalidates the cache: handles obtained
afterwards carry the new configuration, while handles obtained before
keep their old snapshot and report ``is_stale``.

Example:
    >>> from temporal_orchestrator import log_info, log_error
    >>>
    >>> log_info("Schedule created", {
    ...     "schedule_id": "daily-report",
    ...     "task_queue": "orders",
    ... })
    >>>
    >>> try:
    ...     await registry.pause("daily-report")
    ... except Exception as e:
    ...     log_error(f"Pause failed: {e}", {
    ...         "schedule_id": "daily-report",
    ...         "error_type": type(e).__name__,
    ...     })
"""

from __future__ import annotations

import logging
from typing import Any

from pydantic import BaseModel, Field

from .types import LogContext

TRACE = 5
logging.addLevelName(TRACE, "TRACE")

ROOT_LOGGER_NAME = "temporal_orchestrator"

# Verbosity order; a message is emitted when its rank <= the configured rank.
_LEVEL_RANK = {"error": 0, "warn": 1, "info": 2, "debug": 3, "trace": 4}

_STDLIB_LEVELS = {
    "error": logging.ERROR,
    "warn": logging.WARNING,
    "info": logging.INFO,
    "debug": logging.DEBUG,
    "trace": TRACE,
}


class LoggingConfig(BaseModel):
    """Process-wide logging configuration.

    Example:
        >>> configure(LoggingConfig(level="debug"))
        >>> configure(enabled=False)
    """

    enabled: bool = Field(default=True, description="Emit log output at all.")
    level: str = Field(
        default="info",
        pattern="^(trace|debug|info|warn|error)$",
        description="Most verbose level that is emitted.",
    )
    logger_name: str = Field(
        default=ROOT_LOGGER_NAME,
        description="Name of the stdlib logger hierarchy root.",
    )

    model_config = {"extra": "forbid", "frozen": True}


_config = LoggingConfig()
_generation = 0
_loggers: dict[str, OrchestratorLogger] = {}


class OrchestratorLogger:
    """Logger handle bound to one context and one configuration snapshot."""

    def __init__(self, context: str, config: LoggingConfig, generation: int) -> None:
        self.context = context
        self.config = config
        self.generation = generation
        name = config.logger_name if not context else f"{config.logger_name}.{context}"
        self._logger = logging.getLogger(name)

    @property
    def is_stale(self) -> bool:
        """True once configure() or reset() has been called after creation."""
        return self.generation != _generation

    def should_log(self, level: str) -> bool:
        if not self.config.enabled:
            return False
        return _LEVEL_RANK[level] <= _LEVEL_RANK[self.config.level]

    def error(self, message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
        self._emit("error", message, fields)

    def warn(self, message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
        self._emit("warn", message, fields)

    def info(self, message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
        self._emit("info", message, fields)

    def debug(self, message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
        self._emit("debug", message, fields)

    def trace(self, message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
        self._emit("trace", message, fields)

    def _emit(self, level: str, message: str, fields: dict[str, Any] | LogContext | None) -> None:
        if not self.should_log(level):
            return
        normalized = _normalize_fields(fields)
        if normalized:
            rendered = " ".join(f"{key}={value}" for key, value in normalized.items())
            message = f"{message} [{rendered}]"
        self._logger.log(_STDLIB_LEVELS[level], message, extra={"fields": normalized})


def configure(config: LoggingConfig | None = None, **overrides: Any) -> LoggingConfig:
    """Replace the process-wide logging configuration.

    Invalidates every cached logger handle.

    Args:
        config: A complete configuration. Defaults to the current one.
        **overrides: Individual fields to change on top of ``config``.

    Returns:
        The configuration now in effect.

    Example:
        >>> configure(level="debug")
        LoggingConfig(enabled=True, level='debug', logger_name='temporal_orchestrator')
    """
    global _config, _generation
    base = config or _config
    if overrides:
        base = LoggingConfig(**{**base.model_dump(), **overrides})
    _config = base
    _generation += 1
    _loggers.clear()
    logging.getLogger(_config.logger_name).setLevel(_STDLIB_LEVELS[_config.level])
    return _config


def reset() -> None:
    """Restore the default configuration and invalidate cached handles."""
    global _config, _generation
    _config = LoggingConfig()
    _generation += 1
    _loggers.clear()
    logging.getLogger(_config.logger_name).setLevel(logging.NOTSET)


def get_config() -> LoggingConfig:
    """Return the configuration currently in effect."""
    return _config


def get_logger(context: str = "") -> OrchestratorLogger:
    """Return the cached logger handle for a context.

    Args:
        context: Component name, appended to the logger hierarchy root.

    Example:
        >>> logger = get_logger("schedules")
        >>> logger.info("Registered schedule", {"schedule_id": "daily-report"})
    """
    logger = _loggers.get(context)
    if logger is None:
        logger = OrchestratorLogger(context, _config, _generation)
        _loggers[context] = logger
    return logger


def log_error(message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
    """Log an ERROR level message with structured fields.

    Use this for failures that require intervention.

    Args:
        message: The log message.
        fields: Optional structured fields for context. Can be a dict
                or a LogContext instance.
    """
    get_logger().error(message, fields)


def log_warn(message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
    """Log a WARN level message with structured fields.

    Use this for degraded operation, such as a worker allowed to fail.
    """
    get_logger().warn(message, fields)


def log_info(message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
    """Log an INFO level message with structured fields.

    Use this for lifecycle events: schedules registered, workers started.
    """
    get_logger().info(message, fields)


def log_debug(message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
    """Log a DEBUG level message with structured fields."""
    get_logger().debug(message, fields)


def log_trace(message: str, fields: dict[str, Any] | LogContext | None = None) -> None:
    """Log a TRACE level message with structured fields."""
    get_logger().trace(message, fields)


def _normalize_fields(fields: dict[str, Any] | LogContext | None) -> dict[str, str]:
    """Convert fields to a dict of strings.

    Args:
        fields: Dict, LogContext, or None.

    Returns:
        Dict with string keys and string values. None values are dropped.
    """
    if fields is None:
        return {}

    if isinstance(fields, LogContext):
        data = fields.model_dump(exclude_none=True)
    else:
        data = fields

    return {str(k): str(v) for k, v in data.items() if v is not None}


__all__ = [
    "TRACE",
    "LoggingConfig",
    "OrchestratorLogger",
    "configure",
    "get_config",
    "get_logger",
    "log_debug",
    "log_error",
    "log_info",
    "log_trace",
    "log_warn",
    "reset",
]
