#!/usr/bin/env python3
"""Temporal Orchestrator Server.

Bootstraps the orchestrator against a Temporal cluster, registers the
configured controllers and keeps workers running until a shutdown signal
arrives.
"""

from __future__ import annotations

import asyncio
import importlib
import logging
import os
import signal
import sys
from typing import Any

# Add the python source directory to the path for imports
sys.path.insert(0, os.path.join(os.path.dirname(__file__), "..", "python"))

from temporal_orchestrator import (
    HealthStatus,
    OrchestratorError,
    bootstrap_orchestrator,
    get_orchestrator,
    is_orchestrator_running,
    load_config,
    stop_orchestrator,
)

log_level = os.environ.get("TEMPORAL_LOG_LEVEL", "info").upper()
if log_level == "TRACE":
    log_level = "DEBUG"
logging.basicConfig(
    level=getattr(logging, log_level, logging.INFO),
    format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    datefmt="%Y-%m-%dT%H:%M:%S%z",
)
logger = logging.getLogger("temporal-orchestrator-server")

HEALTH_LOG_EVERY = 60


def show_banner() -> None:
    """Display startup banner."""
    logger.info("=" * 60)
    logger.info("Starting Temporal Orchestrator")
    logger.info("=" * 60)
    logger.info(f"Python Version: {sys.version.split()[0]}")
    logger.info(f"Temporal Address: {os.environ.get('TEMPORAL_ADDRESS', 'Not set')}")
    logger.info(f"Namespace: {os.environ.get('TEMPORAL_NAMESPACE', 'Not set')}")
    logger.info(f"API Key: {'[REDACTED]' if os.environ.get('TEMPORAL_API_KEY') else 'Not set'}")
    logger.info(f"Config Path: {os.environ.get('TEMPORAL_ORCHESTRATOR_CONFIG', 'Not set')}")
    logger.info(f"Controllers: {os.environ.get('TEMPORAL_CONTROLLERS', 'Not set')}")


def load_controllers(spec: str | None) -> list[Any]:
    """Instantiate controllers from a comma-separated list of
    ``module:ClassName`` entries.
    """
    controllers: list[Any] = []
    if not spec:
        return controllers

    for entry in (part.strip() for part in spec.split(",")):
        if not entry:
            continue
        module_name, _, class_name = entry.partition(":")
        module = importlib.import_module(module_name)
        controllers.append(getattr(module, class_name)())
        logger.info(f"  Loaded controller: {entry}")
    return controllers


def log_status() -> None:
    try:
        stats = get_orchestrator().get_stats()
        logger.info(f"Orchestrator Status: {stats.model_dump(mode='json')}")
    except OrchestratorError as e:
        logger.error(f"Failed to get orchestrator status: {e}")


async def run() -> int:
    """Run the orchestrator until SIGTERM or SIGINT."""
    shutdown_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def handle_shutdown(sig: signal.Signals) -> None:
        logger.info(f"Received {sig.name} signal, initiating shutdown...")
        shutdown_event.set()

    for sig in (signal.SIGTERM, signal.SIGINT):
        loop.add_signal_handler(sig, handle_shutdown, sig)
    if hasattr(signal, "SIGUSR1"):
        loop.add_signal_handler(signal.SIGUSR1, log_status)

    config = load_config()
    controllers = load_controllers(os.environ.get("TEMPORAL_CONTROLLERS"))

    orchestrator = await bootstrap_orchestrator(config, controllers=controllers)
    stats = orchestrator.get_discovery_stats()
    logger.info(
        f"Discovery complete: {stats.controllers} controllers, "
        f"{stats.methods} workflows, {stats.scheduled} schedules"
    )
    logger.info("Orchestrator ready")
    logger.info("=" * 60)

    interval = 5 if os.environ.get("TEMPORAL_ENV") == "production" else 1
    loop_count = 0
    while not shutdown_event.is_set():
        try:
            await asyncio.wait_for(shutdown_event.wait(), timeout=interval)
        except asyncio.TimeoutError:
            pass
        if shutdown_event.is_set():
            break

        # Periodic health check
        loop_count += 1
        if loop_count % HEALTH_LOG_EVERY == 0:
            report = await orchestrator.get_overall_health()
            check = loop_count // HEALTH_LOG_EVERY
            if report.status == HealthStatus.HEALTHY:
                logger.debug(f"Health check #{check}: OK")
            else:
                logger.warning(
                    f"Health check #{check}: {report.status.value.upper()} - {'; '.join(report.reasons)}"
                )

    logger.info("Starting shutdown sequence...")
    try:
        if is_orchestrator_running():
            await stop_orchestrator()
    except OrchestratorError as e:
        logger.error(f"Error during shutdown: {e}")
        return 1

    logger.info("Temporal Orchestrator terminated gracefully")
    return 0


def main() -> int:
    show_banner()
    try:
        return asyncio.run(run())
    except OrchestratorError as e:
        logger.error(f"Failed to bootstrap orchestrator: {e}")
        return 3
    except Exception as e:
        logger.critical(f"Unexpected error during startup: {type(e).__name__} - {e}", exc_info=True)
        return 4


if __name__ == "__main__":
    sys.exit(main())
