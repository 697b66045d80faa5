#!/usr/bin/env python3
"""Alert service entrypoint — runs the periodic escalation and retention sweeps.

Usage::

    # Run with default config
    python scripts/run.py

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Override log level
    python scripts/run.py --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import signal
import sys

import structlog

from alertops.alerts.factory import create_alert_stack, create_store
from alertops.core.config import load_settings, validate_settings
from alertops.core.exceptions import TransientStoreError
from alertops.core.logging import setup_logging

logger = structlog.get_logger(__name__)


async def run(args: argparse.Namespace) -> int:
    """Start the sweep scheduler and run until interrupted."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    for warning in validate_settings(settings):
        logger.warning("config_warning", detail=warning)

    logger.info(
        "alert_service_starting",
        deduplication=settings.deduplication.enabled,
        escalation=settings.escalation.enabled,
        email=settings.notifications.email.enabled,
        slack=settings.notifications.slack.enabled,
    )

    # ── Store ────────────────────────────────────────────────────
    store = create_store(settings)
    try:
        await store.connect()
    except TransientStoreError as exc:
        print(f"Cannot reach alert store: {exc}", file=sys.stderr)
        await store.close()
        return 2

    # ── Manager + scheduler ──────────────────────────────────────
    manager, scheduler = create_alert_stack(settings, store=store)
    await scheduler.start()

    logger.info(
        "alert_service_running",
        check_interval_secs=settings.escalation.check_interval_secs,
        routing_rules=len(manager.router.rules),
    )

    # ── Wait for shutdown signal ─────────────────────────────────
    stop_event = asyncio.Event()

    def _signal_handler() -> None:
        logger.info("shutdown_signal_received")
        stop_event.set()

    loop = asyncio.get_running_loop()
    for sig in (signal.SIGINT, signal.SIGTERM):
        try:
            loop.add_signal_handler(sig, _signal_handler)
        except NotImplementedError:
            # Windows: signal handlers not supported on ProactorEventLoop
            pass

    try:
        await stop_event.wait()
    except KeyboardInterrupt:
        logger.info("keyboard_interrupt")

    # ── Graceful shutdown ────────────────────────────────────────
    logger.info("alert_service_shutting_down")
    await scheduler.stop()
    if manager.dispatcher is not None:
        await manager.dispatcher.close()
    await store.close()
    logger.info("alert_service_stopped")
    return 0


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Run the alert escalation and retention service.",
    )
    parser.add_argument(
        "--config",
        default=None,
        help="Path to settings YAML (default: config/settings.yaml)",
    )
    parser.add_argument(
        "--log-level",
        default=None,
        help="Log level override: DEBUG, INFO, WARNING, ERROR",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
