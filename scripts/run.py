#!/usr/bin/env python3
"""Health-check entrypoint — one-shot run or scheduled loop.

Usage::

    # Run one check now, bypassing the throttle, and print the report
    python scripts/run.py --force

    # Custom config file
    python scripts/run.py --config config/settings.yaml

    # Keep running on the configured schedule until interrupted
    python scripts/run.py --loop --log-level DEBUG
"""

from __future__ import annotations

import argparse
import asyncio
import json
import signal
import sys

import structlog

from stockalert.core.config import load_settings
from stockalert.core.logging import setup_logging
from stockalert.health.factory import create_health_stack
from stockalert.health.orchestrator import HealthCheckOrchestrator
from stockalert.health.scheduler import HealthCheckScheduler
from stockalert.sinks.email import build_email_sink
from stockalert.sinks.supabase import SupabaseBackend

logger = structlog.get_logger(__name__)


async def run_once(orchestrator: HealthCheckOrchestrator, force: bool) -> int:
    report = await orchestrator.run_health_check(force=force)
    print(json.dumps(report.summary(), indent=2))
    return 0 if report.success else 1


async def run_loop(scheduler: HealthCheckScheduler) -> int:
    await scheduler.start()

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

    await scheduler.stop()
    return 0


async def run(args: argparse.Namespace) -> int:
    """Wire the backend, sinks and engine, then run once or on a schedule."""
    settings = load_settings(args.config)
    setup_logging(level=args.log_level)

    if not settings.supabase.url:
        logger.error("supabase_not_configured")
        print(
            "Supabase is not configured. Set supabase.url and supabase.api_key "
            "in config/settings.yaml.",
            file=sys.stderr,
        )
        return 1

    backend = SupabaseBackend(settings.supabase, settings.health_check)
    email = build_email_sink(settings.email)
    await backend.connect()

    orchestrator, scheduler = create_health_stack(
        settings,
        products=backend,
        recipients=backend,
        notifications=backend,
        email=email,
    )

    logger.info(
        "health_check_service_starting",
        mode="loop" if args.loop else "once",
        email=email is not None,
        alerts_enabled=settings.health_check.alerts_enabled,
    )

    try:
        if args.loop:
            return await run_loop(scheduler)
        return await run_once(orchestrator, force=args.force)
    finally:
        if email is not None:
            await email.close()
        await backend.close()


def main() -> None:
    parser = argparse.ArgumentParser(
        description="Scan inventory stock levels and dispatch deduplicated alerts.",
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
    parser.add_argument(
        "--force",
        action="store_true",
        help="Bypass the minimum interval between runs",
    )
    parser.add_argument(
        "--loop",
        action="store_true",
        help="Run on the configured schedule until interrupted",
    )
    args = parser.parse_args()

    code = asyncio.run(run(args))
    sys.exit(code)


if __name__ == "__main__":
    main()
