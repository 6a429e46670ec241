"""Convenience factory for wiring the health-check stack."""

from __future__ import annotations

import time
from collections.abc import Callable

from stockalert.core.config import Settings
from stockalert.health.cooldown import CooldownStore
from stockalert.health.dispatcher import NotificationDispatcher
from stockalert.health.orchestrator import HealthCheckOrchestrator
from stockalert.health.scheduler import HealthCheckScheduler
from stockalert.sinks.base import (
    EmailSink,
    NotificationSink,
    ProductProvider,
    RecipientProvider,
)


def create_health_stack(
    settings: Settings,
    products: ProductProvider,
    recipients: RecipientProvider,
    notifications: NotificationSink,
    email: EmailSink | None = None,
    clock: Callable[[], float] = time.time,
) -> tuple[HealthCheckOrchestrator, HealthCheckScheduler]:
    """Build an orchestrator + scheduler from config.

    Cooldown state is loaded from ``settings.cooldown.state_path`` when set.

    Returns:
        (orchestrator, scheduler)
    """
    cooldown = CooldownStore(settings.cooldown)
    if settings.cooldown.state_path:
        cooldown.load(settings.cooldown.state_path)

    dispatcher = NotificationDispatcher(
        notifications=notifications,
        cooldown=cooldown,
        email=email,
        config=settings.dispatch,
        clock=clock,
    )

    orchestrator = HealthCheckOrchestrator(
        products=products,
        recipients=recipients,
        dispatcher=dispatcher,
        cooldown=cooldown,
        config=settings.health_check,
        classifier_config=settings.classifier,
        expiry_config=settings.expiry,
        state_path=settings.cooldown.state_path,
        clock=clock,
    )

    scheduler = HealthCheckScheduler(
        orchestrator=orchestrator,
        interval_secs=settings.health_check.schedule_interval_minutes * 60.0,
    )

    return orchestrator, scheduler
