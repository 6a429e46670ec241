"""Inventory health-check engine: classify, deduplicate, dispatch, report."""

from stockalert.health.classifier import (
    classify,
    classify_expiry,
    days_until_expiry,
    effective_reorder_level,
)
from stockalert.health.cooldown import CooldownStore
from stockalert.health.dispatcher import NotificationDispatcher
from stockalert.health.exceptions import (
    DeliveryError,
    HealthCheckError,
    PersistError,
    ProviderUnavailableError,
)
from stockalert.health.factory import create_health_stack
from stockalert.health.formatters import (
    build_email,
    build_expiry_notification,
    build_failure_notice,
    build_notification,
)
from stockalert.health.orchestrator import HealthCheckOrchestrator
from stockalert.health.scheduler import HealthCheckScheduler

__all__ = [
    "CooldownStore",
    "DeliveryError",
    "HealthCheckError",
    "HealthCheckOrchestrator",
    "HealthCheckScheduler",
    "NotificationDispatcher",
    "PersistError",
    "ProviderUnavailableError",
    "build_email",
    "build_expiry_notification",
    "build_failure_notice",
    "build_notification",
    "classify",
    "classify_expiry",
    "create_health_stack",
    "days_until_expiry",
    "effective_reorder_level",
]
