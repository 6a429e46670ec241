"""Core module — config, types, logging."""

from stockalert.core.config import Settings, get_settings, load_settings, reset_settings
from stockalert.core.logging import run_context, setup_logging
from stockalert.core.types import (
    AlertJob,
    AlertKey,
    CooldownRecord,
    DispatchJob,
    DispatchOutcome,
    DispatchStatus,
    EmailMessage,
    ExpiryJob,
    ExpiryKey,
    ExpiryTier,
    HealthCheckReport,
    NotificationKey,
    NotificationRequest,
    ProductSnapshot,
    Recipient,
    SeverityTier,
)

__all__ = [
    "AlertJob",
    "AlertKey",
    "CooldownRecord",
    "DispatchJob",
    "DispatchOutcome",
    "DispatchStatus",
    "EmailMessage",
    "ExpiryJob",
    "ExpiryKey",
    "ExpiryTier",
    "HealthCheckReport",
    "NotificationKey",
    "NotificationRequest",
    "ProductSnapshot",
    "Recipient",
    "Settings",
    "SeverityTier",
    "get_settings",
    "load_settings",
    "reset_settings",
    "run_context",
    "setup_logging",
]
