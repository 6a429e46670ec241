"""Domain types for the inventory health-alerting engine."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import date
from enum import IntEnum, StrEnum
from typing import Any, NamedTuple

from pydantic import BaseModel, ConfigDict, Field


class SeverityTier(IntEnum):
    """Stock severity — ordered by urgency so comparisons work naturally."""

    HEALTHY = 0
    LOW = 1
    CRITICAL = 2
    OUT_OF_STOCK = 3


class ExpiryTier(IntEnum):
    """How close a product is to its expiry date."""

    NONE = 0
    WARNING = 1
    CRITICAL = 2


class NotificationType(StrEnum):
    """UI styling hint for an in-app notification."""

    ERROR = "error"
    WARNING = "warning"
    SUCCESS = "success"
    INFO = "info"


class NotificationPriority(IntEnum):
    """Lower numbers are more urgent."""

    CRITICAL = 1
    HIGH = 2
    MEDIUM = 3
    LOW = 4
    INFO = 5


class DispatchStatus(StrEnum):
    """Outcome of a single dispatch job."""

    SUCCESS = "SUCCESS"
    FAILED = "FAILED"


# ── Inputs from the boundary ─────────────────────────────────────


class ProductSnapshot(BaseModel):
    """Stock level of one active product at scan time."""

    model_config = ConfigDict(frozen=True)

    id: str
    display_name: str
    stock_quantity: int = Field(ge=0)
    reorder_level: int | None = Field(default=None, ge=0)
    expiry_date: date | None = None


class Recipient(BaseModel):
    """A user eligible to receive stock alerts."""

    model_config = ConfigDict(frozen=True)

    id: str
    address: str = ""
    role: str = ""


# ── Outputs to the boundary ──────────────────────────────────────


class NotificationRequest(BaseModel):
    """In-app notification record to be persisted by a NotificationSink.

    ``product_id`` and ``severity`` are None for notices that are not about
    a product's stock level (expiry warnings carry only ``product_id``).
    """

    recipient_id: str
    product_id: str | None = None
    severity: SeverityTier | None = None
    title: str = Field(min_length=1, max_length=200)
    message: str = Field(min_length=1, max_length=1000)
    type: NotificationType = NotificationType.WARNING
    priority: NotificationPriority = NotificationPriority.HIGH
    category: str = "inventory"
    metadata: dict[str, Any] = Field(default_factory=dict)


class EmailMessage(BaseModel):
    """Outbound e-mail handed to an EmailSink."""

    to: str
    subject: str
    html: str
    text: str = ""


# ── Deduplication ────────────────────────────────────────────────


class NotificationKey(NamedTuple):
    """Deduplication bucket: one product at one severity tier."""

    product_id: str
    severity: SeverityTier

    def __str__(self) -> str:
        return f"{self.severity.name.lower()}:{self.product_id}"


class ExpiryKey(NamedTuple):
    """Deduplication bucket: one product batch expiring on one date."""

    product_id: str
    expiry_date: date

    def __str__(self) -> str:
        return f"expiry:{self.product_id}:{self.expiry_date.isoformat()}"


AlertKey = NotificationKey | ExpiryKey


@dataclass(frozen=True)
class CooldownRecord:
    """Last confirmed firing of a notification key."""

    key: AlertKey
    last_fired_at: float


# ── Dispatch ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class DispatchJob:
    """One recipient/product/severity notification attempt."""

    recipient: Recipient
    product: ProductSnapshot
    severity: SeverityTier
    reorder_level: int
    created_at: float

    @property
    def recipient_id(self) -> str:
        return self.recipient.id

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def key(self) -> NotificationKey:
        return NotificationKey(self.product.id, self.severity)


@dataclass(frozen=True)
class ExpiryJob:
    """One recipient/product expiry warning attempt."""

    recipient: Recipient
    product: ProductSnapshot
    tier: ExpiryTier
    expiry_date: date
    days_remaining: int
    created_at: float

    @property
    def recipient_id(self) -> str:
        return self.recipient.id

    @property
    def product_id(self) -> str:
        return self.product.id

    @property
    def key(self) -> ExpiryKey:
        return ExpiryKey(self.product.id, self.expiry_date)


AlertJob = DispatchJob | ExpiryJob


@dataclass
class DispatchOutcome:
    """Result of one dispatch job.

    ``email_sent`` is None when no e-mail was attempted for the job.
    """

    job: AlertJob
    status: DispatchStatus
    error: str | None = None
    email_sent: bool | None = None
    email_error: str | None = None

    @property
    def succeeded(self) -> bool:
        return self.status == DispatchStatus.SUCCESS


# ── Reporting ────────────────────────────────────────────────────


def _empty_tier_counts() -> dict[SeverityTier, int]:
    return {tier: 0 for tier in SeverityTier}


class HealthCheckReport(BaseModel):
    """Summary of one health-check invocation."""

    started_at: float = Field(default_factory=time.time)
    finished_at: float = 0.0
    forced: bool = False
    alerts_enabled: bool = True
    scanned: int = 0
    recipients: int = 0
    tier_counts: dict[SeverityTier, int] = Field(default_factory=_empty_tier_counts)
    expiring: int = 0
    expiring_critical: int = 0
    notifications_created: int = 0
    notifications_failed: int = 0
    emails_sent: int = 0
    emails_failed: int = 0
    skipped_due_to_cooldown: int = 0
    skipped_due_to_throttle: bool = False
    error: str | None = None
    failure_notice_sent: bool = False

    @property
    def success(self) -> bool:
        return self.error is None

    @property
    def duration_secs(self) -> float:
        return max(self.finished_at - self.started_at, 0.0)

    def summary(self) -> dict[str, object]:
        """Flat key/value view for logs and the CLI."""
        return {
            "success": self.success,
            "forced": self.forced,
            "skipped_due_to_throttle": self.skipped_due_to_throttle,
            "scanned": self.scanned,
            "recipients": self.recipients,
            **{f"tier_{tier.name.lower()}": n for tier, n in self.tier_counts.items()},
            "expiring": self.expiring,
            "expiring_critical": self.expiring_critical,
            "notifications_created": self.notifications_created,
            "notifications_failed": self.notifications_failed,
            "emails_sent": self.emails_sent,
            "emails_failed": self.emails_failed,
            "skipped_due_to_cooldown": self.skipped_due_to_cooldown,
            "duration_secs": round(self.duration_secs, 3),
            "error": self.error,
            "failure_notice_sent": self.failure_notice_sent,
        }
