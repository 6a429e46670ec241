"""Pure functions that turn dispatch jobs into notification and e-mail payloads."""

from __future__ import annotations

from html import escape as html_escape

from stockalert.core.types import (
    DispatchJob,
    EmailMessage,
    ExpiryJob,
    ExpiryTier,
    NotificationPriority,
    NotificationRequest,
    NotificationType,
    SeverityTier,
)

_TITLE_MAX = 200
_MESSAGE_MAX = 1000
_ELLIPSIS = "..."

# ── Severity mappings ───────────────────────────────────────────

_TITLES: dict[SeverityTier, str] = {
    SeverityTier.LOW: "Low Stock Alert",
    SeverityTier.CRITICAL: "Critical Stock Alert",
    SeverityTier.OUT_OF_STOCK: "Out of Stock Alert",
}

_TYPES: dict[SeverityTier, NotificationType] = {
    SeverityTier.LOW: NotificationType.WARNING,
    SeverityTier.CRITICAL: NotificationType.ERROR,
    SeverityTier.OUT_OF_STOCK: NotificationType.ERROR,
}

_PRIORITIES: dict[SeverityTier, NotificationPriority] = {
    SeverityTier.LOW: NotificationPriority.HIGH,
    SeverityTier.CRITICAL: NotificationPriority.CRITICAL,
    SeverityTier.OUT_OF_STOCK: NotificationPriority.CRITICAL,
}

# E-mail accent colours keyed by severity.
_EMAIL_COLORS: dict[SeverityTier, str] = {
    SeverityTier.LOW: "#F39C12",
    SeverityTier.CRITICAL: "#E74C3C",
    SeverityTier.OUT_OF_STOCK: "#C0392B",
}


def _escape_clipped(text: str, limit: int) -> str:
    """HTML-escape *text* and fit it into *limit* characters.

    The raw text is cut before escaping so an entity is never split.
    """
    escaped = html_escape(text)
    if len(escaped) <= limit:
        return escaped
    budget = limit - len(_ELLIPSIS)
    raw = text[:budget]
    while len(html_escape(raw)) > budget:
        raw = raw[:-1]
    return html_escape(raw) + _ELLIPSIS


def alert_title(severity: SeverityTier) -> str:
    """Human title for a non-healthy tier."""
    try:
        return _TITLES[severity]
    except KeyError:
        raise ValueError(f"no alert is defined for {severity.name}") from None


def alert_message(job: DispatchJob) -> str:
    """Plain-text body describing the product's stock situation."""
    name = job.product.display_name
    stock = job.product.stock_quantity
    if job.severity == SeverityTier.OUT_OF_STOCK:
        return f"{name} is completely out of stock! Immediate reorder required."
    if job.severity == SeverityTier.CRITICAL:
        return f"{name} is critically low: only {stock} pieces left (reorder at {job.reorder_level})."
    return f"{name} is running low: {stock} pieces remaining (reorder at {job.reorder_level})."


def build_notification(
    job: DispatchJob,
    action_url_template: str = "/inventory?product={product_id}",
) -> NotificationRequest:
    """Build the in-app notification record for a job.

    Title and message are HTML-escaped since the UI renders them as markup.
    """
    title = alert_title(job.severity)
    message = alert_message(job)
    return NotificationRequest(
        recipient_id=job.recipient_id,
        product_id=job.product_id,
        severity=job.severity,
        title=_escape_clipped(title, _TITLE_MAX),
        message=_escape_clipped(message, _MESSAGE_MAX),
        type=_TYPES[job.severity],
        priority=_PRIORITIES[job.severity],
        metadata={
            "product_id": job.product_id,
            "product_name": job.product.display_name,
            "current_stock": job.product.stock_quantity,
            "reorder_level": job.reorder_level,
            "severity": job.severity.name.lower(),
            "notification_key": str(job.key),
            "action_url": action_url_template.format(product_id=job.product_id),
        },
    )


def build_email(job: DispatchJob, subject_prefix: str = "[Pharmacy]") -> EmailMessage:
    """Build the alert e-mail for a CRITICAL or OUT_OF_STOCK job."""
    title = alert_title(job.severity)
    message = alert_message(job)
    product = job.product
    color = _EMAIL_COLORS[job.severity]

    rows = [
        ("Product", product.display_name),
        ("Current stock", str(product.stock_quantity)),
        ("Reorder level", str(job.reorder_level)),
        ("Severity", job.severity.name.replace("_", " ").title()),
    ]
    html_rows = "".join(
        f"<tr><td style=\"padding:4px 12px 4px 0;color:#555\">{html_escape(k)}</td>"
        f"<td style=\"padding:4px 0\"><strong>{html_escape(v)}</strong></td></tr>"
        for k, v in rows
    )
    html = (
        "<div style=\"font-family:Arial,sans-serif;max-width:600px\">"
        f"<h2 style=\"color:{color};margin:0 0 12px\">{html_escape(title)}</h2>"
        f"<p>{html_escape(message)}</p>"
        f"<table>{html_rows}</table>"
        "</div>"
    )
    text_lines = [title, "", message, ""]
    text_lines.extend(f"{k}: {v}" for k, v in rows)

    subject = f"{subject_prefix} {title}: {product.display_name}".strip()
    return EmailMessage(
        to=job.recipient.address,
        subject=subject,
        html=html,
        text="\n".join(text_lines),
    )


# ── Expiry warnings ─────────────────────────────────────────────

_EXPIRY_TITLES: dict[ExpiryTier, str] = {
    ExpiryTier.WARNING: "Product Expiry Warning",
    ExpiryTier.CRITICAL: "Urgent: Product Expiring Soon",
}


def expiry_message(job: ExpiryJob) -> str:
    days = job.days_remaining
    plural = "" if days == 1 else "s"
    return (
        f"{job.product.display_name} expires in {days} day{plural} "
        f"({job.expiry_date.isoformat()})"
    )


def build_expiry_notification(
    job: ExpiryJob,
    action_url_template: str = "/inventory?product={product_id}",
) -> NotificationRequest:
    """Build the in-app expiry warning for a job."""
    try:
        title = _EXPIRY_TITLES[job.tier]
    except KeyError:
        raise ValueError(f"no expiry alert is defined for {job.tier.name}") from None
    critical = job.tier == ExpiryTier.CRITICAL
    return NotificationRequest(
        recipient_id=job.recipient_id,
        product_id=job.product_id,
        title=_escape_clipped(title, _TITLE_MAX),
        message=_escape_clipped(expiry_message(job), _MESSAGE_MAX),
        type=NotificationType.ERROR if critical else NotificationType.WARNING,
        priority=NotificationPriority.CRITICAL if critical else NotificationPriority.HIGH,
        category="expiry",
        metadata={
            "product_id": job.product_id,
            "product_name": job.product.display_name,
            "expiry_date": job.expiry_date.isoformat(),
            "days_remaining": job.days_remaining,
            "notification_key": str(job.key),
            "action_url": action_url_template.format(product_id=job.product_id),
        },
    )


# ── System notices ──────────────────────────────────────────────

HEALTH_CHECK_FAILURE_CODE = "HEALTH_CHECK_FAILURE"


def build_failure_notice(recipient_id: str, error: str) -> NotificationRequest:
    """Build the system-error notice sent to an admin when a run fails."""
    detail = f"Health check failed: {error}"
    return NotificationRequest(
        recipient_id=recipient_id,
        title="System Error",
        message=_escape_clipped(f"An error occurred: {detail}", _MESSAGE_MAX),
        type=NotificationType.ERROR,
        priority=NotificationPriority.CRITICAL,
        category="system",
        metadata={
            "error_message": detail,
            "error_code": HEALTH_CHECK_FAILURE_CODE,
        },
    )
