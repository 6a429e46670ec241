"""Severity classifier — maps a product snapshot to stock and expiry tiers."""

from __future__ import annotations

from datetime import date
from decimal import Decimal

from stockalert.core.config import ClassifierConfig, ExpiryConfig
from stockalert.core.types import ExpiryTier, ProductSnapshot, SeverityTier

_DEFAULT_CONFIG = ClassifierConfig()
_DEFAULT_EXPIRY_CONFIG = ExpiryConfig()


def effective_reorder_level(
    snapshot: ProductSnapshot,
    config: ClassifierConfig | None = None,
) -> int:
    """Return the configured reorder level, or the smart default.

    Products without a reorder level (or with zero) get
    ``max(floor(stock * default_reorder_ratio), default_reorder_minimum)``
    so that unconfigured products are still covered.
    """
    cfg = config or _DEFAULT_CONFIG
    if snapshot.reorder_level:
        return snapshot.reorder_level
    scaled = Decimal(snapshot.stock_quantity) * Decimal(str(cfg.default_reorder_ratio))
    return max(int(scaled), cfg.default_reorder_minimum)


def classify(
    snapshot: ProductSnapshot,
    config: ClassifierConfig | None = None,
) -> SeverityTier:
    """Classify a product's stock level. Pure and deterministic.

    Rules, first match wins:
        stock == 0                          → OUT_OF_STOCK
        stock <= reorder * critical_ratio   → CRITICAL
        stock <= reorder                    → LOW
        otherwise                           → HEALTHY
    """
    cfg = config or _DEFAULT_CONFIG
    stock = snapshot.stock_quantity
    if stock == 0:
        return SeverityTier.OUT_OF_STOCK

    reorder = effective_reorder_level(snapshot, cfg)
    critical_threshold = Decimal(reorder) * Decimal(str(cfg.critical_ratio))
    if stock <= critical_threshold:
        return SeverityTier.CRITICAL
    if stock <= reorder:
        return SeverityTier.LOW
    return SeverityTier.HEALTHY


# ── Expiry ──────────────────────────────────────────────────────


def days_until_expiry(snapshot: ProductSnapshot, today: date) -> int | None:
    """Whole days from *today* to the product's expiry date, or None if unset."""
    if snapshot.expiry_date is None:
        return None
    return (snapshot.expiry_date - today).days


def classify_expiry(
    snapshot: ProductSnapshot,
    today: date,
    config: ExpiryConfig | None = None,
) -> ExpiryTier:
    """Classify how close a product is to expiry. Pure and deterministic.

    Products without an expiry date, or already past it, are NONE.
    """
    cfg = config or _DEFAULT_EXPIRY_CONFIG
    days = days_until_expiry(snapshot, today)
    if days is None or days < 0 or days > cfg.window_days:
        return ExpiryTier.NONE
    if days <= cfg.critical_days:
        return ExpiryTier.CRITICAL
    return ExpiryTier.WARNING
