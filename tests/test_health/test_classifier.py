"""Tests for the severity classifier — tiers, boundaries, default reorder level."""

from __future__ import annotations

from datetime import date, timedelta

import pytest

from stockalert.core.config import ClassifierConfig, ExpiryConfig
from stockalert.core.types import ExpiryTier, ProductSnapshot, SeverityTier
from stockalert.health.classifier import (
    classify,
    classify_expiry,
    days_until_expiry,
    effective_reorder_level,
)


def _snap(stock: int, reorder: int | None = None) -> ProductSnapshot:
    return ProductSnapshot(
        id="p1",
        display_name="Amoxicillin 500mg",
        stock_quantity=stock,
        reorder_level=reorder,
    )


# ── Tier rules ──────────────────────────────────────────────────


class TestTiers:
    def test_zero_stock_is_out_of_stock(self) -> None:
        assert classify(_snap(0, 10)) == SeverityTier.OUT_OF_STOCK

    def test_zero_stock_without_reorder_level(self) -> None:
        assert classify(_snap(0)) == SeverityTier.OUT_OF_STOCK

    def test_at_reorder_level_is_low(self) -> None:
        assert classify(_snap(10, 10)) == SeverityTier.LOW

    def test_at_critical_threshold_is_critical(self) -> None:
        assert classify(_snap(3, 10)) == SeverityTier.CRITICAL

    def test_just_above_critical_threshold_is_low(self) -> None:
        assert classify(_snap(4, 10)) == SeverityTier.LOW

    def test_above_reorder_level_is_healthy(self) -> None:
        assert classify(_snap(11, 10)) == SeverityTier.HEALTHY

    def test_one_piece_is_critical(self) -> None:
        assert classify(_snap(1, 10)) == SeverityTier.CRITICAL

    @pytest.mark.parametrize(
        ("stock", "reorder", "expected"),
        [
            (6, 20, SeverityTier.CRITICAL),
            (7, 20, SeverityTier.LOW),
            (30, 100, SeverityTier.CRITICAL),
            (31, 100, SeverityTier.LOW),
        ],
    )
    def test_critical_boundary_exact(
        self, stock: int, reorder: int, expected: SeverityTier
    ) -> None:
        assert classify(_snap(stock, reorder)) == expected


# ── Default reorder level ───────────────────────────────────────


class TestDefaultReorderLevel:
    def test_fifty_without_reorder_is_healthy(self) -> None:
        assert effective_reorder_level(_snap(50)) == 10
        assert classify(_snap(50)) == SeverityTier.HEALTHY

    def test_four_without_reorder_is_low(self) -> None:
        assert effective_reorder_level(_snap(4)) == 5
        assert classify(_snap(4)) == SeverityTier.LOW

    def test_zero_reorder_uses_default(self) -> None:
        assert effective_reorder_level(_snap(4, 0)) == 5
        assert classify(_snap(4, 0)) == SeverityTier.LOW

    def test_one_without_reorder_is_critical(self) -> None:
        # effective level 5 → critical threshold 1.5
        assert classify(_snap(1)) == SeverityTier.CRITICAL

    def test_floor_applied(self) -> None:
        # 29 * 0.2 = 5.8 → 5
        assert effective_reorder_level(_snap(29)) == 5
        # 34 * 0.2 = 6.8 → 6
        assert effective_reorder_level(_snap(34)) == 6

    def test_configured_level_wins(self) -> None:
        assert effective_reorder_level(_snap(50, 60)) == 60
        assert classify(_snap(50, 60)) == SeverityTier.LOW


# ── Configurable thresholds ─────────────────────────────────────


class TestConfig:
    def test_custom_critical_ratio(self) -> None:
        cfg = ClassifierConfig(critical_ratio=0.5)
        assert classify(_snap(5, 10), cfg) == SeverityTier.CRITICAL
        assert classify(_snap(5, 10)) == SeverityTier.LOW

    def test_custom_default_minimum(self) -> None:
        cfg = ClassifierConfig(default_reorder_minimum=20)
        assert effective_reorder_level(_snap(15), cfg) == 20
        assert classify(_snap(15), cfg) == SeverityTier.LOW

    def test_custom_default_ratio(self) -> None:
        cfg = ClassifierConfig(default_reorder_ratio=0.5)
        assert effective_reorder_level(_snap(40), cfg) == 20


# ── Determinism ─────────────────────────────────────────────────


class TestDeterminism:
    @pytest.mark.parametrize("stock", [0, 1, 3, 5, 10, 49, 50, 1000])
    @pytest.mark.parametrize("reorder", [None, 0, 1, 10, 100])
    def test_same_input_same_tier(self, stock: int, reorder: int | None) -> None:
        snap = _snap(stock, reorder)
        assert classify(snap) == classify(snap)

    def test_tiers_ordered_by_urgency(self) -> None:
        assert (
            SeverityTier.OUT_OF_STOCK
            > SeverityTier.CRITICAL
            > SeverityTier.LOW
            > SeverityTier.HEALTHY
        )


# ── Expiry ──────────────────────────────────────────────────────

TODAY = date(2026, 10, 19)


def _expiring(days: int | None) -> ProductSnapshot:
    return ProductSnapshot(
        id="p1",
        display_name="Amoxicillin 500mg",
        stock_quantity=100,
        expiry_date=None if days is None else TODAY + timedelta(days=days),
    )


class TestExpiry:
    def test_days_until_expiry(self) -> None:
        assert days_until_expiry(_expiring(12), TODAY) == 12
        assert days_until_expiry(_expiring(None), TODAY) is None

    @pytest.mark.parametrize(
        ("days", "expected"),
        [
            (None, ExpiryTier.NONE),
            (-1, ExpiryTier.NONE),
            (0, ExpiryTier.CRITICAL),
            (7, ExpiryTier.CRITICAL),
            (8, ExpiryTier.WARNING),
            (30, ExpiryTier.WARNING),
            (31, ExpiryTier.NONE),
        ],
    )
    def test_window_boundaries(self, days: int | None, expected: ExpiryTier) -> None:
        assert classify_expiry(_expiring(days), TODAY) == expected

    def test_custom_window(self) -> None:
        cfg = ExpiryConfig(window_days=60, critical_days=14)
        assert classify_expiry(_expiring(45), TODAY, cfg) == ExpiryTier.WARNING
        assert classify_expiry(_expiring(14), TODAY, cfg) == ExpiryTier.CRITICAL
        assert classify_expiry(_expiring(61), TODAY, cfg) == ExpiryTier.NONE

    def test_independent_of_stock(self) -> None:
        snap = _expiring(3).model_copy(update={"stock_quantity": 0})
        assert classify(snap) == SeverityTier.OUT_OF_STOCK
        assert classify_expiry(snap, TODAY) == ExpiryTier.CRITICAL
