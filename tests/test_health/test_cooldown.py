"""Tests for CooldownStore — tiered TTLs, key isolation, pruning, persistence."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path

import pytest
from pydantic import ValidationError

from stockalert.core.config import CooldownConfig
from stockalert.core.types import ExpiryKey, NotificationKey, SeverityTier
from stockalert.health.cooldown import CooldownStore

HOUR = 3600.0
NOW = 1_700_000_000.0


def _key(tier: SeverityTier = SeverityTier.LOW, product: str = "p1") -> NotificationKey:
    return NotificationKey(product, tier)


# ── may_fire / record_fired ─────────────────────────────────────


class TestMayFire:
    def test_unknown_key_may_fire(self) -> None:
        store = CooldownStore()
        assert store.may_fire(_key(), NOW) is True

    def test_low_suppressed_within_24h(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.LOW), NOW - 1 * HOUR)
        assert store.may_fire(_key(SeverityTier.LOW), NOW) is False

    def test_low_fires_after_24h(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.LOW), NOW - 1 * HOUR)
        assert store.may_fire(_key(SeverityTier.LOW), NOW + 23 * HOUR + 1) is True

    def test_exact_ttl_boundary_fires(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.LOW), NOW)
        assert store.may_fire(_key(SeverityTier.LOW), NOW + 24 * HOUR) is True
        assert store.may_fire(_key(SeverityTier.LOW), NOW + 24 * HOUR - 1) is False

    def test_critical_ttl_is_6h(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.CRITICAL), NOW)
        assert store.may_fire(_key(SeverityTier.CRITICAL), NOW + 5 * HOUR) is False
        assert store.may_fire(_key(SeverityTier.CRITICAL), NOW + 6 * HOUR) is True

    def test_out_of_stock_ttl_is_12h(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.OUT_OF_STOCK), NOW)
        assert store.may_fire(_key(SeverityTier.OUT_OF_STOCK), NOW + 11 * HOUR) is False
        assert store.may_fire(_key(SeverityTier.OUT_OF_STOCK), NOW + 12 * HOUR) is True

    def test_healthy_never_fires(self) -> None:
        store = CooldownStore()
        assert store.may_fire(_key(SeverityTier.HEALTHY), NOW) is False
        assert store.ttl(SeverityTier.HEALTHY) is None

    def test_recording_healthy_rejected(self) -> None:
        store = CooldownStore()
        with pytest.raises(ValueError, match="HEALTHY"):
            store.record_fired(_key(SeverityTier.HEALTHY), NOW)

    def test_record_overwrites(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(), NOW)
        store.record_fired(_key(), NOW + 100)
        assert len(store) == 1
        record = store.get(_key())
        assert record is not None
        assert record.last_fired_at == NOW + 100


class TestKeyIsolation:
    def test_new_tier_fires_despite_low_cooldown(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.LOW), NOW)
        assert store.may_fire(_key(SeverityTier.LOW), NOW + HOUR) is False
        assert store.may_fire(_key(SeverityTier.CRITICAL), NOW + HOUR) is True

    def test_other_product_unaffected(self) -> None:
        store = CooldownStore()
        store.record_fired(_key(product="p1"), NOW)
        assert store.may_fire(_key(product="p2"), NOW) is True

    def test_key_str(self) -> None:
        assert str(NotificationKey("42", SeverityTier.OUT_OF_STOCK)) == "out_of_stock:42"


class TestConfigurableTtls:
    def test_custom_hours(self) -> None:
        store = CooldownStore(CooldownConfig(low_hours=1))
        store.record_fired(_key(), NOW)
        assert store.may_fire(_key(), NOW + HOUR) is True
        assert store.ttl(SeverityTier.LOW) == HOUR


# ── Pruning ─────────────────────────────────────────────────────


class TestPrune:
    def test_prunes_only_long_expired(self) -> None:
        store = CooldownStore(CooldownConfig(prune_after_multiple=2))
        store.record_fired(_key(SeverityTier.CRITICAL, "old"), NOW - 13 * HOUR)
        store.record_fired(_key(SeverityTier.CRITICAL, "recent"), NOW - 7 * HOUR)
        removed = store.prune(NOW)
        assert removed == 1
        assert _key(SeverityTier.CRITICAL, "old") not in store
        assert _key(SeverityTier.CRITICAL, "recent") in store

    def test_prune_empty(self) -> None:
        assert CooldownStore().prune(NOW) == 0

    def test_multiple_below_one_rejected(self) -> None:
        with pytest.raises(ValidationError):
            CooldownConfig(prune_after_multiple=0.5)

    def test_multiple_of_one_keeps_active_records(self) -> None:
        store = CooldownStore(CooldownConfig(prune_after_multiple=1))
        store.record_fired(_key(SeverityTier.LOW), NOW - 23 * HOUR)
        assert store.prune(NOW) == 0
        assert store.may_fire(_key(SeverityTier.LOW), NOW) is False


# ── Persistence ─────────────────────────────────────────────────


class TestPersistence:
    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "state" / "cooldowns.json"
        store = CooldownStore()
        store.record_fired(_key(SeverityTier.LOW, "a"), NOW)
        store.record_fired(_key(SeverityTier.OUT_OF_STOCK, "b"), NOW + 5)
        store.save(path)

        restored = CooldownStore()
        assert restored.load(path) == 2
        record = restored.get(_key(SeverityTier.OUT_OF_STOCK, "b"))
        assert record is not None
        assert record.last_fired_at == NOW + 5
        assert restored.may_fire(_key(SeverityTier.LOW, "a"), NOW + HOUR) is False

    def test_load_missing_file(self, tmp_path: Path) -> None:
        assert CooldownStore().load(tmp_path / "nope.json") == 0

    def test_load_garbage(self, tmp_path: Path) -> None:
        path = tmp_path / "bad.json"
        path.write_text("{not json")
        assert CooldownStore().load(path) == 0

    def test_load_skips_bad_rows(self, tmp_path: Path) -> None:
        path = tmp_path / "rows.json"
        path.write_text(json.dumps([
            {"product_id": "a", "severity": "LOW", "last_fired_at": NOW},
            {"product_id": "b", "severity": "BOGUS", "last_fired_at": NOW},
            {"product_id": "c", "severity": "HEALTHY", "last_fired_at": NOW},
            {"severity": "LOW"},
        ]))
        store = CooldownStore()
        assert store.load(path) == 1
        assert _key(SeverityTier.LOW, "a") in store


# ── Expiry keys ─────────────────────────────────────────────────

EXPIRY = date(2026, 11, 30)


class TestExpiryKeys:
    def test_expiry_ttl(self) -> None:
        store = CooldownStore(CooldownConfig(expiry_hours=24))
        key = ExpiryKey("p1", EXPIRY)
        store.record_fired(key, NOW)
        assert store.key_ttl(key) == 24 * HOUR
        assert store.may_fire(key, NOW + 23 * HOUR) is False
        assert store.may_fire(key, NOW + 24 * HOUR) is True

    def test_new_expiry_date_is_new_key(self) -> None:
        store = CooldownStore()
        store.record_fired(ExpiryKey("p1", EXPIRY), NOW)
        assert store.may_fire(ExpiryKey("p1", date(2027, 1, 31)), NOW) is True

    def test_independent_of_stock_key(self) -> None:
        store = CooldownStore()
        store.record_fired(ExpiryKey("p1", EXPIRY), NOW)
        assert store.may_fire(_key(SeverityTier.LOW, "p1"), NOW) is True

    def test_pruned_after_multiple(self) -> None:
        store = CooldownStore(CooldownConfig(expiry_hours=24, prune_after_multiple=2))
        store.record_fired(ExpiryKey("p1", EXPIRY), NOW - 48 * HOUR)
        assert store.prune(NOW) == 1

    def test_save_and_load(self, tmp_path: Path) -> None:
        path = tmp_path / "cooldowns.json"
        store = CooldownStore()
        store.record_fired(ExpiryKey("p1", EXPIRY), NOW)
        store.record_fired(_key(SeverityTier.CRITICAL, "p2"), NOW)
        store.save(path)

        rows = json.loads(path.read_text())
        assert {"product_id": "p1", "expiry_date": "2026-11-30", "last_fired_at": NOW} in rows

        restored = CooldownStore()
        assert restored.load(path) == 2
        assert ExpiryKey("p1", EXPIRY) in restored

    def test_load_skips_bad_expiry_date(self, tmp_path: Path) -> None:
        path = tmp_path / "rows.json"
        path.write_text(json.dumps([
            {"product_id": "a", "expiry_date": "not-a-date", "last_fired_at": NOW},
        ]))
        assert CooldownStore().load(path) == 0
