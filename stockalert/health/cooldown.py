"""CooldownStore — last-fired timestamps per notification key."""

from __future__ import annotations

import json
from datetime import date
from pathlib import Path
from typing import Any

import structlog

from stockalert.core.config import CooldownConfig
from stockalert.core.types import (
    AlertKey,
    CooldownRecord,
    ExpiryKey,
    NotificationKey,
    SeverityTier,
)

logger = structlog.get_logger(__name__)

_HOUR_SECS = 3600.0


class CooldownStore:
    """Tracks confirmed notification firings with per-key TTLs.

    Stock keys use severity-tiered TTLs; expiry keys share one TTL.
    Only confirmed deliveries are recorded, so a failed dispatch never
    suppresses the retry on the next run.  HEALTHY keys never fire.

    All methods are synchronous; within one event loop there is no
    suspension point between a read and the write that follows it.
    """

    def __init__(self, config: CooldownConfig | None = None) -> None:
        self._config = config or CooldownConfig()
        self._ttl_secs: dict[SeverityTier, float] = {
            SeverityTier.LOW: self._config.low_hours * _HOUR_SECS,
            SeverityTier.CRITICAL: self._config.critical_hours * _HOUR_SECS,
            SeverityTier.OUT_OF_STOCK: self._config.out_of_stock_hours * _HOUR_SECS,
        }
        self._expiry_ttl_secs = self._config.expiry_hours * _HOUR_SECS
        self._records: dict[AlertKey, CooldownRecord] = {}

    def __len__(self) -> int:
        return len(self._records)

    def __contains__(self, key: object) -> bool:
        return key in self._records

    def ttl(self, severity: SeverityTier) -> float | None:
        """TTL in seconds for a tier, or None for tiers that never fire."""
        return self._ttl_secs.get(severity)

    def key_ttl(self, key: AlertKey) -> float | None:
        """TTL in seconds for any key, or None for keys that never fire."""
        if isinstance(key, ExpiryKey):
            return self._expiry_ttl_secs
        return self.ttl(key.severity)

    def get(self, key: AlertKey) -> CooldownRecord | None:
        return self._records.get(key)

    def records(self) -> list[CooldownRecord]:
        """Snapshot of all records."""
        return list(self._records.values())

    def may_fire(self, key: AlertKey, now: float) -> bool:
        """Return True if *key* is outside its cooldown window at *now*."""
        ttl = self.key_ttl(key)
        if ttl is None:
            return False
        record = self._records.get(key)
        if record is None:
            return True
        return now - record.last_fired_at >= ttl

    def record_fired(self, key: AlertKey, now: float) -> None:
        """Record a confirmed firing, overwriting any previous record."""
        if self.key_ttl(key) is None:
            raise ValueError(f"{key!r} is never recorded")
        self._records[key] = CooldownRecord(key=key, last_fired_at=now)

    def prune(self, now: float) -> int:
        """Drop records whose cooldown lapsed long ago. Returns the count removed."""
        multiple = self._config.prune_after_multiple
        stale = [
            key
            for key, record in self._records.items()
            if now - record.last_fired_at >= (self.key_ttl(key) or 0.0) * multiple
        ]
        for key in stale:
            del self._records[key]
        if stale:
            logger.debug("cooldown_pruned", removed=len(stale), remaining=len(self._records))
        return len(stale)

    # ── Persistence ─────────────────────────────────────────────

    def dump(self) -> list[dict[str, Any]]:
        """JSON-ready rows for every record."""
        rows: list[dict[str, Any]] = []
        for r in self._records.values():
            if isinstance(r.key, ExpiryKey):
                row: dict[str, Any] = {
                    "product_id": r.key.product_id,
                    "expiry_date": r.key.expiry_date.isoformat(),
                }
            else:
                row = {"product_id": r.key.product_id, "severity": r.key.severity.name}
            row["last_fired_at"] = r.last_fired_at
            rows.append(row)
        return rows

    def save(self, path: str | Path) -> None:
        """Write all records to a JSON file."""
        write_rows(path, self.dump())

    def load(self, path: str | Path) -> int:
        """Merge records from a JSON file written by ``save``.

        A missing file is not an error.  Malformed rows are skipped.
        Returns the number of records loaded.
        """
        source = Path(path)
        if not source.exists():
            return 0
        try:
            rows = json.loads(source.read_text())
        except ValueError:
            logger.warning("cooldown_state_unreadable", path=str(source))
            return 0
        if not isinstance(rows, list):
            logger.warning("cooldown_state_unreadable", path=str(source))
            return 0

        loaded = 0
        for row in rows:
            try:
                key = _parse_key(row)
                fired_at = float(row["last_fired_at"])
            except (KeyError, TypeError, ValueError):
                continue
            if self.key_ttl(key) is None:
                continue
            self._records[key] = CooldownRecord(key=key, last_fired_at=fired_at)
            loaded += 1
        logger.info("cooldown_state_loaded", path=str(source), records=loaded)
        return loaded


def _parse_key(row: dict[str, Any]) -> AlertKey:
    product_id = str(row["product_id"])
    if "expiry_date" in row:
        return ExpiryKey(product_id, date.fromisoformat(row["expiry_date"]))
    return NotificationKey(product_id, SeverityTier[row["severity"]])


def write_rows(path: str | Path, rows: list[dict[str, Any]]) -> None:
    """Atomically replace *path* with *rows* as JSON."""
    target = Path(path)
    target.parent.mkdir(parents=True, exist_ok=True)
    tmp = target.with_suffix(target.suffix + ".tmp")
    tmp.write_text(json.dumps(rows, indent=2))
    tmp.replace(target)
