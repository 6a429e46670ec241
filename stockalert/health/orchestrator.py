"""HealthCheckOrchestrator — scan, classify, filter, dispatch, report."""

from __future__ import annotations

import asyncio
import itertools
import time
from collections.abc import Callable
from datetime import date, datetime, timezone

import structlog

from stockalert.core.config import ClassifierConfig, ExpiryConfig, HealthCheckConfig
from stockalert.core.logging import run_context
from stockalert.core.types import (
    AlertJob,
    DispatchJob,
    DispatchOutcome,
    ExpiryJob,
    ExpiryTier,
    HealthCheckReport,
    ProductSnapshot,
    Recipient,
    SeverityTier,
)
from stockalert.health.classifier import (
    classify,
    classify_expiry,
    effective_reorder_level,
)
from stockalert.health.cooldown import CooldownStore, write_rows
from stockalert.health.dispatcher import NotificationDispatcher
from stockalert.health.exceptions import ProviderUnavailableError
from stockalert.sinks.base import ProductProvider, RecipientProvider

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]


class HealthCheckOrchestrator:
    """Entry point for inventory health checks.

    Each invocation runs:

    1. throttle check (skipped when forced)
    2. bulk fetch of products and recipients
    3. stock and expiry classification of every product
    4. cooldown filtering of candidate jobs
    5. concurrent dispatch
    6. aggregation into a HealthCheckReport

    Provider failures end the run with a failed report and no partial
    classification; an admin is sent a best-effort system notice.  Dispatch
    failures only show up in the counts.

    Usage::

        orchestrator = HealthCheckOrchestrator(
            products=backend,
            recipients=backend,
            dispatcher=dispatcher,
            cooldown=cooldown,
            config=settings.health_check,
        )
        report = await orchestrator.run_health_check(force=True)
    """

    def __init__(
        self,
        products: ProductProvider,
        recipients: RecipientProvider,
        dispatcher: NotificationDispatcher,
        cooldown: CooldownStore,
        config: HealthCheckConfig | None = None,
        classifier_config: ClassifierConfig | None = None,
        expiry_config: ExpiryConfig | None = None,
        state_path: str | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._products = products
        self._recipients = recipients
        self._dispatcher = dispatcher
        self._cooldown = cooldown
        self._config = config or HealthCheckConfig()
        self._classifier_config = classifier_config or ClassifierConfig()
        self._expiry_config = expiry_config or ExpiryConfig()
        self._state_path = state_path
        self._clock = clock
        self._lock = asyncio.Lock()
        self._run_ids = itertools.count(1)
        self._last_finished_at: float | None = None
        self._last_report: HealthCheckReport | None = None

    # ── Properties ──────────────────────────────────────────────

    @property
    def last_finished_at(self) -> float | None:
        """Finish time of the last completed (non-throttled, non-failed) run."""
        return self._last_finished_at

    @property
    def last_report(self) -> HealthCheckReport | None:
        return self._last_report

    @property
    def min_interval_secs(self) -> float:
        return self._config.min_interval_minutes * 60.0

    # ── Entry point ─────────────────────────────────────────────

    async def run_health_check(self, force: bool = False) -> HealthCheckReport:
        """Run one health check. Never raises for provider or dispatch errors."""
        async with self._lock:
            with run_context(health_check_id=next(self._run_ids)):
                report = await self._run(force)
        self._last_report = report
        return report

    async def _run(self, force: bool) -> HealthCheckReport:
        started = self._clock()
        report = HealthCheckReport(
            started_at=started,
            forced=force,
            alerts_enabled=self._config.alerts_enabled,
        )

        if not force and self._throttled(started):
            report.skipped_due_to_throttle = True
            report.finished_at = started
            logger.debug(
                "health_check_skipped",
                reason="throttle",
                secs_since_last=round(started - (self._last_finished_at or started), 1),
                min_interval_secs=self.min_interval_secs,
            )
            return report

        logger.info("health_check_started", forced=force)

        try:
            products, recipients = await asyncio.gather(
                self._products.list_active_products(),
                self._recipients.list_alert_recipients(),
            )
        except ProviderUnavailableError as exc:
            report.error = str(exc) or type(exc).__name__
            logger.error("health_check_failed", error=report.error)
            if self._config.notify_admin_on_failure:
                report.failure_notice_sent = await self._notify_failure(report.error)
            report.finished_at = self._clock()
            return report

        recipients = self._select_recipients(recipients)
        report.scanned = len(products)
        report.recipients = len(recipients)

        classified = self._classify_all(products, report)
        expiring = self._classify_expiry(products, _utc_date(started), report)

        jobs: list[AlertJob] = []
        if self._config.alerts_enabled:
            jobs.extend(self._build_jobs(classified, recipients, report))
            jobs.extend(self._build_expiry_jobs(expiring, recipients, report))

        outcomes = await self._dispatcher.dispatch(jobs)
        self._aggregate(outcomes, report)

        finished = self._clock()
        report.finished_at = finished
        self._last_finished_at = finished
        await self._housekeeping(finished)

        logger.info("health_check_completed", **report.summary())
        return report

    # ── Steps ───────────────────────────────────────────────────

    def _throttled(self, now: float) -> bool:
        if self._last_finished_at is None:
            return False
        return now - self._last_finished_at < self.min_interval_secs

    def _select_recipients(self, recipients: list[Recipient]) -> list[Recipient]:
        wanted = set(self._config.recipient_ids)
        if not wanted:
            return recipients
        return [r for r in recipients if r.id in wanted]

    def _classify_all(
        self,
        products: list[ProductSnapshot],
        report: HealthCheckReport,
    ) -> list[tuple[ProductSnapshot, SeverityTier]]:
        classified: list[tuple[ProductSnapshot, SeverityTier]] = []
        for product in products:
            tier = classify(product, self._classifier_config)
            report.tier_counts[tier] += 1
            classified.append((product, tier))
        return classified

    def _build_jobs(
        self,
        classified: list[tuple[ProductSnapshot, SeverityTier]],
        recipients: list[Recipient],
        report: HealthCheckReport,
    ) -> list[DispatchJob]:
        now = self._clock()
        jobs: list[DispatchJob] = []
        for product, tier in classified:
            if tier == SeverityTier.HEALTHY:
                continue
            reorder = effective_reorder_level(product, self._classifier_config)
            for recipient in recipients:
                job = DispatchJob(
                    recipient=recipient,
                    product=product,
                    severity=tier,
                    reorder_level=reorder,
                    created_at=now,
                )
                if self._cooldown.may_fire(job.key, now):
                    jobs.append(job)
                else:
                    report.skipped_due_to_cooldown += 1
        return jobs

    def _classify_expiry(
        self,
        products: list[ProductSnapshot],
        today: date,
        report: HealthCheckReport,
    ) -> list[tuple[ProductSnapshot, ExpiryTier, date, int]]:
        if not self._expiry_config.enabled:
            return []
        expiring: list[tuple[ProductSnapshot, ExpiryTier, date, int]] = []
        for product in products:
            tier = classify_expiry(product, today, self._expiry_config)
            if tier == ExpiryTier.NONE or product.expiry_date is None:
                continue
            report.expiring += 1
            if tier == ExpiryTier.CRITICAL:
                report.expiring_critical += 1
            days = (product.expiry_date - today).days
            expiring.append((product, tier, product.expiry_date, days))
        return expiring

    def _build_expiry_jobs(
        self,
        expiring: list[tuple[ProductSnapshot, ExpiryTier, date, int]],
        recipients: list[Recipient],
        report: HealthCheckReport,
    ) -> list[ExpiryJob]:
        now = self._clock()
        jobs: list[ExpiryJob] = []
        for product, tier, expiry_date, days in expiring:
            for recipient in recipients:
                job = ExpiryJob(
                    recipient=recipient,
                    product=product,
                    tier=tier,
                    expiry_date=expiry_date,
                    days_remaining=days,
                    created_at=now,
                )
                if self._cooldown.may_fire(job.key, now):
                    jobs.append(job)
                else:
                    report.skipped_due_to_cooldown += 1
        return jobs

    @staticmethod
    def _aggregate(outcomes: list[DispatchOutcome], report: HealthCheckReport) -> None:
        for outcome in outcomes:
            if outcome.succeeded:
                report.notifications_created += 1
            else:
                report.notifications_failed += 1
            if outcome.email_sent is True:
                report.emails_sent += 1
            elif outcome.email_sent is False:
                report.emails_failed += 1

    async def _notify_failure(self, error: str) -> bool:
        """Tell the first active admin that the run failed. Never raises."""
        try:
            admins = await self._recipients.list_admin_recipients()
        except Exception:
            logger.exception("failure_notice_lookup_error")
            return False
        if not admins:
            logger.warning("failure_notice_no_admin")
            return False
        return await self._dispatcher.notify_failure(admins[0], error)

    async def _housekeeping(self, now: float) -> None:
        self._cooldown.prune(now)
        if self._state_path:
            rows = self._cooldown.dump()
            try:
                await asyncio.to_thread(write_rows, self._state_path, rows)
            except OSError:
                logger.exception("cooldown_state_save_error", path=self._state_path)


def _utc_date(ts: float) -> date:
    return datetime.fromtimestamp(ts, tz=timezone.utc).date()
