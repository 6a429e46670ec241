"""NotificationDispatcher — concurrent fan-out of dispatch jobs to the sinks."""

from __future__ import annotations

import asyncio
import contextlib
import time
from collections.abc import Callable

import structlog

from stockalert.core.config import DispatchConfig
from stockalert.core.types import (
    AlertJob,
    AlertKey,
    DispatchJob,
    DispatchOutcome,
    DispatchStatus,
    NotificationRequest,
    Recipient,
    SeverityTier,
)
from stockalert.health.cooldown import CooldownStore
from stockalert.health.formatters import (
    build_email,
    build_expiry_notification,
    build_failure_notice,
    build_notification,
)
from stockalert.sinks.base import EmailSink, NotificationSink

logger = structlog.get_logger(__name__)

Clock = Callable[[], float]

# Tiers that also trigger an outbound e-mail.
_EMAIL_TIERS = frozenset({SeverityTier.CRITICAL, SeverityTier.OUT_OF_STOCK})


class NotificationDispatcher:
    """Executes a batch of dispatch jobs concurrently.

    - Every job persists an in-app notification through the NotificationSink.
    - CRITICAL / OUT_OF_STOCK stock jobs additionally attempt an e-mail; a
      failed e-mail never undoes the in-app record.  Expiry jobs are in-app only.
    - A failure in one job never aborts or blocks the others; every job
      yields exactly one DispatchOutcome.
    - Once the batch has settled, each key with at least one persisted
      notification is recorded in the CooldownStore exactly once.
    """

    def __init__(
        self,
        notifications: NotificationSink,
        cooldown: CooldownStore,
        email: EmailSink | None = None,
        config: DispatchConfig | None = None,
        clock: Clock = time.time,
    ) -> None:
        self._notifications = notifications
        self._cooldown = cooldown
        self._email = email
        self._config = config or DispatchConfig()
        self._clock = clock

    @property
    def email_enabled(self) -> bool:
        return self._email is not None

    async def dispatch(self, jobs: list[AlertJob]) -> list[DispatchOutcome]:
        """Run all jobs concurrently and return one outcome per job, in job order."""
        if not jobs:
            return []

        limit = self._config.max_concurrency
        semaphore = asyncio.Semaphore(limit) if limit > 0 else None

        outcomes = list(
            await asyncio.gather(*(self._run_job(job, semaphore) for job in jobs))
        )

        fired: dict[AlertKey, None] = {}
        for outcome in outcomes:
            if outcome.succeeded:
                fired.setdefault(outcome.job.key)
        now = self._clock()
        for key in fired:
            self._cooldown.record_fired(key, now)

        failed = sum(1 for o in outcomes if not o.succeeded)
        logger.info(
            "dispatch_batch_completed",
            jobs=len(jobs),
            succeeded=len(outcomes) - failed,
            failed=failed,
            keys_recorded=len(fired),
        )
        return outcomes

    async def notify_failure(self, recipient: Recipient, error: str) -> bool:
        """Persist a system-error notice for a failed run. Never raises.

        Returns True if the notice was stored.
        """
        try:
            await asyncio.wait_for(
                self._notifications.create_notification(
                    build_failure_notice(recipient.id, error)
                ),
                timeout=self._config.sink_timeout_secs,
            )
        except Exception as exc:
            logger.warning(
                "failure_notice_failed",
                recipient_id=recipient.id,
                error=_describe(exc),
            )
            return False
        logger.info("failure_notice_sent", recipient_id=recipient.id)
        return True

    # ── Per-job execution ───────────────────────────────────────

    async def _run_job(
        self,
        job: AlertJob,
        semaphore: asyncio.Semaphore | None,
    ) -> DispatchOutcome:
        guard = semaphore if semaphore is not None else contextlib.nullcontext()
        async with guard:
            return await self._execute(job)

    def _request_for(self, job: AlertJob) -> NotificationRequest:
        template = self._config.action_url_template
        if isinstance(job, DispatchJob):
            return build_notification(job, template)
        return build_expiry_notification(job, template)

    async def _execute(self, job: AlertJob) -> DispatchOutcome:
        timeout = self._config.sink_timeout_secs
        try:
            request = self._request_for(job)
            await asyncio.wait_for(
                self._notifications.create_notification(request),
                timeout=timeout,
            )
        except Exception as exc:
            logger.warning(
                "dispatch_job_failed",
                product_id=job.product_id,
                recipient_id=job.recipient_id,
                key=str(job.key),
                error=_describe(exc),
            )
            return DispatchOutcome(
                job=job,
                status=DispatchStatus.FAILED,
                error=_describe(exc),
            )

        outcome = DispatchOutcome(job=job, status=DispatchStatus.SUCCESS)
        if self._wants_email(job):
            await self._send_email(job, outcome)
        return outcome

    def _wants_email(self, job: AlertJob) -> bool:
        return (
            self._email is not None
            and isinstance(job, DispatchJob)
            and job.severity in _EMAIL_TIERS
            and bool(job.recipient.address)
        )

    async def _send_email(self, job: DispatchJob, outcome: DispatchOutcome) -> None:
        assert self._email is not None
        try:
            message = build_email(job, self._config.email_subject_prefix)
            await asyncio.wait_for(
                self._email.send_email(message),
                timeout=self._config.sink_timeout_secs,
            )
        except Exception as exc:
            outcome.email_sent = False
            outcome.email_error = _describe(exc)
            logger.warning(
                "email_delivery_failed",
                product_id=job.product_id,
                recipient_id=job.recipient_id,
                key=str(job.key),
                error=outcome.email_error,
            )
            return
        outcome.email_sent = True


def _describe(exc: BaseException) -> str:
    if isinstance(exc, asyncio.TimeoutError):
        return "timed out"
    text = str(exc)
    return f"{type(exc).__name__}: {text}" if text else type(exc).__name__
