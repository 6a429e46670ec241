"""E-mail delivery — SendGrid and Resend providers with ordered fallback."""

from __future__ import annotations

import abc
import re
from typing import Any

import aiohttp
import structlog

from stockalert.core.config import EmailConfig, EmailProviderConfig
from stockalert.core.types import EmailMessage
from stockalert.health.exceptions import DeliveryError
from stockalert.sinks.base import EmailSink

logger = structlog.get_logger(__name__)

_EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

SENDGRID_URL = "https://api.sendgrid.com/v3/mail/send"
RESEND_URL = "https://api.resend.com/emails"


def is_valid_address(address: str) -> bool:
    return bool(_EMAIL_RE.match(address))


class HttpEmailSink(EmailSink):
    """Base class for JSON-over-HTTP e-mail providers."""

    provider_name = "http"
    success_statuses: tuple[int, ...] = (200,)

    def __init__(self, config: EmailProviderConfig) -> None:
        self._api_key = config.api_key.get_secret_value()
        self._from_email = config.from_email
        self._from_name = config.from_name
        self._session: aiohttp.ClientSession | None = None

    def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            self._session = aiohttp.ClientSession()
        return self._session

    @abc.abstractmethod
    def _endpoint(self) -> str:
        """Provider API URL."""

    @abc.abstractmethod
    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        """Provider-specific request body."""

    def _headers(self) -> dict[str, str]:
        return {"Authorization": f"Bearer {self._api_key}"}

    async def send_email(self, message: EmailMessage) -> dict[str, Any]:
        if not message.to or not message.subject or not message.html:
            raise DeliveryError("Missing required e-mail fields: to, subject, html")
        if not is_valid_address(message.to):
            raise DeliveryError(f"Invalid e-mail address: {message.to}")

        try:
            session = self._get_session()
            async with session.post(
                self._endpoint(),
                json=self._payload(message),
                headers=self._headers(),
            ) as resp:
                body = await resp.text()
                if resp.status in self.success_statuses:
                    logger.debug(
                        "email_sent",
                        provider=self.provider_name,
                        subject=message.subject,
                    )
                    return {"provider": self.provider_name, "status": resp.status, "body": body}
                raise DeliveryError(
                    f"{self.provider_name} returned {resp.status}: {body[:200]}"
                )
        except (aiohttp.ClientError, TimeoutError) as exc:
            raise DeliveryError(f"{self.provider_name} request failed: {exc}") from exc

    async def close(self) -> None:
        if self._session and not self._session.closed:
            await self._session.close()
            self._session = None


class SendGridEmailSink(HttpEmailSink):
    """Delivers e-mail through the SendGrid v3 mail API."""

    provider_name = "sendgrid"
    success_statuses = (200, 202)

    def _endpoint(self) -> str:
        return SENDGRID_URL

    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        content = []
        if message.text:
            content.append({"type": "text/plain", "value": message.text})
        content.append({"type": "text/html", "value": message.html})
        return {
            "personalizations": [{"to": [{"email": message.to}]}],
            "from": {"email": self._from_email, "name": self._from_name},
            "subject": message.subject,
            "content": content,
        }


class ResendEmailSink(HttpEmailSink):
    """Delivers e-mail through the Resend API."""

    provider_name = "resend"

    def _endpoint(self) -> str:
        return RESEND_URL

    def _payload(self, message: EmailMessage) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "from": f"{self._from_name} <{self._from_email}>",
            "to": [message.to],
            "subject": message.subject,
            "html": message.html,
        }
        if message.text:
            payload["text"] = message.text
        return payload


class FallbackEmailSink(EmailSink):
    """Tries each provider in order; fails only when every provider fails."""

    def __init__(self, sinks: list[EmailSink]) -> None:
        if not sinks:
            raise ValueError("FallbackEmailSink needs at least one provider")
        self._sinks = sinks

    async def send_email(self, message: EmailMessage) -> dict[str, Any]:
        errors: list[str] = []
        for sink in self._sinks:
            try:
                return await sink.send_email(message)
            except DeliveryError as exc:
                errors.append(str(exc))
                logger.warning(
                    "email_provider_failed",
                    provider=type(sink).__name__,
                    error=str(exc),
                )
        raise DeliveryError("; ".join(errors))

    async def close(self) -> None:
        for sink in self._sinks:
            try:
                await sink.close()
            except Exception:
                logger.exception("email_sink_close_error", provider=type(sink).__name__)


def build_email_sink(config: EmailConfig) -> EmailSink | None:
    """Build the configured e-mail sink, or None when e-mail is disabled."""
    if not config.enabled:
        return None

    sinks: list[EmailSink] = []
    if config.sendgrid.enabled:
        sinks.append(SendGridEmailSink(config.sendgrid))
    if config.resend.enabled:
        sinks.append(ResendEmailSink(config.resend))

    if not sinks:
        logger.warning("email_enabled_without_provider")
        return None
    if len(sinks) == 1:
        return sinks[0]
    return FallbackEmailSink(sinks)
