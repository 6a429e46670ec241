"""Boundary contracts consumed by the health-check engine."""

from __future__ import annotations

import abc
from typing import Any

from stockalert.core.types import (
    EmailMessage,
    NotificationRequest,
    ProductSnapshot,
    Recipient,
)


class ProductProvider(abc.ABC):
    """Source of current product stock levels."""

    @abc.abstractmethod
    async def list_active_products(self) -> list[ProductSnapshot]:
        """Return every active product in a single bulk read.

        Raises:
            ProviderUnavailableError: on transport or parse failure.
        """


class RecipientProvider(abc.ABC):
    """Source of users eligible for stock alerts."""

    @abc.abstractmethod
    async def list_alert_recipients(self) -> list[Recipient]:
        """Return the active alert recipients.

        Raises:
            ProviderUnavailableError: on transport or parse failure.
        """

    async def list_admin_recipients(self) -> list[Recipient]:
        """Return active admins, who are told when a health check fails.

        The default picks admins out of ``list_alert_recipients``.

        Raises:
            ProviderUnavailableError: on transport or parse failure.
        """
        return [r for r in await self.list_alert_recipients() if r.role == "admin"]


class NotificationSink(abc.ABC):
    """Persists in-app notifications."""

    @abc.abstractmethod
    async def create_notification(self, request: NotificationRequest) -> dict[str, Any]:
        """Persist one notification and return the stored record.

        Raises:
            PersistError: if the record could not be saved.
        """


class EmailSink(abc.ABC):
    """Delivers outbound e-mail. Provider selection is internal."""

    @abc.abstractmethod
    async def send_email(self, message: EmailMessage) -> dict[str, Any]:
        """Send one e-mail and return the provider response.

        Raises:
            DeliveryError: if the message could not be delivered.
        """

    @abc.abstractmethod
    async def close(self) -> None:
        """Release resources (HTTP sessions, etc.)."""
