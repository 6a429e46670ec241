"""Health-check error taxonomy."""

from __future__ import annotations


class HealthCheckError(Exception):
    """Base exception for all health-check errors."""


class ProviderUnavailableError(HealthCheckError):
    """Product or recipient data could not be fetched. Fatal for a run."""


class PersistError(HealthCheckError):
    """An in-app notification could not be saved. Fatal for one job only."""


class DeliveryError(HealthCheckError):
    """An e-mail could not be delivered. Never undoes the in-app record."""
