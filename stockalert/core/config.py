"""Pydantic settings loaded from YAML configuration."""

from __future__ import annotations

from pathlib import Path
from typing import Any

import yaml
from pydantic import BaseModel, Field, SecretStr

_settings: Settings | None = None

_DEFAULT_CONFIG_PATH = Path("config/settings.yaml")


class LoggingConfig(BaseModel):
    """Logging configuration."""

    level: str = "INFO"
    format: str = "json"


class ClassifierConfig(BaseModel):
    """Stock severity thresholds.

    The defaults were picked empirically and are kept configurable so they
    can be tuned without a code change.
    """

    default_reorder_ratio: float = 0.2
    default_reorder_minimum: int = 5
    critical_ratio: float = 0.3


class CooldownConfig(BaseModel):
    """Per-tier alert cooldowns."""

    low_hours: float = 24.0
    critical_hours: float = 6.0
    out_of_stock_hours: float = 12.0
    expiry_hours: float = 24.0
    # Below 1 would drop records still inside their window.
    prune_after_multiple: float = Field(default=4.0, ge=1.0)
    state_path: str | None = None


class ExpiryConfig(BaseModel):
    """Expiry-date warnings for active products."""

    enabled: bool = True
    window_days: int = Field(default=30, ge=0)
    critical_days: int = Field(default=7, ge=0)


class DispatchConfig(BaseModel):
    """Notification fan-out configuration."""

    sink_timeout_secs: float = 10.0
    max_concurrency: int = 0
    email_subject_prefix: str = "[Pharmacy]"
    action_url_template: str = "/inventory?product={product_id}"


class HealthCheckConfig(BaseModel):
    """Health-check scheduling and recipient selection."""

    alerts_enabled: bool = True
    min_interval_minutes: float = 15.0
    schedule_interval_minutes: float = 60.0
    recipient_roles: list[str] = ["admin", "manager", "pharmacist"]
    recipient_ids: list[str] = []
    notify_admin_on_failure: bool = True


class SupabaseConfig(BaseModel):
    """Hosted Postgres (PostgREST) backend configuration."""

    url: str = ""
    api_key: SecretStr = SecretStr("")
    products_table: str = "products"
    users_table: str = "users"
    notifications_table: str = "user_notifications"
    timeout_secs: float = 10.0


class EmailProviderConfig(BaseModel):
    """Credentials and sender identity for one e-mail provider."""

    enabled: bool = False
    api_key: SecretStr = SecretStr("")
    from_email: str = "no-reply@pharmacy.local"
    from_name: str = "Pharmacy Alerts"


class EmailConfig(BaseModel):
    """Outbound e-mail configuration. SendGrid is tried before Resend."""

    enabled: bool = False
    sendgrid: EmailProviderConfig = EmailProviderConfig()
    resend: EmailProviderConfig = EmailProviderConfig()


class Settings(BaseModel):
    """Root settings container."""

    logging: LoggingConfig = LoggingConfig()
    classifier: ClassifierConfig = ClassifierConfig()
    expiry: ExpiryConfig = ExpiryConfig()
    cooldown: CooldownConfig = CooldownConfig()
    dispatch: DispatchConfig = DispatchConfig()
    health_check: HealthCheckConfig = HealthCheckConfig()
    supabase: SupabaseConfig = SupabaseConfig()
    email: EmailConfig = EmailConfig()


def load_settings(path: str | Path | None = None) -> Settings:
    """Load settings from a YAML file and cache globally.

    Args:
        path: Path to YAML config. Defaults to config/settings.yaml.

    Returns:
        Parsed Settings instance.
    """
    global _settings  # noqa: PLW0603

    config_path = Path(path) if path else _DEFAULT_CONFIG_PATH

    data: dict[str, Any] = {}
    if config_path.exists():
        with open(config_path) as f:
            raw = yaml.safe_load(f)
            if isinstance(raw, dict):
                data = raw

    _settings = Settings(**data)
    return _settings


def get_settings() -> Settings:
    """Return the cached settings, loading defaults if not yet loaded."""
    global _settings  # noqa: PLW0603
    if _settings is None:
        _settings = load_settings()
    return _settings


def reset_settings() -> None:
    """Reset the cached settings (useful for testing)."""
    global _settings  # noqa: PLW0603
    _settings = None
