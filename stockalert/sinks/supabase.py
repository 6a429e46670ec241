"""Supabase (PostgREST) adapter — products, recipients, and in-app notifications."""

from __future__ import annotations

from datetime import date
from types import TracebackType
from typing import Any

import httpx
import structlog

from stockalert.core.config import HealthCheckConfig, SupabaseConfig, get_settings
from stockalert.core.types import NotificationRequest, ProductSnapshot, Recipient
from stockalert.health.exceptions import PersistError, ProviderUnavailableError
from stockalert.sinks.base import NotificationSink, ProductProvider, RecipientProvider

logger = structlog.get_logger(__name__)

_PRODUCT_COLUMNS = "id,brand_name,generic_name,stock_in_pieces,reorder_level,expiry_date"
_USER_COLUMNS = "id,email,role"


def _parse_product(row: dict[str, Any]) -> ProductSnapshot:
    """Convert a ``products`` row into a ProductSnapshot."""
    name = row.get("brand_name") or row.get("generic_name") or "Unknown Product"
    stock = row.get("stock_in_pieces") or 0
    reorder = row.get("reorder_level")
    expiry = row.get("expiry_date")
    return ProductSnapshot(
        id=str(row["id"]),
        display_name=str(name),
        stock_quantity=max(int(stock), 0),
        reorder_level=max(int(reorder), 0) if reorder is not None else None,
        # timestamptz columns carry a time part
        expiry_date=date.fromisoformat(str(expiry)[:10]) if expiry else None,
    )


def _parse_recipient(row: dict[str, Any]) -> Recipient:
    return Recipient(
        id=str(row["id"]),
        address=str(row.get("email") or ""),
        role=str(row.get("role") or ""),
    )


class SupabaseBackend(ProductProvider, RecipientProvider, NotificationSink):
    """Reads stock and users from, and writes notifications to, Supabase.

    Usage::

        async with SupabaseBackend(settings.supabase) as backend:
            products = await backend.list_active_products()
    """

    def __init__(
        self,
        config: SupabaseConfig | None = None,
        health_config: HealthCheckConfig | None = None,
    ) -> None:
        self._config = config or get_settings().supabase
        hc = health_config or get_settings().health_check
        self._recipient_roles = list(hc.recipient_roles)
        self._http: httpx.AsyncClient | None = None

    @property
    def connected(self) -> bool:
        """Whether the HTTP client is active."""
        return self._http is not None and not self._http.is_closed

    @property
    def rest_url(self) -> str:
        return f"{self._config.url.rstrip('/')}/rest/v1"

    def _headers(self) -> dict[str, str]:
        key = self._config.api_key.get_secret_value()
        return {
            "apikey": key,
            "Authorization": f"Bearer {key}",
            "Content-Type": "application/json",
        }

    async def connect(self) -> None:
        """Create the httpx async client."""
        self._http = httpx.AsyncClient(
            base_url=self.rest_url,
            headers=self._headers(),
            timeout=httpx.Timeout(self._config.timeout_secs),
        )

    async def close(self) -> None:
        """Close the httpx async client."""
        if self._http is not None:
            await self._http.aclose()
            self._http = None

    async def __aenter__(self) -> SupabaseBackend:
        await self.connect()
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        await self.close()

    # ── Reads ───────────────────────────────────────────────────

    async def _select(self, table: str, params: dict[str, str]) -> list[dict[str, Any]]:
        if self._http is None:
            raise ProviderUnavailableError("Supabase client not connected")

        try:
            response = await self._http.get(f"/{table}", params=params)
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise ProviderUnavailableError(
                f"Supabase returned {exc.response.status_code} for {table}"
            ) from exc
        except httpx.HTTPError as exc:
            raise ProviderUnavailableError(
                f"Supabase request failed for {table}: {exc}"
            ) from exc

        try:
            body = response.json()
        except ValueError as exc:
            raise ProviderUnavailableError(
                f"Supabase returned invalid JSON for {table}"
            ) from exc

        if not isinstance(body, list):
            raise ProviderUnavailableError(f"Supabase returned non-list for {table}")
        return body

    async def list_active_products(self) -> list[ProductSnapshot]:
        rows = await self._select(
            self._config.products_table,
            {"select": _PRODUCT_COLUMNS, "is_active": "eq.true"},
        )
        products: list[ProductSnapshot] = []
        for row in rows:
            try:
                products.append(_parse_product(row))
            except (KeyError, TypeError, ValueError) as exc:
                raise ProviderUnavailableError(
                    f"Malformed product row {row.get('id')!r}: {exc}"
                ) from exc
        logger.debug("products_fetched", count=len(products))
        return products

    async def list_alert_recipients(self) -> list[Recipient]:
        params = {"select": _USER_COLUMNS, "is_active": "eq.true"}
        if self._recipient_roles:
            params["role"] = f"in.({','.join(self._recipient_roles)})"
        rows = await self._select(self._config.users_table, params)
        try:
            recipients = [_parse_recipient(row) for row in rows]
        except (KeyError, TypeError) as exc:
            raise ProviderUnavailableError(f"Malformed user row: {exc}") from exc
        logger.debug("recipients_fetched", count=len(recipients))
        return recipients

    async def list_admin_recipients(self) -> list[Recipient]:
        rows = await self._select(
            self._config.users_table,
            {"select": _USER_COLUMNS, "is_active": "eq.true", "role": "eq.admin", "limit": "1"},
        )
        try:
            return [_parse_recipient(row) for row in rows]
        except (KeyError, TypeError) as exc:
            raise ProviderUnavailableError(f"Malformed user row: {exc}") from exc

    # ── Writes ──────────────────────────────────────────────────

    async def create_notification(self, request: NotificationRequest) -> dict[str, Any]:
        if self._http is None:
            raise PersistError("Supabase client not connected")

        payload = {
            "user_id": request.recipient_id,
            "title": request.title,
            "message": request.message,
            "type": request.type.value,
            "priority": int(request.priority),
            "category": request.category,
            "metadata": request.metadata,
            "is_read": False,
        }
        table = self._config.notifications_table
        try:
            response = await self._http.post(
                f"/{table}",
                json=payload,
                headers={"Prefer": "return=representation"},
            )
            response.raise_for_status()
        except httpx.HTTPStatusError as exc:
            raise PersistError(
                f"Supabase returned {exc.response.status_code} inserting into {table}"
            ) from exc
        except httpx.HTTPError as exc:
            raise PersistError(f"Supabase insert failed for {table}: {exc}") from exc

        try:
            body = response.json()
        except ValueError:
            return payload
        if isinstance(body, list) and body and isinstance(body[0], dict):
            return body[0]
        return payload
