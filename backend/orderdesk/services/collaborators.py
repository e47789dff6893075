# Overview: Narrow interfaces to the systems around the order core (clients, pricing, notifications).

"""
External collaborators.

The order core only consults these; none of them owns order state.
Every call is treated as fallible:
- client and price lookups fall back to snapshots/defaults with a warning
- notifications run after commit and their failures are logged, never raised
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

import httpx
from flask import Flask, current_app

from ..extensions import db
from ..models import InventoryRecord
from ..validation import ACCOUNT_STANDARD, VALID_ACCOUNT_TYPES
from .inventory_service import TIER_AGENT, TIER_MAIN


EXTENSION_KEY = "orderdesk.collaborators"


class ClientDirectory:
    """Client identity lookup. The default knows nothing and returns the configured account type."""

    def account_type(self, client_id: str) -> str | None:
        return None


class PriceBook:
    def reference_prices(self, agent_id: str, variant_id: str) -> dict:
        """selling/dsp/rsp prices to snapshot on a new line item."""
        return {}

    def final_unit_price(self, variant_id: str) -> Decimal | None:
        """Unit price to settle at admin approval; None keeps the snapshot price."""
        return None


class InventoryPriceBook(PriceBook):
    """
    Reads the reference price columns kept on inventory_records.

    - snapshot prices come from the agent's own row
    - settlement price is the main tier's selling price, else its unit price
    """

    def reference_prices(self, agent_id: str, variant_id: str) -> dict:
        row = db.session.query(InventoryRecord).filter_by(
            tier=TIER_AGENT, owner_id=agent_id, variant_id=variant_id
        ).first()
        if row is None:
            return {}
        return {
            "selling_price": row.selling_price,
            "dsp_price": row.dsp_price,
            "rsp_price": row.rsp_price,
        }

    def final_unit_price(self, variant_id: str) -> Decimal | None:
        owner_id = current_app.config.get("MAIN_INVENTORY_OWNER_ID", "main")
        row = db.session.query(InventoryRecord).filter_by(
            tier=TIER_MAIN, owner_id=owner_id, variant_id=variant_id
        ).first()
        if row is None:
            return None
        if row.selling_price is not None:
            return row.selling_price
        return row.unit_price


class NotificationDispatcher:
    def dispatch(self, event_name: str, payload: dict) -> None:
        raise NotImplementedError


class LoggingDispatcher(NotificationDispatcher):
    """Default dispatcher: records the notification in the app log only."""

    def dispatch(self, event_name: str, payload: dict) -> None:
        current_app.logger.info(
            "Notification %s for order %s", event_name, payload.get("order_number")
        )


class WebhookDispatcher(NotificationDispatcher):
    """POSTs {"event", "order"} as JSON to a delivery service (email/SMS live behind it)."""

    def __init__(self, url: str, *, timeout: float = 5.0, client: httpx.Client | None = None):
        self.url = url
        self.timeout = timeout
        self._client = client

    def dispatch(self, event_name: str, payload: dict) -> None:
        body = {"event": event_name, "order": payload}
        if self._client is not None:
            response = self._client.post(self.url, json=body, timeout=self.timeout)
        else:
            response = httpx.post(self.url, json=body, timeout=self.timeout)
        response.raise_for_status()


@dataclass
class Collaborators:
    clients: ClientDirectory = field(default_factory=ClientDirectory)
    prices: PriceBook = field(default_factory=InventoryPriceBook)
    notifier: NotificationDispatcher = field(default_factory=LoggingDispatcher)


def install_collaborators(
    app: Flask,
    *,
    clients: ClientDirectory | None = None,
    prices: PriceBook | None = None,
    notifier: NotificationDispatcher | None = None,
) -> Collaborators:
    """
    Attach collaborators to the app. Anything not given keeps its current
    value, or the default when nothing is installed yet.
    """
    current = app.extensions.get(EXTENSION_KEY)
    if current is None:
        current = Collaborators()
        webhook_url = app.config.get("NOTIFICATION_WEBHOOK_URL")
        if webhook_url:
            current.notifier = WebhookDispatcher(
                webhook_url, timeout=app.config.get("NOTIFICATION_TIMEOUT", 5.0)
            )
    if clients is not None:
        current.clients = clients
    if prices is not None:
        current.prices = prices
    if notifier is not None:
        current.notifier = notifier
    app.extensions[EXTENSION_KEY] = current
    return current


def get_collaborators() -> Collaborators:
    collaborators = current_app.extensions.get(EXTENSION_KEY)
    if collaborators is None:
        collaborators = install_collaborators(current_app._get_current_object())
    return collaborators


def lookup_account_type(client_id: str) -> str:
    default = current_app.config.get("DEFAULT_CLIENT_ACCOUNT_TYPE", ACCOUNT_STANDARD)
    try:
        account_type = get_collaborators().clients.account_type(client_id)
    except Exception as exc:
        current_app.logger.warning(
            "Client lookup failed for %s, using %r: %s", client_id, default, exc
        )
        return default
    if account_type and account_type not in VALID_ACCOUNT_TYPES:
        current_app.logger.warning(
            "Unknown account type %r for client %s, using %r", account_type, client_id, default
        )
        return default
    return account_type or default


def lookup_reference_prices(agent_id: str, variant_id: str) -> dict:
    try:
        return get_collaborators().prices.reference_prices(agent_id, variant_id) or {}
    except Exception as exc:
        current_app.logger.warning(
            "Reference price lookup failed for agent %s variant %s: %s", agent_id, variant_id, exc
        )
        return {}


def lookup_final_unit_price(variant_id: str, fallback: Decimal) -> Decimal:
    """
    Settlement price for one line. Called inside the admin approval unit of
    work, so the lookup runs in a savepoint: a failed query rolls back only
    the savepoint and the surrounding transaction stays usable.
    """
    try:
        with db.session.begin_nested():
            price = get_collaborators().prices.final_unit_price(variant_id)
    except Exception as exc:
        current_app.logger.warning(
            "Final price lookup failed for variant %s, keeping %s: %s", variant_id, fallback, exc
        )
        return fallback
    return price if price is not None else fallback


def notify(event_name: str, payload: dict) -> bool:
    """
    Best-effort post-commit notification. Returns False when delivery failed.
    """
    try:
        get_collaborators().notifier.dispatch(event_name, payload)
    except Exception:
        current_app.logger.exception(
            "Notification %s failed for order %s", event_name, payload.get("order_number")
        )
        return False
    return True
