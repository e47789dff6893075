"""
External collaborator tests: price book, fallbacks and the webhook dispatcher.
"""

import json
from decimal import Decimal

import httpx
import pytest
from sqlalchemy import text

from orderdesk.extensions import db
from orderdesk.services import approval_service, collaborators
from orderdesk.services.collaborators import (
    ClientDirectory,
    Collaborators,
    InventoryPriceBook,
    LoggingDispatcher,
    PriceBook,
    WebhookDispatcher,
    install_collaborators,
)
from orderdesk.validation import ACCOUNT_KEY, ACCOUNT_STANDARD


class BrokenPriceBook(PriceBook):
    def reference_prices(self, agent_id, variant_id):
        raise RuntimeError("price service down")

    def final_unit_price(self, variant_id):
        raise RuntimeError("price service down")


class TestInventoryPriceBook:

    def test_reference_prices_from_agent_row(self, seed_stock):
        seed_stock('agent', 'a-1', 'v-1', 1, selling_price='10.00', dsp_price='9.00', rsp_price='12.00')

        prices = InventoryPriceBook().reference_prices('a-1', 'v-1')

        assert prices == {
            'selling_price': Decimal('10.00'),
            'dsp_price': Decimal('9.00'),
            'rsp_price': Decimal('12.00'),
        }

    def test_reference_prices_missing_row(self, db_session):
        assert InventoryPriceBook().reference_prices('a-1', 'v-1') == {}

    def test_final_price_prefers_selling_price(self, seed_stock):
        seed_stock('main', 'main', 'v-1', 1, selling_price='31.00', unit_price='29.00')
        assert InventoryPriceBook().final_unit_price('v-1') == Decimal('31.00')

    def test_final_price_none_without_main_row(self, db_session):
        assert InventoryPriceBook().final_unit_price('v-1') is None


class TestFallbacks:

    def test_price_failures_fall_back(self, app, db_session):
        install_collaborators(app, prices=BrokenPriceBook())

        assert collaborators.lookup_reference_prices('a-1', 'v-1') == {}
        assert collaborators.lookup_final_unit_price('v-1', Decimal('25.00')) == Decimal('25.00')

    def test_notify_reports_failure(self, app, db_session):
        class Exploding(LoggingDispatcher):
            def dispatch(self, event_name, payload):
                raise OSError("smtp unreachable")

        install_collaborators(app, notifier=Exploding())

        assert collaborators.notify('order.created', {'order_number': 'ORD-2026-000001'}) is False

    def test_default_collaborators(self, app, db_session):
        installed = collaborators.get_collaborators()
        assert isinstance(installed, Collaborators)
        assert isinstance(installed.prices, InventoryPriceBook)
        assert isinstance(installed.notifier, LoggingDispatcher)
        assert collaborators.notify('order.created', {'order_number': 'ORD-2026-000001'}) is True


class FailingQueryPriceBook(InventoryPriceBook):
    """Price book whose settlement query errors at the database."""

    def final_unit_price(self, variant_id):
        db.session.execute(text("SELECT selling_price FROM missing_price_table"))


class UnknownTypeDirectory(ClientDirectory):
    def account_type(self, client_id):
        return 'Gold Accounts'


class KeyAccountDirectory(ClientDirectory):
    def account_type(self, client_id):
        return ACCOUNT_KEY


class TestSettlementLookupIsolation:

    def test_failed_price_query_falls_back_and_approval_commits(self, app, seed_stock, make_order, stock_of):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        seed_stock('main', 'main', 'v-1', 10)
        order = make_order(lines=[('v-1', 2)])
        approval_service.leader_approve(order.id, 'l-1')
        install_collaborators(app, prices=FailingQueryPriceBook())

        order = approval_service.admin_approve(order.id, 'admin-1')

        assert order.stage == 'admin_approved'
        assert order.line_items[0].final_unit_price == Decimal('25.00')
        assert order.total_amount == Decimal('50.00')
        assert stock_of('main', 'main', 'v-1') == 8


class TestAccountTypes:

    def test_known_type_is_kept(self, app, db_session):
        install_collaborators(app, clients=KeyAccountDirectory())
        assert collaborators.lookup_account_type('c-1') == ACCOUNT_KEY

    def test_unknown_type_uses_default(self, app, db_session):
        install_collaborators(app, clients=UnknownTypeDirectory())
        assert collaborators.lookup_account_type('c-1') == ACCOUNT_STANDARD

    def test_no_answer_uses_default(self, app, db_session):
        assert collaborators.lookup_account_type('c-1') == ACCOUNT_STANDARD


class TestWebhookDispatcher:

    def test_posts_event_and_order(self):
        received = []

        def handler(request):
            received.append((request.method, str(request.url), json.loads(request.content)))
            return httpx.Response(202)

        client = httpx.Client(transport=httpx.MockTransport(handler))
        dispatcher = WebhookDispatcher('https://notify.example.test/hooks/orders', client=client)

        dispatcher.dispatch('order.admin_approved', {'order_number': 'ORD-2026-000001'})

        assert received == [(
            'POST',
            'https://notify.example.test/hooks/orders',
            {'event': 'order.admin_approved', 'order': {'order_number': 'ORD-2026-000001'}},
        )]

    def test_http_error_raises(self):
        client = httpx.Client(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        dispatcher = WebhookDispatcher('https://notify.example.test/hooks/orders', client=client)

        with pytest.raises(httpx.HTTPStatusError):
            dispatcher.dispatch('order.created', {'order_number': 'ORD-2026-000001'})

    def test_installed_from_config(self):
        from orderdesk import create_app

        app = create_app({
            'TESTING': True,
            'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
            'NOTIFICATION_WEBHOOK_URL': 'https://notify.example.test/hooks/orders',
            'NOTIFICATION_TIMEOUT': 2.5,
        })

        with app.app_context():
            notifier = collaborators.get_collaborators().notifier
        assert isinstance(notifier, WebhookDispatcher)
        assert notifier.timeout == 2.5
