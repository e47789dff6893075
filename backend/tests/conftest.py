"""
Pytest fixtures for order core tests.

Provides the app on an in-memory database, a wiped database per test,
stock seeding helpers and actor headers for the API.
"""

from decimal import Decimal

import pytest

from orderdesk import create_app
from orderdesk.extensions import db
from orderdesk.models import InventoryRecord
from orderdesk.services import approval_service
from orderdesk.services.collaborators import EXTENSION_KEY, install_collaborators


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOCK_RETRY_BACKOFF': 0,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        # Default collaborators for every test
        app.extensions.pop(EXTENSION_KEY, None)
        install_collaborators(app)

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def seed_stock(db_session):
    """Insert or overwrite one inventory row and commit it."""
    def _seed(tier, owner_id, variant_id, stock, **prices):
        record = db_session.query(InventoryRecord).filter_by(
            tier=tier, owner_id=owner_id, variant_id=variant_id
        ).first()
        if record is None:
            record = InventoryRecord(tier=tier, owner_id=owner_id, variant_id=variant_id)
            db_session.add(record)
        record.stock = stock
        for name, value in prices.items():
            setattr(record, name, Decimal(str(value)))
        db_session.commit()
        return record

    return _seed


@pytest.fixture(scope='function')
def stock_of(db_session):
    """Current stock of one key, read fresh from the database."""
    def _stock(tier, owner_id, variant_id):
        db_session.expire_all()
        record = db_session.query(InventoryRecord).filter_by(
            tier=tier, owner_id=owner_id, variant_id=variant_id
        ).first()
        return None if record is None else record.stock

    return _stock


@pytest.fixture(scope='function')
def make_order(db_session):
    """Create an order for an agent with (variant_id, quantity) lines at 25.00 each."""
    def _make(agent_id='a-1', lines=(('v-1', 4),), client_id='c-1', **kwargs):
        items = [
            {'variant_id': variant_id, 'quantity': quantity, 'unit_price': '25.00'}
            for variant_id, quantity in lines
        ]
        subtotal = Decimal('25.00') * sum(quantity for _, quantity in lines)
        kwargs.setdefault('subtotal', subtotal)
        kwargs.setdefault('total', subtotal)
        return approval_service.create_order(
            agent_id=agent_id,
            client_id=client_id,
            items=items,
            **kwargs,
        )

    return _make


def actor_headers(actor_id: str, role: str) -> dict:
    """Helper to create the gateway identity headers."""
    return {'X-Actor-Id': actor_id, 'X-Actor-Role': role}


@pytest.fixture(scope='function')
def agent_headers():
    return actor_headers('a-1', 'agent')


@pytest.fixture(scope='function')
def leader_headers():
    return actor_headers('l-1', 'leader')


@pytest.fixture(scope='function')
def admin_headers():
    return actor_headers('admin-1', 'admin')
