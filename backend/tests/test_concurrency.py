"""
Concurrency tests on a file-backed SQLite database.

Verifies:
- Concurrent creates never share an order number
- Concurrent reserves that jointly exceed stock: exactly one succeeds
- Concurrent decisions on one order: exactly one wins
"""

import os
import tempfile
import threading
import unittest

from orderdesk import create_app
from orderdesk.errors import InsufficientStock, InvalidTransition
from orderdesk.extensions import db
from orderdesk.models import InventoryRecord, Order
from orderdesk.services import approval_service, inventory_service


class ConcurrencyTests(unittest.TestCase):
    def setUp(self):
        self.tmpdir = tempfile.TemporaryDirectory()
        db_path = os.path.join(self.tmpdir.name, "concurrency.db")
        self.app = create_app({
            "TESTING": True,
            "SQLALCHEMY_DATABASE_URI": f"sqlite:///{db_path}",
            "SQLITE_BUSY_TIMEOUT": 30,
            "LOCK_RETRY_ATTEMPTS": 10,
            "LOCK_RETRY_BACKOFF": 0.01,
        })

        with self.app.app_context():
            db.drop_all()
            db.create_all()

    def tearDown(self):
        with self.app.app_context():
            db.session.remove()
            db.drop_all()
            db.session.remove()
            db.engine.dispose()
        self.tmpdir.cleanup()

    def _seed(self, tier, owner_id, variant_id, stock):
        with self.app.app_context():
            db.session.add(InventoryRecord(tier=tier, owner_id=owner_id, variant_id=variant_id, stock=stock))
            db.session.commit()

    def _run_threads(self, targets):
        results = []
        lock = threading.Lock()

        def wrap(fn):
            def worker():
                with self.app.app_context():
                    try:
                        value = fn()
                        with lock:
                            results.append(value)
                    except Exception as exc:
                        with lock:
                            results.append(exc)
                    finally:
                        db.session.remove()
            return worker

        threads = [threading.Thread(target=wrap(fn)) for fn in targets]
        for t in threads:
            t.start()
        for t in threads:
            t.join()
        return results

    def _create(self, quantity):
        def fn():
            order = approval_service.create_order(
                agent_id="a-1",
                client_id="c-1",
                items=[{"variant_id": "v-1", "quantity": quantity, "unit_price": "10.00"}],
                subtotal=str(10 * quantity),
                total=str(10 * quantity),
            )
            return order.order_number
        return fn

    def test_concurrent_creates_get_distinct_numbers(self):
        self._seed("agent", "a-1", "v-1", 100)

        results = self._run_threads([self._create(1) for _ in range(10)])

        errors = [r for r in results if isinstance(r, Exception)]
        self.assertFalse(errors)
        self.assertEqual(len(results), 10)
        self.assertEqual(len(set(results)), 10)
        with self.app.app_context():
            self.assertEqual(inventory_service.get_stock("agent", "a-1", "v-1"), 90)

    def test_concurrent_reserves_cannot_oversell(self):
        self._seed("agent", "a-1", "v-1", 5)

        results = self._run_threads([self._create(3), self._create(3)])

        created = [r for r in results if isinstance(r, str)]
        short = [r for r in results if isinstance(r, InsufficientStock)]
        self.assertEqual(len(created), 1)
        self.assertEqual(len(short), 1)
        with self.app.app_context():
            self.assertEqual(inventory_service.get_stock("agent", "a-1", "v-1"), 2)
            self.assertEqual(db.session.query(Order).count(), 1)

    def test_concurrent_decisions_on_one_order(self):
        self._seed("agent", "a-1", "v-1", 10)
        self._seed("leader", "l-1", "v-1", 10)
        with self.app.app_context():
            order_id = approval_service.create_order(
                agent_id="a-1",
                client_id="c-1",
                items=[{"variant_id": "v-1", "quantity": 4, "unit_price": "10.00"}],
                subtotal="40",
                total="40",
            ).id

        results = self._run_threads([
            lambda: approval_service.leader_approve(order_id, "l-1").stage,
            lambda: approval_service.leader_reject(order_id, "l-1", "Duplicate").stage,
        ])

        won = [r for r in results if isinstance(r, str)]
        lost = [r for r in results if isinstance(r, InvalidTransition)]
        self.assertEqual(len(won), 1)
        self.assertEqual(len(lost), 1)

        with self.app.app_context():
            agent = inventory_service.get_stock("agent", "a-1", "v-1")
            leader = inventory_service.get_stock("leader", "l-1", "v-1")
        if won[0] == "leader_approved":
            self.assertEqual((agent, leader), (6, 6))
        else:
            self.assertEqual((agent, leader), (10, 10))


if __name__ == "__main__":
    unittest.main()
