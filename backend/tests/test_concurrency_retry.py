"""
Retry and unit-of-work tests.

Verifies:
- Lock and version conflicts are retried a bounded number of times
- Exhausted retries surface as LockContention (retryable, 503)
- Business errors are raised on the first attempt and never retried
- run_in_transaction commits on success and leaves nothing on failure
"""

import pytest
from sqlalchemy.exc import OperationalError
from sqlalchemy.orm.exc import StaleDataError

from conftest import actor_headers
from orderdesk.errors import InsufficientStock, InvalidTransition, LockContention
from orderdesk.extensions import db
from orderdesk.models import InventoryRecord
from orderdesk.services import approval_service
from orderdesk.services.concurrency import run_in_transaction, run_with_retry


def _locked():
    return OperationalError("UPDATE inventory_records SET stock=?", {}, Exception("database is locked"))


class Flaky:
    """Raises the given errors in order, then returns 'done'."""

    def __init__(self, *errors):
        self.errors = list(errors)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return 'done'


# =============================================================================
# RETRY RULES
# =============================================================================


class TestRunWithRetry:

    def test_lock_error_then_success(self, db_session):
        op = Flaky(_locked(), _locked())

        assert run_with_retry(op, attempts=3, backoff_base=0) == 'done'
        assert op.calls == 3

    def test_stale_version_is_retried(self, db_session):
        op = Flaky(StaleDataError("version mismatch on inventory_records"))

        assert run_with_retry(op, attempts=3, backoff_base=0) == 'done'
        assert op.calls == 2

    def test_exhausted_attempts_raise_lock_contention(self, db_session):
        op = Flaky(*[_locked() for _ in range(5)])

        with pytest.raises(LockContention) as exc_info:
            run_with_retry(op, attempts=3, backoff_base=0)

        assert op.calls == 3
        assert exc_info.value.retryable is True
        assert exc_info.value.http_status == 503
        assert exc_info.value.details['attempts'] == 3
        assert isinstance(exc_info.value.__cause__, OperationalError)

    def test_attempts_default_from_config(self, app, db_session):
        op = Flaky(*[_locked() for _ in range(10)])

        with pytest.raises(LockContention):
            run_with_retry(op)

        assert op.calls == app.config['LOCK_RETRY_ATTEMPTS']

    @pytest.mark.parametrize("error", [
        InsufficientStock(tier='agent', owner_id='a-1', variant_id='v-1', available=1, required=4),
        InvalidTransition("Cannot admin approve order in stage agent_pending", order_id=1,
                          stage='agent_pending', action='admin_approve'),
        ValueError("bad input"),
    ])
    def test_business_errors_are_not_retried(self, db_session, error):
        op = Flaky(error)

        with pytest.raises(type(error)) as exc_info:
            run_with_retry(op, attempts=3, backoff_base=0)

        assert exc_info.value is error
        assert op.calls == 1


# =============================================================================
# UNIT OF WORK
# =============================================================================


class TestRunInTransaction:

    def test_commits_on_success(self, db_session):
        def op():
            db.session.add(InventoryRecord(tier='agent', owner_id='a-1', variant_id='v-1', stock=3))
            db.session.flush()

        run_in_transaction(op, attempts=1, backoff_base=0)
        db.session.expire_all()

        assert db.session.query(InventoryRecord).count() == 1

    def test_failure_leaves_nothing(self, db_session):
        def op():
            db.session.add(InventoryRecord(tier='agent', owner_id='a-1', variant_id='v-1', stock=3))
            db.session.flush()
            raise InsufficientStock(tier='agent', owner_id='a-1', variant_id='v-1', available=3, required=4)

        with pytest.raises(InsufficientStock):
            run_in_transaction(op, attempts=3, backoff_base=0)

        assert db.session.query(InventoryRecord).count() == 0


class TestLockContentionResponse:

    def test_route_maps_lock_contention_to_503(self, monkeypatch, client, db_session):
        def contended(order_id, leader_id):
            raise LockContention("Could not complete operation due to concurrent updates; retry later",
                                 details={"attempts": 3})

        monkeypatch.setattr(approval_service, "leader_approve", contended)

        resp = client.post('/api/orders/1/leader-approve', headers=actor_headers('l-1', 'leader'))

        assert resp.status_code == 503
        assert resp.json['code'] == 'LOCK_CONTENTION'
