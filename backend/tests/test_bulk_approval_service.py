"""
Bulk approval tests.

Verifies:
- Each order is its own unit of work; one failure does not undo the others
- Failures carry their error code so the caller can retry just those
- Cancellation stops new work and reports what was skipped
"""

import pytest

from orderdesk.errors import ValidationError
from orderdesk.extensions import db
from orderdesk.models import Order
from orderdesk.services import approval_service, bulk_approval_service


class TestBulkApprove:

    def test_partial_success(self, seed_stock, make_order, stock_of):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('agent', 'a-1', 'v-2', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-2', 1)
        order_a = make_order(lines=[('v-1', 4)])
        order_b = make_order(lines=[('v-2', 3)])

        result = bulk_approval_service.bulk_approve('a-1', 'leader_approved', 'l-1')

        assert [e['order_id'] for e in result.succeeded] == [order_a.id]
        assert result.failed_order_ids == [order_b.id]
        assert result.failed[0]['code'] == 'INSUFFICIENT_STOCK'
        assert result.failed[0]['retryable'] is False

        db.session.expire_all()
        assert db.session.get(Order, order_a.id).stage == 'leader_approved'
        assert db.session.get(Order, order_b.id).stage == 'agent_pending'
        assert stock_of('leader', 'l-1', 'v-1') == 6
        assert stock_of('leader', 'l-1', 'v-2') == 1

    def test_only_eligible_orders_are_attempted(self, seed_stock, make_order):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('agent', 'a-2', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        pending = make_order(lines=[('v-1', 1)])
        rejected = make_order(lines=[('v-1', 1)])
        approval_service.leader_reject(rejected.id, 'l-1')
        make_order(agent_id='a-2', lines=[('v-1', 1)])

        result = bulk_approval_service.bulk_approve('a-1', 'leader_approved', 'l-1')

        assert [e['order_id'] for e in result.succeeded] == [pending.id]
        assert result.failed == []

    def test_admin_bulk_to_admin_approved(self, seed_stock, make_order):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        seed_stock('main', 'main', 'v-1', 10)
        first = make_order(lines=[('v-1', 1)])
        second = make_order(lines=[('v-1', 1)])
        approval_service.leader_approve(first.id, 'l-1')

        result = bulk_approval_service.bulk_approve('a-1', 'admin_approved', 'admin-1')

        assert [e['order_id'] for e in result.succeeded] == [first.id]
        db.session.expire_all()
        assert db.session.get(Order, second.id).stage == 'agent_pending'

    def test_oldest_first(self, seed_stock, make_order):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        ids = [make_order(lines=[('v-1', 1)]).id for _ in range(3)]

        result = bulk_approval_service.bulk_approve('a-1', 'leader_approved', 'l-1')

        assert [e['order_id'] for e in result.succeeded] == ids

    def test_cancellation_skips_remaining(self, seed_stock, make_order):
        seed_stock('agent', 'a-1', 'v-1', 10)
        seed_stock('leader', 'l-1', 'v-1', 10)
        ids = [make_order(lines=[('v-1', 1)]).id for _ in range(3)]
        calls = []

        def should_continue():
            calls.append(1)
            return len(calls) <= 1

        result = bulk_approval_service.bulk_approve(
            'a-1', 'leader_approved', 'l-1', should_continue=should_continue,
        )

        assert [e['order_id'] for e in result.succeeded] == ids[:1]
        assert [e['order_id'] for e in result.skipped] == ids[1:]
        db.session.expire_all()
        assert db.session.get(Order, ids[0]).stage == 'leader_approved'
        assert db.session.get(Order, ids[2]).stage == 'agent_pending'

    def test_no_candidates(self, db_session):
        result = bulk_approval_service.bulk_approve('a-1', 'leader_approved', 'l-1')
        assert result.to_dict()['succeeded_count'] == 0
        assert result.to_dict()['failed_count'] == 0

    @pytest.mark.parametrize("stage", ['leader_rejected', 'admin_rejected', 'agent_pending', 'shipped'])
    def test_rejects_non_approval_targets(self, db_session, stage):
        with pytest.raises(ValidationError):
            bulk_approval_service.bulk_approve('a-1', stage, 'l-1')
