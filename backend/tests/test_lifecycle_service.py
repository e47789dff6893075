"""
Order stage state machine tests (no database).
"""

import pytest

from orderdesk.errors import InvalidTransition, ValidationError
from orderdesk.services import lifecycle_service as lc
from orderdesk.services.inventory_service import TIER_AGENT, TIER_LEADER, TIER_MAIN


LEGAL_EDGES = {
    (lc.STAGE_AGENT_PENDING, lc.STAGE_LEADER_APPROVED),
    (lc.STAGE_AGENT_PENDING, lc.STAGE_LEADER_REJECTED),
    (lc.STAGE_LEADER_APPROVED, lc.STAGE_ADMIN_APPROVED),
    (lc.STAGE_LEADER_APPROVED, lc.STAGE_ADMIN_REJECTED),
}


class TestCanTransition:

    @pytest.mark.parametrize("from_stage", sorted(lc.VALID_STAGES))
    @pytest.mark.parametrize("to_stage", sorted(lc.VALID_STAGES))
    def test_only_table_edges_are_legal(self, from_stage, to_stage):
        expected = (from_stage, to_stage) in LEGAL_EDGES
        assert lc.can_transition(from_stage, to_stage) is expected

    def test_same_stage_is_not_a_transition(self):
        assert lc.can_transition(lc.STAGE_AGENT_PENDING, lc.STAGE_AGENT_PENDING) is False

    def test_unknown_stage_is_rejected(self):
        with pytest.raises(ValidationError):
            lc.can_transition('draft', lc.STAGE_AGENT_PENDING)

    @pytest.mark.parametrize("stage", sorted(lc.TERMINAL_STAGES))
    def test_terminal_stages_have_no_exits(self, stage):
        assert not any(lc.can_transition(stage, target) for target in lc.VALID_STAGES)


class TestLedgerMapping:

    def test_each_edge_moves_stock_at_one_tier(self):
        expected = {
            lc.ACTION_CREATE: (lc.LEDGER_RESERVE, TIER_AGENT),
            lc.ACTION_LEADER_APPROVE: (lc.LEDGER_RESERVE, TIER_LEADER),
            lc.ACTION_LEADER_REJECT: (lc.LEDGER_RELEASE, TIER_AGENT),
            lc.ACTION_ADMIN_APPROVE: (lc.LEDGER_RESERVE, TIER_MAIN),
            lc.ACTION_ADMIN_REJECT: (lc.LEDGER_RELEASE, TIER_LEADER),
        }
        actual = {
            action: (t.ledger_op, t.tier) for action, t in lc.TRANSITIONS.items()
        }
        assert actual == expected

    def test_admin_reject_never_touches_agent_tier(self):
        assert lc.TRANSITIONS[lc.ACTION_ADMIN_REJECT].tier != TIER_AGENT


class TestRequireTransition:

    def test_returns_edge_for_valid_stage(self):
        transition = lc.require_transition(1, lc.STAGE_LEADER_APPROVED, lc.ACTION_ADMIN_APPROVE)
        assert transition.to_stage == lc.STAGE_ADMIN_APPROVED

    def test_wrong_stage_raises_invalid_transition(self):
        with pytest.raises(InvalidTransition) as exc_info:
            lc.require_transition(7, lc.STAGE_AGENT_PENDING, lc.ACTION_ADMIN_APPROVE)
        assert exc_info.value.order_id == 7
        assert exc_info.value.stage == lc.STAGE_AGENT_PENDING
        assert exc_info.value.http_status == 409

    def test_terminal_stage_message(self):
        with pytest.raises(InvalidTransition, match="terminal"):
            lc.require_transition(1, lc.STAGE_ADMIN_REJECTED, lc.ACTION_LEADER_APPROVE)

    def test_unknown_action(self):
        with pytest.raises(ValidationError):
            lc.require_transition(1, lc.STAGE_AGENT_PENDING, 'archive')


class TestBulkTargets:

    def test_approval_targets(self):
        assert lc.approval_action_for_target(lc.STAGE_LEADER_APPROVED) == lc.ACTION_LEADER_APPROVE
        assert lc.approval_action_for_target(lc.STAGE_ADMIN_APPROVED) == lc.ACTION_ADMIN_APPROVE

    @pytest.mark.parametrize("stage", [lc.STAGE_LEADER_REJECTED, lc.STAGE_AGENT_PENDING, None])
    def test_non_approval_targets_rejected(self, stage):
        with pytest.raises(ValidationError):
            lc.approval_action_for_target(stage)
