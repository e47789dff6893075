# Overview: Order stage state machine; the single table of legal transitions.

"""
Order Lifecycle

================================================================================
STATE MACHINE:
    agent_pending --leader_approve--> leader_approved --admin_approve--> admin_approved
    agent_pending --leader_reject---> leader_rejected
    leader_approved --admin_reject--> admin_rejected

    create brings a new order into agent_pending.

LEDGER (one inventory operation per edge):
    create          reserve at agent tier   (owner: order.agent_id)
    leader_approve  reserve at leader tier  (owner: approving leader)
    leader_reject   release to agent tier   (owner: order.agent_id)
    admin_approve   reserve at main tier    (owner: MAIN_INVENTORY_OWNER_ID)
    admin_reject    release to leader tier  (owner: order.leader_id)

RULES:
1. Only the edges in TRANSITIONS exist. Anything else is InvalidTransition.
2. admin_approved, leader_rejected and admin_rejected are terminal.
3. A rejection releases only at the tier of the last reservation. An admin
   rejection never touches the agent tier.
================================================================================
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Literal

from ..errors import InvalidTransition, ValidationError
from .inventory_service import TIER_AGENT, TIER_LEADER, TIER_MAIN


STAGE_AGENT_PENDING = "agent_pending"
STAGE_LEADER_APPROVED = "leader_approved"
STAGE_ADMIN_APPROVED = "admin_approved"
STAGE_LEADER_REJECTED = "leader_rejected"
STAGE_ADMIN_REJECTED = "admin_rejected"

OrderStage = Literal[
    "agent_pending",
    "leader_approved",
    "admin_approved",
    "leader_rejected",
    "admin_rejected",
]

VALID_STAGES = {
    STAGE_AGENT_PENDING,
    STAGE_LEADER_APPROVED,
    STAGE_ADMIN_APPROVED,
    STAGE_LEADER_REJECTED,
    STAGE_ADMIN_REJECTED,
}
TERMINAL_STAGES = {STAGE_ADMIN_APPROVED, STAGE_LEADER_REJECTED, STAGE_ADMIN_REJECTED}

ACTION_CREATE = "create"
ACTION_LEADER_APPROVE = "leader_approve"
ACTION_LEADER_REJECT = "leader_reject"
ACTION_ADMIN_APPROVE = "admin_approve"
ACTION_ADMIN_REJECT = "admin_reject"

ROLE_AGENT = "agent"
ROLE_LEADER = "leader"
ROLE_ADMIN = "admin"
VALID_ROLES = {ROLE_AGENT, ROLE_LEADER, ROLE_ADMIN}

LEDGER_RESERVE = "reserve"
LEDGER_RELEASE = "release"


@dataclass(frozen=True)
class Transition:
    action: str
    from_stage: OrderStage | None
    to_stage: OrderStage
    actor_role: str
    ledger_op: str
    tier: str


TRANSITIONS = {
    ACTION_CREATE: Transition(ACTION_CREATE, None, STAGE_AGENT_PENDING, ROLE_AGENT, LEDGER_RESERVE, TIER_AGENT),
    ACTION_LEADER_APPROVE: Transition(
        ACTION_LEADER_APPROVE, STAGE_AGENT_PENDING, STAGE_LEADER_APPROVED, ROLE_LEADER, LEDGER_RESERVE, TIER_LEADER
    ),
    ACTION_LEADER_REJECT: Transition(
        ACTION_LEADER_REJECT, STAGE_AGENT_PENDING, STAGE_LEADER_REJECTED, ROLE_LEADER, LEDGER_RELEASE, TIER_AGENT
    ),
    ACTION_ADMIN_APPROVE: Transition(
        ACTION_ADMIN_APPROVE, STAGE_LEADER_APPROVED, STAGE_ADMIN_APPROVED, ROLE_ADMIN, LEDGER_RESERVE, TIER_MAIN
    ),
    ACTION_ADMIN_REJECT: Transition(
        ACTION_ADMIN_REJECT, STAGE_LEADER_APPROVED, STAGE_ADMIN_REJECTED, ROLE_ADMIN, LEDGER_RELEASE, TIER_LEADER
    ),
}

# Target stage of a bulk approval -> action that reaches it
APPROVAL_ACTION_FOR_TARGET = {
    STAGE_LEADER_APPROVED: ACTION_LEADER_APPROVE,
    STAGE_ADMIN_APPROVED: ACTION_ADMIN_APPROVE,
}


def validate_stage(stage: str) -> None:
    if stage not in VALID_STAGES:
        raise ValidationError(
            f"Invalid stage '{stage}'. Must be one of: {', '.join(sorted(VALID_STAGES))}"
        )


def can_transition(from_stage: str, to_stage: str) -> bool:
    """
    True if some edge leads from from_stage to to_stage.

    Same-stage "transitions" are not edges and return False.
    """
    validate_stage(from_stage)
    validate_stage(to_stage)
    return any(
        t.from_stage == from_stage and t.to_stage == to_stage
        for t in TRANSITIONS.values()
    )


def transition_for(action: str) -> Transition:
    transition = TRANSITIONS.get(action)
    if transition is None:
        raise ValidationError(
            f"Unknown action '{action}'. Must be one of: {', '.join(sorted(TRANSITIONS))}"
        )
    return transition


def require_transition(order_id: int, current_stage: str, action: str) -> Transition:
    """
    Return the edge for action if the order's current stage allows it.

    Raises:
        InvalidTransition: current stage is not the edge's pre-state
    """
    transition = transition_for(action)
    if current_stage != transition.from_stage:
        if current_stage in TERMINAL_STAGES:
            message = f"Cannot {action.replace('_', ' ')} order in terminal stage {current_stage}"
        else:
            message = (
                f"Cannot {action.replace('_', ' ')} order in stage {current_stage}; "
                f"expected {transition.from_stage}"
            )
        raise InvalidTransition(message, order_id=order_id, stage=current_stage, action=action)
    return transition


def approval_action_for_target(target_stage: str) -> str:
    action = APPROVAL_ACTION_FOR_TARGET.get(target_stage)
    if action is None:
        raise ValidationError(
            f"Bulk approval target must be one of: {', '.join(sorted(APPROVAL_ACTION_FOR_TARGET))}"
        )
    return action
