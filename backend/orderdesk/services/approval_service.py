# Overview: Approval orchestrator; every order stage change and its stock movement happen here.

"""
Approval Orchestrator

The stage change, the inventory movement and the audit event of a
transition must commit together or not at all. This module is the only
caller of the inventory ledger, and each transition releases or reserves
in exactly one place, so no caller can restore stock a second time.

UNIT OF WORK (per operation):
1. Lock the order and check its stage against the transition table.
2. Reserve or release every line at the transition's tier.
3. Advance the stage (and settle totals on admin approval).
4. Append one ApprovalEvent.
5. Commit. Only then notify collaborators, best-effort.

Any failure in 1-4 rolls back everything, including stock already moved.
"""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Any

from flask import current_app

from ..errors import ValidationError
from ..extensions import db
from ..models import Order, OrderLineItem
from ..validation import (
    LineItemInput,
    optional_text,
    parse_decimal,
    parse_line_items,
    parse_payment_method,
    require_id,
    require_reason,
)
from orderdesk.time_utils import parse_iso_datetime, utcnow
from . import inventory_service, order_service
from .audit_service import append_approval_event
from .collaborators import (
    lookup_account_type,
    lookup_final_unit_price,
    lookup_reference_prices,
    notify,
)
from .concurrency import run_in_transaction
from .inventory_service import TIER_AGENT, TIER_LEADER, TIER_MAIN
from .lifecycle_service import (
    ACTION_ADMIN_APPROVE,
    ACTION_ADMIN_REJECT,
    ACTION_CREATE,
    ACTION_LEADER_APPROVE,
    ACTION_LEADER_REJECT,
    LEDGER_RESERVE,
    ROLE_LEADER,
    Transition,
    require_transition,
    transition_for,
)
from .numbering_service import next_order_number


def _notification_event(transition: Transition) -> str:
    if transition.action == ACTION_CREATE:
        return "order.created"
    return f"order.{transition.to_stage}"


def _after_commit(order: Order, transition: Transition, actor_id: str) -> None:
    current_app.logger.info(
        "Order %s: %s by %s -> %s",
        order.order_number, transition.action, actor_id, order.stage,
    )
    notify(_notification_event(transition), order.to_dict(include_items=True))


def _with_reference_prices(agent_id: str, item: LineItemInput) -> LineItemInput:
    """Fill missing selling/dsp/rsp prices from the price book. Request values win."""
    if item.selling_price is not None and item.dsp_price is not None and item.rsp_price is not None:
        return item
    prices = lookup_reference_prices(agent_id, item.variant_id)
    return LineItemInput(
        variant_id=item.variant_id,
        quantity=item.quantity,
        unit_price=item.unit_price,
        selling_price=item.selling_price if item.selling_price is not None else prices.get("selling_price"),
        dsp_price=item.dsp_price if item.dsp_price is not None else prices.get("dsp_price"),
        rsp_price=item.rsp_price if item.rsp_price is not None else prices.get("rsp_price"),
    )


# =============================================================================
# CREATE
# =============================================================================

def create_order(
    *,
    agent_id: str,
    client_id: str,
    items: list[dict] | list[LineItemInput],
    subtotal: Any,
    total: Any,
    tax: Any = 0,
    discount: Any = 0,
    tax_rate: Any = 0,
    notes: str | None = None,
    payment_method: str | None = None,
    payment_proof_url: str | None = None,
    signature_url: str | None = None,
    leader_id: str | None = None,
    order_date: str | datetime | None = None,
) -> Order:
    """
    Create an order in agent_pending and reserve its lines from the agent's stock.

    Args:
        agent_id: Creating agent (owner of the agent-tier stock consumed)
        client_id: Client the order is for
        items: [{variant_id, quantity, unit_price, selling_price?, dsp_price?, rsp_price?}]
        subtotal, total, tax, discount, tax_rate: Opaque amounts computed upstream
        leader_id: Optional leader the order is routed to

    Returns:
        Order: The committed order, with its generated order_number

    Raises:
        ValidationError: Malformed input
        NotFound: Agent has no inventory row for a variant
        InsufficientStock: Agent stock is short for a variant
        LockContention: Concurrent updates outlasted the retry attempts
    """
    agent_id = require_id(agent_id, "agent_id")
    client_id = require_id(client_id, "client_id")
    leader_id = require_id(leader_id, "leader_id") if leader_id is not None else None
    line_inputs = parse_line_items(items)
    amounts = {
        "subtotal": parse_decimal(subtotal, "subtotal"),
        "total_amount": parse_decimal(total, "total"),
        "tax_amount": parse_decimal(tax, "tax", required=False) or Decimal("0"),
        "discount": parse_decimal(discount, "discount", required=False) or Decimal("0"),
        "tax_rate": parse_decimal(tax_rate, "tax_rate", required=False) or Decimal("0"),
    }
    payment_method = parse_payment_method(payment_method)
    notes = optional_text(notes, "notes")
    payment_proof_url = optional_text(payment_proof_url, "payment_proof_url", max_length=512)
    signature_url = optional_text(signature_url, "signature_url", max_length=512)
    if isinstance(order_date, str):
        try:
            order_date = parse_iso_datetime(order_date)
        except ValueError:
            raise ValidationError("order_date must be an ISO-8601 datetime")

    # Collaborator lookups happen before the transaction; both fall back on failure.
    account_type = lookup_account_type(client_id)
    line_inputs = [_with_reference_prices(agent_id, item) for item in line_inputs]

    transition = transition_for(ACTION_CREATE)

    def _op():
        issued_at = utcnow()
        order = Order(
            order_number=next_order_number(issued_at=issued_at),
            agent_id=agent_id,
            client_id=client_id,
            client_account_type=account_type,
            leader_id=leader_id,
            order_date=order_date or issued_at,
            stage=transition.to_stage,
            payment_method=payment_method,
            payment_proof_url=payment_proof_url,
            signature_url=signature_url,
            notes=notes,
            **amounts,
        )
        db.session.add(order)
        db.session.flush()

        for item in line_inputs:
            db.session.add(OrderLineItem(
                order_id=order.id,
                variant_id=item.variant_id,
                quantity=item.quantity,
                unit_price=item.unit_price,
                selling_price=item.selling_price,
                dsp_price=item.dsp_price,
                rsp_price=item.rsp_price,
                line_total=item.line_total,
            ))
        db.session.flush()

        movements = inventory_service.reserve_items(
            TIER_AGENT, agent_id, [(item.variant_id, item.quantity) for item in line_inputs]
        )

        append_approval_event(
            order_id=order.id,
            actor_id=agent_id,
            actor_role=transition.actor_role,
            action=transition.action,
            from_stage=None,
            to_stage=transition.to_stage,
            movements=movements,
            occurred_at=issued_at,
        )
        return order

    order = run_in_transaction(_op)
    _after_commit(order, transition, agent_id)
    return order


# =============================================================================
# TRANSITIONS
# =============================================================================

def _check_leader_assignment(order: Order, leader_id: str) -> None:
    if order.leader_id and order.leader_id != leader_id:
        raise ValidationError(
            f"Order {order.order_number} is assigned to leader {order.leader_id}",
            details={"order_id": order.id, "leader_id": order.leader_id},
        )


def _ledger_owner(order: Order, transition: Transition, actor_id: str) -> str:
    """Whose stock the transition moves. Release always targets the last reservation's tier."""
    if transition.tier == TIER_AGENT:
        return order.agent_id
    if transition.tier == TIER_MAIN:
        return current_app.config.get("MAIN_INVENTORY_OWNER_ID", "main")
    if transition.tier == TIER_LEADER:
        if transition.ledger_op == LEDGER_RESERVE:
            return actor_id
        if not order.leader_id:
            raise ValidationError(
                f"Order {order.order_number} has no approving leader to release stock to",
                details={"order_id": order.id},
            )
        return order.leader_id
    raise ValidationError(f"Unsupported tier {transition.tier}")


def _settle_totals(order: Order) -> dict:
    """
    Lock in final line prices and order totals at admin approval.

    Snapshot columns stay as captured; final_* columns hold the settled values.
    total = settled subtotal + tax - discount
    """
    before = {"subtotal": str(order.subtotal), "total_amount": str(order.total_amount)}

    subtotal = Decimal("0")
    for item in order.line_items:
        unit_price = lookup_final_unit_price(item.variant_id, item.unit_price)
        item.final_unit_price = unit_price
        item.final_line_total = unit_price * item.quantity
        subtotal += item.final_line_total

    order.subtotal = subtotal
    order.total_amount = subtotal + (order.tax_amount or Decimal("0")) - (order.discount or Decimal("0"))

    return {
        "before": before,
        "after": {"subtotal": str(order.subtotal), "total_amount": str(order.total_amount)},
    }


def _stamp(order: Order, transition: Transition, actor_id: str, at: datetime, reason: str | None) -> None:
    if transition.action == ACTION_LEADER_APPROVE:
        order.leader_id = actor_id
        order.leader_approved_by = actor_id
        order.leader_approved_at = at
    elif transition.action == ACTION_ADMIN_APPROVE:
        order.admin_approved_by = actor_id
        order.admin_approved_at = at
    else:
        order.rejected_by = actor_id
        order.rejected_at = at
        order.rejection_reason = reason


def _run_transition(order_id: int, action: str, actor_id: str, *, reason: str | None = None) -> Order:
    transition = transition_for(action)

    def _op():
        order = order_service.lock_order(order_id)
        require_transition(order.id, order.stage, action)
        if transition.actor_role == ROLE_LEADER:
            _check_leader_assignment(order, actor_id)

        owner_id = _ledger_owner(order, transition, actor_id)
        quantities = order_service.line_quantities(order)
        if transition.ledger_op == LEDGER_RESERVE:
            movements = inventory_service.reserve_items(transition.tier, owner_id, quantities)
        else:
            movements = inventory_service.release_items(transition.tier, owner_id, quantities)

        totals = _settle_totals(order) if action == ACTION_ADMIN_APPROVE else None

        now = utcnow()
        from_stage = order.stage
        _stamp(order, transition, actor_id, now, reason)
        order.stage = transition.to_stage
        db.session.flush()

        append_approval_event(
            order_id=order.id,
            actor_id=actor_id,
            actor_role=transition.actor_role,
            action=action,
            from_stage=from_stage,
            to_stage=transition.to_stage,
            movements=movements,
            totals=totals,
            reason=reason,
            occurred_at=now,
        )
        return order

    order = run_in_transaction(_op)
    _after_commit(order, transition, actor_id)
    return order


def leader_approve(order_id: int, leader_id: str) -> Order:
    """
    Leader endorses an agent_pending order, spending the same quantities
    from the leader's own stock.

    Raises:
        InvalidTransition: Order is not agent_pending
        ValidationError: Order is assigned to a different leader
        NotFound / InsufficientStock: Leader stock missing or short
    """
    leader_id = require_id(leader_id, "leader_id")
    return _run_transition(order_id, ACTION_LEADER_APPROVE, leader_id)


def leader_reject(order_id: int, leader_id: str, reason: str | None = None) -> Order:
    """
    Leader rejects an agent_pending order; the agent's reservation is released.
    The order ends in leader_rejected. A reason is optional.
    """
    leader_id = require_id(leader_id, "leader_id")
    reason = optional_text(reason, "reason")
    return _run_transition(order_id, ACTION_LEADER_REJECT, leader_id, reason=reason)


def admin_approve(order_id: int, admin_id: str) -> Order:
    """
    Final approval: settle against main stock and lock in the order totals.

    Raises:
        InvalidTransition: Order is not leader_approved
        NotFound / InsufficientStock: Main stock missing or short
    """
    admin_id = require_id(admin_id, "admin_id")
    return _run_transition(order_id, ACTION_ADMIN_APPROVE, admin_id)


def admin_reject(order_id: int, admin_id: str, reason: str) -> Order:
    """
    Admin rejects a leader_approved order; stock goes back to the approving
    leader only. The agent tier is untouched. A reason is required.
    """
    admin_id = require_id(admin_id, "admin_id")
    reason = require_reason(reason)
    return _run_transition(order_id, ACTION_ADMIN_REJECT, admin_id, reason=reason)


APPROVE_BY_ACTION = {
    ACTION_LEADER_APPROVE: leader_approve,
    ACTION_ADMIN_APPROVE: admin_approve,
}
