# Overview: Append-only audit trail of order transitions.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, Optional

from ..extensions import db
from ..models import ApprovalEvent
from .inventory_service import StockMovement
"""
Audit Log Invariants (authoritative)

- One ApprovalEvent per committed transition, including order creation.
- Events are written inside the same DB transaction as the transition they
  record; a rolled-back transition leaves no event behind.
- Events are never updated or deleted (enforced by ORM listeners on the model).
"""


def build_diff(
    *,
    from_stage: str | None,
    to_stage: str,
    movements: Iterable[StockMovement] = (),
    totals: dict | None = None,
) -> dict:
    diff = {
        "stage": {"before": from_stage, "after": to_stage},
        "stock": [m.to_dict() for m in movements],
    }
    if totals:
        diff["totals"] = totals
    return diff


def append_approval_event(
    *,
    order_id: int,
    actor_id: str,
    actor_role: str,
    action: str,
    from_stage: str | None,
    to_stage: str,
    movements: Iterable[StockMovement] = (),
    totals: dict | None = None,
    reason: Optional[str] = None,
    occurred_at: Optional[datetime] = None,
) -> ApprovalEvent:
    """
    Append one event. No domain logic here; callers decide what happened.
    """
    diff = build_diff(from_stage=from_stage, to_stage=to_stage, movements=movements, totals=totals)
    if reason:
        diff["reason"] = reason

    ev = ApprovalEvent(
        order_id=order_id,
        actor_id=actor_id,
        actor_role=actor_role,
        action=action,
        from_stage=from_stage,
        to_stage=to_stage,
        diff=diff,
        reason=reason,
        occurred_at=occurred_at,  # if None, db default applies
    )
    db.session.add(ev)
    db.session.flush()  # ensures ev.id is assigned without committing
    return ev


def list_events(order_id: int) -> list[ApprovalEvent]:
    """Events for one order, oldest first."""
    return (
        db.session.query(ApprovalEvent)
        .filter_by(order_id=order_id)
        .order_by(ApprovalEvent.id.asc())
        .all()
    )
