# Overview: Order repository; loads, locks and lists orders. No stage or stock changes here.

from __future__ import annotations

from ..errors import NotFound, ValidationError
from ..extensions import db
from ..models import Order
from .concurrency import lock_for_update
from .lifecycle_service import validate_stage


MAX_LIST_LIMIT = 500


def get_order(order_id: int) -> Order:
    order = db.session.get(Order, order_id)
    if order is None:
        raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def get_order_by_number(order_number: str) -> Order:
    order = db.session.query(Order).filter_by(order_number=order_number).first()
    if order is None:
        raise NotFound(f"Order {order_number} not found", details={"order_number": order_number})
    return order


def lock_order(order_id: int) -> Order:
    """Load an order for update inside the current unit of work."""
    order = lock_for_update(db.session.query(Order).filter_by(id=order_id)).first()
    if order is None:
        raise NotFound(f"Order {order_id} not found", details={"order_id": order_id})
    return order


def list_orders(
    *,
    agent_id: str | None = None,
    leader_id: str | None = None,
    stage: str | None = None,
    limit: int = 100,
    offset: int = 0,
    oldest_first: bool = False,
) -> list[Order]:
    """
    List orders with optional filters. Newest first unless oldest_first.
    """
    query = db.session.query(Order)
    if agent_id:
        query = query.filter(Order.agent_id == agent_id)
    if leader_id:
        query = query.filter(Order.leader_id == leader_id)
    if stage:
        validate_stage(stage)
        query = query.filter(Order.stage == stage)

    if limit < 1:
        raise ValidationError("limit must be at least 1")
    limit = min(limit, MAX_LIST_LIMIT)
    if offset < 0:
        offset = 0

    if oldest_first:
        query = query.order_by(Order.created_at.asc(), Order.id.asc())
    else:
        query = query.order_by(Order.created_at.desc(), Order.id.desc())
    return query.offset(offset).limit(limit).all()


def list_order_ids_in_stage(agent_id: str, stage: str) -> list[tuple[int, str]]:
    """(id, order_number) of every order for agent in stage, oldest first."""
    validate_stage(stage)
    rows = (
        db.session.query(Order.id, Order.order_number)
        .filter(Order.agent_id == agent_id, Order.stage == stage)
        .order_by(Order.created_at.asc(), Order.id.asc())
        .all()
    )
    return [(row[0], row[1]) for row in rows]


def line_quantities(order: Order) -> list[tuple[str, int]]:
    """(variant_id, quantity) for every line; the ledger sums duplicates per key."""
    return [(item.variant_id, item.quantity) for item in order.line_items]
