# Overview: Order number allocation from a single atomic counter.

from __future__ import annotations

from datetime import datetime

from flask import current_app
from sqlalchemy import update
from sqlalchemy.exc import IntegrityError

from ..errors import ValidationError
from ..extensions import db
from ..models import OrderSequence
from orderdesk.time_utils import utcnow


ORDER_SEQUENCE_NAME = "client_order"


def _increment(name: str) -> int | None:
    """Bump the counter row; returns the number just claimed, or None if the row is missing."""
    stmt = (
        update(OrderSequence)
        .where(OrderSequence.name == name)
        .values(next_number=OrderSequence.next_number + 1)
    )
    result = db.session.execute(stmt)
    if not result.rowcount:
        return None
    current = (
        db.session.query(OrderSequence.next_number)
        .filter_by(name=name)
        .scalar()
    )
    return current - 1


def next_sequence_value(name: str = ORDER_SEQUENCE_NAME) -> int:
    """
    Atomically claim the next value of a named counter.

    Runs inside the caller's transaction: the claimed number is only
    consumed if that transaction commits. The UPDATE takes the row lock, so
    concurrent callers are serialized and never see the same value.
    """
    if not name:
        raise ValidationError("sequence name is required")

    claimed = _increment(name)
    if claimed is not None:
        return claimed

    try:
        with db.session.begin_nested():
            db.session.add(OrderSequence(name=name, next_number=2))
        return 1
    except IntegrityError:
        # Another transaction created the row first
        claimed = _increment(name)
        if claimed is None:
            raise
        return claimed


def format_order_number(number: int, *, issued_at: datetime | None = None, prefix: str | None = None, pad: int | None = None) -> str:
    if prefix is None:
        prefix = current_app.config.get("ORDER_NUMBER_PREFIX", "ORD")
    if pad is None:
        pad = current_app.config.get("ORDER_NUMBER_PAD", 6)
    issued_at = issued_at or utcnow()
    return f"{prefix}-{issued_at.year}-{number:0{pad}d}"


def next_order_number(*, issued_at: datetime | None = None) -> str:
    """
    Allocate the order number for an order being created.

    The counter is global, so numbers keep increasing across year changes;
    the year segment is presentation only.
    """
    return format_order_number(next_sequence_value(ORDER_SEQUENCE_NAME), issued_at=issued_at)
