# Overview: Tiered inventory ledger; reserve/release primitives over inventory_records.

"""
Inventory Ledger Invariants (authoritative)

- stock >= 0 for every (tier, owner_id, variant_id) key, always.
- A reserve that would go negative fails with InsufficientStock and mutates nothing.
- Multi-item groups are all-or-nothing: every key is locked and validated
  before any row changes.
- Keys are locked in sorted order so two groups never deadlock each other.
- Nothing here commits. Callers run these inside their own unit of work
  (approval_service is the only caller), so the stock change and the order
  stage change become durable together.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Iterable

from ..errors import InsufficientStock, NotFound, ValidationError
from ..extensions import db
from ..models import InventoryRecord
from .concurrency import lock_for_update


TIER_AGENT = "agent"
TIER_LEADER = "leader"
TIER_MAIN = "main"
VALID_TIERS = {TIER_AGENT, TIER_LEADER, TIER_MAIN}


@dataclass(frozen=True)
class StockMovement:
    """Before/after stock for one key touched by a reserve or release."""
    tier: str
    owner_id: str
    variant_id: str
    before: int
    after: int

    @property
    def delta(self) -> int:
        return self.after - self.before

    def to_dict(self) -> dict:
        return {
            "tier": self.tier,
            "owner_id": self.owner_id,
            "variant_id": self.variant_id,
            "before": self.before,
            "after": self.after,
            "delta": self.delta,
        }


def validate_tier(tier: str) -> None:
    if tier not in VALID_TIERS:
        raise ValidationError(
            f"Invalid tier '{tier}'. Must be one of: {', '.join(sorted(VALID_TIERS))}"
        )


def _validate_owner(owner_id: str | None) -> None:
    if not owner_id:
        raise ValidationError("owner_id is required")


def _aggregate(items: Iterable[tuple[str, int]]) -> dict[str, int]:
    """Sum quantities per variant; the ledger works per key, not per line."""
    totals: dict[str, int] = {}
    for variant_id, quantity in items:
        if not variant_id:
            raise ValidationError("variant_id is required")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"Quantity for variant {variant_id} must be a positive integer")
        totals[variant_id] = totals.get(variant_id, 0) + quantity
    if not totals:
        raise ValidationError("At least one item is required")
    return totals


def _locked_record(tier: str, owner_id: str, variant_id: str) -> InventoryRecord | None:
    return lock_for_update(
        db.session.query(InventoryRecord).filter_by(
            tier=tier, owner_id=owner_id, variant_id=variant_id
        )
    ).first()


def reserve_items(tier: str, owner_id: str, items: Iterable[tuple[str, int]]) -> list[StockMovement]:
    """
    Decrement stock for every (variant_id, quantity) in items at one owner's tier.

    Raises:
        NotFound: a key has no inventory record
        InsufficientStock: a key has less stock than required (first in key order)
    """
    validate_tier(tier)
    _validate_owner(owner_id)
    quantities = _aggregate(items)

    # Phase 1: lock and validate every key
    locked: list[tuple[InventoryRecord, int]] = []
    for variant_id in sorted(quantities):
        required = quantities[variant_id]
        record = _locked_record(tier, owner_id, variant_id)
        if record is None:
            raise NotFound(
                f"No {tier} inventory for owner {owner_id}, variant {variant_id}",
                details={"tier": tier, "owner_id": owner_id, "variant_id": variant_id},
            )
        if record.stock < required:
            raise InsufficientStock(
                tier=tier,
                owner_id=owner_id,
                variant_id=variant_id,
                available=record.stock,
                required=required,
            )
        locked.append((record, required))

    # Phase 2: mutate
    movements = []
    for record, required in locked:
        before = record.stock
        record.stock = before - required
        movements.append(StockMovement(tier, owner_id, record.variant_id, before, record.stock))

    db.session.flush()
    return movements


def release_items(tier: str, owner_id: str, items: Iterable[tuple[str, int]]) -> list[StockMovement]:
    """
    Increment stock for every (variant_id, quantity) in items at one owner's tier.

    No ceiling check: a release only returns what a reserve took from the
    same key. A key whose row has gone missing is recreated at zero first.
    """
    validate_tier(tier)
    _validate_owner(owner_id)
    quantities = _aggregate(items)

    movements = []
    for variant_id in sorted(quantities):
        record = _locked_record(tier, owner_id, variant_id)
        if record is None:
            record = InventoryRecord(tier=tier, owner_id=owner_id, variant_id=variant_id, stock=0)
            db.session.add(record)
        before = record.stock or 0
        record.stock = before + quantities[variant_id]
        movements.append(StockMovement(tier, owner_id, variant_id, before, record.stock))

    db.session.flush()
    return movements


def reserve(tier: str, owner_id: str, variant_id: str, quantity: int) -> StockMovement:
    """Single-key reserve. Returns the movement; movement.after is the new stock."""
    return reserve_items(tier, owner_id, [(variant_id, quantity)])[0]


def release(tier: str, owner_id: str, variant_id: str, quantity: int) -> StockMovement:
    """Single-key release. Returns the movement; movement.after is the new stock."""
    return release_items(tier, owner_id, [(variant_id, quantity)])[0]


def get_record(tier: str, owner_id: str, variant_id: str) -> InventoryRecord:
    validate_tier(tier)
    record = db.session.query(InventoryRecord).filter_by(
        tier=tier, owner_id=owner_id, variant_id=variant_id
    ).first()
    if record is None:
        raise NotFound(
            f"No {tier} inventory for owner {owner_id}, variant {variant_id}",
            details={"tier": tier, "owner_id": owner_id, "variant_id": variant_id},
        )
    return record


def get_stock(tier: str, owner_id: str, variant_id: str) -> int:
    return get_record(tier, owner_id, variant_id).stock


def list_stock(tier: str, owner_id: str) -> list[InventoryRecord]:
    validate_tier(tier)
    return (
        db.session.query(InventoryRecord)
        .filter_by(tier=tier, owner_id=owner_id)
        .order_by(InventoryRecord.variant_id)
        .all()
    )
