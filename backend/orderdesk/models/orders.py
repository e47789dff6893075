from __future__ import annotations

from decimal import Decimal

from ..extensions import db
from orderdesk.time_utils import to_utc_z


# Coarse status shown to display collaborators; always derived from stage.
STAGE_TO_STATUS = {
    "agent_pending": "pending",
    "leader_approved": "pending",
    "admin_approved": "approved",
    "leader_rejected": "rejected",
    "admin_rejected": "rejected",
}


def _money(value: Decimal | None) -> str | None:
    return str(value) if value is not None else None


class Order(db.Model):
    """
    Client order created by a field agent.

    LIFECYCLE (see services/lifecycle_service.py):
        agent_pending -> leader_approved -> admin_approved
        agent_pending -> leader_rejected
        leader_approved -> admin_rejected

    Orders are never deleted. Only approval_service changes `stage`.

    Monetary columns are computed upstream and stored as given, except at
    admin approval where subtotal/total_amount are replaced by the settled
    line totals.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.UniqueConstraint("order_number", name="uq_orders_order_number"),
        db.Index("ix_orders_agent_stage", "agent_id", "stage"),
        db.Index("ix_orders_leader_stage", "leader_id", "stage"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable order number (e.g., "ORD-2026-000123")
    order_number = db.Column(db.String(64), nullable=False)

    agent_id = db.Column(db.String(64), nullable=False, index=True)
    client_id = db.Column(db.String(64), nullable=False, index=True)
    client_account_type = db.Column(db.String(32), nullable=False, default="Standard Accounts")
    leader_id = db.Column(db.String(64), nullable=True, index=True)

    order_date = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    subtotal = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    tax_rate = db.Column(db.Numeric(7, 4), nullable=False, default=Decimal("0"))
    tax_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))
    total_amount = db.Column(db.Numeric(12, 2), nullable=False, default=Decimal("0"))

    stage = db.Column(db.String(32), nullable=False, default="agent_pending", index=True)

    payment_method = db.Column(db.String(32), nullable=True)  # GCASH, BANK_TRANSFER, CASH
    payment_proof_url = db.Column(db.String(512), nullable=True)
    signature_url = db.Column(db.String(512), nullable=True)
    notes = db.Column(db.Text, nullable=True)

    leader_approved_by = db.Column(db.String(64), nullable=True)
    leader_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    admin_approved_by = db.Column(db.String(64), nullable=True)
    admin_approved_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejected_by = db.Column(db.String(64), nullable=True)
    rejected_at = db.Column(db.DateTime(timezone=True), nullable=True)
    rejection_reason = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )
    version_id = db.Column(db.Integer, nullable=False, default=1)

    line_items = db.relationship(
        "OrderLineItem",
        back_populates="order",
        order_by="OrderLineItem.id",
        lazy=True,
    )
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def status(self) -> str:
        return STAGE_TO_STATUS.get(self.stage, "pending")

    def __repr__(self) -> str:
        return f"<Order {self.order_number} stage={self.stage}>"

    def to_dict(self, include_items: bool = True) -> dict:
        data = {
            "id": self.id,
            "order_number": self.order_number,
            "agent_id": self.agent_id,
            "client_id": self.client_id,
            "client_account_type": self.client_account_type,
            "leader_id": self.leader_id,
            "order_date": to_utc_z(self.order_date),
            "subtotal": _money(self.subtotal),
            "tax_rate": _money(self.tax_rate),
            "tax_amount": _money(self.tax_amount),
            "discount": _money(self.discount),
            "total_amount": _money(self.total_amount),
            "stage": self.stage,
            "status": self.status,
            "payment_method": self.payment_method,
            "payment_proof_url": self.payment_proof_url,
            "signature_url": self.signature_url,
            "notes": self.notes,
            "leader_approved_by": self.leader_approved_by,
            "leader_approved_at": to_utc_z(self.leader_approved_at),
            "admin_approved_by": self.admin_approved_by,
            "admin_approved_at": to_utc_z(self.admin_approved_at),
            "rejected_by": self.rejected_by,
            "rejected_at": to_utc_z(self.rejected_at),
            "rejection_reason": self.rejection_reason,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
            "version_id": self.version_id,
        }
        if include_items:
            data["items"] = [item.to_dict() for item in self.line_items]
        return data


class OrderLineItem(db.Model):
    """
    One variant on an order.

    CRITICAL: unit_price and the reference prices are captured when the
    order is created and never recomputed. Settlement at admin approval
    writes final_unit_price / final_line_total next to them instead.
    """
    __tablename__ = "order_line_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_line_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    variant_id = db.Column(db.String(64), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    selling_price = db.Column(db.Numeric(12, 2), nullable=True)
    dsp_price = db.Column(db.Numeric(12, 2), nullable=True)
    rsp_price = db.Column(db.Numeric(12, 2), nullable=True)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)

    final_unit_price = db.Column(db.Numeric(12, 2), nullable=True)
    final_line_total = db.Column(db.Numeric(12, 2), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", back_populates="line_items")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "variant_id": self.variant_id,
            "quantity": self.quantity,
            "unit_price": _money(self.unit_price),
            "selling_price": _money(self.selling_price),
            "dsp_price": _money(self.dsp_price),
            "rsp_price": _money(self.rsp_price),
            "line_total": _money(self.line_total),
            "final_unit_price": _money(self.final_unit_price),
            "final_line_total": _money(self.final_line_total),
            "created_at": to_utc_z(self.created_at),
        }


class OrderSequence(db.Model):
    """
    Atomic order number counter.

    Numbers come from one counter row incremented with
    UPDATE ... SET next_number = next_number + 1, never from max+1 scans.
    """
    __tablename__ = "order_sequences"
    __table_args__ = (
        db.UniqueConstraint("name", name="uq_order_sequences_name"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(32), nullable=False)
    next_number = db.Column(db.Integer, nullable=False, default=1)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), onupdate=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "next_number": self.next_number,
            "updated_at": to_utc_z(self.updated_at),
        }
