from __future__ import annotations

from sqlalchemy import event

from ..extensions import db
from orderdesk.time_utils import to_utc_z


class ApprovalEvent(db.Model):
    """
    Append-only record of one committed order transition.

    Written in the same transaction as the stage change it describes.
    `diff` holds before/after stage and, where stock moved, before/after
    stock per inventory key.
    """
    __tablename__ = "approval_events"
    __table_args__ = (
        db.Index("ix_approval_events_order_occurred", "order_id", "occurred_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)

    actor_id = db.Column(db.String(64), nullable=False, index=True)
    actor_role = db.Column(db.String(16), nullable=False)  # agent, leader, admin
    action = db.Column(db.String(32), nullable=False, index=True)  # create, leader_approve, leader_reject, admin_approve, admin_reject

    from_stage = db.Column(db.String(32), nullable=True)
    to_stage = db.Column(db.String(32), nullable=False)

    diff = db.Column(db.JSON, nullable=False)
    reason = db.Column(db.Text, nullable=True)

    occurred_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now(), index=True)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    order = db.relationship("Order", backref=db.backref("approval_events", lazy=True, order_by="ApprovalEvent.id"))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "order_id": self.order_id,
            "actor_id": self.actor_id,
            "actor_role": self.actor_role,
            "action": self.action,
            "from_stage": self.from_stage,
            "to_stage": self.to_stage,
            "diff": self.diff,
            "reason": self.reason,
            "occurred_at": to_utc_z(self.occurred_at),
            "created_at": to_utc_z(self.created_at),
        }


@event.listens_for(ApprovalEvent, "before_update")
def _reject_event_update(mapper, connection, target):
    raise ValueError(f"ApprovalEvent {target.id} is immutable")


@event.listens_for(ApprovalEvent, "before_delete")
def _reject_event_delete(mapper, connection, target):
    raise ValueError(f"ApprovalEvent {target.id} cannot be deleted")
