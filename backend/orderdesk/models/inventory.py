from __future__ import annotations

from ..extensions import db
from orderdesk.time_utils import to_utc_z


class InventoryRecord(db.Model):
    """
    Stock counter for one (tier, owner, variant) key.

    TIERS:
    - agent:  a field agent's personal allocation (owner_id = agent id)
    - leader: a team leader's regional allocation (owner_id = leader id)
    - main:   company-wide warehouse stock (owner_id = MAIN_INVENTORY_OWNER_ID)

    Rows are provisioned by the allocation workflow. After that, stock only
    moves through inventory_service.reserve_items / release_items, which run
    inside the approval unit of work.

    The price columns are reference data for the price book; the ledger
    itself never reads them.
    """
    __tablename__ = "inventory_records"
    __table_args__ = (
        db.UniqueConstraint("tier", "owner_id", "variant_id", name="uq_inventory_records_key"),
        db.CheckConstraint("stock >= 0", name="ck_inventory_records_stock_non_negative"),
        db.CheckConstraint("tier IN ('agent', 'leader', 'main')", name="ck_inventory_records_tier"),
        db.Index("ix_inventory_records_tier_owner", "tier", "owner_id"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    tier = db.Column(db.String(16), nullable=False)
    owner_id = db.Column(db.String(64), nullable=False)
    variant_id = db.Column(db.String(64), nullable=False, index=True)

    stock = db.Column(db.Integer, nullable=False, default=0)

    unit_price = db.Column(db.Numeric(12, 2), nullable=True)
    selling_price = db.Column(db.Numeric(12, 2), nullable=True)
    dsp_price = db.Column(db.Numeric(12, 2), nullable=True)
    rsp_price = db.Column(db.Numeric(12, 2), nullable=True)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    __mapper_args__ = {"version_id_col": version_id}

    @property
    def key(self) -> tuple[str, str, str]:
        return (self.tier, self.owner_id, self.variant_id)

    def __repr__(self) -> str:
        return f"<InventoryRecord {self.tier}/{self.owner_id}/{self.variant_id} stock={self.stock}>"

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "tier": self.tier,
            "owner_id": self.owner_id,
            "variant_id": self.variant_id,
            "stock": self.stock,
            "unit_price": str(self.unit_price) if self.unit_price is not None else None,
            "selling_price": str(self.selling_price) if self.selling_price is not None else None,
            "dsp_price": str(self.dsp_price) if self.dsp_price is not None else None,
            "rsp_price": str(self.rsp_price) if self.rsp_price is not None else None,
            "version_id": self.version_id,
            "created_at": to_utc_z(self.created_at),
            "updated_at": to_utc_z(self.updated_at),
        }
