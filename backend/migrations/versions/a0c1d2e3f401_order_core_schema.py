"""Order core schema: orders, line items, tiered inventory, approval events, order sequence

Revision ID: a0c1d2e3f401
Revises:
Create Date: 2026-10-17 12:00:00.000000
"""
from alembic import op
import sqlalchemy as sa


# revision identifiers, used by Alembic.
revision = "a0c1d2e3f401"
down_revision = None
branch_labels = None
depends_on = None


def upgrade():
    op.create_table(
        "inventory_records",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("tier", sa.String(length=16), nullable=False),
        sa.Column("owner_id", sa.String(length=64), nullable=False),
        sa.Column("variant_id", sa.String(length=64), nullable=False),
        sa.Column("stock", sa.Integer(), nullable=False, server_default="0"),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("dsp_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("rsp_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("tier", "owner_id", "variant_id", name="uq_inventory_records_key"),
        sa.CheckConstraint("stock >= 0", name="ck_inventory_records_stock_non_negative"),
        sa.CheckConstraint("tier IN ('agent', 'leader', 'main')", name="ck_inventory_records_tier"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_inventory_records_tier_owner", "inventory_records", ["tier", "owner_id"], unique=False)
    op.create_index("ix_inventory_records_variant_id", "inventory_records", ["variant_id"], unique=False)

    op.create_table(
        "orders",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_number", sa.String(length=64), nullable=False),
        sa.Column("agent_id", sa.String(length=64), nullable=False),
        sa.Column("client_id", sa.String(length=64), nullable=False),
        sa.Column("client_account_type", sa.String(length=32), nullable=False, server_default="Standard Accounts"),
        sa.Column("leader_id", sa.String(length=64), nullable=True),
        sa.Column("order_date", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("subtotal", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("tax_rate", sa.Numeric(7, 4), nullable=False, server_default="0"),
        sa.Column("tax_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("discount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("total_amount", sa.Numeric(12, 2), nullable=False, server_default="0"),
        sa.Column("stage", sa.String(length=32), nullable=False, server_default="agent_pending"),
        sa.Column("payment_method", sa.String(length=32), nullable=True),
        sa.Column("payment_proof_url", sa.String(length=512), nullable=True),
        sa.Column("signature_url", sa.String(length=512), nullable=True),
        sa.Column("notes", sa.Text(), nullable=True),
        sa.Column("leader_approved_by", sa.String(length=64), nullable=True),
        sa.Column("leader_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("admin_approved_by", sa.String(length=64), nullable=True),
        sa.Column("admin_approved_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejected_by", sa.String(length=64), nullable=True),
        sa.Column("rejected_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("rejection_reason", sa.Text(), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("version_id", sa.Integer(), nullable=False, server_default="1"),
        sa.UniqueConstraint("order_number", name="uq_orders_order_number"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_orders_agent_id", "orders", ["agent_id"], unique=False)
    op.create_index("ix_orders_client_id", "orders", ["client_id"], unique=False)
    op.create_index("ix_orders_leader_id", "orders", ["leader_id"], unique=False)
    op.create_index("ix_orders_stage", "orders", ["stage"], unique=False)
    op.create_index("ix_orders_created_at", "orders", ["created_at"], unique=False)
    op.create_index("ix_orders_agent_stage", "orders", ["agent_id", "stage"], unique=False)
    op.create_index("ix_orders_leader_stage", "orders", ["leader_id", "stage"], unique=False)

    op.create_table(
        "order_line_items",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("variant_id", sa.String(length=64), nullable=False),
        sa.Column("quantity", sa.Integer(), nullable=False),
        sa.Column("unit_price", sa.Numeric(12, 2), nullable=False),
        sa.Column("selling_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("dsp_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("rsp_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("line_total", sa.Numeric(12, 2), nullable=False),
        sa.Column("final_unit_price", sa.Numeric(12, 2), nullable=True),
        sa.Column("final_line_total", sa.Numeric(12, 2), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sa.CheckConstraint("quantity > 0", name="ck_order_line_items_quantity_positive"),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_order_line_items_order_id", "order_line_items", ["order_id"], unique=False)
    op.create_index("ix_order_line_items_variant_id", "order_line_items", ["variant_id"], unique=False)

    op.create_table(
        "approval_events",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("order_id", sa.Integer(), nullable=False),
        sa.Column("actor_id", sa.String(length=64), nullable=False),
        sa.Column("actor_role", sa.String(length=16), nullable=False),
        sa.Column("action", sa.String(length=32), nullable=False),
        sa.Column("from_stage", sa.String(length=32), nullable=True),
        sa.Column("to_stage", sa.String(length=32), nullable=False),
        sa.Column("diff", sa.JSON(), nullable=False),
        sa.Column("reason", sa.Text(), nullable=True),
        sa.Column("occurred_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.ForeignKeyConstraint(["order_id"], ["orders.id"]),
        sqlite_autoincrement=True,
    )
    op.create_index("ix_approval_events_order_id", "approval_events", ["order_id"], unique=False)
    op.create_index("ix_approval_events_actor_id", "approval_events", ["actor_id"], unique=False)
    op.create_index("ix_approval_events_action", "approval_events", ["action"], unique=False)
    op.create_index("ix_approval_events_occurred_at", "approval_events", ["occurred_at"], unique=False)
    op.create_index("ix_approval_events_order_occurred", "approval_events", ["order_id", "occurred_at"], unique=False)

    op.create_table(
        "order_sequences",
        sa.Column("id", sa.Integer(), primary_key=True),
        sa.Column("name", sa.String(length=32), nullable=False),
        sa.Column("next_number", sa.Integer(), nullable=False, server_default="1"),
        sa.Column("updated_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.text("CURRENT_TIMESTAMP")),
        sa.UniqueConstraint("name", name="uq_order_sequences_name"),
        sqlite_autoincrement=True,
    )


def downgrade():
    op.drop_table("order_sequences")
    op.drop_index("ix_approval_events_order_occurred", table_name="approval_events")
    op.drop_index("ix_approval_events_occurred_at", table_name="approval_events")
    op.drop_index("ix_approval_events_action", table_name="approval_events")
    op.drop_index("ix_approval_events_actor_id", table_name="approval_events")
    op.drop_index("ix_approval_events_order_id", table_name="approval_events")
    op.drop_table("approval_events")
    op.drop_index("ix_order_line_items_variant_id", table_name="order_line_items")
    op.drop_index("ix_order_line_items_order_id", table_name="order_line_items")
    op.drop_table("order_line_items")
    op.drop_index("ix_orders_leader_stage", table_name="orders")
    op.drop_index("ix_orders_agent_stage", table_name="orders")
    op.drop_index("ix_orders_created_at", table_name="orders")
    op.drop_index("ix_orders_stage", table_name="orders")
    op.drop_index("ix_orders_leader_id", table_name="orders")
    op.drop_index("ix_orders_client_id", table_name="orders")
    op.drop_index("ix_orders_agent_id", table_name="orders")
    op.drop_table("orders")
    op.drop_index("ix_inventory_records_variant_id", table_name="inventory_records")
    op.drop_index("ix_inventory_records_tier_owner", table_name="inventory_records")
    op.drop_table("inventory_records")
