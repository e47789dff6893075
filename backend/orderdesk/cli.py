# Overview: Flask CLI command groups for schema bootstrap, order inspection and bulk approval.

# backend/orderdesk/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to orderdesk (PowerShell: $env:FLASK_APP="orderdesk").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap/repair:
# - python -m flask system init-db
#   Create all tables (idempotent).
# - python -m flask system reset-db --yes
#   DEV/TEST only: drop and recreate all tables (deletes all data).
#
# Order inspection:
# - python -m flask orders list --agent-id a-1 --stage agent_pending --limit 20
#   List orders, newest first.
# - python -m flask orders show ORD-2026-000001
#   Show one order with its line items.
# - python -m flask orders events ORD-2026-000001
#   Show the audit trail of one order.
# - python -m flask orders bulk-approve --agent-id a-1 --stage leader_approved --actor-id l-1
#   Approve every eligible order of an agent.
#
# Inventory inspection:
# - python -m flask inventory show agent a-1
#   List stock rows for one owner at one tier.

import click
from flask.cli import with_appcontext

from .errors import OrderCoreError
from .extensions import db
from .services import audit_service, bulk_approval_service, inventory_service, order_service
from .services.lifecycle_service import VALID_STAGES
from .services.inventory_service import VALID_TIERS


@click.group('system')
def system_group():
    """System bootstrap and repair commands."""


@system_group.command('init-db')
@with_appcontext
def init_db():
    """Create all tables that do not exist yet."""
    db.create_all()
    click.echo("PASS Database schema ready.")


@system_group.command('reset-db')
@click.option('--yes', is_flag=True, help='Skip confirmation')
@with_appcontext
def reset_db(yes):
    """
    DANGER: Drop all tables and recreate schema.

    This will DELETE ALL DATA, including the audit trail!
    """
    if not yes:
        click.confirm("WARN This will DELETE ALL DATA. Are you sure?", abort=True)

    click.echo("DELETE  Dropping all tables...")
    db.drop_all()

    click.echo("BUILD  Creating all tables...")
    db.create_all()

    click.echo("PASS Database reset complete.")


@click.group('orders')
def orders_group():
    """Order inspection and approval commands."""


@orders_group.command('list')
@click.option('--agent-id', help='Filter by agent')
@click.option('--stage', type=click.Choice(sorted(VALID_STAGES)), help='Filter by stage')
@click.option('--limit', type=int, default=50, show_default=True)
@with_appcontext
def list_orders(agent_id, stage, limit):
    """List orders, newest first."""
    orders = order_service.list_orders(agent_id=agent_id, stage=stage, limit=limit)

    if not orders:
        click.echo("No orders found.")
        return

    click.echo("\n" + "="*100)
    click.echo(f"{'ID':<6} {'Number':<18} {'Agent':<14} {'Leader':<14} {'Stage':<17} {'Total':>12}")
    click.echo("="*100)
    for order in orders:
        click.echo(
            f"{order.id:<6} {order.order_number:<18} {order.agent_id:<14} "
            f"{(order.leader_id or '-'):<14} {order.stage:<17} {str(order.total_amount):>12}"
        )
    click.echo("="*100 + "\n")


@orders_group.command('show')
@click.argument('order_number')
@with_appcontext
def show_order(order_number):
    """Show one order with its line items."""
    try:
        order = order_service.get_order_by_number(order_number)
    except OrderCoreError as e:
        raise click.ClickException(e.message)

    click.echo(f"{order.order_number}  stage={order.stage}  status={order.status}")
    click.echo(f"  agent={order.agent_id} client={order.client_id} ({order.client_account_type}) leader={order.leader_id or '-'}")
    click.echo(f"  subtotal={order.subtotal} tax={order.tax_amount} discount={order.discount} total={order.total_amount}")
    for item in order.line_items:
        final = f" final={item.final_unit_price}" if item.final_unit_price is not None else ""
        click.echo(f"  - {item.variant_id} x{item.quantity} @ {item.unit_price}{final}")
    if order.rejection_reason:
        click.echo(f"  rejection reason: {order.rejection_reason}")


@orders_group.command('events')
@click.argument('order_number')
@with_appcontext
def show_events(order_number):
    """Show the audit trail of one order."""
    try:
        order = order_service.get_order_by_number(order_number)
    except OrderCoreError as e:
        raise click.ClickException(e.message)

    for event in audit_service.list_events(order.id):
        click.echo(
            f"{event.id:<6} {event.action:<15} {event.actor_role:<7} {event.actor_id:<14} "
            f"{event.from_stage or '-'} -> {event.to_stage}"
        )
        for movement in event.diff.get("stock", []):
            click.echo(
                f"       {movement['tier']}/{movement['owner_id']}/{movement['variant_id']}: "
                f"{movement['before']} -> {movement['after']}"
            )


@orders_group.command('bulk-approve')
@click.option('--agent-id', required=True, help='Agent whose orders are approved')
@click.option('--stage', required=True, type=click.Choice(['leader_approved', 'admin_approved']), help='Target stage')
@click.option('--actor-id', required=True, help='Approving leader or admin')
@with_appcontext
def bulk_approve(agent_id, stage, actor_id):
    """Approve every eligible order of an agent."""
    try:
        result = bulk_approval_service.bulk_approve(agent_id, stage, actor_id)
    except OrderCoreError as e:
        raise click.ClickException(e.message)

    for entry in result.succeeded:
        click.echo(f"PASS {entry['order_number']}")
    for entry in result.failed:
        click.echo(f"FAIL {entry['order_number']}: {entry['error']}")
    click.echo(f"\n{result.succeeded_count} succeeded, {result.failed_count} failed")


@click.group('inventory')
def inventory_group():
    """Inventory inspection commands."""


@inventory_group.command('show')
@click.argument('tier', type=click.Choice(sorted(VALID_TIERS)))
@click.argument('owner_id')
@with_appcontext
def show_inventory(tier, owner_id):
    """List stock rows for one owner at one tier."""
    records = inventory_service.list_stock(tier, owner_id)
    if not records:
        click.echo("No inventory rows found.")
        return
    for record in records:
        click.echo(f"{record.variant_id:<24} {record.stock:>8}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(orders_group)
    app.cli.add_command(inventory_group)
