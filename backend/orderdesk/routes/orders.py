# Overview: Flask API routes for orders; parses input and returns JSON responses.

"""
Order API Routes

DESIGN:
- Agents create orders; leaders and admins move them through approval
- Every mutation is one service call; the service owns the transaction
- Business errors map to their HTTP status, anything else is a logged 500
"""

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import OrderCoreError
from ..services import approval_service, audit_service, bulk_approval_service, order_service
from ..services.lifecycle_service import ROLE_ADMIN, ROLE_AGENT, ROLE_LEADER
from ..validation import parse_int


orders_bp = Blueprint("orders", __name__, url_prefix="/api/orders")


def _error_response(exc: OrderCoreError):
    return jsonify(exc.to_dict()), exc.http_status


def _body() -> dict:
    return request.get_json(silent=True) or {}


# =============================================================================
# ORDER CREATION
# =============================================================================

@orders_bp.post("")
@require_actor(ROLE_AGENT)
def create_order_route():
    """
    Create an order for the calling agent (stage: agent_pending).

    Request body:
    {
        "client_id": "c-1",
        "items": [{"variant_id": "v-1", "quantity": 4, "unit_price": "25.00"}],
        "subtotal": "100.00",
        "tax": "0",
        "discount": "0",
        "total": "100.00",
        "notes": "...",                 (optional)
        "payment_method": "GCASH",      (optional: GCASH, BANK_TRANSFER, CASH)
        "payment_proof_url": "...",     (optional)
        "signature_url": "...",         (optional)
        "leader_id": "l-1",             (optional)
        "order_date": "2026-01-01T10:00Z" (optional)
    }

    Returns:
        201: Order created
        400: Invalid input
        404: Agent has no stock row for a variant
        409: Insufficient agent stock
    """
    data = _body()
    try:
        order = approval_service.create_order(
            agent_id=g.actor_id,
            client_id=data.get("client_id"),
            items=data.get("items"),
            subtotal=data.get("subtotal"),
            total=data.get("total"),
            tax=data.get("tax", 0),
            discount=data.get("discount", 0),
            tax_rate=data.get("tax_rate", 0),
            notes=data.get("notes"),
            payment_method=data.get("payment_method"),
            payment_proof_url=data.get("payment_proof_url"),
            signature_url=data.get("signature_url"),
            leader_id=data.get("leader_id"),
            order_date=data.get("order_date"),
        )
        return jsonify({"order": order.to_dict()}), 201

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to create order")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# READS
# =============================================================================

@orders_bp.get("")
@require_actor()
def list_orders_route():
    """
    List orders. Agents only ever see their own.

    Query parameters:
        agent_id, leader_id, stage, limit (default 100), offset
    """
    try:
        agent_id = request.args.get("agent_id")
        if g.actor_role == ROLE_AGENT:
            agent_id = g.actor_id
        orders = order_service.list_orders(
            agent_id=agent_id,
            leader_id=request.args.get("leader_id"),
            stage=request.args.get("stage"),
            limit=parse_int(request.args.get("limit", "100"), "limit"),
            offset=parse_int(request.args.get("offset", "0"), "offset"),
        )
        return jsonify({"orders": [o.to_dict(include_items=False) for o in orders]}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list orders")
        return jsonify({"error": "Internal server error"}), 500


def _visible(order) -> bool:
    return g.actor_role != ROLE_AGENT or order.agent_id == g.actor_id


@orders_bp.get("/<int:order_id>")
@require_actor()
def get_order_route(order_id: int):
    try:
        order = order_service.get_order(order_id)
        if not _visible(order):
            return jsonify({"error": f"Order {order_id} not found"}), 404
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/by-number/<order_number>")
@require_actor()
def get_order_by_number_route(order_number: str):
    try:
        order = order_service.get_order_by_number(order_number)
        if not _visible(order):
            return jsonify({"error": f"Order {order_number} not found"}), 404
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to load order by number")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.get("/<int:order_id>/events")
@require_actor()
def list_order_events_route(order_id: int):
    """Audit trail of one order, oldest first."""
    try:
        order = order_service.get_order(order_id)
        if not _visible(order):
            return jsonify({"error": f"Order {order_id} not found"}), 404
        events = audit_service.list_events(order.id)
        return jsonify({"events": [e.to_dict() for e in events]}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to list order events")
        return jsonify({"error": "Internal server error"}), 500


# =============================================================================
# APPROVAL WORKFLOW
# =============================================================================

@orders_bp.post("/<int:order_id>/leader-approve")
@require_actor(ROLE_LEADER)
def leader_approve_route(order_id: int):
    """
    Leader approval: deducts the order's quantities from the leader's stock.

    Returns:
        200: Order moved to leader_approved
        409: Wrong stage or insufficient leader stock
    """
    try:
        order = approval_service.leader_approve(order_id, g.actor_id)
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to leader-approve order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/leader-reject")
@require_actor(ROLE_LEADER)
def leader_reject_route(order_id: int):
    """
    Leader rejection: stock is returned to the agent.

    Request body (optional):
    {
        "reason": "Client cancelled"
    }
    """
    try:
        order = approval_service.leader_reject(order_id, g.actor_id, _body().get("reason"))
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to leader-reject order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/admin-approve")
@require_actor(ROLE_ADMIN)
def admin_approve_route(order_id: int):
    """
    Final approval: deducts main inventory and settles the order totals.
    """
    try:
        order = approval_service.admin_approve(order_id, g.actor_id)
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to admin-approve order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/<int:order_id>/admin-reject")
@require_actor(ROLE_ADMIN)
def admin_reject_route(order_id: int):
    """
    Admin rejection: stock is returned to the approving leader.

    Request body:
    {
        "reason": "Pricing mismatch"
    }

    Returns:
        200: Order moved to admin_rejected
        400: reason missing
        409: Order not leader_approved
    """
    try:
        order = approval_service.admin_reject(order_id, g.actor_id, _body().get("reason"))
        return jsonify({"order": order.to_dict()}), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to admin-reject order")
        return jsonify({"error": "Internal server error"}), 500


@orders_bp.post("/bulk-approve")
@require_actor(ROLE_LEADER, ROLE_ADMIN)
def bulk_approve_route():
    """
    Approve every eligible order of one agent.

    Request body:
    {
        "agent_id": "a-1",
        "stage": "leader_approved"   (leaders) | "admin_approved" (admins)
    }

    Returns:
        200: Per-order outcome, even when some orders failed
        400: Invalid target stage
        403: Target stage not available to the caller's role
    """
    data = _body()
    stage = data.get("stage")
    allowed = {ROLE_LEADER: "leader_approved", ROLE_ADMIN: "admin_approved"}
    if stage and stage != allowed[g.actor_role]:
        return jsonify({"error": f"{g.actor_role} cannot bulk approve to {stage}"}), 403

    try:
        result = bulk_approval_service.bulk_approve(
            data.get("agent_id"),
            stage,
            g.actor_id,
        )
        return jsonify(result.to_dict()), 200

    except OrderCoreError as e:
        return _error_response(e)
    except Exception:
        current_app.logger.exception("Failed to bulk approve orders")
        return jsonify({"error": "Internal server error"}), 500
