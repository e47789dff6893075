# Overview: Read-only inventory views; stock only changes through order transitions.

from flask import Blueprint, jsonify, g, current_app

from ..decorators import require_actor
from ..errors import OrderCoreError
from ..services import inventory_service
from ..services.lifecycle_service import ROLE_AGENT, ROLE_LEADER


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api/inventory")


@inventory_bp.get("/<tier>/<owner_id>")
@require_actor()
def list_stock_route(tier: str, owner_id: str):
    """
    Stock rows for one owner at one tier.

    Agents and leaders may only read their own tier rows.
    """
    if g.actor_role in (ROLE_AGENT, ROLE_LEADER) and (tier != g.actor_role or owner_id != g.actor_id):
        return jsonify({"error": "Permission denied"}), 403

    try:
        records = inventory_service.list_stock(tier, owner_id)
        return jsonify({"tier": tier, "owner_id": owner_id, "records": [r.to_dict() for r in records]}), 200

    except OrderCoreError as e:
        return jsonify(e.to_dict()), e.http_status
    except Exception:
        current_app.logger.exception("Failed to list inventory")
        return jsonify({"error": "Internal server error"}), 500
