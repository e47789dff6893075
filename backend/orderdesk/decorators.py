# Overview: Request decorators for API routes (actor context and role checks).

from functools import wraps
from flask import request, jsonify, g

from .services.lifecycle_service import VALID_ROLES


ACTOR_ID_HEADER = "X-Actor-Id"
ACTOR_ROLE_HEADER = "X-Actor-Role"


def require_actor(*roles: str):
    """
    Require an authenticated actor and, when roles are given, one of them.

    Authentication happens upstream; the gateway forwards the verified
    identity in X-Actor-Id / X-Actor-Role. Sets:
    - g.actor_id: opaque actor id
    - g.actor_role: agent, leader or admin

    Returns 401 without an actor, 403 when the role is not allowed.
    """
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            actor_id = (request.headers.get(ACTOR_ID_HEADER) or "").strip()
            actor_role = (request.headers.get(ACTOR_ROLE_HEADER) or "").strip().lower()

            if not actor_id or actor_role not in VALID_ROLES:
                return jsonify({"error": "Authentication required"}), 401

            if roles and actor_role not in roles:
                return jsonify({
                    "error": "Permission denied",
                    "required_roles": list(roles),
                }), 403

            g.actor_id = actor_id
            g.actor_role = actor_role
            return f(*args, **kwargs)

        return decorated_function
    return decorator
