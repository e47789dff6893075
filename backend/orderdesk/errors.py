# Overview: Typed error taxonomy shared by the order core services and routes.

"""
Order core errors.

Every mutation is all-or-nothing, so any of these reaching a caller means
nothing was applied. Only LockContention is transient; the rest describe
the request or the current state and will fail again unchanged.
"""

from __future__ import annotations


class OrderCoreError(Exception):
    """Base for all order core errors."""

    code = "ORDER_CORE_ERROR"
    http_status = 400
    retryable = False

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> dict:
        return {
            "error": self.message,
            "code": self.code,
            "details": self.details,
        }


class InvalidTransition(OrderCoreError):
    """Order stage does not allow the requested action."""

    code = "INVALID_TRANSITION"
    http_status = 409

    def __init__(self, message: str, *, order_id: int | None = None, stage: str | None = None, action: str | None = None):
        super().__init__(message, details={"order_id": order_id, "stage": stage, "action": action})
        self.order_id = order_id
        self.stage = stage
        self.action = action


class InsufficientStock(OrderCoreError):
    """A reserve would drive an inventory record below zero."""

    code = "INSUFFICIENT_STOCK"
    http_status = 409

    def __init__(self, *, tier: str, owner_id: str, variant_id: str, available: int, required: int):
        super().__init__(
            f"Insufficient {tier} inventory for variant {variant_id}. "
            f"Available: {available}, Required: {required}",
            details={
                "tier": tier,
                "owner_id": owner_id,
                "variant_id": variant_id,
                "available": available,
                "required": required,
            },
        )
        self.tier = tier
        self.owner_id = owner_id
        self.variant_id = variant_id
        self.available = available
        self.required = required


class LockContention(OrderCoreError):
    """Lock or version conflict that outlasted the retry attempts."""

    code = "LOCK_CONTENTION"
    http_status = 503
    retryable = True


class NotFound(OrderCoreError):
    code = "NOT_FOUND"
    http_status = 404


class ValidationError(OrderCoreError, ValueError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"
    http_status = 400
