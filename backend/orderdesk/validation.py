from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal, InvalidOperation
from typing import Any

from .errors import ValidationError


# Maximum money value: 9,999,999,999.99 fits Numeric(12, 2)
MAX_AMOUNT = Decimal("9999999999.99")

PAYMENT_GCASH = "GCASH"
PAYMENT_BANK_TRANSFER = "BANK_TRANSFER"
PAYMENT_CASH = "CASH"
VALID_PAYMENT_METHODS = {PAYMENT_GCASH, PAYMENT_BANK_TRANSFER, PAYMENT_CASH}

ACCOUNT_KEY = "Key Accounts"
ACCOUNT_STANDARD = "Standard Accounts"
VALID_ACCOUNT_TYPES = {ACCOUNT_KEY, ACCOUNT_STANDARD}


@dataclass(frozen=True)
class LineItemInput:
    """One requested line, validated but not yet priced from the price book."""
    variant_id: str
    quantity: int
    unit_price: Decimal
    selling_price: Decimal | None = None
    dsp_price: Decimal | None = None
    rsp_price: Decimal | None = None

    @property
    def line_total(self) -> Decimal:
        return self.unit_price * self.quantity


def require_id(value: Any, field: str) -> str:
    """Ids are opaque strings issued by other systems; ints are accepted and stringified."""
    if value is None or isinstance(value, bool):
        raise ValidationError(f"{field} is required")
    if isinstance(value, int):
        return str(value)
    if not isinstance(value, str) or not value.strip():
        raise ValidationError(f"{field} is required")
    if len(value.strip()) > 64:
        raise ValidationError(f"{field} must be at most 64 characters")
    return value.strip()


def optional_text(value: Any, field: str, *, max_length: int | None = None) -> str | None:
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be a string")
    stripped = value.strip()
    if not stripped:
        return None
    if max_length is not None and len(stripped) > max_length:
        raise ValidationError(f"{field} must be at most {max_length} characters")
    return stripped


def parse_int(value: Any, field: str) -> int:
    """Strict integer parsing: rejects floats, decimals and scientific notation."""
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def parse_quantity(value: Any, field: str = "quantity") -> int:
    quantity = parse_int(value, field)
    if quantity <= 0:
        raise ValidationError(f"{field} must be positive")
    return quantity


def parse_decimal(value: Any, field: str, *, required: bool = True, allow_negative: bool = False) -> Decimal | None:
    """
    Money values are opaque decimals computed upstream.

    Floats go through str() so 0.1 stays 0.1 rather than its binary expansion.
    """
    if value is None or (isinstance(value, str) and not value.strip()):
        if required:
            raise ValidationError(f"{field} is required")
        return None
    if isinstance(value, bool):
        raise ValidationError(f"{field} must be a number")
    try:
        if isinstance(value, Decimal):
            amount = value
        elif isinstance(value, (int, float)):
            amount = Decimal(str(value))
        elif isinstance(value, str):
            amount = Decimal(value.strip())
        else:
            raise ValidationError(f"{field} must be a number")
    except InvalidOperation:
        raise ValidationError(f"{field} must be a number")

    if not amount.is_finite():
        raise ValidationError(f"{field} must be a finite number")
    if amount < 0 and not allow_negative:
        raise ValidationError(f"{field} cannot be negative")
    if abs(amount) > MAX_AMOUNT:
        raise ValidationError(f"{field} exceeds maximum of {MAX_AMOUNT}")
    return amount


def parse_payment_method(value: Any) -> str | None:
    if value is None or value == "":
        return None
    if not isinstance(value, str) or value.strip().upper() not in VALID_PAYMENT_METHODS:
        raise ValidationError(
            f"payment_method must be one of: {', '.join(sorted(VALID_PAYMENT_METHODS))}"
        )
    return value.strip().upper()


def parse_line_items(raw: Any) -> list[LineItemInput]:
    """
    Validate the requested lines of a new order.

    Each entry: {variant_id, quantity, unit_price, selling_price?, dsp_price?, rsp_price?}
    """
    if not isinstance(raw, (list, tuple)) or not raw:
        raise ValidationError("items must be a non-empty list")

    items = []
    for index, entry in enumerate(raw):
        if isinstance(entry, LineItemInput):
            items.append(entry)
            continue
        if not isinstance(entry, dict):
            raise ValidationError(f"items[{index}] must be an object")
        items.append(LineItemInput(
            variant_id=require_id(entry.get("variant_id"), f"items[{index}].variant_id"),
            quantity=parse_quantity(entry.get("quantity"), f"items[{index}].quantity"),
            unit_price=parse_decimal(entry.get("unit_price"), f"items[{index}].unit_price"),
            selling_price=parse_decimal(entry.get("selling_price"), f"items[{index}].selling_price", required=False),
            dsp_price=parse_decimal(entry.get("dsp_price"), f"items[{index}].dsp_price", required=False),
            rsp_price=parse_decimal(entry.get("rsp_price"), f"items[{index}].rsp_price", required=False),
        ))
    return items


def require_reason(value: Any, field: str = "reason") -> str:
    reason = optional_text(value, field)
    if not reason:
        raise ValidationError(f"{field} is required")
    return reason
