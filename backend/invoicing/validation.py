from __future__ import annotations

from datetime import datetime
from typing import Any

from invoicing.time_utils import parse_iso_datetime, parse_range_end
from invoicing.services.records import CartLine, SaleContext, Tender


# Maximum price: 9,999,999.99 (999,999,999 cents)
# This prevents database overflow issues and nonsensical prices
MAX_PRICE_CENTS = 999_999_999


class ValidationError(ValueError):
    """400-level input problem."""


def coerce_int(value: Any, field: str) -> int:
    """
    Strict integer coercion for JSON input.

    Accepts ints and plain digit strings; rejects bools, floats,
    decimals and scientific notation.
    """
    if value is None:
        raise ValidationError(f"{field} is required")
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    # String input - must be plain digits (with optional leading minus)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer")
        # Reject scientific notation (e.g., "1e15", "1E10")
        if 'e' in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        # Reject decimal points (e.g., "12.5")
        if '.' in stripped:
            raise ValidationError(f"{field} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer")
    # Reject floats explicitly
    if isinstance(value, float):
        raise ValidationError(f"{field} must be an integer, not a decimal")
    raise ValidationError(f"{field} must be an integer")


def optional_int(value: Any, field: str) -> int | None:
    if value is None or value == "":
        return None
    return coerce_int(value, field)


def parse_datetime_param(value: str | None, field: str, *, range_end: bool = False) -> datetime | None:
    """A bare date as range_end means the end of that day."""
    parse = parse_range_end if range_end else parse_iso_datetime
    try:
        return parse(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 datetime")


def _require_list(payload: dict, key: str) -> list:
    items = payload.get(key)
    if items is None:
        return []
    if not isinstance(items, list):
        raise ValidationError(f"{key} must be a list")
    for i, item in enumerate(items):
        if not isinstance(item, dict):
            raise ValidationError(f"{key}[{i}] must be an object")
    return items


def parse_cart_lines(payload: dict) -> list[CartLine]:
    return [
        CartLine(
            product_id=coerce_int(item.get("product_id"), f"lines[{i}].product_id"),
            quantity=coerce_int(item.get("quantity"), f"lines[{i}].quantity"),
            unit_price_cents=coerce_int(item.get("unit_price_cents"), f"lines[{i}].unit_price_cents"),
        )
        for i, item in enumerate(_require_list(payload, "lines"))
    ]


def parse_tenders(payload: dict) -> list[Tender]:
    return [
        Tender(
            payment_method_id=coerce_int(item.get("payment_method_id"), f"payments[{i}].payment_method_id"),
            amount_cents=coerce_int(item.get("amount_cents"), f"payments[{i}].amount_cents"),
        )
        for i, item in enumerate(_require_list(payload, "payments"))
    ]


def parse_finalize_request(payload: Any) -> dict:
    """
    Validates the shape of a finalize request and converts it to the
    coordinator's arguments. Business checks (positive quantities,
    discount range) are left to the coordinator.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    discount = payload.get("discount_percent", 0)
    if isinstance(discount, bool) or not isinstance(discount, (int, float, str, type(None))):
        raise ValidationError("discount_percent must be a number")

    tax_cents = payload.get("tax_cents")
    return {
        "cart_lines": parse_cart_lines(payload),
        "discount_percent": discount,
        "payments": parse_tenders(payload),
        "tax_cents": 0 if tax_cents is None else coerce_int(tax_cents, "tax_cents"),
        "context": SaleContext(
            user_id=optional_int(payload.get("user_id"), "user_id"),
            customer_id=optional_int(payload.get("customer_id"), "customer_id"),
        ),
    }


def enforce_rules_product(name: str | None, price_cents: int, stock: int) -> None:
    """Checks for products created through the CLI."""
    if not name or not name.strip():
        raise ValidationError("name cannot be blank")
    if price_cents < 0:
        raise ValidationError("price_cents must be >= 0")
    if price_cents > MAX_PRICE_CENTS:
        raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} ({MAX_PRICE_CENTS / 100:,.2f})")
    if stock < 0:
        raise ValidationError("stock must be >= 0")
