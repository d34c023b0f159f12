# Overview: Plain value records exchanged between the coordinator and the stores.

"""
Invoice records and money arithmetic.

Money is integer cents throughout. Discount percentages travel as
basis points (10.00% == 1000 bps), so a percentage may carry at most two
decimal places. Rounding to the cent is half-up.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal, InvalidOperation, ROUND_HALF_UP


PAYMENT_STATUS_PENDING = "PENDING"
PAYMENT_STATUS_PARTIAL = "PARTIAL"
PAYMENT_STATUS_PAID = "PAID"

VALID_PAYMENT_STATUSES = [
    PAYMENT_STATUS_PENDING,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PAID,
]

MAX_DISCOUNT_BPS = 10_000


@dataclass(frozen=True)
class CartLine:
    """One cart entry; unit_price_cents is the price the cashier saw."""
    product_id: int
    quantity: int
    unit_price_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.unit_price_cents


@dataclass(frozen=True)
class Tender:
    """A payment the customer hands over, before it is stored."""
    payment_method_id: int
    amount_cents: int


@dataclass(frozen=True)
class SaleContext:
    """Who is selling to whom. Both ids are optional."""
    user_id: int | None = None
    customer_id: int | None = None


@dataclass(frozen=True)
class ProductView:
    id: int
    name: str
    price_cents: int
    stock: int


@dataclass(frozen=True)
class InvoiceHeader:
    invoice_date: datetime
    discount_bps: int
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    payment_status: str = PAYMENT_STATUS_PENDING
    customer_id: int | None = None
    user_id: int | None = None


@dataclass(frozen=True)
class InvoiceLine:
    invoice_id: int
    product_id: int
    quantity: int
    price_at_sale_cents: int

    @property
    def line_total_cents(self) -> int:
        return self.quantity * self.price_at_sale_cents


@dataclass(frozen=True)
class PaymentRecord:
    invoice_id: int
    payment_method_id: int
    amount_cents: int


@dataclass(frozen=True)
class InvoiceTotals:
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int


def percent_to_bps(value) -> int:
    """
    Convert a percentage (Decimal, int, float or str) to basis points.

    Raises ValueError when the value is not a finite number or has more
    than two decimal places. Range checks are left to the caller.
    """
    if isinstance(value, bool):
        raise ValueError("discount must be a number")
    try:
        pct = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        raise ValueError(f"invalid percentage: {value!r}")
    if not pct.is_finite():
        raise ValueError(f"invalid percentage: {value!r}")

    bps = pct * 100
    if bps != bps.to_integral_value():
        raise ValueError("percentage supports at most two decimal places")
    return int(bps)


def bps_to_percent(bps: int) -> Decimal:
    return (Decimal(bps) / 100).quantize(Decimal("0.01"))


def discount_for(subtotal_cents: int, discount_bps: int) -> int:
    """Discount in cents, rounded half-up to the cent."""
    raw = Decimal(subtotal_cents) * Decimal(discount_bps) / Decimal(MAX_DISCOUNT_BPS)
    return int(raw.quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def compute_totals(lines: list[CartLine], discount_bps: int, tax_cents: int) -> InvoiceTotals:
    subtotal = sum(line.line_total_cents for line in lines)
    discount = discount_for(subtotal, discount_bps)
    return InvoiceTotals(
        subtotal_cents=subtotal,
        discount_cents=discount,
        tax_cents=tax_cents,
        total_cents=subtotal - discount + tax_cents,
    )


def format_cents(cents: int) -> str:
    """1234 -> '12.34'"""
    sign = "-" if cents < 0 else ""
    cents = abs(cents)
    return f"{sign}{cents // 100}.{cents % 100:02d}"
