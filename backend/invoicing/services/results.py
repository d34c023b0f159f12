# Overview: Typed outcomes returned by the stores and the invoice coordinator.

"""
Closed set of outcomes for invoice finalization.

Business failures are values, not exceptions. Every failure carries a
`kind` (stable identifier for API clients) and a `category`:

- validation: rejected before any database work
- business: detected inside the unit-of-work, everything rolled back
- infrastructure: database trouble, everything rolled back
- critical: rollback itself failed; data must be verified by hand
"""

from __future__ import annotations

from dataclasses import asdict, dataclass
from typing import ClassVar, Union


CATEGORY_VALIDATION = "validation"
CATEGORY_BUSINESS = "business"
CATEGORY_INFRASTRUCTURE = "infrastructure"
CATEGORY_CRITICAL = "critical"


# =============================================================================
# STORE OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class StockDecremented:
    product_id: int
    remaining: int


@dataclass(frozen=True)
class PaymentRecorded:
    payment_id: int


@dataclass(frozen=True)
class StatusUpdated:
    invoice_id: int
    payment_status: str


@dataclass(frozen=True)
class StatusTransitionRejected:
    invoice_id: int
    current: str
    requested: str


@dataclass(frozen=True)
class InvoiceNotFound:
    invoice_id: int


# =============================================================================
# COORDINATOR OUTCOMES
# =============================================================================

@dataclass(frozen=True)
class InvoiceFinalized:
    invoice_id: int
    subtotal_cents: int
    discount_cents: int
    tax_cents: int
    total_cents: int
    paid_cents: int
    payment_status: str

    ok: ClassVar[bool] = True

    def to_dict(self) -> dict:
        return asdict(self)


@dataclass(frozen=True)
class CoordinatorFailure:
    """Base for every finalization failure."""

    ok: ClassVar[bool] = False
    kind: ClassVar[str] = "CoordinatorFailure"
    category: ClassVar[str] = CATEGORY_INFRASTRUCTURE

    @property
    def message(self) -> str:
        return self.kind

    def to_dict(self) -> dict:
        return {
            "kind": self.kind,
            "category": self.category,
            "message": self.message,
            "details": asdict(self),
        }


@dataclass(frozen=True)
class EmptyCart(CoordinatorFailure):
    kind: ClassVar[str] = "EmptyCart"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return "Invoice must contain at least one item"


@dataclass(frozen=True)
class InvalidQuantity(CoordinatorFailure):
    product_id: int
    quantity: int

    kind: ClassVar[str] = "InvalidQuantity"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return f"Quantity for product {self.product_id} must be positive (got {self.quantity})"


@dataclass(frozen=True)
class InvalidPrice(CoordinatorFailure):
    product_id: int
    unit_price_cents: int

    kind: ClassVar[str] = "InvalidPrice"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return f"Unit price for product {self.product_id} cannot be negative"


@dataclass(frozen=True)
class InvalidDiscount(CoordinatorFailure):
    discount_percent: str

    kind: ClassVar[str] = "InvalidDiscount"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return f"Discount must be between 0 and 100 with at most two decimals (got {self.discount_percent})"


@dataclass(frozen=True)
class InvalidTaxAmount(CoordinatorFailure):
    tax_cents: int

    kind: ClassVar[str] = "InvalidTaxAmount"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return "Tax amount cannot be negative"


@dataclass(frozen=True)
class InvalidPayment(CoordinatorFailure):
    payment_method_id: int
    amount_cents: int

    kind: ClassVar[str] = "InvalidPayment"
    category: ClassVar[str] = CATEGORY_VALIDATION

    @property
    def message(self) -> str:
        return "Payment amount must be positive"


@dataclass(frozen=True)
class ProductNotFound(CoordinatorFailure):
    product_id: int

    kind: ClassVar[str] = "ProductNotFound"
    category: ClassVar[str] = CATEGORY_BUSINESS

    @property
    def message(self) -> str:
        return f"Product {self.product_id} not found"


@dataclass(frozen=True)
class InsufficientStock(CoordinatorFailure):
    product_id: int
    available: int
    requested: int

    kind: ClassVar[str] = "InsufficientStock"
    category: ClassVar[str] = CATEGORY_BUSINESS

    @property
    def shortfall(self) -> int:
        return self.requested - self.available

    @property
    def message(self) -> str:
        return (
            f"Insufficient stock for product {self.product_id}. "
            f"Available: {self.available}, Requested: {self.requested}"
        )


@dataclass(frozen=True)
class PaymentMethodUnavailable(CoordinatorFailure):
    payment_method_id: int

    kind: ClassVar[str] = "PaymentMethodUnavailable"
    category: ClassVar[str] = CATEGORY_BUSINESS

    @property
    def message(self) -> str:
        return f"Payment method {self.payment_method_id} not found or inactive"


@dataclass(frozen=True)
class PaymentInsufficient(CoordinatorFailure):
    total_due_cents: int
    total_paid_cents: int

    kind: ClassVar[str] = "PaymentInsufficient"
    category: ClassVar[str] = CATEGORY_BUSINESS

    @property
    def message(self) -> str:
        return "Complete payment before finalizing"


@dataclass(frozen=True)
class PersistenceFailure(CoordinatorFailure):
    detail: str

    kind: ClassVar[str] = "PersistenceFailure"
    category: ClassVar[str] = CATEGORY_INFRASTRUCTURE

    @property
    def message(self) -> str:
        return "Invoice could not be saved. Try again or contact support."


@dataclass(frozen=True)
class Timeout(CoordinatorFailure):
    detail: str

    kind: ClassVar[str] = "Timeout"
    category: ClassVar[str] = CATEGORY_INFRASTRUCTURE

    @property
    def message(self) -> str:
        return "Timed out waiting for another checkout. Try again."


@dataclass(frozen=True)
class RollbackFailed(CoordinatorFailure):
    detail: str

    kind: ClassVar[str] = "RollbackFailed"
    category: ClassVar[str] = CATEGORY_CRITICAL

    @property
    def message(self) -> str:
        return "Transaction could not be rolled back. Verify stock and invoices manually before retrying."


DecrementOutcome = Union[StockDecremented, InsufficientStock, ProductNotFound]
PaymentOutcome = Union[PaymentRecorded, PaymentMethodUnavailable]
StatusOutcome = Union[StatusUpdated, StatusTransitionRejected, InvoiceNotFound]
FinalizeOutcome = Union[InvoiceFinalized, CoordinatorFailure]
