"""
Invoice finalization

Turns a cart into a committed invoice in one unit-of-work:

    STARTED -> STOCK_RESERVED -> HEADER_WRITTEN -> LINES_WRITTEN
            -> PAYMENTS_WRITTEN -> COMMITTED

with ABORTED reachable from every state. Either all of stock decrements,
header, lines, payments and status are committed, or none of them are.

Product rows are locked in ascending product id order so two multi-product
checkouts cannot deadlock on each other. Nothing is retried automatically:
replaying part of a transaction could take stock twice.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Callable

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..time_utils import utcnow
from .catalog_store import CatalogStore, SqlCatalogStore
from .concurrency import UnitOfWork, is_lock_timeout
from .ledger_store import LedgerStore, SqlLedgerStore
from .payment_store import PaymentStore, SqlPaymentStore
from .records import (
    MAX_DISCOUNT_BPS,
    PAYMENT_STATUS_PAID,
    PAYMENT_STATUS_PARTIAL,
    PAYMENT_STATUS_PENDING,
    CartLine,
    InvoiceHeader,
    InvoiceLine,
    InvoiceTotals,
    PaymentRecord,
    SaleContext,
    Tender,
    compute_totals,
    percent_to_bps,
)
from .results import (
    CoordinatorFailure,
    EmptyCart,
    FinalizeOutcome,
    InvalidDiscount,
    InvalidPayment,
    InvalidPrice,
    InvalidQuantity,
    InvalidTaxAmount,
    InvoiceFinalized,
    PaymentInsufficient,
    PaymentRecorded,
    PersistenceFailure,
    RollbackFailed,
    StatusUpdated,
    StockDecremented,
    Timeout,
)


logger = logging.getLogger(__name__)


STATE_STARTED = "STARTED"
STATE_STOCK_RESERVED = "STOCK_RESERVED"
STATE_HEADER_WRITTEN = "HEADER_WRITTEN"
STATE_LINES_WRITTEN = "LINES_WRITTEN"
STATE_PAYMENTS_WRITTEN = "PAYMENTS_WRITTEN"
STATE_COMMITTED = "COMMITTED"
STATE_ABORTED = "ABORTED"


def resolve_payment_status(paid_cents: int, total_cents: int) -> str:
    """PAID once the payments cover the total, PARTIAL otherwise (also with no payments)."""
    if paid_cents >= total_cents:
        return PAYMENT_STATUS_PAID
    return PAYMENT_STATUS_PARTIAL


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _quantities_by_product(lines: list[CartLine]) -> list[tuple[int, int]]:
    totals: dict[int, int] = {}
    for line in lines:
        totals[line.product_id] = totals.get(line.product_id, 0) + line.quantity
    return sorted(totals.items())


class _Attempt:
    """Where one finalization currently stands."""

    def __init__(self) -> None:
        self.state = STATE_STARTED
        self.invoice_id: int | None = None

    def advance(self, state: str) -> None:
        logger.debug("Finalization %s -> %s (invoice %s)", self.state, state, self.invoice_id)
        self.state = state


class InvoiceCoordinator:
    """
    Runs invoice finalizations against injected stores.

    unit_of_work_factory must return a fresh, un-begun UnitOfWork (or an
    object with the same begin/commit/rollback/close methods) per call.
    """

    def __init__(
        self,
        catalog: CatalogStore,
        ledger: LedgerStore,
        payments: PaymentStore,
        *,
        unit_of_work_factory: Callable[[], UnitOfWork] | None = None,
        require_full_payment: bool = False,
        clock: Callable[[], datetime] = utcnow,
    ):
        self._catalog = catalog
        self._ledger = ledger
        self._payments = payments
        self._unit_of_work_factory = unit_of_work_factory or UnitOfWork
        self._require_full_payment = require_full_payment
        self._clock = clock

    # =========================================================================
    # VALIDATION
    # =========================================================================

    def validate(
        self,
        cart_lines: list[CartLine],
        discount_percent,
        payments: list[Tender],
        tax_cents: int = 0,
    ) -> CoordinatorFailure | int:
        """
        Check the request before any database work.

        Returns the discount in basis points, or the first failure found.
        """
        if not cart_lines:
            return EmptyCart()

        for line in cart_lines:
            if not _is_int(line.quantity) or line.quantity <= 0:
                return InvalidQuantity(product_id=line.product_id, quantity=line.quantity)
            if not _is_int(line.unit_price_cents) or line.unit_price_cents < 0:
                return InvalidPrice(product_id=line.product_id, unit_price_cents=line.unit_price_cents)

        try:
            discount_bps = percent_to_bps(0 if discount_percent is None else discount_percent)
        except ValueError:
            return InvalidDiscount(discount_percent=str(discount_percent))
        if discount_bps < 0 or discount_bps > MAX_DISCOUNT_BPS:
            return InvalidDiscount(discount_percent=str(discount_percent))

        if not _is_int(tax_cents) or tax_cents < 0:
            return InvalidTaxAmount(tax_cents=tax_cents)

        for tender in payments:
            if not _is_int(tender.amount_cents) or tender.amount_cents <= 0:
                return InvalidPayment(
                    payment_method_id=tender.payment_method_id,
                    amount_cents=tender.amount_cents,
                )

        return discount_bps

    # =========================================================================
    # FINALIZATION
    # =========================================================================

    def finalize_invoice(
        self,
        cart_lines: list[CartLine],
        discount_percent,
        payments: list[Tender],
        *,
        tax_cents: int = 0,
        context: SaleContext | None = None,
    ) -> FinalizeOutcome:
        """
        Finalize a cart into an invoice.

        Args:
            cart_lines: Cart entries with their snapshot prices
            discount_percent: 0-100, at most two decimals
            payments: Tenders to record (may be empty)
            tax_cents: Flat tax added after the discount
            context: Acting user and customer (optional)

        Returns:
            InvoiceFinalized on success, otherwise a CoordinatorFailure.
            Never raises for database errors; programming errors are
            re-raised after the rollback.
        """
        cart_lines = list(cart_lines)
        payments = list(payments)
        context = context or SaleContext()

        checked = self.validate(cart_lines, discount_percent, payments, tax_cents)
        if isinstance(checked, CoordinatorFailure):
            logger.info("Finalization rejected: %s", checked.message)
            return checked
        discount_bps = checked

        totals = compute_totals(cart_lines, discount_bps, tax_cents)
        attempt = _Attempt()
        uow = self._unit_of_work_factory()
        try:
            try:
                uow.begin()
                outcome = self._apply(uow, attempt, cart_lines, totals, discount_bps, payments, context)
                if isinstance(outcome, CoordinatorFailure):
                    return self._abort(uow, attempt, outcome)

                uow.commit()
                attempt.advance(STATE_COMMITTED)
                logger.info(
                    "Invoice %s finalized: total_cents=%s paid_cents=%s status=%s user_id=%s",
                    outcome.invoice_id,
                    outcome.total_cents,
                    outcome.paid_cents,
                    outcome.payment_status,
                    context.user_id,
                )
                return outcome

            except SQLAlchemyError as exc:
                if is_lock_timeout(exc):
                    logger.warning("Finalization timed out waiting for a lock in state %s", attempt.state)
                    failure: CoordinatorFailure = Timeout(detail=str(getattr(exc, "orig", None) or exc))
                else:
                    logger.exception("Finalization failed in state %s", attempt.state)
                    failure = PersistenceFailure(detail=exc.__class__.__name__)
                return self._abort(uow, attempt, failure)

            except Exception:
                logger.exception("Unexpected error during finalization in state %s", attempt.state)
                self._abort(uow, attempt, PersistenceFailure(detail="unexpected error"))
                raise
        finally:
            uow.close()

    def _apply(
        self,
        uow: UnitOfWork,
        attempt: _Attempt,
        cart_lines: list[CartLine],
        totals: InvoiceTotals,
        discount_bps: int,
        payments: list[Tender],
        context: SaleContext,
    ) -> FinalizeOutcome:
        # Ascending product id: every checkout takes row locks in the same order
        for product_id, quantity in _quantities_by_product(cart_lines):
            result = self._catalog.decrement_stock(product_id, quantity, uow)
            if not isinstance(result, StockDecremented):
                return result
        attempt.advance(STATE_STOCK_RESERVED)

        header = InvoiceHeader(
            invoice_date=self._clock(),
            discount_bps=discount_bps,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            payment_status=PAYMENT_STATUS_PENDING,
            customer_id=context.customer_id,
            user_id=context.user_id,
        )
        attempt.invoice_id = self._ledger.insert_header(header, uow)
        attempt.advance(STATE_HEADER_WRITTEN)

        for line in cart_lines:
            self._ledger.insert_line(
                InvoiceLine(
                    invoice_id=attempt.invoice_id,
                    product_id=line.product_id,
                    quantity=line.quantity,
                    price_at_sale_cents=line.unit_price_cents,
                ),
                uow,
            )
        attempt.advance(STATE_LINES_WRITTEN)

        paid_cents = 0
        for tender in payments:
            result = self._payments.insert_payment(
                PaymentRecord(
                    invoice_id=attempt.invoice_id,
                    payment_method_id=tender.payment_method_id,
                    amount_cents=tender.amount_cents,
                ),
                uow,
            )
            if not isinstance(result, PaymentRecorded):
                return result
            paid_cents += tender.amount_cents
        attempt.advance(STATE_PAYMENTS_WRITTEN)

        # Paid amount is recomputed here; a client-side total is never trusted
        if self._require_full_payment and paid_cents < totals.total_cents:
            return PaymentInsufficient(total_due_cents=totals.total_cents, total_paid_cents=paid_cents)

        # PENDING only lives between the header insert and this update
        status = resolve_payment_status(paid_cents, totals.total_cents)
        result = self._payments.update_invoice_status(attempt.invoice_id, status, uow)
        if not isinstance(result, StatusUpdated):
            return PersistenceFailure(detail=f"status update refused: {result!r}")

        return InvoiceFinalized(
            invoice_id=attempt.invoice_id,
            subtotal_cents=totals.subtotal_cents,
            discount_cents=totals.discount_cents,
            tax_cents=totals.tax_cents,
            total_cents=totals.total_cents,
            paid_cents=paid_cents,
            payment_status=status,
        )

    def _abort(self, uow: UnitOfWork, attempt: _Attempt, failure: CoordinatorFailure) -> CoordinatorFailure:
        try:
            uow.rollback()
        except Exception as exc:
            logger.critical(
                "Rollback failed in state %s after %s; stock and invoices may be inconsistent",
                attempt.state,
                failure.kind,
                exc_info=True,
            )
            return RollbackFailed(detail=f"{failure.kind}; rollback raised {exc.__class__.__name__}")

        attempt.advance(STATE_ABORTED)
        logger.info("Finalization aborted: %s", failure.message)
        return failure


# =============================================================================
# MODULE API
# =============================================================================

def build_coordinator() -> InvoiceCoordinator:
    """Coordinator wired to the SQL stores and the current app's config."""
    lock_timeout = current_app.config.get("LOCK_TIMEOUT_SECONDS")

    def _unit_of_work() -> UnitOfWork:
        return UnitOfWork(db.session, lock_timeout=lock_timeout)

    return InvoiceCoordinator(
        SqlCatalogStore(),
        SqlLedgerStore(),
        SqlPaymentStore(),
        unit_of_work_factory=_unit_of_work,
        require_full_payment=bool(current_app.config.get("REQUIRE_FULL_PAYMENT", False)),
    )


def finalize_invoice(
    cart_lines: list[CartLine],
    discount_percent,
    payments: list[Tender],
    *,
    tax_cents: int = 0,
    context: SaleContext | None = None,
) -> FinalizeOutcome:
    return build_coordinator().finalize_invoice(
        cart_lines,
        discount_percent,
        payments,
        tax_cents=tax_cents,
        context=context,
    )


def get_invoice_detail(invoice_id: int) -> dict | None:
    """Header, lines and payments of one invoice, for receipts."""
    ledger = SqlLedgerStore()
    header = ledger.get_header(invoice_id)
    if header is None:
        return None
    return {
        "invoice": header.to_dict(),
        "items": [item.to_dict() for item in ledger.get_lines(invoice_id)],
        "payments": [p.to_dict() for p in SqlPaymentStore().get_payments(invoice_id)],
    }


def list_invoices(start: datetime | None = None, end: datetime | None = None) -> list[dict]:
    return [invoice.to_dict() for invoice in SqlLedgerStore().list_headers(start, end)]
