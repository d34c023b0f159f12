"""In-memory fakes for the invoice coordinator's collaborators.

The stores implement the same abstract interfaces as the SQL stores but
keep everything in dicts. Writes register an undo step on the fake unit of
work, so rollback() restores the previous state the way a database would.
"""

from __future__ import annotations

from invoicing.services.catalog_store import CatalogStore
from invoicing.services.ledger_store import LedgerStore
from invoicing.services.payment_store import PaymentStore
from invoicing.services.records import (
    PAYMENT_STATUS_PAID,
    InvoiceHeader,
    InvoiceLine,
    PaymentRecord,
    ProductView,
)
from invoicing.services.results import (
    InsufficientStock,
    InvoiceNotFound,
    PaymentMethodUnavailable,
    PaymentRecorded,
    ProductNotFound,
    StatusTransitionRejected,
    StatusUpdated,
    StockDecremented,
)


class FakeUnitOfWork:

    def __init__(self, *, rollback_error: Exception | None = None) -> None:
        self.rollback_error = rollback_error
        self.calls: list[str] = []
        self._undo: list = []

    def on_rollback(self, undo) -> None:
        self._undo.append(undo)

    def begin(self) -> None:
        self.calls.append("begin")

    def commit(self) -> None:
        self.calls.append("commit")
        self._undo.clear()

    def rollback(self) -> None:
        self.calls.append("rollback")
        if self.rollback_error is not None:
            raise self.rollback_error
        for undo in reversed(self._undo):
            undo()
        self._undo.clear()

    def close(self) -> None:
        self.calls.append("close")


class FakeCatalogStore(CatalogStore):

    def __init__(self, stock: dict[int, int] | None = None, *, fail_on: int | None = None, error: Exception | None = None) -> None:
        self.stock: dict[int, int] = dict(stock or {})
        self.lock_order: list[int] = []
        self._fail_on = fail_on
        self._error = error

    def get_product(self, product_id, uow=None):
        if product_id not in self.stock:
            return None
        return ProductView(id=product_id, name=f"Product {product_id}", price_cents=100, stock=self.stock[product_id])

    def list_products(self):
        return [self.get_product(pid) for pid in sorted(self.stock)]

    def decrement_stock(self, product_id, quantity, uow):
        self.lock_order.append(product_id)
        if self._error is not None and product_id == self._fail_on:
            raise self._error
        if product_id not in self.stock:
            return ProductNotFound(product_id=product_id)
        available = self.stock[product_id]
        if available < quantity:
            return InsufficientStock(product_id=product_id, available=available, requested=quantity)

        self.stock[product_id] = available - quantity
        uow.on_rollback(lambda: self.stock.__setitem__(product_id, available))
        return StockDecremented(product_id=product_id, remaining=self.stock[product_id])


class FakeLedgerStore(LedgerStore):

    def __init__(self, *, line_error: Exception | None = None) -> None:
        self.headers: dict[int, InvoiceHeader] = {}
        self.lines: list[InvoiceLine] = []
        self._next_id = 1
        self._line_error = line_error

    def insert_header(self, header, uow):
        invoice_id = self._next_id
        self._next_id += 1
        self.headers[invoice_id] = header
        uow.on_rollback(lambda: self.headers.pop(invoice_id, None))
        return invoice_id

    def insert_line(self, line, uow):
        if self._line_error is not None:
            raise self._line_error
        self.lines.append(line)
        uow.on_rollback(lambda: self.lines.remove(line))

    def get_header(self, invoice_id):
        return self.headers.get(invoice_id)

    def get_lines(self, invoice_id):
        return [line for line in self.lines if line.invoice_id == invoice_id]

    def list_headers(self, start=None, end=None):
        return [self.headers[i] for i in sorted(self.headers, reverse=True)]


class FakePaymentStore(PaymentStore):

    def __init__(self, active_methods: set[int] | None = None, *, refuse_status: bool = False) -> None:
        self.active_methods = set(active_methods or {1, 2})
        self.payments: list[PaymentRecord] = []
        self.statuses: dict[int, str] = {}
        self._refuse_status = refuse_status

    def insert_payment(self, record, uow):
        if record.payment_method_id not in self.active_methods:
            return PaymentMethodUnavailable(payment_method_id=record.payment_method_id)
        self.payments.append(record)
        uow.on_rollback(lambda: self.payments.remove(record))
        return PaymentRecorded(payment_id=len(self.payments))

    def update_invoice_status(self, invoice_id, status, uow):
        if self._refuse_status:
            return InvoiceNotFound(invoice_id=invoice_id)
        current = self.statuses.get(invoice_id)
        if current == PAYMENT_STATUS_PAID and status != PAYMENT_STATUS_PAID:
            return StatusTransitionRejected(invoice_id=invoice_id, current=current, requested=status)
        self.statuses[invoice_id] = status
        uow.on_rollback(lambda: self.statuses.pop(invoice_id, None))
        return StatusUpdated(invoice_id=invoice_id, payment_status=status)

    def get_payments(self, invoice_id):
        return [p for p in self.payments if p.invoice_id == invoice_id]

    def list_payment_methods(self, active_only=True):
        return sorted(self.active_methods)
