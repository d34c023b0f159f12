# Overview: Ledger store; append-only invoice headers and line items.

"""
Invoice ledger invariants:

- Headers and lines are appended inside the caller's unit-of-work, next to
  the stock decrements they account for.
- Lines are never updated or deleted; price_at_sale_cents is the cart
  snapshot, never re-read from the product.
- Date range reads are inclusive on both ends.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from ..extensions import db
from ..models import Invoice, InvoiceItem
from .concurrency import UnitOfWork
from .records import InvoiceHeader, InvoiceLine


class LedgerStore(ABC):

    @abstractmethod
    def insert_header(self, header: InvoiceHeader, uow: UnitOfWork) -> int:
        """Append an invoice header and return its generated id."""

    @abstractmethod
    def insert_line(self, line: InvoiceLine, uow: UnitOfWork) -> None:
        """Append one invoice line."""

    @abstractmethod
    def get_header(self, invoice_id: int) -> Invoice | None:
        """Return the stored header, or None."""

    @abstractmethod
    def get_lines(self, invoice_id: int) -> list[InvoiceItem]:
        """Return the lines of an invoice in insertion order."""

    @abstractmethod
    def list_headers(self, start: datetime | None = None, end: datetime | None = None) -> list[Invoice]:
        """Return headers newest first, optionally within [start, end]."""


class SqlLedgerStore(LedgerStore):

    def insert_header(self, header: InvoiceHeader, uow: UnitOfWork) -> int:
        invoice = Invoice(
            invoice_date=header.invoice_date,
            discount_bps=header.discount_bps,
            subtotal_cents=header.subtotal_cents,
            discount_cents=header.discount_cents,
            tax_cents=header.tax_cents,
            total_cents=header.total_cents,
            payment_status=header.payment_status,
            customer_id=header.customer_id,
            user_id=header.user_id,
        )
        uow.session.add(invoice)
        uow.session.flush()  # assigns invoice.id without committing
        return invoice.id

    def insert_line(self, line: InvoiceLine, uow: UnitOfWork) -> None:
        item = InvoiceItem(
            invoice_id=line.invoice_id,
            product_id=line.product_id,
            quantity=line.quantity,
            price_at_sale_cents=line.price_at_sale_cents,
            line_total_cents=line.line_total_cents,
        )
        uow.session.add(item)
        uow.session.flush()

    def get_header(self, invoice_id: int) -> Invoice | None:
        return db.session.get(Invoice, invoice_id)

    def get_lines(self, invoice_id: int) -> list[InvoiceItem]:
        return (
            db.session.query(InvoiceItem)
            .filter_by(invoice_id=invoice_id)
            .order_by(InvoiceItem.id)
            .all()
        )

    def list_headers(self, start: datetime | None = None, end: datetime | None = None) -> list[Invoice]:
        q = db.session.query(Invoice)
        if start is not None:
            q = q.filter(Invoice.invoice_date >= start)
        if end is not None:
            q = q.filter(Invoice.invoice_date <= end)
        return q.order_by(Invoice.invoice_date.desc(), Invoice.id.desc()).all()
