# Overview: Payment store; payment records and invoice payment status.

"""
Payment records

- Split payments: one invoice can have several records, one per tender.
- Records are append-only; amounts are positive cents.
- Status only moves PENDING -> PARTIAL -> PAID (or straight to PAID).
  Nothing moves an invoice away from PAID.
"""

from __future__ import annotations

from abc import ABC, abstractmethod

from ..extensions import db
from ..models import Invoice, InvoicePayment, PaymentMethod
from .concurrency import UnitOfWork, lock_for_update
from .records import PAYMENT_STATUS_PAID, PaymentRecord, VALID_PAYMENT_STATUSES
from .results import (
    InvoiceNotFound,
    PaymentMethodUnavailable,
    PaymentOutcome,
    PaymentRecorded,
    StatusOutcome,
    StatusTransitionRejected,
    StatusUpdated,
)


class PaymentStore(ABC):

    @abstractmethod
    def insert_payment(self, record: PaymentRecord, uow: UnitOfWork) -> PaymentOutcome:
        """Append a payment record for an active payment method."""

    @abstractmethod
    def update_invoice_status(self, invoice_id: int, status: str, uow: UnitOfWork) -> StatusOutcome:
        """Set the payment status of an invoice."""

    @abstractmethod
    def get_payments(self, invoice_id: int) -> list[InvoicePayment]:
        """Return the payment records of an invoice in insertion order."""

    @abstractmethod
    def list_payment_methods(self, active_only: bool = True) -> list[PaymentMethod]:
        """Return payment methods ordered by name."""


class SqlPaymentStore(PaymentStore):

    def insert_payment(self, record: PaymentRecord, uow: UnitOfWork) -> PaymentOutcome:
        method = uow.session.get(PaymentMethod, record.payment_method_id)
        if method is None or not method.is_active:
            return PaymentMethodUnavailable(payment_method_id=record.payment_method_id)

        payment = InvoicePayment(
            invoice_id=record.invoice_id,
            payment_method_id=record.payment_method_id,
            amount_cents=record.amount_cents,
        )
        uow.session.add(payment)
        uow.session.flush()  # Get payment ID
        return PaymentRecorded(payment_id=payment.id)

    def update_invoice_status(self, invoice_id: int, status: str, uow: UnitOfWork) -> StatusOutcome:
        if status not in VALID_PAYMENT_STATUSES:
            raise ValueError(f"Invalid payment status: {status}. Must be one of {VALID_PAYMENT_STATUSES}")

        invoice = lock_for_update(uow.session.query(Invoice).filter_by(id=invoice_id)).first()
        if invoice is None:
            return InvoiceNotFound(invoice_id=invoice_id)

        if invoice.payment_status == PAYMENT_STATUS_PAID and status != PAYMENT_STATUS_PAID:
            return StatusTransitionRejected(
                invoice_id=invoice_id,
                current=invoice.payment_status,
                requested=status,
            )

        invoice.payment_status = status
        uow.session.flush()
        return StatusUpdated(invoice_id=invoice_id, payment_status=status)

    def get_payments(self, invoice_id: int) -> list[InvoicePayment]:
        return (
            db.session.query(InvoicePayment)
            .filter_by(invoice_id=invoice_id)
            .order_by(InvoicePayment.id)
            .all()
        )

    def list_payment_methods(self, active_only: bool = True) -> list[PaymentMethod]:
        q = db.session.query(PaymentMethod)
        if active_only:
            q = q.filter_by(is_active=True)
        return q.order_by(PaymentMethod.name).all()
