from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Invoice(db.Model):
    """
    Invoice header.

    Written once by the finalization transaction. Afterwards only
    payment_status changes, and never away from PAID.

    All amounts are in cents; the discount is stored in basis points
    (1000 = 10.00%).
    """
    __tablename__ = "invoices"
    __table_args__ = (
        db.CheckConstraint("discount_bps >= 0 AND discount_bps <= 10000", name="ck_invoices_discount_range"),
        db.CheckConstraint("tax_cents >= 0", name="ck_invoices_tax_non_negative"),
        db.Index("ix_invoices_invoice_date", "invoice_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_date = db.Column(db.DateTime(timezone=True), nullable=False)

    discount_bps = db.Column(db.Integer, nullable=False, default=0)
    subtotal_cents = db.Column(db.Integer, nullable=False)
    discount_cents = db.Column(db.Integer, nullable=False, default=0)
    tax_cents = db.Column(db.Integer, nullable=False, default=0)
    total_cents = db.Column(db.Integer, nullable=False)

    payment_status = db.Column(db.String(16), nullable=False, default="PENDING", index=True)  # PENDING, PARTIAL, PAID

    # Supplied by the caller; customers and users live outside this schema
    customer_id = db.Column(db.Integer, nullable=True, index=True)
    user_id = db.Column(db.Integer, nullable=True, index=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_date": to_utc_z(self.invoice_date),
            "discount_bps": self.discount_bps,
            "subtotal_cents": self.subtotal_cents,
            "discount_cents": self.discount_cents,
            "tax_cents": self.tax_cents,
            "total_cents": self.total_cents,
            "payment_status": self.payment_status,
            "customer_id": self.customer_id,
            "user_id": self.user_id,
            "created_at": to_utc_z(self.created_at),
        }


class InvoiceItem(db.Model):
    """Line item on an invoice. Append-only; the price is the cart snapshot."""
    __tablename__ = "invoice_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_invoice_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    quantity = db.Column(db.Integer, nullable=False)
    price_at_sale_cents = db.Column(db.Integer, nullable=False)
    line_total_cents = db.Column(db.Integer, nullable=False)

    invoice = db.relationship("Invoice", backref=db.backref("items", lazy=True))

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "product_id": self.product_id,
            "quantity": self.quantity,
            "price_at_sale_cents": self.price_at_sale_cents,
            "line_total_cents": self.line_total_cents,
        }


class InvoicePayment(db.Model):
    """
    Payment record for an invoice.

    One invoice can carry several of these (split payment). Append-only.
    """
    __tablename__ = "invoice_payments"
    __table_args__ = (
        db.CheckConstraint("amount_cents > 0", name="ck_invoice_payments_amount_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    invoice_id = db.Column(db.Integer, db.ForeignKey("invoices.id"), nullable=False, index=True)
    payment_method_id = db.Column(db.Integer, db.ForeignKey("payment_methods.id"), nullable=False, index=True)
    amount_cents = db.Column(db.Integer, nullable=False)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    invoice = db.relationship("Invoice", backref=db.backref("payments", lazy=True))
    payment_method = db.relationship("PaymentMethod")

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "invoice_id": self.invoice_id,
            "payment_method_id": self.payment_method_id,
            "amount_cents": self.amount_cents,
            "created_at": to_utc_z(self.created_at),
        }
