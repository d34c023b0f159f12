from .catalog import Product, PaymentMethod
from .invoices import Invoice, InvoiceItem, InvoicePayment

__all__ = [
    'Product', 'PaymentMethod',
    'Invoice', 'InvoiceItem', 'InvoicePayment',
]
