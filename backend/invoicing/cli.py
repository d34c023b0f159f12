# Overview: Flask CLI command groups for bootstrap, catalog and invoice inspection.

# backend/invoicing/cli.py
# Commands Legend (run from the backend directory):
# Prereqs:
# - Activate your virtualenv.
# - Set FLASK_APP to invoicing (PowerShell: $env:FLASK_APP="invoicing").
# - Use: python -m flask <group> <command> [options]
#
# System bootstrap:
# - python -m flask system init
#   Create all tables and seed the default payment methods (idempotent).
#
# Catalog:
# - python -m flask products add --name "Coffee" --price-cents 250 --stock 40
#   Add a product.
# - python -m flask products list
#   List products with price and stock.
#
# Invoices:
# - python -m flask invoices show 12
#   Print one invoice with its lines and payments.

import click
from flask import current_app
from flask.cli import with_appcontext

from .extensions import db
from .models import Product, PaymentMethod
from .services import invoice_service
from .services.catalog_store import SqlCatalogStore
from .services.records import bps_to_percent, format_cents
from .validation import ValidationError, enforce_rules_product


@click.group('system')
def system_group():
    """System bootstrap commands."""


@system_group.command('init')
@with_appcontext
def init_system():
    """
    Initialize the invoicing database.

    Creates:
    - All tables (no-op for tables that already exist)
    - Payment methods listed in DEFAULT_PAYMENT_METHODS (Cash, Card by default)
    """
    click.echo("START Initializing invoicing database...")
    db.create_all()
    click.echo("PASS Tables ready")

    for name in current_app.config["DEFAULT_PAYMENT_METHODS"]:
        existing = db.session.query(PaymentMethod).filter_by(name=name).first()
        if existing:
            click.echo(f"WARN  Payment method '{name}' already exists, skipping...")
            continue
        db.session.add(PaymentMethod(name=name, is_active=True))
        db.session.commit()
        click.echo(f"PASS Created payment method: {name}")

    click.echo("DONE Invoicing database initialized")


@click.group('products')
def products_group():
    """Catalog commands."""


@products_group.command('add')
@click.option('--name', required=True, help='Display name')
@click.option('--price-cents', type=int, required=True, help='Unit price in cents')
@click.option('--stock', type=int, default=0, show_default=True, help='Units on hand')
@with_appcontext
def add_product(name, price_cents, stock):
    """Add a product to the catalog."""
    try:
        enforce_rules_product(name, price_cents, stock)
    except ValidationError as e:
        click.echo(f"FAIL {e}")
        raise SystemExit(1)

    product = Product(name=name.strip(), price_cents=price_cents, stock=stock)
    db.session.add(product)
    db.session.commit()
    click.echo(f"PASS Created product: {product.name} (ID: {product.id})")


@products_group.command('list')
@with_appcontext
def list_products():
    """List all products."""
    products = SqlCatalogStore().list_products()

    if not products:
        click.echo("No products found.")
        return

    click.echo("\n" + "="*60)
    click.echo(f"{'ID':<5} {'Name':<30} {'Price':>12} {'Stock':>8}")
    click.echo("="*60)

    for p in products:
        click.echo(f"{p.id:<5} {p.name:<30} {format_cents(p.price_cents):>12} {p.stock:>8}")

    click.echo("="*60 + "\n")


@click.group('invoices')
def invoices_group():
    """Invoice inspection commands."""


@invoices_group.command('show')
@click.argument('invoice_id', type=int)
@with_appcontext
def show_invoice(invoice_id):
    """Print one invoice with lines and payments."""
    detail = invoice_service.get_invoice_detail(invoice_id)
    if detail is None:
        click.echo(f"FAIL Invoice {invoice_id} not found")
        raise SystemExit(1)

    invoice = detail["invoice"]
    click.echo(f"Invoice #{invoice['id']}  {invoice['invoice_date']}  [{invoice['payment_status']}]")
    click.echo("-"*60)
    for item in detail["items"]:
        click.echo(
            f"  product {item['product_id']:<6} x{item['quantity']:<4} "
            f"@ {format_cents(item['price_at_sale_cents']):>10} = {format_cents(item['line_total_cents']):>10}"
        )
    click.echo("-"*60)
    click.echo(f"  Subtotal: {format_cents(invoice['subtotal_cents']):>12}")
    click.echo(f"  Discount: {format_cents(invoice['discount_cents']):>12} ({bps_to_percent(invoice['discount_bps'])}%)")
    click.echo(f"  Tax:      {format_cents(invoice['tax_cents']):>12}")
    click.echo(f"  Total:    {format_cents(invoice['total_cents']):>12}")
    for payment in detail["payments"]:
        click.echo(f"  Paid (method {payment['payment_method_id']}): {format_cents(payment['amount_cents']):>10}")


def register_commands(app):
    """Register all CLI commands with Flask app."""
    app.cli.add_command(system_group)
    app.cli.add_command(products_group)
    app.cli.add_command(invoices_group)
