"""Flask CLI command tests."""

from invoicing.extensions import db
from invoicing.models import PaymentMethod, Product
from invoicing.services import invoice_service
from invoicing.services.records import CartLine, Tender


def test_system_init_seeds_payment_methods_once(app, db_session):
    runner = app.test_cli_runner()

    first = runner.invoke(args=["system", "init"])
    second = runner.invoke(args=["system", "init"])

    assert first.exit_code == 0
    assert "PASS Created payment method: Cash" in first.output
    assert "already exists" in second.output
    names = sorted(m.name for m in db.session.query(PaymentMethod).all())
    assert names == ["Card", "Cash"]


def test_products_add_and_list(app, db_session):
    runner = app.test_cli_runner()

    added = runner.invoke(args=["products", "add", "--name", "Coffee", "--price-cents", "250", "--stock", "40"])
    listed = runner.invoke(args=["products", "list"])

    assert added.exit_code == 0
    assert db.session.query(Product).filter_by(name="Coffee").one().stock == 40
    assert "Coffee" in listed.output
    assert "2.50" in listed.output


def test_products_add_rejects_negative_stock(app, db_session):
    result = app.test_cli_runner().invoke(args=["products", "add", "--name", "Bad", "--price-cents", "1", "--stock", "-1"])

    assert result.exit_code == 1
    assert "FAIL" in result.output
    assert db.session.query(Product).count() == 0


def test_invoices_show(app, db_session, make_product, cash_method):
    pid = make_product("Coffee", price_cents=250, stock=5)
    outcome = invoice_service.finalize_invoice([CartLine(pid, 2, 250)], "10", [Tender(cash_method, 450)])

    result = app.test_cli_runner().invoke(args=["invoices", "show", str(outcome.invoice_id)])

    assert result.exit_code == 0
    assert f"Invoice #{outcome.invoice_id}" in result.output
    assert "[PAID]" in result.output
    assert "4.50" in result.output
    assert "(10.00%)" in result.output


def test_invoices_show_missing(app, db_session):
    result = app.test_cli_runner().invoke(args=["invoices", "show", "999"])

    assert result.exit_code == 1
    assert "not found" in result.output
