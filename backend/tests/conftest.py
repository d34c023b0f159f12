"""
Pytest fixtures for invoicing backend tests.

Provides an in-memory database, a test client, and small factories for
products and payment methods.
"""

import pytest
from invoicing import create_app
from invoicing.extensions import db
from invoicing.models import Product, PaymentMethod


@pytest.fixture(scope='session')
def app():
    """Create application for testing."""
    app = create_app({
        'TESTING': True,
        'SQLALCHEMY_DATABASE_URI': 'sqlite:///:memory:',
        'SQLALCHEMY_TRACK_MODIFICATIONS': False,
        'LOCK_TIMEOUT_SECONDS': 5,
        'REQUIRE_FULL_PAYMENT': False,
    })

    with app.app_context():
        db.create_all()
        yield app
        db.drop_all()


@pytest.fixture(scope='function')
def client(app):
    """Create test client."""
    return app.test_client()


@pytest.fixture(scope='function')
def db_session(app):
    """Create fresh database for each test."""
    with app.app_context():
        # Clear all data but keep schema
        meta = db.metadata
        for table in reversed(meta.sorted_tables):
            db.session.execute(table.delete())
        db.session.commit()

        yield db.session

        # Cleanup after test
        db.session.rollback()


@pytest.fixture(scope='function')
def make_product(db_session):
    """Factory returning the id of a freshly committed product."""
    def _make(name: str = "Widget", price_cents: int = 500, stock: int = 10) -> int:
        product = Product(name=name, price_cents=price_cents, stock=stock)
        db_session.add(product)
        db_session.commit()
        return product.id
    return _make


def _make_method(db_session, name: str, is_active: bool = True) -> int:
    method = PaymentMethod(name=name, is_active=is_active)
    db_session.add(method)
    db_session.commit()
    return method.id


@pytest.fixture(scope='function')
def cash_method(db_session) -> int:
    return _make_method(db_session, "Cash")


@pytest.fixture(scope='function')
def card_method(db_session) -> int:
    return _make_method(db_session, "Card")


@pytest.fixture(scope='function')
def retired_method(db_session) -> int:
    """A payment method that is no longer accepted."""
    return _make_method(db_session, "Cheque", is_active=False)


def stock_of(product_id: int) -> int:
    """Read stock straight from the table, bypassing the identity map."""
    return db.session.query(Product.stock).filter_by(id=product_id).scalar()


def count_rows(model) -> int:
    return db.session.query(model).count()
