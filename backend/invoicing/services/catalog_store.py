# Overview: Catalog store; product reads and the locking stock decrement.

from __future__ import annotations

from abc import ABC, abstractmethod

from ..extensions import db
from ..models import Product
from .concurrency import UnitOfWork, lock_for_update
from .records import ProductView
from .results import DecrementOutcome, InsufficientStock, ProductNotFound, StockDecremented


class CatalogStore(ABC):

    @abstractmethod
    def get_product(self, product_id: int, uow: UnitOfWork | None = None) -> ProductView | None:
        """Return the product, or None when it does not exist."""

    @abstractmethod
    def list_products(self) -> list[ProductView]:
        """Return every product ordered by name."""

    @abstractmethod
    def decrement_stock(self, product_id: int, quantity: int, uow: UnitOfWork) -> DecrementOutcome:
        """
        Lock the product row, then take `quantity` units off its stock.

        The lock stays held until `uow` commits or rolls back.
        """


def _to_view(product: Product) -> ProductView:
    return ProductView(
        id=product.id,
        name=product.name,
        price_cents=product.price_cents,
        stock=product.stock,
    )


class SqlCatalogStore(CatalogStore):
    """Catalog store backed by the `products` table."""

    def get_product(self, product_id: int, uow: UnitOfWork | None = None) -> ProductView | None:
        session = uow.session if uow is not None else db.session
        product = session.get(Product, product_id)
        if product is None:
            return None
        return _to_view(product)

    def list_products(self) -> list[ProductView]:
        products = db.session.query(Product).order_by(Product.name, Product.id).all()
        return [_to_view(p) for p in products]

    def decrement_stock(self, product_id: int, quantity: int, uow: UnitOfWork) -> DecrementOutcome:
        # Lock first, then read: two checkouts can never both pass on a stale count
        product = lock_for_update(uow.session.query(Product).filter_by(id=product_id)).first()
        if product is None:
            return ProductNotFound(product_id=product_id)

        if product.stock < quantity:
            return InsufficientStock(
                product_id=product_id,
                available=product.stock,
                requested=quantity,
            )

        product.stock = product.stock - quantity
        uow.session.flush()
        return StockDecremented(product_id=product_id, remaining=product.stock)
