# backend/fabricpos/services/products_service.py
"""
Products Service: the inventory store.

Reads: fetch-by-id, staff catalog (active + in stock), search, admin listing,
low stock. Writes: admin create/update/soft-delete (each appends a stock
history row when stock moves) and the sale workflow's conditional decrement.
"""
from __future__ import annotations

from decimal import Decimal

from sqlalchemy import func, or_, update
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, User
from ..money import HALF_CENT
from ..validation import ConflictError, NotFoundError, ValidationError
from .concurrency import run_with_retry
from .stock_history_service import append_stock_history

PRODUCT_MUTABLE_FIELDS = {
    "name", "category", "description", "total_stock", "unit",
    "price_per_unit", "min_stock_level", "is_active",
}

MIN_SEARCH_LENGTH = 2


class StockConflictError(Exception):
    """A conditional decrement matched no row: stock dropped below the request."""

    def __init__(self, product_id: int, quantity: Decimal):
        super().__init__(f"Stock for product {product_id} fell below {quantity}")
        self.product_id = product_id
        self.quantity = quantity


def get_product(product_id: int) -> Product | None:
    return db.session.get(Product, product_id)


def get_product_or_404(product_id: int) -> Product:
    product = get_product(product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


def list_sellable_products() -> list[Product]:
    """Active products with stock left, as offered on the sales screen."""
    return (
        db.session.query(Product)
        .filter(Product.is_active.is_(True), Product.current_stock > 0)
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def search_products(term: str) -> list[Product]:
    """
    Case-insensitive substring match on name or category over sellable
    products.
    """
    term = (term or "").strip()
    if len(term) < MIN_SEARCH_LENGTH:
        raise ValidationError(
            f"Search query must be at least {MIN_SEARCH_LENGTH} characters",
            {"q": f"Search query must be at least {MIN_SEARCH_LENGTH} characters"},
        )

    escaped = term.lower().replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    pattern = f"%{escaped}%"
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.current_stock > 0,
            or_(
                func.lower(Product.name).like(pattern, escape="\\"),
                func.lower(Product.category).like(pattern, escape="\\"),
            ),
        )
        .order_by(Product.name.asc(), Product.id.asc())
        .all()
    )


def list_active_products() -> list[Product]:
    """Admin catalog, newest first."""
    return (
        db.session.query(Product)
        .options(selectinload(Product.added_by))
        .filter(Product.is_active.is_(True))
        .order_by(Product.created_at.desc(), Product.id.desc())
        .all()
    )


def low_stock_products() -> list[Product]:
    return (
        db.session.query(Product)
        .filter(
            Product.is_active.is_(True),
            Product.current_stock <= Product.min_stock_level,
        )
        .order_by(Product.current_stock.asc(), Product.name.asc())
        .all()
    )


def _ensure_unique_name(name: str, exclude_id: int | None = None) -> None:
    q = db.session.query(Product).filter(
        func.lower(Product.name) == name.lower(),
        Product.is_active.is_(True),
    )
    if exclude_id is not None:
        q = q.filter(Product.id != exclude_id)
    if q.first():
        raise ConflictError("Product with this name already exists")


def create_product(*, patch: dict, acting_user: User) -> Product:
    """
    Create a product from a validated patch. current_stock starts equal to
    total_stock and the opening balance is written to the stock ledger.
    """
    _ensure_unique_name(patch["name"])

    product = Product(
        name=patch["name"],
        category=patch.get("category") or "other",
        description=patch.get("description"),
        total_stock=patch["total_stock"],
        current_stock=patch["total_stock"],
        unit=patch.get("unit") or "yards",
        price_per_unit=patch["price_per_unit"],
        added_by_user_id=acting_user.id,
    )
    if patch.get("min_stock_level") is not None:
        product.min_stock_level = patch["min_stock_level"]

    db.session.add(product)
    db.session.flush()

    append_stock_history(
        product=product,
        action="added",
        quantity=product.total_stock,
        previous_stock=Decimal("0"),
        new_stock=product.total_stock,
        performed_by_user_id=acting_user.id,
        notes="Initial stock added",
    )

    db.session.commit()
    return product


def update_product(product_id: int, *, patch: dict, acting_user: User) -> Product:
    """
    Apply an admin edit.

    Changing total_stock shifts current_stock by the same delta and records
    an "added" (increase) or "adjusted" (decrease) ledger row. Retried when a
    concurrent sale bumps the product's version underneath us.
    """
    def _op() -> Product:
        product = get_product_or_404(product_id)

        if "name" in patch and patch["name"].lower() != product.name.lower():
            _ensure_unique_name(patch["name"], exclude_id=product.id)

        previous_stock = product.current_stock
        delta = Decimal("0")
        new_total = patch.get("total_stock")
        if new_total is not None and new_total != product.total_stock:
            delta = new_total - product.total_stock
            if previous_stock + delta < 0:
                raise ValidationError(
                    "Total stock reduction exceeds current stock",
                    {"totalStock": "Total stock reduction exceeds current stock"},
                )

        for key, value in patch.items():
            if key in PRODUCT_MUTABLE_FIELDS:
                setattr(product, key, value)

        if delta:
            product.current_stock = previous_stock + delta
            db.session.flush()
            append_stock_history(
                product=product,
                action="added" if delta > 0 else "adjusted",
                quantity=abs(delta),
                previous_stock=previous_stock,
                new_stock=product.current_stock,
                performed_by_user_id=acting_user.id,
                notes="Stock updated by admin",
            )

        db.session.commit()
        return product

    return run_with_retry(_op)


def deactivate_product(product_id: int) -> Product:
    """Soft delete. Sales and ledger rows keep pointing at the product."""
    def _op() -> Product:
        product = get_product_or_404(product_id)
        product.is_active = False
        db.session.commit()
        return product

    return run_with_retry(_op)


def decrement_stock(product_id: int, quantity: Decimal) -> tuple[Product, Decimal, Decimal]:
    """
    Atomically take quantity off a product's current_stock.

    Single UPDATE ... WHERE current_stock >= quantity, so two sales can never
    both spend the same units. Returns (product, previous_stock, new_stock)
    with the product refreshed from the database. Commits.

    The guard allows half a cent of slack and the new value is rounded to
    cents in SQL, matching how stock is quantized when read back.

    Raises StockConflictError when the guard matched nothing.
    """
    stmt = (
        update(Product)
        .where(Product.id == product_id, Product.current_stock >= quantity - HALF_CENT)
        .values(
            current_stock=func.round(Product.current_stock - quantity, 2),
            version_id=Product.version_id + 1,
        )
        .execution_options(synchronize_session=False)
    )
    result = db.session.execute(stmt)
    if result.rowcount != 1:
        db.session.rollback()
        raise StockConflictError(product_id, quantity)

    db.session.commit()

    product = get_product(product_id)
    db.session.refresh(product)
    new_stock = product.current_stock
    return product, new_stock + quantity, new_stock
