"""
Sales Service - sale capture and stock posting

WHY: A sale is recorded in one request: validate the cart against current
stock, price it, assign a sale number, write the sale, then take the stock
off each product and append a ledger row per line item.

Each step commits on its own. Once the sale row exists nothing is rolled
back: a failure part way marks the sale "pending" so someone can reconcile
stock against the ledger by hand.
"""

from __future__ import annotations

from dataclasses import dataclass
from decimal import Decimal

from flask import current_app
from sqlalchemy.exc import SQLAlchemyError

from ..extensions import db
from ..models import Product, Sale, SaleItem, User
from ..money import ZERO, format_quantity, quantize
from .products_service import decrement_stock
from .sale_number_service import SaleNumberExhaustedError, generate_sale_number
from .stock_history_service import append_stock_history

__all__ = [
    "SaleError",
    "SaleValidationError",
    "SaleNumberExhaustedError",
    "SaleRecordingError",
    "create_sale",
]


class SaleError(Exception):
    """Raised for sale operation errors."""
    status_code = 400

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class SaleValidationError(SaleError):
    """A precondition failed; nothing was written."""
    status_code = 400


class SaleRecordingError(SaleError):
    """A store write failed. sale_id is set when the sale row already exists."""
    status_code = 500

    def __init__(self, message: str, sale_id: int | None = None, details: dict | None = None):
        super().__init__(message, details)
        self.sale_id = sale_id


@dataclass
class _PricedLine:
    product: Product
    quantity: Decimal
    unit_price: Decimal
    total_price: Decimal


def _price_lines(items: list[dict]) -> list[_PricedLine]:
    """
    Check every line against the catalog, first failure wins.

    Stock is checked cumulatively: two lines for the same product must fit
    in its current stock together.
    """
    if not items:
        raise SaleValidationError("At least one item is required")

    requested: dict[int, Decimal] = {}
    lines: list[_PricedLine] = []

    for item in items:
        product_id = item["product_id"]
        quantity = item["quantity"]

        product = db.session.get(Product, product_id)
        if not product:
            raise SaleValidationError(f"Product not found: {product_id}")

        if not product.is_active:
            raise SaleValidationError(f"Product is not available: {product.name}")

        available = product.current_stock - requested.get(product_id, ZERO)
        if available < quantity:
            raise SaleValidationError(
                f"Insufficient stock for {product.name}. "
                f"Available: {format_quantity(available)} {product.unit}",
                details={
                    "product_id": product_id,
                    "requested_quantity": str(quantity),
                    "available": str(available),
                },
            )
        requested[product_id] = requested.get(product_id, ZERO) + quantity

        lines.append(_PricedLine(
            product=product,
            quantity=quantity,
            unit_price=product.price_per_unit,
            total_price=quantize(product.price_per_unit * quantity),
        ))

    return lines


def _mark_pending(sale_id: int, reason: str) -> None:
    """Flag a half-posted sale. Never raises: the original failure matters more."""
    try:
        sale = db.session.get(Sale, sale_id)
        if sale is None:
            return
        note = f"Needs reconciliation: {reason}"
        sale.status = "pending"
        sale.notes = f"{sale.notes}\n{note}" if sale.notes else note
        db.session.commit()
    except SQLAlchemyError:
        db.session.rollback()
        current_app.logger.exception("Could not mark sale %s as pending", sale_id)


def create_sale(
    *,
    customer_name: str,
    items: list[dict],
    acting_user: User,
    customer_phone: str | None = None,
    discount: Decimal = ZERO,
    payment_method: str = "cash",
    notes: str | None = None,
) -> Sale:
    """
    Record a completed sale and post its stock movements.

    items: [{"product_id": int, "quantity": Decimal}, ...] already shape-checked
    by validation.validate_sale_request.

    Raises:
        SaleValidationError: a precondition failed (400), no writes happened
        SaleNumberExhaustedError: no free sale number (500), no writes happened
        SaleRecordingError: a store write failed (500); if the sale row was
            written it is left with status "pending"
    """
    lines = _price_lines(items)

    total_amount = quantize(sum((line.total_price for line in lines), ZERO))
    discount = quantize(discount or ZERO)
    final_amount = total_amount - discount
    if final_amount < 0:
        raise SaleValidationError("Discount cannot exceed total amount")

    sale_number = generate_sale_number()

    sale = Sale(
        sale_number=sale_number,
        customer_name=customer_name,
        customer_phone=customer_phone or None,
        total_amount=total_amount,
        discount=discount,
        final_amount=final_amount,
        payment_method=payment_method,
        status="completed",
        sold_by_user_id=acting_user.id,
        notes=notes or None,
    )
    for position, line in enumerate(lines):
        sale.items.append(SaleItem(
            position=position,
            product_id=line.product.id,
            product_name=line.product.name,
            unit=line.product.unit,
            unit_price=line.unit_price,
            quantity=line.quantity,
            total_price=line.total_price,
        ))

    try:
        db.session.add(sale)
        db.session.commit()
    except SQLAlchemyError as exc:
        db.session.rollback()
        current_app.logger.exception("Failed to write sale %s", sale_number)
        raise SaleRecordingError("Failed to record sale") from exc

    sale_id = sale.id
    posted = [(line.product.id, line.quantity) for line in lines]

    for product_id, quantity in posted:
        try:
            product, previous_stock, new_stock = decrement_stock(product_id, quantity)
            append_stock_history(
                product=product,
                action="sold",
                quantity=quantity,
                previous_stock=previous_stock,
                new_stock=new_stock,
                performed_by_user_id=acting_user.id,
                sale_id=sale_id,
                notes=f"Sold to {customer_name}",
            )
            db.session.commit()
        except Exception as exc:
            db.session.rollback()
            reason = f"stock posting failed for product {product_id} ({type(exc).__name__})"
            current_app.logger.error("Sale %s %s", sale_number, reason, exc_info=exc)
            _mark_pending(sale_id, reason)
            raise SaleRecordingError(
                "Failed to post stock for sale",
                sale_id=sale_id,
                details={"product_id": product_id},
            ) from exc

    current_app.logger.info(
        "Sale %s recorded by user %s: %d item(s), final %s",
        sale_number, acting_user.id, len(posted), final_amount,
    )
    return db.session.get(Sale, sale_id)
