# Overview: Service-layer operations for the stock ledger; append and paginated reads.

from __future__ import annotations

import math
from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, StockHistory, STOCK_ACTIONS
from fabricpos.time_utils import end_of_day
"""
Stock ledger invariants

- Append-only: rows are never updated or deleted (enforced by ORM listeners
  on StockHistory).
- quantity is unsigned; action gives the direction.
- new_stock = previous_stock - quantity for "sold"/"adjusted",
  previous_stock + quantity for "added".
- product_name/unit are snapshots of the product at write time.
"""

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


def append_stock_history(
    *,
    product: Product,
    action: str,
    quantity: Decimal,
    previous_stock: Decimal,
    new_stock: Decimal,
    performed_by_user_id: int,
    sale_id: int | None = None,
    notes: Optional[str] = None,
    date: Optional[datetime] = None,
) -> StockHistory:
    """
    Append one ledger row. Flushes, does not commit: the caller decides
    which unit of work the row belongs to.
    """
    if action not in STOCK_ACTIONS:
        raise ValueError(f"Unknown stock action: {action}")
    if quantity < 0:
        raise ValueError("quantity must be unsigned; use action for direction")

    expected = previous_stock + quantity if action == "added" else previous_stock - quantity
    if expected != new_stock:
        raise ValueError(
            f"Stock history does not balance: {previous_stock} {action} {quantity} != {new_stock}"
        )

    entry = StockHistory(
        product_id=product.id,
        product_name=product.name,
        action=action,
        quantity=quantity,
        previous_stock=previous_stock,
        new_stock=new_stock,
        unit=product.unit,
        performed_by_user_id=performed_by_user_id,
        sale_id=sale_id,
        notes=notes,
    )
    if date is not None:
        entry.date = date

    db.session.add(entry)
    db.session.flush()
    return entry


def list_stock_history(
    *,
    product_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = DEFAULT_PAGE_SIZE,
) -> dict:
    """
    Ledger rows newest first, with the pagination descriptor the admin
    screens consume.

    date_to covers the whole calendar day it falls on.
    """
    page = max(page or 1, 1)
    limit = max(1, min(limit or DEFAULT_PAGE_SIZE, MAX_PAGE_SIZE))

    q = db.session.query(StockHistory)
    if product_id is not None:
        q = q.filter(StockHistory.product_id == product_id)
    if date_from is not None:
        q = q.filter(StockHistory.date >= date_from)
    if date_to is not None:
        q = q.filter(StockHistory.date <= end_of_day(date_to))

    total = q.count()

    rows = (
        q.options(
            selectinload(StockHistory.product),
            selectinload(StockHistory.performed_by),
            selectinload(StockHistory.sale),
        )
        .order_by(StockHistory.date.desc(), StockHistory.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "stockHistory": [r.to_dict(populate=True) for r in rows],
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total / limit),
            "totalItems": total,
            "itemsPerPage": limit,
        },
    }


def recent_stock_changes(limit: int = 10) -> list[StockHistory]:
    return (
        db.session.query(StockHistory)
        .options(selectinload(StockHistory.product), selectinload(StockHistory.performed_by))
        .order_by(StockHistory.date.desc(), StockHistory.id.desc())
        .limit(limit)
        .all()
    )
