# Overview: Service-layer operations for reporting; sales listings, receipts and dashboards.

from __future__ import annotations

import math
from datetime import datetime, timedelta
from decimal import Decimal

from sqlalchemy import func
from sqlalchemy.orm import selectinload

from ..extensions import db
from ..models import Product, Sale, SaleItem, User
from ..money import ZERO, as_number, quantize
from ..validation import NotFoundError
from fabricpos.time_utils import end_of_day, start_of_day, utcnow
from .products_service import low_stock_products
from .stock_history_service import recent_stock_changes

DEFAULT_SALES_PAGE_SIZE = 10
MAX_SALES_PAGE_SIZE = 100
RECENT_SALES_LIMIT = 5
RECENT_STOCK_CHANGES_LIMIT = 10


def _completed_sales(
    *,
    sold_by_user_id: int | None = None,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
):
    q = db.session.query(Sale).filter(Sale.status == "completed")
    if sold_by_user_id is not None:
        q = q.filter(Sale.sold_by_user_id == sold_by_user_id)
    if date_from is not None:
        q = q.filter(Sale.sale_date >= date_from)
    if date_to is not None:
        q = q.filter(Sale.sale_date <= end_of_day(date_to))
    return q


def _sum_final_amount(q) -> Decimal:
    total = q.with_entities(func.coalesce(func.sum(Sale.final_amount), 0)).scalar()
    return quantize(Decimal(str(total or 0)))


def _average(total: Decimal, count: int) -> Decimal:
    return quantize(total / count) if count else ZERO


def _populated_sales(q):
    return q.options(
        selectinload(Sale.sold_by),
        selectinload(Sale.items).selectinload(SaleItem.product),
    )


def list_staff_sales(
    user: User,
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    page: int = 1,
    limit: int = DEFAULT_SALES_PAGE_SIZE,
) -> dict:
    """The caller's own completed sales, newest first, with period totals."""
    page = max(page or 1, 1)
    limit = max(1, min(limit or DEFAULT_SALES_PAGE_SIZE, MAX_SALES_PAGE_SIZE))

    q = _completed_sales(sold_by_user_id=user.id, date_from=date_from, date_to=date_to)
    total_items = q.count()
    total_amount = _sum_final_amount(q)

    sales = (
        _populated_sales(q)
        .order_by(Sale.created_at.desc(), Sale.id.desc())
        .offset((page - 1) * limit)
        .limit(limit)
        .all()
    )

    return {
        "sales": [s.to_dict(populate=True) for s in sales],
        "summary": {
            "totalSalesAmount": as_number(total_amount),
            "totalTransactions": total_items,
            "averageSale": as_number(_average(total_amount, total_items)),
        },
        "pagination": {
            "currentPage": page,
            "totalPages": math.ceil(total_items / limit),
            "totalItems": total_items,
            "itemsPerPage": limit,
        },
    }


def get_receipt(sale_id: int, user: User) -> dict:
    """
    Receipt projection of a sale the caller sold.

    Another seller's sale is reported as missing, not forbidden.
    """
    sale = (
        db.session.query(Sale)
        .options(selectinload(Sale.sold_by))
        .filter(Sale.id == sale_id, Sale.sold_by_user_id == user.id)
        .first()
    )
    if not sale:
        raise NotFoundError("Sale not found")
    return sale.to_receipt()


def sales_report(
    *,
    date_from: datetime | None = None,
    date_to: datetime | None = None,
    staff_id: int | None = None,
) -> dict:
    """
    Completed sales across all sellers, newest first.

    staff_id narrows to one seller; an id that is not an active staff member
    yields an empty report rather than an error.
    """
    empty = {
        "sales": [],
        "summary": {"totalSales": 0, "totalTransactions": 0, "averageSale": 0},
    }

    if staff_id is not None:
        staff = (
            db.session.query(User)
            .filter_by(id=staff_id, role="staff", is_active=True)
            .first()
        )
        if not staff:
            return empty

    q = _completed_sales(sold_by_user_id=staff_id, date_from=date_from, date_to=date_to)
    sales = _populated_sales(q).order_by(Sale.sale_date.desc(), Sale.id.desc()).all()

    total = quantize(sum((s.final_amount for s in sales), ZERO))
    count = len(sales)
    return {
        "sales": [s.to_dict(populate=True) for s in sales],
        "summary": {
            "totalSales": as_number(total),
            "totalTransactions": count,
            "averageSale": as_number(_average(total, count)),
        },
    }


def _today_window(now: datetime | None = None) -> tuple[datetime, datetime]:
    start = start_of_day(now or utcnow())
    return start, start + timedelta(days=1)


def total_stock_value() -> Decimal:
    value = (
        db.session.query(
            func.coalesce(func.sum(Product.current_stock * Product.price_per_unit), 0)
        )
        .filter(Product.is_active.is_(True))
        .scalar()
    )
    return quantize(Decimal(str(value or 0)))


def admin_dashboard(now: datetime | None = None) -> dict:
    start, end = _today_window(now)

    today = db.session.query(Sale).filter(
        Sale.status == "completed",
        Sale.sale_date >= start,
        Sale.sale_date < end,
    )

    total_products = (
        db.session.query(func.count(Product.id))
        .filter(Product.is_active.is_(True))
        .scalar()
    )

    return {
        "totalProducts": int(total_products or 0),
        "lowStockProducts": [p.to_alert_dict() for p in low_stock_products()],
        "totalSalesToday": as_number(_sum_final_amount(today)),
        "totalTransactionsToday": today.count(),
        "recentStockChanges": [
            entry.to_dict(populate=True)
            for entry in recent_stock_changes(RECENT_STOCK_CHANGES_LIMIT)
        ],
        "totalStockValue": as_number(total_stock_value()),
    }


def staff_dashboard(user: User, now: datetime | None = None) -> dict:
    start, end = _today_window(now)

    today = (
        _populated_sales(db.session.query(Sale))
        .filter(
            Sale.sold_by_user_id == user.id,
            Sale.status == "completed",
            Sale.sale_date >= start,
            Sale.sale_date < end,
        )
        .order_by(Sale.sale_date.desc(), Sale.id.desc())
        .all()
    )

    total = quantize(sum((s.final_amount for s in today), ZERO))
    count = len(today)
    return {
        "todaySummary": {
            "totalSales": as_number(total),
            "totalTransactions": count,
            "averageSale": as_number(_average(total, count)),
        },
        "recentSales": [s.to_dict(populate=True) for s in today[:RECENT_SALES_LIMIT]],
        "lowStockAlerts": [p.to_alert_dict() for p in low_stock_products()],
    }
