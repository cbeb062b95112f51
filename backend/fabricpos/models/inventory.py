from __future__ import annotations

from decimal import Decimal, ROUND_HALF_UP

from sqlalchemy import event

from ..extensions import db
from ..money import as_number
from fabricpos.time_utils import to_utc_z, utcnow

CATEGORIES = ("ankara", "german_wool", "cotton", "silk", "linen", "other")
UNITS = ("yards", "meters", "pieces")
STOCK_ACTIONS = ("added", "sold", "adjusted")

DEFAULT_MIN_STOCK_LEVEL = 10


class Product(db.Model):
    """
    Fabric catalog entry and its stock level.

    current_stock is the live on-hand quantity; total_stock is what the admin
    says the shop holds overall, so current_stock / total_stock drives the
    stock percentage bar. Products are never hard-deleted: is_active=False
    hides them from sales and listings while keeping sale and ledger history
    resolvable.
    """
    __tablename__ = "products"
    __table_args__ = (
        db.Index("ix_products_active_name", "is_active", "name"),
        db.CheckConstraint("current_stock >= 0", name="ck_products_current_stock_nonneg"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    name = db.Column(db.String(255), nullable=False)
    category = db.Column(db.String(32), nullable=False, default="other")
    description = db.Column(db.Text, nullable=True)

    total_stock = db.Column(db.Numeric(12, 2), nullable=False)
    current_stock = db.Column(db.Numeric(12, 2), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="yards")
    price_per_unit = db.Column(db.Numeric(12, 2), nullable=False)
    min_stock_level = db.Column(db.Numeric(12, 2), nullable=False, default=DEFAULT_MIN_STOCK_LEVEL)

    is_active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    added_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    version_id = db.Column(db.Integer, nullable=False, default=1)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow, onupdate=utcnow)

    added_by = db.relationship("User")
    __mapper_args__ = {"version_id_col": version_id}

    @property
    def stock_status(self) -> str:
        if self.current_stock <= 0:
            return "out_of_stock"
        if self.current_stock <= self.min_stock_level:
            return "low_stock"
        return "in_stock"

    @property
    def stock_percentage(self) -> int:
        if not self.total_stock:
            return 0
        ratio = Decimal(self.current_stock) / Decimal(self.total_stock) * 100
        return int(ratio.quantize(Decimal(1), rounding=ROUND_HALF_UP))

    def __repr__(self) -> str:
        return f"<Product id={self.id} name={self.name!r} stock={self.current_stock}>"

    def to_dict(self, *, populate: bool = False) -> dict:
        data = {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "totalStock": as_number(self.total_stock),
            "currentStock": as_number(self.current_stock),
            "unit": self.unit,
            "pricePerUnit": as_number(self.price_per_unit),
            "minStockLevel": as_number(self.min_stock_level),
            "isActive": self.is_active,
            "addedBy": self.added_by_user_id,
            "stockStatus": self.stock_status,
            "stockPercentage": self.stock_percentage,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if populate and self.added_by is not None:
            data["addedBy"] = {"id": self.added_by.id, "name": self.added_by.name}
        return data

    def to_catalog_dict(self) -> dict:
        """Fields staff see when picking fabric for a sale."""
        return {
            "id": self.id,
            "name": self.name,
            "category": self.category,
            "description": self.description,
            "currentStock": as_number(self.current_stock),
            "unit": self.unit,
            "pricePerUnit": as_number(self.price_per_unit),
        }

    def to_alert_dict(self) -> dict:
        return {
            "id": self.id,
            "name": self.name,
            "currentStock": as_number(self.current_stock),
            "minStockLevel": as_number(self.min_stock_level),
            "unit": self.unit,
        }


class StockHistory(db.Model):
    """
    Append-only stock ledger. One row per product per stock-changing action.

    quantity is always the unsigned size of the change; action carries the
    direction ("sold" and "adjusted" reduce stock, "added" increases it).
    product_name and unit are snapshots taken when the row is written so the
    ledger still reads correctly after the product is renamed or retired.
    """
    __tablename__ = "stock_history"
    __table_args__ = (
        db.Index("ix_stock_history_product_date", "product_id", "date"),
        db.Index("ix_stock_history_date", "date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)
    product_name = db.Column(db.String(255), nullable=False)

    action = db.Column(db.String(16), nullable=False)
    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    previous_stock = db.Column(db.Numeric(12, 2), nullable=False)
    new_stock = db.Column(db.Numeric(12, 2), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="yards")

    performed_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    # Back-link for "sold" rows only
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=True, index=True)

    notes = db.Column(db.String(255), nullable=True)

    # Business time of the stock change
    date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    product = db.relationship("Product")
    performed_by = db.relationship("User")
    sale = db.relationship("Sale")

    def to_dict(self, *, populate: bool = False) -> dict:
        data = {
            "id": self.id,
            "product": self.product_id,
            "productName": self.product_name,
            "action": self.action,
            "quantity": as_number(self.quantity),
            "previousStock": as_number(self.previous_stock),
            "newStock": as_number(self.new_stock),
            "unit": self.unit,
            "performedBy": self.performed_by_user_id,
            "sale": self.sale_id,
            "notes": self.notes,
            "date": to_utc_z(self.date),
            "createdAt": to_utc_z(self.created_at),
        }
        if populate:
            if self.product is not None:
                data["product"] = {
                    "id": self.product.id,
                    "name": self.product.name,
                    "category": self.product.category,
                }
            if self.performed_by is not None:
                data["performedBy"] = {"id": self.performed_by.id, "name": self.performed_by.name}
            if self.sale is not None:
                data["sale"] = {
                    "id": self.sale.id,
                    "saleNumber": self.sale.sale_number,
                    "customerName": self.sale.customer_name,
                }
        return data


class LedgerImmutabilityError(Exception):
    """Raised when code tries to change or remove a stock history row."""


@event.listens_for(StockHistory, "before_update")
def _reject_stock_history_update(mapper, connection, target):
    raise LedgerImmutabilityError(f"StockHistory {target.id} is append-only and cannot be modified")


@event.listens_for(StockHistory, "before_delete")
def _reject_stock_history_delete(mapper, connection, target):
    raise LedgerImmutabilityError(f"StockHistory {target.id} is append-only and cannot be deleted")
