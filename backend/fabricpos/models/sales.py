from __future__ import annotations

from ..extensions import db
from ..money import as_number
from fabricpos.time_utils import to_utc_z, utcnow

PAYMENT_METHODS = ("cash", "card", "transfer", "credit")
SALE_STATUSES = ("completed", "pending", "cancelled")


class Sale(db.Model):
    """
    One customer transaction.

    WHY: The sale header is written once and never edited afterwards. Line
    items carry price/name/unit snapshots so receipts and reports always show
    what the customer actually paid, regardless of later product edits.

    status is "completed" for every sale the workflow finishes; "pending"
    flags a sale whose stock/ledger follow-up failed part way and needs
    manual reconciliation.
    """
    __tablename__ = "sales"
    __table_args__ = (
        db.UniqueConstraint("sale_number", name="uq_sales_sale_number"),
        db.Index("ix_sales_sold_by_date", "sold_by_user_id", "sale_date"),
        db.Index("ix_sales_status_date", "status", "sale_date"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)

    # Human-readable number, e.g. "RF20240315042"
    sale_number = db.Column(db.String(32), nullable=False)

    customer_name = db.Column(db.String(120), nullable=False)
    customer_phone = db.Column(db.String(15), nullable=True)

    total_amount = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    final_amount = db.Column(db.Numeric(12, 2), nullable=False)

    payment_method = db.Column(db.String(16), nullable=False, default="cash")
    status = db.Column(db.String(16), nullable=False, default="completed", index=True)

    sold_by_user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)
    sale_date = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)
    notes = db.Column(db.Text, nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, default=utcnow)

    sold_by = db.relationship("User")
    items = db.relationship(
        "SaleItem",
        back_populates="sale",
        order_by="SaleItem.position",
        cascade="all, delete-orphan",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Sale id={self.id} number={self.sale_number!r} final={self.final_amount}>"

    def to_dict(self, *, populate: bool = False) -> dict:
        data = {
            "id": self.id,
            "saleNumber": self.sale_number,
            "customerName": self.customer_name,
            "customerPhone": self.customer_phone,
            "items": [item.to_dict(populate=populate) for item in self.items],
            "totalAmount": as_number(self.total_amount),
            "discount": as_number(self.discount),
            "finalAmount": as_number(self.final_amount),
            "paymentMethod": self.payment_method,
            "status": self.status,
            "soldBy": self.sold_by_user_id,
            "saleDate": to_utc_z(self.sale_date),
            "notes": self.notes,
            "createdAt": to_utc_z(self.created_at),
        }
        if populate and self.sold_by is not None:
            data["soldBy"] = {"id": self.sold_by.id, "name": self.sold_by.name}
        return data

    def to_receipt(self) -> dict:
        """Flattened projection printed on the customer's receipt."""
        return {
            "saleNumber": self.sale_number,
            "date": to_utc_z(self.sale_date),
            "customer": {
                "name": self.customer_name,
                "phone": self.customer_phone,
            },
            "items": [item.to_dict() for item in self.items],
            "totals": {
                "subtotal": as_number(self.total_amount),
                "discount": as_number(self.discount),
                "finalAmount": as_number(self.final_amount),
            },
            "paymentMethod": self.payment_method,
            "soldBy": self.sold_by.name if self.sold_by else None,
            "notes": self.notes,
        }


class SaleItem(db.Model):
    """Line item embedded in a sale; has no life of its own."""
    __tablename__ = "sale_items"
    __table_args__ = {"sqlite_autoincrement": True}

    id = db.Column(db.Integer, primary_key=True)
    sale_id = db.Column(db.Integer, db.ForeignKey("sales.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False)

    # Snapshots taken at sale time
    product_name = db.Column(db.String(255), nullable=False)
    unit = db.Column(db.String(16), nullable=False, default="yards")
    unit_price = db.Column(db.Numeric(12, 2), nullable=False)

    quantity = db.Column(db.Numeric(12, 2), nullable=False)
    total_price = db.Column(db.Numeric(12, 2), nullable=False)

    sale = db.relationship("Sale", back_populates="items")
    product = db.relationship("Product")

    def to_dict(self, *, populate: bool = False) -> dict:
        data = {
            "id": self.id,
            "product": self.product_id,
            "productName": self.product_name,
            "quantity": as_number(self.quantity),
            "unitPrice": as_number(self.unit_price),
            "totalPrice": as_number(self.total_price),
            "unit": self.unit,
        }
        if populate and self.product is not None:
            data["product"] = {
                "id": self.product.id,
                "name": self.product.name,
                "category": self.product.category,
            }
        return data
