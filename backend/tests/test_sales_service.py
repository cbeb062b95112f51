"""
Sale workflow tests.

Verifies:
- Totals, stock decrement and one ledger row per line item
- Preconditions (missing/inactive product, stock, discount) reject with no writes
- Stock is checked cumulatively across line items for the same product
- Post-write failures leave the sale flagged "pending"
- Stock history rows cannot be edited or deleted
"""

from decimal import Decimal

import pytest

from fabricpos.extensions import db
from fabricpos.models import Product, Sale, StockHistory, LedgerImmutabilityError
from fabricpos.services import sales_service
from fabricpos.services.sales_service import (
    SaleNumberExhaustedError,
    SaleRecordingError,
    SaleValidationError,
    create_sale,
)


def _item(product, quantity):
    return {"product_id": product.id, "quantity": Decimal(str(quantity))}


def _counts():
    return (
        db.session.query(Sale).count(),
        db.session.query(StockHistory).count(),
    )


class TestSuccessfulSale:
    def test_single_item_sale(self, db_session, staff_user, product):
        sale = create_sale(
            customer_name="Ada Obi",
            items=[_item(product, 3)],
            acting_user=staff_user,
        )

        assert sale.status == "completed"
        assert sale.total_amount == Decimal("1500.00")
        assert sale.discount == Decimal("0.00")
        assert sale.final_amount == Decimal("1500.00")
        assert sale.sold_by_user_id == staff_user.id
        assert sale.sale_number.startswith("RF")
        assert len(sale.sale_number) == 13

        [item] = sale.items
        assert item.product_name == "Ankara Print"
        assert item.unit_price == Decimal("500.00")
        assert item.quantity == Decimal("3.00")
        assert item.total_price == Decimal("1500.00")

        assert db_session.get(Product, product.id).current_stock == Decimal("7.00")

        [entry] = db_session.query(StockHistory).filter_by(action="sold").all()
        assert entry.product_id == product.id
        assert entry.quantity == Decimal("3.00")
        assert entry.previous_stock == Decimal("10.00")
        assert entry.new_stock == Decimal("7.00")
        assert entry.sale_id == sale.id
        assert entry.performed_by_user_id == staff_user.id
        assert entry.notes == "Sold to Ada Obi"
        assert entry.unit == "yards"

    def test_discount_reduces_final_amount(self, db_session, staff_user, product):
        sale = create_sale(
            customer_name="Ada Obi",
            items=[_item(product, 2)],
            discount=Decimal("100"),
            acting_user=staff_user,
        )
        assert sale.total_amount == Decimal("1000.00")
        assert sale.final_amount == Decimal("900.00")

    def test_discount_equal_to_total_is_allowed(self, db_session, staff_user, product):
        sale = create_sale(
            customer_name="Ada Obi",
            items=[_item(product, 1)],
            discount=Decimal("500"),
            acting_user=staff_user,
        )
        assert sale.final_amount == Decimal("0.00")

    def test_fractional_yards(self, db_session, staff_user, make_product):
        silk = make_product("Silk Chiffon", category="silk", current_stock="5", price_per_unit="1200")

        sale = create_sale(
            customer_name="Bisi",
            items=[_item(silk, "2.5")],
            acting_user=staff_user,
        )

        assert sale.final_amount == Decimal("3000.00")
        assert db_session.get(Product, silk.id).current_stock == Decimal("2.50")

    def test_fractional_sales_can_empty_the_bolt(self, db_session, staff_user, make_product):
        # 0.7 - 0.4 is not exactly 0.3 in floating point
        voile = make_product("Cotton Voile", category="cotton", current_stock="0.7", price_per_unit="1000")

        create_sale(customer_name="Bisi", items=[_item(voile, "0.4")], acting_user=staff_user)
        assert db_session.get(Product, voile.id).current_stock == Decimal("0.30")

        sale = create_sale(customer_name="Kemi", items=[_item(voile, "0.3")], acting_user=staff_user)

        assert sale.status == "completed"
        assert db_session.get(Product, voile.id).current_stock == Decimal("0")
        row = db_session.query(StockHistory).filter_by(sale_id=sale.id).one()
        assert row.previous_stock == Decimal("0.30")
        assert row.new_stock == Decimal("0")
        assert [s.status for s in db_session.query(Sale).order_by(Sale.id)] == ["completed", "completed"]

    def test_fractional_oversell_still_rejected(self, db_session, staff_user, make_product):
        voile = make_product("Cotton Voile", category="cotton", current_stock="0.7", price_per_unit="1000")
        create_sale(customer_name="Bisi", items=[_item(voile, "0.4")], acting_user=staff_user)

        with pytest.raises(SaleValidationError, match="Available: 0.3 yards"):
            create_sale(customer_name="Kemi", items=[_item(voile, "0.31")], acting_user=staff_user)

    def test_multi_line_sale_writes_one_ledger_row_per_line(self, db_session, staff_user, make_product):
        ankara = make_product("Ankara Print", current_stock="10", price_per_unit="500")
        lace = make_product("Swiss Lace", category="other", current_stock="4", price_per_unit="2000")

        sale = create_sale(
            customer_name="Chidi",
            items=[_item(ankara, 2), _item(lace, 1), _item(ankara, 3)],
            acting_user=staff_user,
        )

        assert sale.total_amount == Decimal("4500.00")
        assert [i.product_name for i in sale.items] == ["Ankara Print", "Swiss Lace", "Ankara Print"]

        rows = (
            db_session.query(StockHistory)
            .filter_by(sale_id=sale.id)
            .order_by(StockHistory.id)
            .all()
        )
        assert [(r.product_id, r.previous_stock, r.new_stock) for r in rows] == [
            (ankara.id, Decimal("10.00"), Decimal("8.00")),
            (lace.id, Decimal("4.00"), Decimal("3.00")),
            (ankara.id, Decimal("8.00"), Decimal("5.00")),
        ]
        assert db_session.get(Product, ankara.id).current_stock == Decimal("5.00")

    def test_selling_entire_stock(self, db_session, staff_user, product):
        create_sale(customer_name="Ada Obi", items=[_item(product, 10)], acting_user=staff_user)
        assert db_session.get(Product, product.id).current_stock == Decimal("0.00")

    def test_line_items_keep_snapshot_after_product_edit(self, db_session, staff_user, product):
        sale = create_sale(customer_name="Ada Obi", items=[_item(product, 1)], acting_user=staff_user)

        fresh = db_session.get(Product, product.id)
        fresh.name = "Renamed Ankara"
        fresh.price_per_unit = Decimal("999")
        db_session.commit()

        [item] = db_session.get(Sale, sale.id).items
        assert item.product_name == "Ankara Print"
        assert item.unit_price == Decimal("500.00")


class TestPreconditions:
    def test_empty_items(self, db_session, staff_user):
        with pytest.raises(SaleValidationError, match="At least one item is required"):
            create_sale(customer_name="Ada Obi", items=[], acting_user=staff_user)

    def test_missing_product(self, db_session, staff_user):
        with pytest.raises(SaleValidationError, match="Product not found: 9999"):
            create_sale(
                customer_name="Ada Obi",
                items=[{"product_id": 9999, "quantity": Decimal("1")}],
                acting_user=staff_user,
            )
        assert _counts() == (0, 0)

    def test_inactive_product(self, db_session, staff_user, make_product):
        retired = make_product("Old Wool", category="german_wool", is_active=False)
        with pytest.raises(SaleValidationError, match="Product is not available: Old Wool"):
            create_sale(customer_name="Ada Obi", items=[_item(retired, 1)], acting_user=staff_user)

    def test_insufficient_stock(self, db_session, staff_user, product):
        with pytest.raises(SaleValidationError) as exc_info:
            create_sale(customer_name="Ada Obi", items=[_item(product, 15)], acting_user=staff_user)

        assert str(exc_info.value) == "Insufficient stock for Ankara Print. Available: 10 yards"
        assert db_session.get(Product, product.id).current_stock == Decimal("10.00")
        assert _counts() == (0, 0)

    def test_cumulative_stock_check_across_lines(self, db_session, staff_user, product):
        with pytest.raises(SaleValidationError) as exc_info:
            create_sale(
                customer_name="Ada Obi",
                items=[_item(product, 6), _item(product, 6)],
                acting_user=staff_user,
            )

        assert "Insufficient stock for Ankara Print" in str(exc_info.value)
        assert "Available: 4 yards" in str(exc_info.value)
        assert db_session.get(Product, product.id).current_stock == Decimal("10.00")
        assert _counts() == (0, 0)

    def test_first_failure_wins(self, db_session, staff_user, product):
        with pytest.raises(SaleValidationError, match="Product not found: 9999"):
            create_sale(
                customer_name="Ada Obi",
                items=[{"product_id": 9999, "quantity": Decimal("1")}, _item(product, 50)],
                acting_user=staff_user,
            )

    def test_discount_cannot_exceed_total(self, db_session, staff_user, product):
        with pytest.raises(SaleValidationError, match="Discount cannot exceed total amount"):
            create_sale(
                customer_name="Ada Obi",
                items=[_item(product, 1)],
                discount=Decimal("500.01"),
                acting_user=staff_user,
            )
        assert _counts() == (0, 0)


class TestFailureHandling:
    def test_sale_number_exhaustion_writes_nothing(self, db_session, staff_user, product, monkeypatch):
        def _exhausted():
            raise SaleNumberExhaustedError(10)

        monkeypatch.setattr(sales_service, "generate_sale_number", _exhausted)

        with pytest.raises(SaleNumberExhaustedError):
            create_sale(customer_name="Ada Obi", items=[_item(product, 1)], acting_user=staff_user)

        assert _counts() == (0, 0)
        assert db_session.get(Product, product.id).current_stock == Decimal("10.00")

    def test_failed_stock_posting_marks_sale_pending(self, db_session, staff_user, make_product, monkeypatch):
        ankara = make_product("Ankara Print", current_stock="10")
        lace = make_product("Swiss Lace", category="other", current_stock="4")

        real_decrement = sales_service.decrement_stock

        def _fail_on_lace(product_id, quantity):
            if product_id == lace.id:
                raise RuntimeError("disk on fire")
            return real_decrement(product_id, quantity)

        monkeypatch.setattr(sales_service, "decrement_stock", _fail_on_lace)

        with pytest.raises(SaleRecordingError) as exc_info:
            create_sale(
                customer_name="Ada Obi",
                items=[_item(ankara, 2), _item(lace, 1)],
                acting_user=staff_user,
            )

        sale = db_session.get(Sale, exc_info.value.sale_id)
        assert sale.status == "pending"
        assert "Needs reconciliation" in sale.notes

        # Completed steps are not rolled back
        assert db_session.get(Product, ankara.id).current_stock == Decimal("8.00")
        assert db_session.get(Product, lace.id).current_stock == Decimal("4.00")
        assert db_session.query(StockHistory).filter_by(sale_id=sale.id).count() == 1

    def test_lost_stock_race_marks_sale_pending(self, db_session, staff_user, product, monkeypatch):
        real_price_lines = sales_service._price_lines

        def _price_then_drain(items):
            lines = real_price_lines(items)
            # Another till sells the last yards between validation and decrement
            db_session.get(Product, product.id).current_stock = Decimal("1")
            db_session.commit()
            return lines

        monkeypatch.setattr(sales_service, "_price_lines", _price_then_drain)

        with pytest.raises(SaleRecordingError) as exc_info:
            create_sale(customer_name="Ada Obi", items=[_item(product, 3)], acting_user=staff_user)

        assert db_session.get(Sale, exc_info.value.sale_id).status == "pending"
        assert db_session.get(Product, product.id).current_stock == Decimal("1.00")
        assert db_session.query(StockHistory).filter_by(action="sold").count() == 0


class TestLedgerImmutability:
    def _sold_row(self, db_session, staff_user, product):
        create_sale(customer_name="Ada Obi", items=[_item(product, 1)], acting_user=staff_user)
        return db_session.query(StockHistory).filter_by(action="sold").one()

    def test_update_rejected(self, db_session, staff_user, product):
        row = self._sold_row(db_session, staff_user, product)
        row.quantity = Decimal("0.5")
        with pytest.raises(LedgerImmutabilityError):
            db_session.flush()
        db_session.rollback()

    def test_delete_rejected(self, db_session, staff_user, product):
        row = self._sold_row(db_session, staff_user, product)
        db_session.delete(row)
        with pytest.raises(LedgerImmutabilityError):
            db_session.flush()
        db_session.rollback()
