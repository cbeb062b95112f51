"""
Dashboards and the admin sales report.
"""

from datetime import datetime, timedelta

from fabricpos.time_utils import utcnow


class TestAdminDashboard:
    def test_totals(self, client, db_session, admin_headers, staff_user, make_product, make_sale):
        make_product("Ankara Print", current_stock="20", price_per_unit="500")
        make_product("Low Lace", category="other", current_stock="3", min_stock_level="5", price_per_unit="1000")
        make_product("Retired", category="linen", is_active=False, current_stock="100")

        make_sale(staff_user, sale_number="RF00000000001", final_amount="1500")
        make_sale(staff_user, sale_number="RF00000000002", final_amount="500")
        make_sale(staff_user, sale_number="RF00000000003", final_amount="999",
                  sale_date=utcnow() - timedelta(days=2))
        make_sale(staff_user, sale_number="RF00000000004", final_amount="777", status="pending")

        resp = client.get("/api/admin/dashboard", headers=admin_headers)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["totalProducts"] == 2
        assert [p["name"] for p in data["lowStockProducts"]] == ["Low Lace"]
        assert data["lowStockProducts"][0] == {
            "id": data["lowStockProducts"][0]["id"],
            "name": "Low Lace",
            "currentStock": 3,
            "minStockLevel": 5,
            "unit": "yards",
        }
        assert data["totalSalesToday"] == 2000
        assert data["totalTransactionsToday"] == 2
        assert data["totalStockValue"] == 13000
        assert data["recentStockChanges"] == []

    def test_recent_stock_changes_limited_to_ten(self, client, db_session, admin_headers):
        for i in range(12):
            client.post(
                "/api/admin/products",
                json={"name": f"Bolt {i:02d}", "category": "cotton", "totalStock": 5, "pricePerUnit": 100},
                headers=admin_headers,
            )

        data = client.get("/api/admin/dashboard", headers=admin_headers).get_json()
        changes = data["recentStockChanges"]
        assert len(changes) == 10
        assert changes[0]["productName"] == "Bolt 11"
        assert changes[0]["performedBy"]["name"] == "Admin"

    def test_staff_forbidden(self, client, db_session, staff_headers):
        assert client.get("/api/admin/dashboard", headers=staff_headers).status_code == 403


class TestStaffDashboard:
    def test_own_sales_today(
        self, client, db_session, staff_user, other_staff_user, staff_headers, make_product, make_sale
    ):
        make_product("Low Lace", category="other", current_stock="2", min_stock_level="5")
        for i in range(6):
            make_sale(staff_user, sale_number=f"RF0000000010{i}", final_amount="1000")
        make_sale(other_staff_user, sale_number="RF00000000200", final_amount="5000")
        make_sale(staff_user, sale_number="RF00000000300", final_amount="5000",
                  sale_date=utcnow() - timedelta(days=1, hours=1))

        resp = client.get("/api/staff/dashboard", headers=staff_headers)

        assert resp.status_code == 200
        data = resp.get_json()
        assert data["todaySummary"] == {"totalSales": 6000, "totalTransactions": 6, "averageSale": 1000}
        assert len(data["recentSales"]) == 5
        assert all(s["soldBy"]["id"] == staff_user.id for s in data["recentSales"])
        assert [p["name"] for p in data["lowStockAlerts"]] == ["Low Lace"]

    def test_no_sales_today(self, client, db_session, staff_headers):
        data = client.get("/api/staff/dashboard", headers=staff_headers).get_json()
        assert data["todaySummary"] == {"totalSales": 0, "totalTransactions": 0, "averageSale": 0}
        assert data["recentSales"] == []


class TestSalesReport:
    def _seed(self, staff_user, other_staff_user, make_sale):
        make_sale(staff_user, sale_number="RF20240301001", final_amount="1000",
                  sale_date=datetime(2024, 3, 1, 10))
        make_sale(staff_user, sale_number="RF20240303001", final_amount="2000",
                  sale_date=datetime(2024, 3, 3, 22))
        make_sale(other_staff_user, sale_number="RF20240303002", final_amount="3000",
                  sale_date=datetime(2024, 3, 3, 11))
        make_sale(staff_user, sale_number="RF20240303003", final_amount="4000", status="pending",
                  sale_date=datetime(2024, 3, 3, 12))

    def test_all_staff_in_range(self, client, db_session, admin_headers, staff_user, other_staff_user, make_sale):
        self._seed(staff_user, other_staff_user, make_sale)

        resp = client.get("/api/admin/sales-report?dateFrom=2024-03-02&dateTo=2024-03-03", headers=admin_headers)

        assert resp.status_code == 200
        data = resp.get_json()
        assert [s["saleNumber"] for s in data["sales"]] == ["RF20240303001", "RF20240303002"]
        assert data["summary"] == {"totalSales": 5000, "totalTransactions": 2, "averageSale": 2500}

    def test_filter_by_staff(self, client, db_session, admin_headers, staff_user, other_staff_user, make_sale):
        self._seed(staff_user, other_staff_user, make_sale)

        data = client.get(
            f"/api/admin/sales-report?staffId={staff_user.id}", headers=admin_headers
        ).get_json()

        assert [s["saleNumber"] for s in data["sales"]] == ["RF20240303001", "RF20240301001"]
        assert data["sales"][0]["soldBy"] == {"id": staff_user.id, "name": "Sola Staff"}
        assert data["summary"]["averageSale"] == 1500

    def test_unknown_or_inactive_staff_gives_empty_report(
        self, client, db_session, admin_user, admin_headers, staff_user, other_staff_user, pending_user, make_sale
    ):
        self._seed(staff_user, other_staff_user, make_sale)
        empty = {"sales": [], "summary": {"totalSales": 0, "totalTransactions": 0, "averageSale": 0}}

        for staff_id in (pending_user.id, admin_user.id, 99999, "abc"):
            data = client.get(f"/api/admin/sales-report?staffId={staff_id}", headers=admin_headers).get_json()
            assert data == empty

    def test_staff_forbidden(self, client, db_session, staff_headers):
        assert client.get("/api/admin/sales-report", headers=staff_headers).status_code == 403
