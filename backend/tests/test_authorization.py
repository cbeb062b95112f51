"""
Authorization tests.

Verifies:
- Unauthenticated requests return 401
- Staff role denied admin operations (403)
- Staff and admin can both use the point-of-sale surface
- Role -> permission map
"""

import pytest

from fabricpos.models import User
from fabricpos.permissions import DEFAULT_ROLE_PERMISSIONS, get_all_permission_codes
from fabricpos.services import permission_service
from fabricpos.services.permission_service import PermissionDeniedError


# =============================================================================
# UNAUTHENTICATED ACCESS: 401
# =============================================================================


class TestUnauthenticatedAccess:
    """All protected endpoints return 401 without a token."""

    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/auth/logout"),
            ("POST", "/api/auth/register"),
            ("GET", "/api/auth/profile"),
            ("PUT", "/api/auth/change-password"),
            ("GET", "/api/staff/products"),
            ("GET", "/api/staff/products/search?q=ankara"),
            ("POST", "/api/staff/sales"),
            ("GET", "/api/staff/sales"),
            ("GET", "/api/staff/sales/1/receipt"),
            ("GET", "/api/staff/dashboard"),
            ("GET", "/api/admin/dashboard"),
            ("GET", "/api/admin/products"),
            ("POST", "/api/admin/products"),
            ("PUT", "/api/admin/products/1"),
            ("DELETE", "/api/admin/products/1"),
            ("GET", "/api/admin/stock-history"),
            ("GET", "/api/admin/sales-report"),
            ("GET", "/api/admin/users"),
            ("PUT", "/api/admin/users/1/status"),
            ("PUT", "/api/admin/users/1/role"),
        ],
    )
    def test_requires_auth(self, client, db_session, method, path):
        resp = getattr(client, method.lower())(path)
        assert resp.status_code == 401, f"{method} {path} returned {resp.status_code}"

    def test_garbage_token(self, client, db_session):
        resp = client.get("/api/staff/products", headers={"Authorization": "Bearer not-a-token"})
        assert resp.status_code == 401
        assert resp.get_json()["message"] == "Invalid or expired token"


# =============================================================================
# STAFF DENIED ADMIN OPERATIONS: 403
# =============================================================================


class TestStaffDeniedAdmin:
    @pytest.mark.parametrize(
        "method,path",
        [
            ("POST", "/api/auth/register"),
            ("GET", "/api/admin/dashboard"),
            ("GET", "/api/admin/products"),
            ("POST", "/api/admin/products"),
            ("PUT", "/api/admin/products/1"),
            ("DELETE", "/api/admin/products/1"),
            ("GET", "/api/admin/stock-history"),
            ("GET", "/api/admin/sales-report"),
            ("GET", "/api/admin/users"),
            ("PUT", "/api/admin/users/1/status"),
            ("PUT", "/api/admin/users/1/role"),
        ],
    )
    def test_forbidden(self, client, staff_headers, method, path):
        resp = getattr(client, method.lower())(path, headers=staff_headers, json={})
        assert resp.status_code == 403, f"{method} {path} returned {resp.status_code}"
        assert resp.get_json()["message"] == "Permission denied"


# =============================================================================
# POINT OF SALE: both roles
# =============================================================================


class TestPointOfSaleAccess:
    @pytest.mark.parametrize("headers_fixture", ["staff_headers", "admin_headers"])
    def test_both_roles_can_sell(self, request, client, product, headers_fixture):
        headers = request.getfixturevalue(headers_fixture)

        assert client.get("/api/staff/products", headers=headers).status_code == 200
        assert client.get("/api/staff/dashboard", headers=headers).status_code == 200
        resp = client.post(
            "/api/staff/sales",
            json={"customerName": "Ada Obi", "items": [{"productId": product.id, "quantity": 1}]},
            headers=headers,
        )
        assert resp.status_code == 201


# =============================================================================
# PERMISSION MAP
# =============================================================================


class TestPermissionMap:
    def test_admin_has_everything(self, db_session, admin_user):
        assert permission_service.get_user_permissions(admin_user) == set(get_all_permission_codes())

    def test_staff_set(self):
        assert set(DEFAULT_ROLE_PERMISSIONS["staff"]) == {
            "VIEW_PRODUCTS",
            "CREATE_SALE",
            "VIEW_OWN_SALES",
            "VIEW_STAFF_DASHBOARD",
        }

    def test_inactive_user_has_nothing(self, db_session, pending_user):
        assert permission_service.get_user_permissions(pending_user) == set()

    def test_require_permission_raises(self, db_session, staff_user):
        with pytest.raises(PermissionDeniedError):
            permission_service.require_permission(staff_user, "MANAGE_USERS")

    def test_unknown_code_is_a_programming_error(self, db_session, staff_user):
        with pytest.raises(ValueError):
            permission_service.require_permission(staff_user, "LAUNCH_ROCKETS")

    def test_user_has_permission(self, db_session, staff_user):
        assert permission_service.user_has_permission(staff_user, "CREATE_SALE")
        assert not permission_service.user_has_permission(staff_user, "MANAGE_PRODUCTS")
        assert isinstance(staff_user, User)
