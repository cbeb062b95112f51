"""
Permission codes and the role -> permission map.

WHY: Routes declare the capability they need (require_permission("CREATE_SALE"))
instead of hard-coding role names, so the admin/staff split lives in one place.

DESIGN PRINCIPLES:
- Permissions are granular (one action per permission)
- Staff get the point-of-sale surface only
- Admin has all permissions
"""


class PermissionCategory:
    """Permission categories for organization."""
    INVENTORY = "INVENTORY"
    SALES = "SALES"
    USERS = "USERS"
    REPORTS = "REPORTS"


# Each permission is defined as: (code, name, description, category)
PERMISSION_DEFINITIONS = [
    # INVENTORY
    (
        "VIEW_PRODUCTS",
        "View Products",
        "Browse and search sellable fabrics",
        PermissionCategory.INVENTORY,
    ),
    (
        "MANAGE_PRODUCTS",
        "Manage Products",
        "Create, edit and retire products; change stock levels",
        PermissionCategory.INVENTORY,
    ),
    (
        "VIEW_STOCK_HISTORY",
        "View Stock History",
        "Read the stock ledger",
        PermissionCategory.INVENTORY,
    ),

    # SALES
    (
        "CREATE_SALE",
        "Create Sale",
        "Record a completed sale (POS access)",
        PermissionCategory.SALES,
    ),
    (
        "VIEW_OWN_SALES",
        "View Own Sales",
        "List own sales and print their receipts",
        PermissionCategory.SALES,
    ),

    # REPORTS
    (
        "VIEW_STAFF_DASHBOARD",
        "View Staff Dashboard",
        "Today's own sales and low stock alerts",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_ADMIN_DASHBOARD",
        "View Admin Dashboard",
        "Shop-wide totals, stock value and recent stock changes",
        PermissionCategory.REPORTS,
    ),
    (
        "VIEW_SALES_REPORTS",
        "View Sales Reports",
        "Sales across all staff for a date range",
        PermissionCategory.REPORTS,
    ),

    # USERS
    (
        "MANAGE_USERS",
        "Manage Users",
        "Create accounts, approve sign-ups, change roles",
        PermissionCategory.USERS,
    ),
]


DEFAULT_ROLE_PERMISSIONS = {
    "admin": [perm[0] for perm in PERMISSION_DEFINITIONS],
    "staff": [
        "VIEW_PRODUCTS",
        "CREATE_SALE",
        "VIEW_OWN_SALES",
        "VIEW_STAFF_DASHBOARD",
    ],
}


def get_all_permission_codes():
    """Get list of all permission codes."""
    return [perm[0] for perm in PERMISSION_DEFINITIONS]


def validate_permission_code(code):
    """Check if a permission code is valid."""
    return code in get_all_permission_codes()
