# Overview: Flask API routes for reports operations; parses input and returns JSON responses.

from flask import Blueprint, request, g, current_app

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from fabricpos.time_utils import parse_iso_datetime


reports_bp = Blueprint("reports", __name__, url_prefix="/api")


@reports_bp.get("/admin/dashboard")
@require_auth
@require_permission("VIEW_ADMIN_DASHBOARD")
def admin_dashboard_route():
    try:
        return reporting_service.admin_dashboard(), 200
    except Exception:
        current_app.logger.exception("Admin dashboard failed")
        return {"message": "Server error"}, 500


@reports_bp.get("/staff/dashboard")
@require_auth
@require_permission("VIEW_STAFF_DASHBOARD")
def staff_dashboard_route():
    try:
        return reporting_service.staff_dashboard(g.current_user), 200
    except Exception:
        current_app.logger.exception("Staff dashboard failed for user %s", g.current_user.id)
        return {"message": "Server error"}, 500


@reports_bp.get("/admin/sales-report")
@require_auth
@require_permission("VIEW_SALES_REPORTS")
def sales_report_route():
    """
    Query params:
    - dateFrom, dateTo: ISO-8601 (dateTo covers the whole day)
    - staffId: int (optional) - restrict to one active staff member
    """
    try:
        date_from = parse_iso_datetime(request.args.get("dateFrom"))
        date_to = parse_iso_datetime(request.args.get("dateTo"))
    except ValueError:
        return {"message": "dateFrom and dateTo must be ISO-8601 dates"}, 400

    staff_raw = request.args.get("staffId")
    staff_id = request.args.get("staffId", type=int)
    if staff_raw and staff_id is None:
        # Unknown ids report nothing rather than fail
        staff_id = 0

    try:
        return reporting_service.sales_report(
            date_from=date_from,
            date_to=date_to,
            staff_id=staff_id,
        ), 200
    except Exception:
        current_app.logger.exception("Sales report failed")
        return {"message": "Server error"}, 500
