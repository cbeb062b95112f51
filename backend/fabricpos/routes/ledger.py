# Overview: Flask API routes for stock history operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, current_app

from fabricpos.time_utils import parse_iso_datetime
from ..decorators import require_auth, require_permission
from ..services import stock_history_service

"""
Time semantics:
- API accepts ISO-8601 dates/datetimes with Z/offsets; backend normalizes to UTC-naive internally.
- dateFrom is inclusive; dateTo is inclusive to the end of its calendar day.
"""

ledger_bp = Blueprint("ledger", __name__, url_prefix="/api/admin/stock-history")


@ledger_bp.get("")
@require_auth
@require_permission("VIEW_STOCK_HISTORY")
def list_stock_history_route():
    """
    Query params:
    - productId: int (optional)
    - dateFrom, dateTo: ISO-8601 (optional)
    - page: int (default 1)
    - limit: int (default 20, max 100)
    """
    try:
        date_from = parse_iso_datetime(request.args.get("dateFrom"))
        date_to = parse_iso_datetime(request.args.get("dateTo"))
    except ValueError:
        return jsonify({"message": "dateFrom and dateTo must be ISO-8601 dates"}), 400

    try:
        result = stock_history_service.list_stock_history(
            product_id=request.args.get("productId", type=int),
            date_from=date_from,
            date_to=date_to,
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", default=stock_history_service.DEFAULT_PAGE_SIZE, type=int),
        )
    except Exception:
        current_app.logger.exception("Stock history listing failed")
        return jsonify({"message": "Server error"}), 500
    return jsonify(result), 200
