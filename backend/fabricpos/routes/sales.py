# Overview: Flask API routes for sales operations; parses input and returns JSON responses.

from flask import Blueprint, request, jsonify, g, current_app

from ..decorators import require_auth, require_permission
from ..services import reporting_service
from ..services.sales_service import (
    SaleError,
    SaleNumberExhaustedError,
    create_sale,
)
from ..validation import NotFoundError, ValidationError, validate_sale_request
from fabricpos.time_utils import parse_iso_datetime


sales_bp = Blueprint("sales", __name__, url_prefix="/api/staff/sales")


@sales_bp.post("")
@require_auth
@require_permission("CREATE_SALE")
def create_sale_route():
    """
    Record a sale.

    Body: {customerName, customerPhone?, items:[{productId, quantity}],
    discount?, paymentMethod?, notes?}
    """
    try:
        fields = validate_sale_request(request.get_json(silent=True))
    except ValidationError as e:
        return jsonify({"message": str(e), "errors": e.errors}), 400

    try:
        sale = create_sale(acting_user=g.current_user, **fields)
        return jsonify({
            "message": "Sale completed successfully",
            "sale": sale.to_dict(populate=True),
        }), 201

    except SaleError as e:
        if e.status_code >= 500:
            current_app.logger.exception("Failed to record sale")
            return jsonify({"message": "Server error during sale"}), 500
        return jsonify({"message": str(e)}), 400
    except SaleNumberExhaustedError:
        current_app.logger.exception("Failed to allocate sale number")
        return jsonify({"message": "Server error during sale"}), 500
    except Exception:
        current_app.logger.exception("Failed to create sale")
        return jsonify({"message": "Server error during sale"}), 500


@sales_bp.get("")
@require_auth
@require_permission("VIEW_OWN_SALES")
def list_sales_route():
    """
    The caller's completed sales.

    Query params:
    - dateFrom, dateTo: ISO-8601 (dateTo covers the whole day)
    - page: int (default 1)
    - limit: int (default 10, max 100)
    """
    try:
        date_from = parse_iso_datetime(request.args.get("dateFrom"))
        date_to = parse_iso_datetime(request.args.get("dateTo"))
    except ValueError:
        return jsonify({"message": "dateFrom and dateTo must be ISO-8601 dates"}), 400

    try:
        result = reporting_service.list_staff_sales(
            g.current_user,
            date_from=date_from,
            date_to=date_to,
            page=request.args.get("page", default=1, type=int),
            limit=request.args.get("limit", default=reporting_service.DEFAULT_SALES_PAGE_SIZE, type=int),
        )
    except Exception:
        current_app.logger.exception("Sales listing failed for user %s", g.current_user.id)
        return jsonify({"message": "Server error"}), 500
    return jsonify(result), 200


@sales_bp.get("/<int:sale_id>/receipt")
@require_auth
@require_permission("VIEW_OWN_SALES")
def receipt_route(sale_id: int):
    try:
        receipt = reporting_service.get_receipt(sale_id, g.current_user)
    except NotFoundError as e:
        return jsonify({"message": str(e)}), 404
    except Exception:
        current_app.logger.exception("Receipt for sale %s failed", sale_id)
        return jsonify({"message": "Server error"}), 500
    return jsonify(receipt), 200
