# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/fabricpos/routes/products.py
"""
Product routes.

Staff surface (/api/staff/products...): sellable catalog and search.
Admin surface (/api/admin/products...): full catalog and CRUD. Stock
changes made here are written to the stock history ledger by the service.

SECURITY: All routes require authentication.
- Read operations require VIEW_PRODUCTS permission
- Write operations require MANAGE_PRODUCTS permission
"""
from flask import Blueprint, request, g, current_app
from ..services import products_service
from ..models import Product
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    ValidationError,
    ConflictError,
    NotFoundError,
)
from ..decorators import require_auth, require_permission

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "category": "category",
        "description": "description",
        "totalStock": "total_stock",
        "unit": "unit",
        "pricePerUnit": "price_per_unit",
        "minStockLevel": "min_stock_level",
    },
    required_on_create={"name", "category", "totalStock", "pricePerUnit"},
)

products_bp = Blueprint("products", __name__, url_prefix="/api")


@products_bp.get("/staff/products")
@require_auth
@require_permission("VIEW_PRODUCTS")
def list_sellable_products():
    """Active products with stock left."""
    try:
        products = products_service.list_sellable_products()
    except Exception:
        current_app.logger.exception("Product catalog failed")
        return {"message": "Server error"}, 500
    return [p.to_catalog_dict() for p in products], 200


@products_bp.get("/staff/products/search")
@require_auth
@require_permission("VIEW_PRODUCTS")
def search_products():
    """
    Query params:
    - q: str (required, at least 2 characters) - matched against name or category
    """
    try:
        products = products_service.search_products(request.args.get("q", ""))
    except ValidationError as e:
        return {"message": str(e)}, 400
    except Exception:
        current_app.logger.exception("Product search failed")
        return {"message": "Server error"}, 500
    return [p.to_catalog_dict() for p in products], 200


@products_bp.get("/admin/products")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def list_products():
    try:
        products = products_service.list_active_products()
    except Exception:
        current_app.logger.exception("Product listing failed")
        return {"message": "Server error"}, 500
    return [p.to_dict(populate=True) for p in products], 200


@products_bp.post("/admin/products")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def create_product_route():
    """
    Create a new product. currentStock starts at totalStock and an
    "added" row is written to the stock history.
    """
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch, creating=True)
    except ValidationError as e:
        return {"message": str(e), "errors": e.errors}, 400

    try:
        created = products_service.create_product(patch=patch, acting_user=g.current_user)
    except ConflictError as e:
        return {"message": str(e)}, 400
    except Exception:
        current_app.logger.exception("Add product failed")
        return {"message": "Server error"}, 500

    return {
        "message": "Product added successfully",
        "product": created.to_dict(populate=True),
    }, 201


@products_bp.put("/admin/products/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def update_product_route(product_id: int):
    """
    Partial update. A totalStock change moves currentStock by the same
    delta and is recorded in the stock history.
    """
    payload = request.get_json(silent=True)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch, creating=False)
    except ValidationError as e:
        return {"message": str(e), "errors": e.errors}, 400

    try:
        updated = products_service.update_product(
            product_id, patch=patch, acting_user=g.current_user
        )
    except NotFoundError as e:
        return {"message": str(e)}, 404
    except ValidationError as e:
        return {"message": str(e), "errors": e.errors}, 400
    except ConflictError as e:
        return {"message": str(e)}, 400
    except Exception:
        current_app.logger.exception("Update product %s failed", product_id)
        return {"message": "Server error"}, 500

    return {
        "message": "Product updated successfully",
        "product": updated.to_dict(populate=True),
    }, 200


@products_bp.delete("/admin/products/<int:product_id>")
@require_auth
@require_permission("MANAGE_PRODUCTS")
def delete_product_route(product_id: int):
    """Soft delete: the product leaves the catalogs, its history stays."""
    try:
        products_service.deactivate_product(product_id)
    except NotFoundError as e:
        return {"message": str(e)}, 404
    except Exception:
        current_app.logger.exception("Delete product %s failed", product_id)
        return {"message": "Server error"}, 500

    return {"message": "Product deleted successfully"}, 200
