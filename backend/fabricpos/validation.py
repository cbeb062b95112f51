from __future__ import annotations

import re
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

from sqlalchemy import Boolean, Integer, Numeric, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .money import to_decimal
from .models import CATEGORIES, UNITS, PAYMENT_METHODS, ROLES

EMAIL_RE = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")

# Largest quantity or price the NUMERIC(12, 2) columns can hold
MAX_AMOUNT = Decimal("9999999999.99")


class ValidationError(ValueError):
    """400-level input problem. errors maps field name -> first problem found."""

    def __init__(self, message: str, errors: dict[str, str] | None = None):
        super().__init__(message)
        self.errors = errors or {}


class ConflictError(ValueError):
    """Business rule conflict (e.g., duplicate product name or email)."""


class NotFoundError(LookupError):
    """Requested record does not exist (or is not visible to the caller)."""


def raise_if_errors(errors: dict[str, str]) -> None:
    if errors:
        first = next(iter(errors.values()))
        raise ValidationError(first, errors)


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: JSON key -> model column key (the security boundary)
    - required_on_create: JSON keys required for POST
    """
    writable_fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(field_name: str, col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Quantities and money
    if isinstance(coltype, Numeric):
        try:
            return to_decimal(value)
        except ValueError:
            raise ValidationError(f"{field_name} must be a number")

    # Integers - reject floats and bools
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lstrip("-").isdigit():
            return int(value.strip())
        raise ValidationError(f"{field_name} must be an integer")

    # Booleans: JSON true/false or the strings "true"/"false"
    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if value in ("true", "false"):
            return value == "true"
        raise ValidationError(f"{field_name} must be a boolean")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict keyed by model column.

    Every field is checked; the first problem per field ends up in the
    raised ValidationError.errors map.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, str] = {}

    if not partial:
        for key in sorted(policy.required_on_create):
            raw = payload.get(key)
            if raw is None or (isinstance(raw, str) and not raw.strip()):
                errors[key] = f"{key} is required"

    cols = _columns_by_key(model)
    patch: dict = {}

    for key, raw in payload.items():
        if key in errors:
            continue
        if key not in policy.writable_fields:
            errors[key] = f"Field not allowed: {key}"
            continue

        col = cols[policy.writable_fields[key]]

        if raw is None:
            if not col.nullable:
                errors[key] = f"{key} cannot be null"
            else:
                patch[col.key] = None
            continue

        try:
            val = _coerce_value(key, col, raw)
        except ValidationError as exc:
            errors[key] = str(exc)
            continue

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            errors[key] = f"{key} cannot be blank"
            continue

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors[key] = f"{key} exceeds max length {col.type.length}"
                continue

        if isinstance(val, Decimal) and abs(val) > MAX_AMOUNT:
            errors[key] = f"{key} is too large"
            continue

        patch[col.key] = val

    raise_if_errors(errors)
    return patch


def enforce_rules_product(patch: dict, *, creating: bool) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keys are model columns; messages name the JSON fields.
    """
    errors: dict[str, str] = {}

    name = patch.get("name")
    if name is not None and len(name) < 2:
        errors["name"] = "Product name must be at least 2 characters"

    category = patch.get("category")
    if category is not None and category not in CATEGORIES:
        errors["category"] = "Invalid category"

    unit = patch.get("unit")
    if unit is not None and unit not in UNITS:
        errors["unit"] = "Invalid unit"

    total = patch.get("total_stock")
    if total is not None:
        if creating and total <= 0:
            errors["totalStock"] = "Total stock must be greater than 0"
        elif total < 0:
            errors["totalStock"] = "Total stock must be non-negative"

    price = patch.get("price_per_unit")
    if price is not None and price < 0:
        errors["pricePerUnit"] = "Price per unit must be non-negative"

    min_level = patch.get("min_stock_level")
    if min_level is not None and min_level < 0:
        errors["minStockLevel"] = "Minimum stock level must be non-negative"

    raise_if_errors(errors)


def validate_sale_request(payload: dict | None) -> dict:
    """
    Shape checks for POST /api/staff/sales.

    Returns {customer_name, customer_phone, items:[{product_id, quantity}],
    discount, payment_method, notes}. Stock, price and product existence are
    the sale workflow's job, not this function's.
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, str] = {}

    customer_name = str(payload.get("customerName") or "").strip()
    if len(customer_name) < 2:
        errors["customerName"] = "Customer name must be at least 2 characters"

    customer_phone = payload.get("customerPhone")
    if customer_phone is not None:
        customer_phone = str(customer_phone).strip() or None
        if customer_phone and len(customer_phone) > 15:
            errors["customerPhone"] = "Phone number must be at most 15 characters"

    raw_items = payload.get("items")
    items = []
    if not isinstance(raw_items, list) or not raw_items:
        errors["items"] = "At least one item is required"
    else:
        for i, raw in enumerate(raw_items):
            if not isinstance(raw, dict):
                errors[f"items[{i}]"] = "Invalid item"
                continue
            product_id = raw.get("productId")
            if isinstance(product_id, str) and product_id.strip().isdigit():
                product_id = int(product_id.strip())
            if not isinstance(product_id, int) or isinstance(product_id, bool) or product_id <= 0:
                errors[f"items[{i}].productId"] = "Invalid product ID"
                continue
            try:
                quantity = to_decimal(raw.get("quantity"))
            except ValueError:
                quantity = None
            if quantity is None or quantity <= 0:
                errors[f"items[{i}].quantity"] = "Quantity must be greater than 0"
                continue
            if quantity > MAX_AMOUNT:
                errors[f"items[{i}].quantity"] = "Quantity is too large"
                continue
            items.append({"product_id": product_id, "quantity": quantity})

    discount = Decimal("0")
    if payload.get("discount") not in (None, ""):
        try:
            discount = to_decimal(payload["discount"])
        except ValueError:
            discount = None
        if discount is None or discount < 0:
            errors["discount"] = "Discount must be non-negative"

    payment_method = payload.get("paymentMethod") or "cash"
    if payment_method not in PAYMENT_METHODS:
        errors["paymentMethod"] = "Invalid payment method"

    notes = payload.get("notes")
    if notes is not None:
        notes = str(notes).strip() or None

    raise_if_errors(errors)

    return {
        "customer_name": customer_name,
        "customer_phone": customer_phone,
        "items": items,
        "discount": discount,
        "payment_method": payment_method,
        "notes": notes,
    }


def validate_account_fields(
    payload: dict | None,
    *,
    require_name: bool = True,
    allow_role: bool = False,
) -> dict:
    """Checks shared by sign-up and admin registration."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    errors: dict[str, str] = {}

    email = str(payload.get("email") or "").strip().lower()
    if not email:
        errors["email"] = "email is required"
    elif not EMAIL_RE.match(email):
        errors["email"] = "Invalid email format"

    password = payload.get("password") or ""
    if not password:
        errors["password"] = "password is required"
    elif len(password) < 6:
        errors["password"] = "Password must be at least 6 characters"

    name = str(payload.get("name") or "").strip()
    if require_name:
        if not name:
            errors["name"] = "name is required"
        elif len(name) < 2:
            errors["name"] = "Name must be at least 2 characters"

    role = "staff"
    if allow_role and payload.get("role"):
        role = payload["role"]
        if role not in ROLES:
            errors["role"] = "Role must be admin or staff"

    raise_if_errors(errors)
    return {"email": email, "password": password, "name": name, "role": role}
