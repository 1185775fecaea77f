from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


# Maximum price: 9,999,999.99 in major units
MAX_PRICE_CENTS = 999_999_999

EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# bcrypt only looks at the first 72 bytes
PASSWORD_MIN_LENGTH = 6
PASSWORD_MAX_BYTES = 72


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: JSON keys clients may set, mapped to model columns
    - required_on_create: JSON keys required for POST
    """
    writable_fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(key: str, col, value: Any):
    coltype = col.type

    if isinstance(coltype, Boolean):
        if isinstance(value, bool):
            return value
        if isinstance(value, str) and value.strip().lower() in {"true", "false"}:
            return value.strip().lower() == "true"
        raise ValidationError(f"{key} must be a boolean")

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        return parse_int(value, key)

    if isinstance(coltype, (String, Text)):
        if not isinstance(value, (str, int, float)) or isinstance(value, bool):
            raise ValidationError(f"{key} must be a string")
        return str(value).strip()

    return value


def parse_int(value: Any, key: str) -> int:
    # Already an int (but not bool which is a subclass of int)
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    if isinstance(value, str):
        stripped = value.strip()
        if not re.fullmatch(r"-?\d+", stripped):
            raise ValidationError(f"{key} must be an integer")
        return int(stripped)
    raise ValidationError(f"{key} must be an integer")


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against column metadata and the
    policy allowlist. Returns a patch dict keyed by model attribute.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if f not in payload)
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)
    patch: dict = {}

    for key, raw in payload.items():
        attr = policy.writable_fields.get(key)
        if attr is None:
            raise ValidationError(f"Field not allowed: {key}")
        col = cols[attr]

        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{key} cannot be null")
            patch[attr] = None
            continue

        val = _coerce_value(key, col, raw)

        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            raise ValidationError(f"{key} cannot be blank")

        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{key} exceeds max length {col.type.length}")

        patch[attr] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    price = patch.get("price_cents")
    if "price_cents" in patch:
        if price is None or price <= 0:
            raise ValidationError("price must be a positive amount")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price cannot exceed {MAX_PRICE_CENTS}")
    if "quantity" in patch and (patch["quantity"] is None or patch["quantity"] < 0):
        raise ValidationError("quantity cannot be negative")
    if "name" in patch and patch["name"] is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")


def require_string(data: dict, key: str, *, min_length: int = 1, max_length: int | None = None) -> str:
    value = data.get(key)
    if not isinstance(value, str) or len(value.strip()) < min_length:
        if min_length > 1:
            raise ValidationError(f"{key} must be at least {min_length} characters")
        raise ValidationError(f"{key} is required")
    value = value.strip()
    if max_length is not None and len(value) > max_length:
        raise ValidationError(f"{key} must be at most {max_length} characters")
    return value


def require_email(data: dict, key: str = "email") -> str:
    value = require_string(data, key, max_length=255).lower()
    if not EMAIL_RE.match(value):
        raise ValidationError(f"{key} must be a valid email address")
    return value


def require_password(data: dict, key: str = "password") -> str:
    value = data.get(key)
    if not isinstance(value, str) or not value:
        raise ValidationError(f"{key} is required")
    if len(value) < PASSWORD_MIN_LENGTH:
        raise ValidationError(f"{key} must be at least {PASSWORD_MIN_LENGTH} characters")
    if len(value.encode("utf-8")) > PASSWORD_MAX_BYTES:
        raise ValidationError(f"{key} must be at most {PASSWORD_MAX_BYTES} bytes")
    return value


def parse_order_items(payload: Any) -> list[tuple[int, int]]:
    """
    Validate [{productId, quantity}, ...] and merge duplicate product ids.

    Returns (product_id, quantity) pairs in first-seen order.
    """
    if not isinstance(payload, list) or not payload:
        raise ValidationError("items must be a non-empty list")

    merged: dict[int, int] = {}
    for index, item in enumerate(payload):
        if not isinstance(item, dict):
            raise ValidationError(f"items[{index}] must be an object")
        if "productId" not in item:
            raise ValidationError(f"items[{index}].productId is required")
        product_id = parse_int(item["productId"], f"items[{index}].productId")
        quantity = item.get("quantity")
        if isinstance(quantity, bool) or not isinstance(quantity, int) or quantity <= 0:
            raise ValidationError(f"items[{index}].quantity must be a positive integer")
        merged[product_id] = merged.get(product_id, 0) + quantity

    return list(merged.items())


def parse_page_args(args, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    page = args.get("page", type=int) or 1
    limit = args.get("limit", type=int) or default_limit
    return max(page, 1), min(max(limit, 1), max_limit)


def json_object(payload: Any) -> dict:
    """Request bodies must be JSON objects; None means no/invalid body."""
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload


def optional_bool(data: dict, key: str) -> bool | None:
    if key not in data or data[key] is None:
        return None
    if not isinstance(data[key], bool):
        raise ValidationError(f"{key} must be a boolean")
    return data[key]
