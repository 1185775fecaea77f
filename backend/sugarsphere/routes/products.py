# Overview: Flask API routes for catalogue operations; parses input and returns JSON responses.

"""
Product catalogue routes.

Browsing is public. Creating, editing and deactivating products, and
reading a product's stock ledger, require the admin role.
"""

from flask import Blueprint, request

from ..services import inventory_service, products_service, session_service
from ..models import Product
from ..models.auth import ROLE_ADMIN
from ..decorators import require_auth, require_role
from ..responses import success
from ..validation import (
    ModelValidationPolicy,
    validate_payload,
    enforce_rules_product,
    json_object,
    parse_int,
    parse_page_args,
)

PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": "name",
        "category": "category",
        "description": "description",
        "priceCents": "price_cents",
        "quantity": "quantity",
        "imageUrl": "image_url",
        "isActive": "is_active",
    },
    required_on_create={"name", "category", "priceCents", "quantity"},
)

CATALOG_PAGE_SIZE = 12

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


def _caller_is_admin() -> bool:
    """Optional auth: public routes still honour an admin's Bearer token."""
    auth_header = request.headers.get("Authorization", "")
    if not auth_header.startswith("Bearer "):
        return False
    user = session_service.validate_access_token(auth_header.split(" ", 1)[1].strip())
    return bool(user and user.is_admin)


def _optional_int_arg(key: str) -> int | None:
    raw = request.args.get(key)
    if raw is None or raw == "":
        return None
    return parse_int(raw, key)


@products_bp.get("")
def list_products_route():
    """
    Query params:
    - search: substring of name or description
    - category
    - minPrice / maxPrice: minor units
    - sort: price_asc | price_desc | name_asc | name_desc | newest
    - page, limit (default 12)
    - includeInactive: admins only
    """
    page, limit = parse_page_args(request.args, default_limit=CATALOG_PAGE_SIZE)
    include_inactive = request.args.get("includeInactive") == "true" and _caller_is_admin()

    products, pagination = products_service.list_products(
        page=page,
        limit=limit,
        search=request.args.get("search") or None,
        category=request.args.get("category") or None,
        min_price_cents=_optional_int_arg("minPrice"),
        max_price_cents=_optional_int_arg("maxPrice"),
        sort=request.args.get("sort") or None,
        include_inactive=include_inactive,
    )
    return success({
        "products": [product.to_dict() for product in products],
        "pagination": pagination,
    })


@products_bp.get("/categories")
def list_categories_route():
    return success(products_service.list_categories())


@products_bp.get("/<int:product_id>")
def get_product_route(product_id: int):
    product = products_service.get_product(product_id)
    return success(product.to_dict())


@products_bp.post("")
@require_auth
@require_role(ROLE_ADMIN)
def create_product_route():
    payload = json_object(request.get_json(silent=True))
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = products_service.create_product(patch)
    return success(product.to_dict(), message="Product created successfully", status=201)


@products_bp.put("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_product_route(product_id: int):
    payload = json_object(request.get_json(silent=True))
    patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    product = products_service.update_product(product_id, patch)
    return success(product.to_dict(), message="Product updated successfully")


@products_bp.delete("/<int:product_id>")
@require_auth
@require_role(ROLE_ADMIN)
def delete_product_route(product_id: int):
    products_service.deactivate_product(product_id)
    return success(message="Product deleted successfully")


@products_bp.get("/<int:product_id>/inventory")
@require_auth
@require_role(ROLE_ADMIN)
def product_inventory_route(product_id: int):
    """Stock ledger for one product, including deactivated ones."""
    product = products_service.get_product(product_id, include_inactive=True)
    transactions = inventory_service.list_transactions(product.id)
    return success({
        "product": product.to_dict(),
        "transactions": [entry.to_dict() for entry in transactions],
    })
