# Overview: Service-layer operations for the confectionery catalogue.

"""
Catalog Service

Products are never hard-deleted: order lines and ledger entries keep
pointing at them, so "delete" only clears is_active. Inactive products are
hidden from the storefront and cannot be ordered.
"""

from __future__ import annotations

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Product
from ..responses import paginate

SORT_OPTIONS = {
    "price_asc": (Product.price_cents.asc(), Product.id.asc()),
    "price_desc": (Product.price_cents.desc(), Product.id.asc()),
    "name_asc": (Product.name.asc(), Product.id.asc()),
    "name_desc": (Product.name.desc(), Product.id.asc()),
    "newest": (Product.created_at.desc(), Product.id.desc()),
}
DEFAULT_SORT = "newest"


def list_products(
    *,
    page: int,
    limit: int,
    search: str | None = None,
    category: str | None = None,
    min_price_cents: int | None = None,
    max_price_cents: int | None = None,
    sort: str | None = None,
    include_inactive: bool = False,
):
    query = db.session.query(Product)
    if not include_inactive:
        query = query.filter(Product.is_active.is_(True))

    if search:
        pattern = f"%{search.strip()}%"
        query = query.filter(db.or_(Product.name.ilike(pattern), Product.description.ilike(pattern)))
    if category:
        query = query.filter(Product.category == category)
    if min_price_cents is not None:
        query = query.filter(Product.price_cents >= min_price_cents)
    if max_price_cents is not None:
        query = query.filter(Product.price_cents <= max_price_cents)

    if sort and sort not in SORT_OPTIONS:
        raise ValidationError("Invalid sort option")
    query = query.order_by(*SORT_OPTIONS[sort or DEFAULT_SORT])

    return paginate(query, page=page, limit=limit)


def list_categories() -> list[str]:
    rows = db.session.query(Product.category).filter(
        Product.is_active.is_(True)
    ).distinct().order_by(Product.category.asc()).all()
    return [row.category for row in rows]


def get_product(product_id: int, *, include_inactive: bool = False) -> Product:
    product = db.session.get(Product, product_id)
    if not product or (not product.is_active and not include_inactive):
        raise NotFoundError("Product not found")
    return product


def create_product(patch: dict) -> Product:
    product = Product(**patch)
    db.session.add(product)
    db.session.commit()
    current_app.logger.info("Product created: id=%s name=%r", product.id, product.name)
    return product


def update_product(product_id: int, patch: dict) -> Product:
    product = get_product(product_id, include_inactive=True)
    for attr, value in patch.items():
        setattr(product, attr, value)
    db.session.commit()
    return product


def deactivate_product(product_id: int) -> Product:
    product = get_product(product_id, include_inactive=True)
    product.is_active = False
    db.session.commit()
    current_app.logger.info("Product deactivated: id=%s", product.id)
    return product
