# Overview: Read-only admin aggregations over orders, accounts and the catalogue.

"""
Admin Analytics

Every figure is computed at query time from the live tables; nothing is
cached. Revenue only counts orders whose payment was captured
(COMPLETED_STATUSES). Amounts are integer minor units.
"""

from __future__ import annotations

from flask import current_app
from sqlalchemy import func

from ..extensions import db
from ..models import Order, OrderItem, Product, User
from ..models.auth import ROLE_USER
from ..time_utils import bucket_day, days_ago, utcnow
from .order_state import COMPLETED_STATUSES, CREATED

REVENUE_RANGES = {"7d": 7, "30d": 30, "90d": 90}
DEFAULT_REVENUE_RANGE = "7d"
TOP_PRODUCTS_LIMIT = 10

STOCK_OUT = "out_of_stock"
STOCK_LOW = "low_stock"
STOCK_IN = "in_stock"


def _completed():
    return Order.status.in_(tuple(COMPLETED_STATUSES))


def stock_status(quantity: int, threshold: int) -> str:
    if quantity <= 0:
        return STOCK_OUT
    if quantity <= threshold:
        return STOCK_LOW
    return STOCK_IN


def overview() -> dict:
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]

    total_orders, total_revenue = db.session.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total_amount_cents), 0),
    ).filter(_completed()).one()

    return {
        "totalOrders": total_orders,
        "totalRevenueCents": int(total_revenue),
        "totalUsers": db.session.query(User).filter(User.role == ROLE_USER).count(),
        "totalProducts": db.session.query(Product).filter(Product.is_active.is_(True)).count(),
        "pendingOrders": db.session.query(Order).filter(Order.status == CREATED).count(),
        "lowStockItems": db.session.query(Product).filter(
            Product.is_active.is_(True),
            Product.quantity <= threshold,
        ).count(),
    }


def top_products(limit: int = TOP_PRODUCTS_LIMIT) -> list[dict]:
    """Best sellers by units across all completed orders."""
    total_quantity = func.sum(OrderItem.quantity).label("total_quantity")
    rows = db.session.query(
        OrderItem.product_id,
        func.max(OrderItem.name).label("name"),
        total_quantity,
        func.sum(OrderItem.subtotal_cents).label("total_revenue"),
    ).join(Order, Order.id == OrderItem.order_id).filter(
        _completed()
    ).group_by(OrderItem.product_id).order_by(
        total_quantity.desc(),
        OrderItem.product_id.asc(),
    ).limit(limit).all()

    return [
        {
            "productId": row.product_id,
            "name": row.name,
            "totalQuantity": int(row.total_quantity),
            "totalRevenueCents": int(row.total_revenue),
        }
        for row in rows
    ]


def revenue(range_key: str | None) -> dict:
    """Daily revenue buckets. Unknown ranges fall back to 7 days."""
    if range_key not in REVENUE_RANGES:
        range_key = DEFAULT_REVENUE_RANGE

    now = utcnow()
    start = days_ago(REVENUE_RANGES[range_key], now=now)
    day = func.date(Order.created_at)

    rows = db.session.query(
        day.label("day"),
        func.sum(Order.total_amount_cents).label("revenue"),
        func.count(Order.id).label("orders"),
    ).filter(
        _completed(),
        Order.created_at >= start,
        Order.created_at <= now,
    ).group_by(day).order_by(day.asc()).all()

    return {
        "range": range_key,
        "revenueData": [
            {"date": bucket_day(row.day), "revenueCents": int(row.revenue), "orders": row.orders}
            for row in rows
        ],
    }


def inventory() -> dict:
    threshold = current_app.config["LOW_STOCK_THRESHOLD"]
    products = db.session.query(Product).filter(Product.is_active.is_(True)).order_by(
        Product.quantity.asc(),
        Product.id.asc(),
    ).all()

    items = [
        {
            "id": product.id,
            "name": product.name,
            "category": product.category,
            "quantity": product.quantity,
            "priceCents": product.price_cents,
            "stockValueCents": product.quantity * product.price_cents,
            "stockStatus": stock_status(product.quantity, threshold),
        }
        for product in products
    ]

    total_items = sum(item["quantity"] for item in items)
    total_value = sum(item["stockValueCents"] for item in items)
    avg_price = round(sum(item["priceCents"] for item in items) / len(items)) if items else 0

    return {
        "inventory": items,
        "summary": {
            "totalItems": total_items,
            "totalValueCents": total_value,
            "avgPriceCents": avg_price,
        },
    }
