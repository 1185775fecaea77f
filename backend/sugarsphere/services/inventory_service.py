# Overview: Stock decrements and the append-only inventory ledger.

"""
Inventory Service

Stock only moves down when a payment is captured. The decrement is a single
conditional UPDATE:

    UPDATE products SET quantity = quantity - :q
    WHERE id = :id AND quantity >= :q

so two captures racing for the last unit cannot both succeed: the loser
matches zero rows and raises InsufficientStockError. Nothing here commits;
the caller's transaction decides whether the decrement and its ledger entry
survive.
"""

from __future__ import annotations

from ..errors import InsufficientStockError
from ..extensions import db
from ..models import InventoryTransaction, Product
from ..models.catalog import INVENTORY_TX_PURCHASE


def decrement_stock(product_id: int, quantity: int, *, product_name: str) -> int:
    """Atomically take `quantity` units. Returns the remaining quantity."""
    matched = db.session.query(Product).filter(
        Product.id == product_id,
        Product.quantity >= quantity,
    ).update(
        {Product.quantity: Product.quantity - quantity},
        synchronize_session="evaluate",
    )
    if matched != 1:
        raise InsufficientStockError(product_name)

    return db.session.query(Product.quantity).filter(Product.id == product_id).scalar()


def record_purchase(product_id: int, quantity: int, *, user_id: int, order_id: int) -> InventoryTransaction:
    entry = InventoryTransaction(
        product_id=product_id,
        user_id=user_id,
        order_id=order_id,
        type=INVENTORY_TX_PURCHASE,
        quantity_change=-quantity,
        note=f"Order #{order_id}",
    )
    db.session.add(entry)
    return entry


def list_transactions(product_id: int) -> list[InventoryTransaction]:
    """Ledger for one product, newest first."""
    return db.session.query(InventoryTransaction).filter(
        InventoryTransaction.product_id == product_id,
    ).order_by(InventoryTransaction.id.desc()).all()


def is_low_stock(quantity: int, threshold: int) -> bool:
    return quantity <= threshold
