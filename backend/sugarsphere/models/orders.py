from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z


class Order(db.Model):
    """
    Customer order.

    Line items are price snapshots taken at creation; total_amount_cents is
    their sum and is never recomputed. status moves forward only, see
    services/order_state.py.
    """
    __tablename__ = "orders"
    __table_args__ = (
        db.Index("ix_orders_user_created", "user_id", "created_at"),
        db.Index("ix_orders_status_created", "status", "created_at"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False)

    status = db.Column(db.String(16), nullable=False, default="created")
    total_amount_cents = db.Column(db.Integer, nullable=False)
    currency = db.Column(db.String(8), nullable=False)

    # Gateway references
    charge_intent_id = db.Column(db.String(64), nullable=True, unique=True)
    payment_id = db.Column(db.String(64), nullable=True, index=True)
    payment_signature = db.Column(db.String(128), nullable=True)

    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())
    updated_at = db.Column(
        db.DateTime(timezone=True),
        nullable=False,
        server_default=db.func.now(),
        onupdate=db.func.now(),
    )

    user = db.relationship("User", backref=db.backref("orders", lazy="dynamic"))
    items = db.relationship(
        "OrderItem",
        backref="order",
        lazy="selectin",
        order_by="OrderItem.id",
        cascade="all, delete-orphan",
    )

    def __repr__(self) -> str:
        return f"<Order id={self.id} status={self.status} total={self.total_amount_cents}>"

    def to_dict(self, *, include_user: bool = False) -> dict:
        data = {
            "id": self.id,
            "userId": self.user_id,
            "status": self.status,
            "items": [item.to_dict() for item in self.items],
            "totalAmountCents": self.total_amount_cents,
            "currency": self.currency,
            "chargeIntentId": self.charge_intent_id,
            "paymentId": self.payment_id,
            "createdAt": to_utc_z(self.created_at),
            "updatedAt": to_utc_z(self.updated_at),
        }
        if include_user and self.user is not None:
            data["user"] = self.user.to_summary()
        return data


class OrderItem(db.Model):
    __tablename__ = "order_items"
    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(db.Integer, db.ForeignKey("orders.id"), nullable=False, index=True)
    product_id = db.Column(db.Integer, db.ForeignKey("products.id"), nullable=False, index=True)

    # Snapshots at order creation
    name = db.Column(db.String(100), nullable=False)
    unit_price_cents = db.Column(db.Integer, nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    subtotal_cents = db.Column(db.Integer, nullable=False)

    def to_dict(self) -> dict:
        return {
            "productId": self.product_id,
            "name": self.name,
            "unitPriceCents": self.unit_price_cents,
            "quantity": self.quantity,
            "subtotalCents": self.subtotal_cents,
        }
