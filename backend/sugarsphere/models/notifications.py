from __future__ import annotations

from ..extensions import db
from ..time_utils import to_utc_z

NOTIFICATION_ORDER = "order"
NOTIFICATION_INVENTORY = "inventory"
NOTIFICATION_SYSTEM = "system"
VALID_NOTIFICATION_TYPES = {NOTIFICATION_ORDER, NOTIFICATION_INVENTORY, NOTIFICATION_SYSTEM}


class Notification(db.Model):
    """Per-account inbox entry. Only is_read changes after creation."""
    __tablename__ = "notifications"
    __table_args__ = (
        db.Index("ix_notifications_user_read", "user_id", "is_read"),
        {"sqlite_autoincrement": True},
    )

    id = db.Column(db.Integer, primary_key=True)
    user_id = db.Column(db.Integer, db.ForeignKey("users.id"), nullable=False, index=True)
    type = db.Column(db.String(16), nullable=False)
    title = db.Column(db.String(255), nullable=False)
    message = db.Column(db.Text, nullable=False)
    is_read = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime(timezone=True), nullable=False, server_default=db.func.now())

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "userId": self.user_id,
            "type": self.type,
            "title": self.title,
            "message": self.message,
            "read": self.is_read,
            "createdAt": to_utc_z(self.created_at),
        }
