# Overview: Flask API routes for the notification inbox.

from flask import Blueprint, g

from ..services import notification_service
from ..decorators import require_auth
from ..responses import success

notifications_bp = Blueprint("notifications", __name__, url_prefix="/api/notifications")


@notifications_bp.get("")
@require_auth
def list_notifications_route():
    items, unread = notification_service.list_notifications(g.current_user.id)
    return success({
        "notifications": [item.to_dict() for item in items],
        "unreadCount": unread,
    })


@notifications_bp.post("/read/<int:notification_id>")
@require_auth
def mark_read_route(notification_id: int):
    notification = notification_service.mark_read(notification_id, g.current_user.id)
    return success(notification.to_dict(), message="Notification marked as read")


@notifications_bp.post("/read-all")
@require_auth
def mark_all_read_route():
    updated = notification_service.mark_all_read(g.current_user.id)
    return success({"updated": updated}, message="All notifications marked as read")
