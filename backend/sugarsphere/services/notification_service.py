# Overview: Service-layer operations for the per-account notification inbox.

"""
Notification Fan-out

Notifications are persisted first and pushed second. When a notification is
created inside a larger unit of work (payment capture), the caller passes
commit=False and pushes with push_notifications() after its own commit, so
nothing is announced for a transaction that later rolls back.
"""

from __future__ import annotations

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import Notification, User
from ..models.auth import ROLE_ADMIN
from ..models.notifications import VALID_NOTIFICATION_TYPES
from .. import sockets

INBOX_LIMIT = 50


def create_notification(
    user_id: int,
    type_: str,
    title: str,
    message: str,
    *,
    commit: bool = True,
) -> Notification:
    if type_ not in VALID_NOTIFICATION_TYPES:
        raise ValidationError(f"Invalid notification type: {type_}")

    notification = Notification(
        user_id=user_id,
        type=type_,
        title=title,
        message=message,
        is_read=False,
    )
    db.session.add(notification)

    if commit:
        db.session.commit()
        push_notifications([notification])
    else:
        db.session.flush()
    return notification


def notify_admins(type_: str, title: str, message: str, *, commit: bool = True) -> list[Notification]:
    """One notification per active admin account."""
    admin_ids = [
        row.id for row in db.session.query(User.id).filter(
            User.role == ROLE_ADMIN,
            User.is_active.is_(True),
        ).all()
    ]
    created = [
        create_notification(admin_id, type_, title, message, commit=False)
        for admin_id in admin_ids
    ]
    if commit:
        db.session.commit()
        push_notifications(created)
    return created


def push_notifications(notifications: list[Notification]) -> None:
    for notification in notifications:
        sockets.push_to_account(notification.user_id, "notification:new", notification.to_dict())


def list_notifications(user_id: int, limit: int = INBOX_LIMIT) -> tuple[list[Notification], int]:
    """Newest first, plus the account's total unread count."""
    items = db.session.query(Notification).filter_by(user_id=user_id).order_by(
        Notification.created_at.desc(),
        Notification.id.desc(),
    ).limit(limit).all()

    unread = db.session.query(Notification).filter_by(user_id=user_id, is_read=False).count()
    return items, unread


def mark_read(notification_id: int, user_id: int) -> Notification:
    notification = db.session.query(Notification).filter_by(id=notification_id, user_id=user_id).first()
    if not notification:
        raise NotFoundError("Notification not found")

    notification.is_read = True
    db.session.commit()
    return notification


def mark_all_read(user_id: int) -> int:
    updated = db.session.query(Notification).filter_by(user_id=user_id, is_read=False).update(
        {Notification.is_read: True},
        synchronize_session=False,
    )
    db.session.commit()
    return updated
