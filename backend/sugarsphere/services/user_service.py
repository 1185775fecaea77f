# Overview: Admin account management with before/after audit records.

from __future__ import annotations

import json

from flask import current_app

from ..errors import NotFoundError, ValidationError
from ..extensions import db
from ..models import AuditLog, User
from ..models.auth import VALID_ROLES
from ..responses import paginate
from . import session_service

AUDIT_RESOURCE_USER = "user"


def _snapshot(user: User) -> str:
    return json.dumps(user.to_dict(), sort_keys=True)


def _audit(actor: User, action: str, user: User, before: str) -> None:
    db.session.add(AuditLog(
        actor_user_id=actor.id,
        action=action,
        resource_type=AUDIT_RESOURCE_USER,
        resource_id=user.id,
        before=before,
        after=_snapshot(user),
    ))


def get_user(user_id: int) -> User:
    user = db.session.get(User, user_id)
    if not user:
        raise NotFoundError("User not found")
    return user


def list_users(*, page: int, limit: int, role: str | None = None):
    query = db.session.query(User)
    if role:
        if role not in VALID_ROLES:
            raise ValidationError("Invalid role")
        query = query.filter(User.role == role)
    query = query.order_by(User.created_at.desc(), User.id.desc())
    return paginate(query, page=page, limit=limit)


def update_user(
    actor: User,
    user_id: int,
    *,
    name: str | None = None,
    role: str | None = None,
    is_verified: bool | None = None,
) -> User:
    user = get_user(user_id)
    if role is not None and role not in VALID_ROLES:
        raise ValidationError("Invalid role")

    before = _snapshot(user)
    if name is not None:
        user.name = name
    if role is not None:
        user.role = role
    if is_verified is not None:
        user.is_verified = is_verified

    _audit(actor, "update", user, before)
    db.session.commit()
    return user


def change_role(actor: User, user_id: int, role) -> User:
    if role not in VALID_ROLES:
        raise ValidationError("Invalid role")

    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError("Cannot change your own role")

    before = _snapshot(user)
    user.role = role
    _audit(actor, "update", user, before)
    db.session.commit()

    current_app.logger.info("Role changed: user=%s role=%s by=%s", user.id, role, actor.id)
    return user


def set_active(actor: User, user_id: int, is_active: bool) -> User:
    """Block or unblock. Blocking signs the account out everywhere."""
    user = get_user(user_id)
    if user.id == actor.id:
        raise ValidationError("Cannot block your own account")

    before = _snapshot(user)
    user.is_active = is_active
    if not is_active:
        session_service.clear_refresh_token(user)
        session_service.revoke_all_user_sessions(user.id, reason="Account blocked")

    _audit(actor, "unblock" if is_active else "block", user, before)
    db.session.commit()

    current_app.logger.info(
        "Account %s: user=%s by=%s", "unblocked" if is_active else "blocked", user.id, actor.id
    )
    return user
