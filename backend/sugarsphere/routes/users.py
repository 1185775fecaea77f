# Overview: Flask API routes for admin account management; parses input and returns JSON responses.

from flask import Blueprint, request, g

from ..services import user_service
from ..models.auth import ROLE_ADMIN
from ..decorators import require_auth, require_role
from ..responses import success
from ..validation import json_object, optional_bool, parse_page_args, require_string, ValidationError

users_bp = Blueprint("users", __name__, url_prefix="/api/users")


@users_bp.get("")
@require_auth
@require_role(ROLE_ADMIN)
def list_users_route():
    page, limit = parse_page_args(request.args)
    users, pagination = user_service.list_users(
        page=page,
        limit=limit,
        role=request.args.get("role") or None,
    )
    return success({
        "users": [user.to_dict() for user in users],
        "pagination": pagination,
    })


@users_bp.get("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def get_user_route(user_id: int):
    return success(user_service.get_user(user_id).to_dict())


@users_bp.put("/<int:user_id>")
@require_auth
@require_role(ROLE_ADMIN)
def update_user_route(user_id: int):
    data = json_object(request.get_json(silent=True))
    name = require_string(data, "name", min_length=2, max_length=50) if "name" in data else None
    role = data.get("role")
    if role is not None and not isinstance(role, str):
        raise ValidationError("Invalid role")

    user = user_service.update_user(
        g.current_user,
        user_id,
        name=name,
        role=role,
        is_verified=optional_bool(data, "isVerified"),
    )
    return success(user.to_dict(), message="User updated successfully")


@users_bp.put("/<int:user_id>/role")
@require_auth
@require_role(ROLE_ADMIN)
def change_role_route(user_id: int):
    data = json_object(request.get_json(silent=True))
    user = user_service.change_role(g.current_user, user_id, data.get("role"))
    return success(user.to_dict(), message="User role updated successfully")


@users_bp.put("/<int:user_id>/status")
@require_auth
@require_role(ROLE_ADMIN)
def change_status_route(user_id: int):
    data = json_object(request.get_json(silent=True))
    is_active = data.get("isActive")
    if not isinstance(is_active, bool):
        raise ValidationError("isActive must be a boolean")

    user = user_service.set_active(g.current_user, user_id, is_active)
    verb = "unblocked" if is_active else "blocked"
    return success(user.to_dict(), message=f"User {verb} successfully")
