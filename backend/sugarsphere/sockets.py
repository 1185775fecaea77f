# Overview: Socket.IO connection auth, room membership, and best-effort push helpers.

"""
Live push channel.

Clients connect with auth={"token": <access token>}. Every authenticated
socket joins its personal room "user:<id>"; admins also join "admin".

Pushes are fire-and-forget: failures are logged and swallowed so they can
never affect the HTTP response that triggered them.
"""

from __future__ import annotations

from flask import current_app, request
from flask_socketio import ConnectionRefusedError, join_room

from .extensions import socketio
from .services import session_service

ADMIN_ROOM = "admin"


def user_room(user_id: int) -> str:
    return f"user:{user_id}"


@socketio.on("connect")
def handle_connect(auth=None):
    token = (auth or {}).get("token") if isinstance(auth, dict) else None
    if not token:
        raise ConnectionRefusedError("Authentication required")

    user = session_service.validate_access_token(token)
    if not user:
        raise ConnectionRefusedError("Invalid token")

    join_room(user_room(user.id))
    if user.is_admin:
        join_room(ADMIN_ROOM)
    current_app.logger.info("Socket connected: user=%s role=%s sid=%s", user.id, user.role, request.sid)


@socketio.on("disconnect")
def handle_disconnect(*args):
    current_app.logger.debug("Socket disconnected: sid=%s", request.sid)


def _emit(event: str, data, room: str) -> None:
    try:
        socketio.emit(event, data, to=room)
    except Exception:
        current_app.logger.warning("Push failed: event=%s room=%s", event, room, exc_info=True)


def push_to_account(user_id: int, event: str, data) -> None:
    _emit(event, data, user_room(user_id))


def push_to_admins(event: str, data) -> None:
    _emit(event, data, ADMIN_ROOM)
