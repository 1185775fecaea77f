from __future__ import annotations

from typing import Any

from flask import jsonify


def success(data: Any = None, message: str | None = None, status: int = 200):
    """Build the {"success": true, "message"?, "data"} envelope."""
    body: dict[str, Any] = {"success": True}
    if message:
        body["message"] = message
    if data is not None:
        body["data"] = data
    return jsonify(body), status


def paginate(query, *, page: int, limit: int) -> tuple[list, dict]:
    total = query.order_by(None).count()
    items = query.offset((page - 1) * limit).limit(limit).all()
    pages = (total + limit - 1) // limit if total > 0 else 0
    return items, {"page": page, "limit": limit, "total": total, "pages": pages}
