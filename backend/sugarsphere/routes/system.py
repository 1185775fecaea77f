# backend/sugarsphere/routes/system.py
"""
System health endpoint for load balancers and deployment checks.
"""

import time
from flask import Blueprint, current_app
from sqlalchemy import text

from ..extensions import db, limiter
from ..time_utils import utcnow, to_utc_z

system_bp = Blueprint("system", __name__)
# Health checks sit outside /api and are never throttled
limiter.exempt(system_bp)


def check_database_health() -> dict:
    """Round-trip a trivial query and time it."""
    start_time = time.time()
    try:
        db.session.execute(text("SELECT 1"))
        elapsed_ms = (time.time() - start_time) * 1000
        return {"status": "healthy", "latency_ms": round(elapsed_ms, 2)}
    except Exception:
        elapsed_ms = (time.time() - start_time) * 1000
        current_app.logger.exception("Database health check failed")
        return {
            "status": "unhealthy",
            "latency_ms": round(elapsed_ms, 2),
            "error": "Database error",
        }


@system_bp.get("/health")
def health():
    database = check_database_health()
    healthy = database["status"] == "healthy"
    body = {
        "status": "ok" if healthy else "degraded",
        "timestamp": to_utc_z(utcnow()),
        "environment": current_app.config.get("APP_ENV"),
        "checks": {"database": database},
    }
    return body, 200 if healthy else 503
