# Overview: Flask API routes for admin analytics; read-only aggregations.

from flask import Blueprint, request

from ..services import analytics_service
from ..models.auth import ROLE_ADMIN
from ..decorators import require_auth, require_role
from ..responses import success

analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


@analytics_bp.get("/overview")
@require_auth
@require_role(ROLE_ADMIN)
def overview_route():
    return success(analytics_service.overview())


@analytics_bp.get("/top-products")
@require_auth
@require_role(ROLE_ADMIN)
def top_products_route():
    return success(analytics_service.top_products())


@analytics_bp.get("/revenue")
@require_auth
@require_role(ROLE_ADMIN)
def revenue_route():
    """range: 7d | 30d | 90d (anything else is treated as 7d)."""
    return success(analytics_service.revenue(request.args.get("range")))


@analytics_bp.get("/inventory")
@require_auth
@require_role(ROLE_ADMIN)
def inventory_route():
    return success(analytics_service.inventory())
