# Overview: Flask API routes for analytics; read-only aggregation over the ledger.

# backend/stockledger/routes/analytics.py
"""
Analytics routes.

SECURITY: All routes require authentication.
- Dashboard, top products and sales trend require OWNER
- Low stock list and the staff dashboard are open to STAFF
"""
from flask import Blueprint, current_app, request

from ..services import reporting_service
from ..permissions import Role
from ..validation import parse_int_arg
from ..decorators import require_auth, require_role
from .errors import DOMAIN_ERRORS, error_response


analytics_bp = Blueprint("analytics", __name__, url_prefix="/api/analytics")


def _low_stock_threshold():
    value = parse_int_arg(request.args, "threshold", minimum=0)
    if value is None:
        return current_app.config.get("LOW_STOCK_THRESHOLD", 5)
    return value


@analytics_bp.get("/dashboard")
@require_auth
@require_role(Role.OWNER)
def dashboard_route():
    try:
        return reporting_service.dashboard_metrics(low_stock_threshold=_low_stock_threshold())
    except DOMAIN_ERRORS as e:
        return error_response(e)


@analytics_bp.get("/staff-dashboard")
@require_auth
@require_role(Role.STAFF)
def staff_dashboard_route():
    """Today's counters for STAFF: products, low stock, sales and revenue."""
    try:
        return reporting_service.staff_dashboard_metrics(low_stock_threshold=_low_stock_threshold())
    except DOMAIN_ERRORS as e:
        return error_response(e)


@analytics_bp.get("/top-products")
@require_auth
@require_role(Role.OWNER)
def top_products_route():
    try:
        limit = parse_int_arg(request.args, "limit", minimum=1, maximum=100) or 10
        return {"products": reporting_service.top_products(limit=limit)}
    except DOMAIN_ERRORS as e:
        return error_response(e)


@analytics_bp.get("/low-stock")
@require_auth
@require_role(Role.STAFF)
def low_stock_route():
    try:
        threshold = _low_stock_threshold()
        return {
            "threshold": threshold,
            "products": reporting_service.low_stock_products(threshold=threshold),
        }
    except DOMAIN_ERRORS as e:
        return error_response(e)


@analytics_bp.get("/sales-trend")
@require_auth
@require_role(Role.OWNER)
def sales_trend_route():
    """Query params: days (1-366, default 30)."""
    try:
        days = parse_int_arg(request.args, "days")
        return reporting_service.sales_trend(days=30 if days is None else days)
    except DOMAIN_ERRORS as e:
        return error_response(e)
