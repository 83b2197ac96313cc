# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockledger/routes/products.py
"""
Product management routes.

SECURITY: All routes require authentication.
- Read operations are open to STAFF and OWNER
- Write operations require OWNER

stock_cached is read-only here; stock changes go through /api/movements.
"""
from flask import Blueprint, request, g

from ..services import products_service
from ..services.movement_service import create_stock_adjustment
from ..models import Product
from ..permissions import Role
from ..validation import (
    PRODUCT_POLICY,
    validate_payload,
    enforce_rules_product,
    parse_int_arg,
    ValidationError,
)
from ..decorators import require_auth, require_role
from .errors import DOMAIN_ERRORS, error_response

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
@require_auth
@require_role(Role.STAFF)
def list_products_route():
    """
    List products with optional pagination.

    Query params:
    - include_inactive: "true" to include deactivated products
    - search: substring match on name or SKU
    - category_id: only products in this category
    - page: int (optional) - page number (1-indexed). If omitted, returns all items.
    - per_page: int (optional) - items per page (default 20, max 100)
    """
    try:
        page = parse_int_arg(request.args, "page", minimum=1)
        per_page = parse_int_arg(request.args, "per_page", minimum=1, maximum=100)
        category_id = parse_int_arg(request.args, "category_id")
    except ValidationError as e:
        return error_response(e)

    include_inactive = request.args.get("include_inactive", "").lower() in ("1", "true", "yes")
    return products_service.list_products(
        include_inactive=include_inactive,
        search=request.args.get("search"),
        category_id=category_id,
        page=page,
        per_page=per_page,
    )


@products_bp.get("/<int:product_id>")
@require_auth
@require_role(Role.STAFF)
def get_product_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"product": product.to_dict()}


@products_bp.post("")
@require_auth
@require_role(Role.OWNER)
def create_product_route():
    """
    Create a product. It starts at zero stock; an optional "initial_stock"
    is recorded through the ledger as an ADJUSTMENT ("Initial stock").
    """
    payload = request.get_json(silent=True) or {}
    payload = dict(payload) if isinstance(payload, dict) else {}
    initial_stock = payload.pop("initial_stock", None)

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=False)
        enforce_rules_product(patch)
        if initial_stock is not None and (
            not isinstance(initial_stock, int) or isinstance(initial_stock, bool) or initial_stock < 0
        ):
            raise ValidationError("initial_stock must be a non-negative integer")

        product = products_service.create_product(patch, actor_id=g.current_user.id)
        if initial_stock:
            create_stock_adjustment(
                product.id,
                initial_stock,
                "Initial stock",
                actor_id=g.current_user.id,
                actor_role=g.current_user.role,
            )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"product": product.to_dict()}, 201


@products_bp.patch("/<int:product_id>")
@require_auth
@require_role(Role.OWNER)
def update_product_route(product_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_payload(model=Product, payload=payload, policy=PRODUCT_POLICY, partial=True)
        enforce_rules_product(patch)
        product = products_service.update_product(product_id, patch, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"product": product.to_dict()}


@products_bp.post("/<int:product_id>/toggle-status")
@require_auth
@require_role(Role.OWNER)
def toggle_product_status_route(product_id: int):
    try:
        product = products_service.get_product(product_id)
        product = products_service.set_product_active(
            product_id, not product.is_active, actor_id=g.current_user.id
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"product": product.to_dict()}
