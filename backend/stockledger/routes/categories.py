# Overview: Flask API routes for product categories; parses input and returns JSON responses.

# backend/stockledger/routes/categories.py
"""
Category routes.

SECURITY: All routes require authentication.
- Listing and reading categories is open to STAFF and OWNER
- Create, update and delete require OWNER
"""
from flask import Blueprint, request, g

from ..services import categories_service
from ..permissions import Role
from ..validation import validate_category_payload
from ..decorators import require_auth, require_role
from .errors import DOMAIN_ERRORS, error_response


categories_bp = Blueprint("categories", __name__, url_prefix="/api/categories")


@categories_bp.get("")
@require_auth
@require_role(Role.STAFF)
def list_categories_route():
    categories = categories_service.list_categories()
    return {"categories": categories, "count": len(categories)}


@categories_bp.get("/<int:category_id>")
@require_auth
@require_role(Role.STAFF)
def get_category_route(category_id: int):
    """Category with its active products."""
    try:
        return {"category": categories_service.category_detail(category_id)}
    except DOMAIN_ERRORS as e:
        return error_response(e)


@categories_bp.post("")
@require_auth
@require_role(Role.OWNER)
def create_category_route():
    """Body: {name, slug?}. slug defaults to a lowercase-hyphenated name."""
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_category_payload(payload, partial=False)
        category = categories_service.create_category(patch, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"category": category.to_dict()}, 201


@categories_bp.patch("/<int:category_id>")
@require_auth
@require_role(Role.OWNER)
def update_category_route(category_id: int):
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_category_payload(payload, partial=True)
        category = categories_service.update_category(category_id, patch, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"category": category.to_dict()}


@categories_bp.delete("/<int:category_id>")
@require_auth
@require_role(Role.OWNER)
def delete_category_route(category_id: int):
    try:
        categories_service.delete_category(category_id, actor_id=g.current_user.id)
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"message": "Category deleted"}
