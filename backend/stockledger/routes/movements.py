# Overview: Flask API routes for the stock movement ledger; parses input and returns JSON responses.

# backend/stockledger/routes/movements.py
"""
Stock movement routes.

SECURITY: All routes require authentication.
- Creating and listing movements is open to STAFF and OWNER; which movement
  types a role may create is decided by the role policy in the service
- Cancellation and stock adjustment require OWNER

Time semantics:
- start_date / end_date accept ISO-8601 dates or datetimes (Z/offsets allowed).
- Both bounds are inclusive; a date-only end_date covers the whole day.
"""
from flask import Blueprint, current_app, request, g

from ..services import movement_service
from ..services.movement_service import MovementRequest
from ..permissions import Role
from ..validation import (
    validate_movement_payload,
    validate_bulk_payload,
    validate_adjust_stock_payload,
    parse_int_arg,
    parse_datetime_arg,
    ValidationError,
)
from ..decorators import require_auth, require_role
from .errors import DOMAIN_ERRORS, error_response


movements_bp = Blueprint("movements", __name__, url_prefix="/api/movements")


def _to_request(patch: dict) -> MovementRequest:
    return MovementRequest(
        product_id=patch["product_id"],
        movement_type=patch["type"],
        qty=patch["qty"],
        unit_price_cents=patch.get("unit_price_cents"),
        note=patch.get("note"),
        reverses_movement_id=patch.get("reverses_movement_id"),
    )


@movements_bp.post("")
@require_auth
@require_role(Role.STAFF)
def create_movement_route():
    """
    Record one stock movement.

    Body: {product_id, type, qty, unit_price_cents?, note?, reverses_movement_id?}
    qty is positive for every type except ADJUSTMENT (signed delta).
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_movement_payload(payload)
        movement = movement_service.create_movement(
            product_id=patch["product_id"],
            movement_type=patch["type"],
            qty=patch["qty"],
            unit_price_cents=patch.get("unit_price_cents"),
            note=patch.get("note"),
            reverses_movement_id=patch.get("reverses_movement_id"),
            actor_id=g.current_user.id,
            actor_role=g.current_user.role,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"movement": movement.to_dict()}, 201


@movements_bp.get("")
@require_auth
@require_role(Role.STAFF)
def list_movements_route():
    """
    Cursor-paginated movement history, newest first.

    Query params: product_id, type, actor_id, start_date, end_date, cursor, limit (1-100).
    """
    page_max = current_app.config.get("MOVEMENTS_PAGE_MAX", 100)
    page_default = current_app.config.get("MOVEMENTS_PAGE_DEFAULT", 20)

    try:
        limit = parse_int_arg(request.args, "limit", minimum=1, maximum=page_max)
        result = movement_service.get_movements(
            product_id=parse_int_arg(request.args, "product_id"),
            movement_type=(request.args.get("type") or "").upper() or None,
            actor_id=parse_int_arg(request.args, "actor_id"),
            start_date=parse_datetime_arg(request.args, "start_date"),
            end_date=parse_datetime_arg(request.args, "end_date", end=True),
            cursor=parse_int_arg(request.args, "cursor"),
            limit=limit or page_default,
            max_limit=page_max,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {
        "movements": [m.to_dict() for m in result["movements"]],
        "has_more": result["has_more"],
        "next_cursor": result["next_cursor"],
    }


@movements_bp.get("/<int:movement_id>")
@require_auth
@require_role(Role.STAFF)
def get_movement_route(movement_id: int):
    try:
        movement = movement_service.get_movement(movement_id)
    except DOMAIN_ERRORS as e:
        return error_response(e)
    return {"movement": movement.to_dict()}


@movements_bp.post("/bulk")
@require_auth
@require_role(Role.STAFF)
def create_movements_bulk_route():
    """
    Record several movements at once (e.g. a multi-line offline sale).

    Body: {"movements": [<movement>, ...]}. All-or-nothing: the first
    failing item rolls back the batch and its index is reported in details.
    """
    payload = request.get_json(silent=True) or {}

    try:
        items = validate_bulk_payload(payload)
        movements = movement_service.create_movements_bulk(
            [_to_request(item) for item in items],
            actor_id=g.current_user.id,
            actor_role=g.current_user.role,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"movements": [m.to_dict() for m in movements], "count": len(movements)}, 201


@movements_bp.post("/<int:movement_id>/cancel")
@require_auth
@require_role(Role.OWNER)
def cancel_movement_route(movement_id: int):
    """Cancel a SALE_OFFLINE movement with a compensating CANCEL_SALE entry."""
    return _cancel_sale(movement_id)


def _cancel_sale(movement_id: int):
    try:
        movement = movement_service.cancel_sale_movement(
            movement_id,
            actor_id=g.current_user.id,
            actor_role=g.current_user.role,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"movement": movement.to_dict()}, 201


@movements_bp.post("/cancel-sale")
@require_auth
@require_role(Role.OWNER)
def cancel_sale_route():
    """Same as /<id>/cancel with the id in the body: {"movement_id": <id>}."""
    payload = request.get_json(silent=True) or {}
    movement_id = payload.get("movement_id") if isinstance(payload, dict) else None
    if not isinstance(movement_id, int) or isinstance(movement_id, bool):
        return error_response(ValidationError("movement_id must be an integer"))

    return _cancel_sale(movement_id)


@movements_bp.post("/adjust-stock")
@require_auth
@require_role(Role.OWNER)
def adjust_stock_route():
    """
    Owner correction of a product's balance.

    Body: {product_id, qty (signed, -1000..1000, non-zero), reason}
    """
    payload = request.get_json(silent=True) or {}

    try:
        patch = validate_adjust_stock_payload(payload)
        movement = movement_service.create_stock_adjustment(
            patch["product_id"],
            patch["qty"],
            patch["reason"],
            actor_id=g.current_user.id,
            actor_role=g.current_user.role,
        )
    except DOMAIN_ERRORS as e:
        return error_response(e)

    return {"movement": movement.to_dict(), "product": movement.product.to_dict()}, 201
