# Overview: Service-layer operations for the stock movement ledger; the single write path for stock.

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime

from flask import current_app
from sqlalchemy import and_, or_
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..models import InventoryMovement, Product
from ..permissions import (
    MovementType,
    PermissionDeniedError,
    is_valid_movement_type,
    require_movement_permission,
    signed_quantity,
)
from .audit_service import AuditAction, AuditEntity, record_audit_event
from .concurrency import lock_for_update, run_in_transaction
from ..validation import MAX_MOVEMENT_QTY, MAX_PRICE_CENTS
"""
Stock Ledger Invariants (authoritative)

- inventory_movements is append-only: rows are never updated or deleted.
- Product.stock_cached == SUM(qty) over the product's movements, at all times.
- A single movement may never drive stock_cached below zero; such a movement
  is rejected in full (no row, balance untouched).
- The sign of qty is derived from the movement type (see
  permissions.movement_types); only ADJUSTMENT keeps the caller's sign.
- ADJUSTMENT rows always carry a non-empty note (the reason).
- A SALE_OFFLINE row is reversed by at most one CANCEL_SALE row, linked through
  reverses_movement_id (unique).

Write path:
- The role policy is checked before any database access.
- "lock product -> compute balance -> insert row -> update stock_cached" runs in
  one transaction (run_in_transaction); any error rolls all of it back.
- Audit log entries are written after commit and may fail independently.
"""


MAX_NOTE_LENGTH = 500


class MovementError(Exception):
    """Base class for ledger rule violations."""

    code = "MovementError"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class ProductNotFoundError(MovementError):
    code = "ProductNotFound"


class ProductInactiveError(MovementError):
    code = "ProductInactive"


class InsufficientStockError(MovementError):
    code = "InsufficientStock"


class AlreadyCancelledError(MovementError):
    code = "AlreadyCancelled"


class ReasonRequiredError(MovementError):
    code = "ReasonRequired"


class MovementNotFoundError(MovementError):
    code = "MovementNotFound"


class InvalidMovementTypeError(MovementError):
    code = "InvalidMovementType"


class InvalidMovementError(MovementError):
    code = "InvalidMovement"


class InvalidQuantityError(InvalidMovementError):
    code = "InvalidQuantity"


@dataclass(frozen=True)
class MovementRequest:
    """One requested movement, as supplied by the caller (qty unsigned except ADJUSTMENT)."""
    product_id: int
    movement_type: str
    qty: int
    unit_price_cents: int | None = None
    note: str | None = None
    reverses_movement_id: int | None = None


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def _clean_note(note: str | None) -> str | None:
    if note is None:
        return None
    note = str(note).strip()
    return note or None


def _validate_request(req: MovementRequest, actor_role: str | None) -> MovementRequest:
    """
    Checks that need no database access. The role policy runs before
    anything that depends on product or stock state.
    """
    if not is_valid_movement_type(req.movement_type):
        raise InvalidMovementTypeError(
            f"Unknown movement type: {req.movement_type}",
            details={"type": req.movement_type},
        )

    require_movement_permission(actor_role, req.movement_type)

    if not _is_int(req.qty):
        raise InvalidQuantityError("Quantity must be an integer", details={"qty": req.qty})

    if req.movement_type == MovementType.ADJUSTMENT:
        if req.qty == 0:
            raise InvalidQuantityError("Adjustment quantity must be non-zero", details={"qty": req.qty})
    elif req.qty <= 0:
        raise InvalidQuantityError("Quantity must be positive", details={"qty": req.qty})

    if abs(req.qty) > MAX_MOVEMENT_QTY:
        raise InvalidQuantityError(
            f"Quantity cannot exceed {MAX_MOVEMENT_QTY}",
            details={"qty": req.qty, "max": MAX_MOVEMENT_QTY},
        )

    if req.unit_price_cents is not None:
        if (
            not _is_int(req.unit_price_cents)
            or req.unit_price_cents < 0
            or req.unit_price_cents > MAX_PRICE_CENTS
        ):
            raise InvalidQuantityError(
                f"unit_price_cents must be an integer between 0 and {MAX_PRICE_CENTS}",
                details={"unit_price_cents": req.unit_price_cents},
            )

    note = _clean_note(req.note)
    if note is not None and len(note) > MAX_NOTE_LENGTH:
        raise InvalidMovementError(f"Note exceeds max length {MAX_NOTE_LENGTH}")

    if req.movement_type == MovementType.ADJUSTMENT and note is None:
        raise ReasonRequiredError("Reason is required for stock adjustments")

    if req.movement_type == MovementType.CANCEL_SALE and req.reverses_movement_id is None:
        raise InvalidMovementTypeError(
            "CANCEL_SALE movements must reference the sale they cancel (reverses_movement_id)",
            details={"type": req.movement_type},
        )
    if req.movement_type != MovementType.CANCEL_SALE and req.reverses_movement_id is not None:
        raise InvalidMovementError(
            "reverses_movement_id is only valid on CANCEL_SALE movements",
            details={"type": req.movement_type, "reverses_movement_id": req.reverses_movement_id},
        )

    return replace(req, note=note)


def _get_product_locked(product_id: int, *, require_active: bool = True) -> Product:
    product = lock_for_update(db.session.query(Product).filter_by(id=product_id)).first()
    if product is None:
        raise ProductNotFoundError("Product not found", details={"product_id": product_id})
    if require_active and not product.is_active:
        raise ProductInactiveError(
            "Cannot create movements for inactive products",
            details={"product_id": product_id},
        )
    return product


def _append_movement_locked(
    *,
    product: Product,
    movement_type: str,
    signed_qty: int,
    unit_price_cents: int | None,
    note: str | None,
    actor_id: int | None,
    reverses_movement_id: int | None = None,
) -> InventoryMovement:
    """
    Append one ledger row and move the cached balance with it.

    Caller holds the product row lock and owns the transaction.
    """
    new_stock = product.stock_cached + signed_qty
    if new_stock < 0:
        available = product.stock_cached
        requested = abs(signed_qty)
        raise InsufficientStockError(
            f"Insufficient stock: available {available}, requested {requested}",
            details={"product_id": product.id, "available": available, "requested": requested},
        )

    movement = InventoryMovement(
        product_id=product.id,
        type=movement_type,
        qty=signed_qty,
        unit_price_cents=unit_price_cents,
        note=note,
        actor_id=actor_id,
        reverses_movement_id=reverses_movement_id,
    )
    db.session.add(movement)
    product.stock_cached = new_stock
    db.session.flush()
    return movement


def _cancel_sale_locked(
    movement_id: int,
    *,
    actor_id: int | None,
    expected_qty: int | None = None,
    expected_product_id: int | None = None,
) -> InventoryMovement:
    original = db.session.get(InventoryMovement, movement_id)
    if original is None:
        raise MovementNotFoundError("Movement not found", details={"movement_id": movement_id})

    if original.type != MovementType.SALE_OFFLINE:
        raise InvalidMovementTypeError(
            "Can only cancel SALE_OFFLINE movements",
            details={"movement_id": movement_id, "type": original.type},
        )

    if expected_product_id is not None and expected_product_id != original.product_id:
        raise InvalidMovementError(
            "Cancellation product does not match the original sale",
            details={
                "movement_id": original.id,
                "product_id": expected_product_id,
                "sale_product_id": original.product_id,
            },
        )

    existing = db.session.query(InventoryMovement).filter_by(
        type=MovementType.CANCEL_SALE,
        reverses_movement_id=original.id,
    ).first()
    if existing is not None:
        raise AlreadyCancelledError(
            "Sale already cancelled",
            details={"movement_id": original.id, "cancellation_id": existing.id},
        )

    qty = abs(original.qty)
    if expected_qty is not None and abs(expected_qty) != qty:
        raise InvalidQuantityError(
            f"Cancellation quantity must match the original sale ({qty})",
            details={"movement_id": original.id, "expected": qty, "qty": expected_qty},
        )

    product = _get_product_locked(original.product_id)

    return _append_movement_locked(
        product=product,
        movement_type=MovementType.CANCEL_SALE,
        signed_qty=signed_quantity(MovementType.CANCEL_SALE, qty),
        unit_price_cents=original.unit_price_cents,
        note=f"Cancellation of sale movement {original.id}",
        actor_id=actor_id,
        reverses_movement_id=original.id,
    )


def _write_locked(req: MovementRequest, *, actor_id: int | None) -> InventoryMovement:
    if req.movement_type == MovementType.CANCEL_SALE:
        return _cancel_sale_locked(
            req.reverses_movement_id,
            actor_id=actor_id,
            expected_qty=req.qty,
            expected_product_id=req.product_id,
        )

    product = _get_product_locked(req.product_id)
    return _append_movement_locked(
        product=product,
        movement_type=req.movement_type,
        signed_qty=signed_quantity(req.movement_type, req.qty),
        unit_price_cents=req.unit_price_cents,
        note=req.note,
        actor_id=actor_id,
    )


def _run_write(op, *, cancelling: bool):
    try:
        return run_in_transaction(op)
    except IntegrityError as exc:
        # Lost a race against a concurrent cancellation of the same sale
        if cancelling:
            raise AlreadyCancelledError("Sale already cancelled") from exc
        raise


def _audit_movement(movement: InventoryMovement, *, action: str, actor_id: int | None, meta: dict) -> None:
    record_audit_event(
        actor_id=actor_id,
        action=action,
        entity=AuditEntity.INVENTORY_MOVEMENT,
        entity_id=movement.id,
        meta=meta,
    )


def _after_create(movement: InventoryMovement, req: MovementRequest, *, actor_id: int | None) -> None:
    if movement.type == MovementType.CANCEL_SALE:
        _after_cancel(movement, actor_id=actor_id)
        return

    _audit_movement(
        movement,
        action=AuditAction.MOVEMENT_CREATE,
        actor_id=actor_id,
        meta={
            "product_id": movement.product_id,
            "product_name": movement.product.name,
            "type": movement.type,
            "qty": req.qty,
            "signed_qty": movement.qty,
            "unit_price_cents": movement.unit_price_cents,
            "note": movement.note,
        },
    )
    current_app.logger.info(
        "Inventory movement created (movement_id=%s, product_id=%s, type=%s, qty=%s, actor_id=%s)",
        movement.id, movement.product_id, movement.type, movement.qty, actor_id,
    )


def _after_cancel(movement: InventoryMovement, *, actor_id: int | None) -> None:
    _audit_movement(
        movement,
        action=AuditAction.MOVEMENT_CANCEL,
        actor_id=actor_id,
        meta={
            "original_movement_id": movement.reverses_movement_id,
            "product_id": movement.product_id,
            "product_name": movement.product.name,
            "cancelled_qty": movement.qty,
        },
    )
    current_app.logger.info(
        "Sale movement cancelled (original_movement_id=%s, cancellation_movement_id=%s, actor_id=%s)",
        movement.reverses_movement_id, movement.id, actor_id,
    )


def create_movement(
    *,
    product_id: int,
    movement_type: str,
    qty: int,
    actor_id: int | None,
    actor_role: str | None,
    unit_price_cents: int | None = None,
    note: str | None = None,
    reverses_movement_id: int | None = None,
) -> InventoryMovement:
    """
    Record one stock movement and update the product's cached balance.

    qty is the caller's quantity: positive for every type except ADJUSTMENT,
    where it is the signed delta. CANCEL_SALE requires reverses_movement_id
    and goes through the same checks as cancel_sale_movement().

    Raises PermissionDeniedError, InvalidMovementTypeError,
    InvalidQuantityError, ReasonRequiredError, ProductNotFoundError,
    ProductInactiveError, InsufficientStockError (and, for CANCEL_SALE,
    MovementNotFoundError / AlreadyCancelledError).
    """
    req = _validate_request(
        MovementRequest(
            product_id=product_id,
            movement_type=movement_type,
            qty=qty,
            unit_price_cents=unit_price_cents,
            note=note,
            reverses_movement_id=reverses_movement_id,
        ),
        actor_role,
    )

    movement = _run_write(
        lambda: _write_locked(req, actor_id=actor_id),
        cancelling=req.movement_type == MovementType.CANCEL_SALE,
    )
    _after_create(movement, req, actor_id=actor_id)
    return movement


def create_movements_bulk(
    requests: list[MovementRequest],
    *,
    actor_id: int | None,
    actor_role: str | None,
) -> list[InventoryMovement]:
    """
    Apply several movements as one all-or-nothing batch.

    Every item is validated (including the role policy) before the database
    is touched. Items are applied in order inside a single transaction, so a
    later item sees the balance left by earlier ones; the first failure
    rolls back the whole batch. Errors carry the failing item's index in
    details["index"].
    """
    validated = []
    for index, req in enumerate(requests):
        try:
            validated.append(_validate_request(req, actor_role))
        except (MovementError, PermissionDeniedError) as exc:
            exc.details.setdefault("index", index)
            raise

    def _op():
        created = []
        for index, req in enumerate(validated):
            try:
                created.append(_write_locked(req, actor_id=actor_id))
            except MovementError as exc:
                exc.details.setdefault("index", index)
                raise
        return created

    cancelling = any(r.movement_type == MovementType.CANCEL_SALE for r in validated)
    movements = _run_write(_op, cancelling=cancelling)

    for movement, req in zip(movements, validated):
        _after_create(movement, req, actor_id=actor_id)

    current_app.logger.info(
        "Bulk movements created (count=%s, actor_id=%s, movement_ids=%s)",
        len(movements), actor_id, [m.id for m in movements],
    )
    return movements


def cancel_sale_movement(
    movement_id: int,
    *,
    actor_id: int | None,
    actor_role: str | None,
) -> InventoryMovement:
    """
    Reverse a SALE_OFFLINE movement with a compensating CANCEL_SALE entry.

    The original row is left untouched. The compensating row carries
    +abs(original.qty), the original unit price, and reverses_movement_id.
    A second cancellation of the same sale raises AlreadyCancelledError.
    """
    require_movement_permission(actor_role, MovementType.CANCEL_SALE)

    movement = _run_write(
        lambda: _cancel_sale_locked(movement_id, actor_id=actor_id),
        cancelling=True,
    )
    _after_cancel(movement, actor_id=actor_id)
    return movement


def create_stock_adjustment(
    product_id: int,
    signed_qty: int,
    reason: str | None,
    *,
    actor_id: int | None,
    actor_role: str | None,
) -> InventoryMovement:
    """
    Owner correction of a product's balance (recount, breakage, ...).

    reason is mandatory and stored as the movement note.
    """
    require_movement_permission(actor_role, MovementType.ADJUSTMENT)

    reason = _clean_note(reason)
    if reason is None:
        raise ReasonRequiredError("Reason is required for stock adjustments")

    req = _validate_request(
        MovementRequest(
            product_id=product_id,
            movement_type=MovementType.ADJUSTMENT,
            qty=signed_qty,
            note=reason,
        ),
        actor_role,
    )

    movement = _run_write(lambda: _write_locked(req, actor_id=actor_id), cancelling=False)

    _audit_movement(
        movement,
        action=AuditAction.STOCK_ADJUSTMENT,
        actor_id=actor_id,
        meta={
            "product_id": movement.product_id,
            "product_name": movement.product.name,
            "adjustment_qty": movement.qty,
            "reason": movement.note,
        },
    )
    current_app.logger.info(
        "Stock adjustment created (movement_id=%s, product_id=%s, adjustment_qty=%s, actor_id=%s)",
        movement.id, movement.product_id, movement.qty, actor_id,
    )
    return movement


def get_movement(movement_id: int) -> InventoryMovement:
    movement = db.session.get(InventoryMovement, movement_id)
    if movement is None:
        raise MovementNotFoundError("Movement not found", details={"movement_id": movement_id})
    return movement


def get_movements(
    *,
    product_id: int | None = None,
    movement_type: str | None = None,
    actor_id: int | None = None,
    start_date: datetime | None = None,
    end_date: datetime | None = None,
    cursor: int | None = None,
    limit: int = 20,
    max_limit: int = 100,
) -> dict:
    """
    Cursor-paginated movement listing, newest first.

    Ordering is (created_at desc, id desc). cursor is the id of the last
    movement of the previous page. Date bounds are inclusive.
    """
    limit = max(1, min(int(limit), max_limit))

    q = InventoryMovement.query
    if product_id is not None:
        q = q.filter(InventoryMovement.product_id == product_id)
    if movement_type:
        q = q.filter(InventoryMovement.type == movement_type)
    if actor_id is not None:
        q = q.filter(InventoryMovement.actor_id == actor_id)
    if start_date is not None:
        q = q.filter(InventoryMovement.created_at >= start_date)
    if end_date is not None:
        q = q.filter(InventoryMovement.created_at <= end_date)

    if cursor is not None:
        anchor = db.session.get(InventoryMovement, cursor)
        if anchor is None:
            raise MovementNotFoundError("Cursor movement not found", details={"cursor": cursor})
        q = q.filter(
            or_(
                InventoryMovement.created_at < anchor.created_at,
                and_(
                    InventoryMovement.created_at == anchor.created_at,
                    InventoryMovement.id < anchor.id,
                ),
            )
        )

    rows = (
        q.order_by(InventoryMovement.created_at.desc(), InventoryMovement.id.desc())
        .limit(limit + 1)
        .all()
    )

    has_more = len(rows) > limit
    if has_more:
        rows = rows[:limit]

    return {
        "movements": rows,
        "has_more": has_more,
        "next_cursor": rows[-1].id if has_more else None,
    }
