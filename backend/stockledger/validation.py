from __future__ import annotations
from datetime import datetime
from stockledger.time_utils import parse_range_bound

import re
from dataclasses import dataclass
from typing import Any

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .models import Category, InventoryMovement, User


# Maximum price: $9,999,999.99 (999,999,999 cents)
MAX_PRICE_CENTS = 999_999_999

# Bounds on a single manual stock adjustment
MAX_ADJUSTMENT_QTY = 1000

# Upper bound on the quantity of any other single movement
MAX_MOVEMENT_QTY = 1_000_000

MAX_REASON_LENGTH = 500

INT64_MIN = -(2 ** 63)
INT64_MAX = 2 ** 63 - 1

SLUG_RE = re.compile(r"^[a-z0-9-]+$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")

# Maximum number of movements accepted in one bulk request
MAX_BULK_ITEMS = 100


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: set[str]
    required_on_create: set[str] = None  # type: ignore


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={"sku", "name", "description", "price_cents", "category_id"},
    required_on_create={"name"},
)

MOVEMENT_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "type", "qty", "unit_price_cents", "note", "reverses_movement_id"},
    required_on_create={"product_id", "type", "qty"},
)

# "reason" is not a column; validate_adjust_stock_payload checks it separately
ADJUST_STOCK_POLICY = ModelValidationPolicy(
    writable_fields={"product_id", "qty"},
    required_on_create={"product_id", "qty"},
)

CATEGORY_POLICY = ModelValidationPolicy(
    writable_fields={"name", "slug"},
    required_on_create={"name"},
)

# Passwords and roles are handled by auth_service, not through this policy
USER_POLICY = ModelValidationPolicy(
    writable_fields={"email", "name"},
    required_on_create={"email"},
)


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _check_int_range(name: str, value: int) -> int:
    # INTEGER columns are signed 64-bit; larger values fail at the driver
    if value < INT64_MIN or value > INT64_MAX:
        raise ValidationError(f"{name} is out of range")
    return value


def _coerce_value(col, value: Any):
    coltype = col.type

    if value is None:
        return None

    # Integers - strict validation to reject floats and scientific notation
    if isinstance(coltype, Integer):
        # Already an int (but not bool which is a subclass of int)
        if isinstance(value, int) and not isinstance(value, bool):
            return _check_int_range(col.key, value)
        # String input - must be plain digits (with optional leading minus)
        if isinstance(value, str):
            stripped = value.strip()
            if not stripped:
                raise ValidationError(f"{col.key} must be an integer")
            # Reject scientific notation (e.g., "1e15", "1E10")
            if 'e' in stripped.lower():
                raise ValidationError(f"{col.key} must be a plain integer (scientific notation not allowed)")
            # Reject decimal points (e.g., "12.5")
            if '.' in stripped:
                raise ValidationError(f"{col.key} must be an integer (no decimals)")
            try:
                parsed = int(stripped)
            except ValueError:
                raise ValidationError(f"{col.key} must be an integer")
            return _check_int_range(col.key, parsed)
        # Reject floats explicitly
        if isinstance(value, float):
            raise ValidationError(f"{col.key} must be an integer, not a decimal")
        # Other types
        raise ValidationError(f"{col.key} must be an integer")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    required = policy.required_on_create or set()
    if not partial:
        missing = [f for f in required if f not in payload]
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    cols = _columns_by_key(model)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}")
        if k not in cols:
            raise ValidationError(f"Unknown field: {k}")

    patch: dict = {}

    for k, raw in payload.items():
        col = cols[k]

        # NULL handling
        if raw is None:
            if not col.nullable:
                raise ValidationError(f"{k} cannot be null")
            patch[k] = None
            continue

        val = _coerce_value(col, raw)

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable:
            if isinstance(val, str) and val == "":
                raise ValidationError(f"{k} cannot be blank")

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                raise ValidationError(f"{k} exceeds max length {col.type.length}")

        patch[k] = val

    return patch


def enforce_rules_product(patch: dict) -> None:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    if "price_cents" in patch and patch["price_cents"] is not None:
        price = patch["price_cents"]
        if price < 0:
            raise ValidationError("price_cents must be >= 0")
        if price > MAX_PRICE_CENTS:
            raise ValidationError(f"price_cents cannot exceed {MAX_PRICE_CENTS} (${MAX_PRICE_CENTS / 100:,.2f})")

    if "sku" in patch and patch["sku"] == "":
        patch["sku"] = None


def validate_movement_payload(payload: dict) -> dict:
    """
    Shape check for one movement. Quantity sign, type and role rules are
    enforced by the movement service.
    """
    patch = validate_payload(model=InventoryMovement, payload=payload, policy=MOVEMENT_POLICY, partial=False)
    if patch.get("type"):
        patch["type"] = patch["type"].upper()

    qty = patch.get("qty")
    if qty is not None and (qty < -MAX_MOVEMENT_QTY or qty > MAX_MOVEMENT_QTY):
        raise ValidationError(f"qty must be between -{MAX_MOVEMENT_QTY} and {MAX_MOVEMENT_QTY}")

    price = patch.get("unit_price_cents")
    if price is not None and (price < 0 or price > MAX_PRICE_CENTS):
        raise ValidationError(f"unit_price_cents must be between 0 and {MAX_PRICE_CENTS}")
    return patch


def validate_bulk_payload(payload: dict) -> list[dict]:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    items = payload.get("movements")
    if not isinstance(items, list) or not items:
        raise ValidationError("movements must be a non-empty list")
    if len(items) > MAX_BULK_ITEMS:
        raise ValidationError(f"At most {MAX_BULK_ITEMS} movements per request")

    cleaned = []
    for index, item in enumerate(items):
        try:
            cleaned.append(validate_movement_payload(item))
        except ValidationError as e:
            raise ValidationError(f"movements[{index}]: {e}") from e
    return cleaned


def validate_adjust_stock_payload(payload: dict) -> dict:
    """
    {product_id, qty, reason} -> {product_id, qty, reason}.

    An empty or missing reason is left for the service to reject
    (ReasonRequired).
    """
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    payload = dict(payload)
    reason = payload.pop("reason", None)

    patch = validate_payload(model=InventoryMovement, payload=payload, policy=ADJUST_STOCK_POLICY, partial=False)

    qty = patch.get("qty")
    if qty is None:
        raise ValidationError("qty cannot be null")
    if qty < -MAX_ADJUSTMENT_QTY or qty > MAX_ADJUSTMENT_QTY:
        raise ValidationError(f"qty must be between -{MAX_ADJUSTMENT_QTY} and {MAX_ADJUSTMENT_QTY}")

    if reason is not None:
        if not isinstance(reason, str):
            raise ValidationError("reason must be a string")
        reason = reason.strip()
        if len(reason) > MAX_REASON_LENGTH:
            raise ValidationError(f"reason exceeds max length {MAX_REASON_LENGTH}")

    patch["reason"] = reason
    return patch


def validate_category_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=Category, payload=payload, policy=CATEGORY_POLICY, partial=partial)

    if "slug" in patch:
        if not patch["slug"] or not SLUG_RE.match(patch["slug"]):
            raise ValidationError("slug must contain only lowercase letters, numbers, and hyphens")
    return patch


def validate_user_payload(payload: dict, *, partial: bool) -> dict:
    patch = validate_payload(model=User, payload=payload, policy=USER_POLICY, partial=partial)

    if "email" in patch:
        patch["email"] = patch["email"].lower()
        if not EMAIL_RE.match(patch["email"]):
            raise ValidationError("email must be a valid email address")
    if patch.get("name") is not None and len(patch["name"]) < 2:
        raise ValidationError("name must be at least 2 characters")
    return patch


def parse_int_arg(args, name: str, *, minimum: int | None = None, maximum: int | None = None) -> int | None:
    """Optional integer query-string argument."""
    raw = args.get(name)
    if raw is None or raw == "":
        return None
    try:
        value = int(raw)
    except (TypeError, ValueError):
        raise ValidationError(f"{name} must be an integer")
    _check_int_range(name, value)
    if minimum is not None and value < minimum:
        raise ValidationError(f"{name} must be >= {minimum}")
    if maximum is not None and value > maximum:
        raise ValidationError(f"{name} must be <= {maximum}")
    return value


def parse_datetime_arg(args, name: str, *, end: bool = False) -> datetime | None:
    raw = args.get(name)
    if not raw:
        return None
    try:
        return parse_range_bound(raw, end=end)
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")
