# Overview: Role policy package.
# Re-exports the movement type table and the role -> movement type policy.

from .movement_types import (
    MovementType,
    MOVEMENT_TYPES,
    Direction,
    MOVEMENT_DIRECTIONS,
    is_valid_movement_type,
    signed_quantity,
)
from .roles import (
    Role,
    ROLES,
    ROLE_RANK,
    MOVEMENT_TYPES_BY_ROLE,
    PermissionDeniedError,
    allowed_movement_types,
    can_create_movement,
    require_movement_permission,
    role_at_least,
)

__all__ = [
    "MovementType",
    "MOVEMENT_TYPES",
    "Direction",
    "MOVEMENT_DIRECTIONS",
    "is_valid_movement_type",
    "signed_quantity",
    "Role",
    "ROLES",
    "ROLE_RANK",
    "MOVEMENT_TYPES_BY_ROLE",
    "PermissionDeniedError",
    "allowed_movement_types",
    "can_create_movement",
    "require_movement_permission",
    "role_at_least",
]
