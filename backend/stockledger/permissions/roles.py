# Overview: Static role policy; which movement types each role may create.

from .movement_types import MovementType, MOVEMENT_TYPES


class PermissionDeniedError(Exception):
    """Raised when a role is not allowed to perform an operation."""

    code = "PermissionDenied"

    def __init__(self, message: str, details: dict | None = None):
        super().__init__(message)
        self.details = details or {}


class Role:
    OWNER = "OWNER"
    STAFF = "STAFF"


ROLES = (Role.OWNER, Role.STAFF)

# Higher rank includes everything a lower rank can reach through require_role
ROLE_RANK = {
    Role.STAFF: 1,
    Role.OWNER: 2,
}

MOVEMENT_TYPES_BY_ROLE = {
    Role.STAFF: frozenset({
        MovementType.SALE_OFFLINE,
        MovementType.RETURN,
    }),
    Role.OWNER: frozenset(MOVEMENT_TYPES),
}


def allowed_movement_types(role: str | None) -> frozenset:
    """Movement types a role may create; unknown roles get nothing."""
    return MOVEMENT_TYPES_BY_ROLE.get(role, frozenset())


def can_create_movement(role: str | None, movement_type: str) -> bool:
    return movement_type in allowed_movement_types(role)


def require_movement_permission(role: str | None, movement_type: str) -> None:
    """
    Fail closed before any database access.

    Raises PermissionDeniedError naming the offending type.
    """
    if not can_create_movement(role, movement_type):
        raise PermissionDeniedError(
            f"Role {role} cannot create {movement_type} movements",
            details={"role": role, "type": movement_type},
        )


def role_at_least(role: str | None, minimum: str) -> bool:
    return ROLE_RANK.get(role, 0) >= ROLE_RANK[minimum]
