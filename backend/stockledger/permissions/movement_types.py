# Overview: Movement type constants and the sign convention applied to each type.


class MovementType:
    """Closed set of stock movement types stored in inventory_movements.type."""
    SALE_OFFLINE = "SALE_OFFLINE"
    RETURN = "RETURN"
    CANCEL_SALE = "CANCEL_SALE"
    LOSS = "LOSS"
    ADJUSTMENT = "ADJUSTMENT"


MOVEMENT_TYPES = (
    MovementType.SALE_OFFLINE,
    MovementType.RETURN,
    MovementType.CANCEL_SALE,
    MovementType.LOSS,
    MovementType.ADJUSTMENT,
)


class Direction:
    """How the caller's quantity is turned into the stored signed qty."""
    OUTBOUND = "OUTBOUND"        # stored as -abs(qty)
    INBOUND = "INBOUND"          # stored as +abs(qty)
    PASSTHROUGH = "PASSTHROUGH"  # stored as given (signed)


MOVEMENT_DIRECTIONS = {
    MovementType.SALE_OFFLINE: Direction.OUTBOUND,
    MovementType.LOSS: Direction.OUTBOUND,
    MovementType.RETURN: Direction.INBOUND,
    MovementType.CANCEL_SALE: Direction.INBOUND,
    MovementType.ADJUSTMENT: Direction.PASSTHROUGH,
}


def is_valid_movement_type(movement_type) -> bool:
    return movement_type in MOVEMENT_DIRECTIONS


def signed_quantity(movement_type: str, qty: int) -> int:
    """
    Convert a caller-supplied quantity into the signed ledger quantity.

    Raises KeyError for an unknown movement type.
    """
    direction = MOVEMENT_DIRECTIONS[movement_type]
    if direction == Direction.OUTBOUND:
        return -abs(qty)
    if direction == Direction.INBOUND:
        return abs(qty)
    return qty
