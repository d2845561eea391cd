"""
MovementType -- the physical stock movements a transfer can post.

Each member's value is the registry name stored in the
``movement_types`` table.  Engines never hard-code database ids: they
receive a ``MovementTypeRegistry`` (see services/movement_type_registry.py)
resolved once at startup.
"""

from enum import Enum


class MovementType(str, Enum):
    """Movement types posted by the transfer workflow."""

    STORE_ISSUE = "Store Issue"
    STORE_RECEIPT = "Store Receipt"
    STORE_RETURN = "Store Return"


class MovementDirection(str, Enum):
    """Whether a movement adds stock to or removes stock from a store."""

    IN = "in"
    OUT = "out"


DIRECTION_BY_TYPE: dict[MovementType, MovementDirection] = {
    MovementType.STORE_ISSUE: MovementDirection.OUT,
    MovementType.STORE_RECEIPT: MovementDirection.IN,
    MovementType.STORE_RETURN: MovementDirection.IN,
}
