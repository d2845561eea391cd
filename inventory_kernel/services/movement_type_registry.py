"""
MovementTypeRegistry -- movement type names resolved to ids once at startup.

Responsibility:
    Maps every ``MovementType`` enum member to the id of its row in
    ``movement_types``.  Built once (``load``) and injected into the
    movement ledger; the workflow never looks a movement type up by id or
    by name on its own.

Failure modes:
    - MovementTypeNotRegisteredError: a required type has no row.
"""

from __future__ import annotations

from collections.abc import Mapping
from types import MappingProxyType
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.domain.movement_types import DIRECTION_BY_TYPE, MovementType
from inventory_kernel.exceptions import MovementTypeNotRegisteredError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.movement import MovementTypeRecord

logger = get_logger("services.movement_types")

_DESCRIPTIONS: dict[MovementType, str] = {
    MovementType.STORE_ISSUE: "Stock issued from a store against a transfer request",
    MovementType.STORE_RECEIPT: "Stock received into a store against a transfer request",
    MovementType.STORE_RETURN: "Unreceived transfer stock returned to the issuing store",
}


class MovementTypeRegistry:
    """Immutable MovementType -> movement_types.id mapping."""

    def __init__(self, ids: Mapping[MovementType, UUID]):
        missing = [t.value for t in MovementType if t not in ids]
        if missing:
            raise MovementTypeNotRegisteredError(", ".join(missing))
        self._ids = MappingProxyType(dict(ids))

    def id_for(self, movement_type: MovementType) -> UUID:
        return self._ids[movement_type]

    def __contains__(self, movement_type: object) -> bool:
        return movement_type in self._ids

    def __repr__(self) -> str:
        return f"<MovementTypeRegistry {sorted(t.value for t in self._ids)}>"

    @classmethod
    def load(cls, session: Session) -> MovementTypeRegistry:
        """
        Resolve every MovementType by name.

        Raises:
            MovementTypeNotRegisteredError: if any name has no row.
        """
        rows = session.execute(
            select(MovementTypeRecord).where(
                MovementTypeRecord.name.in_([t.value for t in MovementType])
            )
        ).scalars().all()
        by_name = {row.name: row.id for row in rows}

        ids: dict[MovementType, UUID] = {}
        for movement_type in MovementType:
            if movement_type.value not in by_name:
                logger.error(
                    "movement_type_missing",
                    extra={"movement_type": movement_type.value},
                )
                raise MovementTypeNotRegisteredError(movement_type.value)
            ids[movement_type] = by_name[movement_type.value]

        logger.info(
            "movement_type_registry_loaded",
            extra={"movement_types": sorted(by_name)},
        )
        return cls(ids)

    @staticmethod
    def ensure_defaults(session: Session, actor_id: UUID) -> None:
        """Insert any missing movement type rows (flush-only)."""
        existing = set(
            session.execute(select(MovementTypeRecord.name)).scalars().all()
        )
        for movement_type in MovementType:
            if movement_type.value in existing:
                continue
            session.add(
                MovementTypeRecord(
                    name=movement_type.value,
                    direction=DIRECTION_BY_TYPE[movement_type].value,
                    description=_DESCRIPTIONS[movement_type],
                    created_by_id=actor_id,
                )
            )
            logger.info(
                "movement_type_seeded",
                extra={"movement_type": movement_type.value},
            )
        session.flush()
