"""
SequenceService -- monotonic sequence allocation via locked counter rows.

Responsibility:
    Provides strictly increasing numbers for named sequences, used for the
    per-tenant, per-day transfer reference numbers.  A dedicated counter
    table with row-level locking (``SELECT ... FOR UPDATE``) guarantees
    uniqueness under concurrent access.

Invariants enforced:
    - Counting existing rows and adding one is FORBIDDEN: the locked
      counter row is the sole source of truth for the next value.
    - The increment is only visible after the caller's unit commits;
      a rollback returns the value.

Failure modes:
    - IntegrityError: concurrent first use of a sequence (handled via
      savepoint rollback and retry).
"""

from sqlalchemy import BigInteger, String, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Mapped, Session, mapped_column

from inventory_kernel.db.base import Base
from inventory_kernel.logging_config import get_logger

logger = get_logger("services.sequence")


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    # e.g. "store_request:<tenant>:2024-01-01"
    name: Mapped[str] = mapped_column(
        String(120),
        nullable=False,
        unique=True,
    )

    current_value: Mapped[int] = mapped_column(
        BigInteger,
        nullable=False,
        default=0,
    )


class SequenceService:
    """
    Service for generating transactional sequence numbers.

    Non-goals:
        - Does NOT call ``session.commit()`` -- caller controls boundaries.

    Usage:
        seq = sequence_service.next_value("store_request:<tenant>:2024-01-01")
    """

    def __init__(self, session: Session):
        self._session = session

    def _locked_counter(self, sequence_name: str) -> SequenceCounter | None:
        return self._session.execute(
            select(SequenceCounter)
            .where(SequenceCounter.name == sequence_name)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def next_value(self, sequence_name: str) -> int:
        """
        Get the next value for a named sequence.

        Preconditions:
            - ``sequence_name`` is a non-empty string.
            - The caller is within an active unit.
        Postconditions:
            - Returns an integer > 0 strictly greater than any previously
              returned value for this name.
            - The counter row stays locked until the unit completes.
        """
        counter = self._locked_counter(sequence_name)

        if counter is None:
            # First use. A concurrent unit may insert the same row; the
            # savepoint keeps the caller's other work intact on that race.
            savepoint = self._session.begin_nested()
            try:
                counter = SequenceCounter(name=sequence_name, current_value=1)
                self._session.add(counter)
                self._session.flush()
                savepoint.commit()
                logger.debug(
                    "sequence_allocated",
                    extra={"sequence_name": sequence_name, "value": 1},
                )
                return 1
            except IntegrityError:
                logger.debug(
                    "sequence_counter_race_retry",
                    extra={"sequence_name": sequence_name},
                )
                savepoint.rollback()
                counter = self._locked_counter(sequence_name)
                if counter is None:
                    raise

        counter.current_value += 1
        self._session.flush()
        logger.debug(
            "sequence_allocated",
            extra={"sequence_name": sequence_name, "value": counter.current_value},
        )
        return counter.current_value

    def current_value(self, sequence_name: str) -> int | None:
        """Current value of a sequence without incrementing, or None."""
        counter = self._session.execute(
            select(SequenceCounter).where(SequenceCounter.name == sequence_name)
        ).scalar_one_or_none()
        return counter.current_value if counter else None

    def reset(self, sequence_name: str, value: int = 0) -> None:
        """
        Reset a sequence to a specific value.

        WARNING: tests and data migrations only.
        """
        counter = self._locked_counter(sequence_name)
        if counter is None:
            self._session.add(SequenceCounter(name=sequence_name, current_value=value))
        else:
            counter.current_value = value
        self._session.flush()
