"""
Module: inventory_kernel.db.base
Responsibility: Declarative base classes for all SQLAlchemy ORM models.  Provides
    the UUID primary key convention, the type annotation map for consistent
    column types, and the TrackedBase mixin for audit timestamps.
Architecture position: Kernel > DB.  Lowest-level import target within the
    kernel.  MUST NOT import from models/, services/, selectors/, domain/, or
    outer layers.

Invariants enforced:
    - UUID primary keys on every table.
    - Decimal maps to Numeric(38, 9): quantities, costs and rates are never
      stored as floats.
    - TrackedBase provides created_at, updated_at, created_by_id and
      updated_by_id on every mutable entity.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID as PyUUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """
    UUID type stored as String(36) for cross-database portability.

    Converts between Python UUID objects and their 36-character string form.
    """

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        if value is not None:
            return str(value)
        return None

    def process_result_value(self, value, dialect):
        if value is not None:
            return PyUUID(value)
        return None


class Base(DeclarativeBase):
    """
    Declarative base for all SQLAlchemy models.

    Guarantees:
        - id is always a uuid4-generated UUID stored as String(36).
        - Decimal maps to Numeric(38, 9).
        - datetime maps to DateTime(timezone=True).
        - int maps to BigInteger -- safe for monotonic sequences.
    """

    type_annotation_map: ClassVar[dict] = {
        Decimal: Numeric(38, 9),
        datetime: DateTime(timezone=True),
        PyUUID: UUIDString(),
        int: BigInteger,
    }

    id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        primary_key=True,
        default=uuid4,
    )


class TrackedBase(Base):
    """
    Abstract base with audit timestamp and actor tracking.

    Every model that inherits TrackedBase records who created and last
    modified the row, and when.  These columns are audit metadata and may
    change even on otherwise-immutable records.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        nullable=False,
    )

    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )

    created_by_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
    )

    updated_by_id: Mapped[PyUUID | None] = mapped_column(
        UUIDString(),
        nullable=True,
    )


class TenantScopedBase(TrackedBase):
    """
    Abstract base for rows owned by exactly one tenant.

    The tenant id comes from the authenticated context, never from a
    caller's payload.
    """

    __abstract__ = True

    tenant_id: Mapped[PyUUID] = mapped_column(
        UUIDString(),
        nullable=False,
        index=True,
    )


UUID = PyUUID
