"""
Module: inventory_kernel.models.period
Responsibility: ORM persistence for tenant accounting periods.  Every stock
    movement is stamped with the tenant's current open period.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - period_code is unique per tenant.
    - At most one period per tenant is flagged ``is_current`` (enforced by
      PeriodService when switching the current period).

Failure modes:
    - NoOpenPeriodError (raised by PeriodService) when no current open period
      exists and a movement must be posted.
"""

from datetime import date, datetime
from enum import Enum
from uuid import UUID

from sqlalchemy import Boolean, Date, DateTime, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TenantScopedBase, UUIDString
from inventory_kernel.domain.dtos import PeriodInfo


class PeriodStatus(str, Enum):
    """Lifecycle status of an accounting period (OPEN -> CLOSED)."""

    OPEN = "open"
    CLOSED = "closed"


class AccountingPeriod(TenantScopedBase):
    """
    Accounting (financial) period of a tenant.

    Guarantees:
        - (tenant_id, period_code) is unique.
        - close() requires an explicit actor and clock-supplied timestamp.
    """

    __tablename__ = "accounting_periods"

    __table_args__ = (
        UniqueConstraint("tenant_id", "period_code", name="uq_period_tenant_code"),
        Index("idx_period_tenant_current", "tenant_id", "is_current"),
    )

    period_code: Mapped[str] = mapped_column(String(20), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=False)
    status: Mapped[str] = mapped_column(
        String(20),
        default=PeriodStatus.OPEN.value,
        nullable=False,
    )
    is_current: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    closed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    closed_by_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    def __repr__(self) -> str:
        return f"<AccountingPeriod {self.period_code}: {self.status}>"

    @property
    def is_open(self) -> bool:
        return self.status == PeriodStatus.OPEN.value

    def close(self, actor_id: UUID, closed_at: datetime) -> None:
        """Close the period.

        Raises: ValueError if the period is already closed.
        """
        if not self.is_open:
            raise ValueError(f"Period {self.period_code} is already closed")
        self.status = PeriodStatus.CLOSED.value
        self.is_current = False
        self.closed_at = closed_at
        self.closed_by_id = actor_id
        self.updated_by_id = actor_id

    def to_dto(self) -> PeriodInfo:
        return PeriodInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            period_code=self.period_code,
            name=self.name,
            start_date=self.start_date,
            end_date=self.end_date,
            status=self.status,
            is_current=self.is_current,
        )
