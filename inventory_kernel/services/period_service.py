"""
PeriodService -- tenant accounting periods.

Responsibility:
    Supplies the tenant's currently-open accounting period.  Every stock
    movement is stamped with it; posting a movement without one fails with
    ``NoOpenPeriodError`` and the enclosing unit rolls back.

Invariants enforced:
    - At most one current period per tenant (``set_current`` clears the flag
      on every other period of the tenant).
    - Flush-only: never commits or rolls back the session.

Failure modes:
    - NoOpenPeriodError: no current open period for the tenant.
    - ValueError: start_date after end_date, unknown period code, or closing
      a closed period.
"""

from datetime import date
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import PeriodInfo
from inventory_kernel.exceptions import NoOpenPeriodError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.period import AccountingPeriod, PeriodStatus
from inventory_kernel.services.base import BaseService

logger = get_logger("services.period")


class PeriodService(BaseService[AccountingPeriod]):
    """
    Service for accounting period lookup and lifecycle.

    Non-goals:
        - Does NOT call ``session.commit()``.
        - Does NOT run period-close procedures (outside this package).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def create_period(
        self,
        tenant_id: UUID,
        period_code: str,
        name: str,
        start_date: date,
        end_date: date,
        actor_id: UUID,
        make_current: bool = False,
    ) -> PeriodInfo:
        """
        Create an open accounting period for a tenant.

        Raises:
            ValueError: if start_date is after end_date.
        """
        if start_date > end_date:
            raise ValueError(
                f"Period {period_code}: start_date {start_date} is after end_date {end_date}"
            )

        period = AccountingPeriod(
            tenant_id=tenant_id,
            period_code=period_code,
            name=name,
            start_date=start_date,
            end_date=end_date,
            status=PeriodStatus.OPEN.value,
            is_current=False,
            created_by_id=actor_id,
        )
        self.session.add(period)
        self.session.flush()

        logger.info(
            "period_created",
            extra={
                "tenant_id": str(tenant_id),
                "period_code": period_code,
                "start_date": str(start_date),
                "end_date": str(end_date),
            },
        )

        if make_current:
            return self.set_current(tenant_id, period_code, actor_id)
        return period.to_dto()

    def set_current(self, tenant_id: UUID, period_code: str, actor_id: UUID) -> PeriodInfo:
        """Mark ``period_code`` as the tenant's current period."""
        period = self._get_by_code(tenant_id, period_code)
        self.session.execute(
            update(AccountingPeriod)
            .where(
                AccountingPeriod.tenant_id == tenant_id,
                AccountingPeriod.id != period.id,
            )
            .values(is_current=False)
        )
        period.is_current = True
        period.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "period_set_current",
            extra={"tenant_id": str(tenant_id), "period_code": period_code},
        )
        return period.to_dto()

    def close_period(self, tenant_id: UUID, period_code: str, actor_id: UUID) -> PeriodInfo:
        """Close a period; a closed period no longer accepts movements."""
        period = self._get_by_code(tenant_id, period_code, for_update=True)
        period.close(actor_id, self._clock.now())
        self.session.flush()
        logger.info(
            "period_closed",
            extra={"tenant_id": str(tenant_id), "period_code": period_code},
        )
        return period.to_dto()

    def get_current_open_period(self, tenant_id: UUID) -> PeriodInfo:
        """
        Return the tenant's current open period.

        Raises:
            NoOpenPeriodError: if none is flagged current and open.
        """
        period = self.session.execute(
            select(AccountingPeriod).where(
                AccountingPeriod.tenant_id == tenant_id,
                AccountingPeriod.is_current.is_(True),
                AccountingPeriod.status == PeriodStatus.OPEN.value,
            )
        ).scalar_one_or_none()
        if period is None:
            logger.warning(
                "no_open_period",
                extra={"tenant_id": str(tenant_id)},
            )
            raise NoOpenPeriodError(str(tenant_id))
        return period.to_dto()

    def _get_by_code(
        self, tenant_id: UUID, period_code: str, for_update: bool = False
    ) -> AccountingPeriod:
        stmt = select(AccountingPeriod).where(
            AccountingPeriod.tenant_id == tenant_id,
            AccountingPeriod.period_code == period_code,
        )
        if for_update:
            stmt = stmt.with_for_update()
        period = self.session.execute(stmt).scalar_one_or_none()
        if period is None:
            raise ValueError(f"Period not found: {period_code}")
        return period
