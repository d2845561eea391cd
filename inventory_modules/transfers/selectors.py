"""
TransferSelector -- read-only queries over transfer requests.

Every query is scoped to the tenant of the given context.  Returns DTOs,
never ORM rows; nothing here adds, flushes or commits.
"""

from __future__ import annotations

from datetime import UTC, date, datetime, time, timedelta
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from inventory_kernel.domain.context import TenantContext, require_context
from inventory_kernel.domain.dtos import BalanceInfo, HistoricalBalanceInfo, MovementInfo
from inventory_kernel.exceptions import InvalidFieldError, RequestNotFoundError
from inventory_kernel.selectors.balance_selector import BalanceSelector
from inventory_kernel.selectors.base import BaseSelector
from inventory_modules.transfers.config import TransferConfig
from inventory_modules.transfers.helpers import return_reference_number
from inventory_modules.transfers.models import (
    QuantityChangeInfo,
    RequestPage,
    RequestStatus,
    TransferDirection,
    TransferRequestFilter,
    TransferRequestInfo,
    TransferStats,
)
from inventory_modules.transfers.orm import QuantityChangeModel, TransferRequestModel


class TransferSelector(BaseSelector[TransferRequestModel]):
    """Listings, lookups and audit trails of transfer requests."""

    def __init__(self, session: Session, config: TransferConfig | None = None):
        super().__init__(session)
        self._config = config or TransferConfig()
        self._balances = BalanceSelector(session)

    def get(self, ctx: TenantContext, request_id: UUID) -> TransferRequestInfo:
        """
        Raises:
            RequestNotFoundError: unknown id, or owned by another tenant.
        """
        ctx = require_context(ctx)
        row = self.session.execute(
            select(TransferRequestModel).where(
                TransferRequestModel.tenant_id == ctx.tenant_id,
                TransferRequestModel.id == request_id,
            )
        ).scalar_one_or_none()
        if row is None:
            raise RequestNotFoundError(str(request_id))
        return row.to_dto()

    def list(
        self,
        ctx: TenantContext,
        filters: TransferRequestFilter | None = None,
        page: int = 1,
        limit: int | None = None,
    ) -> RequestPage:
        """Filtered requests, newest first, one page at a time."""
        ctx = require_context(ctx)
        filters = filters or TransferRequestFilter()
        if page < 1:
            raise InvalidFieldError("page", page, "must be 1 or greater")
        limit = limit or self._config.default_page_size
        if limit < 1:
            raise InvalidFieldError("limit", limit, "must be 1 or greater")
        limit = min(limit, self._config.max_page_size)

        stmt = select(TransferRequestModel).where(
            TransferRequestModel.tenant_id == ctx.tenant_id
        )
        if filters.statuses:
            stmt = stmt.where(TransferRequestModel.status.in_([s.value for s in filters.statuses]))
        if filters.exclude_statuses:
            stmt = stmt.where(
                TransferRequestModel.status.not_in([s.value for s in filters.exclude_statuses])
            )
        if filters.priorities:
            stmt = stmt.where(TransferRequestModel.priority.in_([p.value for p in filters.priorities]))
        if filters.direction is not None:
            stmt = stmt.where(TransferRequestModel.direction == filters.direction.value)
        if filters.requesting_store_ids:
            stmt = stmt.where(
                TransferRequestModel.requesting_store_id.in_(filters.requesting_store_ids)
            )
        if filters.issuing_store_ids:
            stmt = stmt.where(TransferRequestModel.issuing_store_id.in_(filters.issuing_store_ids))
        if filters.created_from is not None:
            start = datetime.combine(filters.created_from, time.min, tzinfo=UTC)
            stmt = stmt.where(TransferRequestModel.created_at >= start)
        if filters.created_to is not None:
            end = datetime.combine(filters.created_to + timedelta(days=1), time.min, tzinfo=UTC)
            stmt = stmt.where(TransferRequestModel.created_at < end)
        if filters.search:
            stmt = stmt.where(TransferRequestModel.reference_number.ilike(f"%{filters.search}%"))

        total = self.session.execute(
            select(func.count()).select_from(stmt.subquery())
        ).scalar_one()
        rows = self.session.execute(
            stmt.order_by(
                TransferRequestModel.created_at.desc(),
                TransferRequestModel.reference_number.desc(),
            )
            .offset((page - 1) * limit)
            .limit(limit)
        ).scalars().all()
        return RequestPage(
            items=tuple(row.to_dto() for row in rows),
            total=total,
            page=page,
            limit=limit,
        )

    def stats_summary(
        self,
        ctx: TenantContext,
        direction: TransferDirection | None = None,
        exclude_statuses: tuple[RequestStatus, ...] = (),
    ) -> TransferStats:
        """Number of requests per status."""
        ctx = require_context(ctx)
        stmt = (
            select(TransferRequestModel.status, func.count())
            .where(TransferRequestModel.tenant_id == ctx.tenant_id)
            .group_by(TransferRequestModel.status)
        )
        if direction is not None:
            stmt = stmt.where(TransferRequestModel.direction == direction.value)
        if exclude_statuses:
            stmt = stmt.where(
                TransferRequestModel.status.not_in([s.value for s in exclude_statuses])
            )
        counts = {RequestStatus(status): count for status, count in self.session.execute(stmt)}
        return TransferStats(counts=counts, total=sum(counts.values()))

    def item_history(self, ctx: TenantContext, item_id: UUID) -> list[QuantityChangeInfo]:
        """Quantity change log of one item, oldest first."""
        ctx = require_context(ctx)
        rows = self.session.execute(
            select(QuantityChangeModel)
            .where(
                QuantityChangeModel.tenant_id == ctx.tenant_id,
                QuantityChangeModel.item_id == item_id,
            )
            .order_by(QuantityChangeModel.sequence)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def request_history(self, ctx: TenantContext, request_id: UUID) -> list[QuantityChangeInfo]:
        """Quantity change log of every item of a request (survives draft deletion)."""
        ctx = require_context(ctx)
        rows = self.session.execute(
            select(QuantityChangeModel)
            .where(
                QuantityChangeModel.tenant_id == ctx.tenant_id,
                QuantityChangeModel.request_id == request_id,
            )
            .order_by(QuantityChangeModel.item_id, QuantityChangeModel.sequence)
        ).scalars().all()
        return [row.to_dto() for row in rows]

    def movements_for_reference(self, ctx: TenantContext, reference_number: str) -> list[MovementInfo]:
        """Issue and receipt movements posted under the request reference."""
        ctx = require_context(ctx)
        return self._balances.movements_for_reference(ctx.tenant_id, reference_number)

    def return_movements(self, ctx: TenantContext, reference_number: str) -> list[MovementInfo]:
        """Return movements of a request (``RET-<reference>``)."""
        ctx = require_context(ctx)
        return self._balances.movements_for_reference(
            ctx.tenant_id,
            return_reference_number(self._config.return_reference_prefix, reference_number),
        )

    def current_balances(
        self,
        ctx: TenantContext,
        store_id: UUID | None = None,
        product_id: UUID | None = None,
    ) -> list[BalanceInfo]:
        ctx = require_context(ctx)
        return self._balances.current_balances(ctx.tenant_id, store_id, product_id)

    def balance(self, ctx: TenantContext, store_id: UUID, product_id: UUID) -> BalanceInfo | None:
        ctx = require_context(ctx)
        return self._balances.balance(ctx.tenant_id, store_id, product_id)

    def balances_as_of(
        self, ctx: TenantContext, as_of: date, store_id: UUID | None = None
    ) -> list[HistoricalBalanceInfo]:
        """Ledger balances at the end of ``as_of`` (see ``BalanceSelector.balances_as_of``)."""
        ctx = require_context(ctx)
        return self._balances.balances_as_of(ctx.tenant_id, as_of, store_id)
