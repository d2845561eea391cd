"""
CurrencyService -- tenant currencies and the default (base) currency.

The transfer workflow reads the default currency before posting any
movement; a tenant without one cannot issue, receive or return stock.
"""

from uuid import UUID

from sqlalchemy import select, update

from inventory_kernel.domain.dtos import CurrencyInfo
from inventory_kernel.exceptions import DefaultCurrencyNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.currency import CurrencyModel
from inventory_kernel.services.base import BaseService

logger = get_logger("services.currency")


class CurrencyService(BaseService[CurrencyModel]):
    """Lookup and maintenance of tenant currencies (flush-only)."""

    def create_currency(
        self,
        tenant_id: UUID,
        code: str,
        name: str,
        actor_id: UUID,
        is_default: bool = False,
    ) -> CurrencyInfo:
        """Create a currency; ``is_default`` makes it the tenant's base currency."""
        currency = CurrencyModel(
            tenant_id=tenant_id,
            code=code.upper(),
            name=name,
            is_default=False,
            created_by_id=actor_id,
        )
        self.session.add(currency)
        self.session.flush()
        if is_default:
            return self.set_default(tenant_id, currency.code, actor_id)
        return currency.to_dto()

    def set_default(self, tenant_id: UUID, code: str, actor_id: UUID) -> CurrencyInfo:
        """Make ``code`` the tenant's only default currency."""
        currency = self.session.execute(
            select(CurrencyModel).where(
                CurrencyModel.tenant_id == tenant_id,
                CurrencyModel.code == code.upper(),
            )
        ).scalar_one()
        self.session.execute(
            update(CurrencyModel)
            .where(CurrencyModel.tenant_id == tenant_id, CurrencyModel.id != currency.id)
            .values(is_default=False)
        )
        currency.is_default = True
        currency.updated_by_id = actor_id
        self.session.flush()
        logger.info(
            "default_currency_set",
            extra={"tenant_id": str(tenant_id), "currency": currency.code},
        )
        return currency.to_dto()

    def get_default_currency(self, tenant_id: UUID) -> CurrencyInfo:
        """
        Return the tenant's default currency.

        Raises:
            DefaultCurrencyNotFoundError: if none is configured.
        """
        currency = self.session.execute(
            select(CurrencyModel).where(
                CurrencyModel.tenant_id == tenant_id,
                CurrencyModel.is_default.is_(True),
            )
        ).scalar_one_or_none()
        if currency is None:
            logger.warning(
                "default_currency_missing",
                extra={"tenant_id": str(tenant_id)},
            )
            raise DefaultCurrencyNotFoundError(str(tenant_id))
        return currency.to_dto()
