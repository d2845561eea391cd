"""
Module: inventory_kernel.models.currency
Responsibility: Tenant currencies.  Exactly one currency per tenant is the
    default (base) currency used for equivalent-amount computation.
Architecture position: Kernel > Models.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TenantScopedBase
from inventory_kernel.domain.dtos import CurrencyInfo


class CurrencyModel(TenantScopedBase):
    """A currency available to a tenant."""

    __tablename__ = "currencies"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_currency_tenant_code"),
    )

    code: Mapped[str] = mapped_column(String(3), nullable=False)
    name: Mapped[str] = mapped_column(String(100), nullable=False)
    is_default: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<CurrencyModel {self.code}{' (default)' if self.is_default else ''}>"

    def to_dto(self) -> CurrencyInfo:
        return CurrencyInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            code=self.code,
            name=self.name,
            is_default=self.is_default,
        )
