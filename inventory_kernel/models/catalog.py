"""
Module: inventory_kernel.models.catalog
Responsibility: Products and stores.  The transfer workflow treats both as
    read-only reference data; their CRUD lives outside this package.
Architecture position: Kernel > Models.
"""

from sqlalchemy import Boolean, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from inventory_kernel.db.base import TenantScopedBase
from inventory_kernel.domain.dtos import ProductInfo, StoreInfo


class Product(TenantScopedBase):
    """A stocked product and its tracking flags."""

    __tablename__ = "products"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_product_tenant_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)
    tracks_expiry: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    tracks_serial: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)

    def __repr__(self) -> str:
        return f"<Product {self.code}>"

    def to_dto(self) -> ProductInfo:
        return ProductInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            code=self.code,
            name=self.name,
            is_active=self.is_active,
            tracks_expiry=self.tracks_expiry,
            tracks_serial=self.tracks_serial,
        )


class Store(TenantScopedBase):
    """A physical store (warehouse, shop, pharmacy...)."""

    __tablename__ = "stores"

    __table_args__ = (
        UniqueConstraint("tenant_id", "code", name="uq_store_tenant_code"),
    )

    code: Mapped[str] = mapped_column(String(50), nullable=False)
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, nullable=False)

    def __repr__(self) -> str:
        return f"<Store {self.code}>"

    def to_dto(self) -> StoreInfo:
        return StoreInfo(
            id=self.id,
            tenant_id=self.tenant_id,
            code=self.code,
            name=self.name,
            is_active=self.is_active,
        )
