"""
CatalogService -- read-only product and store lookups for the workflow.

Product and store CRUD belong to the surrounding back office; the create
helpers here exist for seeding and tests.
"""

from uuid import UUID

from sqlalchemy import select

from inventory_kernel.domain.dtos import ProductInfo, StoreInfo
from inventory_kernel.exceptions import (
    ProductInactiveError,
    ProductNotFoundError,
    StoreNotFoundError,
)
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.catalog import Product, Store
from inventory_kernel.services.base import BaseService

logger = get_logger("services.catalog")


class CatalogService(BaseService[Product]):
    """Tenant-scoped product and store lookups."""

    def get_product(self, tenant_id: UUID, product_id: UUID) -> ProductInfo:
        """
        Raises:
            ProductNotFoundError: if the product does not exist for the tenant.
        """
        product = self.session.execute(
            select(Product).where(Product.tenant_id == tenant_id, Product.id == product_id)
        ).scalar_one_or_none()
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product.to_dto()

    def require_active_product(self, tenant_id: UUID, product_id: UUID) -> ProductInfo:
        """Return the product, rejecting unknown or inactive ones."""
        product = self.get_product(tenant_id, product_id)
        if not product.is_active:
            raise ProductInactiveError(str(product_id))
        return product

    def get_store(self, tenant_id: UUID, store_id: UUID) -> StoreInfo:
        """
        Raises:
            StoreNotFoundError: if the store does not exist for the tenant.
        """
        store = self.session.execute(
            select(Store).where(Store.tenant_id == tenant_id, Store.id == store_id)
        ).scalar_one_or_none()
        if store is None:
            raise StoreNotFoundError(str(store_id))
        return store.to_dto()

    def create_product(
        self,
        tenant_id: UUID,
        code: str,
        name: str,
        actor_id: UUID,
        tracks_expiry: bool = False,
        tracks_serial: bool = False,
        is_active: bool = True,
    ) -> ProductInfo:
        product = Product(
            tenant_id=tenant_id,
            code=code,
            name=name,
            is_active=is_active,
            tracks_expiry=tracks_expiry,
            tracks_serial=tracks_serial,
            created_by_id=actor_id,
        )
        self.session.add(product)
        self.session.flush()
        logger.info("product_created", extra={"product_code": code})
        return product.to_dto()

    def create_store(self, tenant_id: UUID, code: str, name: str, actor_id: UUID) -> StoreInfo:
        store = Store(
            tenant_id=tenant_id,
            code=code,
            name=name,
            is_active=True,
            created_by_id=actor_id,
        )
        self.session.add(store)
        self.session.flush()
        logger.info("store_created", extra={"store_code": code})
        return store.to_dto()
