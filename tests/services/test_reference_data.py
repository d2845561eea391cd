"""Catalog, currency and period lookups required before any movement."""

from datetime import date
from uuid import uuid4

import pytest

from inventory_kernel.exceptions import (
    DefaultCurrencyNotFoundError,
    NoOpenPeriodError,
    ProductInactiveError,
    ProductNotFoundError,
    StoreNotFoundError,
)
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.currency_service import CurrencyService
from inventory_kernel.services.period_service import PeriodService


class TestCatalog:

    def test_product_lookup_is_tenant_scoped(self, session, world, other_tenant_id):
        catalog = CatalogService(session)
        assert catalog.get_product(world.tenant_id, world.widget.id).code == "WID"
        with pytest.raises(ProductNotFoundError):
            catalog.get_product(other_tenant_id, world.widget.id)

    def test_inactive_product(self, session, world):
        with pytest.raises(ProductInactiveError):
            CatalogService(session).require_active_product(
                world.tenant_id, world.products["retired"].id
            )

    def test_unknown_store(self, session, world):
        with pytest.raises(StoreNotFoundError):
            CatalogService(session).get_store(world.tenant_id, uuid4())

    def test_tracking_flags(self, world):
        assert world.products["dated"].tracks_expiry
        assert world.products["serial"].tracks_serial
        assert not world.widget.tracks_expiry


class TestCurrency:

    def test_default_currency(self, session, world):
        assert CurrencyService(session).get_default_currency(world.tenant_id).code == "KES"

    def test_switching_default(self, session, world):
        service = CurrencyService(session)
        service.create_currency(world.tenant_id, "usd", "US Dollar", world.actor_id, is_default=True)
        assert service.get_default_currency(world.tenant_id).code == "USD"

    def test_missing_default(self, session, other_tenant_id):
        with pytest.raises(DefaultCurrencyNotFoundError):
            CurrencyService(session).get_default_currency(other_tenant_id)


class TestPeriods:

    def test_current_open_period(self, session, world):
        period = PeriodService(session).get_current_open_period(world.tenant_id)
        assert period.id == world.period.id
        assert period.is_open

    def test_closed_period_is_not_current(self, session, world):
        service = PeriodService(session)
        service.close_period(world.tenant_id, "2024-01", world.actor_id)
        with pytest.raises(NoOpenPeriodError):
            service.get_current_open_period(world.tenant_id)

    def test_closing_twice(self, session, world):
        service = PeriodService(session)
        service.close_period(world.tenant_id, "2024-01", world.actor_id)
        with pytest.raises(ValueError, match="already closed"):
            service.close_period(world.tenant_id, "2024-01", world.actor_id)

    def test_set_current_moves_flag(self, session, world):
        service = PeriodService(session)
        service.create_period(
            world.tenant_id, "2024-02", "February 2024",
            date(2024, 2, 1), date(2024, 2, 29), world.actor_id, make_current=True,
        )
        assert service.get_current_open_period(world.tenant_id).period_code == "2024-02"

    def test_inverted_dates(self, session, world):
        with pytest.raises(ValueError, match="after end_date"):
            PeriodService(session).create_period(
                world.tenant_id, "BAD", "Bad", date(2024, 3, 2), date(2024, 3, 1), world.actor_id
            )
