"""Services for the inventory kernel (write side)."""

from inventory_kernel.services.balance_repository import InventoryBalanceRepository
from inventory_kernel.services.catalog_service import CatalogService
from inventory_kernel.services.currency_service import CurrencyService
from inventory_kernel.services.movement_ledger import MovementLedgerRepository, MovementSpec
from inventory_kernel.services.movement_type_registry import MovementTypeRegistry
from inventory_kernel.services.period_service import PeriodService
from inventory_kernel.services.sequence_service import SequenceService
from inventory_kernel.services.tracking_repository import StockTrackingRepository

__all__ = [
    "CatalogService",
    "CurrencyService",
    "InventoryBalanceRepository",
    "MovementLedgerRepository",
    "MovementSpec",
    "MovementTypeRegistry",
    "PeriodService",
    "SequenceService",
    "StockTrackingRepository",
]
