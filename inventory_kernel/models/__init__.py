"""ORM models for the inventory kernel."""

from inventory_kernel.models.balance import ExpiryBatch, InventoryBalance, SerialNumber
from inventory_kernel.models.catalog import Product, Store
from inventory_kernel.models.currency import CurrencyModel
from inventory_kernel.models.movement import MovementTypeRecord, StockMovement
from inventory_kernel.models.period import AccountingPeriod, PeriodStatus

__all__ = [
    "AccountingPeriod",
    "CurrencyModel",
    "ExpiryBatch",
    "InventoryBalance",
    "MovementTypeRecord",
    "PeriodStatus",
    "Product",
    "SerialNumber",
    "StockMovement",
    "Store",
]
