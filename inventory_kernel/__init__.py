"""
Inventory Kernel

Stock primitives shared by the inventory modules:
- Per-store inventory balances mutated only under row locks
- An append-only movement ledger
- Tenant-scoped reference data (periods, currencies, products, stores)
- Typed errors and structured logging
"""

__version__ = "0.1.0"
