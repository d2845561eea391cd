"""
Inventory Modules.

Workflow layers over the Inventory Kernel.  Each module contains:
- Domain models (requests, items, statuses)
- ORM tables for its own rows
- Workflows (state machines) and status reconciliation
- Configuration schema (policy and settings)
- A service that owns the unit of work

Modules:
- Transfers: inter-store stock requests, issue, receipt and reversal
"""
