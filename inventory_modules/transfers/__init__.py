"""
Transfers Module (``inventory_modules.transfers``).

Responsibility
--------------
Inter-store stock transfer requests: a requesting store asks an issuing
store for stock, the request is approved line by line, issued in one or
more batches and received in one or more batches.  Either side may cancel;
a receiver-side cancel after partial receipt returns the unreceived stock
to the issuing store.

Architecture
------------
Layer: **Modules** -- request and item tables, the state machine, pure
status reconciliation, the issue/receive and reversal engines, and one
service that owns the unit of work.  Balance locking, the movement ledger
and accounting periods come from ``inventory_kernel``; this package imports
the kernel, never the reverse.

Invariants
----------
- Each service method owns its transaction boundary (commit / rollback).
- Request status is derived from item counters after every stock change.
- Every quantity change on an item is appended to the quantity change log;
  every stock change is appended to the movement ledger.
- No inventory balance goes negative.

Failure Modes
-------------
- Typed ``InventoryError`` subclasses from ``inventory_kernel.exceptions``;
  any exception rolls the unit back before re-raising.
"""

from inventory_modules.transfers.config import ReversalPolicy, TransferConfig
from inventory_modules.transfers.models import (
    ApprovalLine,
    ChangeKind,
    IssueLine,
    ItemStatus,
    NewTransferItem,
    NewTransferRequest,
    Priority,
    QuantityChangeInfo,
    RequestPage,
    RequestStatus,
    TransferDirection,
    TransferEvent,
    TransferItemInfo,
    TransferRequestFilter,
    TransferRequestInfo,
    TransferRequestUpdate,
    TransferStats,
)
from inventory_modules.transfers.selectors import TransferSelector
from inventory_modules.transfers.service import (
    TransferObserver,
    TransferRequestService,
    build_transfer_service,
)
from inventory_modules.transfers.workflows import TRANSFER_REQUEST_WORKFLOW

__all__ = [
    "ApprovalLine",
    "ChangeKind",
    "IssueLine",
    "ItemStatus",
    "NewTransferItem",
    "NewTransferRequest",
    "Priority",
    "QuantityChangeInfo",
    "RequestPage",
    "RequestStatus",
    "ReversalPolicy",
    "TRANSFER_REQUEST_WORKFLOW",
    "TransferConfig",
    "TransferDirection",
    "TransferEvent",
    "TransferItemInfo",
    "TransferObserver",
    "TransferRequestFilter",
    "TransferRequestInfo",
    "TransferRequestService",
    "TransferSelector",
    "TransferStats",
    "build_transfer_service",
]
