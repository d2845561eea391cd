"""
Status Reconciliation (``inventory_modules.transfers.reconciliation``).

Responsibility
--------------
Pure functions deriving item and request statuses from item counters, the
receipt ceiling of an item, and the item counter invariant check.

Architecture position
---------------------
**Modules layer, pure** -- ZERO I/O.  Accepts anything exposing the item
counter attributes (ORM rows or ``TransferItemInfo`` snapshots), so the
same rules run inside a workflow unit and in property tests.

Invariants enforced
-------------------
* Request status is a function of the item set only; item order never
  matters.
* ``0 <= received <= issued <= approved <= requested`` with
  ``remaining = max(0, approved - issued)`` and
  ``remaining_receiving = max(0, issued - received)``; a cancelled item has
  ``remaining = 0`` and a closed item ``remaining_receiving = 0``.

Failure modes
-------------
* ``ItemInvariantError`` from ``check_item_invariants``.
"""

from __future__ import annotations

from collections.abc import Iterable
from decimal import Decimal
from typing import Protocol

from inventory_kernel.db.types import ZERO
from inventory_kernel.exceptions import ItemInvariantError
from inventory_modules.transfers.models import (
    RECEIPT_EXCLUDED_ITEM_STATUSES,
    ItemStatus,
    RequestStatus,
)


class ItemCounters(Protocol):
    id: object
    status: str
    requested_quantity: Decimal
    approved_quantity: Decimal
    issued_quantity: Decimal
    received_quantity: Decimal
    remaining_quantity: Decimal
    remaining_receiving_quantity: Decimal


def _status(item: ItemCounters) -> ItemStatus:
    return ItemStatus(item.status)


def remaining(approved: Decimal, issued: Decimal) -> Decimal:
    return max(ZERO, approved - issued)


def remaining_receiving(issued: Decimal, received: Decimal) -> Decimal:
    return max(ZERO, issued - received)


# =============================================================================
# Item statuses
# =============================================================================


def item_status_after_approval(approved: Decimal) -> ItemStatus:
    return ItemStatus.APPROVED if approved > ZERO else ItemStatus.REJECTED


def item_status_after_issue(approved: Decimal, issued: Decimal) -> ItemStatus:
    """``fulfilled`` once cumulative issued covers a positive approval."""
    if approved > ZERO and issued >= approved:
        return ItemStatus.FULFILLED
    return ItemStatus.PARTIAL_ISSUED


def item_status_after_receipt(issued: Decimal, received: Decimal) -> ItemStatus:
    if received >= issued:
        return ItemStatus.FULLY_RECEIVED
    return ItemStatus.PARTIALLY_RECEIVED


def max_receivable(item: ItemCounters, *, allow_zero_issue_fulfilled: bool = False) -> Decimal:
    """
    Ceiling for the next receipt on ``item``.

    ``issued - received`` normally.  With ``allow_zero_issue_fulfilled`` an
    item marked ``fulfilled`` with nothing issued may be received up to
    ``requested - received``.
    """
    if (
        allow_zero_issue_fulfilled
        and _status(item) == ItemStatus.FULFILLED
        and item.issued_quantity == ZERO
    ):
        return max(ZERO, item.requested_quantity - item.received_quantity)
    return remaining_receiving(item.issued_quantity, item.received_quantity)


# =============================================================================
# Request statuses
# =============================================================================


def derive_issue_status(items: Iterable[ItemCounters]) -> RequestStatus:
    """``fulfilled`` iff every item has ``issued >= approved``."""
    for item in items:
        if item.issued_quantity < item.approved_quantity:
            return RequestStatus.PARTIAL_ISSUED
    return RequestStatus.FULFILLED


def derive_receipt_status(items: Iterable[ItemCounters]) -> RequestStatus:
    """
    ``fully_received`` iff every item outside rejected/cancelled has
    received its approved quantity, otherwise ``partially_received``.
    """
    for item in items:
        if _status(item) in RECEIPT_EXCLUDED_ITEM_STATUSES:
            continue
        if item.received_quantity < item.approved_quantity:
            return RequestStatus.PARTIALLY_RECEIVED
    return RequestStatus.FULLY_RECEIVED


def derive_cancel_status(items: Iterable[ItemCounters]) -> RequestStatus:
    """Requester-side cancel."""
    if any(item.issued_quantity > ZERO for item in items):
        return RequestStatus.PARTIAL_ISSUED_CANCELLED
    return RequestStatus.CANCELLED


def derive_cancel_receipt_status(items: Iterable[ItemCounters]) -> RequestStatus:
    """Receiver-side cancel; the reversal runs iff this is not ``cancelled``."""
    if any(item.received_quantity > ZERO for item in items):
        return RequestStatus.PARTIALLY_RECEIVED_CANCELLED
    return RequestStatus.CANCELLED


_DERIVERS = {
    "issue": derive_issue_status,
    "receive": derive_receipt_status,
    "cancel": derive_cancel_status,
    "cancel_receipt": derive_cancel_receipt_status,
}


def reconcile(action: str, items: Iterable[ItemCounters]) -> RequestStatus:
    """Request status after ``action`` given the resulting items."""
    try:
        derive = _DERIVERS[action]
    except KeyError:
        raise ValueError(f"No status derivation for action: {action}") from None
    return derive(list(items))


# =============================================================================
# Invariant
# =============================================================================


def check_item_invariants(
    item: ItemCounters,
    *,
    allow_receipt_beyond_issued: bool = False,
) -> None:
    """
    Raise ``ItemInvariantError`` if the counters are out of order.

    ``allow_receipt_beyond_issued`` exempts ``received <= issued`` (and
    ``received <= approved``) for the zero-issue fulfilled receipt; the
    receipt stays bounded by ``requested``.
    """
    requested = item.requested_quantity
    approved = item.approved_quantity
    issued = item.issued_quantity
    received = item.received_quantity
    item_id = str(item.id)

    if received < ZERO or issued < ZERO or approved < ZERO:
        raise ItemInvariantError(item_id, "counters must not be negative")
    if approved > requested:
        raise ItemInvariantError(item_id, f"approved {approved} > requested {requested}")
    if issued > approved:
        raise ItemInvariantError(item_id, f"issued {issued} > approved {approved}")
    if allow_receipt_beyond_issued:
        if received > requested:
            raise ItemInvariantError(item_id, f"received {received} > requested {requested}")
    elif received > issued:
        raise ItemInvariantError(item_id, f"received {received} > issued {issued}")

    if _status(item) == ItemStatus.CANCELLED:
        expected_remaining = ZERO
    else:
        expected_remaining = remaining(approved, issued)
    if item.remaining_quantity != expected_remaining:
        raise ItemInvariantError(
            item_id,
            f"remaining {item.remaining_quantity} != {expected_remaining}",
        )

    if _status(item) == ItemStatus.CLOSED_PARTIALLY_RECEIVED:
        expected_receiving = ZERO
    else:
        expected_receiving = remaining_receiving(issued, received)
    if item.remaining_receiving_quantity != expected_receiving:
        raise ItemInvariantError(
            item_id,
            f"remaining_receiving {item.remaining_receiving_quantity} != {expected_receiving}",
        )
