"""
Transfer Request Workflow.

State machine for inter-store transfer requests.  The table below is the
single source for "which action is valid from which status"; the service
consults it through ``require_transition`` before any mutation.
"""

from dataclasses import dataclass

from inventory_kernel.exceptions import InvalidTransitionError
from inventory_kernel.logging_config import get_logger
from inventory_modules.transfers.models import RequestStatus

logger = get_logger("modules.transfers.workflows")


@dataclass(frozen=True)
class Guard:
    """A condition for a transition."""
    name: str
    description: str


@dataclass(frozen=True)
class Transition:
    """A valid state transition."""
    from_state: str
    to_state: str
    action: str
    guard: Guard | None = None
    moves_stock: bool = False


@dataclass(frozen=True)
class Workflow:
    """A state machine definition."""
    name: str
    description: str
    initial_state: str
    states: tuple[str, ...]
    transitions: tuple[Transition, ...]
    terminal_states: tuple[str, ...] = ()

    def allowed_from(self, action: str) -> frozenset[str]:
        """States from which ``action`` may fire."""
        return frozenset(t.from_state for t in self.transitions if t.action == action)

    def targets(self, action: str, from_state: str) -> frozenset[str]:
        return frozenset(
            t.to_state for t in self.transitions
            if t.action == action and t.from_state == from_state
        )


# -----------------------------------------------------------------------------
# Guards
# -----------------------------------------------------------------------------

HAS_ITEMS = Guard(
    name="has_items",
    description="Request has at least one line item",
)

ALL_PENDING_ITEMS_APPROVED = Guard(
    name="all_pending_items_approved",
    description="Every pending item has an approved quantity",
)

REASON_GIVEN = Guard(
    name="reason_given",
    description="A rejection reason was supplied",
)

STOCK_AVAILABLE = Guard(
    name="stock_available",
    description="Issuing store balance covers the issued quantity",
)

ANY_ITEM_ISSUED = Guard(
    name="any_item_issued",
    description="At least one item has issued > 0",
)

ANY_ITEM_RECEIVED = Guard(
    name="any_item_received",
    description="At least one item has received > 0",
)

ZERO_ISSUE_FULFILMENT_ENABLED = Guard(
    name="zero_issue_fulfilment_enabled",
    description="Settings allow marking fulfilled without issuing",
)

logger.info(
    "transfer_workflow_guards_defined",
    extra={
        "guards": [
            HAS_ITEMS.name,
            ALL_PENDING_ITEMS_APPROVED.name,
            REASON_GIVEN.name,
            STOCK_AVAILABLE.name,
            ANY_ITEM_ISSUED.name,
            ANY_ITEM_RECEIVED.name,
            ZERO_ISSUE_FULFILMENT_ENABLED.name,
        ],
    },
)


# -----------------------------------------------------------------------------
# Transfer Request Workflow
# -----------------------------------------------------------------------------

_S = RequestStatus

_ISSUABLE = (_S.APPROVED, _S.PARTIAL_ISSUED, _S.PARTIALLY_RECEIVED)
_RECEIVABLE = (_S.FULFILLED, _S.PARTIAL_ISSUED, _S.PARTIALLY_RECEIVED)
_REQUESTER_CANCELLABLE = (_S.DRAFT, _S.SUBMITTED, _S.APPROVED, _S.PARTIAL_ISSUED)
_RECEIVER_CANCELLABLE = (
    _S.DRAFT,
    _S.SUBMITTED,
    _S.APPROVED,
    _S.PARTIAL_ISSUED,
    _S.PARTIALLY_RECEIVED,
    _S.FULFILLED,
    _S.PARTIAL_ISSUED_CANCELLED,
)

TRANSFER_REQUEST_WORKFLOW = Workflow(
    name="store_transfer_request",
    description="Inter-store stock transfer request",
    initial_state=_S.DRAFT.value,
    states=tuple(s.value for s in RequestStatus),
    terminal_states=(
        _S.REJECTED.value,
        _S.CANCELLED.value,
        _S.PARTIAL_ISSUED_CANCELLED.value,
        _S.PARTIALLY_RECEIVED_CANCELLED.value,
        _S.FULLY_RECEIVED.value,
    ),
    transitions=(
        Transition(_S.DRAFT.value, _S.DRAFT.value, action="update"),
        Transition(_S.DRAFT.value, _S.DRAFT.value, action="delete"),
        Transition(_S.DRAFT.value, _S.SUBMITTED.value, action="submit", guard=HAS_ITEMS),
        Transition(_S.SUBMITTED.value, _S.SUBMITTED.value, action="approve_item"),
        Transition(
            _S.SUBMITTED.value, _S.APPROVED.value,
            action="approve", guard=ALL_PENDING_ITEMS_APPROVED,
        ),
        Transition(_S.SUBMITTED.value, _S.REJECTED.value, action="reject", guard=REASON_GIVEN),
        Transition(_S.SUBMITTED.value, _S.SUBMITTED.value, action="reject_item", guard=REASON_GIVEN),
        Transition(_S.APPROVED.value, _S.APPROVED.value, action="reject_item", guard=REASON_GIVEN),
        *(
            Transition(src.value, dst.value, action="issue", guard=STOCK_AVAILABLE, moves_stock=True)
            for src in _ISSUABLE
            for dst in (_S.PARTIAL_ISSUED, _S.FULFILLED)
        ),
        Transition(
            _S.APPROVED.value, _S.FULFILLED.value,
            action="mark_fulfilled", guard=ZERO_ISSUE_FULFILMENT_ENABLED,
        ),
        *(
            Transition(src.value, dst.value, action="receive", moves_stock=True)
            for src in _RECEIVABLE
            for dst in (_S.PARTIALLY_RECEIVED, _S.FULLY_RECEIVED)
        ),
        *(
            Transition(src.value, _S.CANCELLED.value, action="cancel")
            for src in _REQUESTER_CANCELLABLE
        ),
        *(
            Transition(src.value, _S.PARTIAL_ISSUED_CANCELLED.value, action="cancel", guard=ANY_ITEM_ISSUED)
            for src in _REQUESTER_CANCELLABLE
        ),
        *(
            Transition(src.value, _S.CANCELLED.value, action="cancel_receipt")
            for src in _RECEIVER_CANCELLABLE
        ),
        *(
            Transition(
                src.value, _S.PARTIALLY_RECEIVED_CANCELLED.value,
                action="cancel_receipt", guard=ANY_ITEM_RECEIVED, moves_stock=True,
            )
            for src in _RECEIVER_CANCELLABLE
        ),
    ),
)

logger.info(
    "transfer_request_workflow_registered",
    extra={
        "workflow_name": TRANSFER_REQUEST_WORKFLOW.name,
        "state_count": len(TRANSFER_REQUEST_WORKFLOW.states),
        "transition_count": len(TRANSFER_REQUEST_WORKFLOW.transitions),
        "initial_state": TRANSFER_REQUEST_WORKFLOW.initial_state,
    },
)


def can_transition(status: RequestStatus | str, action: str) -> bool:
    value = status.value if isinstance(status, RequestStatus) else status
    return value in TRANSFER_REQUEST_WORKFLOW.allowed_from(action)


def require_transition(request_id: object, status: RequestStatus | str, action: str) -> None:
    """Raise ``InvalidTransitionError`` unless ``action`` may fire from ``status``."""
    if not can_transition(status, action):
        value = status.value if isinstance(status, RequestStatus) else status
        raise InvalidTransitionError(str(request_id), value, action)


def require_target(
    request_id: object, action: str, from_status: RequestStatus, to_status: RequestStatus
) -> None:
    """Raise if the derived ``to_status`` is not a declared target of the transition."""
    if to_status.value not in TRANSFER_REQUEST_WORKFLOW.targets(action, from_status.value):
        raise InvalidTransitionError(str(request_id), from_status.value, f"{action} into {to_status.value}")
