"""
Typed Exception Hierarchy for the Inventory Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

A transfer that fails halfway must tell the requester and the issuer exactly
which business rule stopped it ("cannot issue 15, only 10 available"), so
they can correct their input instead of retrying blindly.  Every error:

  1. Has a TYPED exception class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (the quantities, ids and statuses involved)

Example:
    try:
        service.issue(ctx, request_id, lines)
    except InsufficientStockError as e:
        api_response(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- ValidationError                  rejected before any mutation
    |   +-- QuantityParseError
    |   +-- QuantityExceedsLimitError
    |   +-- MissingFieldError
    |   +-- InvalidFieldError
    |   +-- EmptyRequestError
    |   +-- ProductInactiveError
    |   +-- SameStoreTransferError
    |
    +-- StateError                       rejected before any mutation
    |   +-- InvalidTransitionError
    |   +-- ItemStateError
    |   +-- ItemInvariantError
    |
    +-- InsufficientStockError           detected under lock, full rollback
    |
    +-- ReferenceDataError               missing reference data, full rollback
    |   +-- NoOpenPeriodError
    |   +-- DefaultCurrencyNotFoundError
    |   +-- MovementTypeNotRegisteredError
    |   +-- ProductNotFoundError
    |   +-- StoreNotFoundError
    |
    +-- PersistenceError                 constraint violation, full rollback
    |   +-- DuplicateReferenceError
    |   +-- IntegrityConstraintError
    |
    +-- TenantContextError
    +-- NotFoundError
    |   +-- RequestNotFoundError
    |   +-- ItemNotFoundError
    |
    +-- ImmutabilityError
        +-- ImmutabilityViolationError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                          | When Raised
----------------|-------------------------------|--------------------------------------
Validation      | QUANTITY_PARSE_ERROR          | Quantity/amount is not a clean decimal
                | QUANTITY_EXCEEDS_LIMIT        | Quantity above its permitted ceiling
                | MISSING_FIELD                 | Required field absent or blank
                | INVALID_FIELD                 | Field present but malformed
                | EMPTY_REQUEST                 | Submitting a request with no items
                | PRODUCT_INACTIVE              | Line references an inactive product
                | SAME_STORE_TRANSFER           | Requesting store == issuing store
----------------|-------------------------------|--------------------------------------
State           | INVALID_TRANSITION            | Operation not valid for request status
                | ITEM_STATE_ERROR              | Operation not valid for item status
                | ITEM_INVARIANT_VIOLATION      | Counters broke their ordering
----------------|-------------------------------|--------------------------------------
Stock           | INSUFFICIENT_STOCK            | Locked balance lower than quantity
----------------|-------------------------------|--------------------------------------
Reference       | NO_OPEN_PERIOD                | No current open accounting period
                | DEFAULT_CURRENCY_NOT_FOUND    | Tenant has no default currency
                | MOVEMENT_TYPE_NOT_REGISTERED  | Registry missing a movement type
                | PRODUCT_NOT_FOUND             | Unknown product id
                | STORE_NOT_FOUND               | Unknown store id
----------------|-------------------------------|--------------------------------------
Persistence     | DUPLICATE_REFERENCE           | Reference number already used
                | INTEGRITY_CONSTRAINT          | Other unique / foreign-key violation
----------------|-------------------------------|--------------------------------------
Context         | TENANT_CONTEXT_MISSING        | Operation without tenant context
                | REQUEST_NOT_FOUND             | Request id unknown for tenant
                | ITEM_NOT_FOUND                | Item id unknown for request
                | IMMUTABILITY_VIOLATION        | Ledger / change log row modified

===============================================================================
"""

from decimal import Decimal


class InventoryKernelError(Exception):
    """
    Base exception for all inventory kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Validation exceptions


class ValidationError(InventoryKernelError):
    """Base exception for input rejected before any mutation."""

    code: str = "VALIDATION_ERROR"


class QuantityParseError(ValidationError):
    """A quantity or amount could not be parsed into a clean decimal."""

    code: str = "QUANTITY_PARSE_ERROR"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class QuantityExceedsLimitError(ValidationError):
    """A quantity is above the ceiling permitted by the item's counters."""

    code: str = "QUANTITY_EXCEEDS_LIMIT"

    def __init__(
        self,
        operation: str,
        item_id: str,
        quantity: Decimal,
        limit: Decimal,
        limit_name: str,
    ):
        self.operation = operation
        self.item_id = item_id
        self.quantity = quantity
        self.limit = limit
        self.limit_name = limit_name
        super().__init__(
            f"Cannot {operation} {quantity} units: {limit_name} is {limit}"
        )


class MissingFieldError(ValidationError):
    """A required field is absent or blank."""

    code: str = "MISSING_FIELD"

    def __init__(self, field: str):
        self.field = field
        super().__init__(f"{field} is required")


class InvalidFieldError(ValidationError):
    """A field is present but malformed (e.g. not a UUID or a date)."""

    code: str = "INVALID_FIELD"

    def __init__(self, field: str, value: object, reason: str):
        self.field = field
        self.value = value
        self.reason = reason
        super().__init__(f"Invalid {field} {value!r}: {reason}")


class EmptyRequestError(ValidationError):
    """A request without line items cannot leave draft."""

    code: str = "EMPTY_REQUEST"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Request {request_id} has no line items")


class ProductInactiveError(ValidationError):
    """A line item references a deactivated product."""

    code: str = "PRODUCT_INACTIVE"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product {product_id} is inactive")


class SameStoreTransferError(ValidationError):
    """Requesting and issuing store are the same."""

    code: str = "SAME_STORE_TRANSFER"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(
            f"Requesting and issuing store must differ (both are {store_id})"
        )


# State exceptions


class StateError(InventoryKernelError):
    """Base exception for operations not valid in the current status."""

    code: str = "STATE_ERROR"


class InvalidTransitionError(StateError):
    """The request status does not allow the attempted operation."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, request_id: str, from_status: str, action: str):
        self.request_id = request_id
        self.from_status = from_status
        self.action = action
        super().__init__(
            f"Cannot {action} request {request_id} in status '{from_status}'"
        )


class ItemStateError(StateError):
    """The item status does not allow the attempted operation."""

    code: str = "ITEM_STATE_ERROR"

    def __init__(self, item_id: str, status: str, action: str):
        self.item_id = item_id
        self.status = status
        self.action = action
        super().__init__(
            f"Cannot {action} item {item_id} in status '{status}'"
        )


class ItemInvariantError(StateError):
    """
    An item's counters no longer satisfy received <= issued <= approved <= requested.

    Raised before flush; indicates a defect in the mutating operation.
    """

    code: str = "ITEM_INVARIANT_VIOLATION"

    def __init__(self, item_id: str, detail: str):
        self.item_id = item_id
        self.detail = detail
        super().__init__(f"Item {item_id} invariant violated: {detail}")


# Stock exceptions


class InsufficientStockError(InventoryKernelError):
    """
    Balance lower than the quantity to move.

    Raised while the balance row is locked; the whole unit rolls back.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        store_id: str,
        product_id: str,
        requested: Decimal,
        available: Decimal,
    ):
        self.store_id = store_id
        self.product_id = product_id
        self.requested = requested
        self.available = available
        super().__init__(
            f"Cannot issue {requested} units: only {available} available"
        )


# Reference data exceptions


class ReferenceDataError(InventoryKernelError):
    """Base exception for missing reference data."""

    code: str = "REFERENCE_DATA_ERROR"


class NoOpenPeriodError(ReferenceDataError):
    """No accounting period is currently open for the tenant."""

    code: str = "NO_OPEN_PERIOD"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(
            f"No open accounting period for tenant {tenant_id}"
        )


class DefaultCurrencyNotFoundError(ReferenceDataError):
    """The tenant has no default currency configured."""

    code: str = "DEFAULT_CURRENCY_NOT_FOUND"

    def __init__(self, tenant_id: str):
        self.tenant_id = tenant_id
        super().__init__(
            f"No default currency configured for tenant {tenant_id}"
        )


class MovementTypeNotRegisteredError(ReferenceDataError):
    """A required movement type is missing from the registry table."""

    code: str = "MOVEMENT_TYPE_NOT_REGISTERED"

    def __init__(self, name: str):
        self.name = name
        super().__init__(f"Movement type not registered: {name}")


class ProductNotFoundError(ReferenceDataError):
    """Product with given ID was not found."""

    code: str = "PRODUCT_NOT_FOUND"

    def __init__(self, product_id: str):
        self.product_id = product_id
        super().__init__(f"Product not found: {product_id}")


class StoreNotFoundError(ReferenceDataError):
    """Store with given ID was not found."""

    code: str = "STORE_NOT_FOUND"

    def __init__(self, store_id: str):
        self.store_id = store_id
        super().__init__(f"Store not found: {store_id}")


# Persistence exceptions


class PersistenceError(InventoryKernelError):
    """Base exception for constraint violations raised by the database."""

    code: str = "PERSISTENCE_ERROR"


class DuplicateReferenceError(PersistenceError):
    """A request reference number is already in use for the tenant."""

    code: str = "DUPLICATE_REFERENCE"

    def __init__(self, reference_number: str):
        self.reference_number = reference_number
        super().__init__(
            f"Reference number already exists: {reference_number}"
        )


class IntegrityConstraintError(PersistenceError):
    """A uniqueness or foreign-key constraint rejected the unit."""

    code: str = "INTEGRITY_CONSTRAINT"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(
            f"Could not {operation}: the data conflicts with existing records"
        )


# Context exceptions


class TenantContextError(InventoryKernelError):
    """Operation attempted without an authenticated tenant context."""

    code: str = "TENANT_CONTEXT_MISSING"

    def __init__(self, reason: str = "tenant context is required"):
        self.reason = reason
        super().__init__(reason)


class NotFoundError(InventoryKernelError):
    """Base exception for unknown entities within the tenant."""

    code: str = "NOT_FOUND"


class RequestNotFoundError(NotFoundError):
    """Transfer request with given ID was not found for the tenant."""

    code: str = "REQUEST_NOT_FOUND"

    def __init__(self, request_id: str):
        self.request_id = request_id
        super().__init__(f"Transfer request not found: {request_id}")


class ItemNotFoundError(NotFoundError):
    """Line item with given ID was not found on the request."""

    code: str = "ITEM_NOT_FOUND"

    def __init__(self, item_id: str, request_id: str | None = None):
        self.item_id = item_id
        self.request_id = request_id
        if request_id:
            super().__init__(
                f"Item {item_id} not found on request {request_id}"
            )
        else:
            super().__init__(f"Item not found: {item_id}")


# Immutability exceptions


class ImmutabilityError(InventoryKernelError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Stock movements and quantity change entries are append-only.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )
