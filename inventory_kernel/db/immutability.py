"""
Module: inventory_kernel.db.immutability
Responsibility: ORM-level enforcement of the append-only audit tables.
    Stock movements and quantity change entries are written once and never
    updated or deleted.
Architecture position: Kernel > DB.  Models opt in with the ``append_only``
    class decorator; ``register_immutability_listeners`` attaches
    ``before_update`` / ``before_delete`` listeners to every opted-in model.

Failure modes:
    - ImmutabilityViolationError on any flush that updates or deletes an
      append-only row.  The enclosing unit is rolled back by its owner.

Usage:
    register_immutability_listeners()    # called by init_engine_from_url()
    unregister_immutability_listeners()  # tests only
"""

from sqlalchemy import event

from inventory_kernel.exceptions import ImmutabilityViolationError
from inventory_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# model class -> entity type name used in errors and logs
_APPEND_ONLY_MODELS: dict[type, str] = {}


def append_only(entity_type: str):
    """Class decorator marking an ORM model as append-only."""

    def decorator(cls):
        _APPEND_ONLY_MODELS[cls] = entity_type
        return cls

    return decorator


def append_only_models() -> dict[type, str]:
    """Return the registered append-only models."""
    return dict(_APPEND_ONLY_MODELS)


def _entity_type_of(target) -> str:
    for model, entity_type in _APPEND_ONLY_MODELS.items():
        if isinstance(target, model):
            return entity_type
    return type(target).__name__


def _check_append_only_update(mapper, connection, target):
    """Reject UPDATE of an append-only row."""
    entity_type = _entity_type_of(target)
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "UPDATE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only and cannot be modified",
    )


def _check_append_only_delete(mapper, connection, target):
    """Reject DELETE of an append-only row."""
    entity_type = _entity_type_of(target)
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(target.id),
            "operation": "DELETE",
        },
    )
    raise ImmutabilityViolationError(
        entity_type=entity_type,
        entity_id=str(target.id),
        reason=f"{entity_type} records are append-only and cannot be deleted",
    )


def register_immutability_listeners() -> None:
    """
    Register immutability listeners on every append-only model.

    Imports all ORM models first so module-level models have opted in.
    Safe to call repeatedly.
    """
    from inventory_modules._orm_registry import import_all_orm_models

    import_all_orm_models()

    for model in _APPEND_ONLY_MODELS:
        if not event.contains(model, "before_update", _check_append_only_update):
            event.listen(model, "before_update", _check_append_only_update)
        if not event.contains(model, "before_delete", _check_append_only_delete):
            event.listen(model, "before_delete", _check_append_only_delete)

    logger.debug(
        "immutability_listeners_registered",
        extra={"models": sorted(_APPEND_ONLY_MODELS.values())},
    )


def _safe_remove_listener(target, event_name, listener_fn):
    """Remove an event listener, ignoring if not registered."""
    if event.contains(target, event_name, listener_fn):
        event.remove(target, event_name, listener_fn)


def unregister_immutability_listeners() -> None:
    """
    Remove immutability listeners.

    WARNING: Only use this in tests that must tamper with audit rows.
    """
    for model in _APPEND_ONLY_MODELS:
        _safe_remove_listener(model, "before_update", _check_append_only_update)
        _safe_remove_listener(model, "before_delete", _check_append_only_delete)
