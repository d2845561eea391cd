"""
InventoryBalanceRepository -- the only write path to inventory balances.

Responsibility:
    Atomic increment / decrement of the (tenant, store, product) balance
    record.  Every mutation first takes an exclusive row lock
    (``SELECT ... FOR UPDATE``) inside the caller's unit, then applies a
    delta to the locked value.  No method writes an absolute quantity
    computed outside the lock.

Architecture position:
    Kernel > Services.  Injected into the transfer engines; flush-only.

Invariants enforced:
    - A balance never goes negative: decrement re-checks the locked value
      and raises InsufficientStockError before touching it.
    - The lock is held until the caller commits or rolls back, serializing
      concurrent issue/receive/return against the same balance.
    - Issuing requires an existing record; receiving creates one at zero
      when the store never held the product.

Failure modes:
    - InsufficientStockError: locked quantity lower than the decrement; a
      store that never stocked the product counts as holding zero.
    - IntegrityError on concurrent first creation: handled with a savepoint
      and a re-read under lock.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from inventory_kernel.db.types import ZERO
from inventory_kernel.domain.clock import Clock, SystemClock
from inventory_kernel.domain.dtos import BalanceInfo
from inventory_kernel.exceptions import InsufficientStockError
from inventory_kernel.logging_config import get_logger
from inventory_kernel.models.balance import InventoryBalance
from inventory_kernel.services.base import BaseService

logger = get_logger("services.balance")


def weighted_average_cost(
    current_quantity: Decimal,
    current_cost: Decimal,
    added_quantity: Decimal,
    added_cost: Decimal,
) -> Decimal:
    """Running cost basis after adding ``added_quantity`` at ``added_cost``."""
    if current_quantity <= 0:
        return added_cost
    total = current_quantity + added_quantity
    return (current_quantity * current_cost + added_quantity * added_cost) / total


class InventoryBalanceRepository(BaseService[InventoryBalance]):
    """
    Lock-protected access to inventory balance records.

    Non-goals:
        - Does NOT commit; the workflow unit owns the transaction.
        - Does NOT post movement ledger entries (MovementLedgerRepository).
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()

    def _select(self, tenant_id: UUID, store_id: UUID, product_id: UUID):
        return select(InventoryBalance).where(
            InventoryBalance.tenant_id == tenant_id,
            InventoryBalance.store_id == store_id,
            InventoryBalance.product_id == product_id,
        )

    def lock(
        self, tenant_id: UUID, store_id: UUID, product_id: UUID
    ) -> InventoryBalance | None:
        """Lock and return the balance row, or None if the store never held it."""
        return self.session.execute(
            self._select(tenant_id, store_id, product_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def lock_or_create(
        self, tenant_id: UUID, store_id: UUID, product_id: UUID, actor_id: UUID
    ) -> InventoryBalance:
        """Lock the balance row, creating it at zero under a savepoint if absent."""
        balance = self.lock(tenant_id, store_id, product_id)
        if balance is not None:
            return balance

        savepoint = self.session.begin_nested()
        try:
            balance = InventoryBalance(
                tenant_id=tenant_id,
                store_id=store_id,
                product_id=product_id,
                quantity=ZERO,
                average_cost=ZERO,
                is_active=True,
                last_updated=self._clock.now(),
                created_by_id=actor_id,
            )
            self.session.add(balance)
            self.session.flush()
            savepoint.commit()
            logger.info(
                "balance_record_created",
                extra={"store_id": str(store_id), "product_id": str(product_id)},
            )
        except IntegrityError:
            logger.debug(
                "balance_record_race_retry",
                extra={"store_id": str(store_id), "product_id": str(product_id)},
            )
            savepoint.rollback()
            balance = self.lock(tenant_id, store_id, product_id)
            if balance is None:
                raise
        # Take the row lock on the freshly inserted record as well.
        return self.lock(tenant_id, store_id, product_id) or balance

    def decrement(
        self,
        tenant_id: UUID,
        store_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
    ) -> BalanceInfo:
        """
        Remove ``quantity`` from a store's balance under lock.

        Preconditions:
            quantity > 0.
        Postconditions:
            The balance is exactly ``quantity`` lower and stays locked.

        Raises:
            InsufficientStockError: the locked quantity is lower than
                ``quantity``, or the store holds no record for the product.
        """
        if quantity <= 0:
            raise ValueError(f"decrement quantity must be positive, got {quantity}")

        balance = self.lock(tenant_id, store_id, product_id)
        available = balance.quantity if balance is not None else ZERO

        if balance is None or quantity > available:
            logger.warning(
                "insufficient_stock",
                extra={
                    "store_id": str(store_id),
                    "product_id": str(product_id),
                    "requested": quantity,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                str(store_id), str(product_id), quantity, available
            )

        before = balance.quantity
        balance.quantity = before - quantity
        balance.last_updated = self._clock.now()
        balance.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balance_decremented",
            extra={
                "store_id": str(store_id),
                "product_id": str(product_id),
                "quantity": quantity,
                "before": before,
                "after": balance.quantity,
            },
        )
        return balance.to_dto()

    def increment(
        self,
        tenant_id: UUID,
        store_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        unit_cost: Decimal | None = None,
    ) -> BalanceInfo:
        """
        Add ``quantity`` to a store's balance under lock.

        Creates the record at zero first if the store never held the product.
        When ``unit_cost`` is given the running cost basis becomes the
        weighted average of the existing and the added stock.
        """
        if quantity <= 0:
            raise ValueError(f"increment quantity must be positive, got {quantity}")

        balance = self.lock_or_create(tenant_id, store_id, product_id, actor_id)

        before = balance.quantity
        if unit_cost is not None:
            balance.average_cost = weighted_average_cost(
                before, balance.average_cost, quantity, unit_cost
            )
        balance.quantity = before + quantity
        balance.last_updated = self._clock.now()
        balance.updated_by_id = actor_id
        self.session.flush()

        logger.info(
            "balance_incremented",
            extra={
                "store_id": str(store_id),
                "product_id": str(product_id),
                "quantity": quantity,
                "before": before,
                "after": balance.quantity,
            },
        )
        return balance.to_dto()

    def open_balance(
        self,
        tenant_id: UUID,
        store_id: UUID,
        product_id: UUID,
        quantity: Decimal,
        actor_id: UUID,
        average_cost: Decimal = ZERO,
    ) -> BalanceInfo:
        """
        Create the opening balance record of a product at a store.

        Raises:
            ValueError: if a balance record already exists (use increment).
        """
        if self.lock(tenant_id, store_id, product_id) is not None:
            raise ValueError(
                f"Balance for product {product_id} at store {store_id} already exists"
            )
        balance = InventoryBalance(
            tenant_id=tenant_id,
            store_id=store_id,
            product_id=product_id,
            quantity=quantity,
            average_cost=average_cost,
            is_active=True,
            last_updated=self._clock.now(),
            created_by_id=actor_id,
        )
        self.session.add(balance)
        self.session.flush()
        logger.info(
            "balance_opened",
            extra={
                "store_id": str(store_id),
                "product_id": str(product_id),
                "quantity": quantity,
            },
        )
        return balance.to_dto()
