"""
RequestRepository -- tenant-scoped persistence of the request aggregate.

Responsibility:
    Loads, locks, adds and deletes transfer requests with their items.
    Every query filters on the tenant id from the authenticated context; a
    request owned by another tenant is indistinguishable from a missing one.

Architecture position:
    Modules > transfers.  Injected into the engines and the service;
    flush-only, the service owns the unit.

Invariants enforced:
    - Every mutating workflow operation loads the request through
      ``get_for_update``: the header row lock serializes operations on one
      request, and is always taken before any balance lock.
"""

from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from inventory_kernel.exceptions import ItemNotFoundError, RequestNotFoundError
from inventory_kernel.logging_config import get_logger
from inventory_modules.transfers.orm import TransferItemModel, TransferRequestModel

logger = get_logger("modules.transfers.repository")


class RequestRepository:
    """Tenant-scoped access to ``TransferRequestModel`` aggregates."""

    def __init__(self, session: Session):
        self._session = session

    def _select(self, tenant_id: UUID, request_id: UUID):
        return select(TransferRequestModel).where(
            TransferRequestModel.tenant_id == tenant_id,
            TransferRequestModel.id == request_id,
        )

    def find(self, tenant_id: UUID, request_id: UUID) -> TransferRequestModel | None:
        return self._session.execute(
            self._select(tenant_id, request_id)
        ).scalar_one_or_none()

    def get(self, tenant_id: UUID, request_id: UUID) -> TransferRequestModel:
        """
        Raises:
            RequestNotFoundError: unknown id, or owned by another tenant.
        """
        request = self.find(tenant_id, request_id)
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def get_for_update(self, tenant_id: UUID, request_id: UUID) -> TransferRequestModel:
        """Lock the request header and reload it and its items."""
        request = self._session.execute(
            self._select(tenant_id, request_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(str(request_id))
        return request

    def get_by_reference(self, tenant_id: UUID, reference_number: str) -> TransferRequestModel:
        request = self._session.execute(
            select(TransferRequestModel).where(
                TransferRequestModel.tenant_id == tenant_id,
                TransferRequestModel.reference_number == reference_number,
            )
        ).scalar_one_or_none()
        if request is None:
            raise RequestNotFoundError(reference_number)
        return request

    @staticmethod
    def item_of(request: TransferRequestModel, item_id: UUID) -> TransferItemModel:
        """
        Raises:
            ItemNotFoundError: the item does not belong to ``request``.
        """
        for item in request.items:
            if item.id == item_id:
                return item
        raise ItemNotFoundError(str(item_id), str(request.id))

    def find_item(self, tenant_id: UUID, item_id: UUID) -> TransferItemModel | None:
        return self._session.execute(
            select(TransferItemModel).where(
                TransferItemModel.tenant_id == tenant_id,
                TransferItemModel.id == item_id,
            )
        ).scalar_one_or_none()

    def add(self, request: TransferRequestModel) -> TransferRequestModel:
        self._session.add(request)
        self._session.flush()
        return request

    def delete(self, request: TransferRequestModel) -> None:
        """Delete a request and its items (cascade)."""
        logger.info(
            "transfer_request_deleted",
            extra={
                "request_id": str(request.id),
                "reference_number": request.reference_number,
                "item_count": len(request.items),
            },
        )
        self._session.delete(request)
        self._session.flush()
