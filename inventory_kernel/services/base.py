"""
BaseService -- abstract base for kernel services and repositories.

Kernel services receive a SQLAlchemy ``Session`` and persist through
``session.flush()`` only.  The module service that owns the workflow unit
commits or rolls back; a kernel service never does.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the caller controls the unit.
    """

    def __init__(self, session: Session):
        self.session = session
