"""BaseSelector -- read-only query base for kernel and module selectors."""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from inventory_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseSelector(ABC, Generic[ModelType]):
    """
    Abstract base class for all selectors.

    Selectors perform read-only queries and return DTOs.  They never add,
    flush, commit or delete.
    """

    def __init__(self, session: Session):
        self.session = session
