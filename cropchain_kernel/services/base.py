"""
BaseService -- abstract base for session-bound kernel services.

Responsibility:
    Provides the common constructor and session-handling contract for the
    services that work inside a caller-owned transaction (sequence
    allocation, ownership guard, update appender, recall gate).  They use
    ``session.flush()`` -- never ``session.commit()``.

Architecture position:
    Kernel > Services -- imperative shell infrastructure.
    BatchCreationService is the exception: it owns one transaction per
    creation attempt and therefore takes a session factory instead.

Failure modes:
    - If a subclass calls ``session.commit()``, the guard's row lock is
      released before the appender writes and the guard/append pair is no
      longer atomic.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from cropchain_kernel.db.base import Base

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for session-bound kernel services.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the caller controls transaction
          boundaries.

    Non-goals:
        - Does NOT provide query-only (read) methods -- those belong
          in ``cropchain_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        """
        Initialize the service.

        Args:
            session: SQLAlchemy session for database operations.
        """
        self.session = session
