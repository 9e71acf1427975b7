"""
BaseService -- abstract base for all kernel services.

Responsibility:
    Common constructor and session contract for every service.  Services
    persist with ``session.flush()`` and never commit or roll back; the
    caller (``session_scope``, ``BackOffice``, a test) owns the transaction.

Architecture position:
    Kernel > Services -- imperative shell around the pure domain layer.

Failure modes:
    - A subclass that commits breaks the all-or-nothing guarantee of
      multi-step operations such as template application and transfer
      approval.
"""

from abc import ABC
from typing import Generic, TypeVar

from sqlalchemy.orm import Session

from distribution_kernel.db.base import Base
from distribution_kernel.domain.clock import Clock, SystemClock

ModelType = TypeVar("ModelType", bound=Base)


class BaseService(ABC, Generic[ModelType]):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and an optional
        ``Clock`` (system time by default).

    Non-goals:
        - Does NOT manage transaction lifecycle (commit/rollback).
        - Does NOT decide who may call it; callers enforce scope.
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        self.session = session
        self.clock = clock or SystemClock()
