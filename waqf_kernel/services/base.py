"""Base class for kernel services."""

from abc import ABC

from sqlalchemy.orm import Session


class BaseService(ABC):
    """
    Abstract base class for all kernel services.

    Contract:
        Accepts a SQLAlchemy ``Session`` from the caller and uses
        ``session.flush()`` to persist changes within the active
        transaction.

    Guarantees:
        - The service never calls ``session.commit()`` or
          ``session.rollback()``; the orchestrating caller owns
          transaction boundaries.

    Non-goals:
        - Query-only read models belong in ``waqf_kernel/selectors/``.
    """

    def __init__(self, session: Session):
        self.session = session
