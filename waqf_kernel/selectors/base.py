"""Base class for read-only selectors."""

from abc import ABC

from sqlalchemy.orm import Session


class BaseSelector(ABC):
    """
    Abstract base class for all selectors.

    Contract:
        Selectors accept a Session from the caller, perform read-only
        queries, and return ORM rows or computed results.  They never add,
        flush, delete or commit.
    """

    def __init__(self, session: Session):
        self.session = session
