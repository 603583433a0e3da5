"""
Declarative base for the waqf ORM models.

Column conventions shared by every table:

* primary keys are uuid4 values stored as ``String(36)`` so the same
  schema runs on PostgreSQL and SQLite;
* ``Mapped[int]`` is ``BigInteger``: amounts are minor units, never floats;
* ``Mapped[Decimal]`` is ``Numeric(9, 4)``: allocation percentages;
* ``Mapped[datetime]`` is timezone-aware.

Nothing here may import models or services.
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import BigInteger, DateTime, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """``uuid.UUID`` in Python, ``VARCHAR(36)`` in the database."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        int: BigInteger,
        Decimal: Numeric(9, 4),
        datetime: DateTime(timezone=True),
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """Adds who created a row and when; updates stamp ``updated_*``.

    ``updated_at`` and ``updated_by_id`` are the only columns the
    immutability listeners let change on a frozen row.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        server_default=func.now(), onupdate=func.now()
    )
    created_by_id: Mapped[UUID] = mapped_column(UUIDString())
    updated_by_id: Mapped[UUID | None] = mapped_column(UUIDString())
