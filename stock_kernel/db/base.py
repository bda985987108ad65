"""
Declarative bases for every stock ORM model.

Architecture position: Kernel > DB.  Imported by every model file; imports
nothing else from the kernel.

Column conventions:
    - ``id``: uuid4 primary key, stored as a 36-character string so the
      schema runs unchanged on SQLite and server databases.
    - ``Decimal`` columns are Numeric(18, 2).  Prices never touch float.
    - ``datetime`` columns are timezone aware.
    - Quantities are whole units (Integer).
"""

from datetime import datetime
from decimal import Decimal
from typing import ClassVar
from uuid import UUID, uuid4

from sqlalchemy import DateTime, Integer, Numeric, String, func
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column
from sqlalchemy.types import TypeDecorator


class UUIDString(TypeDecorator):
    """UUID values bound as their canonical string form."""

    impl = String(36)
    cache_ok = True

    def process_bind_param(self, value, dialect):
        return None if value is None else str(value)

    def process_result_value(self, value, dialect):
        return None if value is None else UUID(value)


class Base(DeclarativeBase):
    type_annotation_map: ClassVar[dict] = {
        UUID: UUIDString(),
        Decimal: Numeric(18, 2),
        datetime: DateTime(timezone=True),
        int: Integer,
    }

    id: Mapped[UUID] = mapped_column(UUIDString(), primary_key=True, default=uuid4)


class TrackedBase(Base):
    """
    Adds database-maintained ``created_at`` / ``updated_at`` columns.

    These are row bookkeeping only.  Movement times, issue dates and
    receipt times come from the injected Clock.
    """

    __abstract__ = True

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), server_default=func.now(), nullable=False
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        server_default=func.now(),
        onupdate=func.now(),
        nullable=False,
    )
