"""
Module: stock_kernel.models.sequence
Responsibility: Named monotonic counters (movement log order, purchase order
    numbers).  Read and incremented only by SequenceService under a row lock.
"""

from sqlalchemy import Integer, String
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base


class SequenceCounter(Base):
    """
    Sequence counter table.

    Each row is a named sequence with its current value.
    """

    __tablename__ = "sequence_counters"

    name: Mapped[str] = mapped_column(String(50), nullable=False, unique=True)
    current_value: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
