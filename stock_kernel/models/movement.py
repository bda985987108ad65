"""
Module: stock_kernel.models.movement
Responsibility: ORM persistence for the movement log -- the append-only history
    of every quantity change (and every product creation).
Architecture position: Kernel > Models.  May import from db/base.py and
    domain/values.py only.

Invariants enforced:
    - Append-only: ORM listeners in db/immutability.py reject every UPDATE
      and DELETE of a MovementLogEntry.
    - sequence is unique and strictly increasing in append order; it, not
      timestamp, defines true chronology.
    - new_quantity_in_warehouse >= 0 (CHECK).
    - CREATION entries carry quantity_change == 0 (CHECK).

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE through the ORM.
    - IntegrityError on duplicate sequence.

Audit relevance:
    product_name, sku and warehouse_name are denormalised snapshots taken at
    write time.  They are intentionally NOT joined at read time: the log must
    stay historically accurate after a product is renamed or deleted, which
    is also why product_id and warehouse_id carry no foreign keys.
"""

from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    Index,
    Integer,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString
from stock_kernel.domain.values import MovementType


def _as_utc(value: datetime) -> datetime:
    # SQLite returns naive datetimes; every stored timestamp is UTC.
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


class MovementLogEntry(Base):
    """
    One immutable movement record.

    Written only by MovementLog.append(); every ledger write is accompanied by
    exactly one of these in the same transaction.
    """

    __tablename__ = "movement_log"

    __table_args__ = (
        UniqueConstraint("sequence", name="uq_movement_sequence"),
        CheckConstraint(
            "new_quantity_in_warehouse >= 0",
            name="ck_movement_new_quantity_non_negative",
        ),
        CheckConstraint(
            "movement_type != 'creation' OR quantity_change = 0",
            name="ck_movement_creation_zero_change",
        ),
        Index("idx_movement_product", "product_id"),
        Index("idx_movement_warehouse", "warehouse_id"),
        Index("idx_movement_transaction", "transaction_id"),
        Index("idx_movement_idempotency", "idempotency_key"),
        Index("idx_movement_timestamp", "timestamp"),
    )

    # Append order
    sequence: Mapped[int] = mapped_column(Integer, nullable=False)

    # Clock time of the movement
    timestamp: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Snapshot of the product at write time (no FK)
    product_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    product_name: Mapped[str] = mapped_column(String(255), nullable=False)
    sku: Mapped[str] = mapped_column(String(100), nullable=False)

    # Snapshot of the warehouse at write time (no FK)
    warehouse_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)
    warehouse_name: Mapped[str] = mapped_column(String(255), nullable=False)

    movement_type: Mapped[str] = mapped_column(String(20), nullable=False)
    quantity_change: Mapped[int] = mapped_column(Integer, nullable=False)
    new_quantity_in_warehouse: Mapped[int] = mapped_column(Integer, nullable=False)

    details: Mapped[str] = mapped_column(Text, nullable=False, default="")

    # Actor identity
    user: Mapped[str] = mapped_column(String(255), nullable=False)

    # Groups entries written by one logical operation (two or more entries)
    transaction_id: Mapped[UUID | None] = mapped_column(UUIDString(), nullable=True)

    # Client-assigned key of the operation that wrote this entry
    idempotency_key: Mapped[str | None] = mapped_column(String(200), nullable=True)

    def to_dto(self):
        from stock_kernel.domain.dtos import MovementRecord

        return MovementRecord(
            id=self.id,
            sequence=self.sequence,
            timestamp=_as_utc(self.timestamp),
            product_id=self.product_id,
            product_name=self.product_name,
            sku=self.sku,
            warehouse_id=self.warehouse_id,
            warehouse_name=self.warehouse_name,
            movement_type=MovementType(self.movement_type),
            quantity_change=self.quantity_change,
            new_quantity_in_warehouse=self.new_quantity_in_warehouse,
            details=self.details,
            user=self.user,
            transaction_id=self.transaction_id,
        )

    def __repr__(self) -> str:
        return (
            f"<MovementLogEntry #{self.sequence} {self.movement_type} "
            f"{self.sku}@{self.warehouse_name} {self.quantity_change:+d}>"
        )
