"""
Module: stock_kernel.models.ledger
Responsibility: ORM persistence for the stock ledger -- the current quantity of
    each product at each warehouse.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One row per (product_id, warehouse_id) (UNIQUE constraint).
    - quantity >= 0 (CHECK constraint; the movement engine validates first).
    - A row is created the first time a product gains positive quantity at a
      warehouse and is kept at zero afterwards.  Rows are only removed when
      their product is deleted.

Failure modes:
    - IntegrityError if a write would make quantity negative or duplicate
      the composite key.

Audit relevance:
    The ledger is a projection of the movement log.  Replaying the log's
    new_quantity_in_warehouse per pair must reproduce every row
    (see MovementSelector.verify_ledger_consistency).
"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import (
    CheckConstraint,
    DateTime,
    ForeignKey,
    Index,
    Integer,
    UniqueConstraint,
)
from sqlalchemy.orm import Mapped, mapped_column

from stock_kernel.db.base import Base, UUIDString


class StockLedgerEntry(Base):
    """
    Quantity of one product held at one warehouse.

    Owned exclusively by StockLedger; nothing else writes these rows.
    """

    __tablename__ = "stock_ledger"

    __table_args__ = (
        UniqueConstraint("product_id", "warehouse_id", name="uq_ledger_pair"),
        CheckConstraint("quantity >= 0", name="ck_ledger_quantity_non_negative"),
        Index("idx_ledger_warehouse", "warehouse_id"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )
    warehouse_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("warehouses.id"),
        nullable=False,
    )
    quantity: Mapped[int] = mapped_column(Integer, nullable=False, default=0)

    # Clock time of the last movement applied to this row
    last_movement_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True),
        nullable=True,
    )

    def __repr__(self) -> str:
        return (
            f"<StockLedgerEntry product={self.product_id} "
            f"warehouse={self.warehouse_id} qty={self.quantity}>"
        )
