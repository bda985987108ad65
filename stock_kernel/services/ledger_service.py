"""
StockLedger -- the current quantity per (product, warehouse).

Responsibility:
    Point queries over the ledger and the single mutating primitive,
    ``apply_delta``.  Every higher-level movement (adjustment, transfer,
    bulk transfer, purchase order receipt) is composed from it by the
    MovementEngine.

Architecture position:
    Kernel > Services.  Session-bound; flushes, never commits.

Invariants enforced:
    - quantity >= 0.  ``apply_delta`` floors at zero; the engine validates
      strictly before calling it, so reaching the floor is logged at ERROR
      as a broken caller contract.
    - A row is created the first time a pair reaches a positive quantity
      and is kept (at zero if need be) afterwards.

Failure modes:
    ``apply_delta`` raises nothing itself.  Validation is the caller's job.
"""

from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.clock import Clock
from stock_kernel.logging_config import get_logger
from stock_kernel.models.ledger import StockLedgerEntry
from stock_kernel.services.base import BaseService

logger = get_logger("services.ledger")


class StockLedger(BaseService):
    """Ledger access within one transaction."""

    def __init__(self, session, clock: Clock, lock_rows: bool = False):
        super().__init__(session)
        self._clock = clock
        self._lock_rows = lock_rows

    def get_entry(
        self,
        product_id: UUID,
        warehouse_id: UUID,
    ) -> StockLedgerEntry | None:
        stmt = select(StockLedgerEntry).where(
            StockLedgerEntry.product_id == product_id,
            StockLedgerEntry.warehouse_id == warehouse_id,
        )
        if self._lock_rows:
            stmt = stmt.with_for_update()
        return self.session.execute(stmt).scalar_one_or_none()

    def quantity_of(self, product_id: UUID, warehouse_id: UUID) -> int:
        entry = self.get_entry(product_id, warehouse_id)
        return entry.quantity if entry is not None else 0

    def total_for_product(self, product_id: UUID) -> int:
        return self.session.execute(
            select(func.coalesce(func.sum(StockLedgerEntry.quantity), 0)).where(
                StockLedgerEntry.product_id == product_id
            )
        ).scalar_one()

    def total_for_warehouse(self, warehouse_id: UUID) -> int:
        return self.session.execute(
            select(func.coalesce(func.sum(StockLedgerEntry.quantity), 0)).where(
                StockLedgerEntry.warehouse_id == warehouse_id
            )
        ).scalar_one()

    def entries_for_product(self, product_id: UUID) -> list[StockLedgerEntry]:
        stmt = (
            select(StockLedgerEntry)
            .where(StockLedgerEntry.product_id == product_id)
            .order_by(StockLedgerEntry.warehouse_id)
        )
        if self._lock_rows:
            stmt = stmt.with_for_update()
        return list(self.session.execute(stmt).scalars())

    def apply_delta(self, product_id: UUID, warehouse_id: UUID, delta: int) -> int:
        """
        Apply a signed change to one pair and return the new quantity.

        Treats a missing row as 0.  Creates the row only when the result is
        positive.
        """
        entry = self.get_entry(product_id, warehouse_id)
        current = entry.quantity if entry is not None else 0
        new_quantity = current + delta

        if new_quantity < 0:
            logger.error(
                "ledger_delta_clamped",
                extra={
                    "product_id": str(product_id),
                    "warehouse_id": str(warehouse_id),
                    "current": current,
                    "delta": delta,
                },
            )
            new_quantity = 0

        now = self._clock.now()
        if entry is None:
            if new_quantity > 0:
                self.session.add(
                    StockLedgerEntry(
                        product_id=product_id,
                        warehouse_id=warehouse_id,
                        quantity=new_quantity,
                        last_movement_at=now,
                    )
                )
        else:
            entry.quantity = new_quantity
            entry.last_movement_at = now

        self.session.flush()
        logger.debug(
            "ledger_delta_applied",
            extra={
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
                "delta": delta,
                "new_quantity": new_quantity,
            },
        )
        return new_quantity

    def remove_product(self, product_id: UUID) -> list[tuple[UUID, int]]:
        """
        Delete every row of a product.

        Returns (warehouse_id, quantity) of the removed rows so the caller
        can log them.
        """
        removed = []
        for entry in self.entries_for_product(product_id):
            removed.append((entry.warehouse_id, entry.quantity))
            self.session.delete(entry)
        self.session.flush()
        return removed
