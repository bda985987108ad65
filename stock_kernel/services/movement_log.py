"""
MovementLog -- append-only writer for movement log entries.

Responsibility:
    Builds a MovementLogEntry from the product and warehouse being moved
    (snapshotting their names and SKU), stamps it with the clock time and
    the next ``movement_log`` sequence value, and adds it to the session.

Architecture position:
    Kernel > Services.  Session-bound; flushes, never commits.

Invariants enforced:
    - Append-only: this class only inserts.  Updates and deletes are
      blocked by db/immutability.py.
    - Strictly increasing ``sequence`` in append order.

Audit relevance:
    Snapshots are taken here, at write time, and never refreshed.
"""

from uuid import UUID

from sqlalchemy import select

from stock_kernel.domain.clock import Clock
from stock_kernel.domain.values import NO_WAREHOUSE, MovementType
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Product, Warehouse
from stock_kernel.models.movement import MovementLogEntry
from stock_kernel.services.base import BaseService
from stock_kernel.services.sequence_service import SequenceService

logger = get_logger("services.movement_log")


class MovementLog(BaseService):
    """Append side of the movement log."""

    def __init__(self, session, clock: Clock):
        super().__init__(session)
        self._clock = clock
        self._sequences = SequenceService(session)

    def append(
        self,
        product: Product,
        warehouse: Warehouse | None,
        movement_type: MovementType,
        quantity_change: int,
        new_quantity: int,
        details: str,
        user: str,
        transaction_id: UUID | None = None,
        idempotency_key: str | None = None,
    ) -> MovementLogEntry:
        """
        Append one entry and return it (flushed, id assigned).

        ``warehouse`` is None for entries not tied to a warehouse; those are
        recorded with warehouse name "N/A".
        """
        entry = MovementLogEntry(
            sequence=self._sequences.next_value(SequenceService.MOVEMENT_LOG),
            timestamp=self._clock.now(),
            product_id=product.id,
            product_name=product.name,
            sku=product.sku,
            warehouse_id=warehouse.id if warehouse is not None else None,
            warehouse_name=warehouse.name if warehouse is not None else NO_WAREHOUSE,
            movement_type=MovementType(movement_type).value,
            quantity_change=quantity_change,
            new_quantity_in_warehouse=new_quantity,
            details=details,
            user=user,
            transaction_id=transaction_id,
            idempotency_key=idempotency_key,
        )
        self.session.add(entry)
        self.session.flush()
        logger.debug(
            "movement_appended",
            extra={
                "sequence": entry.sequence,
                "movement_type": entry.movement_type,
                "sku": entry.sku,
                "warehouse_name": entry.warehouse_name,
                "quantity_change": quantity_change,
            },
        )
        return entry

    def find_by_idempotency_key(self, idempotency_key: str) -> list[MovementLogEntry]:
        """Entries written under a stored key, in append order."""
        return list(
            self.session.execute(
                select(MovementLogEntry)
                .where(MovementLogEntry.idempotency_key == idempotency_key)
                .order_by(MovementLogEntry.sequence)
            ).scalars()
        )
