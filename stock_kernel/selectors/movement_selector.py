"""
Module: stock_kernel.selectors.movement_selector
Responsibility: Read side of the movement log: listing with filters,
    grouping by transaction id, and reconciliation of the log against the
    ledger.
Architecture position: Kernel > Selectors.

Invariants enforced:
    - verify_ledger_consistency() replays the log: for every (product,
      warehouse) the new_quantity_in_warehouse of the last entry (by
      sequence) must equal the ledger quantity (0 when no row exists).
"""

from collections import defaultdict
from dataclasses import dataclass
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.domain.values import MovementType
from stock_kernel.exceptions import MovementNotFoundError
from stock_kernel.models.ledger import StockLedgerEntry
from stock_kernel.models.movement import MovementLogEntry
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class LedgerDiscrepancy:
    product_id: UUID
    warehouse_id: UUID
    ledger_quantity: int
    log_quantity: int


class MovementSelector(BaseSelector):
    """Read-only queries over MovementLogEntry."""

    def get(self, entry_id: UUID) -> MovementRecord:
        entry = self.session.get(MovementLogEntry, entry_id)
        if entry is None:
            raise MovementNotFoundError(str(entry_id))
        return entry.to_dto()

    def list_movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        movement_type: MovementType | None = None,
        transaction_id: UUID | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[MovementRecord]:
        """
        Movement log entries, most recent first.

        ``since`` is inclusive, ``until`` exclusive.
        """
        stmt = select(MovementLogEntry).order_by(MovementLogEntry.sequence.desc())
        if product_id is not None:
            stmt = stmt.where(MovementLogEntry.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(MovementLogEntry.warehouse_id == warehouse_id)
        if movement_type is not None:
            stmt = stmt.where(
                MovementLogEntry.movement_type == MovementType(movement_type).value
            )
        if transaction_id is not None:
            stmt = stmt.where(MovementLogEntry.transaction_id == transaction_id)
        if since is not None:
            stmt = stmt.where(MovementLogEntry.timestamp >= since)
        if until is not None:
            stmt = stmt.where(MovementLogEntry.timestamp < until)
        if limit is not None:
            stmt = stmt.limit(limit)
        return [entry.to_dto() for entry in self.session.execute(stmt).scalars()]

    def count(self) -> int:
        return self.session.execute(
            select(func.count()).select_from(MovementLogEntry)
        ).scalar_one()

    def group_by_transaction(self) -> dict[UUID, list[MovementRecord]]:
        """Grouped entries keyed by transaction id, each group in append order."""
        stmt = (
            select(MovementLogEntry)
            .where(MovementLogEntry.transaction_id.is_not(None))
            .order_by(MovementLogEntry.sequence)
        )
        groups: dict[UUID, list[MovementRecord]] = defaultdict(list)
        for entry in self.session.execute(stmt).scalars():
            groups[entry.transaction_id].append(entry.to_dto())
        return dict(groups)

    def verify_ledger_consistency(self) -> list[LedgerDiscrepancy]:
        """Pairs whose replayed log quantity differs from the ledger.  Empty when consistent."""
        replayed: dict[tuple[UUID, UUID], int] = {}
        stmt = (
            select(
                MovementLogEntry.product_id,
                MovementLogEntry.warehouse_id,
                MovementLogEntry.new_quantity_in_warehouse,
            )
            .where(
                MovementLogEntry.product_id.is_not(None),
                MovementLogEntry.warehouse_id.is_not(None),
            )
            .order_by(MovementLogEntry.sequence)
        )
        for product_id, warehouse_id, new_quantity in self.session.execute(stmt):
            replayed[(product_id, warehouse_id)] = new_quantity

        ledger = {
            (p, w): q
            for p, w, q in self.session.execute(
                select(
                    StockLedgerEntry.product_id,
                    StockLedgerEntry.warehouse_id,
                    StockLedgerEntry.quantity,
                )
            )
        }

        discrepancies = []
        for key in sorted(set(replayed) | set(ledger), key=lambda k: (str(k[0]), str(k[1]))):
            ledger_quantity = ledger.get(key, 0)
            log_quantity = replayed.get(key, 0)
            if ledger_quantity != log_quantity:
                discrepancies.append(
                    LedgerDiscrepancy(
                        product_id=key[0],
                        warehouse_id=key[1],
                        ledger_quantity=ledger_quantity,
                        log_quantity=log_quantity,
                    )
                )
        return discrepancies
