"""
Module: stock_kernel.selectors.ledger_selector
Responsibility: Read-only ledger queries: stock positions, totals, the
    low-stock report and a canonical hash of the ledger state.
Architecture position: Kernel > Selectors.

Audit relevance:
    canonical_hash() is deterministic over the sorted (product, warehouse,
    quantity) rows, so two ledger states can be compared exactly, e.g.
    before and after a rejected bulk transfer.
"""

import hashlib
import json
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy import func, select

from stock_kernel.models.catalog import Product, Warehouse
from stock_kernel.models.ledger import StockLedgerEntry
from stock_kernel.selectors.base import BaseSelector


@dataclass(frozen=True)
class StockPosition:
    """One ledger row joined with current catalog names."""

    product_id: UUID
    sku: str
    product_name: str
    warehouse_id: UUID
    warehouse_name: str
    quantity: int


@dataclass(frozen=True)
class LowStockItem:
    """A product whose total stock is at or below its threshold."""

    product_id: UUID
    sku: str
    product_name: str
    total_quantity: int
    low_stock_threshold: int

    @property
    def out_of_stock(self) -> bool:
        return self.total_quantity == 0


class LedgerSelector(BaseSelector):
    """Read-only queries over StockLedgerEntry."""

    def positions(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[StockPosition]:
        """Ledger rows (zero rows included), ordered by SKU then warehouse name."""
        stmt = (
            select(StockLedgerEntry, Product, Warehouse)
            .join(Product, Product.id == StockLedgerEntry.product_id)
            .join(Warehouse, Warehouse.id == StockLedgerEntry.warehouse_id)
            .order_by(Product.sku, Warehouse.name)
        )
        if product_id is not None:
            stmt = stmt.where(StockLedgerEntry.product_id == product_id)
        if warehouse_id is not None:
            stmt = stmt.where(StockLedgerEntry.warehouse_id == warehouse_id)

        return [
            StockPosition(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                warehouse_id=warehouse.id,
                warehouse_name=warehouse.name,
                quantity=entry.quantity,
            )
            for entry, product, warehouse in self.session.execute(stmt)
        ]

    def quantity_of(self, product_id: UUID, warehouse_id: UUID) -> int:
        quantity = self.session.execute(
            select(StockLedgerEntry.quantity).where(
                StockLedgerEntry.product_id == product_id,
                StockLedgerEntry.warehouse_id == warehouse_id,
            )
        ).scalar_one_or_none()
        return quantity or 0

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

    def totals_by_product(self) -> dict[UUID, int]:
        """Total units per product.  Products with no ledger rows map to 0."""
        stmt = (
            select(Product.id, func.coalesce(func.sum(StockLedgerEntry.quantity), 0))
            .outerjoin(StockLedgerEntry, StockLedgerEntry.product_id == Product.id)
            .group_by(Product.id)
        )
        return {pid: total for pid, total in self.session.execute(stmt)}

    def low_stock_report(self) -> list[LowStockItem]:
        """
        Products whose total stock is at or below their threshold.

        Out-of-stock products come first, then by ascending total.
        """
        totals = self.totals_by_product()
        products = self.session.execute(select(Product)).scalars()
        report = [
            LowStockItem(
                product_id=product.id,
                sku=product.sku,
                product_name=product.name,
                total_quantity=totals.get(product.id, 0),
                low_stock_threshold=product.low_stock_threshold,
            )
            for product in products
            if totals.get(product.id, 0) <= product.low_stock_threshold
        ]
        report.sort(key=lambda item: (item.total_quantity, item.sku))
        return report

    def canonical_hash(self) -> str:
        """SHA-256 over the sorted ledger rows."""
        rows = self.session.execute(
            select(
                StockLedgerEntry.product_id,
                StockLedgerEntry.warehouse_id,
                StockLedgerEntry.quantity,
            )
        ).all()
        canonical = sorted([str(p), str(w), q] for p, w, q in rows)
        payload = json.dumps(canonical, separators=(",", ":"))
        return hashlib.sha256(payload.encode("utf-8")).hexdigest()
