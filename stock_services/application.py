"""
stock_services.application -- composition root for the inventory system.

Responsibility:
    Creates every service exactly once and wires them together around one
    owned ``Database``: the movement engine, the catalogs, the purchase
    order service with its issuing companies and scheduled purchases, and
    the dispatch guide service.  Exposes the operations UI and API callers
    use, plus read-side snapshots.

Architecture position:
    Services -- top of the dependency graph.  The only place where kernel
    services and module services are constructed and composed.  Nothing
    here is a module-level singleton; tests and callers build as many
    isolated applications as they need.

Invariants enforced:
    - Single-instance lifecycle: one MovementEngine (hence one lock
      manager) per Database, shared by every service that mutates the
      ledger.
    - Startup order: immutability listeners, all ORM tables, well-known
      sequence counters.

Usage:
    app = InventoryApplication.from_settings(get_active_settings())
    warehouse = app.catalog.create_warehouse("Central", "Lima")
    product = app.catalog.create_product("SKU-1", "Widget")
    app.adjust_stock(product.id, warehouse.id, 30, MovementType.ENTRY,
                     "initial stock", actor="system")
"""

from __future__ import annotations

from collections.abc import Sequence
from datetime import datetime
from uuid import UUID

from stock_config.loader import log_level_of
from stock_config.schema import InventorySettings
from stock_kernel.db.engine import Database
from stock_kernel.db.immutability import register_immutability_listeners
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import MovementRecord, TransferResult
from stock_kernel.domain.values import MovementType, TransferItem
from stock_kernel.logging_config import configure_logging, get_logger
from stock_kernel.selectors.ledger_selector import (
    LedgerSelector,
    LowStockItem,
    StockPosition,
)
from stock_kernel.selectors.movement_selector import (
    LedgerDiscrepancy,
    MovementSelector,
)
from stock_kernel.services.catalog_service import CatalogService
from stock_kernel.services.movement_engine import MovementEngine
from stock_kernel.services.sequence_service import SequenceService
from stock_modules._orm_registry import create_all_tables
from stock_modules.purchasing.config import PurchasingConfig
from stock_modules.purchasing.models import PurchaseOrderReceipt
from stock_modules.purchasing.companies import IssuingCompanyService
from stock_modules.purchasing.scheduling import ScheduledPurchaseService
from stock_modules.purchasing.service import PurchaseOrderService
from stock_services.dispatch_guide import (
    DispatchGuideGateway,
    DispatchGuideService,
    SimulatedDispatchGuideGateway,
)

logger = get_logger("services.application")


class InventoryApplication:
    """
    Owned inventory store with explicit operations.

    Contract:
        Receives a Database and (optionally) settings, clock and gateway.
        Every public attribute is a fully wired service sharing the same
        Database, Clock and MovementEngine.
    """

    def __init__(
        self,
        database: Database,
        settings: InventorySettings | None = None,
        clock: Clock | None = None,
        gateway: DispatchGuideGateway | None = None,
    ) -> None:
        self.settings = settings or InventorySettings()
        self.database = database
        self.clock = clock or SystemClock()

        register_immutability_listeners()
        create_all_tables(database)
        with database.session_scope() as session:
            SequenceService(session).initialize_sequences()

        self.engine = MovementEngine(
            database,
            self.clock,
            lock_timeout_seconds=self.settings.ledger.lock_timeout_seconds,
        )
        self.purchase_orders = PurchaseOrderService(
            database,
            self.engine,
            clock=self.clock,
            config=PurchasingConfig(
                order_number_prefix=self.settings.purchasing.order_number_prefix,
                order_number_start=self.settings.purchasing.order_number_start,
                order_number_width=self.settings.purchasing.order_number_width,
            ),
        )
        self.issuing_companies = IssuingCompanyService(database)
        self.scheduled_purchases = ScheduledPurchaseService(database, self.purchase_orders)
        self.catalog = CatalogService(
            database,
            self.engine,
            default_low_stock_threshold=self.settings.alerts.default_low_stock_threshold,
            supplier_reference_checks=[
                PurchaseOrderService.supplier_has_orders,
                ScheduledPurchaseService.supplier_has_schedules,
            ],
        )
        self.dispatch_guides = DispatchGuideService(
            database,
            gateway
            or SimulatedDispatchGuideGateway(
                success_rate=self.settings.dispatch_guide.simulated_success_rate,
                clock=self.clock,
            ),
            enabled=self.settings.dispatch_guide.enabled,
        )

        logger.info(
            "inventory_application_started",
            extra={
                "dialect": database.engine.dialect.name,
                "settings_checksum": self.settings.checksum,
            },
        )

    @classmethod
    def from_settings(
        cls,
        settings: InventorySettings,
        clock: Clock | None = None,
        gateway: DispatchGuideGateway | None = None,
        configure_logs: bool = True,
    ) -> InventoryApplication:
        """Build the database from settings, configure logging, wire services."""
        if configure_logs:
            configure_logging(level=log_level_of(settings))
        database = Database.from_url(settings.database.url, echo=settings.database.echo)
        return cls(database, settings=settings, clock=clock, gateway=gateway)

    def close(self) -> None:
        self.database.dispose()

    # ------------------------------------------------------------------
    # Movements
    # ------------------------------------------------------------------

    def adjust_stock(
        self,
        product_id: UUID,
        warehouse_id: UUID,
        quantity_change: int,
        movement_type: MovementType = MovementType.ADJUSTMENT,
        details: str = "",
        actor: str = "system",
        idempotency_key: str | None = None,
    ) -> MovementRecord:
        return self.engine.adjust_stock(
            product_id,
            warehouse_id,
            quantity_change,
            movement_type,
            details,
            actor=actor,
            idempotency_key=idempotency_key,
        )

    def transfer_stock(
        self,
        product_id: UUID,
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        quantity: int,
        details: str = "",
        actor: str = "system",
        idempotency_key: str | None = None,
    ) -> TransferResult:
        return self.engine.transfer_stock(
            product_id,
            from_warehouse_id,
            to_warehouse_id,
            quantity,
            details,
            actor=actor,
            idempotency_key=idempotency_key,
        )

    def bulk_transfer_stock(
        self,
        items: Sequence[TransferItem],
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        details: str = "",
        actor: str = "system",
        idempotency_key: str | None = None,
    ) -> TransferResult:
        return self.engine.bulk_transfer_stock(
            items,
            from_warehouse_id,
            to_warehouse_id,
            details,
            actor=actor,
            idempotency_key=idempotency_key,
        )

    def receive_purchase_order(
        self,
        purchase_order_id: UUID,
        warehouse_id: UUID | None = None,
        actor: str = "system",
    ) -> PurchaseOrderReceipt:
        return self.purchase_orders.receive(purchase_order_id, warehouse_id, actor=actor)

    # ------------------------------------------------------------------
    # Read side
    # ------------------------------------------------------------------

    def stock_positions(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
    ) -> list[StockPosition]:
        with self.database.read_scope() as session:
            return LedgerSelector(session).positions(product_id, warehouse_id)

    def quantity_of(self, product_id: UUID, warehouse_id: UUID) -> int:
        with self.database.read_scope() as session:
            return LedgerSelector(session).quantity_of(product_id, warehouse_id)

    def total_for_product(self, product_id: UUID) -> int:
        with self.database.read_scope() as session:
            return LedgerSelector(session).total_for_product(product_id)

    def total_for_warehouse(self, warehouse_id: UUID) -> int:
        with self.database.read_scope() as session:
            return LedgerSelector(session).total_for_warehouse(warehouse_id)

    def low_stock_report(self) -> list[LowStockItem]:
        with self.database.read_scope() as session:
            return LedgerSelector(session).low_stock_report()

    def ledger_hash(self) -> str:
        with self.database.read_scope() as session:
            return LedgerSelector(session).canonical_hash()

    def movements(
        self,
        product_id: UUID | None = None,
        warehouse_id: UUID | None = None,
        movement_type: MovementType | None = None,
        transaction_id: UUID | None = None,
        since: datetime | None = None,
        until: datetime | None = None,
        limit: int | None = None,
    ) -> list[MovementRecord]:
        """Movement log, most recent first."""
        with self.database.read_scope() as session:
            return MovementSelector(session).list_movements(
                product_id=product_id,
                warehouse_id=warehouse_id,
                movement_type=movement_type,
                transaction_id=transaction_id,
                since=since,
                until=until,
                limit=limit,
            )

    def movement_count(self) -> int:
        with self.database.read_scope() as session:
            return MovementSelector(session).count()

    def transaction_groups(self) -> dict[UUID, list[MovementRecord]]:
        with self.database.read_scope() as session:
            return MovementSelector(session).group_by_transaction()

    def verify_ledger_consistency(self) -> list[LedgerDiscrepancy]:
        with self.database.read_scope() as session:
            return MovementSelector(session).verify_ledger_consistency()
