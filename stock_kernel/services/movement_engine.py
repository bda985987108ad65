"""
MovementEngine -- atomic ledger + log mutations.

Responsibility:
    The four stock operations (adjust, transfer, bulk transfer, receipt
    posting).  Each validates against the ledger, then writes the ledger
    rows and their movement log entries as one indivisible unit.

Architecture position:
    Kernel > Services.  The ONLY component that mutates StockLedgerEntry
    rows for movements.  Purchase order receipt (stock_modules.purchasing)
    and product deletion (CatalogService) run inside a unit of work
    opened here.

Invariants enforced:
    - Non-negative quantity: every removal is checked strictly before any
      write (InsufficientStockError).  Adjustments follow the same policy
      as transfers.
    - Ledger/log coupling: ``UnitOfWork.post_movement`` is the one place a
      ledger delta is applied, and it always appends exactly one entry.
    - Balanced transfers: each transferred line writes an EXIT of -q at the
      source and an ENTRY of +q at the destination.
    - All or nothing: every operation runs in one ``session_scope``.  Any
      exception rolls back everything it flushed.
    - Transaction grouping: ``transaction_id`` is set iff an operation
      writes two or more entries (``new_transaction_id``).

Concurrency:
    ``unit_of_work`` takes the pair locks for every (product, warehouse)
    the operation will touch, in sorted order and with a timeout, then
    opens the database transaction.  Overlapping operations serialise;
    disjoint ones do not wait for each other at the pair level.

Failure modes:
    NotFoundError, InvalidOperationError, InsufficientStockError,
    LockTimeoutError.  All are raised before the first write.

Audit relevance:
    Every operation logs ``<operation>_started`` (DEBUG), a success event
    (INFO) and ``<operation>_rejected`` (WARNING, with the error code).
"""

from collections.abc import Iterable, Iterator, Sequence
from contextlib import contextmanager
from dataclasses import dataclass
from uuid import UUID, uuid4

from sqlalchemy.orm import Session

from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import MovementRecord, TransferResult
from stock_kernel.domain.values import (
    LedgerKey,
    MovementType,
    ReceiptLine,
    TransferItem,
)
from stock_kernel.exceptions import (
    EmptyBulkTransferError,
    InsufficientStockError,
    InvalidOperationError,
    InventoryKernelError,
    NonPositiveQuantityError,
    ProductNotFoundError,
    SameWarehouseTransferError,
    WarehouseNotFoundError,
    ZeroQuantityAdjustmentError,
)
from stock_kernel.logging_config import LogContext, get_logger
from stock_kernel.models.catalog import Product, Warehouse
from stock_kernel.models.movement import MovementLogEntry
from stock_kernel.services.ledger_service import StockLedger
from stock_kernel.services.lock_manager import LedgerLockManager
from stock_kernel.services.movement_log import MovementLog
from stock_kernel.utils.idempotency import generate_idempotency_key

logger = get_logger("services.movement_engine")

DEFAULT_LOCK_TIMEOUT_SECONDS = 10.0


def signed_change(movement_type: MovementType, quantity_change: int) -> int:
    """
    Ledger delta for an adjustment request.

    ENTRY always adds and EXIT always removes, whatever sign the caller
    used.  ADJUSTMENT keeps the caller's sign.
    """
    if movement_type == MovementType.ENTRY:
        return abs(quantity_change)
    if movement_type == MovementType.EXIT:
        return -abs(quantity_change)
    return quantity_change


@dataclass
class UnitOfWork:
    """
    One locked, transactional scope over the ledger and the log.

    Only pairs listed in ``keys`` may be posted to.
    """

    session: Session
    ledger: StockLedger
    log: MovementLog
    keys: frozenset[LedgerKey]
    actor: str

    def require_product(self, product_id: UUID) -> Product:
        product = self.session.get(Product, product_id)
        if product is None:
            raise ProductNotFoundError(str(product_id))
        return product

    def require_warehouse(self, warehouse_id: UUID) -> Warehouse:
        warehouse = self.session.get(Warehouse, warehouse_id)
        if warehouse is None:
            raise WarehouseNotFoundError(str(warehouse_id))
        return warehouse

    def post_movement(
        self,
        product: Product,
        warehouse: Warehouse,
        movement_type: MovementType,
        delta: int,
        details: str,
        transaction_id: UUID | None = None,
        idempotency_key: str | None = None,
    ) -> MovementLogEntry:
        """
        Apply ``delta`` to one pair and append its log entry.

        Raises InsufficientStockError rather than letting the ledger floor
        at zero.
        """
        key = LedgerKey(product.id, warehouse.id)
        if key not in self.keys:
            raise InvalidOperationError(
                f"ledger pair ({product.id}, {warehouse.id}) is not locked "
                f"by this unit of work"
            )

        available = self.ledger.quantity_of(product.id, warehouse.id)
        if available + delta < 0:
            raise InsufficientStockError(product.id, warehouse.id, -delta, available)

        new_quantity = self.ledger.apply_delta(product.id, warehouse.id, delta)
        return self.log.append(
            product=product,
            warehouse=warehouse,
            movement_type=movement_type,
            quantity_change=delta,
            new_quantity=new_quantity,
            details=details,
            user=self.actor,
            transaction_id=transaction_id,
            idempotency_key=idempotency_key,
        )


class MovementEngine:
    """
    Stock movement operations over an injected Database.

    Usage:
        engine = MovementEngine(database, clock)
        engine.adjust_stock(product_id, warehouse_id, 30, MovementType.ENTRY,
                            "initial stock", actor="system")
    """

    def __init__(
        self,
        database: Database,
        clock: Clock | None = None,
        lock_manager: LedgerLockManager | None = None,
        lock_timeout_seconds: float = DEFAULT_LOCK_TIMEOUT_SECONDS,
    ):
        self._database = database
        self._clock = clock or SystemClock()
        self._locks = lock_manager or LedgerLockManager()
        self._lock_timeout = lock_timeout_seconds

    @property
    def clock(self) -> Clock:
        return self._clock

    @property
    def lock_manager(self) -> LedgerLockManager:
        return self._locks

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    @staticmethod
    def new_transaction_id(entry_count: int) -> UUID | None:
        """A fresh grouping id when an operation writes 2+ entries, else None."""
        return uuid4() if entry_count >= 2 else None

    @contextmanager
    def unit_of_work(
        self,
        keys: Iterable[LedgerKey],
        operation: str,
        actor: str,
    ) -> Iterator[UnitOfWork]:
        """
        Lock ``keys``, open a transaction and yield a UnitOfWork.

        Commits when the block exits normally; rolls back on any exception.
        """
        key_set = frozenset(keys)
        with LogContext.bind(actor=actor, operation=operation):
            with self._locks.acquire(key_set, self._lock_timeout, operation):
                with self._database.session_scope() as session:
                    yield UnitOfWork(
                        session=session,
                        ledger=StockLedger(
                            session,
                            self._clock,
                            lock_rows=self._database.supports_row_locks,
                        ),
                        log=MovementLog(session, self._clock),
                        keys=key_set,
                        actor=actor,
                    )

    @contextmanager
    def _operation_log(self, operation: str, **fields) -> Iterator[None]:
        logger.debug(f"{operation}_started", extra=fields)
        try:
            yield
        except InventoryKernelError as exc:
            logger.warning(
                f"{operation}_rejected",
                extra={**fields, "error_code": exc.code, "error": str(exc)},
            )
            raise

    @staticmethod
    def _replay(
        uow: UnitOfWork,
        stored_key: str | None,
    ) -> list[MovementRecord] | None:
        if stored_key is None:
            return None
        existing = uow.log.find_by_idempotency_key(stored_key)
        if not existing:
            return None
        logger.info(
            "idempotent_replay",
            extra={"idempotency_key": stored_key, "entry_count": len(existing)},
        )
        return [entry.to_dto() for entry in existing]

    # ------------------------------------------------------------------
    # Operations
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
        """
        Change the quantity of one product at one warehouse.

        Raises:
            ProductNotFoundError / WarehouseNotFoundError
            ZeroQuantityAdjustmentError: quantity_change == 0.
            InvalidOperationError: movement_type is CREATION.
            InsufficientStockError: the removal exceeds the quantity held.
        """
        operation = "adjust_stock"
        movement_type = MovementType(movement_type)
        with self._operation_log(
            operation,
            product_id=str(product_id),
            warehouse_id=str(warehouse_id),
            quantity_change=quantity_change,
            movement_type=movement_type.value,
        ):
            if movement_type == MovementType.CREATION:
                raise InvalidOperationError(
                    "CREATION entries are only written when a product is created"
                )
            stored_key = (
                generate_idempotency_key(operation, idempotency_key)
                if idempotency_key
                else None
            )
            with self.unit_of_work(
                [LedgerKey(product_id, warehouse_id)], operation, actor
            ) as uow:
                replayed = self._replay(uow, stored_key)
                if replayed:
                    return replayed[0]

                product = uow.require_product(product_id)
                warehouse = uow.require_warehouse(warehouse_id)
                if quantity_change == 0:
                    raise ZeroQuantityAdjustmentError(product_id, warehouse_id)

                entry = uow.post_movement(
                    product,
                    warehouse,
                    movement_type,
                    signed_change(movement_type, quantity_change),
                    details,
                    idempotency_key=stored_key,
                )
                record = entry.to_dto()

        logger.info(
            "stock_adjusted",
            extra={
                "product_id": str(product_id),
                "warehouse_id": str(warehouse_id),
                "movement_type": movement_type.value,
                "quantity_change": record.quantity_change,
                "new_quantity": record.new_quantity_in_warehouse,
                "sequence": record.sequence,
            },
        )
        return record

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
        """
        Move ``quantity`` units of one product between two warehouses.

        Writes an EXIT at the source and an ENTRY at the destination sharing
        one transaction id.

        Raises:
            NonPositiveQuantityError: quantity <= 0.
            SameWarehouseTransferError: source == destination.
            ProductNotFoundError / WarehouseNotFoundError
            InsufficientStockError: source holds less than quantity.
        """
        operation = "transfer_stock"
        with self._operation_log(
            operation,
            product_id=str(product_id),
            from_warehouse_id=str(from_warehouse_id),
            to_warehouse_id=str(to_warehouse_id),
            quantity=quantity,
        ):
            if quantity <= 0:
                raise NonPositiveQuantityError(quantity, product_id)
            if from_warehouse_id == to_warehouse_id:
                raise SameWarehouseTransferError(from_warehouse_id)
            stored_key = (
                generate_idempotency_key(operation, idempotency_key)
                if idempotency_key
                else None
            )
            keys = [
                LedgerKey(product_id, from_warehouse_id),
                LedgerKey(product_id, to_warehouse_id),
            ]
            with self.unit_of_work(keys, operation, actor) as uow:
                replayed = self._replay(uow, stored_key)
                if replayed:
                    return TransferResult(
                        transaction_id=replayed[0].transaction_id,
                        records=tuple(replayed),
                    )

                product = uow.require_product(product_id)
                source = uow.require_warehouse(from_warehouse_id)
                destination = uow.require_warehouse(to_warehouse_id)

                available = uow.ledger.quantity_of(product_id, from_warehouse_id)
                if available < quantity:
                    raise InsufficientStockError(
                        product_id, from_warehouse_id, quantity, available
                    )

                transaction_id = self.new_transaction_id(2)
                with LogContext.bind(transaction_id=transaction_id):
                    exit_entry = uow.post_movement(
                        product,
                        source,
                        MovementType.EXIT,
                        -quantity,
                        _transfer_details("to", destination.name, details),
                        transaction_id=transaction_id,
                        idempotency_key=stored_key,
                    )
                    entry_entry = uow.post_movement(
                        product,
                        destination,
                        MovementType.ENTRY,
                        quantity,
                        _transfer_details("from", source.name, details),
                        transaction_id=transaction_id,
                        idempotency_key=stored_key,
                    )
                result = TransferResult(
                    transaction_id=transaction_id,
                    records=(exit_entry.to_dto(), entry_entry.to_dto()),
                )

        logger.info(
            "stock_transferred",
            extra={
                "product_id": str(product_id),
                "from_warehouse_id": str(from_warehouse_id),
                "to_warehouse_id": str(to_warehouse_id),
                "quantity": quantity,
                "transaction_id": str(result.transaction_id),
            },
        )
        return result

    def bulk_transfer_stock(
        self,
        items: Sequence[TransferItem],
        from_warehouse_id: UUID,
        to_warehouse_id: UUID,
        details: str = "",
        actor: str = "system",
        idempotency_key: str | None = None,
    ) -> TransferResult:
        """
        Transfer several products between the same two warehouses as one unit.

        Every line is validated (with demand aggregated per product) before
        the first write, so the batch either applies fully or not at all.
        Produces 2 x len(items) entries under one transaction id.

        Raises:
            EmptyBulkTransferError: items is empty.
            NonPositiveQuantityError: a line quantity <= 0.
            SameWarehouseTransferError: source == destination.
            ProductNotFoundError / WarehouseNotFoundError
            InsufficientStockError: total demand for a product exceeds
                the source quantity.
        """
        operation = "bulk_transfer_stock"
        items = list(items)
        with self._operation_log(
            operation,
            from_warehouse_id=str(from_warehouse_id),
            to_warehouse_id=str(to_warehouse_id),
            item_count=len(items),
        ):
            if not items:
                raise EmptyBulkTransferError()
            for item in items:
                if item.quantity <= 0:
                    raise NonPositiveQuantityError(item.quantity, item.product_id)
            if from_warehouse_id == to_warehouse_id:
                raise SameWarehouseTransferError(from_warehouse_id)
            stored_key = (
                generate_idempotency_key(operation, idempotency_key)
                if idempotency_key
                else None
            )

            demand: dict[UUID, int] = {}
            for item in items:
                demand[item.product_id] = demand.get(item.product_id, 0) + item.quantity

            keys = []
            for product_id in demand:
                keys.append(LedgerKey(product_id, from_warehouse_id))
                keys.append(LedgerKey(product_id, to_warehouse_id))

            with self.unit_of_work(keys, operation, actor) as uow:
                replayed = self._replay(uow, stored_key)
                if replayed:
                    return TransferResult(
                        transaction_id=replayed[0].transaction_id,
                        records=tuple(replayed),
                    )

                source = uow.require_warehouse(from_warehouse_id)
                destination = uow.require_warehouse(to_warehouse_id)
                products = {pid: uow.require_product(pid) for pid in demand}

                for product_id, requested in demand.items():
                    available = uow.ledger.quantity_of(product_id, from_warehouse_id)
                    if available < requested:
                        raise InsufficientStockError(
                            product_id, from_warehouse_id, requested, available
                        )

                note = details or f"Transfer of {len(items)} products."
                transaction_id = self.new_transaction_id(2 * len(items))
                records: list[MovementRecord] = []
                with LogContext.bind(transaction_id=transaction_id):
                    for item in items:
                        product = products[item.product_id]
                        exit_entry = uow.post_movement(
                            product,
                            source,
                            MovementType.EXIT,
                            -item.quantity,
                            _transfer_details("to", destination.name, note),
                            transaction_id=transaction_id,
                            idempotency_key=stored_key,
                        )
                        entry_entry = uow.post_movement(
                            product,
                            destination,
                            MovementType.ENTRY,
                            item.quantity,
                            _transfer_details("from", source.name, note),
                            transaction_id=transaction_id,
                            idempotency_key=stored_key,
                        )
                        records.append(exit_entry.to_dto())
                        records.append(entry_entry.to_dto())
                result = TransferResult(
                    transaction_id=transaction_id,
                    records=tuple(records),
                )

        logger.info(
            "bulk_transfer_completed",
            extra={
                "from_warehouse_id": str(from_warehouse_id),
                "to_warehouse_id": str(to_warehouse_id),
                "item_count": len(items),
                "entry_count": len(result.records),
                "transaction_id": str(result.transaction_id),
            },
        )
        return result

    @staticmethod
    def receipt_keys(
        warehouse_id: UUID,
        lines: Iterable[ReceiptLine],
    ) -> list[LedgerKey]:
        """Ledger pairs a receipt of ``lines`` into ``warehouse_id`` touches."""
        return [LedgerKey(line.product_id, warehouse_id) for line in lines]

    def post_receipt(
        self,
        uow: UnitOfWork,
        warehouse_id: UUID,
        lines: Sequence[ReceiptLine],
        details: str,
    ) -> list[MovementRecord]:
        """
        Post one ENTRY per line inside an already open unit of work.

        Used by purchase order receipt so that the order's state change and
        its ledger effects commit together.  Lines share a transaction id
        when there are two or more.

        Raises:
            NonPositiveQuantityError, ProductNotFoundError,
            WarehouseNotFoundError
        """
        for line in lines:
            if line.quantity <= 0:
                raise NonPositiveQuantityError(line.quantity, line.product_id)
        warehouse = uow.require_warehouse(warehouse_id)
        products = [uow.require_product(line.product_id) for line in lines]

        transaction_id = self.new_transaction_id(len(lines))
        records = []
        with LogContext.bind(transaction_id=transaction_id):
            for line, product in zip(lines, products):
                entry = uow.post_movement(
                    product,
                    warehouse,
                    MovementType.ENTRY,
                    line.quantity,
                    details,
                    transaction_id=transaction_id,
                )
                records.append(entry.to_dto())

        logger.info(
            "receipt_posted",
            extra={
                "warehouse_id": str(warehouse_id),
                "line_count": len(lines),
                "transaction_id": str(transaction_id) if transaction_id else None,
            },
        )
        return records


def _transfer_details(direction: str, warehouse_name: str, details: str) -> str:
    text = f"Transfer {direction} {warehouse_name}."
    if details:
        text = f"{text} {details}"
    return text
