"""
Purchasing Module Service (``stock_modules.purchasing.service``).

Responsibility
--------------
Purchase order lifecycle: creation (DRAFT, numbered from the purchase order
counter, optionally under an issuing company profile), issue, cancel and
receipt.  Receipt is the only transition with ledger effects and delegates
every movement to the kernel ``MovementEngine``.

Architecture position
---------------------
**Modules layer** -- thin glue.  ``PurchaseOrderService`` is the sole
public entry point for purchase orders.

Invariants enforced
-------------------
* Each public method owns its transaction boundary (commit on success,
  rollback on exception).
* Transitions are looked up in ``PURCHASE_ORDER_WORKFLOW``; an action not
  allowed from the current state raises ``InvalidStateError``.  Receipt
  takes the transition the workflow marks as moving stock.
* Orders list by their counter value, so ``OC-10`` sorts after ``OC-9``.
* Receipt reloads the order inside the movement engine's unit of work, so
  the status check, the ENTRY movements and the RECEIVED status commit
  together.  A second receipt finds the order RECEIVED and changes nothing.

Failure modes
-------------
* ``PurchaseOrderNotFoundError``, ``SupplierNotFoundError``,
  ``WarehouseNotFoundError``, ``ProductNotFoundError``,
  ``IssuingCompanyNotFoundError``.
* ``ValidationError`` for an empty order, a negative price or a product
  listed twice; ``NonPositiveQuantityError`` for a line quantity <= 0.
* ``InvalidStateError`` for a transition the workflow forbids.

Audit relevance
---------------
Structured log events at every transition, carrying the order number.
Received orders record the receipt's movement ``transaction_id``.

Usage::

    service = PurchaseOrderService(database, engine, clock=clock)
    order = service.create_purchase_order(
        supplier_id=supplier.id,
        destination_warehouse_id=warehouse.id,
        lines=[NewPurchaseOrderLine(product.id, 10, Decimal("4.50"))],
    )
    service.issue(order.id)
    service.receive(order.id)
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.values import ReceiptLine
from stock_kernel.exceptions import (
    InvalidStateError,
    IssuingCompanyNotFoundError,
    NonPositiveQuantityError,
    ProductNotFoundError,
    PurchaseOrderNotFoundError,
    SupplierNotFoundError,
    ValidationError,
    WarehouseNotFoundError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Product, Supplier, Warehouse
from stock_kernel.services.movement_engine import MovementEngine
from stock_kernel.services.sequence_service import SequenceService
from stock_modules.purchasing.config import PurchasingConfig
from stock_modules.purchasing.models import (
    NewPurchaseOrderLine,
    PurchaseOrder,
    PurchaseOrderReceipt,
    PurchaseOrderStatus,
)
from stock_modules.purchasing.orm import (
    IssuingCompanyModel,
    PurchaseOrderLineModel,
    PurchaseOrderModel,
)
from stock_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

logger = get_logger("modules.purchasing.service")


def _load(session: Session, purchase_order_id: UUID) -> PurchaseOrderModel:
    order = session.get(PurchaseOrderModel, purchase_order_id)
    if order is None:
        raise PurchaseOrderNotFoundError(str(purchase_order_id))
    return order


def _validate_lines(lines: Sequence[NewPurchaseOrderLine]) -> None:
    if not lines:
        raise ValidationError("lines", "a purchase order needs at least one line")
    seen: set[UUID] = set()
    for line in lines:
        if line.quantity <= 0:
            raise NonPositiveQuantityError(line.quantity, line.product_id)
        if Decimal(str(line.price)) < 0:
            raise ValidationError("price", f"must be >= 0 (product {line.product_id})")
        if line.product_id in seen:
            raise ValidationError("lines", f"product {line.product_id} listed twice")
        seen.add(line.product_id)


def _apply_transition(order: PurchaseOrderModel, action: str) -> str:
    """Move ``order`` along the workflow.  Returns the previous status."""
    transition = PURCHASE_ORDER_WORKFLOW.find_transition(order.status, action)
    if transition is None:
        raise InvalidStateError(order.id, order.status, action)
    previous = order.status
    order.status = transition.to_state
    return previous


class PurchaseOrderService:
    """
    Purchase order operations.

    Contract
    --------
    * Every method returns frozen DTOs (``PurchaseOrder``,
      ``PurchaseOrderReceipt``), never ORM instances.
    """

    def __init__(
        self,
        database: Database,
        engine: MovementEngine,
        clock: Clock | None = None,
        config: PurchasingConfig | None = None,
    ):
        self._database = database
        self._engine = engine
        self._clock = clock or SystemClock()
        self._config = config or PurchasingConfig()

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_purchase_order(
        self,
        supplier_id: UUID,
        destination_warehouse_id: UUID,
        lines: Sequence[NewPurchaseOrderLine],
        issuing_company_id: UUID | None = None,
        issue_date: date | None = None,
        delivery_date: date | None = None,
        requester: str = "",
        actor: str = "system",
    ) -> PurchaseOrder:
        """Create a DRAFT purchase order.  The total is derived from the lines."""
        lines = list(lines)
        logger.info(
            "purchase_order_create_started",
            extra={"supplier_id": str(supplier_id), "line_count": len(lines), "actor": actor},
        )
        with self._database.session_scope() as session:
            dto = self.create_in_session(
                session,
                supplier_id,
                destination_warehouse_id,
                lines,
                issuing_company_id=issuing_company_id,
                issue_date=issue_date,
                delivery_date=delivery_date,
                requester=requester,
            )

        logger.info(
            "purchase_order_created",
            extra={
                "purchase_order_id": str(dto.id),
                "order_number": dto.order_number,
                "total": dto.total,
            },
        )
        return dto

    def create_in_session(
        self,
        session: Session,
        supplier_id: UUID,
        destination_warehouse_id: UUID,
        lines: Sequence[NewPurchaseOrderLine],
        issuing_company_id: UUID | None = None,
        issue_date: date | None = None,
        delivery_date: date | None = None,
        requester: str = "",
    ) -> PurchaseOrder:
        """
        Build and flush a DRAFT order inside the caller's transaction.

        Used by ``create_purchase_order`` and by scheduled purchase
        conversion, which deletes the schedule in the same transaction.
        """
        _validate_lines(lines)
        if session.get(Supplier, supplier_id) is None:
            raise SupplierNotFoundError(str(supplier_id))
        if session.get(Warehouse, destination_warehouse_id) is None:
            raise WarehouseNotFoundError(str(destination_warehouse_id))
        if (
            issuing_company_id is not None
            and session.get(IssuingCompanyModel, issuing_company_id) is None
        ):
            raise IssuingCompanyNotFoundError(str(issuing_company_id))

        line_models = []
        for number, line in enumerate(lines, start=1):
            product = session.get(Product, line.product_id)
            if product is None:
                raise ProductNotFoundError(str(line.product_id))
            line_models.append(
                PurchaseOrderLineModel(
                    line_number=number,
                    product_id=product.id,
                    product_name=product.name,
                    sku=product.sku,
                    quantity=line.quantity,
                    price=Decimal(str(line.price)),
                )
            )

        counter = SequenceService(session).next_value(SequenceService.PURCHASE_ORDER)
        order = PurchaseOrderModel(
            order_number=self._config.format_order_number(counter),
            number=counter,
            supplier_id=supplier_id,
            issuing_company_id=issuing_company_id,
            destination_warehouse_id=destination_warehouse_id,
            issue_date=issue_date or self._clock.today(),
            delivery_date=delivery_date,
            status=PURCHASE_ORDER_WORKFLOW.initial_state,
            requester=requester,
            total=sum((m.price * m.quantity for m in line_models), Decimal("0")),
            lines=line_models,
        )
        session.add(order)
        session.flush()
        return order.to_dto()

    # ------------------------------------------------------------------
    # Transitions without ledger effects
    # ------------------------------------------------------------------

    def _transition(self, purchase_order_id: UUID, action: str, actor: str) -> PurchaseOrder:
        with self._database.session_scope() as session:
            order = _load(session, purchase_order_id)
            previous = _apply_transition(order, action)
            session.flush()
            dto = order.to_dto()
        logger.info(
            f"purchase_order_{action}",
            extra={
                "order_number": dto.order_number,
                "from_status": previous,
                "to_status": dto.status.value,
                "actor": actor,
            },
        )
        return dto

    def issue(self, purchase_order_id: UUID, actor: str = "system") -> PurchaseOrder:
        """DRAFT -> ISSUED.  No ledger effect."""
        return self._transition(purchase_order_id, "issue", actor)

    def cancel(self, purchase_order_id: UUID, actor: str = "system") -> PurchaseOrder:
        """DRAFT or ISSUED -> CANCELLED.  No ledger effect."""
        return self._transition(purchase_order_id, "cancel", actor)

    # ------------------------------------------------------------------
    # Receipt
    # ------------------------------------------------------------------

    def receive(
        self,
        purchase_order_id: UUID,
        warehouse_id: UUID | None = None,
        actor: str = "system",
    ) -> PurchaseOrderReceipt:
        """
        ISSUED -> RECEIVED, posting one ENTRY per line.

        ``warehouse_id`` overrides the order's destination warehouse.
        Lines share one movement transaction id when there are two or more.
        """
        with self._database.read_scope() as session:
            snapshot = _load(session, purchase_order_id).to_dto()

        target = warehouse_id or snapshot.destination_warehouse_id
        lines = [ReceiptLine(line.product_id, line.quantity) for line in snapshot.lines]

        with self._engine.unit_of_work(
            self._engine.receipt_keys(target, lines),
            "receive_purchase_order",
            actor,
        ) as uow:
            order = _load(uow.session, purchase_order_id)
            transition = PURCHASE_ORDER_WORKFLOW.stock_transition_from(order.status)
            if transition is None:
                logger.warning(
                    "purchase_order_receive_rejected",
                    extra={"order_number": order.order_number, "status": order.status},
                )
                raise InvalidStateError(order.id, order.status, "receive")

            movements = self._engine.post_receipt(
                uow,
                target,
                lines,
                details=f"Receipt of purchase order {order.order_number}.",
            )
            order.status = transition.to_state
            order.received_at = self._clock.now()
            order.received_warehouse_id = target
            order.receipt_transaction_id = movements[0].transaction_id
            uow.session.flush()
            result = PurchaseOrderReceipt(
                purchase_order=order.to_dto(),
                movements=tuple(movements),
            )

        logger.info(
            "purchase_order_received",
            extra={
                "order_number": result.purchase_order.order_number,
                "warehouse_id": str(target),
                "movement_count": len(result.movements),
                "actor": actor,
            },
        )
        return result

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    def get_purchase_order(self, purchase_order_id: UUID) -> PurchaseOrder:
        with self._database.read_scope() as session:
            return _load(session, purchase_order_id).to_dto()

    def list_purchase_orders(
        self,
        status: PurchaseOrderStatus | None = None,
    ) -> list[PurchaseOrder]:
        """Orders newest first by counter value, optionally filtered by status."""
        with self._database.read_scope() as session:
            stmt = select(PurchaseOrderModel).order_by(PurchaseOrderModel.number.desc())
            if status is not None:
                stmt = stmt.where(PurchaseOrderModel.status == PurchaseOrderStatus(status).value)
            return [order.to_dto() for order in session.execute(stmt).scalars()]

    @staticmethod
    def supplier_has_orders(session: Session, supplier_id: UUID) -> bool:
        """Supplier reference check registered with the kernel catalog."""
        return (
            session.execute(
                select(PurchaseOrderModel.id)
                .where(PurchaseOrderModel.supplier_id == supplier_id)
                .limit(1)
            ).first()
            is not None
        )
