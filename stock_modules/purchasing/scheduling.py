"""
Scheduled purchases (``stock_modules.purchasing.scheduling``).

Responsibility
--------------
Purchases planned for a future date: a title, an optional supplier, notes
and a list of product quantities.  A schedule with a supplier and at least
one item can be turned into a DRAFT purchase order; the conversion removes
the schedule in the same transaction that creates the order.

Invariants enforced
-------------------
* Item quantities are > 0 and each product appears once.
* Item name and SKU are snapshots taken when the item is written.
* Conversion is all or nothing: a rejected conversion keeps the schedule
  and consumes no order number.
* Converted order lines are priced 0 and delivered on the scheduled date.

Failure modes
-------------
* ``ScheduledPurchaseNotFoundError``, ``ProductNotFoundError``,
  ``SupplierNotFoundError``.
* ``ValidationError`` for a blank title, an empty or duplicated item list,
  or converting a schedule without supplier or items.
* ``NonPositiveQuantityError`` for an item quantity <= 0.
"""

from collections.abc import Sequence
from datetime import date
from decimal import Decimal
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from stock_kernel.db.engine import Database
from stock_kernel.exceptions import (
    NonPositiveQuantityError,
    ProductNotFoundError,
    ScheduledPurchaseNotFoundError,
    SupplierNotFoundError,
    ValidationError,
)
from stock_kernel.logging_config import get_logger
from stock_kernel.models.catalog import Product, Supplier
from stock_modules.purchasing.models import (
    NewPurchaseOrderLine,
    NewScheduledPurchaseItem,
    PurchaseOrder,
    ScheduledPurchase,
)
from stock_modules.purchasing.orm import ScheduledPurchaseItemModel, ScheduledPurchaseModel
from stock_modules.purchasing.service import PurchaseOrderService

logger = get_logger("modules.purchasing.scheduling")

_UNSET = object()


def _load(session: Session, schedule_id: UUID) -> ScheduledPurchaseModel:
    schedule = session.get(ScheduledPurchaseModel, schedule_id)
    if schedule is None:
        raise ScheduledPurchaseNotFoundError(str(schedule_id))
    return schedule


def _title(value: str) -> str:
    value = (value or "").strip()
    if not value:
        raise ValidationError("title", "must not be empty")
    return value


def _item_models(
    session: Session,
    items: Sequence[NewScheduledPurchaseItem],
) -> list[ScheduledPurchaseItemModel]:
    if not items:
        raise ValidationError("items", "a scheduled purchase needs at least one item")
    seen: set[UUID] = set()
    models = []
    for number, item in enumerate(items, start=1):
        if item.quantity <= 0:
            raise NonPositiveQuantityError(item.quantity, item.product_id)
        if item.product_id in seen:
            raise ValidationError("items", f"product {item.product_id} listed twice")
        seen.add(item.product_id)
        product = session.get(Product, item.product_id)
        if product is None:
            raise ProductNotFoundError(str(item.product_id))
        models.append(
            ScheduledPurchaseItemModel(
                line_number=number,
                product_id=product.id,
                product_name=product.name,
                sku=product.sku,
                quantity=item.quantity,
            )
        )
    return models


def _check_supplier(session: Session, supplier_id: UUID | None) -> None:
    if supplier_id is not None and session.get(Supplier, supplier_id) is None:
        raise SupplierNotFoundError(str(supplier_id))


class ScheduledPurchaseService:
    """
    Scheduled purchases and their conversion into purchase orders.

    Args:
        database: Owned database handle.
        purchase_orders: Creates the order inside the conversion transaction.
    """

    def __init__(self, database: Database, purchase_orders: PurchaseOrderService):
        self._database = database
        self._purchase_orders = purchase_orders

    def schedule_purchase(
        self,
        scheduled_date: date,
        title: str,
        items: Sequence[NewScheduledPurchaseItem],
        supplier_id: UUID | None = None,
        notes: str = "",
        created_by: str = "system",
    ) -> ScheduledPurchase:
        items = list(items)
        with self._database.session_scope() as session:
            _check_supplier(session, supplier_id)
            schedule = ScheduledPurchaseModel(
                scheduled_date=scheduled_date,
                title=_title(title),
                supplier_id=supplier_id,
                notes=notes,
                created_by=created_by,
                items=_item_models(session, items),
            )
            session.add(schedule)
            session.flush()
            dto = schedule.to_dto()
        logger.info(
            "purchase_scheduled",
            extra={
                "scheduled_purchase_id": str(dto.id),
                "scheduled_date": dto.scheduled_date.isoformat(),
                "item_count": len(dto.items),
                "actor": created_by,
            },
        )
        return dto

    def update_scheduled_purchase(
        self,
        schedule_id: UUID,
        scheduled_date: date | None = None,
        title: str | None = None,
        items: Sequence[NewScheduledPurchaseItem] | None = None,
        supplier_id=_UNSET,
        notes: str | None = None,
    ) -> ScheduledPurchase:
        """
        Change a schedule in place.  ``items`` replaces the whole list.

        Pass ``supplier_id=None`` to clear the supplier.
        """
        with self._database.session_scope() as session:
            schedule = _load(session, schedule_id)
            if scheduled_date is not None:
                schedule.scheduled_date = scheduled_date
            if title is not None:
                schedule.title = _title(title)
            if notes is not None:
                schedule.notes = notes
            if supplier_id is not _UNSET:
                _check_supplier(session, supplier_id)
                schedule.supplier_id = supplier_id
            if items is not None:
                new_items = _item_models(session, list(items))
                schedule.items.clear()
                session.flush()
                schedule.items.extend(new_items)
            session.flush()
            dto = schedule.to_dto()
        logger.info("scheduled_purchase_updated", extra={"scheduled_purchase_id": str(schedule_id)})
        return dto

    def delete_scheduled_purchase(self, schedule_id: UUID) -> None:
        with self._database.session_scope() as session:
            session.delete(_load(session, schedule_id))
        logger.info("scheduled_purchase_deleted", extra={"scheduled_purchase_id": str(schedule_id)})

    def get_scheduled_purchase(self, schedule_id: UUID) -> ScheduledPurchase:
        with self._database.read_scope() as session:
            return _load(session, schedule_id).to_dto()

    def list_scheduled_purchases(
        self,
        since: date | None = None,
        until: date | None = None,
    ) -> list[ScheduledPurchase]:
        """Schedules by date, inclusive bounds."""
        with self._database.read_scope() as session:
            stmt = select(ScheduledPurchaseModel).order_by(
                ScheduledPurchaseModel.scheduled_date,
                ScheduledPurchaseModel.created_at,
            )
            if since is not None:
                stmt = stmt.where(ScheduledPurchaseModel.scheduled_date >= since)
            if until is not None:
                stmt = stmt.where(ScheduledPurchaseModel.scheduled_date <= until)
            return [schedule.to_dto() for schedule in session.execute(stmt).scalars()]

    def generate_purchase_order(
        self,
        schedule_id: UUID,
        destination_warehouse_id: UUID,
        issuing_company_id: UUID | None = None,
        actor: str = "system",
    ) -> PurchaseOrder:
        """Turn a schedule into a DRAFT purchase order and remove the schedule."""
        with self._database.session_scope() as session:
            schedule = _load(session, schedule_id)
            snapshot = schedule.to_dto()
            if not snapshot.ready_for_order:
                logger.warning(
                    "scheduled_purchase_conversion_rejected",
                    extra={
                        "scheduled_purchase_id": str(schedule_id),
                        "has_supplier": snapshot.supplier_id is not None,
                        "item_count": len(snapshot.items),
                    },
                )
                raise ValidationError(
                    "scheduled_purchase",
                    "a supplier and at least one item are needed to create an order",
                )
            order = self._purchase_orders.create_in_session(
                session,
                snapshot.supplier_id,
                destination_warehouse_id,
                [
                    NewPurchaseOrderLine(item.product_id, item.quantity, Decimal("0"))
                    for item in snapshot.items
                ],
                issuing_company_id=issuing_company_id,
                delivery_date=snapshot.scheduled_date,
                requester=snapshot.created_by,
            )
            session.delete(schedule)

        logger.info(
            "scheduled_purchase_converted",
            extra={
                "scheduled_purchase_id": str(schedule_id),
                "purchase_order_id": str(order.id),
                "order_number": order.order_number,
                "actor": actor,
            },
        )
        return order

    @staticmethod
    def supplier_has_schedules(session: Session, supplier_id: UUID) -> bool:
        """Supplier reference check registered with the kernel catalog."""
        return (
            session.execute(
                select(ScheduledPurchaseModel.id)
                .where(ScheduledPurchaseModel.supplier_id == supplier_id)
                .limit(1)
            ).first()
            is not None
        )
