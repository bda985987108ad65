"""
stock_services.dispatch_guide -- electronic dispatch guide (e-invoicing) boundary.

Responsibility:
    Builds a dispatch guide request from an EXIT movement already in the
    movement log and submits it to the tax authority gateway.  When the
    EXIT belongs to a transaction (a bulk transfer), the guide lists every
    EXIT of that transaction, one item per line, in append order.  The
    answer (ticket, receipt code, errors) is informational only.

Architecture position:
    Services -- external collaborator boundary.  Reads the movement log
    through ``MovementSelector``; never writes the ledger or the log.

Invariants enforced:
    - Only EXIT entries can be documented (``InvalidOperationError`` otherwise).
    - A gateway failure or exception never touches the movement.  It is
      returned as a failed ``DispatchGuideResult`` and logged at WARNING.

Failure modes:
    - ``MovementNotFoundError`` for an unknown entry id.
    - ``InvalidOperationError`` for a non-EXIT entry or when the service is
      disabled in settings.
"""

from __future__ import annotations

import random
from abc import ABC, abstractmethod
from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from uuid import UUID

from stock_kernel.db.engine import Database
from stock_kernel.domain.clock import Clock, SystemClock
from stock_kernel.domain.dtos import MovementRecord
from stock_kernel.domain.values import MovementType
from stock_kernel.exceptions import InvalidOperationError
from stock_kernel.logging_config import get_logger
from stock_kernel.selectors.movement_selector import MovementSelector

logger = get_logger("services.dispatch_guide")

# Unit of measure code for "unit" in the tax authority catalog
UNIT_CODE = "NIU"


@dataclass(frozen=True)
class GuideItem:
    code: str
    description: str
    quantity: int
    unit: str = UNIT_CODE


@dataclass(frozen=True)
class ShipmentDetails:
    """Carrier and route data supplied by the caller (not held in the log)."""
    company_tax_id: str
    recipient_name: str
    recipient_tax_id: str
    destination_address: str
    vehicle_plate: str = ""
    driver_id: str = ""
    transport_mode: str = "private"
    total_weight_kg: float = 0.0
    reason: str = "Transfer between establishments of the same company"
    reference_document: str | None = None


@dataclass(frozen=True)
class DispatchGuideRequest:
    """Payload sent to the gateway."""
    movement_id: UUID
    company_tax_id: str
    recipient_name: str
    recipient_tax_id: str
    origin: str
    destination: str
    vehicle_plate: str
    driver_id: str
    transport_mode: str
    total_weight_kg: float
    reason: str
    start_date: date
    items: tuple[GuideItem, ...]
    reference_document: str | None = None
    transaction_id: UUID | None = None


@dataclass(frozen=True)
class DispatchGuideResult:
    success: bool
    ticket: str
    receipt_code: str | None = None
    errors: tuple[str, ...] = field(default_factory=tuple)


class DispatchGuideGateway(ABC):
    """Client for the tax authority's dispatch guide endpoint."""

    @abstractmethod
    def submit(self, request: DispatchGuideRequest) -> DispatchGuideResult:
        ...


class SimulatedDispatchGuideGateway(DispatchGuideGateway):
    """
    Offline gateway that accepts a share of requests.

    ``rng`` is injectable so tests can fix the outcome.
    """

    REJECTION = "Error 2109: The carrier's tax id does not exist."

    def __init__(
        self,
        success_rate: float = 0.95,
        rng: random.Random | None = None,
        clock: Clock | None = None,
    ):
        if not 0.0 <= success_rate <= 1.0:
            raise ValueError("success_rate must be within [0, 1]")
        self._success_rate = success_rate
        self._rng = rng or random.Random()
        self._clock = clock or SystemClock()
        self.submitted: list[DispatchGuideRequest] = []

    def submit(self, request: DispatchGuideRequest) -> DispatchGuideResult:
        self.submitted.append(request)
        ticket = f"TICKET-{int(self._clock.now().timestamp() * 1000)}"
        if self._rng.random() < self._success_rate:
            return DispatchGuideResult(
                success=True,
                ticket=ticket,
                receipt_code=f"CDR-{self._rng.randrange(1_000_000)}",
            )
        return DispatchGuideResult(success=False, ticket=ticket, errors=(self.REJECTION,))


def build_request(
    movement: MovementRecord,
    shipment: ShipmentDetails,
    group: Sequence[MovementRecord] = (),
) -> DispatchGuideRequest:
    """
    Request for an EXIT movement, from its snapshot fields.

    ``group`` holds the EXIT entries of the movement's transaction in append
    order; each becomes one item.  Without it the guide lists ``movement``
    alone.
    """
    lines = tuple(group) or (movement,)
    return DispatchGuideRequest(
        movement_id=movement.id,
        company_tax_id=shipment.company_tax_id,
        recipient_name=shipment.recipient_name,
        recipient_tax_id=shipment.recipient_tax_id,
        origin=movement.warehouse_name,
        destination=shipment.destination_address,
        vehicle_plate=shipment.vehicle_plate,
        driver_id=shipment.driver_id,
        transport_mode=shipment.transport_mode,
        total_weight_kg=shipment.total_weight_kg,
        reason=shipment.reason,
        start_date=movement.timestamp.date(),
        items=tuple(
            GuideItem(
                code=line.sku,
                description=line.product_name,
                quantity=abs(line.quantity_change),
            )
            for line in lines
        ),
        reference_document=shipment.reference_document,
        transaction_id=movement.transaction_id,
    )


class DispatchGuideService:
    """Requests dispatch guides for completed EXIT movements."""

    def __init__(
        self,
        database: Database,
        gateway: DispatchGuideGateway,
        enabled: bool = True,
    ):
        self._database = database
        self._gateway = gateway
        self._enabled = enabled

    def request_for_movement(
        self,
        entry_id: UUID,
        shipment: ShipmentDetails,
    ) -> DispatchGuideResult:
        if not self._enabled:
            raise InvalidOperationError("Dispatch guide submission is disabled")

        with self._database.read_scope() as session:
            selector = MovementSelector(session)
            movement = selector.get(entry_id)
            if movement.movement_type != MovementType.EXIT:
                raise InvalidOperationError(
                    f"Dispatch guides document EXIT movements only, "
                    f"got {movement.movement_type.value}"
                )
            group: list[MovementRecord] = []
            if movement.transaction_id is not None:
                group = selector.list_movements(
                    transaction_id=movement.transaction_id,
                    movement_type=MovementType.EXIT,
                )
                group.reverse()

        request = build_request(movement, shipment, group)
        try:
            result = self._gateway.submit(request)
        except Exception as exc:
            logger.warning(
                "dispatch_guide_gateway_error",
                extra={"movement_id": str(entry_id), "error": str(exc)},
                exc_info=True,
            )
            return DispatchGuideResult(success=False, ticket="", errors=(str(exc),))

        if result.success:
            logger.info(
                "dispatch_guide_accepted",
                extra={"movement_id": str(entry_id), "ticket": result.ticket},
            )
        else:
            logger.warning(
                "dispatch_guide_rejected",
                extra={
                    "movement_id": str(entry_id),
                    "ticket": result.ticket,
                    "errors": list(result.errors),
                },
            )
        return result
