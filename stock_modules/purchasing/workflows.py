"""
Purchasing Workflows.

State machine for the purchase order lifecycle.

    DRAFT --issue--> ISSUED --receive--> RECEIVED
    DRAFT --cancel--> CANCELLED
    ISSUED --cancel--> CANCELLED

RECEIVED and CANCELLED are terminal.  ``receive`` is the only transition
that moves stock.
"""

from stock_kernel.domain.workflow import Transition, Workflow
from stock_kernel.logging_config import get_logger
from stock_modules.purchasing.models import PurchaseOrderStatus

logger = get_logger("modules.purchasing.workflows")


# -----------------------------------------------------------------------------
# Purchase Order Workflow
# -----------------------------------------------------------------------------

_DRAFT = PurchaseOrderStatus.DRAFT.value
_ISSUED = PurchaseOrderStatus.ISSUED.value
_RECEIVED = PurchaseOrderStatus.RECEIVED.value
_CANCELLED = PurchaseOrderStatus.CANCELLED.value

PURCHASE_ORDER_WORKFLOW = Workflow(
    name="purchase_order",
    description="Purchase order lifecycle",
    initial_state=_DRAFT,
    states=(_DRAFT, _ISSUED, _RECEIVED, _CANCELLED),
    transitions=(
        Transition(_DRAFT, _ISSUED, action="issue"),
        Transition(
            _ISSUED,
            _RECEIVED,
            action="receive",
            moves_stock=True,
        ),
        Transition(_DRAFT, _CANCELLED, action="cancel"),
        Transition(_ISSUED, _CANCELLED, action="cancel"),
    ),
    terminal_states=(_RECEIVED, _CANCELLED),
)

logger.debug(
    "purchasing_po_workflow_registered",
    extra={
        "workflow_name": PURCHASE_ORDER_WORKFLOW.name,
        "state_count": len(PURCHASE_ORDER_WORKFLOW.states),
        "transition_count": len(PURCHASE_ORDER_WORKFLOW.transitions),
        "initial_state": PURCHASE_ORDER_WORKFLOW.initial_state,
    },
)
