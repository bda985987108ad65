"""
Purchasing Module (``stock_modules.purchasing``).

Responsibility
--------------
Purchase order lifecycle: DRAFT -> ISSUED -> RECEIVED, with cancellation
from DRAFT or ISSUED.  Receipt posts ENTRY movements through the kernel
movement engine; no other transition touches the ledger.  Orders may be
issued under a company profile, and purchases can be scheduled ahead and
later converted into DRAFT orders.

Architecture position
---------------------
**Modules layer** -- workflow definition, config schema, ORM, DTOs and
service facades.
"""

from stock_modules.purchasing.companies import IssuingCompanyService
from stock_modules.purchasing.config import PurchasingConfig
from stock_modules.purchasing.models import (
    CompanyDetail,
    IssuingCompany,
    NewPurchaseOrderLine,
    NewScheduledPurchaseItem,
    PurchaseOrder,
    PurchaseOrderLine,
    PurchaseOrderReceipt,
    PurchaseOrderStatus,
    ScheduledPurchase,
    ScheduledPurchaseItem,
)
from stock_modules.purchasing.scheduling import ScheduledPurchaseService
from stock_modules.purchasing.service import PurchaseOrderService
from stock_modules.purchasing.workflows import PURCHASE_ORDER_WORKFLOW

__all__ = [
    "PurchasingConfig",
    "CompanyDetail",
    "IssuingCompany",
    "IssuingCompanyService",
    "NewPurchaseOrderLine",
    "NewScheduledPurchaseItem",
    "PurchaseOrder",
    "PurchaseOrderLine",
    "PurchaseOrderReceipt",
    "PurchaseOrderStatus",
    "PurchaseOrderService",
    "ScheduledPurchase",
    "ScheduledPurchaseItem",
    "ScheduledPurchaseService",
    "PURCHASE_ORDER_WORKFLOW",
]
