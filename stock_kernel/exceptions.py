"""
Typed Exception Hierarchy for the Stock Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers (UI actions, API handlers, purchase-order screens) must turn a
failed movement into a precise user-facing message.  Matching on message
text is fragile, so every error:
  1. Has its own class (catch by type, not message)
  2. Has a CODE attribute (machine-readable, API-safe)
  3. Carries structured DATA (product id, warehouse id, quantities, ...)

Example:
    try:
        engine.transfer_stock(...)
    except InsufficientStockError as e:
        show_error(code=e.code, available=e.available, requested=e.requested)

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    InventoryKernelError (base)
    |
    +-- NotFoundError
    |   +-- ProductNotFoundError
    |   +-- WarehouseNotFoundError
    |   +-- SupplierNotFoundError
    |   +-- UserNotFoundError
    |   +-- PurchaseOrderNotFoundError
    |   +-- IssuingCompanyNotFoundError
    |   +-- ScheduledPurchaseNotFoundError
    |   +-- MovementNotFoundError
    |
    +-- InvalidOperationError
    |   +-- ZeroQuantityAdjustmentError
    |   +-- SameWarehouseTransferError
    |   +-- NonPositiveQuantityError
    |   +-- EmptyBulkTransferError
    |
    +-- InsufficientStockError
    |
    +-- InvalidStateError
    |
    +-- ValidationError
    |   +-- DuplicateSkuError
    |   +-- DuplicateEmailError
    |
    +-- AuthenticationError
    |
    +-- ConcurrencyError
    |   +-- LockTimeoutError
    |
    +-- ImmutabilityViolationError

===============================================================================
PROPAGATION POLICY
===============================================================================

Every movement-engine error is raised BEFORE the first ledger or log write.
The transaction scope that wraps each operation rolls back anything that
was flushed, so the ledger and the movement log are observably unchanged
after any of these exceptions.  Nothing here is retried automatically.

===============================================================================
"""


class InventoryKernelError(Exception):
    """
    Base exception for all stock kernel errors.

    All subclasses carry a ``code`` class attribute for machine-readable
    identification.
    """

    code: str = "INVENTORY_KERNEL_ERROR"


# Lookup failures


class NotFoundError(InventoryKernelError):
    """A referenced entity does not exist."""

    code: str = "NOT_FOUND"
    entity_type: str = "entity"

    def __init__(self, entity_id: str):
        self.entity_id = str(entity_id)
        super().__init__(f"{self.entity_type} not found: {entity_id}")


class ProductNotFoundError(NotFoundError):
    code: str = "PRODUCT_NOT_FOUND"
    entity_type: str = "Product"


class WarehouseNotFoundError(NotFoundError):
    code: str = "WAREHOUSE_NOT_FOUND"
    entity_type: str = "Warehouse"


class SupplierNotFoundError(NotFoundError):
    code: str = "SUPPLIER_NOT_FOUND"
    entity_type: str = "Supplier"


class UserNotFoundError(NotFoundError):
    code: str = "USER_NOT_FOUND"
    entity_type: str = "User"


class PurchaseOrderNotFoundError(NotFoundError):
    code: str = "PURCHASE_ORDER_NOT_FOUND"
    entity_type: str = "PurchaseOrder"


class IssuingCompanyNotFoundError(NotFoundError):
    code: str = "ISSUING_COMPANY_NOT_FOUND"
    entity_type: str = "IssuingCompany"


class ScheduledPurchaseNotFoundError(NotFoundError):
    code: str = "SCHEDULED_PURCHASE_NOT_FOUND"
    entity_type: str = "ScheduledPurchase"


class MovementNotFoundError(NotFoundError):
    code: str = "MOVEMENT_NOT_FOUND"
    entity_type: str = "MovementLogEntry"


# Rejected requests


class InvalidOperationError(InventoryKernelError):
    """The requested operation is not meaningful (rejected before any write)."""

    code: str = "INVALID_OPERATION"

    def __init__(self, reason: str):
        self.reason = reason
        super().__init__(reason)


class ZeroQuantityAdjustmentError(InvalidOperationError):
    """An adjustment with quantity_change == 0 was requested."""

    code: str = "ZERO_QUANTITY_ADJUSTMENT"

    def __init__(self, product_id: str, warehouse_id: str):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        super().__init__(
            f"Adjustment of product {product_id} at warehouse {warehouse_id} "
            f"has zero quantity change"
        )


class SameWarehouseTransferError(InvalidOperationError):
    """Source and destination warehouse are the same."""

    code: str = "SAME_WAREHOUSE_TRANSFER"

    def __init__(self, warehouse_id: str):
        self.warehouse_id = str(warehouse_id)
        super().__init__(
            f"Cannot transfer within the same warehouse: {warehouse_id}"
        )


class NonPositiveQuantityError(InvalidOperationError):
    """A transfer or receipt quantity is zero or negative."""

    code: str = "NON_POSITIVE_QUANTITY"

    def __init__(self, quantity: int, product_id: str | None = None):
        self.quantity = quantity
        self.product_id = str(product_id) if product_id is not None else None
        super().__init__(f"Quantity must be positive, got {quantity}")


class EmptyBulkTransferError(InvalidOperationError):
    """A bulk transfer was requested with no items."""

    code: str = "EMPTY_BULK_TRANSFER"

    def __init__(self):
        super().__init__("Bulk transfer requires at least one item")


# Stock


class InsufficientStockError(InventoryKernelError):
    """
    Requested removal exceeds the quantity available at the source.

    For bulk transfers, ``requested`` is the total demand for the product
    across every line of the batch.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        product_id: str,
        warehouse_id: str,
        requested: int,
        available: int,
    ):
        self.product_id = str(product_id)
        self.warehouse_id = str(warehouse_id)
        self.requested = requested
        self.available = available
        super().__init__(
            f"Insufficient stock for product {product_id} at warehouse "
            f"{warehouse_id}: requested {requested}, available {available}"
        )


# Lifecycle


class InvalidStateError(InventoryKernelError):
    """A lifecycle transition was attempted from a state that forbids it."""

    code: str = "INVALID_STATE"

    def __init__(self, entity_id: str, current_state: str, action: str):
        self.entity_id = str(entity_id)
        self.current_state = current_state
        self.action = action
        super().__init__(
            f"Cannot {action} {entity_id}: current state is {current_state}"
        )


# Input validation


class ValidationError(InventoryKernelError):
    """A field value violates a catalog rule."""

    code: str = "VALIDATION_ERROR"

    def __init__(self, field: str, reason: str):
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid {field}: {reason}")


class DuplicateSkuError(ValidationError):
    code: str = "DUPLICATE_SKU"

    def __init__(self, sku: str):
        self.sku = sku
        super().__init__("sku", f"SKU already exists: {sku}")


class DuplicateEmailError(ValidationError):
    code: str = "DUPLICATE_EMAIL"

    def __init__(self, email: str):
        self.email = email
        super().__init__("email", f"email already registered: {email}")


class AuthenticationError(InventoryKernelError):
    """Credential check failed. Deliberately does not say which part."""

    code: str = "AUTHENTICATION_FAILED"

    def __init__(self, email: str):
        self.email = email
        super().__init__("Invalid email or password")


# Concurrency


class ConcurrencyError(InventoryKernelError):
    """Base exception for concurrency errors."""

    code: str = "CONCURRENCY_ERROR"


class LockTimeoutError(ConcurrencyError):
    """Ledger pair locks could not be acquired within the timeout."""

    code: str = "LOCK_TIMEOUT"

    def __init__(self, operation: str, timeout_seconds: float):
        self.operation = operation
        self.timeout_seconds = timeout_seconds
        super().__init__(
            f"Timed out after {timeout_seconds}s acquiring ledger locks "
            f"for {operation}"
        )


# Immutability


class ImmutabilityViolationError(InventoryKernelError):
    """An append-only record was about to be updated or deleted."""

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = str(entity_id)
        self.reason = reason
        super().__init__(
            f"Cannot modify {entity_type} {entity_id}: {reason}"
        )
