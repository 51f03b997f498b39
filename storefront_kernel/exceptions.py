"""
Typed Exception Hierarchy for the Storefront Kernel.

===============================================================================
WHY TYPED EXCEPTIONS
===============================================================================

Callers of the kernel (the HTTP layer, scripts, tests) must be able to tell a
shortfall of stock from an illegal status change from a dead database without
parsing message strings.  Every error therefore:

  1. Has its own class (catch by type, not message)
  2. Has a CODE class attribute (machine-readable, API-safe)
  3. Carries structured DATA as attributes (available/requested, from/to ...)

Example:

    try:
        machine.transition(order_id, OrderStatus.CONFIRMED, actor_id="staff-1")
    except InsufficientStockError as e:
        return {"error": e.code, "sku_id": e.sku_id,
                "available": e.available, "requested": e.requested}

===============================================================================
EXCEPTION HIERARCHY
===============================================================================

    StorefrontError (base)
    |
    +-- NotFoundError
    |   +-- SkuNotFoundError
    |   +-- CartLineNotFoundError
    |   +-- OrderNotFoundError
    |
    +-- InvalidQuantityError
    |
    +-- StockError
    |   +-- InsufficientStockError
    |
    +-- CheckoutError
    |   +-- EmptyCartError
    |
    +-- OrderLifecycleError
    |   +-- InvalidTransitionError
    |
    +-- ImmutabilityError
    |   +-- ImmutabilityViolationError
    |   +-- SkuReferencedError
    |
    +-- RequestValidationError
    |
    +-- StorageUnavailableError

===============================================================================
ERROR CODES - QUICK REFERENCE
===============================================================================

Category        | Code                    | When Raised
----------------|-------------------------|-----------------------------------------
Not found       | SKU_NOT_FOUND           | SKU / variant id doesn't exist
                | CART_LINE_NOT_FOUND     | Cart line id doesn't exist
                | ORDER_NOT_FOUND         | Order id doesn't exist
----------------|-------------------------|-----------------------------------------
Quantity        | INVALID_QUANTITY        | Non-positive, negative or non-integer qty
----------------|-------------------------|-----------------------------------------
Stock           | INSUFFICIENT_STOCK      | Requested exceeds available
----------------|-------------------------|-----------------------------------------
Checkout        | EMPTY_CART              | Checkout of a missing or empty cart
----------------|-------------------------|-----------------------------------------
Lifecycle       | INVALID_TRANSITION      | Status change not in the state machine
----------------|-------------------------|-----------------------------------------
Immutability    | IMMUTABILITY_VIOLATION  | UPDATE/DELETE of a ledger entry or line
                | SKU_REFERENCED          | Deleting a SKU held by an open order
----------------|-------------------------|-----------------------------------------
Request         | REQUEST_VALIDATION      | Unknown / missing / malformed fields
----------------|-------------------------|-----------------------------------------
Internal        | STORAGE_UNAVAILABLE     | Data store failure (not a domain error)

Domain errors are recoverable: they are reported to the caller and the
surrounding transaction is rolled back.  StorageUnavailableError is the one
"internal" error and is kept apart so the HTTP layer can answer 5xx for it
and 4xx for everything else.
"""

from decimal import Decimal
from typing import Any


class StorefrontError(Exception):
    """
    Base exception for all storefront kernel errors.

    All subclasses must have a `code` class attribute for machine-readable
    error identification.
    """

    code: str = "STOREFRONT_ERROR"

    def to_dict(self) -> dict[str, Any]:
        """Structured payload: code, message and every public attribute."""
        payload: dict[str, Any] = {"code": self.code, "message": str(self)}
        for key, value in vars(self).items():
            if key.startswith("_"):
                continue
            if isinstance(value, Decimal):
                value = str(value)
            payload[key] = value
        return payload


# Not-found exceptions


class NotFoundError(StorefrontError):
    """Base exception for missing entities."""

    code: str = "NOT_FOUND"


class SkuNotFoundError(NotFoundError):
    """SKU (variant) with given ID was not found."""

    code: str = "SKU_NOT_FOUND"

    def __init__(self, sku_id: str):
        self.sku_id = sku_id
        super().__init__(f"SKU not found: {sku_id}")


class CartLineNotFoundError(NotFoundError):
    """Cart line with given ID was not found."""

    code: str = "CART_LINE_NOT_FOUND"

    def __init__(self, line_id: str):
        self.line_id = line_id
        super().__init__(f"Cart line not found: {line_id}")


class OrderNotFoundError(NotFoundError):
    """Order with given ID was not found."""

    code: str = "ORDER_NOT_FOUND"

    def __init__(self, order_id: str):
        self.order_id = order_id
        super().__init__(f"Order not found: {order_id}")


# Quantity exceptions


class InvalidQuantityError(StorefrontError):
    """Quantity is non-positive, negative, malformed, or has the wrong sign."""

    code: str = "INVALID_QUANTITY"

    def __init__(self, quantity: Any, reason: str):
        self.quantity = quantity
        self.reason = reason
        super().__init__(f"Invalid quantity {quantity!r}: {reason}")


# Stock exceptions


class StockError(StorefrontError):
    """Base exception for stock-level errors."""

    code: str = "STOCK_ERROR"


class InsufficientStockError(StockError):
    """
    Requested quantity exceeds the stock available for a SKU.

    Carries enough detail for the caller to display a message or retry
    with a smaller quantity.
    """

    code: str = "INSUFFICIENT_STOCK"

    def __init__(
        self,
        sku_id: str,
        available: int,
        requested: int,
        sku_name: str | None = None,
    ):
        self.sku_id = sku_id
        self.available = available
        self.requested = requested
        self.sku_name = sku_name
        label = sku_name or sku_id
        super().__init__(
            f"Insufficient stock for {label}: "
            f"available={available}, requested={requested}"
        )


# Checkout exceptions


class CheckoutError(StorefrontError):
    """Base exception for cart-to-order conversion errors."""

    code: str = "CHECKOUT_ERROR"


class EmptyCartError(CheckoutError):
    """Customer has no cart, or the cart has no lines."""

    code: str = "EMPTY_CART"

    def __init__(self, customer_id: str):
        self.customer_id = customer_id
        super().__init__(f"Cart is empty for customer {customer_id}")


# Order lifecycle exceptions


class OrderLifecycleError(StorefrontError):
    """Base exception for order status errors."""

    code: str = "ORDER_LIFECYCLE_ERROR"


class InvalidTransitionError(OrderLifecycleError):
    """Requested status change is not permitted by the order state machine."""

    code: str = "INVALID_TRANSITION"

    def __init__(self, order_id: str, from_status: str, to_status: str):
        self.order_id = order_id
        self.from_status = from_status
        self.to_status = to_status
        super().__init__(
            f"Invalid transition for order {order_id}: "
            f"{from_status} -> {to_status}"
        )


# Immutability exceptions


class ImmutabilityError(StorefrontError):
    """Base exception for immutability-related errors."""

    code: str = "IMMUTABILITY_ERROR"


class ImmutabilityViolationError(ImmutabilityError):
    """
    Attempted to modify or delete an immutable record.

    Ledger entries and order lines are immutable from creation; an order
    header's financial fields are immutable after insert.
    """

    code: str = "IMMUTABILITY_VIOLATION"

    def __init__(self, entity_type: str, entity_id: str, reason: str):
        self.entity_type = entity_type
        self.entity_id = entity_id
        self.reason = reason
        super().__init__(
            f"Immutability violation on {entity_type} {entity_id}: {reason}"
        )


class SkuReferencedError(ImmutabilityError):
    """SKU cannot be deleted while an open order references it."""

    code: str = "SKU_REFERENCED"

    def __init__(self, sku_id: str):
        self.sku_id = sku_id
        super().__init__(
            f"SKU {sku_id} is referenced by an open order and cannot be deleted"
        )


# Request validation


class RequestValidationError(StorefrontError):
    """Incoming request body has unknown, missing, or malformed fields."""

    code: str = "REQUEST_VALIDATION"

    def __init__(self, request_type: str, field_errors: list[dict]):
        self.request_type = request_type
        self.field_errors = field_errors
        super().__init__(
            f"Invalid {request_type}: {len(field_errors)} error(s)"
        )


# Internal


class StorageUnavailableError(StorefrontError):
    """The data store failed underneath a kernel operation."""

    code: str = "STORAGE_UNAVAILABLE"

    def __init__(self, operation: str, detail: str):
        self.operation = operation
        self.detail = detail
        super().__init__(f"Storage unavailable during {operation}: {detail}")
