"""
storefront_services -- the storefront's public operation surface.

``StorefrontGateway`` exposes one method per storefront endpoint on top of
the kernel; ``requests`` holds the validated request structs those methods
accept.  The kernel never imports from this package.
"""

from storefront_services.gateway import (
    InventoryTransactionView,
    StorefrontGateway,
    error_payload,
)
from storefront_services.requests import (
    AddToCartRequest,
    ChangeOrderStatusRequest,
    PlaceOrderRequest,
    RecordInventoryTransactionRequest,
    SetStockLevelRequest,
    UpdateCartLineRequest,
)

__all__ = [
    "AddToCartRequest",
    "ChangeOrderStatusRequest",
    "InventoryTransactionView",
    "PlaceOrderRequest",
    "RecordInventoryTransactionRequest",
    "SetStockLevelRequest",
    "StorefrontGateway",
    "UpdateCartLineRequest",
    "error_payload",
]
