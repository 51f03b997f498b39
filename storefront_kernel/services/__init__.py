"""Services for the storefront kernel (write side)."""

from storefront_kernel.services.cart_aggregator import CartAggregator
from storefront_kernel.services.catalog_service import CatalogService
from storefront_kernel.services.inventory_ledger import InventoryLedger
from storefront_kernel.services.order_state_machine import OrderStateMachine

__all__ = [
    "CartAggregator",
    "CatalogService",
    "InventoryLedger",
    "OrderStateMachine",
]
