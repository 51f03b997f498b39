"""Selectors for the storefront kernel (read side)."""

from storefront_kernel.selectors.inventory_selector import InventorySelector
from storefront_kernel.selectors.order_selector import OrderSelector

__all__ = [
    "InventorySelector",
    "OrderSelector",
]
