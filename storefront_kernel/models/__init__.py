"""ORM models.  Importing this package registers every table on Base.metadata."""

from storefront_kernel.models.cart import Cart, CartLine
from storefront_kernel.models.catalog import Product, StockStatus, Variant
from storefront_kernel.models.inventory import InventoryTxEntry, InventoryTxType
from storefront_kernel.models.order import Order, OrderLine, OrderStatus, StaffNote

__all__ = [
    "Cart",
    "CartLine",
    "InventoryTxEntry",
    "InventoryTxType",
    "Order",
    "OrderLine",
    "OrderStatus",
    "Product",
    "StaffNote",
    "StockStatus",
    "Variant",
]
