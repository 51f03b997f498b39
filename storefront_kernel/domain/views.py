"""
Views -- immutable projections returned by the kernel.

Responsibility:
    Frozen dataclasses handed back to callers instead of ORM instances, so a
    caller can never mutate a row outside the service that owns it and never
    triggers lazy loads after the session is closed.  ``from_model()``
    converters are the only place that reads ORM attributes.

Architecture position:
    Kernel > Domain.  Imports models for type conversion only.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Any
from uuid import UUID

from storefront_kernel.models.catalog import StockStatus
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.models.order import OrderStatus

if TYPE_CHECKING:
    from storefront_kernel.models.cart import Cart, CartLine
    from storefront_kernel.models.catalog import Variant
    from storefront_kernel.models.inventory import InventoryTxEntry
    from storefront_kernel.models.order import Order, OrderLine, StaffNote


# =============================================================================
# Cart
# =============================================================================


@dataclass(frozen=True)
class CartLineView:
    line_id: UUID
    cart_id: UUID
    sku_id: UUID
    product_name: str
    variant_name: str
    image_url: str | None
    unit_price: Decimal
    quantity: int
    line_amount: Decimal

    @classmethod
    def from_model(cls, line: CartLine) -> CartLineView:
        return cls(
            line_id=line.id,
            cart_id=line.cart_id,
            sku_id=line.sku_id,
            product_name=line.sku.product_name,
            variant_name=line.sku.name,
            image_url=line.sku.image_url,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_amount=line.line_amount,
        )


@dataclass(frozen=True)
class CartSnapshot:
    """A customer's cart: its lines plus the cached totals."""

    customer_id: str
    cart_id: UUID | None
    lines: tuple[CartLineView, ...]
    total_items: int
    total_amount: Decimal

    @property
    def is_empty(self) -> bool:
        return not self.lines

    @classmethod
    def empty(cls, customer_id: str) -> CartSnapshot:
        return cls(
            customer_id=customer_id,
            cart_id=None,
            lines=(),
            total_items=0,
            total_amount=Decimal("0"),
        )

    @classmethod
    def from_model(cls, cart: Cart) -> CartSnapshot:
        return cls(
            customer_id=cart.customer_id,
            cart_id=cart.id,
            lines=tuple(CartLineView.from_model(line) for line in cart.lines),
            total_items=cart.total_items,
            total_amount=cart.total_amount,
        )


# =============================================================================
# Orders
# =============================================================================


@dataclass(frozen=True)
class OrderLineView:
    line_id: UUID
    sku_id: UUID
    product_name: str
    variant_name: str
    unit_price: Decimal
    quantity: int
    line_total: Decimal

    @classmethod
    def from_model(cls, line: OrderLine) -> OrderLineView:
        return cls(
            line_id=line.id,
            sku_id=line.sku_id,
            product_name=line.product_name,
            variant_name=line.variant_name,
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
        )


@dataclass(frozen=True)
class StaffNoteView:
    note_id: UUID
    author_id: str
    author_name: str
    content: str
    written_at: datetime

    @classmethod
    def from_model(cls, note: StaffNote) -> StaffNoteView:
        return cls(
            note_id=note.id,
            author_id=note.author_id,
            author_name=note.author_name,
            content=note.content,
            written_at=note.written_at,
        )


@dataclass(frozen=True)
class OrderView:
    """An order with its frozen line snapshots and staff notes."""

    order_id: UUID
    customer_id: str
    status: OrderStatus
    lines: tuple[OrderLineView, ...]
    subtotal: Decimal
    shipping_fee: Decimal
    total_amount: Decimal
    payment_method: str
    shipping_address: Any
    placed_at: datetime
    confirmed_at: datetime | None = None
    confirmed_by: str | None = None
    completed_at: datetime | None = None
    completed_by: str | None = None
    cancelled_at: datetime | None = None
    cancelled_by: str | None = None
    cancel_reason: str | None = None
    notes: tuple[StaffNoteView, ...] = ()

    @classmethod
    def from_model(cls, order: Order) -> OrderView:
        return cls(
            order_id=order.id,
            customer_id=order.customer_id,
            status=OrderStatus(order.status),
            lines=tuple(OrderLineView.from_model(line) for line in order.lines),
            subtotal=order.subtotal,
            shipping_fee=order.shipping_fee,
            total_amount=order.total_amount,
            payment_method=order.payment_method,
            shipping_address=order.shipping_address,
            placed_at=order.placed_at,
            confirmed_at=order.confirmed_at,
            confirmed_by=order.confirmed_by,
            completed_at=order.completed_at,
            completed_by=order.completed_by,
            cancelled_at=order.cancelled_at,
            cancelled_by=order.cancelled_by,
            cancel_reason=order.cancel_reason,
            notes=tuple(StaffNoteView.from_model(note) for note in order.notes),
        )


# =============================================================================
# Inventory
# =============================================================================


@dataclass(frozen=True)
class LedgerEntryView:
    entry_id: UUID
    sku_id: UUID
    product_name: str
    variant_name: str
    delta: int
    tx_type: InventoryTxType
    reason: str
    actor_id: str
    occurred_at: datetime
    balance_after: int

    @classmethod
    def from_model(cls, entry: InventoryTxEntry) -> LedgerEntryView:
        return cls(
            entry_id=entry.id,
            sku_id=entry.sku_id,
            product_name=entry.sku.product_name,
            variant_name=entry.sku.name,
            delta=entry.delta,
            tx_type=InventoryTxType(entry.tx_type),
            reason=entry.reason,
            actor_id=entry.actor_id,
            occurred_at=entry.occurred_at,
            balance_after=entry.balance_after,
        )


@dataclass(frozen=True)
class StockMovement:
    """
    Result of a ledger write: the SKU's new stock level and the entry that
    produced it.  ``entry`` is None for a correction that changed nothing.
    """

    sku_id: UUID
    new_quantity: int
    entry: LedgerEntryView | None


@dataclass(frozen=True)
class StockSummaryRow:
    sku_id: UUID
    product_name: str
    variant_name: str
    stock_quantity: int
    price: Decimal
    status: StockStatus
    low_stock: bool

    @classmethod
    def from_model(cls, variant: Variant, low_stock_threshold: int) -> StockSummaryRow:
        return cls(
            sku_id=variant.id,
            product_name=variant.product_name,
            variant_name=variant.name,
            stock_quantity=variant.stock_quantity,
            price=variant.price,
            status=variant.status,
            low_stock=variant.stock_quantity < low_stock_threshold,
        )


@dataclass(frozen=True)
class LedgerDiscrepancy:
    """A SKU whose stock counter disagrees with the sum of its ledger deltas."""

    sku_id: UUID
    stock_quantity: int
    ledger_total: int

    @property
    def difference(self) -> int:
        return self.stock_quantity - self.ledger_total
