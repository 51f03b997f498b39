"""
Module: storefront_kernel.models.order
Responsibility: ORM persistence for orders, their immutable line snapshots,
    and the staff notes attached to them.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - An order never gains or loses lines after creation; OrderLine rows are
      immutable (db/immutability.py).
    - Header financial fields (customer, totals, address, payment label) are
      immutable after insert; status and the nullable audit fields are the
      only mutable columns, and a terminal status never changes.
    - total_amount == subtotal + shipping_fee, subtotal == SUM(line_total).

Failure modes:
    - ImmutabilityViolationError on UPDATE/DELETE of an OrderLine, on changes
      to frozen header columns, or on leaving a terminal status.
"""

from datetime import datetime
from decimal import Decimal
from enum import Enum
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, ForeignKey, Index, Integer, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_kernel.db.base import TimestampedBase, UUIDString


class OrderStatus(str, Enum):
    """Lifecycle status of an order.

    PENDING -> CONFIRMED -> COMPLETED, PENDING -> CANCELLED,
    CONFIRMED -> CANCELLED.  COMPLETED and CANCELLED are terminal.
    """

    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


class Order(TimestampedBase):
    """
    Order header created atomically from a non-empty cart.

    Non-goals:
        - Payment: payment_method is a display label only.
    """

    __tablename__ = "orders"

    __table_args__ = (
        Index("idx_order_customer", "customer_id"),
        Index("idx_order_status", "status"),
        Index("idx_order_placed_at", "placed_at"),
    )

    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    status: Mapped[OrderStatus] = mapped_column(
        String(20),
        default=OrderStatus.PENDING.value,
        nullable=False,
    )

    # Free-form string or structured mapping (recipient, phone, line, city)
    shipping_address: Mapped[Any] = mapped_column(JSON, nullable=False)

    subtotal: Mapped[Decimal] = mapped_column(nullable=False)
    shipping_fee: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))
    total_amount: Mapped[Decimal] = mapped_column(nullable=False)

    payment_method: Mapped[str] = mapped_column(String(50), nullable=False)

    placed_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    confirmed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    confirmed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    completed_by: Mapped[str | None] = mapped_column(String(100), nullable=True)

    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(100), nullable=True)
    cancel_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)

    lines: Mapped[list["OrderLine"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by="OrderLine.line_no",
    )

    notes: Mapped[list["StaffNote"]] = relationship(
        back_populates="order",
        lazy="selectin",
        order_by=lambda: StaffNote.written_at.desc(),
    )

    def __repr__(self) -> str:
        return f"<Order {self.id} status={self.status}>"


class OrderLine(TimestampedBase):
    """
    Immutable snapshot of one cart line at order time.

    Name and price are copied so later catalog edits never change history.
    """

    __tablename__ = "order_lines"

    __table_args__ = (
        Index("idx_order_line_order", "order_id"),
        Index("idx_order_line_sku", "sku_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    sku_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("variants.id"),
        nullable=False,
    )

    line_no: Mapped[int] = mapped_column(Integer, nullable=False)

    product_name: Mapped[str] = mapped_column(String(200), nullable=False)
    variant_name: Mapped[str] = mapped_column(String(200), nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    quantity: Mapped[int] = mapped_column(Integer, nullable=False)
    line_total: Mapped[Decimal] = mapped_column(nullable=False)

    order: Mapped["Order"] = relationship(back_populates="lines")

    def __repr__(self) -> str:
        return f"<OrderLine {self.variant_name} x{self.quantity}>"


class StaffNote(TimestampedBase):
    """
    Back-office note on an order.

    Written by the staff-notes collaborator; the kernel only reads it into
    order projections.
    """

    __tablename__ = "staff_notes"

    __table_args__ = (
        Index("idx_staff_note_order", "order_id"),
    )

    order_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("orders.id"),
        nullable=False,
    )

    author_id: Mapped[str] = mapped_column(String(100), nullable=False)
    author_name: Mapped[str] = mapped_column(String(200), nullable=False, default="")
    content: Mapped[str] = mapped_column(Text, nullable=False)
    written_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)

    order: Mapped["Order"] = relationship(back_populates="notes")
