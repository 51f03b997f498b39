"""
Module: storefront_kernel.models.cart
Responsibility: ORM persistence for the pre-order basket: one Cart per
    customer and its CartLines.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - One cart per customer (UNIQUE customer_id).
    - One line per SKU per cart (UNIQUE cart_id, sku_id).
    - Lines keep the order they were first added in (position, assigned
      under the cart lock).
    - line.quantity > 0 and line.line_amount == quantity * unit_price.
    - cart.total_items == SUM(line.quantity) and
      cart.total_amount == SUM(line.line_amount); recomputed by
      CartAggregator under the cart row lock after every mutation.
    - Lines are cascade-deleted with their cart.
"""

from decimal import Decimal
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_kernel.db.base import TimestampedBase, UUIDString
from storefront_kernel.models.catalog import Variant


class Cart(TimestampedBase):
    """A customer's basket, created lazily on the first add."""

    __tablename__ = "carts"

    __table_args__ = (
        UniqueConstraint("customer_id", name="uq_cart_customer"),
    )

    # Customer reference (identity collaborator, no FK)
    customer_id: Mapped[str] = mapped_column(String(100), nullable=False)

    total_items: Mapped[int] = mapped_column(nullable=False, default=0)
    total_amount: Mapped[Decimal] = mapped_column(nullable=False, default=Decimal("0"))

    lines: Mapped[list["CartLine"]] = relationship(
        back_populates="cart",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="CartLine.position",
    )

    def __repr__(self) -> str:
        return f"<Cart customer={self.customer_id} items={self.total_items}>"


class CartLine(TimestampedBase):
    """One SKU in a cart, priced at the SKU's price when last touched."""

    __tablename__ = "cart_lines"

    __table_args__ = (
        UniqueConstraint("cart_id", "sku_id", name="uq_cart_line_sku"),
        UniqueConstraint("cart_id", "position", name="uq_cart_line_position"),
        CheckConstraint("quantity > 0", name="ck_cart_line_quantity_positive"),
        Index("idx_cart_line_cart", "cart_id"),
    )

    cart_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("carts.id", ondelete="CASCADE"),
        nullable=False,
    )

    sku_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("variants.id"),
        nullable=False,
    )

    # Insertion order within the cart; becomes OrderLine.line_no at checkout
    position: Mapped[int] = mapped_column(nullable=False)

    quantity: Mapped[int] = mapped_column(nullable=False)
    unit_price: Mapped[Decimal] = mapped_column(nullable=False)
    line_amount: Mapped[Decimal] = mapped_column(nullable=False)

    cart: Mapped["Cart"] = relationship(back_populates="lines")
    sku: Mapped["Variant"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<CartLine sku={self.sku_id} qty={self.quantity}>"
