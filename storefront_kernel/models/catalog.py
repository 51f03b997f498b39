"""
Module: storefront_kernel.models.catalog
Responsibility: ORM persistence for products and their purchasable variants
    (SKUs).  Product rows are catalog collaborator data; the variant's
    stock_quantity column is owned by the Inventory Ledger.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - stock_quantity >= 0 (CHECK constraint; the ledger refuses to go below).
    - stock_quantity is written only by InventoryLedger.apply_delta().
    - price is fixed-point Numeric(12, 2).

Failure modes:
    - IntegrityError if stock_quantity would become negative through a write
      that bypassed the ledger.
    - SkuReferencedError on delete while an open order references the SKU
      (db/immutability.py).
"""

from decimal import Decimal
from enum import Enum
from uuid import UUID

from sqlalchemy import CheckConstraint, ForeignKey, Index, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_kernel.db.base import TimestampedBase, UUIDString


class StockStatus(str, Enum):
    """Derived availability of a SKU."""

    IN_STOCK = "in_stock"
    OUT_OF_STOCK = "out_of_stock"


class Product(TimestampedBase):
    """A phone model, e.g. "iPhone 15 Pro".  Owned by the catalog."""

    __tablename__ = "products"

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    brand: Mapped[str] = mapped_column(String(100), nullable=False, default="")
    description: Mapped[str | None] = mapped_column(Text, nullable=True)

    variants: Mapped[list["Variant"]] = relationship(
        back_populates="product",
        lazy="selectin",
    )

    def __repr__(self) -> str:
        return f"<Product {self.name}>"


class Variant(TimestampedBase):
    """
    A purchasable configuration (color + capacity) of a product.

    Contract:
        Carries its own unit price and stock counter.  The stock counter is
        mutated only by the Inventory Ledger, which pairs every change with
        an InventoryTxEntry.
    """

    __tablename__ = "variants"

    __table_args__ = (
        CheckConstraint("stock_quantity >= 0", name="ck_variant_stock_non_negative"),
        CheckConstraint("price >= 0", name="ck_variant_price_non_negative"),
        Index("idx_variant_product", "product_id"),
        Index("idx_variant_stock", "stock_quantity"),
    )

    product_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("products.id"),
        nullable=False,
    )

    name: Mapped[str] = mapped_column(String(200), nullable=False)
    color: Mapped[str | None] = mapped_column(String(100), nullable=True)
    capacity: Mapped[str | None] = mapped_column(String(50), nullable=True)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)

    price: Mapped[Decimal] = mapped_column(nullable=False)

    stock_quantity: Mapped[int] = mapped_column(nullable=False, default=0)

    product: Mapped["Product"] = relationship(
        back_populates="variants",
        lazy="joined",
    )

    def __repr__(self) -> str:
        return f"<Variant {self.name} stock={self.stock_quantity}>"

    @property
    def status(self) -> StockStatus:
        """In stock iff at least one unit is on hand."""
        if self.stock_quantity > 0:
            return StockStatus.IN_STOCK
        return StockStatus.OUT_OF_STOCK

    @property
    def product_name(self) -> str:
        return self.product.name if self.product is not None else ""
