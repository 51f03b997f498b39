"""
Module: storefront_kernel.models.inventory
Responsibility: ORM persistence for the inventory ledger -- the append-only
    log of every stock-quantity change.
Architecture position: Kernel > Models.  May import from db/base.py only.

Invariants enforced:
    - Append-only: rows are never updated or deleted (ORM listeners in
      db/immutability.py raise ImmutabilityViolationError).
    - For every SKU, SUM(delta) over its entries == variants.stock_quantity.
      Maintained by InventoryLedger (single writer), verified by
      InventorySelector.find_ledger_discrepancies().
"""

from datetime import datetime
from enum import Enum
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import DateTime, ForeignKey, Index, Integer, String
from sqlalchemy.orm import Mapped, mapped_column, relationship

from storefront_kernel.db.base import TimestampedBase, UUIDString

if TYPE_CHECKING:
    from storefront_kernel.models.catalog import Variant


class InventoryTxType(str, Enum):
    """Kind of stock movement.

    RESTOCK and IMPORT add units, EXPORT removes them, ADJUSTMENT is a
    staff correction in either direction.
    """

    RESTOCK = "RESTOCK"
    EXPORT = "EXPORT"
    IMPORT = "IMPORT"
    ADJUSTMENT = "ADJUSTMENT"


class InventoryTxEntry(TimestampedBase):
    """
    One immutable stock movement.

    Guarantees:
        - delta is the exact signed quantity applied to the SKU.
        - occurred_at comes from the ledger's Clock.
    """

    __tablename__ = "inventory_transactions"

    __table_args__ = (
        Index("idx_invtx_sku", "sku_id"),
        Index("idx_invtx_occurred_at", "occurred_at"),
        Index("idx_invtx_sku_occurred_at", "sku_id", "occurred_at"),
    )

    sku_id: Mapped[UUID] = mapped_column(
        UUIDString(),
        ForeignKey("variants.id"),
        nullable=False,
    )

    delta: Mapped[int] = mapped_column(Integer, nullable=False)

    tx_type: Mapped[InventoryTxType] = mapped_column(
        String(20),
        nullable=False,
    )

    reason: Mapped[str] = mapped_column(String(500), nullable=False, default="")

    actor_id: Mapped[str] = mapped_column(String(100), nullable=False)

    occurred_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
    )

    # Stock level right after this entry was applied
    balance_after: Mapped[int] = mapped_column(Integer, nullable=False)

    sku: Mapped["Variant"] = relationship(lazy="joined")

    def __repr__(self) -> str:
        return f"<InventoryTxEntry {self.tx_type} {self.delta:+d} sku={self.sku_id}>"
