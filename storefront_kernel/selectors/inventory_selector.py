"""
Module: storefront_kernel.selectors.inventory_selector
Responsibility: Read-only inventory queries: ledger history, the stock
    summary dashboard, and the ledger/stock reconciliation used by audits.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/views.py and selectors/base.py.  MUST NOT import from services/.

Invariants enforced:
    - history() is lazy and single-pass: the statement executes on the first
      ``next()`` and rows stream in batches; a new call issues a new query
      against whatever the transaction sees at that moment.
    - History order is newest first: occurred_at DESC, then id DESC so ties
      from the same instant have a stable order.

Failure modes:
    - Returns empty results when the ledger is empty.

Audit relevance:
    find_ledger_discrepancies() replays the ledger: for every SKU it compares
    the stored stock counter to the sum of that SKU's deltas.  An empty result
    is the proof that no stock change bypassed the ledger.
"""

from collections.abc import Iterator
from datetime import datetime
from uuid import UUID

from sqlalchemy import func, select

from storefront_kernel.domain.views import (
    LedgerDiscrepancy,
    LedgerEntryView,
    StockSummaryRow,
)
from storefront_kernel.models.catalog import Product, Variant
from storefront_kernel.models.inventory import InventoryTxEntry
from storefront_kernel.selectors.base import BaseSelector

# Rows fetched per round trip while streaming history
_HISTORY_BATCH = 100


class InventorySelector(BaseSelector):
    """Selector for the inventory ledger and stock levels."""

    def history(
        self,
        sku_id: UUID | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> Iterator[LedgerEntryView]:
        """
        Stream ledger entries, newest first.

        Args:
            sku_id: Restrict to one SKU (all SKUs when None).
            start: Inclusive lower bound on occurred_at.
            end: Inclusive upper bound on occurred_at.
            limit: Maximum number of entries (unbounded when None).

        Yields:
            LedgerEntryView for each matching entry.
        """
        stmt = select(InventoryTxEntry)
        if sku_id is not None:
            stmt = stmt.where(InventoryTxEntry.sku_id == sku_id)
        if start is not None:
            stmt = stmt.where(InventoryTxEntry.occurred_at >= start)
        if end is not None:
            stmt = stmt.where(InventoryTxEntry.occurred_at <= end)
        stmt = stmt.order_by(
            InventoryTxEntry.occurred_at.desc(),
            InventoryTxEntry.id.desc(),
        )
        if limit is not None:
            stmt = stmt.limit(limit)

        result = self.session.execute(
            stmt.execution_options(yield_per=_HISTORY_BATCH)
        )
        for entry in result.scalars():
            yield LedgerEntryView.from_model(entry)

    def ledger_total(self, sku_id: UUID) -> int:
        """Sum of every delta ever booked for a SKU."""
        total = self.session.execute(
            select(func.coalesce(func.sum(InventoryTxEntry.delta), 0)).where(
                InventoryTxEntry.sku_id == sku_id
            )
        ).scalar_one()
        return int(total)

    def summary(self, low_stock_threshold: int) -> list[StockSummaryRow]:
        """
        Stock level of every SKU, lowest stock first.

        Rows with ``stock_quantity < low_stock_threshold`` are flagged
        ``low_stock``.
        """
        variants = self.session.execute(
            select(Variant)
            .join(Product, Product.id == Variant.product_id)
            .order_by(
                Variant.stock_quantity.asc(),
                Product.name.asc(),
                Variant.name.asc(),
            )
        ).scalars().unique().all()
        return [
            StockSummaryRow.from_model(variant, low_stock_threshold)
            for variant in variants
        ]

    def find_ledger_discrepancies(self) -> list[LedgerDiscrepancy]:
        """Every SKU whose stock counter differs from the sum of its deltas."""
        ledger_sum = (
            select(
                InventoryTxEntry.sku_id.label("sku_id"),
                func.sum(InventoryTxEntry.delta).label("total"),
            )
            .group_by(InventoryTxEntry.sku_id)
            .subquery()
        )
        rows = self.session.execute(
            select(
                Variant.id,
                Variant.stock_quantity,
                func.coalesce(ledger_sum.c.total, 0),
            )
            .outerjoin(ledger_sum, ledger_sum.c.sku_id == Variant.id)
            .order_by(Variant.id)
        ).all()
        return [
            LedgerDiscrepancy(
                sku_id=sku_id,
                stock_quantity=stock,
                ledger_total=int(total),
            )
            for sku_id, stock, total in rows
            if stock != int(total)
        ]
