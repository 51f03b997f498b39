"""
Tests for InventorySelector: stock summary ordering, low-stock flags and
the ledger reconciliation query.
"""

from decimal import Decimal

from sqlalchemy import update

from storefront_kernel.models.catalog import StockStatus, Variant
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.selectors.inventory_selector import InventorySelector


class TestSummary:
    def test_lowest_stock_first(self, session, make_sku):
        make_sku(stock=20, name="256GB - Onyx Black", product_name="Samsung Galaxy S24")
        make_sku(stock=0, name="128GB - Obsidian", product_name="Pixel 8 Pro")
        make_sku(stock=5, name="256GB - Blue Titanium", product_name="iPhone 15 Pro")

        rows = InventorySelector(session).summary(low_stock_threshold=10)

        assert [row.stock_quantity for row in rows] == [0, 5, 20]
        assert [row.product_name for row in rows] == [
            "Pixel 8 Pro",
            "iPhone 15 Pro",
            "Samsung Galaxy S24",
        ]

    def test_low_stock_flag_and_status(self, session, make_sku):
        make_sku(stock=0, name="A")
        make_sku(stock=9, name="B")
        make_sku(stock=10, name="C")

        rows = {row.variant_name: row for row in InventorySelector(session).summary(10)}

        assert rows["A"].low_stock and rows["A"].status is StockStatus.OUT_OF_STOCK
        assert rows["B"].low_stock and rows["B"].status is StockStatus.IN_STOCK
        assert not rows["C"].low_stock

    def test_carries_price(self, session, make_sku):
        make_sku(price="1099")

        (row,) = InventorySelector(session).summary(10)

        assert row.price == Decimal("1099")

    def test_empty_catalog(self, session):
        assert InventorySelector(session).summary(10) == []


class TestLedgerReconciliation:
    def test_consistent_after_ledger_writes(self, session, ledger, make_sku):
        sku = make_sku(stock=5)
        ledger.apply_delta(sku.id, -2, InventoryTxType.EXPORT, "", "staff-1")
        ledger.set_absolute(sku.id, 9, "staff-1")

        selector = InventorySelector(session)

        assert selector.ledger_total(sku.id) == 9
        assert selector.find_ledger_discrepancies() == []

    def test_sku_without_entries_is_consistent(self, session, make_sku):
        make_sku(stock=0)

        assert InventorySelector(session).find_ledger_discrepancies() == []

    def test_write_bypassing_ledger_is_detected(self, session, make_sku):
        sku = make_sku(stock=5)
        session.execute(
            update(Variant).where(Variant.id == sku.id).values(stock_quantity=8)
        )

        (discrepancy,) = InventorySelector(session).find_ledger_discrepancies()

        assert discrepancy.sku_id == sku.id
        assert discrepancy.stock_quantity == 8
        assert discrepancy.ledger_total == 5
        assert discrepancy.difference == 3
