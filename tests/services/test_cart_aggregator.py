"""
Tests for CartAggregator -- per-customer basket with consistent totals.

Covers:
- add_item(): lazy cart creation, new line, existing line increment with
  re-pricing at the current SKU price, unknown SKU, invalid quantity
- set_quantity(): update, delete on <= 0, missing line
- remove_item(): delete and idempotent no-op
- clear() and snapshot()
- totals equal the sum over lines after every mutation
"""

from decimal import Decimal
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from storefront_kernel.exceptions import (
    CartLineNotFoundError,
    InvalidQuantityError,
    SkuNotFoundError,
)
from storefront_kernel.models.cart import Cart, CartLine

CUSTOMER = "customer@test.com"


def assert_totals_consistent(snapshot):
    assert snapshot.total_items == sum(line.quantity for line in snapshot.lines)
    assert snapshot.total_amount == sum(
        (line.line_amount for line in snapshot.lines), Decimal("0")
    )


class TestAddItem:
    def test_first_add_creates_cart(self, session, carts, make_sku):
        sku = make_sku(price="999")

        line = carts.add_item(CUSTOMER, sku.id, 2)

        assert line.quantity == 2
        assert line.unit_price == Decimal("999")
        assert line.line_amount == Decimal("1998")
        assert session.execute(select(func.count(Cart.id))).scalar_one() == 1

    def test_existing_line_is_incremented(self, carts, make_sku):
        sku = make_sku(price="100")
        carts.add_item(CUSTOMER, sku.id, 2)

        line = carts.add_item(CUSTOMER, sku.id, 1)

        assert line.quantity == 3
        assert line.line_amount == Decimal("300")
        snapshot = carts.snapshot(CUSTOMER)
        assert len(snapshot.lines) == 1
        assert snapshot.total_items == 3

    def test_increment_reprices_at_current_price(self, carts, catalog, make_sku):
        sku = make_sku(price="100")
        carts.add_item(CUSTOMER, sku.id, 2)
        catalog.reprice(sku, "120")

        line = carts.add_item(CUSTOMER, sku.id, 1)

        assert line.unit_price == Decimal("120")
        assert line.line_amount == Decimal("360")
        assert carts.snapshot(CUSTOMER).total_amount == Decimal("360")

    def test_lines_for_different_skus(self, carts, make_sku):
        a = make_sku(price="999", name="A")
        b = make_sku(price="1099", name="B")

        carts.add_item(CUSTOMER, a.id, 1)
        carts.add_item(CUSTOMER, b.id, 2)

        snapshot = carts.snapshot(CUSTOMER)
        assert len(snapshot.lines) == 2
        assert snapshot.total_items == 3
        assert snapshot.total_amount == Decimal("3197")
        assert_totals_consistent(snapshot)

    def test_customers_have_separate_carts(self, carts, make_sku):
        sku = make_sku()

        carts.add_item("a@test.com", sku.id, 1)
        carts.add_item("b@test.com", sku.id, 4)

        assert carts.snapshot("a@test.com").total_items == 1
        assert carts.snapshot("b@test.com").total_items == 4

    def test_unknown_sku(self, session, carts):
        with pytest.raises(SkuNotFoundError):
            carts.add_item(CUSTOMER, uuid4(), 1)
        assert session.execute(select(func.count(Cart.id))).scalar_one() == 0

    @pytest.mark.parametrize("quantity", [0, -1, 1.5, "2", True])
    def test_invalid_quantity(self, carts, make_sku, quantity):
        sku = make_sku()

        with pytest.raises(InvalidQuantityError):
            carts.add_item(CUSTOMER, sku.id, quantity)

    def test_add_does_not_check_stock(self, carts, make_sku):
        sku = make_sku(stock=1)

        line = carts.add_item(CUSTOMER, sku.id, 5)

        assert line.quantity == 5

    def test_view_carries_catalog_names(self, carts, make_sku):
        sku = make_sku(name="256GB - Blue Titanium", product_name="iPhone 15 Pro")

        line = carts.add_item(CUSTOMER, sku.id, 1)

        assert line.product_name == "iPhone 15 Pro"
        assert line.variant_name == "256GB - Blue Titanium"


class TestSetQuantity:
    def test_updates_quantity_and_amount(self, carts, make_sku):
        sku = make_sku(price="50")
        line = carts.add_item(CUSTOMER, sku.id, 1)

        updated = carts.set_quantity(line.line_id, 4)

        assert updated.quantity == 4
        assert updated.line_amount == Decimal("200")
        assert carts.snapshot(CUSTOMER).total_amount == Decimal("200")

    def test_uses_current_price(self, carts, catalog, make_sku):
        sku = make_sku(price="50")
        line = carts.add_item(CUSTOMER, sku.id, 1)
        catalog.reprice(sku, "40")

        updated = carts.set_quantity(line.line_id, 2)

        assert updated.unit_price == Decimal("40")
        assert updated.line_amount == Decimal("80")

    @pytest.mark.parametrize("quantity", [0, -3])
    def test_non_positive_deletes_line(self, session, carts, make_sku, quantity):
        a = make_sku(price="10", name="A")
        b = make_sku(price="20", name="B")
        line = carts.add_item(CUSTOMER, a.id, 1)
        carts.add_item(CUSTOMER, b.id, 1)

        assert carts.set_quantity(line.line_id, quantity) is None

        snapshot = carts.snapshot(CUSTOMER)
        assert [ln.sku_id for ln in snapshot.lines] == [b.id]
        assert snapshot.total_amount == Decimal("20")
        assert session.get(CartLine, line.line_id) is None

    def test_missing_line(self, carts):
        with pytest.raises(CartLineNotFoundError):
            carts.set_quantity(uuid4(), 2)

    def test_missing_line_with_zero_quantity(self, carts):
        with pytest.raises(CartLineNotFoundError):
            carts.set_quantity(uuid4(), 0)

    def test_non_integer_rejected(self, carts, make_sku):
        line = carts.add_item(CUSTOMER, make_sku().id, 1)

        with pytest.raises(InvalidQuantityError):
            carts.set_quantity(line.line_id, "3")


class TestRemoveAndClear:
    def test_remove_item(self, carts, make_sku):
        sku = make_sku(price="10")
        line = carts.add_item(CUSTOMER, sku.id, 3)

        assert carts.remove_item(line.line_id) is True

        snapshot = carts.snapshot(CUSTOMER)
        assert snapshot.is_empty
        assert snapshot.total_items == 0
        assert snapshot.total_amount == Decimal("0")

    def test_remove_missing_is_noop(self, carts):
        assert carts.remove_item(uuid4()) is False
        assert carts.remove_item("garbage") is False

    def test_clear(self, session, carts, make_sku):
        carts.add_item(CUSTOMER, make_sku(name="A").id, 1)
        carts.add_item(CUSTOMER, make_sku(name="B").id, 2)

        carts.clear(CUSTOMER)

        snapshot = carts.snapshot(CUSTOMER)
        assert snapshot.is_empty
        assert snapshot.total_items == 0
        assert session.execute(select(func.count(CartLine.id))).scalar_one() == 0

    def test_clear_without_cart(self, carts):
        carts.clear("nobody@test.com")

        assert carts.snapshot("nobody@test.com").is_empty


class TestSnapshot:
    def test_no_cart_is_empty_not_error(self, carts):
        snapshot = carts.snapshot("ghost@test.com")

        assert snapshot.is_empty
        assert snapshot.cart_id is None
        assert snapshot.total_items == 0
        assert snapshot.total_amount == Decimal("0")

    def test_lines_keep_insertion_order(self, session, carts, make_sku):
        a, b, c, d = (make_sku(name=name) for name in ("A", "B", "C", "D"))
        carts.add_item(CUSTOMER, c.id, 1)
        line_a = carts.add_item(CUSTOMER, a.id, 1)
        carts.add_item(CUSTOMER, d.id, 1)
        carts.remove_item(line_a.line_id)
        carts.add_item(CUSTOMER, b.id, 1)
        carts.add_item(CUSTOMER, a.id, 1)
        carts.add_item(CUSTOMER, c.id, 1)
        session.expire_all()

        snapshot = carts.snapshot(CUSTOMER)

        assert [ln.variant_name for ln in snapshot.lines] == ["C", "D", "B", "A"]

    def test_totals_after_mixed_operations(self, carts, make_sku):
        a = make_sku(price="999", name="A")
        b = make_sku(price="1099", name="B")
        c = make_sku(price="899", name="C")

        line_a = carts.add_item(CUSTOMER, a.id, 1)
        carts.add_item(CUSTOMER, b.id, 2)
        line_c = carts.add_item(CUSTOMER, c.id, 1)
        carts.set_quantity(line_a.line_id, 3)
        carts.remove_item(line_c.line_id)
        carts.add_item(CUSTOMER, b.id, 1)

        snapshot = carts.snapshot(CUSTOMER)
        assert snapshot.total_items == 6
        assert snapshot.total_amount == Decimal("6294")
        assert_totals_consistent(snapshot)
