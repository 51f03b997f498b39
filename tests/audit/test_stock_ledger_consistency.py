"""
The ledger replays to the stock counters.

After any mix of checkout, confirmation, cancellation and manual movements,
the sum of each SKU's deltas equals its stock, and a counter changed behind
the ledger's back is reported by the audit.
"""

from sqlalchemy import update

from storefront_kernel.models.catalog import Variant
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.models.order import OrderStatus
from storefront_services import (
    AddToCartRequest,
    ChangeOrderStatusRequest,
    PlaceOrderRequest,
    RecordInventoryTransactionRequest,
    SetStockLevelRequest,
)

STAFF = "staff-audit"


def _order(gateway, customer, *items):
    for sku_id, qty in items:
        gateway.add_to_cart(AddToCartRequest(customer_id=customer, sku_id=sku_id, quantity=qty))
    return gateway.place_order(PlaceOrderRequest(customer_id=customer, shipping_address="1 Audit Way"))


def _move(gateway, order, status):
    return gateway.change_order_status(
        order.order_id, ChangeOrderStatusRequest(status=status, actor_id=STAFF)
    )


class TestLedgerReplay:
    def test_mixed_workload_stays_consistent(self, gateway, committed_sku):
        phone = committed_sku(stock=10, price="999")
        tablet = committed_sku(stock=4, price="599")

        kept = _order(gateway, "a@test.com", (phone, 2), (tablet, 1))
        returned = _order(gateway, "b@test.com", (phone, 3))
        dropped = _order(gateway, "c@test.com", (tablet, 2))

        _move(gateway, kept, OrderStatus.CONFIRMED)
        _move(gateway, kept, OrderStatus.COMPLETED)
        _move(gateway, returned, OrderStatus.CONFIRMED)
        _move(gateway, returned, OrderStatus.CANCELLED)
        _move(gateway, dropped, OrderStatus.CANCELLED)
        gateway.record_inventory_transaction(
            RecordInventoryTransactionRequest(
                sku_id=tablet, delta=6, tx_type=InventoryTxType.RESTOCK, actor_id=STAFF
            )
        )
        gateway.set_stock_level(phone, SetStockLevelRequest(quantity=7, actor_id=STAFF))

        stock = {row.sku_id: row.stock_quantity for row in gateway.inventory_summary()}
        assert stock == {phone: 7, tablet: 9}
        for sku_id, quantity in stock.items():
            entries = gateway.list_inventory_transactions(sku_id)
            assert sum(e.delta for e in entries) == quantity
        assert gateway.audit_stock_ledger() == []

    def test_counter_edited_outside_ledger_is_reported(
        self, database, gateway, committed_sku, captured_logs
    ):
        sku_id = committed_sku(stock=5)
        with database.transaction() as session:
            session.execute(
                update(Variant).where(Variant.id == sku_id).values(stock_quantity=2)
            )

        (discrepancy,) = gateway.audit_stock_ledger()

        assert discrepancy.sku_id == sku_id
        assert discrepancy.difference == -3
        assert any(
            r["message"] == "stock_ledger_discrepancies_found" for r in captured_logs()
        )
