"""
StorefrontGateway -- the operations the HTTP layer calls.

Responsibility:
    One method per storefront endpoint.  Each mutating method runs in
    exactly one database transaction opened from the explicit ``Database``
    handle, wires the kernel services onto that transaction's session, and
    returns an immutable view of the updated entity.

Architecture position:
    Services -- outermost layer of this repository.  May import from
    storefront_kernel and storefront_config.

Invariants enforced:
    - All-or-nothing: any exception inside an operation rolls back every
      write of that operation (``Database.transaction()``).
    - Domain errors (``StorefrontError`` subclasses) pass through unchanged.
      Failures of the data store itself (SQLAlchemy ``OperationalError`` /
      ``DBAPIError``) are re-raised as ``StorageUnavailableError`` so
      callers can tell "your request was wrong" from "the store is down".

Failure modes:
    - See the per-method docstrings; ``error_payload()`` renders any of them
      as a structured dict.

Audit relevance:
    Every call binds a fresh correlation_id (plus actor/customer/order ids
    where known) into ``LogContext``, so all kernel log lines of one request
    can be grouped.
"""

from __future__ import annotations

from collections.abc import Callable
from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime
from typing import Any, TypeVar
from uuid import UUID, uuid4

from sqlalchemy.exc import DBAPIError, OperationalError
from sqlalchemy.orm import Session

from storefront_config import StorefrontConfig, get_active_config
from storefront_kernel.db.engine import Database
from storefront_kernel.domain.clock import Clock, SystemClock
from storefront_kernel.domain.views import (
    CartLineView,
    CartSnapshot,
    LedgerDiscrepancy,
    LedgerEntryView,
    OrderView,
    StockSummaryRow,
)
from storefront_kernel.exceptions import (
    RequestValidationError,
    StorageUnavailableError,
    StorefrontError,
)
from storefront_kernel.logging_config import LogContext, get_logger
from storefront_kernel.models.order import OrderStatus
from storefront_kernel.selectors.inventory_selector import InventorySelector
from storefront_kernel.services.cart_aggregator import CartAggregator
from storefront_kernel.services.inventory_ledger import InventoryLedger
from storefront_kernel.services.order_state_machine import OrderStateMachine
from storefront_services.requests import (
    AddToCartRequest,
    ChangeOrderStatusRequest,
    PlaceOrderRequest,
    RecordInventoryTransactionRequest,
    SetStockLevelRequest,
    UpdateCartLineRequest,
)

logger = get_logger("services.gateway")

T = TypeVar("T")


@dataclass(frozen=True)
class InventoryTransactionView:
    """Result of a manual stock movement: new level plus the booked entry."""

    sku_id: UUID
    new_quantity: int
    entry: LedgerEntryView | None


def error_payload(exc: StorefrontError) -> dict[str, Any]:
    """Render a kernel error as ``{"code", "message", ...fields}``."""
    return exc.to_dict()


class _Kernel:
    """Kernel services wired onto one transaction's session."""

    def __init__(self, session: Session, clock: Clock, config: StorefrontConfig):
        self.session = session
        self.ledger = InventoryLedger(session, clock)
        self.carts = CartAggregator(session)
        self.orders = OrderStateMachine(
            session,
            self.ledger,
            self.carts,
            clock,
            payment_method=config.payment_method,
            shipping_fee=config.shipping_fee,
        )
        self.inventory = InventorySelector(session)


class StorefrontGateway:
    """
    Entry point for every storefront operation.

    Contract:
        Constructed once with an explicit Database; safe to share between
        worker threads because every call opens its own session.

    Usage:
        db = Database.from_config(config)
        gateway = StorefrontGateway(db, config)
        gateway.add_to_cart(AddToCartRequest.from_payload(body))
    """

    def __init__(
        self,
        database: Database,
        config: StorefrontConfig | None = None,
        clock: Clock | None = None,
    ):
        self._db = database
        self._config = config or get_active_config()
        self._clock = clock or SystemClock()

    @property
    def config(self) -> StorefrontConfig:
        return self._config

    # ------------------------------------------------------------------
    # Plumbing
    # ------------------------------------------------------------------

    @contextmanager
    def _storage_errors(self, operation: str):
        try:
            yield
        except (OperationalError, DBAPIError) as exc:
            logger.error(
                "storage_unavailable",
                extra={"operation": operation, "error": str(exc.orig or exc)},
            )
            raise StorageUnavailableError(operation, str(exc.orig or exc)) from exc

    def _run(
        self,
        operation: str,
        work: Callable[[_Kernel], T],
        **context: Any,
    ) -> T:
        """Run ``work`` in one transaction with request-scoped log context."""
        with LogContext.bind(correlation_id=str(uuid4()), **context):
            with self._storage_errors(operation):
                with self._db.transaction() as session:
                    return work(_Kernel(session, self._clock, self._config))

    def _read(self, operation: str, work: Callable[[_Kernel], T]) -> T:
        """Run a read-only ``work`` on a plain session."""
        with LogContext.bind(correlation_id=str(uuid4())):
            with self._storage_errors(operation):
                session = self._db.session()
                try:
                    return work(_Kernel(session, self._clock, self._config))
                finally:
                    session.close()

    # ------------------------------------------------------------------
    # Cart
    # ------------------------------------------------------------------

    def add_to_cart(self, request: AddToCartRequest) -> CartLineView:
        """POST /cart.  Raises SkuNotFoundError, InvalidQuantityError."""
        return self._run(
            "add_to_cart",
            lambda k: k.carts.add_item(request.customer_id, request.sku_id, request.quantity),
            customer_id=request.customer_id,
        )

    def update_cart_line(
        self, line_id: UUID | str, request: UpdateCartLineRequest
    ) -> CartLineView | None:
        """PUT /cart/{line_id}.  None means the line was deleted (204)."""
        return self._run(
            "update_cart_line",
            lambda k: k.carts.set_quantity(line_id, request.quantity),
        )

    def remove_cart_line(self, line_id: UUID | str) -> None:
        """DELETE /cart/{line_id}.  Missing lines are ignored."""
        self._run("remove_cart_line", lambda k: k.carts.remove_item(line_id))

    def clear_cart(self, customer_id: str) -> CartSnapshot:
        """DELETE /cart/user/{customer_id}."""

        def work(k: _Kernel) -> CartSnapshot:
            k.carts.clear(customer_id)
            return k.carts.snapshot(customer_id)

        return self._run("clear_cart", work, customer_id=customer_id)

    def get_cart(self, customer_id: str) -> CartSnapshot:
        """GET /cart/{customer_id}.  An absent cart is an empty snapshot."""
        return self._read("get_cart", lambda k: k.carts.snapshot(customer_id))

    # ------------------------------------------------------------------
    # Orders
    # ------------------------------------------------------------------

    def place_order(self, request: PlaceOrderRequest) -> OrderView:
        """POST /orders.  Raises EmptyCartError, InsufficientStockError."""
        return self._run(
            "place_order",
            lambda k: k.orders.create_from_cart(
                request.customer_id, request.shipping_address
            ),
            customer_id=request.customer_id,
        )

    def list_orders(
        self,
        status: OrderStatus | str | None = None,
        customer_id: str | None = None,
    ) -> list[OrderView]:
        """GET /orders?status=&customer=.  Newest first."""
        if status is not None:
            try:
                status = OrderStatus(status)
            except ValueError:
                raise RequestValidationError(
                    "ListOrdersQuery",
                    [{"field": "status", "error": f"unknown status {status!r}"}],
                ) from None
        return self._read(
            "list_orders",
            lambda k: k.orders.list(status=status, customer_id=customer_id),
        )

    def list_customer_orders(self, customer_id: str) -> list[OrderView]:
        """GET /users/{customer_id}/orders.  The customer's order history."""
        return self.list_orders(customer_id=customer_id)

    def get_order(self, order_id: UUID | str) -> OrderView:
        """GET /orders/{order_id}.  Raises OrderNotFoundError."""
        return self._read("get_order", lambda k: k.orders.get_by_id(order_id))

    def change_order_status(
        self, order_id: UUID | str, request: ChangeOrderStatusRequest
    ) -> OrderView:
        """
        PUT /orders/{order_id}/status.

        Raises:
            OrderNotFoundError, InvalidTransitionError, InsufficientStockError.
        """
        return self._run(
            "change_order_status",
            lambda k: k.orders.transition(
                order_id, request.status, request.actor_id, reason=request.reason
            ),
            actor_id=request.actor_id,
            order_id=str(order_id),
        )

    # ------------------------------------------------------------------
    # Inventory
    # ------------------------------------------------------------------

    def record_inventory_transaction(
        self, request: RecordInventoryTransactionRequest
    ) -> InventoryTransactionView:
        """
        POST /inventory/transactions.

        Raises:
            SkuNotFoundError, InvalidQuantityError, InsufficientStockError.
        """

        def work(k: _Kernel) -> InventoryTransactionView:
            movement = k.ledger.apply_delta(
                request.sku_id,
                request.delta,
                request.tx_type,
                request.reason or "",
                request.actor_id,
            )
            return InventoryTransactionView(
                sku_id=movement.sku_id,
                new_quantity=movement.new_quantity,
                entry=movement.entry,
            )

        return self._run(
            "record_inventory_transaction", work, actor_id=request.actor_id
        )

    def set_stock_level(
        self, sku_id: UUID | str, request: SetStockLevelRequest
    ) -> InventoryTransactionView:
        """PUT /variants/{sku_id}/stock.  Raises InvalidQuantityError."""

        def work(k: _Kernel) -> InventoryTransactionView:
            movement = k.ledger.set_absolute(
                sku_id, request.quantity, request.actor_id, reason=request.reason
            )
            return InventoryTransactionView(
                sku_id=movement.sku_id,
                new_quantity=movement.new_quantity,
                entry=movement.entry,
            )

        return self._run("set_stock_level", work, actor_id=request.actor_id)

    def list_inventory_transactions(
        self,
        sku_id: UUID | str | None = None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> list[LedgerEntryView]:
        """
        GET /inventory/transactions and GET /variants/{sku_id}/inventory.

        Newest first, never more than the configured ``history_limit``.
        """
        cap = self._config.history_limit
        effective = cap if limit is None else max(0, min(limit, cap))

        def work(k: _Kernel) -> list[LedgerEntryView]:
            if sku_id is not None:
                k.ledger.current_stock(sku_id)
            return list(k.ledger.history(sku_id, start=start, end=end, limit=effective))

        return self._read("list_inventory_transactions", work)

    def inventory_summary(self) -> list[StockSummaryRow]:
        """GET /inventory/summary.  Lowest stock first."""
        threshold = self._config.low_stock_threshold
        return self._read(
            "inventory_summary", lambda k: k.inventory.summary(threshold)
        )

    def audit_stock_ledger(self) -> list[LedgerDiscrepancy]:
        """SKUs whose stock differs from the sum of their ledger deltas."""
        discrepancies = self._read(
            "audit_stock_ledger", lambda k: k.inventory.find_ledger_discrepancies()
        )
        if discrepancies:
            logger.error(
                "stock_ledger_discrepancies_found",
                extra={"count": len(discrepancies)},
            )
        else:
            logger.info("stock_ledger_consistent")
        return discrepancies

