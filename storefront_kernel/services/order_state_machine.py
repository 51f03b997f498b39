"""
OrderStateMachine -- order creation from a cart and status transitions.

Responsibility:
    Converts a customer's cart into an immutable order snapshot and drives
    the order through PENDING -> CONFIRMED -> COMPLETED, with cancellation
    from PENDING or CONFIRMED.  Transitions that move stock do so through
    the InventoryLedger.

Architecture position:
    Kernel > Services -- imperative shell.  Consults the pure transition
    table in domain/lifecycle.py; writes stock only via InventoryLedger.

Invariants enforced:
    - Soft reservation: create_from_cart() verifies availability but writes
      no ledger entries.  Two orders may both pass the check; the
      confirmation that runs second fails with InsufficientStockError.
    - Confirmation deducts stock (one EXPORT entry per line) and a
      confirmed-then-cancelled order restores it (one IMPORT entry per
      line), so confirm+cancel leaves every SKU where it started.
    - All-or-nothing: the stock moves of one transition run inside a
      savepoint; any shortfall rolls back every line already applied and
      the status is left unchanged.
    - Locks: the order row first, then SKU rows in ascending id order.
    - Terminal statuses (COMPLETED, CANCELLED) never change.

Failure modes:
    - EmptyCartError: checkout of a missing or empty cart (no order row).
    - InsufficientStockError: a line exceeds current stock at checkout or
      at confirmation.
    - OrderNotFoundError: unknown order id.
    - InvalidTransitionError: the requested edge is not in the table.

Audit relevance:
    ``order_created`` and ``order_transitioned`` are logged with order id,
    actor and statuses; each stock move additionally appears in the ledger
    with reason ``order confirmed: <id>`` / ``order cancelled: <id>``.
"""

from decimal import Decimal
from typing import Any

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront_kernel.domain.clock import Clock, SystemClock
from storefront_kernel.domain.lifecycle import StockEffect, find_transition
from storefront_kernel.domain.views import OrderView
from storefront_kernel.exceptions import (
    EmptyCartError,
    InsufficientStockError,
    InvalidTransitionError,
    OrderNotFoundError,
    StorefrontError,
)
from storefront_kernel.logging_config import get_logger
from storefront_kernel.models.catalog import Variant
from storefront_kernel.models.order import Order, OrderLine, OrderStatus
from storefront_kernel.selectors.order_selector import OrderSelector
from storefront_kernel.services.base import BaseService, as_uuid
from storefront_kernel.services.cart_aggregator import CartAggregator
from storefront_kernel.services.inventory_ledger import InventoryLedger

logger = get_logger("services.order_state_machine")

DEFAULT_PAYMENT_METHOD = "Cash on Delivery"

_CENT = Decimal("0.01")


class OrderStateMachine(BaseService):
    """
    Owns the order lifecycle.

    Contract:
        Flushes inside the caller's transaction.  The gateway wraps each
        call in ``Database.transaction()``, so a failed transition also
        discards the status change itself.

    Usage:
        machine = OrderStateMachine(session, ledger, carts, clock)
        order = machine.create_from_cart("cust-1", "12 Main St")
        machine.transition(order.order_id, OrderStatus.CONFIRMED, "staff-1")
    """

    def __init__(
        self,
        session: Session,
        ledger: InventoryLedger,
        cart_aggregator: CartAggregator,
        clock: Clock | None = None,
        payment_method: str = DEFAULT_PAYMENT_METHOD,
        shipping_fee: Decimal = Decimal("0"),
    ):
        super().__init__(session)
        self._ledger = ledger
        self._carts = cart_aggregator
        self._clock = clock or SystemClock()
        self._payment_method = payment_method
        self._shipping_fee = Decimal(shipping_fee).quantize(_CENT)
        self._selector = OrderSelector(session)

    # ------------------------------------------------------------------
    # Creation
    # ------------------------------------------------------------------

    def create_from_cart(self, customer_id: str, shipping_address: Any) -> OrderView:
        """
        Place an order for everything in the customer's cart.

        Steps, all in the caller's transaction:
            1. Lock the cart; fail with EmptyCartError if it is missing or
               has no lines.
            2. Check every line against the SKU's current stock.
            3. Insert the order with line snapshots (name and price read from
               the SKU now).
            4. Clear the cart.

        Raises:
            EmptyCartError, InsufficientStockError.
        """
        cart = self._carts.lock_cart(customer_id)
        if cart is None or not cart.lines:
            logger.warning("checkout_empty_cart", extra={"customer_id": customer_id})
            raise EmptyCartError(customer_id)

        sku_ids = [line.sku_id for line in cart.lines]
        variants = {
            variant.id: variant
            for variant in self.session.execute(
                select(Variant)
                .where(Variant.id.in_(sku_ids))
                .execution_options(populate_existing=True)
            ).scalars().unique()
        }

        for line in cart.lines:
            variant = variants[line.sku_id]
            if line.quantity > variant.stock_quantity:
                logger.warning(
                    "checkout_insufficient_stock",
                    extra={
                        "customer_id": customer_id,
                        "sku_id": str(variant.id),
                        "available": variant.stock_quantity,
                        "requested": line.quantity,
                    },
                )
                raise InsufficientStockError(
                    str(variant.id),
                    available=variant.stock_quantity,
                    requested=line.quantity,
                    sku_name=variant.name,
                )

        order_lines = []
        for line_no, line in enumerate(cart.lines, start=1):
            variant = variants[line.sku_id]
            order_lines.append(
                OrderLine(
                    sku_id=variant.id,
                    line_no=line_no,
                    product_name=variant.product_name,
                    variant_name=variant.name,
                    unit_price=variant.price,
                    quantity=line.quantity,
                    line_total=(variant.price * line.quantity).quantize(_CENT),
                )
            )

        subtotal = sum((ol.line_total for ol in order_lines), Decimal("0"))
        order = Order(
            customer_id=customer_id,
            status=OrderStatus.PENDING.value,
            shipping_address=shipping_address,
            subtotal=subtotal,
            shipping_fee=self._shipping_fee,
            total_amount=subtotal + self._shipping_fee,
            payment_method=self._payment_method,
            placed_at=self._clock.now(),
        )
        order.lines = order_lines
        self.session.add(order)
        self.session.flush()

        self._carts.clear_locked(cart)

        logger.info(
            "order_created",
            extra={
                "order_id": str(order.id),
                "customer_id": customer_id,
                "line_count": len(order_lines),
                "total_amount": order.total_amount,
            },
        )
        return OrderView.from_model(order)

    # ------------------------------------------------------------------
    # Transitions
    # ------------------------------------------------------------------

    def _lock_order(self, order_id) -> Order:
        parsed = as_uuid(order_id)
        order = None
        if parsed is not None:
            order = self.session.execute(
                select(Order)
                .where(Order.id == parsed)
                .with_for_update()
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return order

    def transition(
        self,
        order_id,
        new_status: OrderStatus | str,
        actor_id: str,
        reason: str | None = None,
    ) -> OrderView:
        """
        Move an order to ``new_status``, applying the edge's stock effect.

        Args:
            order_id: Order to change.
            new_status: Target status.
            actor_id: Staff member performing the change.
            reason: Cancellation reason (stored on CANCELLED only).

        Raises:
            OrderNotFoundError, InvalidTransitionError,
            InsufficientStockError (confirmation only).
        """
        order = self._lock_order(order_id)
        current = OrderStatus(order.status)
        target = getattr(new_status, "value", new_status)

        rule = find_transition(current, target)
        if rule is None:
            logger.warning(
                "order_transition_rejected",
                extra={
                    "order_id": str(order.id),
                    "from_status": current.value,
                    "to_status": str(target),
                },
            )
            raise InvalidTransitionError(str(order.id), current.value, str(target))

        if rule.stock_effect is not StockEffect.NONE:
            self._move_stock(order, rule, actor_id)

        now = self._clock.now()
        order.status = rule.to_status.value
        if rule.to_status is OrderStatus.CONFIRMED:
            order.confirmed_at = now
            order.confirmed_by = actor_id
        elif rule.to_status is OrderStatus.COMPLETED:
            order.completed_at = now
            order.completed_by = actor_id
        elif rule.to_status is OrderStatus.CANCELLED:
            order.cancelled_at = now
            order.cancelled_by = actor_id
            order.cancel_reason = reason
        self.session.flush()

        logger.info(
            "order_transitioned",
            extra={
                "order_id": str(order.id),
                "from_status": current.value,
                "to_status": rule.to_status.value,
                "actor_id": actor_id,
                "stock_effect": rule.stock_effect.value,
            },
        )
        return OrderView.from_model(order)

    def _move_stock(self, order: Order, rule, actor_id: str) -> None:
        """Apply one ledger delta per line inside a savepoint."""
        sign = -1 if rule.stock_effect is StockEffect.DEDUCT else 1
        ledger_reason = f"{rule.ledger_reason}: {order.id}"

        savepoint = self.session.begin_nested()
        try:
            self._ledger.lock_skus(line.sku_id for line in order.lines)
            for line in sorted(order.lines, key=lambda ln: str(ln.sku_id)):
                self._ledger.apply_delta(
                    line.sku_id,
                    sign * line.quantity,
                    rule.ledger_type,
                    ledger_reason,
                    actor_id,
                )
            savepoint.commit()
        except StorefrontError:
            savepoint.rollback()
            raise

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def list(
        self,
        status: OrderStatus | str | None = None,
        customer_id: str | None = None,
    ) -> list[OrderView]:
        """Orders newest first, optionally filtered by status and customer."""
        return self._selector.list(status=status, customer_id=customer_id)

    def get_by_id(self, order_id) -> OrderView:
        parsed = as_uuid(order_id)
        if parsed is None:
            raise OrderNotFoundError(str(order_id))
        return self._selector.get_by_id(parsed)
