"""
CartAggregator -- one basket per customer with totals that match its lines.

Responsibility:
    Creates carts lazily, adds/updates/removes lines, and keeps the cached
    ``total_items`` / ``total_amount`` equal to the sum over the lines.
    Also serves as the checkout's source of cart contents.

Architecture position:
    Kernel > Services -- imperative shell.  Used by the gateway and by
    OrderStateMachine.create_from_cart().

Invariants enforced:
    - cart.total_items == SUM(line.quantity) and
      cart.total_amount == SUM(line.line_amount) after every mutation.
      Totals are recomputed from the lines under the cart's row lock, in the
      same transaction as the mutation, so concurrent add/remove on one cart
      cannot lose an update.
    - line.line_amount == line.quantity * line.unit_price, where unit_price
      is the SKU's price at the time the line was last touched.
    - At most one cart per customer, at most one line per SKU per cart.

Failure modes:
    - SkuNotFoundError: add_item() with an unknown SKU.
    - CartLineNotFoundError: set_quantity() on a missing line.
    - InvalidQuantityError: add_item() with a non-positive or non-integer
      quantity; set_quantity() with a non-integer.
    - IntegrityError on concurrent first-add for one customer is absorbed
      (savepoint rollback and re-read of the winning cart).

Non-goals:
    - No stock check: availability is verified at checkout and enforced at
      confirmation.
"""

from decimal import Decimal

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError

from storefront_kernel.domain.views import CartLineView, CartSnapshot
from storefront_kernel.exceptions import (
    CartLineNotFoundError,
    InvalidQuantityError,
    SkuNotFoundError,
)
from storefront_kernel.logging_config import get_logger
from storefront_kernel.models.cart import Cart, CartLine
from storefront_kernel.models.catalog import Variant
from storefront_kernel.services.base import BaseService, as_uuid

logger = get_logger("services.cart_aggregator")

_CENT = Decimal("0.01")


def _line_amount(unit_price: Decimal, quantity: int) -> Decimal:
    return (unit_price * quantity).quantize(_CENT)


class CartAggregator(BaseService):
    """
    Maintains customers' carts.

    Contract:
        Every mutating method locks the cart row first, changes lines, then
        recomputes totals before flushing.  The caller commits.
    """

    # ------------------------------------------------------------------
    # Cart locking
    # ------------------------------------------------------------------

    def lock_cart(self, customer_id: str) -> Cart | None:
        """Load a customer's cart with a write lock, or None if absent."""
        return self.session.execute(
            select(Cart)
            .where(Cart.customer_id == customer_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one_or_none()

    def _lock_cart_by_id(self, cart_id) -> Cart:
        return self.session.execute(
            select(Cart)
            .where(Cart.id == cart_id)
            .with_for_update()
            .execution_options(populate_existing=True)
        ).scalar_one()

    def _get_or_create_cart(self, customer_id: str) -> Cart:
        cart = self.lock_cart(customer_id)
        if cart is not None:
            return cart

        # Two first-adds for one customer race on uq_cart_customer; the
        # loser rolls back its savepoint and locks the winner's cart.
        savepoint = self.session.begin_nested()
        try:
            cart = Cart(
                customer_id=customer_id,
                total_items=0,
                total_amount=Decimal("0"),
            )
            self.session.add(cart)
            self.session.flush()
            savepoint.commit()
            logger.info("cart_created", extra={"customer_id": customer_id})
            return cart
        except IntegrityError:
            logger.debug("cart_create_race_retry", extra={"customer_id": customer_id})
            savepoint.rollback()
            cart = self.lock_cart(customer_id)
            if cart is None:
                raise
            return cart

    def _locate_line(self, line_id) -> CartLine | None:
        """
        Find a line and lock its cart.

        The cart row is the lock for all of its lines, so the line is
        re-read after the cart lock is held.
        """
        parsed = as_uuid(line_id)
        if parsed is None:
            return None
        cart_id = self.session.execute(
            select(CartLine.cart_id).where(CartLine.id == parsed)
        ).scalar_one_or_none()
        if cart_id is None:
            return None

        cart = self._lock_cart_by_id(cart_id)
        for line in cart.lines:
            if line.id == parsed:
                return line
        return None

    def _recompute_totals(self, cart: Cart) -> None:
        cart.total_items = sum(line.quantity for line in cart.lines)
        cart.total_amount = sum(
            (line.line_amount for line in cart.lines), Decimal("0")
        ).quantize(_CENT)

    # ------------------------------------------------------------------
    # Mutations
    # ------------------------------------------------------------------

    def add_item(self, customer_id: str, sku_id, quantity: int) -> CartLineView:
        """
        Add ``quantity`` units of a SKU to the customer's cart.

        An existing line for the SKU has its quantity incremented and is
        re-priced at the SKU's current price.  A new line is priced at the
        current price.

        Raises:
            InvalidQuantityError: quantity is not a positive integer.
            SkuNotFoundError: unknown SKU.
        """
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise InvalidQuantityError(quantity, "quantity must be an integer")
        if quantity <= 0:
            raise InvalidQuantityError(quantity, "quantity must be positive")

        parsed = as_uuid(sku_id)
        variant = self.session.get(Variant, parsed) if parsed is not None else None
        if variant is None:
            raise SkuNotFoundError(str(sku_id))

        cart = self._get_or_create_cart(customer_id)

        line = next((ln for ln in cart.lines if ln.sku_id == variant.id), None)
        if line is not None:
            line.quantity += quantity
            line.unit_price = variant.price
            line.line_amount = _line_amount(variant.price, line.quantity)
        else:
            line = CartLine(
                sku_id=variant.id,
                position=max((ln.position for ln in cart.lines), default=0) + 1,
                quantity=quantity,
                unit_price=variant.price,
                line_amount=_line_amount(variant.price, quantity),
            )
            line.sku = variant
            cart.lines.append(line)

        self._recompute_totals(cart)
        self.session.flush()

        logger.info(
            "cart_item_added",
            extra={
                "customer_id": customer_id,
                "sku_id": str(variant.id),
                "quantity": line.quantity,
                "total_items": cart.total_items,
            },
        )
        return CartLineView.from_model(line)

    def set_quantity(self, line_id, quantity: int) -> CartLineView | None:
        """
        Set a line's quantity; ``quantity <= 0`` deletes the line.

        Returns:
            The updated line, or None when the line was deleted.

        Raises:
            CartLineNotFoundError: no such line.
            InvalidQuantityError: quantity is not an integer.
        """
        if not isinstance(quantity, int) or isinstance(quantity, bool):
            raise InvalidQuantityError(quantity, "quantity must be an integer")

        line = self._locate_line(line_id)
        if line is None:
            raise CartLineNotFoundError(str(line_id))
        cart = line.cart

        if quantity <= 0:
            cart.lines.remove(line)
            self._recompute_totals(cart)
            self.session.flush()
            logger.info(
                "cart_item_removed",
                extra={"customer_id": cart.customer_id, "line_id": str(line.id)},
            )
            return None

        price = line.sku.price
        line.quantity = quantity
        line.unit_price = price
        line.line_amount = _line_amount(price, quantity)
        self._recompute_totals(cart)
        self.session.flush()

        logger.info(
            "cart_item_updated",
            extra={
                "customer_id": cart.customer_id,
                "line_id": str(line.id),
                "quantity": quantity,
            },
        )
        return CartLineView.from_model(line)

    def remove_item(self, line_id) -> bool:
        """
        Delete a line.  A missing line is a no-op.

        Returns:
            True if a line was deleted.
        """
        line = self._locate_line(line_id)
        if line is None:
            logger.debug("cart_item_remove_missing", extra={"line_id": str(line_id)})
            return False

        cart = line.cart
        cart.lines.remove(line)
        self._recompute_totals(cart)
        self.session.flush()
        logger.info(
            "cart_item_removed",
            extra={"customer_id": cart.customer_id, "line_id": str(line_id)},
        )
        return True

    def clear(self, customer_id: str) -> None:
        """Delete every line of the customer's cart and zero its totals."""
        cart = self.lock_cart(customer_id)
        if cart is None:
            return
        self.clear_locked(cart)

    def clear_locked(self, cart: Cart) -> None:
        """Clear a cart whose row lock the caller already holds."""
        removed = len(cart.lines)
        cart.lines.clear()
        self._recompute_totals(cart)
        self.session.flush()
        logger.info(
            "cart_cleared",
            extra={"customer_id": cart.customer_id, "lines_removed": removed},
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def snapshot(self, customer_id: str) -> CartSnapshot:
        """Lines and totals of the customer's cart; empty if there is none."""
        cart = self.session.execute(
            select(Cart).where(Cart.customer_id == customer_id)
        ).scalar_one_or_none()
        if cart is None:
            return CartSnapshot.empty(customer_id)
        return CartSnapshot.from_model(cart)
