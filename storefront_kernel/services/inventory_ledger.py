"""
InventoryLedger -- the single writer of stock quantities.

Responsibility:
    Every change to a SKU's ``stock_quantity`` goes through
    ``apply_delta()``, which updates the counter and appends exactly one
    InventoryTxEntry carrying the signed delta, its type, reason and actor.
    Staff corrections (``set_absolute``) are converted into an ADJUSTMENT
    delta and take the same path.

Architecture position:
    Kernel > Services -- imperative shell.  Called by OrderStateMachine
    (confirm / cancel), CatalogService (initial stock) and the gateway
    (manual inventory transactions).

Invariants enforced:
    - Sum of deltas == stock: for any SKU, the deltas of its entries add up
      to the current stock_quantity.  Entries are append-only
      (db/immutability.py), so the sum can only move together with stock.
    - Never negative: a delta that would take stock below zero raises
      InsufficientStockError and writes neither the counter nor an entry.
      Stock is never clamped.
    - Row lock: the SKU row is read with ``SELECT ... FOR UPDATE`` before the
      read-modify-write, so concurrent writers on the same SKU serialize.

Failure modes:
    - SkuNotFoundError: unknown SKU id.
    - InvalidQuantityError: non-integer delta, zero delta, or a delta whose
      sign contradicts its type; negative absolute level.
    - InsufficientStockError: stock + delta < 0.

Audit relevance:
    Each applied delta is logged as ``stock_delta_applied`` with the SKU,
    type, delta and resulting balance.
"""

from collections.abc import Iterable, Iterator
from datetime import datetime
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from storefront_kernel.domain.clock import Clock, SystemClock
from storefront_kernel.domain.views import LedgerEntryView, StockMovement
from storefront_kernel.exceptions import (
    InsufficientStockError,
    InvalidQuantityError,
    SkuNotFoundError,
)
from storefront_kernel.logging_config import get_logger
from storefront_kernel.models.catalog import Variant
from storefront_kernel.models.inventory import InventoryTxEntry, InventoryTxType
from storefront_kernel.selectors.inventory_selector import InventorySelector
from storefront_kernel.services.base import BaseService, as_uuid

logger = get_logger("services.inventory_ledger")


def _is_int(value) -> bool:
    return isinstance(value, int) and not isinstance(value, bool)


def validate_delta(delta, tx_type: InventoryTxType) -> None:
    """
    Check that ``delta`` is a usable quantity for ``tx_type``.

    EXPORT must be negative, IMPORT and RESTOCK positive, ADJUSTMENT any
    non-zero value.

    Raises:
        InvalidQuantityError: If the delta is malformed or has the wrong sign.
    """
    if not _is_int(delta):
        raise InvalidQuantityError(delta, "delta must be an integer")
    if delta == 0:
        raise InvalidQuantityError(delta, "delta must be non-zero")
    if tx_type is InventoryTxType.EXPORT and delta > 0:
        raise InvalidQuantityError(delta, "EXPORT removes stock; delta must be negative")
    if tx_type in (InventoryTxType.IMPORT, InventoryTxType.RESTOCK) and delta < 0:
        raise InvalidQuantityError(
            delta, f"{tx_type.value} adds stock; delta must be positive"
        )


class InventoryLedger(BaseService):
    """
    Owns per-SKU stock counters and the immutable log of their changes.

    Contract:
        Flushes inside the caller's transaction; the caller commits.  A
        failed call leaves the session as it found it.

    Usage:
        ledger = InventoryLedger(session, clock)
        movement = ledger.apply_delta(
            sku_id, 20, InventoryTxType.RESTOCK, "supplier delivery", "staff-7"
        )
        movement.new_quantity
    """

    def __init__(self, session: Session, clock: Clock | None = None):
        super().__init__(session)
        self._clock = clock or SystemClock()
        self._selector = InventorySelector(session)

    # ------------------------------------------------------------------
    # Locking
    # ------------------------------------------------------------------

    def lock_sku(self, sku_id) -> Variant:
        """Load a SKU row with a write lock, refreshing any cached state."""
        parsed = as_uuid(sku_id)
        variant = None
        if parsed is not None:
            variant = self.session.execute(
                select(Variant)
                .where(Variant.id == parsed)
                .with_for_update(of=Variant)
                .execution_options(populate_existing=True)
            ).scalar_one_or_none()
        if variant is None:
            raise SkuNotFoundError(str(sku_id))
        return variant

    def lock_skus(self, sku_ids: Iterable[UUID]) -> dict[UUID, Variant]:
        """
        Lock several SKU rows in ascending id order.

        Two transactions locking overlapping SKU sets always acquire them in
        the same order, so they cannot deadlock on each other.
        """
        wanted = []
        for sku_id in set(sku_ids):
            parsed = as_uuid(sku_id)
            if parsed is None:
                raise SkuNotFoundError(str(sku_id))
            wanted.append(parsed)
        wanted.sort(key=str)
        if not wanted:
            return {}
        variants = self.session.execute(
            select(Variant)
            .where(Variant.id.in_(wanted))
            .order_by(Variant.id)
            .with_for_update(of=Variant)
            .execution_options(populate_existing=True)
        ).scalars().unique().all()
        locked = {variant.id: variant for variant in variants}
        for sku_id in wanted:
            if sku_id not in locked:
                raise SkuNotFoundError(str(sku_id))
        return locked

    # ------------------------------------------------------------------
    # Writes
    # ------------------------------------------------------------------

    def apply_delta(
        self,
        sku_id,
        delta: int,
        tx_type: InventoryTxType | str,
        reason: str,
        actor_id: str,
    ) -> StockMovement:
        """
        Change a SKU's stock by ``delta`` and append the matching entry.

        Preconditions:
            - ``delta`` obeys the sign rule of ``tx_type``.

        Postconditions:
            - stock_quantity increased by exactly ``delta``.
            - Exactly one InventoryTxEntry with ``delta`` and
              ``balance_after == new stock`` was flushed.

        Raises:
            SkuNotFoundError, InvalidQuantityError, InsufficientStockError.
        """
        try:
            tx_type = InventoryTxType(tx_type)
        except ValueError:
            raise InvalidQuantityError(
                delta, f"unknown transaction type {tx_type!r}"
            ) from None
        validate_delta(delta, tx_type)

        variant = self.lock_sku(sku_id)
        available = variant.stock_quantity
        new_quantity = available + delta

        if new_quantity < 0:
            logger.warning(
                "stock_delta_rejected",
                extra={
                    "sku_id": str(variant.id),
                    "tx_type": tx_type.value,
                    "delta": delta,
                    "available": available,
                },
            )
            raise InsufficientStockError(
                str(variant.id),
                available=available,
                requested=-delta,
                sku_name=variant.name,
            )

        variant.stock_quantity = new_quantity
        entry = InventoryTxEntry(
            delta=delta,
            tx_type=tx_type.value,
            reason=reason or "",
            actor_id=actor_id,
            occurred_at=self._clock.now(),
            balance_after=new_quantity,
        )
        entry.sku = variant
        self.session.add(entry)
        self.session.flush()

        logger.info(
            "stock_delta_applied",
            extra={
                "sku_id": str(variant.id),
                "tx_type": tx_type.value,
                "delta": delta,
                "balance_after": new_quantity,
                "actor_id": actor_id,
            },
        )
        return StockMovement(
            sku_id=variant.id,
            new_quantity=new_quantity,
            entry=LedgerEntryView.from_model(entry),
        )

    def set_absolute(
        self,
        sku_id,
        new_quantity: int,
        actor_id: str,
        reason: str | None = None,
    ) -> StockMovement:
        """
        Staff correction: set stock to ``new_quantity`` via an ADJUSTMENT.

        A correction to the current value records nothing and returns a
        movement whose ``entry`` is None.

        Raises:
            InvalidQuantityError: If ``new_quantity`` is not an int >= 0.
            SkuNotFoundError: Unknown SKU.
        """
        if not _is_int(new_quantity):
            raise InvalidQuantityError(new_quantity, "stock level must be an integer")
        if new_quantity < 0:
            raise InvalidQuantityError(new_quantity, "stock level cannot be negative")

        variant = self.lock_sku(sku_id)
        delta = new_quantity - variant.stock_quantity
        if delta == 0:
            logger.debug(
                "stock_level_unchanged",
                extra={"sku_id": str(variant.id), "stock_quantity": new_quantity},
            )
            return StockMovement(sku_id=variant.id, new_quantity=new_quantity, entry=None)

        return self.apply_delta(
            variant.id,
            delta,
            InventoryTxType.ADJUSTMENT,
            reason or f"stock level set to {new_quantity}",
            actor_id,
        )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    def history(
        self,
        sku_id=None,
        start: datetime | None = None,
        end: datetime | None = None,
        limit: int | None = None,
    ) -> Iterator[LedgerEntryView]:
        """Lazy, newest-first stream of ledger entries (see InventorySelector)."""
        parsed = None
        if sku_id is not None:
            parsed = as_uuid(sku_id)
            if parsed is None:
                raise SkuNotFoundError(str(sku_id))
        return self._selector.history(parsed, start=start, end=end, limit=limit)

    def current_stock(self, sku_id) -> int:
        """Stock level without taking a lock."""
        parsed = as_uuid(sku_id)
        variant = self.session.get(Variant, parsed) if parsed is not None else None
        if variant is None:
            raise SkuNotFoundError(str(sku_id))
        return variant.stock_quantity
