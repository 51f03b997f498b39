"""
ORM-Level Immutability Enforcement.

===============================================================================
WHY THIS EXISTS
===============================================================================

The inventory ledger only proves anything if its rows can't be edited: the
"stock == sum of deltas" invariant is checked by replaying entries, and an
entry edited after the fact would silently change history.  Order lines are
price/name snapshots whose whole point is to be immune to later edits.

SQLAlchemy fires mapper events before UPDATE/DELETE statements reach the
database.  The listeners here inspect attribute history and raise before any
SQL is sent; the surrounding transaction then rolls back.

    session.flush()
         |
         v
    [before_flush]  --> _check_variant_deletion()      --> SkuReferencedError
    [before_update] --> _check_*_update()               --> ImmutabilityViolationError
    [before_delete] --> _check_*_delete()               --> ImmutabilityViolationError
         |
         v
    SQL sent to database (only if checks pass)

===============================================================================
PROTECTED ENTITIES
===============================================================================

Entity            | When Immutable                    | What is still allowed
------------------|-----------------------------------|-----------------------------
InventoryTxEntry  | ALWAYS (from creation)            | nothing
OrderLine         | ALWAYS (from creation)            | nothing
Order             | Header fields after insert;       | status + confirmed/completed/
                  | everything once status terminal   | cancelled audit fields
Variant           | DELETE while an open order        | every other change
                  | (PENDING/CONFIRMED) references it |

Bulk ``session.execute(update(...))`` bypasses mapper events; the kernel
never issues bulk statements against these tables.

===============================================================================
USAGE
===============================================================================

    from storefront_kernel.db.immutability import register_immutability_listeners
    register_immutability_listeners()  # once at startup

To temporarily disable (TESTS ONLY):

    unregister_immutability_listeners()
"""

from sqlalchemy import event, select
from sqlalchemy.orm import Session
from sqlalchemy.orm.attributes import get_history

from storefront_kernel.exceptions import ImmutabilityViolationError, SkuReferencedError
from storefront_kernel.logging_config import get_logger

logger = get_logger("db.immutability")

# Order columns frozen at insert
_FROZEN_ORDER_FIELDS = (
    "customer_id",
    "subtotal",
    "shipping_fee",
    "total_amount",
    "payment_method",
    "shipping_address",
    "placed_at",
)

_registered = False


def _block(entity_type: str, entity_id, operation: str, reason: str):
    logger.error(
        "immutability_violation_blocked",
        extra={
            "entity_type": entity_type,
            "entity_id": str(entity_id),
            "operation": operation,
            "reason": reason,
        },
    )
    raise ImmutabilityViolationError(entity_type, str(entity_id), reason)


def _check_ledger_entry_update(mapper, connection, target):
    _block("InventoryTxEntry", target.id, "UPDATE", "ledger entries are append-only")


def _check_ledger_entry_delete(mapper, connection, target):
    _block("InventoryTxEntry", target.id, "DELETE", "ledger entries are append-only")


def _check_order_line_update(mapper, connection, target):
    _block("OrderLine", target.id, "UPDATE", "order lines are frozen snapshots")


def _check_order_line_delete(mapper, connection, target):
    _block("OrderLine", target.id, "DELETE", "order lines are frozen snapshots")


def _check_order_update(mapper, connection, target):
    """
    Allow status and audit-field changes only.

    Status history: ``deleted`` holds the value loaded from the database.
    Leaving a terminal status is blocked even though the state machine
    already refuses it, so a stray assignment in application code fails too.
    """
    from storefront_kernel.domain.lifecycle import TERMINAL_STATUSES

    for field in _FROZEN_ORDER_FIELDS:
        if get_history(target, field).has_changes():
            _block("Order", target.id, "UPDATE", f"field '{field}' is frozen after placement")

    status_history = get_history(target, "status")
    if status_history.has_changes() and status_history.deleted:
        previous = str(status_history.deleted[0])
        previous = getattr(status_history.deleted[0], "value", previous)
        if previous in {status.value for status in TERMINAL_STATUSES}:
            _block("Order", target.id, "UPDATE", f"status {previous} is terminal")


def _check_order_delete(mapper, connection, target):
    _block("Order", target.id, "DELETE", "orders are never deleted")


def _check_variant_deletion_before_flush(session, flush_context, instances):
    """
    Block deletion of a SKU that an open order still references.

    Runs in before_flush, before the flush plan is finalized, which is the
    point where a DELETE can still be refused cleanly.
    """
    from storefront_kernel.models.catalog import Variant
    from storefront_kernel.models.order import Order, OrderLine

    for obj in list(session.deleted):
        if not isinstance(obj, Variant):
            continue

        with session.no_autoflush:
            referenced = session.execute(
                select(OrderLine.id)
                .join(Order, Order.id == OrderLine.order_id)
                .where(OrderLine.sku_id == obj.id)
                .where(Order.status.in_(("PENDING", "CONFIRMED")))
                .limit(1)
            ).first()

        if referenced is not None:
            logger.error(
                "immutability_violation_blocked",
                extra={
                    "entity_type": "Variant",
                    "entity_id": str(obj.id),
                    "operation": "DELETE",
                    "reason": "sku_referenced_by_open_order",
                },
            )
            raise SkuReferencedError(str(obj.id))


def register_immutability_listeners() -> None:
    """Install all immutability listeners (idempotent)."""
    global _registered
    if _registered:
        return

    from storefront_kernel.models.inventory import InventoryTxEntry
    from storefront_kernel.models.order import Order, OrderLine

    event.listen(InventoryTxEntry, "before_update", _check_ledger_entry_update)
    event.listen(InventoryTxEntry, "before_delete", _check_ledger_entry_delete)
    event.listen(OrderLine, "before_update", _check_order_line_update)
    event.listen(OrderLine, "before_delete", _check_order_line_delete)
    event.listen(Order, "before_update", _check_order_update)
    event.listen(Order, "before_delete", _check_order_delete)
    event.listen(Session, "before_flush", _check_variant_deletion_before_flush)

    _registered = True
    logger.info("immutability_listeners_registered")


def unregister_immutability_listeners() -> None:
    """Remove all immutability listeners. FOR TESTING ONLY."""
    global _registered
    if not _registered:
        return

    from storefront_kernel.models.inventory import InventoryTxEntry
    from storefront_kernel.models.order import Order, OrderLine

    event.remove(InventoryTxEntry, "before_update", _check_ledger_entry_update)
    event.remove(InventoryTxEntry, "before_delete", _check_ledger_entry_delete)
    event.remove(OrderLine, "before_update", _check_order_line_update)
    event.remove(OrderLine, "before_delete", _check_order_line_delete)
    event.remove(Order, "before_update", _check_order_update)
    event.remove(Order, "before_delete", _check_order_delete)
    event.remove(Session, "before_flush", _check_variant_deletion_before_flush)

    _registered = False
