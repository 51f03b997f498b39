"""
Order lifecycle -- the pure transition table of the order state machine.

Responsibility:
    Declares which status changes exist and what stock movement each one
    implies.  OrderStateMachine consults this table before touching any row;
    nothing here does I/O.

    PENDING   -> CONFIRMED   deduct stock (EXPORT, -qty per line)
    PENDING   -> CANCELLED   no stock movement (nothing was deducted)
    CONFIRMED -> COMPLETED   no stock movement
    CONFIRMED -> CANCELLED   restore stock (IMPORT, +qty per line)

    COMPLETED and CANCELLED are terminal.  Every pair not listed, including
    a status to itself, is an invalid transition.
"""

from dataclasses import dataclass
from enum import Enum

from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.models.order import OrderStatus


class StockEffect(str, Enum):
    """Stock movement a transition triggers."""

    NONE = "none"
    DEDUCT = "deduct"
    RESTORE = "restore"


@dataclass(frozen=True)
class TransitionRule:
    """One permitted edge of the order state machine."""

    from_status: OrderStatus
    to_status: OrderStatus
    stock_effect: StockEffect

    @property
    def ledger_type(self) -> InventoryTxType | None:
        if self.stock_effect is StockEffect.DEDUCT:
            return InventoryTxType.EXPORT
        if self.stock_effect is StockEffect.RESTORE:
            return InventoryTxType.IMPORT
        return None

    @property
    def ledger_reason(self) -> str:
        if self.stock_effect is StockEffect.DEDUCT:
            return "order confirmed"
        if self.stock_effect is StockEffect.RESTORE:
            return "order cancelled"
        return ""


TRANSITIONS: dict[tuple[OrderStatus, OrderStatus], TransitionRule] = {
    (rule.from_status, rule.to_status): rule
    for rule in (
        TransitionRule(OrderStatus.PENDING, OrderStatus.CONFIRMED, StockEffect.DEDUCT),
        TransitionRule(OrderStatus.PENDING, OrderStatus.CANCELLED, StockEffect.NONE),
        TransitionRule(OrderStatus.CONFIRMED, OrderStatus.COMPLETED, StockEffect.NONE),
        TransitionRule(OrderStatus.CONFIRMED, OrderStatus.CANCELLED, StockEffect.RESTORE),
    )
}

TERMINAL_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.COMPLETED, OrderStatus.CANCELLED}
)

# Statuses whose orders still hold (or may still claim) stock
OPEN_STATUSES: frozenset[OrderStatus] = frozenset(
    {OrderStatus.PENDING, OrderStatus.CONFIRMED}
)


def find_transition(
    from_status: OrderStatus | str, to_status: OrderStatus | str
) -> TransitionRule | None:
    """Return the rule for ``from_status -> to_status`` or None if illegal."""
    try:
        key = (OrderStatus(from_status), OrderStatus(to_status))
    except ValueError:
        return None
    return TRANSITIONS.get(key)


def allowed_targets(from_status: OrderStatus | str) -> list[OrderStatus]:
    """Statuses reachable in one step from ``from_status``."""
    source = OrderStatus(from_status)
    return [to for (frm, to) in TRANSITIONS if frm is source]
