"""
Unit tests for the order transition table (no database).
"""

import pytest

from storefront_kernel.domain.lifecycle import (
    OPEN_STATUSES,
    TERMINAL_STATUSES,
    TRANSITIONS,
    StockEffect,
    allowed_targets,
    find_transition,
)
from storefront_kernel.models.inventory import InventoryTxType
from storefront_kernel.models.order import OrderStatus

P, C, D, X = (
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.COMPLETED,
    OrderStatus.CANCELLED,
)


class TestTransitionTable:
    @pytest.mark.parametrize(
        "source, target, effect, ledger_type",
        [
            (P, C, StockEffect.DEDUCT, InventoryTxType.EXPORT),
            (P, X, StockEffect.NONE, None),
            (C, D, StockEffect.NONE, None),
            (C, X, StockEffect.RESTORE, InventoryTxType.IMPORT),
        ],
    )
    def test_permitted_edges(self, source, target, effect, ledger_type):
        rule = find_transition(source, target)

        assert rule is not None
        assert rule.stock_effect is effect
        assert rule.ledger_type is ledger_type

    def test_exactly_four_edges(self):
        assert len(TRANSITIONS) == 4

    @pytest.mark.parametrize(
        "source, target",
        [
            (source, target)
            for source in OrderStatus
            for target in OrderStatus
            if (source, target) not in TRANSITIONS
        ],
    )
    def test_everything_else_is_rejected(self, source, target):
        assert find_transition(source, target) is None

    def test_terminal_statuses_have_no_exits(self):
        for status in TERMINAL_STATUSES:
            assert allowed_targets(status) == []

    def test_open_and_terminal_partition_statuses(self):
        assert OPEN_STATUSES | TERMINAL_STATUSES == set(OrderStatus)
        assert not OPEN_STATUSES & TERMINAL_STATUSES

    def test_string_statuses_accepted(self):
        assert find_transition("PENDING", "CONFIRMED") is TRANSITIONS[(P, C)]

    def test_unknown_status_is_no_rule(self):
        assert find_transition("PENDING", "SHIPPED") is None
        assert find_transition("LOST", "CANCELLED") is None

    def test_ledger_reasons(self):
        assert TRANSITIONS[(P, C)].ledger_reason == "order confirmed"
        assert TRANSITIONS[(C, X)].ledger_reason == "order cancelled"
        assert TRANSITIONS[(C, D)].ledger_reason == ""

    def test_allowed_targets_from_pending(self):
        assert set(allowed_targets(P)) == {C, X}
