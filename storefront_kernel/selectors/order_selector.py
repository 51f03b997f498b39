"""
Module: storefront_kernel.selectors.order_selector
Responsibility: Read-only order queries returning OrderView projections with
    their line snapshots and staff notes.
Architecture position: Kernel > Selectors.  May import from models/,
    domain/views.py and selectors/base.py.  MUST NOT import from services/.

Failure modes:
    - OrderNotFoundError from get_by_id() for an unknown id.
"""

from uuid import UUID

from sqlalchemy import select

from storefront_kernel.domain.views import OrderView
from storefront_kernel.exceptions import OrderNotFoundError
from storefront_kernel.models.order import Order, OrderStatus
from storefront_kernel.selectors.base import BaseSelector


class OrderSelector(BaseSelector):
    """Selector for order history (customer and back office)."""

    def list(
        self,
        status: OrderStatus | None = None,
        customer_id: str | None = None,
    ) -> list[OrderView]:
        """Orders newest first, optionally filtered by status and customer."""
        stmt = select(Order)
        if status is not None:
            stmt = stmt.where(Order.status == OrderStatus(status).value)
        if customer_id is not None:
            stmt = stmt.where(Order.customer_id == customer_id)
        stmt = stmt.order_by(Order.placed_at.desc(), Order.id.desc())

        orders = self.session.execute(stmt).scalars().all()
        return [OrderView.from_model(order) for order in orders]

    def get_by_id(self, order_id: UUID) -> OrderView:
        order = self.session.get(Order, order_id) if order_id is not None else None
        if order is None:
            raise OrderNotFoundError(str(order_id))
        return OrderView.from_model(order)
