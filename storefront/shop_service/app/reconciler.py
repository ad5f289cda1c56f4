"""Authoritative recomputation of order totals."""

from __future__ import annotations

import logging

from .metrics import ORDER_RECONCILIATIONS_TOTAL
from .models import Order
from .repository import OrderRepository

_LOGGER = logging.getLogger(__name__)


class OrderNotFoundError(LookupError):
    """Raised when an order id does not exist."""

    def __init__(self, order_id: int) -> None:
        super().__init__(f"Order {order_id} not found")
        self.order_id = order_id


class OrderTotalReconciler:
    """Keep ``Order.total_price`` equal to its item subtotals plus the shipping fee.

    Runs inside the caller's session, so the item write and the total write
    commit or roll back together. Calling it twice without an intervening
    mutation leaves the total unchanged.
    """

    def __init__(self, repository: OrderRepository) -> None:
        self.repository = repository

    async def reconcile(self, order_id: int, *, trigger: str = "manual") -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)

        items_total = await self.repository.sum_item_subtotals(order_id)
        total = items_total + (order.shipping_fee_cents or 0)
        if order.total_price_cents != total:
            _LOGGER.info(
                "Order %s total reconciled from %s to %s cents (%s)",
                order_id,
                order.total_price_cents,
                total,
                trigger,
            )
            await self.repository.update_order(order, total_price_cents=total)
        ORDER_RECONCILIATIONS_TOTAL.labels(trigger=trigger).inc()
        return order
