"""Service layer for orchestrating catalog and order operations."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from decimal import Decimal, ROUND_HALF_UP
from typing import Any

from .metrics import ORDER_REJECTIONS_TOTAL, ORDERS_CREATED_TOTAL
from .models import Order, OrderItem
from .reconciler import OrderNotFoundError, OrderTotalReconciler
from .repository import OrderRepository, ProductRepository
from .schemas import OrderCreate, OrderItemCreate, OrderItemUpdate, OrderUpdate

_LOGGER = logging.getLogger(__name__)

# Largest accepted gap between a client-sent amount and the recomputed one.
VALIDATION_EPSILON = Decimal("0.01")

_CENT = Decimal("0.01")


def to_cents(amount: Decimal) -> int:
    return int((amount * Decimal("100")).to_integral_value(rounding=ROUND_HALF_UP))


def from_cents(cents: int) -> Decimal:
    return (Decimal(cents) / Decimal("100")).quantize(_CENT)


@dataclass(frozen=True)
class ConsistencyIssue:
    field: str
    message: str
    expected: Decimal
    received: Decimal


class OrderConsistencyError(ValueError):
    """Client-sent subtotals or total disagree with the recomputed amounts."""

    def __init__(self, issues: list[ConsistencyIssue]) -> None:
        super().__init__("; ".join(issue.message for issue in issues))
        self.issues = issues


class UnknownProductError(ValueError):
    """An order references products that are not in the catalog."""

    def __init__(self, product_ids: list[int]) -> None:
        super().__init__(f"Invalid product_id. Product does not exist: {product_ids}")
        self.product_ids = product_ids


class OrderItemNotFoundError(LookupError):
    """Raised when an item id does not exist on the given order."""

    def __init__(self, order_id: int, item_id: int) -> None:
        super().__init__(f"Item {item_id} not found on order {order_id}")
        self.order_id = order_id
        self.item_id = item_id


class InvalidOrderChangeError(ValueError):
    """An admin edit carries a value that may never be persisted."""


@dataclass
class CheckedOrder:
    items: list[dict[str, Any]] = field(default_factory=list)
    total_price_cents: int = 0


def check_order_consistency(payload: OrderCreate) -> CheckedOrder:
    """Recompute every subtotal and the total; reject drift beyond ``VALIDATION_EPSILON``."""

    issues: list[ConsistencyIssue] = []
    checked = CheckedOrder()
    items_total = Decimal("0")

    for index, item in enumerate(payload.items):
        expected = item.unit_price * item.quantity
        if abs(expected - item.subtotal) > VALIDATION_EPSILON:
            issues.append(
                ConsistencyIssue(
                    field=f"items[{index}].subtotal",
                    message=(
                        f"Subtotal for {item.product_name} must be {expected.quantize(_CENT)}, "
                        f"got {item.subtotal}"
                    ),
                    expected=expected,
                    received=item.subtotal,
                )
            )
        items_total += expected
        checked.items.append(
            {
                "product_id": item.product_id,
                "product_name": item.product_name,
                "color": item.color,
                "size": item.size,
                "quantity": item.quantity,
                "unit_price_cents": to_cents(item.unit_price),
                "subtotal_cents": to_cents(item.unit_price) * item.quantity,
            }
        )

    # Shipping is free at checkout; the admin may set a fee later.
    if abs(items_total - payload.total_price) > VALIDATION_EPSILON:
        issues.append(
            ConsistencyIssue(
                field="totalPrice",
                message=f"Total price must be {items_total.quantize(_CENT)}, got {payload.total_price}",
                expected=items_total,
                received=payload.total_price,
            )
        )

    if issues:
        raise OrderConsistencyError(issues)
    checked.total_price_cents = sum(entry["subtotal_cents"] for entry in checked.items)
    return checked


def _check_item_values(quantity: int | None, unit_price: Decimal | None) -> None:
    if quantity is not None and quantity <= 0:
        raise InvalidOrderChangeError("Quantity must be > 0")
    if unit_price is not None and unit_price < 0:
        raise InvalidOrderChangeError("Unit price must be >= 0")


class OrderService:
    """High-level operations on orders and their line items."""

    def __init__(self, repository: OrderRepository, products: ProductRepository | None = None) -> None:
        self.repository = repository
        self.products = products or ProductRepository(repository.session)
        self.reconciler = OrderTotalReconciler(repository)

    async def create_order(self, payload: OrderCreate) -> Order:
        wanted = {item.product_id for item in payload.items}
        missing = sorted(wanted - await self.products.existing_ids(wanted))
        if missing:
            ORDER_REJECTIONS_TOTAL.labels(reason="unknown_product").inc()
            _LOGGER.warning("Rejected order referencing unknown products %s", missing)
            raise UnknownProductError(missing)

        try:
            checked = check_order_consistency(payload)
        except OrderConsistencyError as exc:
            ORDER_REJECTIONS_TOTAL.labels(reason="total_mismatch").inc()
            _LOGGER.warning("Rejected order with inconsistent amounts: %s", exc)
            raise

        order = await self.repository.create_order(
            customer_name=payload.name,
            phone=payload.phone,
            address=payload.address,
            city=payload.city,
            notes=payload.notes,
            items=checked.items,
            total_price_cents=checked.total_price_cents,
            location_coordinates=payload.location_coordinates,
            location_address=payload.location_address,
        )
        ORDERS_CREATED_TOTAL.inc()
        _LOGGER.info("Created order %s with %d items", order.id, len(order.items))
        return order

    async def get_order(self, order_id: int) -> Order:
        order = await self.repository.get_order(order_id)
        if order is None:
            raise OrderNotFoundError(order_id)
        return order

    async def update_order(self, order_id: int, payload: OrderUpdate) -> Order:
        order = await self.get_order(order_id)
        changes = payload.model_dump(exclude_unset=True, exclude_none=True)
        shipping_fee = changes.pop("shipping_fee", None)
        if shipping_fee is not None:
            if shipping_fee < 0:
                raise InvalidOrderChangeError("Shipping fee must be >= 0")
            changes["shipping_fee_cents"] = to_cents(shipping_fee)

        await self.repository.update_order(order, **changes)
        if shipping_fee is not None:
            await self.reconciler.reconcile(order_id, trigger="shipping_fee")
        return await self.repository.reload_order(order_id)

    async def update_status(self, order_id: int, *, status: str) -> Order:
        order = await self.get_order(order_id)
        await self.repository.update_order(order, status=status)
        _LOGGER.info("Order %s moved to %s", order_id, status)
        return await self.repository.reload_order(order_id)

    async def delete_order(self, order_id: int) -> None:
        order = await self.get_order(order_id)
        await self.repository.delete_order(order)
        _LOGGER.info("Deleted order %s", order_id)

    async def add_item(self, order_id: int, payload: OrderItemCreate) -> OrderItem:
        _check_item_values(payload.quantity, payload.unit_price)
        order = await self.get_order(order_id)
        unit_price_cents = to_cents(payload.unit_price)
        item = await self.repository.add_item(
            order,
            product_id=payload.product_id,
            product_name=payload.product_name,
            color=payload.color,
            size=payload.size,
            quantity=payload.quantity,
            unit_price_cents=unit_price_cents,
            subtotal_cents=payload.quantity * unit_price_cents,
        )
        await self.reconciler.reconcile(order_id, trigger="item_added")
        return await self._reload_item(order_id, item.id)

    async def update_item(self, order_id: int, item_id: int, payload: OrderItemUpdate) -> OrderItem:
        _check_item_values(payload.quantity, payload.unit_price)
        item = await self._get_item(order_id, item_id)

        changes: dict[str, Any] = payload.model_dump(
            include={"color", "size"}, exclude_unset=True, exclude_none=True
        )
        if payload.quantity is not None or payload.unit_price is not None:
            quantity = payload.quantity if payload.quantity is not None else item.quantity
            unit_price_cents = (
                to_cents(payload.unit_price) if payload.unit_price is not None else item.unit_price_cents
            )
            changes.update(
                quantity=quantity,
                unit_price_cents=unit_price_cents,
                subtotal_cents=quantity * unit_price_cents,
            )

        await self.repository.update_item(item, **changes)
        await self.reconciler.reconcile(order_id, trigger="item_updated")
        return await self._reload_item(order_id, item_id)

    async def delete_item(self, order_id: int, item_id: int) -> Order:
        order = await self.get_order(order_id)
        item = await self._get_item(order_id, item_id)
        await self.repository.delete_item(order, item)
        await self.reconciler.reconcile(order_id, trigger="item_deleted")
        return await self.repository.reload_order(order_id)

    async def _get_item(self, order_id: int, item_id: int) -> OrderItem:
        item = await self.repository.get_item(order_id, item_id)
        if item is None:
            raise OrderItemNotFoundError(order_id, item_id)
        return item

    async def _reload_item(self, order_id: int, item_id: int) -> OrderItem:
        order = await self.repository.reload_order(order_id)
        return next(item for item in order.items if item.id == item_id)


@dataclass
class DashboardStats:
    orders_today: int
    revenue_today: Decimal
    orders_7_days: int
    revenue_7_days: Decimal
    status_counts: dict[str, int]
    recent_orders: list[Order]


async def dashboard_stats(repository: OrderRepository, *, now: datetime | None = None) -> DashboardStats:
    current = now or datetime.now(timezone.utc)
    today = current.replace(hour=0, minute=0, second=0, microsecond=0)
    week_start = today - timedelta(days=7)

    orders_today = await repository.orders_since(today)
    orders_week = await repository.orders_since(week_start)
    return DashboardStats(
        orders_today=len(orders_today),
        revenue_today=from_cents(sum(order.total_price_cents for order in orders_today)),
        orders_7_days=len(orders_week),
        revenue_7_days=from_cents(sum(order.total_price_cents for order in orders_week)),
        status_counts=await repository.count_by_status(),
        recent_orders=await repository.recent_orders(10),
    )
