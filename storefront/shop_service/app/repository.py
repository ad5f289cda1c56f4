"""Data access helpers for the storefront backend."""

from __future__ import annotations

from datetime import datetime
from typing import Any, Iterable

from sqlalchemy import Select, String, and_, cast, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import selectinload

from .models import Order, OrderItem, Product


class ProductRepository:
    """Persistence helpers for catalog products."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_product(self, **fields: Any) -> Product:
        product = Product(**fields)
        self.session.add(product)
        await self.session.flush()
        await self.session.refresh(product, attribute_names=["created_at", "updated_at"])
        return product

    async def get_product(self, product_id: int) -> Product | None:
        result = await self.session.execute(select(Product).where(Product.id == product_id))
        return result.scalar_one_or_none()

    async def get_by_slug(self, slug: str) -> Product | None:
        result = await self.session.execute(select(Product).where(Product.slug == slug))
        return result.scalar_one_or_none()

    async def existing_ids(self, product_ids: Iterable[int]) -> set[int]:
        wanted = set(product_ids)
        if not wanted:
            return set()
        result = await self.session.execute(select(Product.id).where(Product.id.in_(wanted)))
        return set(result.scalars())

    async def list_products(
        self,
        *,
        limit: int,
        offset: int,
        search: str | None = None,
        category: str | None = None,
        is_active: bool | None = None,
    ) -> tuple[list[Product], int]:
        base: Select[tuple[Product]] = select(Product)
        count: Select[tuple[int]] = select(func.count(Product.id))

        filters = []
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(or_(func.lower(Product.name).like(pattern), func.lower(Product.slug).like(pattern)))
        if category:
            filters.append(Product.category == category)
        if is_active is not None:
            filters.append(Product.is_active.is_(is_active))

        if filters:
            base = base.where(and_(*filters))
            count = count.where(and_(*filters))

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(
            base.order_by(Product.created_at.desc(), Product.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars()), total

    async def update_product(self, product: Product, **changes: Any) -> Product:
        for field, value in changes.items():
            setattr(product, field, value)
        await self.session.flush()
        await self.session.refresh(product, attribute_names=["updated_at"])
        return product

    async def delete_product(self, product: Product) -> None:
        await self.session.delete(product)
        await self.session.flush()


class OrderRepository:
    """Persistence helpers for orders and their line items."""

    def __init__(self, session: AsyncSession) -> None:
        self.session = session

    async def create_order(
        self,
        *,
        customer_name: str,
        phone: str,
        address: str,
        city: str,
        notes: str,
        items: list[dict[str, Any]],
        total_price_cents: int,
        location_coordinates: str | None = None,
        location_address: str | None = None,
    ) -> Order:
        order = Order(
            customer_name=customer_name,
            phone=phone,
            address=address,
            city=city,
            notes=notes,
            location_coordinates=location_coordinates,
            location_address=location_address,
            status="pending",
            shipping_fee_cents=0,
            total_price_cents=total_price_cents,
            items=[OrderItem(**entry) for entry in items],
        )
        self.session.add(order)
        await self.session.flush()
        return await self.reload_order(order.id)

    async def get_order(self, order_id: int) -> Order | None:
        result = await self.session.execute(
            select(Order).options(selectinload(Order.items)).where(Order.id == order_id)
        )
        return result.scalar_one_or_none()

    async def reload_order(self, order_id: int) -> Order:
        """Re-read an order and its items, replacing any expired server-side columns."""

        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .where(Order.id == order_id)
            .execution_options(populate_existing=True)
        )
        return result.scalar_one()

    async def list_orders(
        self,
        *,
        limit: int,
        offset: int,
        status: str | None = None,
        city: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        search: str | None = None,
    ) -> tuple[list[Order], int]:
        base: Select[tuple[Order]] = select(Order)
        count: Select[tuple[int]] = select(func.count(Order.id))

        filters = self._order_filters(
            status=status,
            city=city,
            created_from=created_from,
            created_to=created_to,
            search=search,
        )
        if filters:
            base = base.where(and_(*filters))
            count = count.where(and_(*filters))

        total = (await self.session.execute(count)).scalar_one()
        result = await self.session.execute(
            base.options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .offset(offset)
            .limit(limit)
        )
        return list(result.scalars().unique()), total

    async def export_orders(
        self,
        *,
        status: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
    ) -> list[Order]:
        query = select(Order)
        filters = self._order_filters(status=status, created_from=created_from, created_to=created_to)
        if filters:
            query = query.where(and_(*filters))
        result = await self.session.execute(query.order_by(Order.created_at.desc(), Order.id.desc()))
        return list(result.scalars().unique())

    async def orders_since(self, since: datetime) -> list[Order]:
        result = await self.session.execute(select(Order).where(Order.created_at >= since))
        return list(result.scalars().unique())

    async def count_by_status(self) -> dict[str, int]:
        result = await self.session.execute(select(Order.status, func.count(Order.id)).group_by(Order.status))
        return {status: count for status, count in result.all()}

    async def recent_orders(self, limit: int = 10) -> list[Order]:
        result = await self.session.execute(
            select(Order)
            .options(selectinload(Order.items))
            .order_by(Order.created_at.desc(), Order.id.desc())
            .limit(limit)
        )
        return list(result.scalars().unique())

    async def update_order(self, order: Order, **changes: Any) -> Order:
        for field, value in changes.items():
            setattr(order, field, value)
        await self.session.flush()
        return order

    async def delete_order(self, order: Order) -> None:
        await self.session.delete(order)
        await self.session.flush()

    async def get_item(self, order_id: int, item_id: int) -> OrderItem | None:
        result = await self.session.execute(
            select(OrderItem).where(OrderItem.id == item_id, OrderItem.order_id == order_id)
        )
        return result.scalar_one_or_none()

    async def add_item(self, order: Order, **fields: Any) -> OrderItem:
        item = OrderItem(**fields)
        order.items.append(item)
        await self.session.flush()
        return item

    async def update_item(self, item: OrderItem, **changes: Any) -> OrderItem:
        for field, value in changes.items():
            setattr(item, field, value)
        await self.session.flush()
        return item

    async def delete_item(self, order: Order, item: OrderItem) -> None:
        if item in order.items:
            order.items.remove(item)
        await self.session.delete(item)
        await self.session.flush()

    async def sum_item_subtotals(self, order_id: int) -> int:
        result = await self.session.execute(
            select(func.coalesce(func.sum(OrderItem.subtotal_cents), 0)).where(OrderItem.order_id == order_id)
        )
        return int(result.scalar_one())

    def _order_filters(
        self,
        *,
        status: str | None = None,
        city: str | None = None,
        created_from: datetime | None = None,
        created_to: datetime | None = None,
        search: str | None = None,
    ) -> list[Any]:
        filters: list[Any] = []
        if status is not None:
            filters.append(Order.status == status)
        if city:
            filters.append(func.lower(Order.city).like(f"%{city.lower()}%"))
        if created_from is not None:
            filters.append(Order.created_at >= created_from)
        if created_to is not None:
            filters.append(Order.created_at <= created_to)
        if search:
            pattern = f"%{search.lower()}%"
            filters.append(
                or_(
                    cast(Order.id, String) == search,
                    func.lower(Order.customer_name).like(pattern),
                    Order.phone.like(f"%{search}%"),
                )
            )
        return filters
