"""Back-office routes, guarded by the static admin bearer token."""

from __future__ import annotations

import csv
import io
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime

from fastapi import APIRouter, Depends, HTTPException, Query, Response, status
from sqlalchemy.orm.exc import StaleDataError

from storefront.common.cities import suggested_shipping_fee

from ..dependencies import get_order_repository, get_order_service, get_product_repository, require_admin
from ..reconciler import OrderNotFoundError
from ..repository import OrderRepository, ProductRepository
from ..schemas import (
    DashboardStatsResponse,
    OrderItemCreate,
    OrderItemResponse,
    OrderItemUpdate,
    OrderListResponse,
    OrderResponse,
    OrderStatus,
    OrderStatusUpdate,
    OrderUpdate,
    ProductCreate,
    ProductListResponse,
    ProductResponse,
    ProductUpdate,
    ReceiptResponse,
)
from ..services import (
    InvalidOrderChangeError,
    OrderItemNotFoundError,
    OrderService,
    dashboard_stats,
    from_cents,
    to_cents,
)
from .serializers import serialize_item, serialize_order, serialize_product, total_pages

router = APIRouter(prefix="/admin", tags=["admin"], dependencies=[Depends(require_admin)])

_EXPORT_FIELDS = (
    "id",
    "customer_name",
    "phone",
    "address",
    "city",
    "total_price",
    "shipping_fee",
    "status",
    "created_at",
)


@contextmanager
def _order_errors() -> Iterator[None]:
    try:
        yield
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    except OrderItemNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order item not found") from exc
    except InvalidOrderChangeError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=str(exc)) from exc
    except StaleDataError as exc:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Order was modified concurrently, reload and retry",
        ) from exc


# Dashboard -----------------------------------------------------------------------------


@router.get("/dashboard/stats", response_model=DashboardStatsResponse)
async def get_dashboard_stats(
    repository: OrderRepository = Depends(get_order_repository),
) -> DashboardStatsResponse:
    stats = await dashboard_stats(repository)
    return DashboardStatsResponse.model_validate(
        {
            "ordersToday": stats.orders_today,
            "revenueToday": stats.revenue_today,
            "orders7Days": stats.orders_7_days,
            "revenue7Days": stats.revenue_7_days,
            "statusCounts": stats.status_counts,
            "recentOrders": [serialize_order(order) for order in stats.recent_orders],
        }
    )


# Products ------------------------------------------------------------------------------


@router.get("/products", response_model=ProductListResponse)
async def list_products(
    search: str | None = Query(default=None),
    category: str | None = Query(default=None),
    is_active: bool | None = Query(default=None, alias="isActive"),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductListResponse:
    products, total = await repository.list_products(
        limit=limit,
        offset=(page - 1) * limit,
        search=search.strip() if search else None,
        category=category.strip() if category else None,
        is_active=is_active,
    )
    return ProductListResponse.model_validate(
        {
            "items": [serialize_product(product) for product in products],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }
    )


@router.get("/products/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductResponse:
    product = await repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ProductResponse.model_validate(serialize_product(product))


@router.post("/products", response_model=ProductResponse, status_code=status.HTTP_201_CREATED)
async def create_product(
    payload: ProductCreate,
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductResponse:
    if await repository.get_by_slug(payload.slug):
        raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists")

    fields = payload.model_dump(exclude={"price"})
    product = await repository.create_product(price_cents=to_cents(payload.price), **fields)
    return ProductResponse.model_validate(serialize_product(product))


@router.put("/products/{product_id}", response_model=ProductResponse)
async def update_product(
    product_id: int,
    payload: ProductUpdate,
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductResponse:
    product = await repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")

    changes = payload.model_dump(exclude_unset=True, exclude_none=True)
    if "slug" in changes:
        changes["slug"] = changes["slug"].lower()
        existing = await repository.get_by_slug(changes["slug"])
        if existing is not None and existing.id != product.id:
            raise HTTPException(status_code=status.HTTP_409_CONFLICT, detail="Slug already exists")
    if "price" in changes:
        changes["price_cents"] = to_cents(changes.pop("price"))

    updated = await repository.update_product(product, **changes)
    return ProductResponse.model_validate(serialize_product(updated))


@router.delete("/products/{product_id}")
async def delete_product(
    product_id: int,
    repository: ProductRepository = Depends(get_product_repository),
) -> Response:
    product = await repository.get_product(product_id)
    if product is None:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    await repository.delete_product(product)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


# Orders --------------------------------------------------------------------------------


@router.get("/orders", response_model=OrderListResponse)
async def list_orders(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    city: str | None = Query(default=None),
    created_from: datetime | None = Query(default=None, alias="from"),
    created_to: datetime | None = Query(default=None, alias="to"),
    search: str | None = Query(default=None),
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=20, ge=1, le=100),
    repository: OrderRepository = Depends(get_order_repository),
) -> OrderListResponse:
    orders, total = await repository.list_orders(
        limit=limit,
        offset=(page - 1) * limit,
        status=status_filter,
        city=city.strip() if city else None,
        created_from=created_from,
        created_to=created_to,
        search=search.strip() if search else None,
    )
    return OrderListResponse.model_validate(
        {
            "items": [serialize_order(order) for order in orders],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }
    )


@router.get("/orders/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, service: OrderService = Depends(get_order_service)) -> OrderResponse:
    with _order_errors():
        order = await service.get_order(order_id)
    return OrderResponse.model_validate(serialize_order(order))


@router.put("/orders/{order_id}", response_model=OrderResponse)
async def update_order(
    order_id: int,
    payload: OrderUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    with _order_errors():
        order = await service.update_order(order_id, payload)
    return OrderResponse.model_validate(serialize_order(order))


@router.put("/orders/{order_id}/status", response_model=OrderResponse)
async def update_order_status(
    order_id: int,
    payload: OrderStatusUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    with _order_errors():
        order = await service.update_status(order_id, status=payload.status)
    return OrderResponse.model_validate(serialize_order(order))


@router.delete("/orders/{order_id}")
async def delete_order(order_id: int, service: OrderService = Depends(get_order_service)) -> Response:
    with _order_errors():
        await service.delete_order(order_id)
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@router.get("/orders/{order_id}/receipt", response_model=ReceiptResponse)
async def get_order_receipt(order_id: int, service: OrderService = Depends(get_order_service)) -> ReceiptResponse:
    with _order_errors():
        order = await service.get_order(order_id)
    return ReceiptResponse.model_validate(
        {
            "order": serialize_order(order),
            "subtotal": from_cents(sum(item.subtotal_cents for item in order.items)),
            "shippingFee": from_cents(order.shipping_fee_cents),
            "suggestedShippingFee": suggested_shipping_fee(order.city),
            "total": from_cents(order.total_price_cents),
        }
    )


# Order items ---------------------------------------------------------------------------


@router.post(
    "/orders/{order_id}/items",
    response_model=OrderItemResponse,
    status_code=status.HTTP_201_CREATED,
)
async def add_order_item(
    order_id: int,
    payload: OrderItemCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderItemResponse:
    with _order_errors():
        item = await service.add_item(order_id, payload)
    return OrderItemResponse.model_validate(serialize_item(item))


@router.put("/orders/{order_id}/items/{item_id}", response_model=OrderItemResponse)
async def update_order_item(
    order_id: int,
    item_id: int,
    payload: OrderItemUpdate,
    service: OrderService = Depends(get_order_service),
) -> OrderItemResponse:
    with _order_errors():
        item = await service.update_item(order_id, item_id, payload)
    return OrderItemResponse.model_validate(serialize_item(item))


@router.delete("/orders/{order_id}/items/{item_id}", response_model=OrderResponse)
async def delete_order_item(
    order_id: int,
    item_id: int,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    with _order_errors():
        order = await service.delete_item(order_id, item_id)
    return OrderResponse.model_validate(serialize_order(order))


# Export --------------------------------------------------------------------------------


@router.get("/export/orders.csv")
async def export_orders_csv(
    status_filter: OrderStatus | None = Query(default=None, alias="status"),
    created_from: datetime | None = Query(default=None, alias="from"),
    created_to: datetime | None = Query(default=None, alias="to"),
    repository: OrderRepository = Depends(get_order_repository),
) -> Response:
    orders = await repository.export_orders(
        status=status_filter,
        created_from=created_from,
        created_to=created_to,
    )
    buffer = io.StringIO()
    writer = csv.writer(buffer)
    writer.writerow(_EXPORT_FIELDS)
    for order in orders:
        writer.writerow(
            [
                order.id,
                order.customer_name,
                order.phone,
                order.address,
                order.city,
                from_cents(order.total_price_cents),
                from_cents(order.shipping_fee_cents),
                order.status,
                order.created_at.isoformat(),
            ]
        )
    return Response(
        content=buffer.getvalue(),
        media_type="text/csv",
        headers={"Content-Disposition": 'attachment; filename="orders.csv"'},
    )
