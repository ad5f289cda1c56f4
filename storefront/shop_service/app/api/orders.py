"""Public checkout routes."""

from __future__ import annotations

from decimal import Decimal

from fastapi import APIRouter, Depends, HTTPException, status

from ..dependencies import enforce_order_rate_limit, get_order_service
from ..reconciler import OrderNotFoundError
from ..schemas import OrderCreate, OrderResponse
from ..services import OrderConsistencyError, OrderService, UnknownProductError
from .serializers import serialize_order

router = APIRouter(prefix="/orders", tags=["orders"])


def consistency_detail(exc: OrderConsistencyError) -> dict[str, object]:
    return {
        "message": "Order amounts do not match the recomputed totals",
        "errors": [
            {
                "field": issue.field,
                "message": issue.message,
                "expected": str(issue.expected.quantize(Decimal("0.01"))),
                "received": str(issue.received),
            }
            for issue in exc.issues
        ],
    }


@router.post(
    "",
    response_model=OrderResponse,
    status_code=status.HTTP_201_CREATED,
    dependencies=[Depends(enforce_order_rate_limit)],
)
async def create_order(
    payload: OrderCreate,
    service: OrderService = Depends(get_order_service),
) -> OrderResponse:
    try:
        order = await service.create_order(payload)
    except UnknownProductError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail={"message": "Invalid product_id. Product does not exist.", "productIds": exc.product_ids},
        ) from exc
    except OrderConsistencyError as exc:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail=consistency_detail(exc)) from exc
    return OrderResponse.model_validate(serialize_order(order))


@router.get("/{order_id}", response_model=OrderResponse)
async def get_order(order_id: int, service: OrderService = Depends(get_order_service)) -> OrderResponse:
    try:
        order = await service.get_order(order_id)
    except OrderNotFoundError as exc:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Order not found") from exc
    return OrderResponse.model_validate(serialize_order(order))
