"""Public catalog routes."""

from __future__ import annotations

from fastapi import APIRouter, Depends, HTTPException, Query, status

from ..dependencies import get_product_repository
from ..repository import ProductRepository
from ..schemas import ProductListResponse, ProductResponse
from .serializers import serialize_product, total_pages

router = APIRouter(prefix="/products", tags=["products"])


@router.get("", response_model=ProductListResponse)
async def list_products(
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=100, ge=1, le=100),
    category: str | None = Query(default=None),
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductListResponse:
    products, total = await repository.list_products(
        limit=limit,
        offset=(page - 1) * limit,
        category=category.strip() if category else None,
        is_active=True,
    )
    return ProductListResponse.model_validate(
        {
            "items": [serialize_product(product) for product in products],
            "total": total,
            "page": page,
            "totalPages": total_pages(total, limit),
        }
    )


# Declared before /{product_id} so "slug" is never parsed as an id.
@router.get("/slug/{slug}", response_model=ProductResponse)
async def get_product_by_slug(
    slug: str,
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductResponse:
    cleaned = slug.strip().lower()
    if not cleaned:
        raise HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail="Invalid or missing slug parameter")
    product = await repository.get_by_slug(cleaned)
    if product is None or not product.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ProductResponse.model_validate(serialize_product(product))


@router.get("/{product_id}", response_model=ProductResponse)
async def get_product(
    product_id: int,
    repository: ProductRepository = Depends(get_product_repository),
) -> ProductResponse:
    product = await repository.get_product(product_id)
    if product is None or not product.is_active:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Product not found")
    return ProductResponse.model_validate(serialize_product(product))
