"""Pydantic schemas for the storefront backend."""

from __future__ import annotations

from datetime import datetime
from decimal import Decimal
from typing import Literal

from pydantic import BaseModel, ConfigDict, Field, PositiveInt, field_validator

OrderStatus = Literal["pending", "processing", "shipped", "delivered", "cancelled"]

PHONE_PATTERN = r"^07[0-9]{8}$"
# "lat,lng" as captured by the checkout map picker
COORDINATES_PATTERN = r"^-?\d{1,2}(\.\d+)?,\s*-?\d{1,3}(\.\d+)?$"


# Catalog -------------------------------------------------------------------------------


class ProductBase(BaseModel):
    name: str = Field(min_length=1, max_length=255)
    slug: str = Field(min_length=1, max_length=255)
    description: str | None = None
    price: Decimal = Field(ge=Decimal("0"), max_digits=12, decimal_places=2)
    images: list[str] = Field(default_factory=list)
    colors: list[str] = Field(default_factory=lambda: ["Black", "White", "Baby Blue"])
    sizes: list[str] = Field(default_factory=lambda: ["S", "M", "L", "XL"])
    category: str = Field(default="general", min_length=1, max_length=64)
    stock: int = Field(default=100, ge=0)
    is_featured: bool = Field(default=False, alias="isFeatured")
    is_active: bool = Field(default=True, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ProductCreate(ProductBase):
    @field_validator("slug")
    @classmethod
    def _normalize_slug(cls, value: str) -> str:
        return value.lower()


class ProductUpdate(BaseModel):
    name: str | None = Field(default=None, min_length=1, max_length=255)
    slug: str | None = Field(default=None, min_length=1, max_length=255)
    description: str | None = None
    price: Decimal | None = Field(default=None, ge=Decimal("0"), max_digits=12, decimal_places=2)
    images: list[str] | None = None
    colors: list[str] | None = None
    sizes: list[str] | None = None
    category: str | None = Field(default=None, min_length=1, max_length=64)
    stock: int | None = Field(default=None, ge=0)
    is_featured: bool | None = Field(default=None, alias="isFeatured")
    is_active: bool | None = Field(default=None, alias="isActive")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class ProductResponse(ProductBase):
    id: PositiveInt
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True, from_attributes=True)


class ProductListResponse(BaseModel):
    items: list[ProductResponse]
    total: int
    page: int = 1
    total_pages: int = Field(default=1, alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


# Orders --------------------------------------------------------------------------------


class OrderItemPayload(BaseModel):
    """One cart line as submitted at checkout."""

    product_id: PositiveInt = Field(alias="productId")
    product_name: str = Field(min_length=1, max_length=255, alias="productName")
    color: str = Field(min_length=1, max_length=64)
    size: str = Field(min_length=1, max_length=32)
    quantity: int = Field(ge=1)
    unit_price: Decimal = Field(ge=Decimal("0"), max_digits=12, decimal_places=2, alias="unitPrice")
    subtotal: Decimal = Field(ge=Decimal("0"))

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class OrderCreate(BaseModel):
    name: str = Field(min_length=2, max_length=100)
    phone: str = Field(pattern=PHONE_PATTERN)
    address: str = Field(min_length=10, max_length=200)
    city: str = Field(min_length=2, max_length=50)
    notes: str = Field(default="", max_length=500)
    location_coordinates: str | None = Field(
        default=None, max_length=64, pattern=COORDINATES_PATTERN, alias="locationCoordinates"
    )
    location_address: str | None = Field(default=None, max_length=255, alias="locationAddress")
    items: list[OrderItemPayload] = Field(min_length=1)
    total_price: Decimal = Field(ge=Decimal("0"), alias="totalPrice")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    @field_validator("location_coordinates", "location_address", mode="before")
    @classmethod
    def _blank_location_is_missing(cls, value: object) -> object:
        if isinstance(value, str) and not value.strip():
            return None
        return value


class OrderUpdate(BaseModel):
    customer_name: str | None = Field(default=None, min_length=2, max_length=100, alias="customerName")
    phone: str | None = Field(default=None, pattern=PHONE_PATTERN)
    address: str | None = Field(default=None, min_length=10, max_length=200)
    city: str | None = Field(default=None, min_length=2, max_length=50)
    notes: str | None = Field(default=None, max_length=500)
    shipping_fee: Decimal | None = Field(default=None, max_digits=12, decimal_places=2, alias="shippingFee")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class OrderStatusUpdate(BaseModel):
    status: OrderStatus


class OrderItemCreate(BaseModel):
    product_id: PositiveInt | None = Field(default=None, alias="productId")
    product_name: str = Field(min_length=1, max_length=255, alias="productName")
    color: str = Field(min_length=1, max_length=64)
    size: str = Field(min_length=1, max_length=32)
    quantity: int
    unit_price: Decimal = Field(max_digits=12, decimal_places=2, alias="unitPrice")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class OrderItemUpdate(BaseModel):
    color: str | None = Field(default=None, min_length=1, max_length=64)
    size: str | None = Field(default=None, min_length=1, max_length=32)
    quantity: int | None = None
    unit_price: Decimal | None = Field(default=None, max_digits=12, decimal_places=2, alias="unitPrice")

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)


class OrderItemResponse(BaseModel):
    id: PositiveInt
    order_id: PositiveInt = Field(alias="orderId")
    product_id: int | None = Field(default=None, alias="productId")
    product_name: str = Field(alias="productName")
    color: str
    size: str
    quantity: int
    unit_price: Decimal = Field(alias="unitPrice")
    subtotal: Decimal
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderResponse(BaseModel):
    id: PositiveInt
    customer_name: str = Field(alias="customerName")
    phone: str
    address: str
    city: str
    notes: str
    location_coordinates: str | None = Field(default=None, alias="locationCoordinates")
    location_address: str | None = Field(default=None, alias="locationAddress")
    status: OrderStatus
    shipping_fee: Decimal = Field(alias="shippingFee")
    total_price: Decimal = Field(alias="totalPrice")
    version: int
    items: list[OrderItemResponse]
    created_at: datetime = Field(alias="createdAt")
    updated_at: datetime = Field(alias="updatedAt")

    model_config = ConfigDict(populate_by_name=True)


class OrderListResponse(BaseModel):
    items: list[OrderResponse]
    total: int
    page: int
    total_pages: int = Field(alias="totalPages")

    model_config = ConfigDict(populate_by_name=True)


class ReceiptResponse(BaseModel):
    order: OrderResponse
    subtotal: Decimal
    shipping_fee: Decimal = Field(alias="shippingFee")
    suggested_shipping_fee: Decimal = Field(alias="suggestedShippingFee")
    total: Decimal

    model_config = ConfigDict(populate_by_name=True)


class DashboardStatsResponse(BaseModel):
    orders_today: int = Field(alias="ordersToday")
    revenue_today: Decimal = Field(alias="revenueToday")
    orders_7_days: int = Field(alias="orders7Days")
    revenue_7_days: Decimal = Field(alias="revenue7Days")
    status_counts: dict[str, int] = Field(alias="statusCounts")
    recent_orders: list[OrderResponse] = Field(alias="recentOrders")

    model_config = ConfigDict(populate_by_name=True)
