"""Conversion of ORM rows into response payloads."""

from __future__ import annotations

from ..models import Order, OrderItem, Product
from ..services import from_cents


def serialize_product(product: Product) -> dict[str, object]:
    return {
        "id": product.id,
        "name": product.name,
        "slug": product.slug,
        "description": product.description,
        "price": from_cents(product.price_cents),
        "images": list(product.images or []),
        "colors": list(product.colors or []),
        "sizes": list(product.sizes or []),
        "category": product.category,
        "stock": product.stock,
        "isFeatured": product.is_featured,
        "isActive": product.is_active,
        "createdAt": product.created_at,
        "updatedAt": product.updated_at,
    }


def serialize_item(item: OrderItem) -> dict[str, object]:
    return {
        "id": item.id,
        "orderId": item.order_id,
        "productId": item.product_id,
        "productName": item.product_name,
        "color": item.color,
        "size": item.size,
        "quantity": item.quantity,
        "unitPrice": from_cents(item.unit_price_cents),
        "subtotal": from_cents(item.subtotal_cents),
        "createdAt": item.created_at,
        "updatedAt": item.updated_at,
    }


def serialize_order(order: Order) -> dict[str, object]:
    return {
        "id": order.id,
        "customerName": order.customer_name,
        "phone": order.phone,
        "address": order.address,
        "city": order.city,
        "notes": order.notes,
        "locationCoordinates": order.location_coordinates,
        "locationAddress": order.location_address,
        "status": order.status,
        "shippingFee": from_cents(order.shipping_fee_cents),
        "totalPrice": from_cents(order.total_price_cents),
        "version": order.version,
        "items": [serialize_item(item) for item in order.items],
        "createdAt": order.created_at,
        "updatedAt": order.updated_at,
    }


def total_pages(total: int, limit: int) -> int:
    return (total + limit - 1) // limit
