"""Checkout: validate the cart and customer details, then place the order."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from decimal import Decimal
from typing import Any

import httpx

from storefront.common import ServiceSettings, get_settings
from storefront.common.cities import delivery_fee
from storefront.common.tracing import instrument_httpx

from .cart import CartState, CartStore
from .storage import CartStorage
from .validation import CustomerDetails, FieldError, OrderValidator, normalize_phone

_LOGGER = logging.getLogger(__name__)

# Statuses whose body explains why the order was refused.
_REJECTION_STATUSES = frozenset({400, 409, 422, 429})


@dataclass(frozen=True)
class CheckoutResult:
    order: dict[str, Any] | None = None
    errors: tuple[FieldError, ...] = field(default_factory=tuple)

    @property
    def success(self) -> bool:
        return self.order is not None


@dataclass(frozen=True)
class CheckoutSummary:
    subtotal: Decimal
    delivery_fee: Decimal
    total: Decimal


def checkout_summary(state: CartState, city: str) -> CheckoutSummary:
    """Amounts shown beside the form. The fee is informational; orders are placed with free shipping."""

    fee = delivery_fee(city) if state.items else Decimal("0")
    return CheckoutSummary(subtotal=state.total_price, delivery_fee=fee, total=state.total_price + fee)


def build_order_payload(details: CustomerDetails, state: CartState) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "name": details.name.strip(),
        "phone": normalize_phone(details.phone),
        "address": details.address.strip(),
        "city": details.city.strip(),
        "notes": details.notes.strip(),
        "items": [
            {
                "productId": line.product_id,
                "productName": line.name,
                "color": line.color,
                "size": line.size,
                "quantity": line.quantity,
                "unitPrice": str(line.unit_price),
                "subtotal": str(line.line_total),
            }
            for line in state.items
        ],
        "totalPrice": str(state.total_price),
    }
    if details.location_coordinates.strip():
        payload["locationCoordinates"] = details.location_coordinates.strip()
        payload["locationAddress"] = details.location_address.strip() or None
    return payload


def rejection_errors(response: httpx.Response) -> tuple[FieldError, ...]:
    """Turn a refused submission into field errors the form can display."""

    try:
        body = response.json()
    except ValueError:
        return (FieldError("order", response.text or f"Order rejected ({response.status_code})"),)

    detail = body.get("detail") if isinstance(body, dict) else body

    if isinstance(detail, list):
        return tuple(
            FieldError(".".join(str(part) for part in entry.get("loc", [])[1:]) or "order", entry.get("msg", ""))
            for entry in detail
        )
    if isinstance(detail, dict):
        errors = detail.get("errors")
        if errors:
            return tuple(FieldError(entry["field"], entry["message"]) for entry in errors)
        return (FieldError("order", detail.get("message", "Order rejected")),)
    return (FieldError("order", str(detail)),)


class CheckoutFlow:
    """Cart -> validator -> POST /orders -> clear cart.

    Rejections come back as a :class:`CheckoutResult`; transport failures
    raise ``httpx.HTTPError`` untouched.
    """

    def __init__(
        self,
        cart: CartStore,
        validator: OrderValidator,
        client: httpx.AsyncClient,
        *,
        orders_path: str = "/orders",
    ) -> None:
        self.cart = cart
        self.validator = validator
        self.client = client
        self.orders_path = orders_path

    async def submit(self, details: CustomerDetails, captcha_answer: int | str | None) -> CheckoutResult:
        result = self.validator.validate(details, self.cart.items, captcha_answer)
        if not result.valid:
            self.validator.regenerate_captcha()
            return CheckoutResult(errors=result.errors)

        response = await self.client.post(self.orders_path, json=build_order_payload(details, self.cart.state))
        if response.status_code in _REJECTION_STATUSES:
            _LOGGER.warning("Order submission rejected with status %s", response.status_code)
            self.validator.regenerate_captcha()
            return CheckoutResult(errors=rejection_errors(response))
        response.raise_for_status()

        order = response.json()
        self.cart.clear()
        _LOGGER.info("Order %s placed", order.get("id"))
        return CheckoutResult(order=order)


def build_checkout(
    storage: CartStorage,
    settings: ServiceSettings | None = None,
    *,
    client: httpx.AsyncClient | None = None,
) -> CheckoutFlow:
    """Wire a checkout flow from settings; the caller owns ``client``'s lifetime."""

    resolved = settings or get_settings()
    if resolved.enable_tracing:
        instrument_httpx()
    http_client = client or httpx.AsyncClient(
        base_url=resolved.api_base_url,
        timeout=resolved.api_timeout_seconds,
    )
    return CheckoutFlow(
        CartStore(storage, key=resolved.cart_storage_key),
        OrderValidator(),
        http_client,
    )
