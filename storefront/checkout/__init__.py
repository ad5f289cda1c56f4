"""Customer-side checkout: cart, order validation and submission."""

from .captcha import Captcha, generate_captcha
from .cart import CartError, CartLine, CartState, CartStore, CatalogProduct, line_id, with_totals
from .storage import CartStorage, FileCartStorage, InMemoryCartStorage
from .submission import (
    CheckoutFlow,
    CheckoutResult,
    CheckoutSummary,
    build_checkout,
    build_order_payload,
    checkout_summary,
)
from .validation import CustomerDetails, FieldError, OrderValidator, ValidationResult

__all__ = [
    "Captcha",
    "generate_captcha",
    "CartError",
    "CartLine",
    "CartState",
    "CartStore",
    "CatalogProduct",
    "line_id",
    "with_totals",
    "CartStorage",
    "FileCartStorage",
    "InMemoryCartStorage",
    "CheckoutFlow",
    "CheckoutResult",
    "CheckoutSummary",
    "build_checkout",
    "build_order_payload",
    "checkout_summary",
    "CustomerDetails",
    "FieldError",
    "OrderValidator",
    "ValidationResult",
]
