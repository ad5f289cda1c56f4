"""Prometheus metrics for the storefront backend."""

from __future__ import annotations

from typing import Final

from prometheus_client import Counter

ORDERS_CREATED_TOTAL: Final = Counter(
    "storefront_orders_created_total",
    "Total number of orders accepted at checkout.",
)

ORDER_REJECTIONS_TOTAL: Final = Counter(
    "storefront_order_rejections_total",
    "Order submissions rejected by the backend.",
    labelnames=("reason",),
)

ORDER_RECONCILIATIONS_TOTAL: Final = Counter(
    "storefront_order_reconciliations_total",
    "Order total recomputations, by the mutation that triggered them.",
    labelnames=("trigger",),
)

ORDER_RATE_LIMIT_ERRORS_TOTAL: Final = Counter(
    "storefront_order_rate_limit_errors_total",
    "Redis errors swallowed by the order rate limiter.",
    labelnames=("operation",),
)
