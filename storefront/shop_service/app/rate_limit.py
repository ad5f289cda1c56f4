"""Redis-backed limiter for public order submissions."""

from __future__ import annotations

import logging
from typing import Any

from redis.exceptions import RedisError

from .metrics import ORDER_RATE_LIMIT_ERRORS_TOTAL

_LOGGER = logging.getLogger(__name__)


class OrderRateLimiter:
    """Fixed-window counter of order submissions per client address.

    Without Redis, or when Redis fails, submissions are let through.
    """

    def __init__(
        self,
        redis_client: Any | None,
        *,
        key_prefix: str = "order_rate",
        limit: int = 5,
        window_seconds: int = 900,
    ) -> None:
        self._redis = redis_client
        self._key_prefix = key_prefix
        self._limit = max(limit, 1)
        self._window = max(window_seconds, 1)

    async def allow(self, client: str) -> bool:
        """Return True if ``client`` may submit another order in the current window."""

        if self._redis is None:
            return True

        key = f"{self._key_prefix}:{client}"
        try:
            count = await self._redis.incr(key)
        except RedisError:
            ORDER_RATE_LIMIT_ERRORS_TOTAL.labels(operation="incr").inc()
            _LOGGER.warning("Order rate limiter unavailable; allowing submission from %s", client)
            return True
        if count == 1 or await self._lacks_expiry(key):
            try:
                await self._redis.expire(key, self._window)
            except RedisError:
                ORDER_RATE_LIMIT_ERRORS_TOTAL.labels(operation="expire").inc()
        if count > self._limit:
            _LOGGER.info("Order rate limit reached for %s", client)
            return False
        return True

    async def _lacks_expiry(self, key: str) -> bool:
        # -1: the key exists but an earlier expire was lost
        try:
            return await self._redis.ttl(key) == -1
        except RedisError:
            ORDER_RATE_LIMIT_ERRORS_TOTAL.labels(operation="ttl").inc()
            return False
