"""Async Redis client registry used by the order rate limiter."""

from __future__ import annotations

from redis.asyncio import Redis

from .config import ServiceSettings


_CLIENTS: dict[str, Redis] = {}


def get_redis_client(redis_url: str) -> Redis:
    """Return the shared Redis client for ``redis_url``, creating it on first use."""

    client = _CLIENTS.get(redis_url)
    if client is None:
        client = Redis.from_url(redis_url, decode_responses=True)
        _CLIENTS[redis_url] = client
    return client


def resolve_redis(settings: ServiceSettings) -> Redis | None:
    """Return a Redis client, or None when no Redis URL is configured."""

    if not settings.redis_url:
        return None
    return get_redis_client(settings.redis_url)


async def close_redis_connections() -> None:
    """Close every registered Redis client."""

    for client in _CLIENTS.values():
        await client.aclose()
    _CLIENTS.clear()
