"""Dependency helpers for the storefront backend."""

from __future__ import annotations

import secrets
from collections.abc import AsyncIterator

from fastapi import Depends, HTTPException, Request, status
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from storefront.common import ServiceSettings, transactional_session

from .rate_limit import OrderRateLimiter
from .repository import OrderRepository, ProductRepository
from .services import OrderService

admin_bearer = HTTPBearer(auto_error=False)


async def get_session(request: Request) -> AsyncIterator[AsyncSession]:
    """Yield an AsyncSession whose work commits only if the request succeeds."""

    session_factory: async_sessionmaker[AsyncSession] = request.app.state.session_factory
    async with transactional_session(session_factory) as session:
        yield session


# Function scope: commit happens before the response is sent.
def get_product_repository(
    session: AsyncSession = Depends(get_session, scope="function"),
) -> ProductRepository:
    return ProductRepository(session)


def get_order_repository(
    session: AsyncSession = Depends(get_session, scope="function"),
) -> OrderRepository:
    return OrderRepository(session)


def get_order_service(
    orders: OrderRepository = Depends(get_order_repository),
    products: ProductRepository = Depends(get_product_repository),
) -> OrderService:
    return OrderService(orders, products)


async def enforce_order_rate_limit(request: Request) -> None:
    limiter: OrderRateLimiter | None = getattr(request.app.state, "order_rate_limiter", None)
    if limiter is None:
        return
    client = request.client.host if request.client else "unknown"
    if not await limiter.allow(client):
        raise HTTPException(
            status_code=status.HTTP_429_TOO_MANY_REQUESTS,
            detail="Too many orders created from this IP, please try again later",
        )


def require_admin(
    request: Request,
    credentials: HTTPAuthorizationCredentials | None = Depends(admin_bearer),
) -> None:
    """Accept only requests carrying the configured static bearer token."""

    if credentials is None:
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="No admin token provided")
    settings: ServiceSettings = request.app.state.settings
    token = credentials.credentials
    if not settings.admin_token or not secrets.compare_digest(token.encode(), settings.admin_token.encode()):
        raise HTTPException(status_code=status.HTTP_401_UNAUTHORIZED, detail="Invalid admin token")
