from contextlib import asynccontextmanager

from fastapi import FastAPI

from storefront.common import (
    DEFAULT_APP_NAME,
    ServiceSettings,
    build_app,
    close_redis_connections,
    configure_logging,
    create_schema,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
    resolve_redis,
)

from .api.admin import router as admin_router
from .api.health import router as health_router
from .api.orders import router as orders_router
from .api.products import router as products_router
from .models import Base
from .rate_limit import OrderRateLimiter

SERVICE_NAME = "Storefront Service"
DEFAULT_DATABASE_URL = "sqlite+aiosqlite:///./storefront.db"


def create_app(settings: ServiceSettings | None = None) -> FastAPI:
    """Create the storefront FastAPI application."""

    resolved_settings = settings or ServiceSettings()
    if resolved_settings.app_name == DEFAULT_APP_NAME:
        resolved_settings = resolved_settings.model_copy(update={"app_name": SERVICE_NAME})
    configure_logging(resolved_settings)
    database_url = resolve_database_url(resolved_settings, DEFAULT_DATABASE_URL)
    redis_client = resolve_redis(resolved_settings)

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        await create_schema(database_url, Base.metadata)
        app.state.session_factory = get_session_factory(database_url)
        app.state.order_rate_limiter = OrderRateLimiter(
            redis_client,
            limit=resolved_settings.order_rate_limit,
            window_seconds=resolved_settings.order_rate_window_seconds,
        )
        try:
            yield
        finally:
            app.state.session_factory = None
            app.state.order_rate_limiter = None
            await dispose_engines()
            if redis_client is not None:
                await close_redis_connections()

    app = build_app(resolved_settings, lifespan=lifespan)
    app.include_router(health_router)
    app.include_router(products_router)
    app.include_router(orders_router)
    app.include_router(admin_router)
    return app


app = create_app()
