"""Shared plumbing for the storefront backend and checkout client."""

from .config import DEFAULT_APP_NAME, ServiceSettings, get_settings
from .instrumentation import build_app, instrument_app
from .logging import configure_logging
from .database import (
    create_engine,
    create_schema,
    dispose_engines,
    get_session_factory,
    resolve_database_url,
    transactional_session,
)
from .cache import close_redis_connections, get_redis_client, resolve_redis

__all__ = [
    "ServiceSettings",
    "get_settings",
    "build_app",
    "instrument_app",
    "configure_logging",
    "DEFAULT_APP_NAME",
    "create_engine",
    "create_schema",
    "dispose_engines",
    "get_session_factory",
    "resolve_database_url",
    "transactional_session",
    "get_redis_client",
    "resolve_redis",
    "close_redis_connections",
]
