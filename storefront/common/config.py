from functools import lru_cache
from typing import Literal

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


DEFAULT_APP_NAME = "storefront"


class ServiceSettings(BaseSettings):
    """Settings shared by the storefront backend and checkout client."""

    app_name: str = Field(default=DEFAULT_APP_NAME)
    environment: Literal["local", "dev", "staging", "prod"] = Field(default="local")
    log_level: Literal["DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"] = Field(default="INFO")
    service_host: str = Field(default="0.0.0.0")
    service_port: int = Field(default=8000)
    enable_metrics: bool = Field(default=True)
    enable_tracing: bool = Field(default=False)
    tracing_endpoint: str | None = Field(default=None)
    tracing_protocol: Literal["http/protobuf", "grpc"] = Field(default="http/protobuf")
    tracing_insecure: bool = Field(default=True)
    tracing_sample_rate: float = Field(default=1.0, ge=0.0, le=1.0)
    database_url: str | None = Field(default=None)
    redis_url: str | None = Field(default=None)
    admin_token: str | None = Field(default=None)
    order_rate_limit: int = Field(default=5, ge=1)
    order_rate_window_seconds: int = Field(default=900, ge=1)
    cart_storage_key: str = Field(default="onesalt-cart", min_length=1)
    api_base_url: str = Field(default="http://localhost:8000")
    api_timeout_seconds: float = Field(default=10.0, gt=0.0)

    model_config = SettingsConfigDict(
        env_file=(".env", ".env.local"), env_prefix="STOREFRONT_", extra="ignore"
    )


@lru_cache
def get_settings() -> ServiceSettings:
    """Return cached service settings."""

    return ServiceSettings()
