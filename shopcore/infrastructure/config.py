"""Application configuration.

Loads settings from environment variables (prefixed ``SHOPCORE_``) with
sensible defaults.
"""

from decimal import Decimal
from typing import Literal

from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    # API
    api_version: str = "0.1.0"
    debug: bool = False

    # Storage
    storage_backend: Literal["memory", "sql"] = "memory"
    database_url: str = "postgresql+asyncpg://shopcore:shopcore_dev_password@db:5432/shopcore"

    # Rate lookups; empty URL means the static tables are used
    tax_service_url: str = ""
    shipping_service_url: str = ""
    rate_lookup_timeout_seconds: float = 5.0
    default_tax_percent: Decimal = Decimal("0")
    default_shipping_amount: Decimal = Decimal("0")

    # Checkout
    default_currency: str = "USD"
    stock_conflict_retries: int = 1

    # Logging
    log_level: str = "INFO"

    class Config:
        """Pydantic configuration."""

        env_prefix = "SHOPCORE_"
        env_file = ".env"
        env_file_encoding = "utf-8"


settings = Settings()
