"""
Centralized configuration management with Pydantic Settings.
All environment variables are validated and typed.
"""
from functools import lru_cache
from typing import List, Optional

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables."""

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    # Application
    app_name: str = "StoreSync API"
    app_version: str = "1.0.0"
    debug: bool = False
    environment: str = Field(default="development", pattern="^(development|staging|production|test)$")

    # Server
    host: str = "0.0.0.0"
    port: int = 8000

    # Database
    database_url: str = "postgresql+asyncpg://localhost/storesync"
    database_pool_size: int = 20
    database_max_overflow: int = 10
    database_echo: bool = False

    # Security
    encryption_key: str = Field(min_length=32)

    # CORS - stored as comma-separated string to avoid JSON parsing issues
    allowed_origins_str: str = Field(default="http://localhost:3000", alias="ALLOWED_ORIGINS")

    @property
    def allowed_origins(self) -> List[str]:
        """Parse allowed origins from comma-separated string."""
        return [origin.strip() for origin in self.allowed_origins_str.split(",") if origin.strip()]

    # Shopify
    shopify_api_version: str = "2025-01"
    shopify_app_url: Optional[str] = None
    shopify_app_config_path: str = "shopify.app.toml"
    shopify_request_timeout: float = 30.0

    # Sync engine
    sync_page_size: int = Field(default=50, ge=1, le=250)
    # Customer/order reads need protected data access from Shopify
    sync_customers_enabled: bool = False
    sync_orders_enabled: bool = False
    # Entity types whose per-record mapping/persistence failures are skipped
    sync_isolate_record_errors_str: str = Field(
        default="customers,orders",
        alias="SYNC_ISOLATE_RECORD_ERRORS",
    )
    sync_stale_after_minutes: int = 60

    @property
    def sync_isolate_record_errors(self) -> List[str]:
        """Parse the isolated entity types from comma-separated string."""
        return [
            entity.strip().lower()
            for entity in self.sync_isolate_record_errors_str.split(",")
            if entity.strip()
        ]

    # Observability
    sentry_dsn: Optional[str] = None
    log_level: str = "INFO"


@lru_cache
def get_settings() -> Settings:
    """Get cached settings instance."""
    return Settings()


settings = get_settings()
