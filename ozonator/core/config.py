# ozonator/core/config.py

import os
from functools import lru_cache
from typing import Optional, Annotated
from pydantic import ConfigDict, BeforeValidator
from pydantic_settings import BaseSettings


def _normalize_retention_days(value):
    try:
        days = int(float(value))
    except (TypeError, ValueError):
        return 30
    if days <= 0:
        return 30
    return min(3650, days)


class Settings(BaseSettings):
    """
    Application settings.
    Loads values from environment variables (.env file)
    """
    # Local store
    DATABASE_URL: str = "sqlite+aiosqlite:///ozonator.db"

    # Ozon Seller API
    OZON_BASE_URL: str = "https://api-seller.ozon.ru"
    OZON_CLIENT_ID: str = ""
    OZON_API_KEY: str = ""
    OZON_STORE_NAME: Optional[str] = None  # Cached display name, not a secret
    HTTP_TIMEOUT_SECONDS: float = 30.0

    # Sync limits
    MAX_SYNC_PAGES: int = 200           # Hard ceiling for cursor pagination
    PRODUCT_PAGE_LIMIT: int = 1000      # /v3/product/list page size
    INFO_CHUNK_SIZE: int = 1000         # product ids per info/attributes call
    PLACEMENT_CHUNK_SIZE: int = 500     # SKUs per placement-zone call

    # Raw exchange archive
    ARCHIVE_MAX_BODY_CHARS: int = 750000

    # Sync run log
    LOG_RETENTION_DAYS: Annotated[int, BeforeValidator(_normalize_retention_days)] = 30

    # Sales view
    SALES_DEFAULT_DAYS: int = 30

    # Environment
    ENVIRONMENT: str = "development"
    DEBUG: bool = False

    model_config = ConfigDict(
        env_file=os.environ.get('ENV_FILE', '.env') if os.path.exists(os.environ.get('ENV_FILE', '.env')) else None,
        case_sensitive=True,
        extra="ignore",
    )


@lru_cache()
def get_settings():
    """Cached settings to avoid re-reading the .env file on every call"""
    return Settings()


def clear_settings_cache():
    """Clear the settings cache - useful when switching between environments"""
    get_settings.cache_clear()
