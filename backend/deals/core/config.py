"""
Environment-driven configuration.

Values are read once from the process environment (and an optional `.env`
file at the repository root) when the settings object is first requested.
"""
import os
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path
from typing import Optional

from dotenv import load_dotenv

env_path = Path(__file__).parent.parent.parent.parent / ".env"

if env_path.exists():
    load_dotenv(env_path)


def _env_bool(name: str, default: bool) -> bool:
    value = os.getenv(name)
    if value is None:
        return default
    return value.strip().lower() in ("1", "true", "yes", "on")


def _env_int(name: str, default: int) -> int:
    value = os.getenv(name)
    if value is None or not value.strip():
        return default
    try:
        return int(value)
    except ValueError:
        return default


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the deals backend."""

    service_name: str = "deals_catalog_api"
    log_level: str = "INFO"
    log_json: bool = True

    redis_url: str = "redis://localhost:6379"
    cache_enabled: bool = True

    supabase_url: Optional[str] = None
    supabase_key: Optional[str] = None

    products_cache_ttl: int = 60 * 30  # 30 minutes
    search_cache_ttl: int = 60 * 15  # 15 minutes
    default_cache_ttl: int = 60 * 60  # 1 hour

    default_page_size: int = 20
    max_page_size: int = 100
    strict_has_more: bool = False

    upstream_request_limit: int = 100


def load_settings() -> Settings:
    """Build settings from environment variables."""
    return Settings(
        service_name=os.getenv("SERVICE_NAME", "deals_catalog_api"),
        log_level=os.getenv("LOG_LEVEL", "INFO"),
        log_json=_env_bool("LOG_JSON", True),
        redis_url=os.getenv("REDIS_URL", "redis://localhost:6379"),
        cache_enabled=_env_bool("CACHE_ENABLED", True),
        supabase_url=os.getenv("SUPABASE_URL"),
        supabase_key=os.getenv("SUPABASE_SERVICE_KEY") or os.getenv("SUPABASE_KEY"),
        products_cache_ttl=_env_int("PRODUCTS_CACHE_TTL", 60 * 30),
        search_cache_ttl=_env_int("SEARCH_CACHE_TTL", 60 * 15),
        default_cache_ttl=_env_int("DEFAULT_CACHE_TTL", 60 * 60),
        default_page_size=_env_int("DEFAULT_PAGE_SIZE", 20),
        max_page_size=_env_int("MAX_PAGE_SIZE", 100),
        strict_has_more=_env_bool("STRICT_HAS_MORE", False),
        upstream_request_limit=_env_int("UPSTREAM_REQUEST_LIMIT", 100),
    )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Get the process-wide settings instance."""
    return load_settings()
