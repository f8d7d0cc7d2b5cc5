"""Environment-driven settings."""

from __future__ import annotations

import os
from dataclasses import dataclass, field

from dotenv import load_dotenv

from portfolio_api.cache.types import CacheTTL


@dataclass(frozen=True)
class Settings:
    """Runtime settings for the site API and its cache."""

    app_name: str = "portfolio-api"
    app_version: str = "1.0.0"
    environment: str = "production"
    host: str = "0.0.0.0"
    port: int = 8000
    contentful_space_id: str | None = None
    contentful_access_token: str | None = None
    contentful_environment: str = "master"
    betterstack_api_key: str | None = None
    github_token: str | None = None
    github_user_agent: str = "portfolio-api"
    request_timeout_seconds: float = 10.0
    cache_max_size_mb: int = 50
    cache_max_entries: int = 1000
    enable_cache_stats: bool = False
    cache_cleanup_interval_seconds: float = 300.0
    uptime_cache_ttl_seconds: float = 60.0
    cache_ttl: CacheTTL = field(default_factory=CacheTTL)

    @property
    def cache_max_size_bytes(self) -> int:
        return self.cache_max_size_mb * 1024 * 1024

    @property
    def is_development(self) -> bool:
        return self.environment == "development"


def _as_int(value: str | None, default: int) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except ValueError:
        return default


def _as_float(value: str | None, default: float) -> float:
    if value is None or value == "":
        return default
    try:
        return float(value)
    except ValueError:
        return default


def _as_bool(value: str | None, default: bool) -> bool:
    if value is None or value == "":
        return default
    return value.strip().lower() in {"1", "true", "yes", "on"}


def _cache_ttl_from_env() -> CacheTTL:
    defaults = CacheTTL()
    return CacheTTL(
        projects_list=_as_int(os.getenv("CACHE_PROJECTS_LIST"), defaults.projects_list),
        projects_detail=_as_int(os.getenv("CACHE_PROJECTS_DETAIL"), defaults.projects_detail),
        people_list=_as_int(os.getenv("CACHE_PEOPLE_LIST"), defaults.people_list),
        people_detail=_as_int(os.getenv("CACHE_PEOPLE_DETAIL"), defaults.people_detail),
        status=_as_int(os.getenv("CACHE_STATUS"), defaults.status),
        commits=_as_int(os.getenv("CACHE_COMMITS"), defaults.commits),
        tags=_as_int(os.getenv("CACHE_TAGS"), defaults.tags),
        search=_as_int(os.getenv("CACHE_SEARCH"), defaults.search),
    )


def get_settings() -> Settings:
    """Load runtime settings from environment variables."""
    load_dotenv()

    return Settings(
        environment=os.getenv("ENVIRONMENT", "production").strip().lower(),
        host=os.getenv("HOST", "0.0.0.0"),
        port=_as_int(os.getenv("PORT"), 8000),
        contentful_space_id=os.getenv("CONTENTFUL_SPACE_ID"),
        contentful_access_token=os.getenv("CONTENTFUL_DELIVERY_API_KEY"),
        contentful_environment=os.getenv("CONTENTFUL_ENVIRONMENT") or "master",
        betterstack_api_key=os.getenv("BETTERSTACK_UPTIME_API_KEY"),
        github_token=os.getenv("GITHUB_TOKEN"),
        github_user_agent=os.getenv("GITHUB_USER_AGENT", "portfolio-api"),
        request_timeout_seconds=_as_float(os.getenv("REQUEST_TIMEOUT_SECONDS"), 10.0),
        cache_max_size_mb=_as_int(os.getenv("CACHE_MAX_SIZE_MB"), 50),
        cache_max_entries=_as_int(os.getenv("CACHE_MAX_ENTRIES"), 1000),
        enable_cache_stats=_as_bool(os.getenv("ENABLE_CACHE_STATS"), False),
        cache_cleanup_interval_seconds=_as_float(os.getenv("CACHE_CLEANUP_INTERVAL_SECONDS"), 300.0),
        uptime_cache_ttl_seconds=_as_float(os.getenv("UPTIME_CACHE_TTL_SECONDS"), 60.0),
        cache_ttl=_cache_ttl_from_env(),
    )
