"""Shared service wiring: composition context, API errors and cache helpers."""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable, TypeVar

from portfolio_api.cache.manager import CacheManager
from portfolio_api.cache.types import CacheConfig, CacheTTL
from portfolio_api.providers.http import ProviderError
from portfolio_api.runtime.limits import FixedWindowRateLimiter, RateLimitExceeded

T = TypeVar("T")
LOGGER = logging.getLogger(__name__)


class ApiError(Exception):
    def __init__(self, message: str, code: str, status_code: int = 500, details: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.code = code
        self.status_code = status_code
        self.details = details


class NotFoundError(ApiError):
    def __init__(self, resource: str, identifier: str | None = None) -> None:
        message = f"{resource} with identifier '{identifier}' not found" if identifier else f"{resource} not found"
        super().__init__(message, "NOT_FOUND", 404)


class ValidationError(ApiError):
    def __init__(self, message: str, details: Any = None) -> None:
        super().__init__(message, "VALIDATION_ERROR", 400, details)


class ExternalServiceError(ApiError):
    def __init__(self, service: str, reason: str | None = None) -> None:
        super().__init__(
            f"External service '{service}' is unavailable",
            "EXTERNAL_SERVICE_ERROR",
            503,
            {"service": service, "reason": reason} if reason else {"service": service},
        )


class FetchError(ApiError):
    def __init__(self, message: str = "Failed to fetch data") -> None:
        super().__init__(message, "FETCH_ERROR", 500)


@dataclass
class ErrorEnvelope:
    code: str
    message: str
    status_code: int = 500
    retriable: bool = True
    provider: str | None = None
    retry_after_seconds: int | None = None


def handle_api_error(error: BaseException) -> ErrorEnvelope:
    """Map any exception raised while serving a request to a response envelope."""
    if isinstance(error, ApiError):
        service = error.details.get("service") if isinstance(error.details, dict) else None
        return ErrorEnvelope(
            code=error.code,
            message=error.message,
            status_code=error.status_code,
            retriable=error.status_code >= 500,
            provider=service,
        )
    if isinstance(error, RateLimitExceeded):
        return ErrorEnvelope(
            code="RATE_LIMIT",
            message=str(error),
            status_code=429,
            retry_after_seconds=error.retry_after_seconds,
        )
    if isinstance(error, ProviderError):
        if error.code == "NOT_FOUND":
            return ErrorEnvelope(
                code="NOT_FOUND", message=error.message, status_code=404, retriable=False, provider=error.provider
            )
        return ErrorEnvelope(
            code="EXTERNAL_SERVICE_ERROR",
            message=f"External service '{error.provider}' is unavailable",
            status_code=503,
            retriable=error.code in {"RATE_LIMIT", "NETWORK", "UPSTREAM", "BAD_RESPONSE"},
            provider=error.provider,
        )
    LOGGER.error("unhandled request error: %s", error, exc_info=error)
    return ErrorEnvelope(code="INTERNAL_ERROR", message="Internal server error", status_code=500)


@dataclass
class ServiceContext:
    """Everything a request handler needs; built once per process by the composition root."""

    cache: CacheManager
    rate_limiter: FixedWindowRateLimiter
    providers: dict[str, object] = field(default_factory=dict)
    cache_ttl: CacheTTL = field(default_factory=CacheTTL)
    environment: str = "production"
    started_at: float | None = None

    def get_provider(self, name: str) -> object | None:
        return self.providers.get(name)


def generate_cache_key(prefix: str, *parts: str | int | None) -> str:
    return ":".join([prefix, *(str(part) for part in parts if part is not None)])


async def cached_call(
    ctx: ServiceContext,
    cache_key: str,
    fetcher: Callable[[], Awaitable[T]],
    ttl_seconds: float,
    tags: Iterable[str] = (),
) -> T:
    """Serve ``cache_key`` through the shared cache; a fetcher that yields nothing is an error."""
    value = await ctx.cache.get(cache_key, fetcher, CacheConfig(ttl_seconds=ttl_seconds, tags=tuple(tags)))
    if value is None:
        raise FetchError()
    return value
