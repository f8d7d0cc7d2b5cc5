"""Application entrypoint for the portfolio site API."""

from __future__ import annotations

import contextlib
import logging
import time
from dataclasses import asdict
from typing import Any, AsyncIterator, Awaitable, Callable

import uvicorn
from starlette.applications import Starlette
from starlette.requests import Request
from starlette.responses import JSONResponse, Response
from starlette.routing import Route

from portfolio_api.cache.manager import CacheManager
from portfolio_api.config.settings import Settings, get_settings
from portfolio_api.providers.betterstack import BetterStackClient
from portfolio_api.providers.contentful import ContentfulClient
from portfolio_api.providers.github import GitHubClient
from portfolio_api.runtime.limits import FixedWindowRateLimiter, RateLimitExceeded
from portfolio_api.runtime.response import cache_meta, error_payload, success_payload
from portfolio_api.services.base import ServiceContext, handle_api_error
from portfolio_api.services.site_service import SiteService, cache_key

LOGGER = logging.getLogger(__name__)
WINDOW_SECONDS = 60.0

ROUTE_LIMITS = {
    "projects": 60,
    "project": 60,
    "status": 120,
    "commits": 30,
    "people": 60,
    "person": 60,
    "search": 60,
    "tag": 60,
    "cache_stats": 30,
}


def build_context(settings: Settings) -> ServiceContext:
    """Composition root: one cache, one limiter and one client per collaborator per process."""
    cache = CacheManager(
        max_size_bytes=settings.cache_max_size_bytes,
        max_entries=settings.cache_max_entries,
        enable_stats=settings.enable_cache_stats,
        cleanup_interval_seconds=settings.cache_cleanup_interval_seconds,
    )
    providers: dict[str, object] = {
        "contentful": ContentfulClient(
            settings.contentful_space_id,
            settings.contentful_access_token,
            settings.contentful_environment,
            settings.request_timeout_seconds,
        ),
        "betterstack": BetterStackClient(
            settings.betterstack_api_key,
            settings.request_timeout_seconds,
            settings.uptime_cache_ttl_seconds,
        ),
        "github": GitHubClient(
            settings.github_token,
            settings.request_timeout_seconds,
            settings.github_user_agent,
        ),
    }
    return ServiceContext(
        cache=cache,
        rate_limiter=FixedWindowRateLimiter(),
        providers=providers,
        cache_ttl=settings.cache_ttl,
        environment=settings.environment,
        started_at=time.time(),
    )


def client_ip(request: Request) -> str:
    cf_ip = request.headers.get("cf-connecting-ip")
    if cf_ip:
        return cf_ip
    forwarded_for = request.headers.get("x-forwarded-for")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip() or forwarded_for
    real_ip = request.headers.get("x-real-ip")
    if real_ip:
        return real_ip
    if request.client and request.client.host:
        return request.client.host
    return "unknown-ip"


async def respond(
    request: Request,
    ctx: ServiceContext,
    limit: int | None,
    call: Callable[[], Awaitable[Any]],
    key: str | None = None,
) -> Response:
    """Rate-limit, run ``call`` and wrap the outcome in the standard envelope."""
    headers: dict[str, str] = {}
    if limit is not None:
        identifier = f"{request.url.path}:{client_ip(request)}"
        try:
            headers = ctx.rate_limiter.check(identifier, limit, WINDOW_SECONDS).headers()
        except RateLimitExceeded as error:
            LOGGER.info("rate limit hit: identifier=%s retry_after=%s", identifier, error.retry_after_seconds)
            envelope = handle_api_error(error)
            if error.info is not None:
                headers = error.info.headers()
            headers["Retry-After"] = str(max(1, envelope.retry_after_seconds or 1))
            return JSONResponse(error_payload(envelope), status_code=429, headers=headers)

    try:
        data = await call()
    except Exception as error:
        envelope = handle_api_error(error)
        LOGGER.warning(
            "request failed: path=%s code=%s status=%s", request.url.path, envelope.code, envelope.status_code
        )
        return JSONResponse(error_payload(envelope), status_code=envelope.status_code, headers=headers)

    meta = cache_meta(ctx.cache.get_entry(key)) if key else {"cached": False}
    return JSONResponse(success_payload(data, meta), headers=headers)


def create_app(ctx: ServiceContext | None = None, settings: Settings | None = None) -> Starlette:
    settings = settings or get_settings()
    ctx = ctx or build_context(settings)
    service = SiteService(ctx)

    @contextlib.asynccontextmanager
    async def lifespan(_: Starlette) -> AsyncIterator[None]:
        ctx.cache.start_cleanup()
        LOGGER.info("site api started: environment=%s", ctx.environment)
        try:
            yield
        finally:
            ctx.cache.destroy()

    async def projects(request: Request) -> Response:
        featured = request.query_params.get("featured") == "true"
        return await respond(
            request,
            ctx,
            ROUTE_LIMITS["projects"],
            lambda: service.list_projects(featured=featured),
            cache_key("projects", "featured" if featured else "all"),
        )

    async def project_detail(request: Request) -> Response:
        slug = request.path_params["slug"]
        return await respond(
            request, ctx, ROUTE_LIMITS["project"], lambda: service.get_project(slug), cache_key("project", slug)
        )

    async def project_status(request: Request) -> Response:
        slug = request.path_params["slug"]
        return await respond(
            request, ctx, ROUTE_LIMITS["status"], lambda: service.get_project_status(slug), cache_key("status", slug)
        )

    async def project_commits(request: Request) -> Response:
        slug = request.path_params["slug"]
        return await respond(
            request,
            ctx,
            ROUTE_LIMITS["commits"],
            lambda: service.get_project_commits(slug),
            cache_key("commits", slug),
        )

    async def people(request: Request) -> Response:
        return await respond(request, ctx, ROUTE_LIMITS["people"], service.list_people, cache_key("people", "all"))

    async def person_detail(request: Request) -> Response:
        slug = request.path_params["slug"]
        return await respond(
            request, ctx, ROUTE_LIMITS["person"], lambda: service.get_person(slug), cache_key("person", slug)
        )

    async def search(request: Request) -> Response:
        query = request.query_params.get("q", "")
        return await respond(
            request, ctx, ROUTE_LIMITS["search"], lambda: service.search(query), cache_key("search", query)
        )

    async def projects_by_tag(request: Request) -> Response:
        tag = request.path_params["tag"]
        return await respond(
            request, ctx, ROUTE_LIMITS["tag"], lambda: service.projects_by_tag(tag), cache_key("tag", tag)
        )

    async def cache_stats(request: Request) -> Response:
        async def snapshot() -> dict[str, Any]:
            stats = asdict(ctx.cache.get_stats())
            stats["timestamp"] = time.strftime("%Y-%m-%dT%H:%M:%SZ", time.gmtime())
            stats["environment"] = ctx.environment
            stats["uptime"] = round(time.time() - (ctx.started_at or time.time()), 3)
            return stats

        return await respond(request, ctx, ROUTE_LIMITS["cache_stats"], snapshot)

    async def health(_: Request) -> Response:
        return JSONResponse(
            {
                "status": "ok",
                "service": settings.app_name,
                "version": settings.app_version,
                "environment": ctx.environment,
                "cache_entries": len(ctx.cache.get_all_entries()),
            }
        )

    routes = [
        Route("/api/health", health, methods=["GET"]),
        Route("/api/cache/stats", cache_stats, methods=["GET"]),
        Route("/api/projects", projects, methods=["GET"]),
        Route("/api/projects/{slug}", project_detail, methods=["GET"]),
        Route("/api/projects/{slug}/status", project_status, methods=["GET"]),
        Route("/api/projects/{slug}/commits", project_commits, methods=["GET"]),
        Route("/api/people", people, methods=["GET"]),
        Route("/api/people/{slug}", person_detail, methods=["GET"]),
        Route("/api/search", search, methods=["GET"]),
        Route("/api/tags/{tag}", projects_by_tag, methods=["GET"]),
    ]
    return Starlette(routes=routes, lifespan=lifespan)


def log_level(settings: Settings) -> int:
    return logging.DEBUG if settings.is_development else logging.INFO


def main() -> None:
    settings = get_settings()
    logging.basicConfig(level=log_level(settings), format="%(asctime)s %(levelname)s %(name)s: %(message)s")
    if not settings.contentful_space_id or not settings.contentful_access_token:
        LOGGER.warning("Contentful is not configured. Set CONTENTFUL_SPACE_ID / CONTENTFUL_DELIVERY_API_KEY.")
    uvicorn.run(create_app(settings=settings), host=settings.host, port=settings.port)


if __name__ == "__main__":
    main()
