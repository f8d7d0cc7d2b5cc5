"""Response envelope helpers for the site API."""

from __future__ import annotations

import time
from typing import Any

from portfolio_api.cache.manager import to_jsonable
from portfolio_api.cache.types import CacheEntry
from portfolio_api.services.base import ErrorEnvelope


def cache_meta(entry: CacheEntry[Any] | None, now: float | None = None) -> dict[str, Any]:
    if entry is None:
        return {"cached": False}
    now = time.time() if now is None else now
    return {
        "cached": True,
        "cache_age": round(max(0.0, now - entry.created), 3),
        "ttl": max(0, round(entry.expires - now)),
    }


def success_payload(data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    return {"data": to_jsonable(data), "meta": meta or {"cached": False}}


def error_payload(error: ErrorEnvelope) -> dict[str, Any]:
    body: dict[str, Any] = {"code": error.code, "message": error.message, "retriable": error.retriable}
    if error.provider:
        body["provider"] = error.provider
    if error.retry_after_seconds is not None:
        body["retry_after"] = error.retry_after_seconds
    return {
        "data": None,
        "meta": {"cached": False},
        "error": body,
        "timestamp": int(time.time()),
    }
