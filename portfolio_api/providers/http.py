"""Shared requests session for the site's upstream APIs.

Every collaborator talks JSON over HTTPS. Failures are normalized to
``ProviderError`` so the service layer can map them to API envelopes
without knowing which upstream raised them.
"""

from __future__ import annotations

import json
import logging
import time
from dataclasses import dataclass
from typing import Any, Literal, Mapping

import requests
from requests.adapters import HTTPAdapter

from portfolio_api.providers.models import ProviderName

ProviderErrorCode = Literal["RATE_LIMIT", "AUTH", "NOT_FOUND", "UPSTREAM", "NETWORK", "BAD_RESPONSE"]
RETRYABLE_STATUSES = frozenset({408, 425, 429, 500, 502, 503, 504})
BACKOFF_BASE_SECONDS = 0.25
MAX_RETRY_AFTER_SECONDS = 5.0
LOGGER = logging.getLogger(__name__)

_SESSION = requests.Session()
for _scheme in ("https://", "http://"):
    _SESSION.mount(_scheme, HTTPAdapter(pool_connections=10, pool_maxsize=20))


@dataclass
class ProviderError(Exception):
    provider: ProviderName
    code: ProviderErrorCode
    message: str
    status: int | None = None

    def __str__(self) -> str:
        return self.message


def map_status_to_code(status: int) -> ProviderErrorCode:
    if status in {401, 403}:
        return "AUTH"
    if status == 404:
        return "NOT_FOUND"
    if status == 429:
        return "RATE_LIMIT"
    return "UPSTREAM"


def _status_error(provider: ProviderName, response: requests.Response) -> ProviderError:
    code = map_status_to_code(response.status_code)
    # GitHub reports an exhausted quota as 403 rather than 429.
    if response.status_code == 403 and response.headers.get("X-RateLimit-Remaining") == "0":
        code = "RATE_LIMIT"
    return ProviderError(provider, code, f"{provider} responded with HTTP {response.status_code}.", response.status_code)


def _retry_delay(attempt: int, response: requests.Response | None = None) -> float:
    """Exponential backoff, or the upstream's Retry-After hint when it is short enough to honour."""
    if response is not None:
        hint = response.headers.get("Retry-After", "")
        if hint.isdigit():
            return min(float(hint), MAX_RETRY_AFTER_SECONDS)
    return BACKOFF_BASE_SECONDS * (2 ** (attempt - 1))


def _decode(provider: ProviderName, response: requests.Response) -> Any:
    body = response.text or ""
    if not body:
        return {}
    try:
        return json.loads(body)
    except json.JSONDecodeError as error:
        raise ProviderError(
            provider, "BAD_RESPONSE", f"{provider} sent a body that is not JSON.", response.status_code
        ) from error


def fetch_json(
    url: str,
    provider: ProviderName,
    timeout_seconds: float = 10.0,
    headers: Mapping[str, str] | None = None,
    params: Mapping[str, Any] | None = None,
    max_retries: int = 3,
) -> Any:
    """GET ``url`` and decode JSON, retrying network errors and retryable statuses."""
    attempts = max(1, max_retries)
    for attempt in range(1, attempts + 1):
        final = attempt == attempts
        try:
            response = _SESSION.get(url, timeout=timeout_seconds, headers=dict(headers or {}), params=params)
        except requests.RequestException as error:
            if final:
                raise ProviderError(provider, "NETWORK", f"{provider} could not be reached.") from error
            LOGGER.debug("upstream retry: provider=%s attempt=%s reason=network", provider, attempt)
            time.sleep(_retry_delay(attempt))
            continue

        if response.ok:
            return _decode(provider, response)

        if response.status_code in RETRYABLE_STATUSES and not final:
            LOGGER.debug("upstream retry: provider=%s attempt=%s status=%s", provider, attempt, response.status_code)
            time.sleep(_retry_delay(attempt, response))
            continue
        raise _status_error(provider, response)

    raise ProviderError(provider, "UPSTREAM", f"{provider} request failed.")
