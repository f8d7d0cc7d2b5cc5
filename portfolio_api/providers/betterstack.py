"""BetterStack Uptime adapter.

Monitor lookups are best-effort: every failure is logged and surfaces as
None. Results sit in a private short-lived cache keyed by monitor ID,
separate from the application cache manager.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Any

from portfolio_api.cache.ttl_cache import TTLCache
from portfolio_api.providers.http import ProviderError, fetch_json
from portfolio_api.providers.models import MonitorState, MonitorStatus

LOGGER = logging.getLogger(__name__)
SAMPLES_PER_REGION = 10

_STATUS_MAP: dict[str, MonitorState] = {
    "up": "operational",
    "validating": "degraded",
    "down": "down",
    "maintenance": "maintenance",
}


def map_monitor_status(status: str | None) -> MonitorState:
    return _STATUS_MAP.get((status or "").lower(), "unknown")


def average_response_time_ms(payload: Any) -> int | None:
    """Mean of the latest samples across regions, converted from seconds to ms."""
    regions = (((payload or {}).get("data") or {}).get("attributes") or {}).get("regions")
    if not isinstance(regions, list):
        return None
    samples: list[float] = []
    for region in regions:
        times = (region or {}).get("response_times")
        if not isinstance(times, list):
            continue
        for sample in times[-SAMPLES_PER_REGION:]:
            value = (sample or {}).get("response_time")
            if isinstance(value, (int, float)):
                samples.append(value * 1000.0)
    if not samples:
        return None
    return round(sum(samples) / len(samples))


class BetterStackClient:
    def __init__(
        self,
        api_key: str | None,
        timeout_seconds: float = 10.0,
        cache_ttl_seconds: float = 60.0,
    ) -> None:
        self.api_key = api_key
        self.timeout_seconds = timeout_seconds
        self.base = "https://uptime.betterstack.com/api/v2"
        self.cache: TTLCache[MonitorStatus] = TTLCache(ttl_seconds=cache_ttl_seconds)

    def _get(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        return fetch_json(
            f"{self.base}{endpoint}",
            provider="betterstack",
            timeout_seconds=self.timeout_seconds,
            headers={"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"},
            params=params,
        )

    def _get_optional(self, endpoint: str, params: dict[str, str] | None = None) -> Any:
        try:
            return self._get(endpoint, params)
        except ProviderError as error:
            LOGGER.warning("betterstack optional fetch failed: endpoint=%s code=%s", endpoint, error.code)
            return None

    def get_monitor_status(self, monitor_id: str) -> MonitorStatus | None:
        if not self.api_key:
            LOGGER.error("betterstack api key missing")
            return None

        cached = self.cache.get(monitor_id)
        if cached is not None:
            LOGGER.debug("betterstack cached status: monitor=%s", monitor_id)
            return cached

        try:
            monitor_payload = self._get(f"/monitors/{monitor_id}")
        except ProviderError as error:
            LOGGER.warning(
                "betterstack monitor fetch failed: monitor=%s code=%s status=%s", monitor_id, error.code, error.status
            )
            return None
        attributes = ((monitor_payload or {}).get("data") or {}).get("attributes")
        if not isinstance(attributes, dict):
            return None

        since = (datetime.now(timezone.utc) - timedelta(hours=1)).isoformat()
        response_times = self._get_optional(f"/monitors/{monitor_id}/response-times", {"from": since})
        sla_payload = self._get_optional(f"/monitors/{monitor_id}/sla")

        response_time = average_response_time_ms(response_times)
        if not response_time:
            fallback = attributes.get("response_time")
            if fallback is None:
                fallback = attributes.get("last_response_time")
            if isinstance(fallback, (int, float)):
                response_time = round(fallback * 1000)

        sla = ((sla_payload or {}).get("data") or {}).get("attributes") or {}
        status = MonitorStatus(
            status=map_monitor_status(attributes.get("status")),
            last_checked_at=str(attributes.get("last_checked_at") or ""),
            monitor_url=str(attributes.get("url") or ""),
            uptime_percentage=sla.get("availability"),
            response_time=response_time,
            total_downtime=sla.get("total_downtime"),
            incidents_count=sla.get("number_of_incidents"),
            check_frequency=attributes.get("check_frequency"),
        )
        self.cache.prune()
        self.cache.set(monitor_id, status)
        return status
