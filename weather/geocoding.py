"""Free-text place name lookup through Nominatim.

A miss is never an error: callers fall back to the configured default
location, so every failure mode resolves to ``None``.
"""

from __future__ import annotations

import logging
from typing import Any, cast

import httpx
from django.conf import settings

from .engines.types import Coordinates
from .metrics import weather_geocode_requests_total

logger = logging.getLogger(__name__)

# Nominatim's usage policy requires an identifying User-Agent.
USER_AGENT = "club-weather/1.0 (+https://github.com/club-weather)"


class NominatimGeocoder:
    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        user_agent: str | None = None,
    ) -> None:
        self.base_url: str = base_url or cast(
            str,
            getattr(
                settings,
                "NOMINATIM_BASE_URL",
                "https://nominatim.openstreetmap.org/search",
            ),
        )
        self.timeout = timeout or float(
            getattr(settings, "WEATHER_REQUEST_TIMEOUT_SECONDS", 10.0)
        )
        self.user_agent = user_agent or cast(
            str, getattr(settings, "NOMINATIM_USER_AGENT", USER_AGENT)
        )

    async def resolve(self, place: str) -> Coordinates | None:
        query = place.strip()
        if not query:
            return None
        try:
            results = await self._request(
                {"q": query, "format": "json", "limit": 1}
            )
        except (httpx.HTTPError, ValueError) as exc:
            weather_geocode_requests_total.labels(outcome="error").inc()
            logger.warning(
                "weather.geocode.failed query=%r err=%s", query, exc
            )
            return None

        coords = self._first_coordinates(results)
        outcome = "hit" if coords else "miss"
        weather_geocode_requests_total.labels(outcome=outcome).inc()
        logger.debug("weather.geocode.%s query=%r", outcome, query)
        return coords

    async def _request(self, params: dict[str, Any]) -> Any:
        headers = {"User-Agent": self.user_agent}
        async with httpx.AsyncClient(timeout=self.timeout) as client:
            response = await client.get(
                self.base_url, params=params, headers=headers
            )
        response.raise_for_status()
        return response.json()

    def _first_coordinates(self, results: Any) -> Coordinates | None:
        if not isinstance(results, list) or not results:
            return None
        first = results[0]
        if not isinstance(first, dict):
            return None
        try:
            return Coordinates(
                lat=float(first["lat"]), lon=float(first["lon"])
            )
        except (KeyError, TypeError, ValueError):
            return None
