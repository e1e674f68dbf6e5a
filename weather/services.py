"""Weather aggregation service.

:class:`WeatherService` resolves a location, picks a provider, falls back to
the next provider when one fails and memoizes forecasts. None of its public
coroutines raise for expected conditions (disabled service, upstream outage,
geocode miss, out-of-horizon dates); they return ``None`` or an empty list so
callers can render "no data".
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from datetime import date, datetime
from typing import Any

from django.conf import settings

from .cache import (
    DEFAULT_TTL_SECONDS,
    FORECAST_CACHE_NAME,
    ForecastCache,
    forecast_cache_key,
)
from .conditions import icon_url
from .config import WeatherConfig, default_config, merge_config
from .engines.base import WeatherProvider
from .engines.registry import build_registry, validate_provider
from .engines.types import (
    MAX_FORECAST_DAYS,
    Coordinates,
    Forecast,
    ForecastLocation,
    ProviderName,
    WeatherDay,
)
from .geocoding import NominatimGeocoder
from .metrics import (
    weather_cache_hits_total,
    weather_cache_misses_total,
    weather_provider_fallbacks_total,
    weather_provider_latency_seconds,
    weather_provider_requests_total,
)
from .timeutils import date_window, days_until, to_local_date

logger = logging.getLogger(__name__)

# Forecasts reach 16 days out, so a range has to start within 15 days.
FORECAST_HORIZON_DAYS = 15
DEFAULT_FORECAST_DAYS = 5
DEFAULT_HISTORY_DAYS = 7

Location = str | Coordinates | None


@dataclass(frozen=True)
class FallbackEvent:
    """Emitted when a provider failed and the next one is tried."""

    failed_provider: ProviderName
    fallback_provider: ProviderName
    coordinates: Coordinates


@dataclass(frozen=True)
class ResolvedLocation:
    coordinates: Coordinates
    name: str | None = None


class WeatherService:
    def __init__(
        self,
        *,
        config: WeatherConfig | None = None,
        providers: Sequence[WeatherProvider] | None = None,
        geocoder: NominatimGeocoder | None = None,
        cache: ForecastCache | None = None,
        on_fallback: Callable[[FallbackEvent], None] | None = None,
    ) -> None:
        self._config = config or default_config()
        self._config_lock = threading.Lock()
        self.providers: list[WeatherProvider] = list(
            providers if providers is not None else build_registry()
        )
        self.geocoder = geocoder or NominatimGeocoder()
        self.cache = cache or ForecastCache(
            ttl_seconds=int(
                getattr(
                    settings, "WEATHER_CACHE_TTL_SECONDS", DEFAULT_TTL_SECONDS
                )
            ),
            name=FORECAST_CACHE_NAME,
        )
        self.on_fallback = on_fallback

    # -- configuration -----------------------------------------------------

    def configure(self, partial: Mapping[str, Any]) -> WeatherConfig:
        """Merge ``partial`` over the current configuration.

        Raises ``WeatherConfigError`` for malformed input.
        """

        with self._config_lock:
            self._config = merge_config(self._config, partial)
            return self._config

    def current_config(self) -> WeatherConfig:
        return self._config

    def is_enabled(self) -> bool:
        return self._config.enabled

    def is_enhanced_provider_enabled(self) -> bool:
        return self._config.enhanced_provider_enabled

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.info("weather.cache.cleared")

    # -- forecasts ---------------------------------------------------------

    async def forecast(
        self,
        location: Location = None,
        days: int = DEFAULT_FORECAST_DAYS,
        *,
        source: str | None = None,
    ) -> Forecast | None:
        config = self._config
        if not config.enabled:
            return None

        forced = validate_provider(source, self.providers)
        days = max(1, min(days, MAX_FORECAST_DAYS))
        resolved = await self._resolve(location, config)
        coords = resolved.coordinates

        key = forecast_cache_key(coords, days, forced)
        cached = self.cache.get(key)
        if cached is not None:
            weather_cache_hits_total.labels(endpoint="forecast").inc()
            logger.debug("weather.cache.hit key=%s", key)
            return cached
        weather_cache_misses_total.labels(endpoint="forecast").inc()

        result: Forecast | None = None
        failed: WeatherProvider | None = None
        for provider in self._chain(coords, config, forced):
            if failed is not None:
                self._report_fallback(failed, provider, coords)
            result = await self._call_forecast(provider, coords, days, config)
            if result is not None:
                break
            failed = provider

        if result is None:
            logger.warning(
                "weather.forecast.unavailable lat=%s lon=%s",
                coords.lat,
                coords.lon,
            )
            return None

        result = self._with_location_name(result, resolved)
        self.cache.put(key, result)
        return result

    async def forecast_for_range(
        self,
        start: date | datetime,
        end: date | datetime | None = None,
        location: Location = None,
    ) -> list[WeatherDay]:
        """Forecast days that fall in ``[start, end]``.

        Ranges starting more than 15 days ahead are beyond what any provider
        serves and yield an empty list without any upstream call.
        """

        if not self._config.enabled:
            return []
        first = to_local_date(start)
        last = to_local_date(end) if end is not None else first
        if days_until(first) > FORECAST_HORIZON_DAYS:
            return []

        forecast = await self.forecast(location, MAX_FORECAST_DAYS)
        if forecast is None:
            return []
        return [day for day in forecast.daily if first <= day.date <= last]

    # -- history -----------------------------------------------------------

    async def history_for_range(
        self,
        location: Location,
        start: date | datetime,
        end: date | datetime,
    ) -> list[WeatherDay]:
        config = self._config
        if not config.enabled:
            return []
        first, last = to_local_date(start), to_local_date(end)
        if first > last:
            return []
        provider = next(
            (p for p in self.providers if p.supports_history), None
        )
        if provider is None:
            logger.warning("weather.history.no_provider")
            return []
        resolved = await self._resolve(location, config)
        return await self._call_history(
            provider, resolved.coordinates, first, last, config
        )

    async def history_before(
        self,
        start: date | datetime,
        location: Location = None,
        days_back: int = DEFAULT_HISTORY_DAYS,
    ) -> list[WeatherDay]:
        """Observed weather for the ``days_back`` days preceding ``start``."""

        if days_back < 1:
            return []
        first, last = date_window(to_local_date(start), days_back)
        return await self.history_for_range(location, first, last)

    # -- helpers -----------------------------------------------------------

    async def geocode(self, place: str) -> Coordinates | None:
        return await self.geocoder.resolve(place)

    @staticmethod
    def weather_icon_url(icon: str, size: str = "2x") -> str:
        return icon_url(icon, size)

    async def _resolve(
        self, location: Location, config: WeatherConfig
    ) -> ResolvedLocation:
        if isinstance(location, Coordinates):
            return ResolvedLocation(coordinates=location)
        if isinstance(location, str) and location.strip():
            coords = await self.geocoder.resolve(location)
            if coords is not None:
                return ResolvedLocation(
                    coordinates=coords, name=location.strip()
                )
            logger.info(
                "weather.geocode.default_location query=%r", location
            )
        default = config.default_location
        return ResolvedLocation(
            coordinates=Coordinates(lat=default.lat, lon=default.lon),
            name=default.name or None,
        )

    def _chain(
        self,
        coords: Coordinates,
        config: WeatherConfig,
        forced: ProviderName | None,
    ) -> list[WeatherProvider]:
        if forced is None:
            return [p for p in self.providers if p.accepts(coords, config)]
        chain = [
            p
            for p in self.providers
            if p.name == forced
            and p.is_available(config)
            and p.covers(coords)
        ]
        # The last registered provider is the global fallback.
        fallback = self.providers[-1] if self.providers else None
        if fallback is not None and fallback not in chain:
            chain.append(fallback)
        return chain

    async def _call_forecast(
        self,
        provider: WeatherProvider,
        coords: Coordinates,
        days: int,
        config: WeatherConfig,
    ) -> Forecast | None:
        weather_provider_requests_total.labels(
            provider=provider.name, endpoint="forecast"
        ).inc()
        start_time = time.perf_counter()
        try:
            return await provider.fetch_forecast(coords, days, config)
        finally:
            duration = time.perf_counter() - start_time
            weather_provider_latency_seconds.labels(
                provider=provider.name, endpoint="forecast"
            ).observe(duration)

    async def _call_history(
        self,
        provider: WeatherProvider,
        coords: Coordinates,
        start: date,
        end: date,
        config: WeatherConfig,
    ) -> list[WeatherDay]:
        weather_provider_requests_total.labels(
            provider=provider.name, endpoint="history"
        ).inc()
        start_time = time.perf_counter()
        try:
            return await provider.fetch_history(coords, start, end, config)
        finally:
            duration = time.perf_counter() - start_time
            weather_provider_latency_seconds.labels(
                provider=provider.name, endpoint="history"
            ).observe(duration)

    def _report_fallback(
        self,
        failed: WeatherProvider,
        fallback: WeatherProvider,
        coords: Coordinates,
    ) -> None:
        weather_provider_fallbacks_total.labels(
            failed_provider=failed.name
        ).inc()
        logger.warning(
            "weather.provider.fallback failed=%s fallback=%s lat=%s lon=%s",
            failed.name,
            fallback.name,
            coords.lat,
            coords.lon,
        )
        if self.on_fallback is None:
            return
        try:
            self.on_fallback(
                FallbackEvent(
                    failed_provider=failed.name,
                    fallback_provider=fallback.name,
                    coordinates=coords,
                )
            )
        except Exception:
            # The hook observes; it never changes what forecast() returns.
            logger.exception(
                "weather.provider.fallback_hook_failed failed=%s",
                failed.name,
            )

    def _with_location_name(
        self, forecast: Forecast, resolved: ResolvedLocation
    ) -> Forecast:
        if forecast.location.name or not resolved.name:
            return forecast
        return Forecast(
            location=ForecastLocation(
                lat=forecast.location.lat,
                lon=forecast.location.lon,
                name=resolved.name,
            ),
            source=forecast.source,
            daily=forecast.daily,
            current=forecast.current,
        )


_default_service: WeatherService | None = None
_default_lock = threading.Lock()


def get_weather_service() -> WeatherService:
    """Process-wide service built from Django settings."""

    global _default_service
    with _default_lock:
        if _default_service is None:
            _default_service = WeatherService()
        return _default_service


def reset_weather_service() -> None:
    global _default_service
    with _default_lock:
        if _default_service is not None:
            _default_service.clear_cache()
        _default_service = None
