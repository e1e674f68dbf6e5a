from __future__ import annotations

import asyncio
from collections.abc import Mapping, Sequence
from datetime import date, datetime
from typing import Any, cast

import httpx
from django.conf import settings
from django.utils import timezone

from ..conditions import wmo_condition, wmo_description, wmo_icon
from ..config import WeatherConfig
from .base import ProviderError, WeatherProvider
from .types import (
    MAX_FORECAST_DAYS,
    Coordinates,
    Forecast,
    ForecastLocation,
    ProviderName,
    TemperatureRange,
    WeatherDay,
)

DAILY_VARIABLES = (
    "weather_code,temperature_2m_max,temperature_2m_min,precipitation_sum,"
    "relative_humidity_2m_max,wind_speed_10m_max"
)
CURRENT_VARIABLES = (
    "temperature_2m,relative_humidity_2m,wind_speed_10m,weather_code"
)

# Pre-2024 response keys, still served for old-style requests.
_LEGACY_KEYS = {
    "weather_code": "weathercode",
    "relative_humidity_2m_max": "relativehumidity_2m_max",
    "wind_speed_10m_max": "windspeed_10m_max",
    "relative_humidity_2m": "relativehumidity_2m",
    "wind_speed_10m": "windspeed_10m",
}


class OpenMeteoProvider(WeatherProvider):
    """Open-Meteo implementation.

    Global coverage. Forecasts come from `/v1/forecast` (up to 16 days) and
    history from the archive API. Units are requested explicitly so values
    arrive in the configured units.
    """

    name: ProviderName = "open_meteo"
    supports_history = True

    def __init__(
        self,
        *,
        base_url: str | None = None,
        archive_url: str | None = None,
        timeout: float | None = None,
        max_retries: int = 2,
        backoff_seconds: float = 0.5,
    ) -> None:
        self.base_url: str = base_url or cast(
            str,
            getattr(
                settings,
                "OPEN_METEO_BASE_URL",
                "https://api.open-meteo.com/v1/forecast",
            ),
        )
        self.archive_url: str = archive_url or cast(
            str,
            getattr(
                settings,
                "OPEN_METEO_ARCHIVE_URL",
                "https://archive-api.open-meteo.com/v1/archive",
            ),
        )
        self.timeout = timeout or float(
            getattr(settings, "WEATHER_REQUEST_TIMEOUT_SECONDS", 10.0)
        )
        self.max_retries = max_retries
        self.backoff_seconds = backoff_seconds

    async def forecast(
        self, coords: Coordinates, days: int, config: WeatherConfig
    ) -> Forecast:
        days = max(1, min(days, MAX_FORECAST_DAYS))
        params = {
            "latitude": coords.lat,
            "longitude": coords.lon,
            "daily": DAILY_VARIABLES,
            "current": CURRENT_VARIABLES,
            "timezone": "auto",
            "forecast_days": days,
            **self._unit_params(config),
        }
        payload = await self._request(self.base_url, params)
        daily_block = payload.get("daily")
        if not isinstance(daily_block, Mapping):
            raise ProviderError("Open-Meteo response has no daily block")

        current_block = payload.get("current")
        current = (
            self._map_current(current_block, config)
            if isinstance(current_block, Mapping)
            else None
        )
        return Forecast(
            location=ForecastLocation(lat=coords.lat, lon=coords.lon),
            source=self.name,
            daily=tuple(self._map_daily(daily_block, config)[:days]),
            current=current,
        )

    async def history(
        self,
        coords: Coordinates,
        start: date,
        end: date,
        config: WeatherConfig,
    ) -> Sequence[WeatherDay]:
        params = {
            "latitude": coords.lat,
            "longitude": coords.lon,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "daily": DAILY_VARIABLES,
            "timezone": "auto",
            **self._unit_params(config),
        }
        payload = await self._request(self.archive_url, params)
        daily_block = payload.get("daily")
        if not isinstance(daily_block, Mapping):
            raise ProviderError("Open-Meteo archive has no daily block")
        return [
            day
            for day in self._map_daily(daily_block, config)
            if start <= day.date <= end
        ]

    async def _request(
        self, url: str, params: dict[str, Any]
    ) -> dict[str, Any]:
        for attempt in range(self.max_retries + 1):
            try:
                async with httpx.AsyncClient(timeout=self.timeout) as client:
                    response = await client.get(url, params=params)
                if response.status_code >= 500 and attempt < self.max_retries:
                    await asyncio.sleep(self.backoff_seconds * (attempt + 1))
                    continue
                response.raise_for_status()
                data = response.json()
                if not isinstance(data, dict):
                    raise ValueError("Unexpected Open-Meteo response shape")
                return data
            except httpx.TransportError:
                if attempt < self.max_retries:
                    await asyncio.sleep(self.backoff_seconds * (attempt + 1))
                    continue
                raise
        raise ProviderError(  # pragma: no cover - loop always returns/raises
            "Open-Meteo request failed without response"
        )

    def _unit_params(self, config: WeatherConfig) -> dict[str, str]:
        return {
            "temperature_unit": config.temperature_unit,
            "wind_speed_unit": config.wind_speed_unit,
            "precipitation_unit": config.precipitation_unit,
        }

    def _map_daily(
        self, block: Mapping[str, Any], config: WeatherConfig
    ) -> list[WeatherDay]:
        dates = self._series(block, "time")
        codes = self._series(block, "weather_code")
        t_max = self._series(block, "temperature_2m_max")
        t_min = self._series(block, "temperature_2m_min")
        precip = self._series(block, "precipitation_sum")
        humidity = self._series(block, "relative_humidity_2m_max")
        wind = self._series(block, "wind_speed_10m_max")

        days: dict[date, WeatherDay] = {}
        for idx, raw_day in enumerate(dates):
            day = self._parse_date(raw_day)
            if day is None or day in days:
                continue
            code = self._to_int(self._list_value(codes, idx))
            days[day] = WeatherDay(
                date=day,
                temperature=TemperatureRange(
                    min=self._float_or_zero(t_min, idx),
                    max=self._float_or_zero(t_max, idx),
                ),
                description=wmo_description(code, config.language),
                icon=wmo_icon(code),
                humidity=self._float_or_zero(humidity, idx),
                wind_speed=max(0.0, self._float_or_zero(wind, idx)),
                precipitation=self._float_or_zero(precip, idx),
                condition=wmo_condition(code),
                source=self.name,
            )
        return [days[key] for key in sorted(days)]

    def _map_current(
        self, block: Mapping[str, Any], config: WeatherConfig
    ) -> WeatherDay:
        code = self._to_int(self._field(block, "weather_code"))
        temperature = self._to_float(self._field(block, "temperature_2m"))
        observed = self._parse_datetime(block.get("time"))
        day = observed.date() if observed else timezone.localdate()
        value = temperature if temperature is not None else 0.0
        return WeatherDay(
            date=day,
            temperature=TemperatureRange(min=value, max=value, current=value),
            description=wmo_description(code, config.language),
            icon=wmo_icon(code),
            humidity=self._to_float(
                self._field(block, "relative_humidity_2m")
            )
            or 0.0,
            wind_speed=max(
                0.0,
                self._to_float(self._field(block, "wind_speed_10m")) or 0.0,
            ),
            precipitation=0.0,
            condition=wmo_condition(code),
            source=self.name,
        )

    def _field(self, block: Mapping[str, Any], key: str) -> Any:
        if key in block:
            return block[key]
        legacy = _LEGACY_KEYS.get(key)
        return block.get(legacy) if legacy else None

    def _series(self, block: Mapping[str, Any], key: str) -> Sequence[Any]:
        values = self._field(block, key)
        if not isinstance(values, list):
            return []
        return values

    def _parse_datetime(self, raw: Any) -> datetime | None:
        if not isinstance(raw, str):
            return None
        try:
            return datetime.fromisoformat(raw.replace("Z", "+00:00"))
        except ValueError:
            return None

    def _parse_date(self, raw: Any) -> date | None:
        if not isinstance(raw, str):
            return None
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            return None

    def _list_value(self, values: Sequence[Any], idx: int) -> Any:
        if idx >= len(values):
            return None
        return values[idx]

    def _float_or_zero(self, values: Sequence[Any], idx: int) -> float:
        value = self._to_float(self._list_value(values, idx))
        return value if value is not None else 0.0

    def _to_float(self, value: Any) -> float | None:
        try:
            if value is None:
                return None
            return float(value)
        except (TypeError, ValueError):
            return None

    def _to_int(self, value: Any) -> int | None:
        number = self._to_float(value)
        if number is None:
            return None
        try:
            return int(number)
        except (OverflowError, ValueError):
            return None
