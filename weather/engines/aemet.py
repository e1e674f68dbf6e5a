from __future__ import annotations

from collections.abc import Mapping, Sequence
from datetime import date
from typing import Any, cast

from django.conf import settings

from ..conditions import aemet_condition, aemet_description, aemet_icon
from ..config import WeatherConfig
from ..geo import SPAIN_REGION, RegionClassifier
from ..units import (
    convert_precipitation,
    convert_temperature,
    convert_wind_speed,
)
from .base import ProviderError, WeatherProvider
from .stations import StationResolver, fetch_aemet_json
from .types import (
    MAX_FORECAST_DAYS,
    Coordinates,
    Forecast,
    ForecastLocation,
    ProviderName,
    TemperatureRange,
    WeatherDay,
)

FORECAST_PATH = "/opendata/api/prediccion/especifica/municipio/diaria/{code}"


class AemetProvider(WeatherProvider):
    """AEMET OpenData municipality forecasts.

    Only covers Spain and needs an API key. Each forecast takes a station
    lookup plus two requests: the forecast endpoint answers with a `datos`
    URL that holds the actual payload. Values arrive in Celsius, km/h and mm
    and are converted to the configured units.
    """

    name: ProviderName = "aemet"

    def __init__(
        self,
        *,
        base_url: str | None = None,
        timeout: float | None = None,
        region: RegionClassifier = SPAIN_REGION,
        stations: StationResolver | None = None,
    ) -> None:
        self.base_url: str = (
            base_url
            or cast(
                str,
                getattr(
                    settings, "AEMET_BASE_URL", "https://opendata.aemet.es"
                ),
            )
        ).rstrip("/")
        self.timeout = timeout or float(
            getattr(settings, "WEATHER_REQUEST_TIMEOUT_SECONDS", 10.0)
        )
        self.region = region
        self.stations = stations or StationResolver(
            base_url=self.base_url, timeout=self.timeout
        )

    def is_available(self, config: WeatherConfig) -> bool:
        return config.enhanced_provider_enabled

    def covers(self, coords: Coordinates) -> bool:
        return self.region.is_in_region(coords.lat, coords.lon)

    def accepts(self, coords: Coordinates, config: WeatherConfig) -> bool:
        return (
            config.enhanced_provider.prefer_for_region
            and super().accepts(coords, config)
        )

    async def forecast(
        self, coords: Coordinates, days: int, config: WeatherConfig
    ) -> Forecast:
        api_key = config.enhanced_provider.api_key
        if not api_key:
            raise ProviderError("AEMET API key is not configured")
        station = await self.stations.nearest_station(
            coords.lat, coords.lon, api_key
        )
        if station is None:
            raise ProviderError("No AEMET municipality for coordinates")

        url = self.base_url + FORECAST_PATH.format(code=station.code)
        payload = await fetch_aemet_json(url, api_key, self.timeout)
        if not isinstance(payload, list) or not payload:
            raise ProviderError("AEMET forecast payload is empty")
        first = payload[0]
        if not isinstance(first, Mapping):
            raise ProviderError("Unexpected AEMET forecast shape")

        days = max(1, min(days, MAX_FORECAST_DAYS))
        prediction = first.get("prediccion")
        raw_days = (
            prediction.get("dia") if isinstance(prediction, Mapping) else None
        )
        daily = self._map_days(
            raw_days if isinstance(raw_days, list) else [], config
        )
        name = first.get("nombre") or station.name or None
        return Forecast(
            location=ForecastLocation(
                lat=coords.lat, lon=coords.lon, name=name
            ),
            source=self.name,
            daily=tuple(daily[:days]),
        )

    def _map_days(
        self, raw_days: Sequence[Any], config: WeatherConfig
    ) -> list[WeatherDay]:
        days: dict[date, WeatherDay] = {}
        for raw in raw_days:
            if not isinstance(raw, Mapping):
                continue
            day = self._parse_date(raw.get("fecha"))
            if day is None or day in days:
                continue
            temperature = self._mapping(raw.get("temperatura"))
            humidity = self._mapping(raw.get("humedadRelativa"))
            sky = self.sky_code(raw.get("estadoCielo"))
            t_min = self._number(temperature, "minima", "min")
            t_max = self._number(temperature, "maxima", "max")
            wind = self._first_value(raw.get("viento"), "velocidad")
            precip = self._first_value(raw.get("precipitacion"), "value")
            days[day] = WeatherDay(
                date=day,
                temperature=TemperatureRange(
                    min=convert_temperature(t_min, config.temperature_unit),
                    max=convert_temperature(t_max, config.temperature_unit),
                ),
                description=aemet_description(sky, config.language),
                icon=aemet_icon(sky),
                humidity=self._number(humidity, "maxima"),
                wind_speed=convert_wind_speed(
                    max(0.0, wind), config.wind_speed_unit
                ),
                precipitation=convert_precipitation(
                    precip, config.precipitation_unit
                ),
                condition=aemet_condition(sky),
                source=self.name,
            )
        return [days[key] for key in sorted(days)]

    @staticmethod
    def sky_code(entries: Any) -> str:
        """First non-empty sky state code, without the night marker."""

        if not isinstance(entries, list):
            return ""
        for entry in entries:
            if not isinstance(entry, Mapping):
                continue
            value = str(entry.get("value") or "").strip()
            if value:
                return value.rstrip("n")
        return ""

    def _first_value(self, entries: Any, key: str) -> float:
        if not isinstance(entries, list):
            return 0.0
        for entry in entries:
            if isinstance(entry, Mapping):
                return self._number(entry, key)
        return 0.0

    def _number(self, block: Mapping[str, Any], *keys: str) -> float:
        for key in keys:
            raw = block.get(key)
            if raw is None or raw == "":
                continue
            try:
                return float(raw)
            except (TypeError, ValueError):
                continue
        return 0.0

    def _mapping(self, raw: Any) -> Mapping[str, Any]:
        return raw if isinstance(raw, Mapping) else {}

    def _parse_date(self, raw: Any) -> date | None:
        if not isinstance(raw, str):
            return None
        try:
            return date.fromisoformat(raw[:10])
        except ValueError:
            return None
