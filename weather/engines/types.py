from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass, field
from datetime import date
from typing import Literal

ProviderName = Literal["open_meteo", "aemet"]

Condition = Literal[
    "clear",
    "clouds",
    "rain",
    "snow",
    "thunderstorm",
    "mist",
    "unknown",
]

# Open-Meteo serves at most 16 forecast days.
MAX_FORECAST_DAYS = 16


@dataclass(frozen=True)
class Coordinates:
    lat: float
    lon: float

    def __post_init__(self) -> None:
        if not -90.0 <= self.lat <= 90.0:
            raise ValueError(f"Latitude out of range: {self.lat}")
        if not -180.0 <= self.lon <= 180.0:
            raise ValueError(f"Longitude out of range: {self.lon}")


@dataclass(frozen=True)
class TemperatureRange:
    min: float
    max: float
    current: float | None = None


@dataclass(frozen=True)
class WeatherDay:
    date: date
    temperature: TemperatureRange
    description: str
    icon: str
    source: ProviderName
    humidity: float = 0.0
    wind_speed: float = 0.0
    precipitation: float = 0.0
    condition: Condition = "unknown"


@dataclass(frozen=True)
class ForecastLocation:
    lat: float
    lon: float
    name: str | None = None


@dataclass(frozen=True)
class Forecast:
    location: ForecastLocation
    source: ProviderName
    daily: Sequence[WeatherDay] = field(default_factory=tuple)
    current: WeatherDay | None = None
