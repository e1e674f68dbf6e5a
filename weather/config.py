"""Weather service configuration.

Process defaults come from Django settings (``WEATHER_*`` and ``AEMET_*``).
Runtime changes are applied with :func:`merge_config`, which merges a partial
mapping over the previous value one level deep: top-level keys that are not
supplied keep their previous value, nested objects are replaced as a unit.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import asdict, dataclass, field, replace
from typing import Any, Final, Literal, cast

from django.conf import settings

TemperatureUnit = Literal["celsius", "fahrenheit"]
WindSpeedUnit = Literal["kmh", "ms", "mph"]
PrecipitationUnit = Literal["mm", "inch"]
Language = Literal["es", "en"]

TEMPERATURE_UNITS: Final[tuple[str, ...]] = ("celsius", "fahrenheit")
WIND_SPEED_UNITS: Final[tuple[str, ...]] = ("kmh", "ms", "mph")
PRECIPITATION_UNITS: Final[tuple[str, ...]] = ("mm", "inch")
LANGUAGES: Final[tuple[str, ...]] = ("es", "en")

_DEFAULT_LOCATION: Final[dict[str, Any]] = {
    "lat": 40.4168,
    "lon": -3.7038,
    "name": "Madrid, España",
}


class WeatherConfigError(ValueError):
    """Raised when a configuration payload has an invalid shape."""

    def __init__(self, message: str, *, code: str) -> None:
        super().__init__(message)
        self.code = code


@dataclass(frozen=True)
class DefaultLocation:
    lat: float
    lon: float
    name: str = ""


@dataclass(frozen=True)
class EnhancedProviderConfig:
    enabled: bool = False
    api_key: str = ""
    prefer_for_region: bool = True


@dataclass(frozen=True)
class WeatherConfig:
    enabled: bool = False
    default_location: DefaultLocation = field(
        default_factory=lambda: DefaultLocation(**_DEFAULT_LOCATION)
    )
    temperature_unit: TemperatureUnit = "celsius"
    wind_speed_unit: WindSpeedUnit = "kmh"
    precipitation_unit: PrecipitationUnit = "mm"
    language: Language = "es"
    enhanced_provider: EnhancedProviderConfig = field(
        default_factory=EnhancedProviderConfig
    )

    @property
    def enhanced_provider_enabled(self) -> bool:
        return bool(
            self.enhanced_provider.enabled and self.enhanced_provider.api_key
        )

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


def default_config() -> WeatherConfig:
    """Build the process default configuration from Django settings."""

    location = getattr(settings, "WEATHER_DEFAULT_LOCATION", _DEFAULT_LOCATION)
    return merge_config(
        WeatherConfig(),
        {
            "enabled": getattr(settings, "WEATHER_ENABLED", False),
            "default_location": location,
            "temperature_unit": getattr(
                settings, "WEATHER_TEMPERATURE_UNIT", "celsius"
            ),
            "wind_speed_unit": getattr(
                settings, "WEATHER_WIND_SPEED_UNIT", "kmh"
            ),
            "precipitation_unit": getattr(
                settings, "WEATHER_PRECIPITATION_UNIT", "mm"
            ),
            "language": getattr(settings, "WEATHER_LANGUAGE", "es"),
            "enhanced_provider": {
                "enabled": getattr(settings, "AEMET_ENABLED", False),
                "api_key": getattr(settings, "AEMET_API_KEY", ""),
                "prefer_for_region": getattr(
                    settings, "AEMET_PREFER_FOR_REGION", True
                ),
            },
        },
    )


def merge_config(
    current: WeatherConfig, partial: Mapping[str, Any]
) -> WeatherConfig:
    """Return ``current`` with the keys of ``partial`` applied."""

    if not isinstance(partial, Mapping):
        raise WeatherConfigError(
            "Weather configuration must be a mapping.", code="bad_shape"
        )
    unknown = set(partial) - set(WeatherConfig.__dataclass_fields__)
    if unknown:
        raise WeatherConfigError(
            f"Unknown weather configuration keys: {sorted(unknown)}",
            code="unknown_key",
        )

    changes: dict[str, Any] = {}
    if "enabled" in partial:
        changes["enabled"] = _as_bool(partial["enabled"], "enabled")
    if "default_location" in partial:
        changes["default_location"] = _parse_location(
            partial["default_location"]
        )
    if "temperature_unit" in partial:
        changes["temperature_unit"] = _as_choice(
            partial["temperature_unit"], "temperature_unit", TEMPERATURE_UNITS
        )
    if "wind_speed_unit" in partial:
        changes["wind_speed_unit"] = _as_choice(
            partial["wind_speed_unit"], "wind_speed_unit", WIND_SPEED_UNITS
        )
    if "precipitation_unit" in partial:
        changes["precipitation_unit"] = _as_choice(
            partial["precipitation_unit"],
            "precipitation_unit",
            PRECIPITATION_UNITS,
        )
    if "language" in partial:
        changes["language"] = _as_choice(
            partial["language"], "language", LANGUAGES
        )
    if "enhanced_provider" in partial:
        changes["enhanced_provider"] = _parse_enhanced(
            partial["enhanced_provider"]
        )
    return replace(current, **changes)


def _parse_location(raw: Any) -> DefaultLocation:
    if isinstance(raw, DefaultLocation):
        return raw
    if not isinstance(raw, Mapping):
        raise WeatherConfigError(
            "default_location must be an object.", code="bad_shape"
        )
    try:
        lat = float(raw["lat"])
        lon = float(raw["lon"])
    except KeyError as exc:
        raise WeatherConfigError(
            f"default_location is missing {exc.args[0]!r}.",
            code="missing_field",
        ) from exc
    except (TypeError, ValueError) as exc:
        raise WeatherConfigError(
            "default_location lat/lon must be numbers.", code="bad_value"
        ) from exc
    if not -90.0 <= lat <= 90.0 or not -180.0 <= lon <= 180.0:
        raise WeatherConfigError(
            "default_location is out of range.", code="bad_value"
        )
    name = raw.get("name") or ""
    if not isinstance(name, str):
        raise WeatherConfigError(
            "default_location name must be a string.", code="bad_value"
        )
    return DefaultLocation(lat=lat, lon=lon, name=name)


def _parse_enhanced(raw: Any) -> EnhancedProviderConfig:
    if isinstance(raw, EnhancedProviderConfig):
        return raw
    if not isinstance(raw, Mapping):
        raise WeatherConfigError(
            "enhanced_provider must be an object.", code="bad_shape"
        )
    missing = {"enabled", "api_key", "prefer_for_region"} - set(raw)
    if missing:
        raise WeatherConfigError(
            f"enhanced_provider is missing {sorted(missing)}.",
            code="missing_field",
        )
    api_key = raw["api_key"]
    if api_key is None:
        api_key = ""
    if not isinstance(api_key, str):
        raise WeatherConfigError(
            "enhanced_provider api_key must be a string.", code="bad_value"
        )
    return EnhancedProviderConfig(
        enabled=_as_bool(raw["enabled"], "enhanced_provider.enabled"),
        api_key=api_key.strip(),
        prefer_for_region=_as_bool(
            raw["prefer_for_region"], "enhanced_provider.prefer_for_region"
        ),
    )


def _as_bool(value: Any, name: str) -> bool:
    if isinstance(value, bool):
        return value
    raise WeatherConfigError(f"{name} must be a boolean.", code="bad_value")


def _as_choice(value: Any, name: str, choices: tuple[str, ...]) -> Any:
    if not isinstance(value, str) or value.lower() not in choices:
        raise WeatherConfigError(
            f"{name} must be one of {', '.join(choices)}.", code="bad_value"
        )
    return cast(Any, value.lower())
