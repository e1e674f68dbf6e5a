from __future__ import annotations

from collections.abc import Sequence
from datetime import date
from typing import Any, ClassVar

from rest_framework import serializers

from config.api.responses import JSONValue

from .config import (
    LANGUAGES,
    PRECIPITATION_UNITS,
    TEMPERATURE_UNITS,
    WIND_SPEED_UNITS,
    WeatherConfig,
)
from .engines.types import MAX_FORECAST_DAYS, Coordinates, Forecast

PROVIDERS = ("open_meteo", "aemet")


class LocationParamsSerializer(serializers.Serializer):
    """Either `lat`+`lon` or a free-text `location`; neither means default."""

    lat: ClassVar[serializers.FloatField] = serializers.FloatField(
        required=False, min_value=-90.0, max_value=90.0
    )
    lon: ClassVar[serializers.FloatField] = serializers.FloatField(
        required=False, min_value=-180.0, max_value=180.0
    )
    location: ClassVar[serializers.CharField] = serializers.CharField(
        required=False, allow_blank=True, max_length=200
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        attrs = super().validate(attrs)
        has_lat = attrs.get("lat") is not None
        has_lon = attrs.get("lon") is not None
        if has_lat != has_lon:
            raise serializers.ValidationError(
                "lat and lon must be provided together."
            )
        return attrs


def resolve_location_param(
    params: dict[str, Any],
) -> str | Coordinates | None:
    lat, lon = params.get("lat"), params.get("lon")
    if lat is not None and lon is not None:
        return Coordinates(lat=float(lat), lon=float(lon))
    location = params.get("location")
    return location or None


class ForecastParamsSerializer(LocationParamsSerializer):
    days: ClassVar[serializers.IntegerField] = serializers.IntegerField(
        required=False, min_value=1, max_value=MAX_FORECAST_DAYS, default=5
    )
    source: ClassVar[serializers.CharField] = serializers.CharField(
        required=False, allow_null=True, allow_blank=True
    )

    def validate_source(self, value: str | None) -> str | None:
        if not value:
            return None
        normalized = value.lower()
        if normalized not in PROVIDERS:
            raise serializers.ValidationError("Unknown provider.")
        return normalized


class RangeParamsSerializer(LocationParamsSerializer):
    start: ClassVar[serializers.DateField] = serializers.DateField()
    end: ClassVar[serializers.DateField] = serializers.DateField(
        required=False
    )

    def validate(self, attrs: dict[str, Any]) -> dict[str, Any]:
        attrs = super().validate(attrs)
        start = attrs.get("start")
        end = attrs.get("end")
        if isinstance(start, date) and isinstance(end, date) and start > end:
            raise serializers.ValidationError(
                "start must be on or before end."
            )
        return attrs


class HistoryParamsSerializer(RangeParamsSerializer):
    end: ClassVar[serializers.DateField] = serializers.DateField()


class TemperatureSerializer(serializers.Serializer):
    min: ClassVar[serializers.FloatField] = serializers.FloatField()
    max: ClassVar[serializers.FloatField] = serializers.FloatField()
    current: ClassVar[serializers.FloatField] = serializers.FloatField(
        allow_null=True
    )


class WeatherDaySerializer(serializers.Serializer):
    date: ClassVar[serializers.DateField] = serializers.DateField()
    temperature: ClassVar[TemperatureSerializer] = TemperatureSerializer()
    description: ClassVar[serializers.CharField] = serializers.CharField()
    icon: ClassVar[serializers.CharField] = serializers.CharField()
    humidity: ClassVar[serializers.FloatField] = serializers.FloatField()
    wind_speed: ClassVar[serializers.FloatField] = serializers.FloatField()
    precipitation: ClassVar[serializers.FloatField] = (
        serializers.FloatField()
    )
    condition: ClassVar[serializers.CharField] = serializers.CharField()
    source: ClassVar[serializers.CharField] = serializers.CharField()  # type: ignore[misc,assignment]


class ForecastLocationSerializer(serializers.Serializer):
    lat: ClassVar[serializers.FloatField] = serializers.FloatField()
    lon: ClassVar[serializers.FloatField] = serializers.FloatField()
    name: ClassVar[serializers.CharField] = serializers.CharField(
        allow_null=True
    )


class ForecastSerializer(serializers.Serializer):
    location: ClassVar[ForecastLocationSerializer] = (
        ForecastLocationSerializer()
    )
    source: ClassVar[serializers.CharField] = serializers.CharField()  # type: ignore[misc,assignment]
    current: ClassVar[WeatherDaySerializer] = WeatherDaySerializer(
        allow_null=True
    )
    daily: ClassVar[WeatherDaySerializer] = WeatherDaySerializer(many=True)


class DefaultLocationSerializer(serializers.Serializer):
    lat: ClassVar[serializers.FloatField] = serializers.FloatField(
        min_value=-90.0, max_value=90.0
    )
    lon: ClassVar[serializers.FloatField] = serializers.FloatField(
        min_value=-180.0, max_value=180.0
    )
    name: ClassVar[serializers.CharField] = serializers.CharField(
        required=False, allow_blank=True, default=""
    )


class EnhancedProviderSerializer(serializers.Serializer):
    enabled: ClassVar[serializers.BooleanField] = serializers.BooleanField()
    api_key: ClassVar[serializers.CharField] = serializers.CharField(
        allow_blank=True, trim_whitespace=True
    )
    prefer_for_region: ClassVar[serializers.BooleanField] = (
        serializers.BooleanField()
    )


class WeatherConfigSerializer(serializers.Serializer):
    """Validates configuration updates; use with ``partial=True``."""

    enabled: ClassVar[serializers.BooleanField] = serializers.BooleanField()
    default_location: ClassVar[DefaultLocationSerializer] = (
        DefaultLocationSerializer()
    )
    temperature_unit: ClassVar[serializers.ChoiceField] = (
        serializers.ChoiceField(choices=TEMPERATURE_UNITS)
    )
    wind_speed_unit: ClassVar[serializers.ChoiceField] = (
        serializers.ChoiceField(choices=WIND_SPEED_UNITS)
    )
    precipitation_unit: ClassVar[serializers.ChoiceField] = (
        serializers.ChoiceField(choices=PRECIPITATION_UNITS)
    )
    language: ClassVar[serializers.ChoiceField] = serializers.ChoiceField(
        choices=LANGUAGES
    )
    enhanced_provider: ClassVar[EnhancedProviderSerializer] = (
        EnhancedProviderSerializer()
    )


def serialize_forecast(forecast: Forecast) -> dict[str, JSONValue]:
    return dict(ForecastSerializer(forecast).data)


def serialize_days(days: Sequence[object]) -> list[dict[str, JSONValue]]:
    return list(WeatherDaySerializer(days, many=True).data)


def serialize_config(config: WeatherConfig) -> dict[str, JSONValue]:
    """Configuration for display; the API key is never echoed back."""

    data = config.as_dict()
    enhanced = dict(data["enhanced_provider"])
    enhanced["api_key_set"] = bool(enhanced.pop("api_key"))
    data["enhanced_provider"] = enhanced
    return data
