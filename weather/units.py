"""Conversions from the metric units AEMET reports to configured units."""

from __future__ import annotations

from .config import PrecipitationUnit, TemperatureUnit, WindSpeedUnit

_KMH_PER_MS = 3.6
_KMH_PER_MPH = 1.609344
_MM_PER_INCH = 25.4


def convert_temperature(celsius: float, unit: TemperatureUnit) -> float:
    if unit == "fahrenheit":
        return round(celsius * 9 / 5 + 32, 1)
    return celsius


def convert_wind_speed(kmh: float, unit: WindSpeedUnit) -> float:
    if unit == "ms":
        return round(kmh / _KMH_PER_MS, 1)
    if unit == "mph":
        return round(kmh / _KMH_PER_MPH, 1)
    return kmh


def convert_precipitation(mm: float, unit: PrecipitationUnit) -> float:
    if unit == "inch":
        return round(mm / _MM_PER_INCH, 3)
    return mm
