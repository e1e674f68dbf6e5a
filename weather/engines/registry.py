from __future__ import annotations

from collections.abc import Sequence
from typing import cast

from .aemet import AemetProvider
from .base import WeatherProvider
from .open_meteo import OpenMeteoProvider
from .types import ProviderName


def build_registry() -> list[WeatherProvider]:
    """Instantiate supported providers in priority order.

    Region-restricted providers come first; the global provider is last and
    acts as the fallback for every point.
    """

    return [AemetProvider(), OpenMeteoProvider()]


def provider_names(providers: Sequence[WeatherProvider]) -> list[str]:
    return [provider.name for provider in providers]


def validate_provider(
    provider: str | None, providers: Sequence[WeatherProvider]
) -> ProviderName | None:
    if not provider:
        return None
    name = provider.lower()
    if name not in provider_names(providers):
        raise ValueError(f"Unsupported weather provider: {name}")
    return cast(ProviderName, name)
