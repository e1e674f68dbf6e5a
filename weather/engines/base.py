from __future__ import annotations

import logging
from abc import ABC, abstractmethod
from collections.abc import Sequence
from datetime import date

import httpx

from ..config import WeatherConfig
from ..metrics import weather_provider_errors_total
from .types import Coordinates, Forecast, ProviderName, WeatherDay

logger = logging.getLogger(__name__)


class ProviderError(Exception):
    """Raised inside an adapter when the upstream answer is unusable."""


# Failures an adapter absorbs at its boundary. json decoding errors are
# ValueErrors; InvalidURL covers malformed upstream-supplied URLs.
PROVIDER_ERRORS: tuple[type[Exception], ...] = (
    httpx.HTTPError,
    httpx.InvalidURL,
    ProviderError,
    ValueError,
)


class WeatherProvider(ABC):
    """Abstract base for weather providers.

    Subclasses implement :meth:`forecast` (and :meth:`history` when
    ``supports_history`` is set) and raise on failure. Callers use
    :meth:`fetch_forecast` / :meth:`fetch_history`, which turn expected
    failures into ``None`` or an empty list.
    """

    name: ProviderName
    supports_history: bool = False

    def is_available(self, config: WeatherConfig) -> bool:
        """Whether the configuration allows this provider at all."""

        return True

    def covers(self, coords: Coordinates) -> bool:
        """Whether ``coords`` lies in the provider's coverage area."""

        return True

    def accepts(self, coords: Coordinates, config: WeatherConfig) -> bool:
        """Whether automatic selection should try this provider."""

        return self.is_available(config) and self.covers(coords)

    async def fetch_forecast(
        self, coords: Coordinates, days: int, config: WeatherConfig
    ) -> Forecast | None:
        try:
            return await self.forecast(coords, days, config)
        except PROVIDER_ERRORS as exc:
            self._record_failure("forecast", exc)
            return None

    async def fetch_history(
        self,
        coords: Coordinates,
        start: date,
        end: date,
        config: WeatherConfig,
    ) -> list[WeatherDay]:
        if not self.supports_history:
            return []
        try:
            return list(await self.history(coords, start, end, config))
        except PROVIDER_ERRORS as exc:
            self._record_failure("history", exc)
            return []

    @abstractmethod
    async def forecast(
        self, coords: Coordinates, days: int, config: WeatherConfig
    ) -> Forecast:
        """Return a forecast of at most ``days`` days."""

    async def history(
        self,
        coords: Coordinates,
        start: date,
        end: date,
        config: WeatherConfig,
    ) -> Sequence[WeatherDay]:
        """Return archived daily values for the inclusive date range."""

        raise NotImplementedError

    def _record_failure(self, endpoint: str, exc: Exception) -> None:
        weather_provider_errors_total.labels(
            provider=self.name,
            endpoint=endpoint,
            error_type=exc.__class__.__name__,
        ).inc()
        logger.warning(
            "weather.provider.failed provider=%s endpoint=%s err=%s",
            self.name,
            endpoint,
            exc,
        )
