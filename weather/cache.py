"""Time-bounded forecast memoization.

Entries are stored in a Django cache backend. A ``name`` selects a shared
``LocMemCache``; instances built with the same name share entries. Without
one, each :class:`ForecastCache` gets a private, uuid-named ``LocMemCache``.
Django never releases a locmem name, so unnamed caches are meant for
long-lived objects and tests. ``LocMemCache`` guards its storage with a
lock. Freshness is decided on read from the recorded fetch time, so an entry
older than the TTL is never served even if the backend still holds it.
"""

from __future__ import annotations

import time
import uuid
from collections.abc import Callable
from dataclasses import dataclass

from django.core.cache.backends.base import BaseCache
from django.core.cache.backends.locmem import LocMemCache

from .engines.types import Coordinates, Forecast

DEFAULT_TTL_SECONDS = 10 * 60
FORECAST_CACHE_NAME = "weather-forecasts"


@dataclass(frozen=True)
class CacheEntry:
    forecast: Forecast
    fetched_at_ms: int


def forecast_cache_key(
    coords: Coordinates, days: int, source: str | None = None
) -> str:
    key = f"{coords.lat},{coords.lon},{days}"
    return f"{key},{source}" if source else key


def _now_ms() -> int:
    return int(time.time() * 1000)


class ForecastCache:
    def __init__(
        self,
        *,
        ttl_seconds: int = DEFAULT_TTL_SECONDS,
        backend: BaseCache | None = None,
        clock: Callable[[], int] = _now_ms,
        name: str | None = None,
    ) -> None:
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        self._backend = backend or LocMemCache(
            name or f"{FORECAST_CACHE_NAME}-{uuid.uuid4().hex}",
            {
                # Cardinality is bounded by the UI's active locations.
                "OPTIONS": {"MAX_ENTRIES": 1_000_000},
                "TIMEOUT": ttl_seconds,
            },
        )

    def get(self, key: str) -> Forecast | None:
        entry = self._backend.get(key)
        if not isinstance(entry, CacheEntry):
            return None
        if self._clock() - entry.fetched_at_ms >= self.ttl_seconds * 1000:
            self._backend.delete(key)
            return None
        return entry.forecast

    def put(self, key: str, forecast: Forecast) -> None:
        self._backend.set(
            key,
            CacheEntry(forecast=forecast, fetched_at_ms=self._clock()),
            self.ttl_seconds,
        )

    def clear(self) -> None:
        self._backend.clear()
