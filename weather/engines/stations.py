"""Nearest AEMET municipality lookup.

AEMET forecasts are addressed by municipality code, so a coordinate has to be
mapped onto the closest entry of the municipality directory first. The
directory holds a few thousand entries; a linear haversine scan is enough.
"""

from __future__ import annotations

import json
import logging
import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from ..geo import haversine_km
from .base import PROVIDER_ERRORS, ProviderError

logger = logging.getLogger(__name__)

DIRECTORY_PATH = "/opendata/api/maestro/municipios"
DIRECTORY_TTL_SECONDS = 24 * 60 * 60


@dataclass(frozen=True)
class Station:
    id: str
    lat: float
    lon: float
    name: str = ""

    @property
    def code(self) -> str:
        """Municipality code accepted by the forecast endpoint."""

        return self.id[2:] if self.id.startswith("id") else self.id


def nearest(
    stations: Sequence[Station], lat: float, lon: float
) -> Station | None:
    best: Station | None = None
    best_distance = float("inf")
    for station in stations:
        distance = haversine_km(lat, lon, station.lat, station.lon)
        if distance < best_distance:
            best, best_distance = station, distance
    return best


def parse_directory(payload: Any) -> list[Station]:
    if not isinstance(payload, list):
        raise ProviderError("AEMET municipality directory is not a list")
    stations: list[Station] = []
    for entry in payload:
        if not isinstance(entry, dict):
            continue
        raw_id = entry.get("id")
        try:
            lat = float(entry["latitud_dec"])
            lon = float(entry["longitud_dec"])
        except (KeyError, TypeError, ValueError):
            continue
        if not raw_id:
            continue
        stations.append(
            Station(
                id=str(raw_id),
                lat=lat,
                lon=lon,
                name=str(entry.get("nombre") or ""),
            )
        )
    return stations


class StationResolver:
    """Resolve coordinates to the nearest AEMET municipality.

    The directory is fetched lazily and kept for ``DIRECTORY_TTL_SECONDS``.
    Any failure resolves to ``None`` so the caller can treat the provider as
    unavailable for the point.
    """

    def __init__(
        self,
        *,
        base_url: str,
        timeout: float,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._clock = clock
        self._stations: list[Station] = []
        self._loaded_at: float | None = None

    async def nearest_station(
        self, lat: float, lon: float, api_key: str
    ) -> Station | None:
        try:
            stations = await self._directory(api_key)
        except PROVIDER_ERRORS as exc:
            logger.warning("weather.aemet.directory_failed err=%s", exc)
            return None
        station = nearest(stations, lat, lon)
        if station is None:
            logger.info(
                "weather.aemet.no_station lat=%s lon=%s", lat, lon
            )
        return station

    def clear(self) -> None:
        self._stations = []
        self._loaded_at = None

    async def _directory(self, api_key: str) -> list[Station]:
        now = self._clock()
        if (
            self._loaded_at is not None
            and self._stations
            and now - self._loaded_at < DIRECTORY_TTL_SECONDS
        ):
            return self._stations
        payload = await fetch_aemet_json(
            f"{self.base_url}{DIRECTORY_PATH}", api_key, self.timeout
        )
        self._stations = parse_directory(payload)
        self._loaded_at = now
        logger.debug(
            "weather.aemet.directory_loaded count=%s", len(self._stations)
        )
        return self._stations


async def fetch_aemet_json(url: str, api_key: str, timeout: float) -> Any:
    """GET an AEMET OpenData resource, following its `datos` indirection.

    OpenData answers with ``{"estado": 200, "datos": "<url>"}``; the payload
    lives at ``datos``. A response that already is the payload (a list) is
    returned as-is.
    """

    headers = {"api_key": api_key, "Accept": "application/json"}
    async with httpx.AsyncClient(timeout=timeout) as client:
        response = await client.get(url, headers=headers)
        response.raise_for_status()
        envelope = _decode(response)
        if isinstance(envelope, list):
            return envelope
        if not isinstance(envelope, dict):
            raise ProviderError("Unexpected AEMET response shape")
        status = envelope.get("estado")
        datos = envelope.get("datos")
        if status != 200 or not isinstance(datos, str) or not datos:
            raise ProviderError(
                f"AEMET returned estado={status} "
                f"descripcion={envelope.get('descripcion')!r}"
            )
        data_response = await client.get(datos)
        data_response.raise_for_status()
        return _decode(data_response)


def _decode(response: httpx.Response) -> Any:
    # AEMET serves ISO-8859-15 payloads; ``text`` honours the declared charset.
    return json.loads(response.text)
