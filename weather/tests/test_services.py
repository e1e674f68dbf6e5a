from __future__ import annotations

# ruff: noqa: S101
import asyncio
from collections.abc import Sequence
from datetime import UTC, date, datetime, timedelta
from typing import Any, cast

import httpx
import pytest
from django.utils import timezone as dj_timezone

from weather import services as services_module
from weather.cache import ForecastCache
from weather.config import (
    DefaultLocation,
    EnhancedProviderConfig,
    WeatherConfig,
    WeatherConfigError,
)
from weather.engines.aemet import AemetProvider
from weather.engines.open_meteo import OpenMeteoProvider
from weather.engines.types import (
    Coordinates,
    Forecast,
    ForecastLocation,
    ProviderName,
    TemperatureRange,
    WeatherDay,
)
from weather.geocoding import NominatimGeocoder
from weather.metrics import (
    weather_cache_hits_total,
    weather_cache_misses_total,
    weather_provider_fallbacks_total,
)
from weather.services import (
    FallbackEvent,
    WeatherService,
    get_weather_service,
    reset_weather_service,
)

MADRID = Coordinates(lat=40.4168, lon=-3.7038)
PARIS = Coordinates(lat=48.8566, lon=2.3522)
TODAY = date(2025, 5, 1)


def _days(
    source: ProviderName, start: date = TODAY, count: int = 16
) -> tuple[WeatherDay, ...]:
    return tuple(
        WeatherDay(
            date=start + timedelta(days=offset),
            temperature=TemperatureRange(min=10.0, max=20.0 + offset),
            description="Despejado",
            icon="01d",
            condition="clear",
            source=source,
        )
        for offset in range(count)
    )


def _forecast(
    source: ProviderName,
    coords: Coordinates,
    *,
    name: str | None = None,
    count: int = 16,
) -> Forecast:
    return Forecast(
        location=ForecastLocation(lat=coords.lat, lon=coords.lon, name=name),
        source=source,
        daily=_days(source, count=count),
    )


class ScriptedForecast:
    """Replaces a provider's ``forecast`` and records every call."""

    def __init__(
        self,
        source: ProviderName,
        *,
        error: Exception | None = None,
        name: str | None = None,
    ) -> None:
        self.source = source
        self.error = error
        self.name = name
        self.calls: list[tuple[Coordinates, int]] = []

    async def __call__(
        self, coords: Coordinates, days: int, config: WeatherConfig
    ) -> Forecast:
        self.calls.append((coords, days))
        if self.error is not None:
            raise self.error
        return _forecast(self.source, coords, name=self.name, count=days)


class FakeGeocoder:
    def __init__(self, results: dict[str, Coordinates]) -> None:
        self.results = results
        self.queries: list[str] = []

    async def resolve(self, place: str) -> Coordinates | None:
        self.queries.append(place)
        return self.results.get(place.strip().lower())


def _config(
    *,
    enabled: bool = True,
    aemet: bool = True,
    prefer_for_region: bool = True,
) -> WeatherConfig:
    return WeatherConfig(
        enabled=enabled,
        enhanced_provider=EnhancedProviderConfig(
            enabled=aemet,
            api_key="secret" if aemet else "",
            prefer_for_region=prefer_for_region,
        ),
    )


def _service(
    monkeypatch: pytest.MonkeyPatch,
    config: WeatherConfig,
    *,
    aemet: ScriptedForecast | None = None,
    open_meteo: ScriptedForecast | None = None,
    geocoder: FakeGeocoder | None = None,
    clock: Any = None,
    on_fallback: Any = None,
) -> tuple[WeatherService, ScriptedForecast, ScriptedForecast]:
    aemet = aemet or ScriptedForecast("aemet")
    open_meteo = open_meteo or ScriptedForecast("open_meteo")
    aemet_provider = AemetProvider(base_url="https://aemet.test")
    open_meteo_provider = OpenMeteoProvider()
    monkeypatch.setattr(aemet_provider, "forecast", aemet)
    monkeypatch.setattr(open_meteo_provider, "forecast", open_meteo)
    cache = (
        ForecastCache(ttl_seconds=600, clock=clock)
        if clock is not None
        else ForecastCache(ttl_seconds=600)
    )
    service = WeatherService(
        config=config,
        providers=[aemet_provider, open_meteo_provider],
        geocoder=cast(NominatimGeocoder, geocoder or FakeGeocoder({})),
        cache=cache,
        on_fallback=on_fallback,
    )
    return service, aemet, open_meteo


def _freeze_today(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(dj_timezone, "localdate", lambda *_, **__: TODAY)


# -- enablement ---------------------------------------------------------------


def test_disabled_service_returns_nothing_without_io(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    geocoder = FakeGeocoder({"madrid": MADRID})
    service, aemet, open_meteo = _service(
        monkeypatch, _config(enabled=False), geocoder=geocoder
    )

    assert not service.is_enabled()
    assert asyncio.run(service.forecast("madrid")) is None
    assert asyncio.run(service.forecast_for_range(TODAY)) == []
    assert (
        asyncio.run(service.history_for_range(MADRID, TODAY, TODAY)) == []
    )
    assert aemet.calls == []
    assert open_meteo.calls == []
    assert geocoder.queries == []


# -- provider selection -------------------------------------------------------


def test_regional_provider_preferred_inside_region(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, aemet, open_meteo = _service(monkeypatch, _config())

    forecast = asyncio.run(service.forecast(MADRID, 3))

    assert forecast is not None
    assert forecast.source == "aemet"
    assert len(forecast.daily) == 3
    assert aemet.calls == [(MADRID, 3)]
    assert open_meteo.calls == []


@pytest.mark.parametrize(
    ("coords", "config"),
    [
        (PARIS, _config()),
        (MADRID, _config(aemet=False)),
        (MADRID, _config(prefer_for_region=False)),
    ],
)
def test_global_provider_used_when_regional_not_applicable(
    monkeypatch: pytest.MonkeyPatch,
    coords: Coordinates,
    config: WeatherConfig,
) -> None:
    service, aemet, open_meteo = _service(monkeypatch, config)

    forecast = asyncio.run(service.forecast(coords))

    assert forecast is not None
    assert forecast.source == "open_meteo"
    assert aemet.calls == []
    assert len(open_meteo.calls) == 1


def test_enhanced_provider_requires_key() -> None:
    config = WeatherConfig(
        enabled=True,
        enhanced_provider=EnhancedProviderConfig(enabled=True, api_key=""),
    )
    service = WeatherService(config=config, providers=[])

    assert not service.is_enhanced_provider_enabled()


def test_fallback_is_transparent_and_observable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    events: list[FallbackEvent] = []
    failing = ScriptedForecast(
        "aemet", error=httpx.ConnectError("aemet is down")
    )
    service, _, open_meteo = _service(
        monkeypatch, _config(), aemet=failing, on_fallback=events.append
    )
    global_only, _, _ = _service(monkeypatch, _config(aemet=False))
    counter = weather_provider_fallbacks_total.labels(failed_provider="aemet")
    before = counter._value.get()

    forecast = asyncio.run(service.forecast(MADRID, 5))
    expected = asyncio.run(global_only.forecast(MADRID, 5))

    assert forecast == expected
    assert forecast is not None and forecast.source == "open_meteo"
    assert len(failing.calls) == 1
    assert len(open_meteo.calls) == 1
    assert events == [
        FallbackEvent(
            failed_provider="aemet",
            fallback_provider="open_meteo",
            coordinates=MADRID,
        )
    ]
    assert counter._value.get() == before + 1


def test_raising_fallback_hook_does_not_change_result(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    logged: list[str] = []
    monkeypatch.setattr(
        services_module.logger,
        "exception",
        lambda msg, *args: logged.append(msg % args),
    )

    def broken_hook(event: FallbackEvent) -> None:
        raise RuntimeError("metrics sink down")

    service, _, open_meteo = _service(
        monkeypatch,
        _config(),
        aemet=ScriptedForecast(
            "aemet", error=httpx.ConnectError("aemet is down")
        ),
        on_fallback=broken_hook,
    )

    forecast = asyncio.run(service.forecast(MADRID, 5))

    assert forecast is not None
    assert forecast.source == "open_meteo"
    assert len(open_meteo.calls) == 1
    assert logged == ["weather.provider.fallback_hook_failed failed=aemet"]


def test_malformed_regional_url_falls_back_to_global(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, aemet, open_meteo = _service(
        monkeypatch,
        _config(),
        aemet=ScriptedForecast(
            "aemet", error=httpx.InvalidURL("Invalid port: 'bad'")
        ),
    )

    forecast = asyncio.run(service.forecast(MADRID))

    assert forecast is not None
    assert forecast.source == "open_meteo"
    assert len(aemet.calls) == 1
    assert len(open_meteo.calls) == 1


def test_all_providers_failing_returns_none(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(
        monkeypatch,
        _config(),
        aemet=ScriptedForecast("aemet", error=ValueError("bad json")),
        open_meteo=ScriptedForecast(
            "open_meteo", error=httpx.ReadTimeout("slow")
        ),
    )

    assert asyncio.run(service.forecast(MADRID)) is None


def test_days_are_clamped(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, open_meteo = _service(monkeypatch, _config(aemet=False))

    asyncio.run(service.forecast(PARIS, 40))
    asyncio.run(service.forecast(PARIS, 0))

    assert [days for _, days in open_meteo.calls] == [16, 1]


# -- forced source ------------------------------------------------------------


def test_forced_global_source_skips_regional(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, aemet, _ = _service(monkeypatch, _config())

    forecast = asyncio.run(service.forecast(MADRID, source="open_meteo"))

    assert forecast is not None and forecast.source == "open_meteo"
    assert aemet.calls == []


def test_forced_regional_source_ignores_preference(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, aemet, _ = _service(
        monkeypatch, _config(prefer_for_region=False)
    )

    forecast = asyncio.run(service.forecast(MADRID, source="aemet"))

    assert forecast is not None and forecast.source == "aemet"
    assert len(aemet.calls) == 1


def test_forced_regional_source_falls_back_when_unavailable(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, aemet, _ = _service(monkeypatch, _config(aemet=False))

    forecast = asyncio.run(service.forecast(MADRID, source="aemet"))
    outside = asyncio.run(service.forecast(PARIS, source="AEMET"))

    assert forecast is not None and forecast.source == "open_meteo"
    assert outside is not None and outside.source == "open_meteo"
    assert aemet.calls == []


def test_unknown_source_is_rejected(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, _ = _service(monkeypatch, _config())

    with pytest.raises(ValueError, match="Unsupported weather provider"):
        asyncio.run(service.forecast(MADRID, source="met_office"))


# -- location resolution ------------------------------------------------------


def test_geocoded_place_names_the_forecast(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    geocoder = FakeGeocoder({"paris": PARIS})
    service, _, open_meteo = _service(
        monkeypatch, _config(), geocoder=geocoder
    )

    forecast = asyncio.run(service.forecast("  Paris "))

    assert forecast is not None
    assert forecast.location.name == "Paris"
    assert open_meteo.calls[0][0] == PARIS


def test_geocode_miss_uses_default_location(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    geocoder = FakeGeocoder({})
    service, _, open_meteo = _service(
        monkeypatch, _config(aemet=False), geocoder=geocoder
    )

    forecast = asyncio.run(service.forecast("Atlantis"))
    default = asyncio.run(service.forecast())

    assert geocoder.queries == ["Atlantis"]
    assert forecast is not None and default is not None
    assert forecast.location.name == "Madrid, España"
    assert (forecast.location.lat, forecast.location.lon) == (
        40.4168,
        -3.7038,
    )
    assert forecast == default
    assert len(open_meteo.calls) == 1


def test_explicit_coordinates_have_no_name(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config(aemet=False))

    forecast = asyncio.run(service.forecast(PARIS))

    assert forecast is not None
    assert forecast.location.name is None


def test_provider_name_takes_priority(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    geocoder = FakeGeocoder({"centro": MADRID})
    service, _, _ = _service(
        monkeypatch,
        _config(),
        aemet=ScriptedForecast("aemet", name="Madrid"),
        geocoder=geocoder,
    )

    forecast = asyncio.run(service.forecast("centro"))

    assert forecast is not None
    assert forecast.location.name == "Madrid"


def test_geocode_delegates_to_geocoder(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    geocoder = FakeGeocoder({"sevilla": Coordinates(lat=37.39, lon=-5.98)})
    service, _, _ = _service(monkeypatch, _config(), geocoder=geocoder)

    assert asyncio.run(service.geocode("Sevilla")) == Coordinates(
        lat=37.39, lon=-5.98
    )
    assert asyncio.run(service.geocode("nowhere")) is None


# -- caching ------------------------------------------------------------------


def test_forecasts_are_cached_for_ten_minutes(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    now = {"ms": 1_000_000}
    service, _, open_meteo = _service(
        monkeypatch, _config(aemet=False), clock=lambda: now["ms"]
    )
    hits = weather_cache_hits_total.labels(endpoint="forecast")
    misses = weather_cache_misses_total.labels(endpoint="forecast")
    hits_before = hits._value.get()
    misses_before = misses._value.get()

    first = asyncio.run(service.forecast(PARIS, 5))
    now["ms"] += 599_999
    second = asyncio.run(service.forecast(PARIS, 5))
    now["ms"] += 1
    third = asyncio.run(service.forecast(PARIS, 5))

    assert first == second == third
    assert len(open_meteo.calls) == 2
    assert hits._value.get() == hits_before + 1
    assert misses._value.get() == misses_before + 2


def test_cache_is_keyed_by_days_and_source(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, open_meteo = _service(monkeypatch, _config(aemet=False))

    asyncio.run(service.forecast(PARIS, 5))
    asyncio.run(service.forecast(PARIS, 6))
    asyncio.run(service.forecast(PARIS, 5, source="open_meteo"))
    asyncio.run(service.forecast(PARIS, 5))

    assert len(open_meteo.calls) == 3


def test_clear_cache_forces_refetch(monkeypatch: pytest.MonkeyPatch) -> None:
    service, _, open_meteo = _service(monkeypatch, _config(aemet=False))

    asyncio.run(service.forecast(PARIS))
    service.clear_cache()
    asyncio.run(service.forecast(PARIS))

    assert len(open_meteo.calls) == 2


def test_failures_are_not_cached(monkeypatch: pytest.MonkeyPatch) -> None:
    failing = ScriptedForecast("open_meteo", error=httpx.ConnectError("x"))
    service, _, _ = _service(
        monkeypatch, _config(aemet=False), open_meteo=failing
    )

    asyncio.run(service.forecast(PARIS))
    asyncio.run(service.forecast(PARIS))

    assert len(failing.calls) == 2


# -- date ranges --------------------------------------------------------------


def test_range_beyond_horizon_is_empty_without_calls(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _freeze_today(monkeypatch)
    service, aemet, open_meteo = _service(monkeypatch, _config())

    days = asyncio.run(
        service.forecast_for_range(TODAY + timedelta(days=16), None, MADRID)
    )

    assert days == []
    assert aemet.calls == []
    assert open_meteo.calls == []


def test_range_filters_inclusive_dates(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    _freeze_today(monkeypatch)
    service, _, open_meteo = _service(monkeypatch, _config(aemet=False))

    days = asyncio.run(
        service.forecast_for_range(date(2025, 5, 3), date(2025, 5, 5), PARIS)
    )
    single = asyncio.run(service.forecast_for_range(date(2025, 5, 4)))
    edge = asyncio.run(
        service.forecast_for_range(TODAY + timedelta(days=15), None, PARIS)
    )

    assert [day.date for day in days] == [
        date(2025, 5, 3),
        date(2025, 5, 4),
        date(2025, 5, 5),
    ]
    assert [day.date for day in single] == [date(2025, 5, 4)]
    assert [day.date for day in edge] == [date(2025, 5, 16)]
    assert {count for _, count in open_meteo.calls} == {16}


def test_range_accepts_datetimes(monkeypatch: pytest.MonkeyPatch) -> None:
    _freeze_today(monkeypatch)
    service, _, _ = _service(monkeypatch, _config(aemet=False))

    # 22:30 UTC on the 2nd is already the 3rd in Madrid.
    days = asyncio.run(
        service.forecast_for_range(
            datetime(2025, 5, 2, 22, 30, tzinfo=UTC), None, PARIS
        )
    )

    assert [day.date for day in days] == [date(2025, 5, 3)]


# -- history ------------------------------------------------------------------


class ScriptedHistory:
    def __init__(self, *, error: Exception | None = None) -> None:
        self.error = error
        self.calls: list[tuple[date, date]] = []

    async def __call__(
        self,
        coords: Coordinates,
        start: date,
        end: date,
        config: WeatherConfig,
    ) -> Sequence[WeatherDay]:
        self.calls.append((start, end))
        if self.error is not None:
            raise self.error
        count = (end - start).days + 1
        return list(_days("open_meteo", start=start, count=count))


def _with_history(
    monkeypatch: pytest.MonkeyPatch,
    service: WeatherService,
    history: ScriptedHistory,
) -> None:
    provider = service.providers[-1]
    monkeypatch.setattr(provider, "history", history)


def test_history_for_range_uses_archive_provider(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config())
    history = ScriptedHistory()
    _with_history(monkeypatch, service, history)

    days = asyncio.run(
        service.history_for_range(MADRID, date(2025, 1, 1), date(2025, 1, 3))
    )
    reversed_range = asyncio.run(
        service.history_for_range(MADRID, date(2025, 1, 3), date(2025, 1, 1))
    )

    assert [day.source for day in days] == ["open_meteo"] * 3
    assert reversed_range == []
    assert history.calls == [(date(2025, 1, 1), date(2025, 1, 3))]


def test_history_before_covers_preceding_days(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config())
    history = ScriptedHistory()
    _with_history(monkeypatch, service, history)

    days = asyncio.run(service.history_before(date(2025, 5, 10)))
    none = asyncio.run(service.history_before(date(2025, 5, 10), None, 0))

    assert history.calls == [(date(2025, 5, 3), date(2025, 5, 9))]
    assert len(days) == 7
    assert none == []


def test_history_failure_returns_empty(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config())
    _with_history(
        monkeypatch, service, ScriptedHistory(error=httpx.ConnectError("x"))
    )

    days = asyncio.run(
        service.history_for_range(MADRID, date(2025, 1, 1), date(2025, 1, 3))
    )

    assert days == []


def test_history_without_archive_provider(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service = WeatherService(
        config=_config(), providers=[AemetProvider(base_url="https://x")]
    )

    days = asyncio.run(
        service.history_for_range(MADRID, date(2025, 1, 1), date(2025, 1, 3))
    )

    assert days == []


# -- configuration ------------------------------------------------------------


def test_configure_merges_top_level_keys(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config())

    updated = service.configure({"temperature_unit": "fahrenheit"})
    relocated = service.configure(
        {"default_location": {"lat": 41.39, "lon": 2.17}}
    )

    assert updated.temperature_unit == "fahrenheit"
    assert updated.enhanced_provider.api_key == "secret"
    assert relocated.temperature_unit == "fahrenheit"
    assert relocated.default_location == DefaultLocation(
        lat=41.39, lon=2.17, name=""
    )
    assert service.current_config() is relocated


def test_configure_rejects_invalid_input_without_changes(
    monkeypatch: pytest.MonkeyPatch,
) -> None:
    service, _, _ = _service(monkeypatch, _config())
    before = service.current_config()

    with pytest.raises(WeatherConfigError) as excinfo:
        service.configure({"enhanced_provider": {"enabled": False}})

    assert excinfo.value.code == "missing_field"
    assert service.current_config() is before


def test_weather_icon_url() -> None:
    assert WeatherService.weather_icon_url("10d") == (
        "https://openweathermap.org/img/wn/10d@2x.png"
    )
    assert WeatherService.weather_icon_url("01d", "4x").endswith("@4x.png")


def test_default_service_is_process_wide() -> None:
    reset_weather_service()
    try:
        first = get_weather_service()
        assert get_weather_service() is first
        reset_weather_service()
        assert get_weather_service() is not first
    finally:
        reset_weather_service()


def test_default_service_reads_settings(settings: Any) -> None:
    settings.WEATHER_ENABLED = True
    settings.AEMET_ENABLED = True
    settings.AEMET_API_KEY = "from-settings"
    reset_weather_service()
    try:
        service = get_weather_service()
        assert service.is_enabled()
        assert service.is_enhanced_provider_enabled()
        assert [p.name for p in service.providers] == ["aemet", "open_meteo"]
    finally:
        reset_weather_service()


def test_module_constants() -> None:
    assert services_module.FORECAST_HORIZON_DAYS == 15
    assert services_module.DEFAULT_FORECAST_DAYS == 5
