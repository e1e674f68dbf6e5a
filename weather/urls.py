from __future__ import annotations

from django.urls import path

from .views import (
    WeatherActivityView,
    WeatherCacheView,
    WeatherConfigView,
    WeatherForecastView,
    WeatherHistoryView,
)

urlpatterns = [
    path(
        "weather/forecast/",
        WeatherForecastView.as_view(),
        name="weather-forecast",
    ),
    path(
        "weather/activity/",
        WeatherActivityView.as_view(),
        name="weather-activity",
    ),
    path(
        "weather/history/",
        WeatherHistoryView.as_view(),
        name="weather-history",
    ),
    path(
        "weather/config/",
        WeatherConfigView.as_view(),
        name="weather-config",
    ),
    path(
        "weather/cache/",
        WeatherCacheView.as_view(),
        name="weather-cache",
    ),
]
