"""Weather API endpoints.

Read endpoints are open; configuration changes and cache invalidation need a
staff user. Responses: wrapped by `config.api.responses.success_response`
(status/message/data/errors). A forecast the service cannot produce is a
successful response with `data: null`, not an error.
"""

from __future__ import annotations

from typing import Any, cast

from asgiref.sync import async_to_sync
from drf_spectacular.utils import (
    OpenApiParameter,
    OpenApiTypes,
    extend_schema,
    inline_serializer,
)
from rest_framework import serializers
from rest_framework.permissions import AllowAny, IsAdminUser
from rest_framework.request import Request
from rest_framework.response import Response
from rest_framework.views import APIView

from config.api.openapi import (
    error_envelope_serializer,
    success_envelope_serializer,
)
from config.api.responses import JSONValue, success_response

from .serializers import (
    ForecastParamsSerializer,
    ForecastSerializer,
    HistoryParamsSerializer,
    RangeParamsSerializer,
    WeatherConfigSerializer,
    WeatherDaySerializer,
    resolve_location_param,
    serialize_config,
    serialize_days,
    serialize_forecast,
)
from .services import get_weather_service

weather_error_schema = error_envelope_serializer("WeatherErrorResponse")

forecast_success_schema = success_envelope_serializer(
    "WeatherForecastSuccess",
    data=ForecastSerializer(allow_null=True),
)

days_success_schema = success_envelope_serializer(
    "WeatherDaysSuccess",
    data=inline_serializer(
        name="WeatherDaysData",
        fields={"days": WeatherDaySerializer(many=True)},
    ),
)

config_success_schema = success_envelope_serializer(
    "WeatherConfigSuccess",
    data=serializers.JSONField(),
)

LOCATION_PARAMETERS = [
    OpenApiParameter(
        name="lat",
        type=OpenApiTypes.FLOAT,
        location=OpenApiParameter.QUERY,
        required=False,
    ),
    OpenApiParameter(
        name="lon",
        type=OpenApiTypes.FLOAT,
        location=OpenApiParameter.QUERY,
        required=False,
    ),
    OpenApiParameter(
        name="location",
        type=OpenApiTypes.STR,
        location=OpenApiParameter.QUERY,
        required=False,
        description="Place name, geocoded when lat/lon are absent",
    ),
]

RANGE_PARAMETERS = [
    OpenApiParameter(
        name="start",
        type=OpenApiTypes.DATE,
        location=OpenApiParameter.QUERY,
        required=True,
    ),
    OpenApiParameter(
        name="end",
        type=OpenApiTypes.DATE,
        location=OpenApiParameter.QUERY,
        required=False,
    ),
]


class WeatherForecastView(APIView):
    """Multi-day forecast for a location (default location if omitted)."""

    permission_classes = [AllowAny]

    @extend_schema(
        parameters=[
            *LOCATION_PARAMETERS,
            OpenApiParameter(
                name="days",
                type=OpenApiTypes.INT,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Number of days (1-16, default 5)",
            ),
            OpenApiParameter(
                name="source",
                type=OpenApiTypes.STR,
                location=OpenApiParameter.QUERY,
                required=False,
                description="Force a provider (open_meteo or aemet)",
            ),
        ],
        responses={200: forecast_success_schema, 400: weather_error_schema},
    )
    def get(self, request: Request) -> Response:
        serializer = ForecastParamsSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        forecast = async_to_sync(get_weather_service().forecast)(
            resolve_location_param(params),
            int(params["days"]),
            source=params.get("source"),
        )
        if forecast is None:
            return success_response(None, "No weather data available")
        return success_response(
            cast(JSONValue, serialize_forecast(forecast))
        )


class WeatherActivityView(APIView):
    """Forecast days covering an activity's dates.

    Ranges starting more than 15 days ahead return an empty list.
    """

    permission_classes = [AllowAny]

    @extend_schema(
        parameters=[*RANGE_PARAMETERS, *LOCATION_PARAMETERS],
        responses={200: days_success_schema, 400: weather_error_schema},
    )
    def get(self, request: Request) -> Response:
        serializer = RangeParamsSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        days = async_to_sync(get_weather_service().forecast_for_range)(
            params["start"],
            params.get("end"),
            resolve_location_param(params),
        )
        payload = serialize_days(days)
        return success_response({"days": cast(JSONValue, payload)})


class WeatherHistoryView(APIView):
    """Archived daily weather for a past date range."""

    permission_classes = [AllowAny]

    @extend_schema(
        parameters=[*RANGE_PARAMETERS, *LOCATION_PARAMETERS],
        responses={200: days_success_schema, 400: weather_error_schema},
    )
    def get(self, request: Request) -> Response:
        serializer = HistoryParamsSerializer(data=request.query_params)
        serializer.is_valid(raise_exception=True)
        params = serializer.validated_data

        days = async_to_sync(get_weather_service().history_for_range)(
            resolve_location_param(params),
            params["start"],
            params["end"],
        )
        payload = serialize_days(days)
        return success_response({"days": cast(JSONValue, payload)})


class WeatherConfigView(APIView):
    """Read (anyone) or update (staff) the weather service configuration."""

    def get_permissions(self) -> list[Any]:
        if self.request.method == "PATCH":
            return [IsAdminUser()]
        return [AllowAny()]

    @extend_schema(responses={200: config_success_schema})
    def get(self, request: Request) -> Response:
        config = get_weather_service().current_config()
        return success_response(cast(JSONValue, serialize_config(config)))

    @extend_schema(
        request=WeatherConfigSerializer,
        responses={
            200: config_success_schema,
            400: weather_error_schema,
            403: weather_error_schema,
        },
    )
    def patch(self, request: Request) -> Response:
        serializer = WeatherConfigSerializer(data=request.data, partial=True)
        serializer.is_valid(raise_exception=True)
        service = get_weather_service()
        # WeatherConfigError is rendered by the project exception handler.
        config = service.configure(dict(serializer.validated_data))
        # Units and providers may have changed; cached forecasts are stale.
        service.clear_cache()
        return success_response(
            cast(JSONValue, serialize_config(config)), "Configuration updated"
        )


class WeatherCacheView(APIView):
    """Drop every cached forecast."""

    permission_classes = [IsAdminUser]

    @extend_schema(
        request=None,
        responses={200: config_success_schema, 403: weather_error_schema},
    )
    def delete(self, request: Request) -> Response:
        get_weather_service().clear_cache()
        return success_response(None, "Cache cleared")
