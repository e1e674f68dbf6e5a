"""Project-level non-DRF views.

This module contains the root landing endpoint used for quick service checks
and links to the interactive API documentation endpoints.
"""

from __future__ import annotations

from django.http import HttpRequest, JsonResponse

from weather.services import get_weather_service


def home(request: HttpRequest) -> JsonResponse:
    """Return service metadata, weather status and documentation links."""
    service = get_weather_service()
    return JsonResponse(
        {
            "ok": True,
            "service": "club-weather",
            "weather_enabled": service.is_enabled(),
            "aemet_enabled": service.is_enhanced_provider_enabled(),
            "docs": "/api/docs/",
            "redoc": "/api/redoc/",
        }
    )
