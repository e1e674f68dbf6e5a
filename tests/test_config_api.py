from __future__ import annotations

# ruff: noqa: S101
from decimal import Decimal
from unittest.mock import patch

from django.test import Client
from rest_framework.exceptions import NotFound
from rest_framework.response import Response

from config.api.exceptions import _to_json_value, custom_exception_handler
from config.api.responses import envelope, error_response, success_response
from weather.config import WeatherConfigError
from weather.services import reset_weather_service


def test_success_response_payload() -> None:
    resp = success_response({"days": []}, "Done", status_code=201)
    assert resp.status_code == 201
    assert resp.data == {
        "status": 0,
        "message": "Done",
        "data": {"days": []},
        "errors": None,
    }


def test_error_response_payload() -> None:
    resp = error_response(
        "Bad request",
        errors={"field": ["missing"]},
        status_code=418,
    )
    assert resp.status_code == 418
    assert resp.data["status"] == 1
    assert resp.data["message"] == "Bad request"
    assert resp.data["data"] is None
    assert resp.data["errors"] == {"field": ["missing"]}
    assert envelope(ok=False, message="x")["status"] == 1


def test_custom_exception_handler_returns_500_on_unhandled() -> None:
    with patch("rest_framework.views.exception_handler", return_value=None):
        resp = custom_exception_handler(Exception("boom"), {})
    assert resp.status_code == 500
    assert resp.data["status"] == 1
    assert resp.data["message"] == "Internal server error"


def test_custom_exception_handler_renders_config_errors() -> None:
    exc = WeatherConfigError("Unknown key", code="unknown_key")

    resp = custom_exception_handler(exc, {})

    assert resp.status_code == 400
    assert resp.data["status"] == 1
    assert resp.data["message"] == "Unknown key"
    assert resp.data["errors"] == {"code": "unknown_key"}


def test_custom_exception_handler_wraps_drf_detail() -> None:
    resp = custom_exception_handler(NotFound("No such place"), {})

    assert resp.status_code == 404
    assert resp.data["message"] == "No such place"
    assert resp.data["errors"] == {"detail": "No such place"}


def test_custom_exception_handler_non_dict_detail() -> None:
    with patch(
        "rest_framework.views.exception_handler",
        return_value=Response(["first", "second"], status=400),
    ):
        resp = custom_exception_handler(ValueError("bad"), {})
    assert resp.status_code == 400
    assert resp.data["message"] == "Request failed"
    assert resp.data["errors"] == ["first", "second"]


def test_to_json_value_handles_sequences() -> None:
    payload = ("ok", {"value": Decimal("1.25")})
    assert _to_json_value(payload) == ["ok", {"value": "1.25"}]


def test_home_view_returns_metadata() -> None:
    reset_weather_service()
    try:
        client = Client()
        resp = client.get("/")
    finally:
        reset_weather_service()
    assert resp.status_code == 200
    body = resp.json()
    assert body["ok"] is True
    assert body["service"] == "club-weather"
    assert body["weather_enabled"] is False
    assert body["aemet_enabled"] is False
    assert body["docs"] == "/api/docs/"
