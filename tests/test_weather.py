"""Tests for weather parsing and the OpenWeatherMap client."""

import http.client
import io
import json
import logging
import urllib.error
import urllib.request

import pytest

from skycolor.errors import WeatherError
from skycolor.weather import (
    OpenWeatherMapClient,
    WeatherCondition,
    WeatherMain,
    WeatherSnapshot,
    mask_api_key,
)


API_KEY = "0123456789abcdef0123456789abcdef"


class FakeResponse(io.BytesIO):
    status = 200
    reason = "OK"


def respond_with(body, calls=None):
    def fake_urlopen(url, timeout=None):
        if calls is not None:
            calls.append((url, timeout))
        return FakeResponse(body.encode() if isinstance(body, str) else body)
    return fake_urlopen


def fail_with(error):
    def fake_urlopen(url, timeout=None):
        raise error
    return fake_urlopen


RAIN_AND_MIST = {
    "weather": [
        {"id": 500, "main": "Rain", "description": "light rain"},
        {"id": 701, "main": "Mist", "description": "mist"},
    ],
}


def test_from_response():
    snapshot = WeatherSnapshot.from_response(RAIN_AND_MIST)

    assert snapshot.conditions == (
        WeatherCondition(500, WeatherMain.RAIN, "light rain"),
        WeatherCondition(701, WeatherMain.MIST, "mist"),
    )


def test_from_response_unknown_group():
    snapshot = WeatherSnapshot.from_response({"weather": [{"id": 999, "main": "Meteors"}]})

    assert snapshot.conditions == (WeatherCondition(999, None, ""),)


@pytest.mark.parametrize("data", [
    [],
    {},
    {"weather": "rain"},
    {"weather": ["rain"]},
    {"weather": [{"id": "500", "main": "Rain"}]},
    {"weather": [{"id": 500}]},
])
def test_from_response_rejects_unexpected_shapes(data):
    with pytest.raises(WeatherError):
        WeatherSnapshot.from_response(data)


def test_clear_sky_default():
    snapshot = WeatherSnapshot.clear_sky()

    assert [(c.id, c.main) for c in snapshot.conditions] == [(800, WeatherMain.CLEAR)]
    assert "default" in snapshot.conditions[0].description


def test_mask_api_key():
    assert mask_api_key(f"url?APPID={API_KEY}", API_KEY) == "url?APPID=" + "█" * 32
    assert mask_api_key("no key here", API_KEY) == "no key here"


def test_fetch_current(monkeypatch):
    calls = []
    monkeypatch.setattr(urllib.request, "urlopen", respond_with(json.dumps(RAIN_AND_MIST), calls))
    client = OpenWeatherMapClient(API_KEY, timeout=3)

    snapshot = client.fetch_current(139.0, 35.0)

    assert snapshot == WeatherSnapshot.from_response(RAIN_AND_MIST)
    url, timeout = calls[0]
    assert url.startswith("https://api.openweathermap.org/data/2.5/weather?")
    assert "lon=139.0" in url and "lat=35.0" in url and f"APPID={API_KEY}" in url
    assert timeout == 3


def test_api_key_is_not_logged(monkeypatch, caplog):
    error = urllib.error.HTTPError(
        f"https://api.openweathermap.org/data/2.5/weather?APPID={API_KEY}",
        401, "Unauthorized", None, None,
    )
    monkeypatch.setattr(urllib.request, "urlopen", fail_with(error))
    client = OpenWeatherMapClient(API_KEY)

    with caplog.at_level(logging.INFO):
        assert client.fetch_current(139.0, 35.0) is None

    assert API_KEY not in caplog.text
    assert "█" * 32 in caplog.text
    assert "401" in caplog.text


def test_network_failure_is_no_data(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", fail_with(urllib.error.URLError("unreachable")))

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_timeout_is_no_data(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", fail_with(TimeoutError("timed out")))

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_malformed_status_line_is_no_data(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", fail_with(http.client.BadStatusLine("garbage")))

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_truncated_body_is_no_data(monkeypatch):
    """Test that a connection dropped mid-body degrades like any other failure."""
    class TruncatedResponse(FakeResponse):
        def read(self, *args):
            raise http.client.IncompleteRead(b'{"weather"', 490)

    monkeypatch.setattr(urllib.request, "urlopen", lambda url, timeout=None: TruncatedResponse())

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_invalid_json_is_no_data(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", respond_with("<html>oops</html>"))

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_unexpected_shape_is_no_data(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", respond_with('{"cod": 200}'))

    assert OpenWeatherMapClient(API_KEY).fetch_current(139.0, 35.0) is None


def test_fallback_clear_sky(monkeypatch):
    monkeypatch.setattr(urllib.request, "urlopen", fail_with(urllib.error.URLError("unreachable")))
    client = OpenWeatherMapClient(API_KEY, fallback_clear_sky=True)

    assert client.fetch_current(139.0, 35.0) == WeatherSnapshot.clear_sky()
