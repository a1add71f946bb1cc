from unittest.mock import patch

import httpx
import pytest

from meteo import retry
from meteo.errors import DecodeError, TerminalFetchError, TransientNetworkError
from meteo.models import CurrentWeather, HourlyForecast
from meteo.weather_client import FORECAST_URL, get_current_weather, get_hourly_forecast


class MockAsyncClient:
    def __init__(self, *responses):
        self._responses = list(responses)
        self.calls = []

    async def __aenter__(self):
        return self

    async def __aexit__(self, exc_type, exc, tb):
        return False

    async def get(self, url, params=None, timeout=None):
        self.calls.append({"url": url, "params": params, "timeout": timeout})
        response = self._responses.pop(0) if len(self._responses) > 1 else self._responses[0]
        if isinstance(response, Exception):
            raise response
        return response


def mock_async_client(client: MockAsyncClient):
    def _client_factory(*args, **kwargs):
        return client
    return _client_factory


def make_response(status_code=200, json=None, text=None):
    request = httpx.Request("GET", FORECAST_URL)
    if text is not None:
        return httpx.Response(status_code=status_code, text=text, request=request)
    return httpx.Response(status_code=status_code, json=json if json is not None else {}, request=request)


@pytest.fixture(autouse=True)
def no_backoff(monkeypatch):
    monkeypatch.setattr(retry, "backoff_delay", lambda *args, **kwargs: 0.0)


@pytest.mark.asyncio
async def test_current_weather_decoded(current_payload):
    client = MockAsyncClient(make_response(json=current_payload))
    with patch("httpx.AsyncClient", mock_async_client(client)):
        result = await get_current_weather(44.804, 20.4651)

    assert isinstance(result, CurrentWeather)
    assert result.temperature == 21.4
    assert result.weathercode == 2
    params = client.calls[0]["params"]
    assert params["latitude"] == "44.8040"
    assert params["longitude"] == "20.4651"
    assert "temperature_2m" in params["current"]


@pytest.mark.asyncio
async def test_hourly_forecast_decoded_with_explicit_client(hourly_payload):
    client = MockAsyncClient(make_response(json=hourly_payload))

    result = await get_hourly_forecast(44.8, 20.46, client)

    assert isinstance(result, HourlyForecast)
    assert len(result) == 4
    assert result.weathercode == [0, 1, 3, 61]
    assert client.calls[0]["params"]["forecast_days"] == 1


@pytest.mark.asyncio
async def test_server_error_retried_then_succeeds(current_payload):
    client = MockAsyncClient(make_response(500, json={"reason": "busy"}), make_response(json=current_payload))

    result = await get_current_weather(44.8, 20.46, client)

    assert result.humidity == 48
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_persistent_error_status_is_terminal():
    client = MockAsyncClient(make_response(500, json={"reason": "busy"}))

    with pytest.raises(TerminalFetchError, match="all retries failed"):
        await get_current_weather(44.8, 20.46, client)

    assert len(client.calls) == 3


@pytest.mark.asyncio
async def test_request_error_retried_as_transient():
    request = httpx.Request("GET", FORECAST_URL)
    client = MockAsyncClient(httpx.ConnectError("connection failed", request=request))

    with pytest.raises(TerminalFetchError) as excinfo:
        await get_hourly_forecast(44.8, 20.46, client, max_attempts=2)

    assert isinstance(excinfo.value.__cause__, TransientNetworkError)
    assert len(client.calls) == 2


@pytest.mark.asyncio
async def test_malformed_json_is_decode_error():
    client = MockAsyncClient(make_response(text="<html>oops</html>"))

    with pytest.raises(DecodeError):
        await get_current_weather(44.8, 20.46, client)

    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_missing_fields_is_decode_error(hourly_payload):
    del hourly_payload["hourly"]["surface_pressure"]
    client = MockAsyncClient(make_response(json=hourly_payload))

    with pytest.raises(DecodeError):
        await get_hourly_forecast(44.8, 20.46, client)


@pytest.mark.asyncio
async def test_mismatched_series_is_decode_error(hourly_payload):
    hourly_payload["hourly"]["temperature_2m"].pop()
    client = MockAsyncClient(make_response(json=hourly_payload))

    with pytest.raises(DecodeError):
        await get_hourly_forecast(44.8, 20.46, client)
