import logging
from typing import Any, Callable, Dict, Optional, TypeVar

import httpx

from .errors import DecodeError, TransientNetworkError
from .models import CurrentWeather, HourlyForecast
from .retry import fetch_with_retry

logger = logging.getLogger(__name__)

T = TypeVar("T")

FORECAST_URL = "https://api.open-meteo.com/v1/forecast"
WEATHER_FIELDS = "temperature_2m,relative_humidity_2m,windspeed_10m,winddirection_10m,weathercode,surface_pressure"
_TIMEOUT = 10.0
_MAX_ATTEMPTS = 3


async def _get_json(url: str, params: Dict[str, Any], client: Optional[httpx.AsyncClient], description: str,
                    max_attempts: int, timeout: float) -> Any:

    async def _fetch(c: httpx.AsyncClient) -> httpx.Response:
        try:
            return await c.get(url, params=params, timeout=timeout)
        except httpx.RequestError as e:
            raise TransientNetworkError(f"Network error while fetching {description}: {e}") from e

    if client is None:
        async with httpx.AsyncClient() as local_client:
            resp = await fetch_with_retry(lambda: _fetch(local_client), max_attempts,
                                          is_success=lambda r: r.status_code == 200, description=description)
    else:
        resp = await fetch_with_retry(lambda: _fetch(client), max_attempts,
                                      is_success=lambda r: r.status_code == 200, description=description)

    try:
        return resp.json()
    except ValueError as e:
        logger.error("JSON decode failed for %s: %s", description, e)
        raise DecodeError(f"decode error: {e}") from e


def _decode(builder: Callable[[Dict[str, Any]], T], payload: Any, description: str) -> T:
    try:
        return builder(payload)
    except (KeyError, TypeError, ValueError) as e:
        logger.error("Unexpected %s payload: %r", description, e)
        raise DecodeError(f"decode error: unexpected {description} payload: {e!r}") from e


async def get_current_weather(lat: float, lon: float, client: Optional[httpx.AsyncClient] = None, *,
                              max_attempts: int = _MAX_ATTEMPTS, timeout: float = _TIMEOUT) -> CurrentWeather:
    logger.info("Requesting current weather: lat=%s lon=%s", lat, lon)
    params = {"latitude": f"{lat:.4f}", "longitude": f"{lon:.4f}", "current": WEATHER_FIELDS}
    payload = await _get_json(FORECAST_URL, params, client, "current weather", max_attempts, timeout)
    weather = _decode(CurrentWeather.from_api, payload, "current weather")
    logger.info("Weather data retrieved: temperature=%s wind=%s pressure=%s humidity=%s",
                weather.temperature, weather.windspeed, weather.pressure, weather.humidity)
    return weather


async def get_hourly_forecast(lat: float, lon: float, client: Optional[httpx.AsyncClient] = None, *,
                              max_attempts: int = _MAX_ATTEMPTS, timeout: float = _TIMEOUT) -> HourlyForecast:
    logger.info("Requesting hourly forecast: lat=%s lon=%s", lat, lon)
    params = {
        "latitude": f"{lat:.4f}",
        "longitude": f"{lon:.4f}",
        "hourly": WEATHER_FIELDS,
        "forecast_days": 1,
    }
    payload = await _get_json(FORECAST_URL, params, client, "hourly forecast", max_attempts, timeout)
    forecast = _decode(HourlyForecast.from_api, payload, "hourly forecast")
    logger.info("Hourly data retrieved: records=%s", len(forecast))
    return forecast
