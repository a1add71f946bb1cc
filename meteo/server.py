import logging
import time
from typing import Optional

import httpx
from aiohttp import web

from .cache import TTLCache
from .config import Settings
from .errors import GeocodingError, WeatherClientError
from .forecast import CURRENT, HOURLY, cache_key, get_or_fetch, make_fetchers
from .geocode import CoordinateStore, get_city_coordinates
from .refresher import BackgroundRefresher

logger = logging.getLogger(__name__)

DEFAULT_HOURS = 6

CACHE_KEY = web.AppKey("cache", TTLCache)
REFRESHER_KEY = web.AppKey("refresher", BackgroundRefresher)
SETTINGS_KEY = web.AppKey("settings", Settings)
STORE_KEY = web.AppKey("coordinate_store", CoordinateStore)
CLIENT_KEY = web.AppKey("http_client", httpx.AsyncClient)


@web.middleware
async def logging_middleware(request: web.Request, handler):
    start = time.perf_counter()
    status = 500
    try:
        response = await handler(request)
        status = response.status
        return response
    except web.HTTPException as exc:
        status = exc.status
        raise
    finally:
        logger.info(
            "HTTP request: method=%s path=%s status=%s duration_ms=%.0f client_ip=%s",
            request.method, request.path, status, (time.perf_counter() - start) * 1000, request.remote,
        )


def _parse_hours(raw: Optional[str]) -> int:
    if not raw:
        return DEFAULT_HOURS
    try:
        return int(raw)
    except ValueError:
        return DEFAULT_HOURS


async def _lookup(request: web.Request, kind: str):
    city = request.query.get("city", "").strip()
    if not city:
        raise web.HTTPBadRequest(text="Missing 'city' parameter")

    cache = request.app[CACHE_KEY]
    key = cache_key(city, kind)
    value, found = cache.get(key)
    if found:
        return value

    settings = request.app[SETTINGS_KEY]
    client = request.app[CLIENT_KEY]
    try:
        coords = await get_city_coordinates(city, client, request.app[STORE_KEY], timeout=settings.request_timeout)
    except GeocodingError as e:
        logger.error("Geocoding failed for %s: %s", city, e)
        raise web.HTTPInternalServerError(text=f"Geocoding failed: {e}")

    fetch = make_fetchers(coords, client, max_attempts=settings.max_attempts, timeout=settings.request_timeout)[kind]
    try:
        value, _ = await get_or_fetch(cache, key, fetch)
    except WeatherClientError as e:
        logger.error("Fetch failed for %s: %s", key, e)
        raise web.HTTPInternalServerError(text=f"Fetch failed: {e}")

    request.app[REFRESHER_KEY].start_refresh(key, fetch)
    return value


async def handle_current(request: web.Request) -> web.Response:
    weather = await _lookup(request, CURRENT)
    return web.json_response(weather.to_dict())


async def handle_hourly(request: web.Request) -> web.Response:
    hours = _parse_hours(request.query.get("hours"))
    forecast = await _lookup(request, HOURLY)
    return web.json_response(forecast.truncated(hours).to_dict())


async def _on_startup(app: web.Application) -> None:
    app[REFRESHER_KEY].start()
    logger.info("HTTP service started")


async def _on_cleanup(app: web.Application) -> None:
    app[REFRESHER_KEY].shutdown()
    await app[CLIENT_KEY].aclose()
    logger.info("HTTP service stopped")


def create_app(settings: Settings, cache: Optional[TTLCache] = None,
               refresher: Optional[BackgroundRefresher] = None,
               client: Optional[httpx.AsyncClient] = None,
               store: Optional[CoordinateStore] = None) -> web.Application:
    if cache is None:
        cache = TTLCache(settings.cache_ttl, settings.cache_file)
    if refresher is None:
        refresher = BackgroundRefresher(cache)
    if client is None:
        client = httpx.AsyncClient()
    if store is None:
        store = CoordinateStore(settings.geocode_file)

    app = web.Application(middlewares=[logging_middleware])
    app[SETTINGS_KEY] = settings
    app[CACHE_KEY] = cache
    app[REFRESHER_KEY] = refresher
    app[CLIENT_KEY] = client
    app[STORE_KEY] = store

    app.router.add_get("/api/v1/current", handle_current)
    app.router.add_get("/api/v1/hourly", handle_hourly)
    app.on_startup.append(_on_startup)
    app.on_cleanup.append(_on_cleanup)
    return app


def run_server(settings: Settings, port: Optional[int] = None) -> None:
    port = port or settings.port
    logger.info("Starting HTTP server on port %s", port)
    web.run_app(create_app(settings), port=port, print=None, shutdown_timeout=5.0)
