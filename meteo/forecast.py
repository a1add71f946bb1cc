import logging
from typing import Any, Awaitable, Callable, Dict, Optional, Tuple

import httpx

from .cache import TTLCache
from .geocode import normalize_city
from .models import Coordinates
from .weather_client import get_current_weather, get_hourly_forecast

logger = logging.getLogger(__name__)

CURRENT = "current"
HOURLY = "hourly"
KINDS = (CURRENT, HOURLY)

FetchFn = Callable[[], Awaitable[Any]]


def cache_key(city: str, kind: str) -> str:
    """``"<city>_<kind>"``, e.g. ``belgrade_current``. One fetch function per key."""
    if kind not in KINDS:
        raise ValueError(f"unknown forecast kind: {kind!r}")
    return f"{normalize_city(city)}_{kind}"


def make_fetchers(coords: Coordinates, client: Optional[httpx.AsyncClient] = None, *,
                  max_attempts: int = 3, timeout: float = 10.0) -> Dict[str, FetchFn]:
    async def fetch_current():
        return await get_current_weather(coords.latitude, coords.longitude, client,
                                         max_attempts=max_attempts, timeout=timeout)

    async def fetch_hourly():
        return await get_hourly_forecast(coords.latitude, coords.longitude, client,
                                         max_attempts=max_attempts, timeout=timeout)

    return {CURRENT: fetch_current, HOURLY: fetch_hourly}


async def get_or_fetch(cache: TTLCache, key: str, fetch: FetchFn) -> Tuple[Any, bool]:
    """Return ``(value, from_cache)``; a miss is fetched and stored before returning."""
    value, found = cache.get(key)
    if found:
        logger.info("Serving from cache: key=%s", key)
        return value, True
    value = await fetch()
    cache.set(key, value)
    return value, False
