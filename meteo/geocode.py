import json
import logging
import threading
from pathlib import Path
from typing import Dict, Optional

import httpx

from . import codec
from .errors import GeocodingError, PersistenceError
from .models import Coordinates

logger = logging.getLogger(__name__)

GEOCODING_URL = "https://geocoding-api.open-meteo.com/v1/search"
_TIMEOUT = 10.0


class CoordinateStore:
    """City name -> Coordinates, kept in memory and mirrored to a JSON file."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path else None
        self._lock = threading.Lock()
        self._items: Optional[Dict[str, Coordinates]] = None

    def _ensure_loaded(self) -> Dict[str, Coordinates]:
        if self._items is not None:
            return self._items
        self._items = {}
        if self.path is None or not self.path.exists():
            return self._items
        try:
            with open(self.path, encoding="utf-8") as fh:
                raw = json.load(fh)
            self._items = {city: Coordinates.from_dict(item) for city, item in raw.items()}
        except (OSError, ValueError, KeyError, TypeError, AttributeError) as e:
            logger.warning("Ignoring unreadable geocode cache %s: %s", self.path, e)
            self._items = {}
        return self._items

    def get(self, city: str) -> Optional[Coordinates]:
        with self._lock:
            return self._ensure_loaded().get(city)

    def put(self, city: str, coords: Coordinates) -> None:
        with self._lock:
            items = self._ensure_loaded()
            items[city] = coords
            if self.path is None:
                return
            try:
                codec.write_document(self.path, {name: c.to_dict() for name, c in items.items()})
            except PersistenceError as e:
                logger.warning("Failed to save geocode cache %s: %s", self.path, e)


def normalize_city(city: str) -> str:
    return " ".join(city.strip().lower().split())


async def get_city_coordinates(city: str, client: Optional[httpx.AsyncClient] = None,
                               store: Optional[CoordinateStore] = None, timeout: float = _TIMEOUT) -> Coordinates:
    city_key = normalize_city(city)
    if not city_key:
        raise GeocodingError("City name must not be empty")

    if store is not None:
        cached = store.get(city_key)
        if cached is not None:
            logger.info("Geocoding cache hit: city=%s lat=%s lon=%s", city_key, cached.latitude, cached.longitude)
            return cached

    logger.info("Calling Open-Meteo geocoding API: city=%s", city_key)
    params = {"name": city.strip(), "count": 1}

    async def _fetch(c: httpx.AsyncClient) -> httpx.Response:
        return await c.get(GEOCODING_URL, params=params, timeout=timeout)

    try:
        if client is None:
            async with httpx.AsyncClient() as local_client:
                resp = await _fetch(local_client)
        else:
            resp = await _fetch(client)
    except httpx.RequestError as e:
        raise GeocodingError(f"Network error while geocoding '{city}': {e}") from e

    if resp.status_code != 200:
        raise GeocodingError(f"Geocoding API returned {resp.status_code}: {resp.text[:200]}")

    try:
        results = resp.json().get("results") or []
    except (ValueError, AttributeError) as e:
        raise GeocodingError(f"Failed to decode geocoding response: {e}") from e
    if not results:
        logger.warning("No geocoding results found: city=%s", city_key)
        raise GeocodingError(f"No coordinates found for {city}")

    first = results[0]
    try:
        coords = Coordinates(
            name=first["name"],
            latitude=float(first["latitude"]),
            longitude=float(first["longitude"]),
            country=first.get("country", ""),
        )
    except (KeyError, TypeError, ValueError) as e:
        raise GeocodingError(f"Unexpected geocoding result for '{city}': {e!r}") from e

    if store is not None:
        store.put(city_key, coords)
    logger.info("Geocoding success: city=%s lat=%s lon=%s", coords.name, coords.latitude, coords.longitude)
    return coords
