"""On-disk format of the weather cache.

The file holds a versioned document; every entry is tagged with the kind of
payload it carries so that several record shapes can share one file::

    {"version": 1,
     "entries": {"belgrade_current": {"kind": "current", "stored_at": 1700000000.0, "value": {...}}}}
"""
import json
import logging
import os
import tempfile
from pathlib import Path
from typing import Any, Dict, Tuple, Type

from .errors import PersistenceError
from .models import CurrentWeather, HourlyForecast

logger = logging.getLogger(__name__)

SCHEMA_VERSION = 1
JSON_KIND = "json"

PAYLOAD_TYPES: Dict[str, Type] = {
    CurrentWeather.kind: CurrentWeather,
    HourlyForecast.kind: HourlyForecast,
}

_JSON_TYPES = (dict, list, str, int, float, bool, type(None))


def encode_value(value: Any) -> Tuple[str, Any]:
    for kind, payload_type in PAYLOAD_TYPES.items():
        if type(value) is payload_type:
            return kind, value.to_dict()
    if isinstance(value, _JSON_TYPES):
        return JSON_KIND, value
    raise PersistenceError(f"no persistence kind registered for {type(value).__name__}")


def decode_value(kind: str, data: Any) -> Any:
    if kind == JSON_KIND:
        return data
    payload_type = PAYLOAD_TYPES.get(kind)
    if payload_type is None:
        raise PersistenceError(f"unknown payload kind {kind!r}")
    try:
        return payload_type.from_dict(data)
    except (TypeError, ValueError, KeyError) as exc:
        raise PersistenceError(f"malformed {kind} payload: {exc}") from exc


def dump_entries(entries: Dict[str, Tuple[Any, float]]) -> Dict[str, Any]:
    """Build the document for ``{key: (value, stored_at)}``.

    Values without a registered kind stay out of the document.
    """
    encoded = {}
    for key, (value, stored_at) in entries.items():
        try:
            kind, data = encode_value(value)
        except PersistenceError as exc:
            logger.warning("Not persisting cache entry %s: %s", key, exc)
            continue
        encoded[key] = {"kind": kind, "stored_at": stored_at, "value": data}
    return {"version": SCHEMA_VERSION, "entries": encoded}


def load_entries(document: Any) -> Dict[str, Tuple[Any, float]]:
    if not isinstance(document, dict):
        raise PersistenceError("cache document is not a mapping")
    if document.get("version") != SCHEMA_VERSION:
        raise PersistenceError(f"unsupported cache document version: {document.get('version')!r}")
    raw_entries = document.get("entries")
    if not isinstance(raw_entries, dict):
        raise PersistenceError("cache document has no entries table")

    entries = {}
    for key, raw in raw_entries.items():
        try:
            value = decode_value(raw["kind"], raw["value"])
            stored_at = float(raw["stored_at"])
        except (PersistenceError, KeyError, TypeError, ValueError) as exc:
            logger.warning("Skipping cache entry %s: %s", key, exc)
            continue
        entries[key] = (value, stored_at)
    return entries


def write_document(path: Path, document: Dict[str, Any]) -> None:
    """Write ``document`` next to ``path`` and rename it into place."""
    path = Path(path)
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        fd, tmp_name = tempfile.mkstemp(prefix=path.name, suffix=".tmp", dir=path.parent)
        try:
            with os.fdopen(fd, "w", encoding="utf-8") as fh:
                json.dump(document, fh)
            os.replace(tmp_name, path)
        except BaseException:
            if os.path.exists(tmp_name):
                os.unlink(tmp_name)
            raise
    except (OSError, TypeError, ValueError) as exc:
        raise PersistenceError(f"failed to write {path}: {exc}") from exc


def read_document(path: Path) -> Any:
    try:
        with open(path, encoding="utf-8") as fh:
            return json.load(fh)
    except FileNotFoundError:
        raise
    except (OSError, ValueError) as exc:
        raise PersistenceError(f"failed to read {path}: {exc}") from exc
