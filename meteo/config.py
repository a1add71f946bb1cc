import logging
import os
from dataclasses import dataclass
from pathlib import Path

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

ENV_PREFIX = "METEO_"
CACHE_FILE_NAME = "weather_cache.json"
GEOCODE_FILE_NAME = "geocode_cache.json"


def _default_cache_dir() -> Path:
    base = os.getenv("XDG_CACHE_HOME") or str(Path.home() / ".cache")
    return Path(base) / "meteo"


def _env(name: str, default=None):
    return os.getenv(ENV_PREFIX + name, default)


def _env_int(name: str, default: int) -> int:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    try:
        return int(raw)
    except ValueError:
        logger.warning("Invalid integer for %s%s=%r, using %s", ENV_PREFIX, name, raw, default)
        return default


def _env_float(name: str, default: float) -> float:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    try:
        return float(raw)
    except ValueError:
        logger.warning("Invalid number for %s%s=%r, using %s", ENV_PREFIX, name, raw, default)
        return default


def _env_bool(name: str, default: bool) -> bool:
    raw = _env(name)
    if raw is None or raw == "":
        return default
    value = raw.strip().lower()
    if value in ("1", "true", "yes", "on"):
        return True
    if value in ("0", "false", "no", "off"):
        return False
    logger.warning("Invalid boolean for %s%s=%r, using %s", ENV_PREFIX, name, raw, default)
    return default


@dataclass
class Settings:
    city: str
    hours: int
    emoji: bool
    color: str
    verbose: bool
    forecast_mode: str
    timezone: str
    cache_ttl: float
    cache_dir: Path
    log_dir: Path
    request_timeout: float
    max_attempts: int
    both_timeout: float
    port: int

    @property
    def cache_file(self) -> Path:
        return self.cache_dir / CACHE_FILE_NAME

    @property
    def geocode_file(self) -> Path:
        return self.cache_dir / GEOCODE_FILE_NAME


def get_settings() -> Settings:
    cache_dir = Path(_env("CACHE_DIR") or _default_cache_dir())
    log_dir = Path(_env("LOG_DIR") or cache_dir / "logs")
    return Settings(
        city=_env("CITY", "belgrade"),
        hours=_env_int("HOURS", 6),
        emoji=_env_bool("EMOJI", True),
        color=_env("COLOR", "auto"),
        verbose=_env_bool("VERBOSE", False),
        forecast_mode=_env("FORECAST_MODE", "hourly"),
        timezone=_env("TIMEZONE", "local"),
        cache_ttl=_env_float("CACHE_TTL", 600.0),
        cache_dir=cache_dir,
        log_dir=log_dir,
        request_timeout=_env_float("REQUEST_TIMEOUT", 10.0),
        max_attempts=_env_int("MAX_ATTEMPTS", 3),
        both_timeout=_env_float("BOTH_TIMEOUT", 10.0),
        port=_env_int("PORT", 8080),
    )
