import logging
import os
from dataclasses import dataclass, replace
from datetime import datetime, timezone
from typing import List, Optional
from zoneinfo import ZoneInfo, ZoneInfoNotFoundError

from .models import CurrentWeather, HourlyForecast

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Theme:
    reset: str = ""
    bold: str = ""
    gray: str = ""
    cyan: str = ""
    blue: str = ""
    green: str = ""
    yellow: str = ""
    red: str = ""
    emoji: bool = True


NO_COLOR = Theme()
DARK_THEME = Theme("\033[0m", "\033[1m", "\033[90m", "\033[36m", "\033[34m", "\033[32m", "\033[33m", "\033[31m")
LIGHT_THEME = replace(DARK_THEME, gray="\033[37m")


def supports_color() -> bool:
    term = os.getenv("TERM", "")
    return bool(term) and "dumb" not in term


def get_theme(color: str = "auto", emoji: bool = True) -> Theme:
    color = (color or "auto").lower()
    if color == "none":
        theme = NO_COLOR
    elif color == "light":
        theme = LIGHT_THEME
    elif color == "auto":
        theme = DARK_THEME if supports_color() else NO_COLOR
    else:
        theme = DARK_THEME
    return replace(theme, emoji=emoji)


_WEATHER_CODES = {
    (0,): ("☀️", "Clear sky"),
    (1, 2): ("🌤️", "Partly cloudy"),
    (3,): ("☁️", "Overcast"),
    (45, 48): ("🌫️", "Fog"),
    (51, 53, 55): ("🌦️", "Drizzle"),
    (56, 57): ("🌧️", "Freezing drizzle"),
    (61, 63, 65): ("🌧️", "Rain"),
    (66, 67): ("🌧️", "Freezing rain"),
    (71, 73, 75): ("🌨️", "Snow"),
    (77,): ("❄️", "Snow grains"),
    (80, 81, 82): ("🌧️", "Rain showers"),
    (85, 86): ("🌨️", "Snow showers"),
    (95,): ("⛈️", "Thunderstorm"),
    (96, 99): ("🌩️", "Thunderstorm with hail"),
}


def weather_description(code: int, emoji: bool = True) -> str:
    """Open-Meteo WMO weather code to text."""
    icon, text = "🌈", "Unknown"
    for codes, described in _WEATHER_CODES.items():
        if code in codes:
            icon, text = described
            break
    return f"{icon} {text}" if emoji else text


def degrees_to_compass(deg: float) -> str:
    dirs = ["N", "NE", "E", "SE", "S", "SW", "W", "NW"]
    return dirs[int((deg % 360 + 22.5) / 45.0) % 8]


def format_current(weather: CurrentWeather, theme: Theme = NO_COLOR) -> str:
    t = theme
    rows = [
        (t.cyan, "Temperature", f"{weather.temperature:.1f} °C"),
        (t.blue, "Humidity", f"{weather.humidity:.0f} %"),
        (t.yellow, "Wind speed", f"{weather.windspeed:.1f} km/h"),
        (t.yellow, "Wind direction", degrees_to_compass(weather.winddirection)),
        (t.green, "Pressure", f"{weather.pressure:.0f} hPa"),
        (t.red, "Condition", weather_description(weather.weathercode, t.emoji)),
    ]
    lines = [
        f"{t.bold}Current weather:{t.reset}",
        f"{t.bold}{'Parameter':<20}   {'Value':<12}{t.reset}",
        f"{t.gray}{'─' * 20}   {'─' * 15}{t.reset}",
    ]
    for color, name, value in rows:
        lines.append(f"{color}{name:<20}{t.reset}   {value}")
    return "\n".join(lines) + "\n"


def _resolve_zone(tz_name: Optional[str]):
    if not tz_name or tz_name == "local":
        return None, "Local"
    try:
        return ZoneInfo(tz_name), tz_name
    except (ZoneInfoNotFoundError, ValueError):
        logger.warning("Unknown time zone %r, using local time", tz_name)
        return None, "Local"


def _parse_time(value: str) -> datetime:
    parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def format_hourly(forecast: HourlyForecast, theme: Theme = NO_COLOR, hours: int = 0,
                  tz_name: Optional[str] = None) -> str:
    t = theme
    zone, zone_label = _resolve_zone(tz_name)
    headers = ("Time", "Temp (°C)", "Wind (km/h)", "Dir", "Humidity (%)", "Pressure (hPa)", "Conditions")
    widths = (20, 12, 12, 6, 12, 16, 16)

    lines: List[str] = [
        f"{t.bold}Hourly forecast ({zone_label}):{t.reset}",
        t.bold + "   ".join(h.ljust(w) for h, w in zip(headers, widths)) + t.reset,
        t.gray + "   ".join("─" * w for w in widths) + t.reset,
    ]
    shown = forecast.truncated(hours)
    for i, raw_time in enumerate(shown.time):
        try:
            when = _parse_time(raw_time).astimezone(zone)
        except ValueError as e:
            logger.warning("Failed to parse time %r: %s", raw_time, e)
            continue
        cells = (
            (t.gray, when.strftime("%Y-%m-%d %H:%M").ljust(widths[0])),
            (t.cyan, f"{shown.temperature[i]:6.1f}".ljust(widths[1])),
            (t.yellow, f"{shown.windspeed[i]:6.1f}".ljust(widths[2])),
            (t.yellow, degrees_to_compass(shown.winddirection[i]).ljust(widths[3])),
            (t.blue, f"{shown.humidity[i]:6.0f}".ljust(widths[4])),
            (t.cyan, f"{shown.pressure[i]:6.0f}".ljust(widths[5])),
            (t.green, weather_description(shown.weathercode[i], t.emoji)),
        )
        lines.append("   ".join(f"{color}{text}{t.reset}" for color, text in cells))
    return "\n".join(lines) + "\n"


def unavailable(kind: str) -> str:
    return f"{kind.capitalize()} forecast unavailable (timeout or error)."
