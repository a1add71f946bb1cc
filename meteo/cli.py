"""Command-line weather client powered by Open-Meteo.

Examples::

    meteo current --city belgrade
    meteo hourly --city belgrade --hours 6
    meteo both --city belgrade
    meteo serve --port 8080
"""
import asyncio
import logging
from typing import Optional

import httpx
import typer

from .cache import TTLCache
from .config import Settings, get_settings
from .errors import WeatherClientError
from .forecast import CURRENT, HOURLY, cache_key, get_or_fetch, make_fetchers
from .geocode import CoordinateStore, get_city_coordinates
from .log import setup_logging
from .orchestrator import fetch_both
from .refresher import BackgroundRefresher
from .render import format_current, format_hourly, get_theme, unavailable

logger = logging.getLogger(__name__)

app = typer.Typer(help="Command-line weather client powered by Open-Meteo.", no_args_is_help=True)

CityOption = typer.Option(None, "--city", "-c", help="City name")
ColorOption = typer.Option(None, "--color", help="Color theme: auto|dark|light|none")
NoEmojiOption = typer.Option(False, "--no-emoji", help="Disable emoji output")
VerboseOption = typer.Option(False, "--verbose", help="Verbose logging")
HoursOption = typer.Option(None, "--hours", help="Number of hours to display (0 = all)")


def _prepare(city: Optional[str], color: Optional[str], no_emoji: bool, verbose: bool):
    settings = get_settings()
    if city:
        settings.city = city
    if color:
        settings.color = color
    if no_emoji:
        settings.emoji = False
    if verbose:
        settings.verbose = True
    setup_logging(settings.verbose, settings.log_dir)
    return settings, get_theme(settings.color, settings.emoji)


def _fail(message: str) -> None:
    typer.secho(message, err=True, fg=typer.colors.RED)
    raise typer.Exit(code=1)


async def _run_single(settings: Settings, kind: str, hours: int, theme) -> str:
    cache = TTLCache(settings.cache_ttl, settings.cache_file)
    refresher = BackgroundRefresher(cache)
    key = cache_key(settings.city, kind)
    try:
        async with httpx.AsyncClient() as client:
            coords = await get_city_coordinates(settings.city, client, CoordinateStore(settings.geocode_file),
                                                timeout=settings.request_timeout)
            fetch = make_fetchers(coords, client, max_attempts=settings.max_attempts,
                                  timeout=settings.request_timeout)[kind]
            value, from_cache = await get_or_fetch(cache, key, fetch)
            logger.info("Serving %s for %s (from_cache=%s)", kind, settings.city, from_cache)
            refresher.start_refresh(key, fetch)
    finally:
        refresher.shutdown()

    if kind == HOURLY:
        return format_hourly(value, theme, hours, settings.timezone)
    return format_current(value, theme)


async def _run_both(settings: Settings, hours: int, timeout: float, theme) -> tuple:
    cache = TTLCache(settings.cache_ttl, settings.cache_file)
    refresher = BackgroundRefresher(cache)
    current_key = cache_key(settings.city, CURRENT)
    hourly_key = cache_key(settings.city, HOURLY)
    try:
        async with httpx.AsyncClient() as client:
            coords = await get_city_coordinates(settings.city, client, CoordinateStore(settings.geocode_file),
                                                timeout=settings.request_timeout)
            fetchers = make_fetchers(coords, client, max_attempts=settings.max_attempts,
                                     timeout=settings.request_timeout)
            result = await fetch_both(cache, current_key, fetchers[CURRENT], hourly_key, fetchers[HOURLY],
                                      timeout, refresher=refresher)
    finally:
        refresher.shutdown()

    sections = [
        format_current(result.first, theme) if result.first is not None else unavailable(CURRENT),
        format_hourly(result.second, theme, hours, settings.timezone) if result.second is not None
        else unavailable(HOURLY),
    ]
    return result, sections


@app.command()
def current(city: Optional[str] = CityOption, color: Optional[str] = ColorOption,
            no_emoji: bool = NoEmojiOption, verbose: bool = VerboseOption):
    """Display current weather for a city."""
    settings, theme = _prepare(city, color, no_emoji, verbose)
    try:
        text = asyncio.run(_run_single(settings, CURRENT, 0, theme))
    except WeatherClientError as e:
        logger.error("Current weather failed for %s: %s", settings.city, e)
        _fail(f"Could not get current weather for {settings.city}: {e}")
    typer.echo(text)


@app.command()
def hourly(city: Optional[str] = CityOption, hours: Optional[int] = HoursOption,
           color: Optional[str] = ColorOption, no_emoji: bool = NoEmojiOption,
           verbose: bool = VerboseOption):
    """Display hourly forecast for a city."""
    settings, theme = _prepare(city, color, no_emoji, verbose)
    hours = settings.hours if hours is None else hours
    try:
        text = asyncio.run(_run_single(settings, HOURLY, hours, theme))
    except WeatherClientError as e:
        logger.error("Hourly forecast failed for %s: %s", settings.city, e)
        _fail(f"Could not get hourly forecast for {settings.city}: {e}")
    typer.echo(text)


@app.command()
def both(city: Optional[str] = CityOption, hours: Optional[int] = HoursOption,
         timeout: Optional[float] = typer.Option(None, "--timeout", help="Seconds to wait for both forecasts"),
         color: Optional[str] = ColorOption, no_emoji: bool = NoEmojiOption,
         verbose: bool = VerboseOption):
    """Display both current and hourly forecasts, fetched concurrently."""
    settings, theme = _prepare(city, color, no_emoji, verbose)
    hours = settings.hours if hours is None else hours
    timeout = settings.both_timeout if timeout is None else timeout
    try:
        result, sections = asyncio.run(_run_both(settings, hours, timeout, theme))
    except WeatherClientError as e:
        logger.error("Forecast failed for %s: %s", settings.city, e)
        _fail(f"Could not get weather for {settings.city}: {e}")

    for section in sections:
        typer.echo(section)
    for warning in result.errors:
        logger.warning("Partial result: %s", warning)
    if result.empty:
        _fail(f"No weather data available for {settings.city}.")


@app.command()
def serve(port: Optional[int] = typer.Option(None, "--port", "-p", help="Port number to run the server on"),
          verbose: bool = VerboseOption):
    """Start a local HTTP service exposing cached weather data as JSON."""
    from .server import run_server

    settings, _ = _prepare(None, None, False, verbose)
    run_server(settings, port)


def main():
    app()
