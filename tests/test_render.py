import pytest

from meteo.forecast import cache_key
from meteo.render import (
    DARK_THEME,
    NO_COLOR,
    degrees_to_compass,
    format_current,
    format_hourly,
    get_theme,
    unavailable,
    weather_description,
)


def test_weather_description():
    assert weather_description(0) == "☀️ Clear sky"
    assert weather_description(63, emoji=False) == "Rain"
    assert weather_description(12345, emoji=False) == "Unknown"


@pytest.mark.parametrize("deg, expected", [(0, "N"), (44, "NE"), (90, "E"), (200, "S"), (350, "N"), (-90, "W")])
def test_degrees_to_compass(deg, expected):
    assert degrees_to_compass(deg) == expected


def test_get_theme(monkeypatch):
    assert get_theme("none") == NO_COLOR
    assert get_theme("dark", emoji=False).bold == DARK_THEME.bold
    assert get_theme("dark", emoji=False).emoji is False

    monkeypatch.setenv("TERM", "dumb")
    assert get_theme("auto").reset == ""
    monkeypatch.setenv("TERM", "xterm-256color")
    assert get_theme("auto").reset == "\033[0m"


def test_format_current(current_weather):
    text = format_current(current_weather, get_theme("none", emoji=False))

    assert "Current weather:" in text
    assert "21.4 °C" in text
    assert "48 %" in text
    direction_row = next(line for line in text.splitlines() if line.startswith("Wind direction"))
    assert direction_row.split()[-1] == "W"
    assert "Partly cloudy" in text
    assert "\033[" not in text


def test_format_hourly_limits_rows(hourly_forecast):
    text = format_hourly(hourly_forecast, get_theme("none", emoji=False), hours=2, tz_name="UTC")

    assert "Hourly forecast (UTC):" in text
    assert "2024-05-01 00:00" in text
    assert "2024-05-01 01:00" in text
    assert "2024-05-01 02:00" not in text


def test_format_hourly_converts_time_zone(hourly_forecast):
    text = format_hourly(hourly_forecast, NO_COLOR, hours=1, tz_name="Europe/Belgrade")

    assert "2024-05-01 02:00" in text


def test_truncated_does_not_mutate(hourly_forecast):
    short = hourly_forecast.truncated(2)

    assert len(short) == 2
    assert len(hourly_forecast) == 4
    assert hourly_forecast.truncated(0) == hourly_forecast
    assert hourly_forecast.truncated(10) == hourly_forecast


def test_unavailable_message():
    assert unavailable("hourly") == "Hourly forecast unavailable (timeout or error)."


def test_cache_key_convention():
    assert cache_key(" Belgrade ", "current") == "belgrade_current"
    assert cache_key("belgrade", "hourly") == "belgrade_hourly"
    with pytest.raises(ValueError):
        cache_key("belgrade", "daily")
