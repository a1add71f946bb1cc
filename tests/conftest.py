import sys
from pathlib import Path

import pytest

PROJECT_ROOT = Path(__file__).resolve().parents[1]
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from meteo.models import Coordinates, CurrentWeather, HourlyForecast  # noqa: E402


@pytest.fixture(autouse=True)
def _test_env(monkeypatch, tmp_path):
    monkeypatch.setenv("METEO_CACHE_DIR", str(tmp_path / "cache"))
    monkeypatch.setenv("METEO_LOG_DIR", str(tmp_path / "logs"))
    monkeypatch.delenv("METEO_CITY", raising=False)
    monkeypatch.delenv("METEO_CACHE_TTL", raising=False)


@pytest.fixture(autouse=True)
def _block_network(monkeypatch, request):
    if request.node.get_closest_marker("integration") or request.node.get_closest_marker("network"):
        return

    import httpx

    def _boom(*args, **kwargs):
        raise RuntimeError(
            "Network is blocked in unit tests. "
            "Mock httpx or mark the test with @pytest.mark.network"
        )

    monkeypatch.setattr(httpx.Client, "request", _boom, raising=True)
    monkeypatch.setattr(httpx.AsyncClient, "request", _boom, raising=True)


class FakeClock:
    def __init__(self, now: float = 1_700_000_000.0):
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def belgrade():
    return Coordinates(name="Belgrade", latitude=44.804, longitude=20.4651, country="Serbia")


@pytest.fixture
def current_payload():
    return {
        "latitude": 44.8,
        "longitude": 20.46,
        "current": {
            "time": "2024-05-01T12:00",
            "temperature_2m": 21.4,
            "relative_humidity_2m": 48,
            "windspeed_10m": 11.2,
            "winddirection_10m": 270,
            "weathercode": 2,
            "surface_pressure": 1004.6,
        },
    }


@pytest.fixture
def hourly_payload():
    return {
        "latitude": 44.8,
        "longitude": 20.46,
        "hourly": {
            "time": ["2024-05-01T00:00", "2024-05-01T01:00", "2024-05-01T02:00", "2024-05-01T03:00"],
            "temperature_2m": [14.1, 13.6, 13.0, 12.8],
            "relative_humidity_2m": [71, 74, 77, 80],
            "windspeed_10m": [5.2, 4.8, 4.1, 3.9],
            "winddirection_10m": [180, 190, 200, 10],
            "weathercode": [0, 1, 3, 61],
            "surface_pressure": [1008.0, 1008.4, 1008.9, 1009.1],
        },
    }


@pytest.fixture
def current_weather(current_payload):
    return CurrentWeather.from_api(current_payload)


@pytest.fixture
def hourly_forecast(hourly_payload):
    return HourlyForecast.from_api(hourly_payload)
