from dataclasses import asdict, dataclass, field, replace
from typing import Any, Dict, List

HOURLY_SERIES = ("time", "temperature", "humidity", "windspeed", "winddirection", "pressure", "weathercode")


@dataclass
class Coordinates:
    name: str
    latitude: float
    longitude: float
    country: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Coordinates":
        return cls(
            name=data["name"],
            latitude=float(data["latitude"]),
            longitude=float(data["longitude"]),
            country=data.get("country", ""),
        )


@dataclass
class CurrentWeather:
    """Single-point reading from the forecast provider."""

    kind = "current"

    latitude: float
    longitude: float
    time: str
    temperature: float
    humidity: float
    windspeed: float
    winddirection: float
    pressure: float
    weathercode: int

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "CurrentWeather":
        current = payload["current"]
        return cls(
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            time=current.get("time", ""),
            temperature=float(current["temperature_2m"]),
            humidity=float(current["relative_humidity_2m"]),
            windspeed=float(current["windspeed_10m"]),
            winddirection=float(current["winddirection_10m"]),
            pressure=float(current["surface_pressure"]),
            weathercode=int(current["weathercode"]),
        )

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "CurrentWeather":
        return cls(**data)


@dataclass
class HourlyForecast:
    """Time series; every list has one element per hour."""

    kind = "hourly"

    latitude: float
    longitude: float
    time: List[str] = field(default_factory=list)
    temperature: List[float] = field(default_factory=list)
    humidity: List[float] = field(default_factory=list)
    windspeed: List[float] = field(default_factory=list)
    winddirection: List[float] = field(default_factory=list)
    pressure: List[float] = field(default_factory=list)
    weathercode: List[int] = field(default_factory=list)

    @classmethod
    def from_api(cls, payload: Dict[str, Any]) -> "HourlyForecast":
        hourly = payload["hourly"]
        forecast = cls(
            latitude=float(payload["latitude"]),
            longitude=float(payload["longitude"]),
            time=list(hourly["time"]),
            temperature=[float(v) for v in hourly["temperature_2m"]],
            humidity=[float(v) for v in hourly["relative_humidity_2m"]],
            windspeed=[float(v) for v in hourly["windspeed_10m"]],
            winddirection=[float(v) for v in hourly["winddirection_10m"]],
            pressure=[float(v) for v in hourly["surface_pressure"]],
            weathercode=[int(v) for v in hourly["weathercode"]],
        )
        lengths = {len(getattr(forecast, name)) for name in HOURLY_SERIES}
        if len(lengths) > 1:
            raise ValueError(f"hourly series have different lengths: {sorted(lengths)}")
        return forecast

    def __len__(self) -> int:
        return len(self.time)

    def truncated(self, hours: int) -> "HourlyForecast":
        if hours <= 0 or hours >= len(self):
            return replace(self, **{name: list(getattr(self, name)) for name in HOURLY_SERIES})
        return replace(self, **{name: getattr(self, name)[:hours] for name in HOURLY_SERIES})

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "HourlyForecast":
        return cls(**data)
