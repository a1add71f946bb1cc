"""Open-Meteo weather client with a persistent TTL cache and background refresh."""

__version__ = "0.1.0"
