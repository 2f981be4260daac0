"""Clients for the partner inverter, weather and meter services."""

from solardesk.config import Settings
from solardesk.sources.inverter import InverterSource
from solardesk.sources.meter import MeterSource
from solardesk.sources.weather import WeatherSource

__all__ = ["InverterSource", "MeterSource", "WeatherSource", "build_sources"]


def build_sources(settings: Settings) -> tuple[InverterSource, MeterSource, WeatherSource]:
    """Create source clients from settings."""
    timeout = settings.upstream_timeout_seconds
    inverter = InverterSource(
        settings.inverter_api_url, settings.inverter_api_token, timeout=timeout
    )
    weather = WeatherSource(
        settings.inverter_api_url, settings.inverter_api_token, timeout=timeout
    )
    meter = MeterSource(settings.meter_api_url, settings.meter_api_token, timeout=timeout)
    return inverter, meter, weather
