"""
OpenWeather current-conditions adapter.
"""
import logging
import os
from typing import Any, Dict

from .base_adapter import FetchContext, SourceAdapter
from .http_client import HttpClient, RetryConfig

logger = logging.getLogger(__name__)


def build_retry_config(config: Dict[str, Any], default_timeout: float) -> RetryConfig:
    """Read the shared retry keys used by every live adapter's config block."""
    return RetryConfig(
        max_retries=config.get("max_retries", 2),
        base_delay_seconds=config.get("retry_base_seconds", 0.5),
        max_delay_seconds=config.get("retry_max_seconds", 10.0),
        jitter_ratio=config.get("retry_jitter_ratio", 0.3),
        timeout_seconds=config.get("timeout_seconds", default_timeout),
    )


class OpenWeatherAdapter(SourceAdapter):
    """
    Fetches current weather at the driver's position.

    The driver's position comes from the location adapter it is given, so
    this adapter depends on the live-location feed but never on the
    collector's results.
    """

    def __init__(self, config: Dict[str, Any], location_adapter: SourceAdapter):
        super().__init__("weather_data", config)
        self.location_adapter = location_adapter
        self.base_url = config.get("base_url", "https://api.openweathermap.org/data/2.5/weather")
        self.units = config.get("units", "imperial")
        self.api_key = config.get("api_key") or os.getenv(config.get("api_key_env", "OPENWEATHER_API_KEY"))
        self.client = HttpClient(
            source_id=self.source_id,
            retry_config=build_retry_config(config, default_timeout=8.0),
            rate_limit_per_minute=config.get("rate_limit_per_minute"),
            rate_limit_burst=config.get("rate_limit_burst"),
        )

    def _fetch(self, context: FetchContext) -> Dict[str, Any]:
        if not self.api_key:
            raise ValueError("OpenWeather API key is not configured")

        location = self.location_adapter.fetch(context)
        params = {
            "lat": location["latitude"],
            "lon": location["longitude"],
            "appid": self.api_key,
            "units": self.units,
        }
        logger.debug(f"Requesting weather for driver {context.driver_id}")
        return self.client.get_json(self.base_url, params=params, cancel_event=context.cancel_event)
