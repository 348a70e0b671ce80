"""
Mapbox Directions adapter for the primary routing provider.
"""
import logging
import os
from typing import Any, Callable, Dict, Optional, Sequence

from .base_adapter import FetchContext, SourceAdapter
from .http_client import HttpClient
from .weather_adapter import build_retry_config

logger = logging.getLogger(__name__)

# load_id -> (longitude, latitude)
DestinationLookup = Callable[[str], Sequence[float]]


class MapboxDirectionsAdapter(SourceAdapter):
    """
    Requests a driving route from the driver's position to the load's
    destination.

    Destination resolution order: ``context.attributes["destination"]``,
    then the injected lookup, then the ``destination`` config key.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        location_adapter: SourceAdapter,
        destination_lookup: Optional[DestinationLookup] = None,
    ):
        super().__init__("mapbox_directions", config)
        self.location_adapter = location_adapter
        self.destination_lookup = destination_lookup
        self.base_url = config.get(
            "base_url", "https://api.mapbox.com/directions/v5/mapbox/driving-traffic/"
        )
        self.access_token = config.get("access_token") or os.getenv(
            config.get("access_token_env", "MAPBOX_ACCESS_TOKEN")
        )
        self.client = HttpClient(
            source_id=self.source_id,
            retry_config=build_retry_config(config, default_timeout=10.0),
            rate_limit_per_minute=config.get("rate_limit_per_minute"),
            rate_limit_burst=config.get("rate_limit_burst"),
        )

    def _fetch(self, context: FetchContext) -> Dict[str, Any]:
        if not self.access_token:
            raise ValueError("Mapbox access token is not configured")

        destination = self._resolve_destination(context)
        location = self.location_adapter.fetch(context)
        coordinates = (
            f"{location['longitude']},{location['latitude']};"
            f"{destination[0]},{destination[1]}"
        )
        params = {
            "access_token": self.access_token,
            "annotations": "duration,distance,speed",
            "overview": "full",
            "geometries": "geojson",
        }
        logger.debug(f"Requesting directions for load {context.load_id}")
        return self.client.get_json(
            f"{self.base_url}{coordinates}", params=params, cancel_event=context.cancel_event
        )

    def _resolve_destination(self, context: FetchContext) -> Sequence[float]:
        destination = context.attributes.get("destination")
        if destination is None and self.destination_lookup is not None:
            destination = self.destination_lookup(context.load_id)
        if destination is None:
            destination = self.config.get("destination")
        if not destination or len(destination) != 2:
            raise ValueError(f"No destination known for load {context.load_id}")
        return destination
