"""
Transformation stage: canonicalize per-provider payloads.

Each validated payload is parsed by the shape of the provider that produced
it, so a routing slot filled by an alternative-source fallback still parses
correctly. The transform reads no clock; identical input always yields an
identical CanonicalContext.
"""
import logging
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Mapping, Optional

from ..ingestion.collector import CollectedSource
from ..registry import (
    DRIVER_LOCATION,
    HERE_FLEET,
    HISTORICAL_DATA,
    MAPBOX_DIRECTIONS,
    PRIMARY_ROUTING_SOURCE,
    SECONDARY_ROUTING_SOURCE,
    SPECIAL_EVENTS,
    TRAFFIC_DATA,
    WEATHER_DATA,
)
from .canonical import (
    CanonicalContext,
    HistoricalData,
    LocationData,
    RouteData,
    SpecialEventsData,
    TrafficData,
    WeatherData,
)

logger = logging.getLogger(__name__)

METERS_PER_MILE = 1609.344

# (upper bound of current/typical duration ratio, level), checked in order
TRAFFIC_LEVEL_THRESHOLDS = (
    (1.10, "low"),
    (1.30, "moderate"),
    (1.60, "heavy"),
)

# (upper bound of congestion level, condition), checked in order
CONGESTION_CONDITIONS = (
    (3, "light"),
    (6, "moderate"),
    (8, "heavy"),
)

MINUTES_PER_CONGESTION_LEVEL = 6


def meters_to_miles(meters: Optional[float]) -> Optional[float]:
    if meters is None:
        return None
    return meters / METERS_PER_MILE


def determine_traffic_level(current_duration: float, typical_duration: Optional[float]) -> str:
    """Coarse traffic level from the ratio of current to typical duration."""
    if not typical_duration:
        return "moderate"

    ratio = current_duration / typical_duration
    for upper, level in TRAFFIC_LEVEL_THRESHOLDS:
        if ratio < upper:
            return level
    return "severe"


def congestion_to_condition(congestion_level: float) -> str:
    for upper, condition in CONGESTION_CONDITIONS:
        if congestion_level <= upper:
            return condition
    return "severe"


def congestion_to_delay_minutes(congestion_level: float) -> int:
    """Linear model: 0 is no delay, 10 is a one hour delay."""
    return int(round(congestion_level * MINUTES_PER_CONGESTION_LEVEL))


def _epoch_to_datetime(value: Any, millis: bool = False) -> Optional[datetime]:
    if not isinstance(value, (int, float)) or isinstance(value, bool):
        return None
    seconds = value / 1000.0 if millis else value
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _parse_iso(value: Any) -> Optional[datetime]:
    if isinstance(value, datetime):
        return value
    if not isinstance(value, str):
        return None
    try:
        return datetime.fromisoformat(value.replace("Z", "+00:00"))
    except ValueError:
        logger.debug(f"Unparseable timestamp: {value}")
        return None


def parse_location(data: Mapping[str, Any]) -> LocationData:
    return LocationData(
        latitude=data["latitude"],
        longitude=data["longitude"],
        timestamp=data.get("timestamp"),
        speed=data.get("speed") or 0.0,
        heading=data.get("heading") or 0.0,
        accuracy=data.get("accuracy") or 10.0,
    )


def parse_mapbox_route(data: Mapping[str, Any]) -> Optional[RouteData]:
    routes = data.get("routes") or []
    if not routes:
        return None

    route = routes[0]
    duration = route["duration"]
    typical = route.get("duration_typical")
    return RouteData(
        provider=MAPBOX_DIRECTIONS,
        distance_miles=meters_to_miles(route.get("distance") or 0.0),
        duration_seconds=duration,
        typical_duration_seconds=typical,
        traffic_level=determine_traffic_level(duration, typical),
        geometry=route.get("geometry"),
        legs=list(route.get("legs") or []),
    )


def parse_here_route(data: Mapping[str, Any]) -> Optional[RouteData]:
    route = data.get("route")
    if not route:
        return None

    duration = route["duration"]
    delay = route.get("trafficDelay")
    typical = duration - delay if delay is not None else None
    return RouteData(
        provider=HERE_FLEET,
        distance_miles=meters_to_miles(route.get("distance") or 0.0),
        duration_seconds=duration,
        typical_duration_seconds=typical,
        traffic_level=determine_traffic_level(duration, typical),
        geometry=route.get("geometry"),
        eta=_parse_iso(data.get("eta")),
    )


ROUTE_PARSERS: Dict[str, Callable[[Mapping[str, Any]], Optional[RouteData]]] = {
    MAPBOX_DIRECTIONS: parse_mapbox_route,
    HERE_FLEET: parse_here_route,
}


def parse_weather(data: Mapping[str, Any]) -> WeatherData:
    summary = data["weather"][0]
    main = data.get("main") or {}
    rain = data.get("rain") or {}
    return WeatherData(
        condition=summary["main"].lower(),
        description=summary.get("description"),
        temperature=main.get("temp"),
        feels_like=main.get("feels_like"),
        humidity=main.get("humidity"),
        precipitation=rain.get("1h") or 0.0,
        wind_speed=(data.get("wind") or {}).get("speed") or 0.0,
        visibility_miles=meters_to_miles(data.get("visibility")),
        alerts=list(data.get("alerts") or []),
        timestamp=_epoch_to_datetime(data.get("dt")),
        is_historical_average=bool(data.get("isHistoricalAverage", False)),
    )


def parse_traffic(data: Mapping[str, Any]) -> TrafficData:
    level = data["congestionLevel"]
    return TrafficData(
        condition=congestion_to_condition(level),
        congestion_level=level,
        delay_minutes=congestion_to_delay_minutes(level),
        average_speed=data.get("averageSpeed"),
        incidents=list(data.get("incidents") or []),
        timestamp=_epoch_to_datetime(data.get("timestamp"), millis=True),
        is_historical_average=bool(data.get("isHistoricalAverage", False)),
    )


def parse_historical(data: Mapping[str, Any]) -> HistoricalData:
    return HistoricalData(
        average_delivery_time=data["averageDeliveryTime"],
        delay_frequency=data.get("delayFrequency"),
        common_delay_causes=list(data.get("commonDelayCauses") or []),
        delivery_times_by_day_of_week=dict(data.get("deliveryTimesByDayOfWeek") or {}),
        delivery_times_by_time_of_day=dict(data.get("deliveryTimesByTimeOfDay") or {}),
        seasonal_factors=dict(data.get("seasonalFactors") or {}),
    )


def parse_special_events(data: Mapping[str, Any]) -> SpecialEventsData:
    return SpecialEventsData(
        events=list(data.get("events") or []),
        holidays=list(data.get("holidays") or []),
        road_closures=list(data.get("roadClosures") or []),
    )


class Transformer:
    """Builds a CanonicalContext from validated source data."""

    BRANCH_PARSERS = {
        "location": (DRIVER_LOCATION, parse_location),
        "weather": (WEATHER_DATA, parse_weather),
        "traffic": (TRAFFIC_DATA, parse_traffic),
        "historical": (HISTORICAL_DATA, parse_historical),
        "special_events": (SPECIAL_EVENTS, parse_special_events),
    }

    def transform(self, validated_data: Mapping[str, CollectedSource]) -> CanonicalContext:
        """
        Canonicalize validated data.

        Each branch is parsed on its own; a branch whose payload cannot be
        parsed is logged and left as None.

        Args:
            validated_data: Source type -> collected source that passed validation

        Returns:
            CanonicalContext; branches without usable input are None
        """
        canonical = CanonicalContext()

        for branch, (source_type, parser) in self.BRANCH_PARSERS.items():
            collected = validated_data.get(source_type)
            if collected is None:
                continue
            try:
                setattr(canonical, branch, parser(collected.data))
            except Exception as e:
                logger.warning(f"Failed to parse {branch} from {source_type}: {type(e).__name__}: {e}")

        canonical.route = self.resolve_route(validated_data)

        present = [name for name, value in vars(canonical).items() if value is not None]
        logger.info(f"Transformed branches: {', '.join(present) or 'none'}")
        return canonical

    def resolve_route(self, validated_data: Mapping[str, CollectedSource]) -> Optional[RouteData]:
        """Primary routing slot first, then secondary; each parsed by its provider."""
        for slot in (PRIMARY_ROUTING_SOURCE, SECONDARY_ROUTING_SOURCE):
            collected = validated_data.get(slot)
            if collected is None:
                continue
            parser = ROUTE_PARSERS.get(collected.provider)
            if parser is None:
                logger.warning(f"No route parser for provider {collected.provider}")
                continue
            try:
                route = parser(collected.data)
            except Exception as e:
                logger.warning(f"Failed to parse route from {collected.provider}: {type(e).__name__}: {e}")
                continue
            if route is not None:
                return route
        return None
