"""Canonicalization of validated source data."""
from .canonical import (
    CanonicalContext,
    HistoricalData,
    LocationData,
    RouteData,
    SpecialEventsData,
    TrafficData,
    WeatherData,
)
from .transformer import (
    Transformer,
    congestion_to_condition,
    congestion_to_delay_minutes,
    determine_traffic_level,
    meters_to_miles,
)

__all__ = [
    "CanonicalContext",
    "HistoricalData",
    "LocationData",
    "RouteData",
    "SpecialEventsData",
    "TrafficData",
    "WeatherData",
    "Transformer",
    "congestion_to_condition",
    "congestion_to_delay_minutes",
    "determine_traffic_level",
    "meters_to_miles",
]
