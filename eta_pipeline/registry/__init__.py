"""
Source registry for the ETA data pipeline.

Holds the immutable per-source configuration (timeouts, retries, cache TTL,
fallback policy, validation rules) and the adapter registered for each
source type.
"""
from .source_config import (
    ALL_SOURCE_TYPES,
    DRIVER_LOCATION,
    HERE_FLEET,
    HISTORICAL_DATA,
    MAPBOX_DIRECTIONS,
    PRIMARY_ROUTING_SOURCE,
    SECONDARY_ROUTING_SOURCE,
    SPECIAL_EVENTS,
    TRAFFIC_DATA,
    WEATHER_DATA,
    CollectionFrequency,
    DataSourceConfig,
    FallbackStrategy,
    RuleKind,
    ValidationRule,
)
from .source_registry import SourceRegistry, get_default_configs

__all__ = [
    "ALL_SOURCE_TYPES",
    "DRIVER_LOCATION",
    "HERE_FLEET",
    "HISTORICAL_DATA",
    "MAPBOX_DIRECTIONS",
    "PRIMARY_ROUTING_SOURCE",
    "SECONDARY_ROUTING_SOURCE",
    "SPECIAL_EVENTS",
    "TRAFFIC_DATA",
    "WEATHER_DATA",
    "CollectionFrequency",
    "DataSourceConfig",
    "FallbackStrategy",
    "RuleKind",
    "SourceRegistry",
    "ValidationRule",
    "get_default_configs",
]
