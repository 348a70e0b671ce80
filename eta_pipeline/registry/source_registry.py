"""
Catalog of per-source configuration and adapters.

The registry is built once at startup from the seven default source
configurations, optionally overridden by the ``sources`` section of the YAML
config. Configurations are never mutated afterwards, so concurrent readers
need no locking. Adapters are registered before the first pipeline
invocation.
"""
import dataclasses
import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional

from ..errors import ConfigurationError
from .source_config import (
    ALL_SOURCE_TYPES,
    DRIVER_LOCATION,
    HERE_FLEET,
    HISTORICAL_DATA,
    MAPBOX_DIRECTIONS,
    SPECIAL_EVENTS,
    TRAFFIC_DATA,
    WEATHER_DATA,
    CollectionFrequency,
    DataSourceConfig,
    FallbackStrategy,
    RuleKind,
    ValidationRule,
    in_range,
    required,
)

logger = logging.getLogger(__name__)

# Keys accepted in the ``sources.<type>`` section of the config file
OVERRIDABLE_FIELDS = {
    "frequency",
    "timeout_seconds",
    "retry_count",
    "cache_ttl_seconds",
    "fallback_strategy",
    "alternative_source",
    "historical_baseline",
}

# Baselines served by the use_historical_average fallback
DEFAULT_HISTORICAL_BASELINES: Dict[str, Dict[str, Any]] = {
    TRAFFIC_DATA: {
        "congestionLevel": 5,
        "averageSpeed": 45,
        "incidents": [],
        "trafficFlow": "moderate",
    },
    WEATHER_DATA: {
        "weather": [{"main": "Clear", "description": "clear sky"}],
        "main": {"temp": 65, "humidity": 50},
        "wind": {"speed": 5},
        "visibility": 10000,
    },
}


def _is_positive(value: Any) -> bool:
    return isinstance(value, (int, float)) and value > 0


def get_default_configs() -> List[DataSourceConfig]:
    """Return the built-in configuration for every source type."""
    return [
        DataSourceConfig(
            source_type=DRIVER_LOCATION,
            frequency=CollectionFrequency.MINUTE,
            timeout_seconds=5.0,
            retry_count=3,
            cache_ttl_seconds=60.0,
            fallback_strategy=FallbackStrategy.USE_CACHED,
            validation_rules=(
                required("latitude", "Driver latitude is required"),
                required("longitude", "Driver longitude is required"),
                required("timestamp", "Location timestamp is required"),
                in_range("latitude", -90, 90, "Driver latitude must be between -90 and 90"),
                in_range("longitude", -180, 180, "Driver longitude must be between -180 and 180"),
            ),
        ),
        DataSourceConfig(
            source_type=HERE_FLEET,
            frequency=CollectionFrequency.FIVE_MINUTES,
            timeout_seconds=10.0,
            retry_count=3,
            cache_ttl_seconds=300.0,
            fallback_strategy=FallbackStrategy.USE_ALTERNATIVE_SOURCE,
            alternative_source=MAPBOX_DIRECTIONS,
            validation_rules=(
                required("route", "Route data is required from HERE Fleet API"),
                required("route.duration", "Route duration is required from HERE Fleet API"),
                required("eta", "ETA is required from HERE Fleet API"),
            ),
        ),
        DataSourceConfig(
            source_type=MAPBOX_DIRECTIONS,
            frequency=CollectionFrequency.FIVE_MINUTES,
            timeout_seconds=10.0,
            retry_count=3,
            cache_ttl_seconds=300.0,
            fallback_strategy=FallbackStrategy.USE_ALTERNATIVE_SOURCE,
            alternative_source=HERE_FLEET,
            validation_rules=(
                required("routes", "Routes array is required from Mapbox API"),
                required("routes.0.duration", "Duration is required from Mapbox API"),
            ),
        ),
        DataSourceConfig(
            source_type=WEATHER_DATA,
            frequency=CollectionFrequency.HOURLY,
            timeout_seconds=8.0,
            retry_count=2,
            cache_ttl_seconds=3600.0,
            fallback_strategy=FallbackStrategy.USE_CACHED,
            historical_baseline=DEFAULT_HISTORICAL_BASELINES[WEATHER_DATA],
            validation_rules=(
                required("weather", "Weather data is required"),
                required("weather.0.main", "Weather condition is required"),
                required("main.temp", "Temperature is required"),
            ),
        ),
        DataSourceConfig(
            source_type=TRAFFIC_DATA,
            frequency=CollectionFrequency.FIFTEEN_MINUTES,
            timeout_seconds=10.0,
            retry_count=3,
            cache_ttl_seconds=900.0,
            fallback_strategy=FallbackStrategy.USE_CACHED,
            historical_baseline=DEFAULT_HISTORICAL_BASELINES[TRAFFIC_DATA],
            validation_rules=(
                required("congestionLevel", "Congestion level is required"),
                in_range("congestionLevel", 0, 10, "Congestion level must be between 0 and 10"),
            ),
        ),
        DataSourceConfig(
            source_type=HISTORICAL_DATA,
            frequency=CollectionFrequency.DAILY,
            timeout_seconds=15.0,
            retry_count=2,
            cache_ttl_seconds=86400.0,
            fallback_strategy=FallbackStrategy.SKIP_SOURCE,
            validation_rules=(
                required("averageDeliveryTime", "Average delivery time is required"),
                ValidationRule(
                    "averageDeliveryTime",
                    RuleKind.CUSTOM,
                    "Average delivery time must be positive",
                    _is_positive,
                ),
                required("commonDelayCauses", "Common delay causes are required"),
            ),
        ),
        DataSourceConfig(
            source_type=SPECIAL_EVENTS,
            frequency=CollectionFrequency.DAILY,
            timeout_seconds=10.0,
            retry_count=2,
            cache_ttl_seconds=86400.0,
            fallback_strategy=FallbackStrategy.SKIP_SOURCE,
            validation_rules=(
                required("events", "Events array is required"),
            ),
        ),
    ]


class SourceRegistry:
    """
    Read-only catalog of DataSourceConfig objects plus the adapter
    registered for each source type.
    """

    def __init__(self, configs: Optional[Iterable[DataSourceConfig]] = None):
        """
        Initialize the registry.

        Args:
            configs: Source configurations. If None, uses the defaults.

        Raises:
            ConfigurationError: On duplicate source types or dangling
                alternative-source references
        """
        self._configs: Dict[str, DataSourceConfig] = {}
        for config in configs if configs is not None else get_default_configs():
            if config.source_type in self._configs:
                raise ConfigurationError(f"Duplicate source type: {config.source_type}")
            self._configs[config.source_type] = config

        self._adapters: Dict[str, Any] = {}
        self._check_alternatives()

    @classmethod
    def from_config(cls, sources_section: Optional[Mapping[str, Any]]) -> "SourceRegistry":
        """
        Build a registry from the defaults plus per-source overrides.

        Args:
            sources_section: The ``sources`` mapping from the YAML config

        Returns:
            SourceRegistry with overrides applied
        """
        defaults = {c.source_type: c for c in get_default_configs()}

        for source_type, overrides in (sources_section or {}).items():
            if source_type not in defaults:
                raise ConfigurationError(f"Unknown source type in config: {source_type}")
            if not overrides:
                continue

            unknown = set(overrides) - OVERRIDABLE_FIELDS
            if unknown:
                raise ConfigurationError(
                    f"Unsupported keys for sources.{source_type}: {sorted(unknown)}"
                )

            changes = dict(overrides)
            try:
                if "fallback_strategy" in changes:
                    changes["fallback_strategy"] = FallbackStrategy(changes["fallback_strategy"])
                if "frequency" in changes:
                    changes["frequency"] = CollectionFrequency(changes["frequency"])
            except ValueError as e:
                raise ConfigurationError(f"sources.{source_type}: {e}") from e

            defaults[source_type] = dataclasses.replace(defaults[source_type], **changes)
            logger.debug(f"Applied overrides to {source_type}: {sorted(changes)}")

        return cls(defaults.values())

    @property
    def source_types(self) -> List[str]:
        """Registered source types in registration order."""
        return list(self._configs)

    def get_config(self, source_type: str) -> DataSourceConfig:
        """
        Look up the configuration of a source type.

        Raises:
            ConfigurationError: If the type is not registered
        """
        try:
            return self._configs[source_type]
        except KeyError:
            raise ConfigurationError(f"Unregistered source type: {source_type}") from None

    def register_adapter(self, source_type: str, adapter: Any) -> None:
        """Attach the fetch adapter for a registered source type."""
        self.get_config(source_type)
        self._adapters[source_type] = adapter

    def get_adapter(self, source_type: str) -> Optional[Any]:
        return self._adapters.get(source_type)

    def _check_alternatives(self) -> None:
        for config in self._configs.values():
            if config.fallback_strategy is not FallbackStrategy.USE_ALTERNATIVE_SOURCE:
                continue
            if not config.alternative_source:
                raise ConfigurationError(
                    f"{config.source_type} uses use_alternative_source without an alternative_source"
                )
            if config.alternative_source == config.source_type:
                raise ConfigurationError(f"{config.source_type} cannot be its own alternative")
            if config.alternative_source not in self._configs:
                raise ConfigurationError(
                    f"{config.source_type} alternative {config.alternative_source} is not registered"
                )
