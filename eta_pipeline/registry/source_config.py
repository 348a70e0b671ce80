"""
Source configuration models.

Each source type has exactly one DataSourceConfig describing how often it is
collected, how long a fetch may take, how many times it is retried, how long
its data stays fresh in the cache, what to do when it fails, and which rules
its raw payload must satisfy.
"""
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Callable, Dict, Optional, Tuple


# Source type identifiers
DRIVER_LOCATION = "driver_location"
HERE_FLEET = "here_fleet"
MAPBOX_DIRECTIONS = "mapbox_directions"
WEATHER_DATA = "weather_data"
TRAFFIC_DATA = "traffic_data"
HISTORICAL_DATA = "historical_data"
SPECIAL_EVENTS = "special_events"

ALL_SOURCE_TYPES: Tuple[str, ...] = (
    DRIVER_LOCATION,
    HERE_FLEET,
    MAPBOX_DIRECTIONS,
    WEATHER_DATA,
    TRAFFIC_DATA,
    HISTORICAL_DATA,
    SPECIAL_EVENTS,
)

# Route precedence: primary provider first
PRIMARY_ROUTING_SOURCE = MAPBOX_DIRECTIONS
SECONDARY_ROUTING_SOURCE = HERE_FLEET


class CollectionFrequency(Enum):
    """How often a source is expected to refresh."""
    REALTIME = "realtime"
    MINUTE = "minute"
    FIVE_MINUTES = "five_minutes"
    FIFTEEN_MINUTES = "fifteen_minutes"
    HOURLY = "hourly"
    DAILY = "daily"


class FallbackStrategy(Enum):
    """Policy applied when a source exhausts its timeout/retry budget."""
    USE_CACHED = "use_cached"
    USE_ALTERNATIVE_SOURCE = "use_alternative_source"
    USE_HISTORICAL_AVERAGE = "use_historical_average"
    SKIP_SOURCE = "skip_source"


class RuleKind(Enum):
    """Kinds of declarative validation rules."""
    REQUIRED = "required"
    MIN = "min"
    MAX = "max"
    RANGE = "range"
    FORMAT = "format"
    CUSTOM = "custom"


@dataclass(frozen=True)
class ValidationRule:
    """
    Declarative check against one field of a raw payload.

    Attributes:
        field: Dot path into the payload. Numeric segments index into
            sequences, e.g. ``routes.0.duration``.
        kind: Rule kind
        error_message: Message recorded when the rule fails
        value: Rule parameter: bound for min/max, (low, high) for range,
            regex pattern for format, predicate for custom
    """
    field: str
    kind: RuleKind
    error_message: str
    value: Any = None


@dataclass(frozen=True)
class DataSourceConfig:
    """Immutable per-source configuration."""
    source_type: str
    frequency: CollectionFrequency
    timeout_seconds: float
    retry_count: int
    cache_ttl_seconds: float
    fallback_strategy: FallbackStrategy
    validation_rules: Tuple[ValidationRule, ...] = ()
    transform: Optional[Callable[[Dict[str, Any]], Dict[str, Any]]] = None
    alternative_source: Optional[str] = None
    historical_baseline: Optional[Dict[str, Any]] = field(default=None, hash=False)

    @property
    def max_attempts(self) -> int:
        """First attempt plus retries."""
        return 1 + max(0, self.retry_count)


def required(field_path: str, message: str) -> ValidationRule:
    return ValidationRule(field_path, RuleKind.REQUIRED, message)


def in_range(field_path: str, low: float, high: float, message: str) -> ValidationRule:
    return ValidationRule(field_path, RuleKind.RANGE, message, (low, high))
