"""
Data quality scoring for validated source data.

This module implements QualityScorer, which turns the set of validated
sources into four scores in [0, 1]:
- completeness: validated source types / registered source types
- accuracy: trust in where each payload came from (fresh beats fallback)
- timeliness: how current each payload is likely to be
- consistency: whether each payload passes internal sanity checks

Design decisions:
- Every score is a per-source contribution in [0, 1], summed over
  validated sources and divided by the number of registered sources, so
  each score is bounded and grows with every trusted, fresh, consistent
  source added
- Consistency checks are per-provider functions, one per payload shape
"""
import logging
from dataclasses import asdict, dataclass
from typing import Any, Callable, Dict, Mapping

from ..ingestion.collector import CollectedSource, CollectionOrigin
from ..registry import (
    DRIVER_LOCATION,
    HERE_FLEET,
    HISTORICAL_DATA,
    MAPBOX_DIRECTIONS,
    SPECIAL_EVENTS,
    TRAFFIC_DATA,
    WEATHER_DATA,
)

logger = logging.getLogger(__name__)

TRUST_BY_ORIGIN = {
    CollectionOrigin.FRESH: 1.0,
    CollectionOrigin.CACHE: 1.0,
    CollectionOrigin.ALTERNATIVE_SOURCE: 0.8,
    CollectionOrigin.STALE_CACHE: 0.6,
    CollectionOrigin.HISTORICAL_AVERAGE: 0.4,
}

FRESHNESS_BY_ORIGIN = {
    CollectionOrigin.FRESH: 1.0,
    CollectionOrigin.ALTERNATIVE_SOURCE: 1.0,
    CollectionOrigin.CACHE: 0.9,
    CollectionOrigin.STALE_CACHE: 0.3,
    CollectionOrigin.HISTORICAL_AVERAGE: 0.2,
}


@dataclass
class DataQualityMetrics:
    """Aggregate quality of one invocation's validated data."""
    completeness: float
    accuracy: float
    timeliness: float
    consistency: float

    @classmethod
    def zero(cls) -> "DataQualityMetrics":
        return cls(0.0, 0.0, 0.0, 0.0)

    def to_dict(self) -> Dict[str, float]:
        return asdict(self)


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _non_negative(value: Any) -> bool:
    """Absent values pass; present values must be numbers >= 0."""
    return value is None or (_is_number(value) and value >= 0)


def _location_consistent(data: Mapping[str, Any]) -> bool:
    lat, lon = data.get("latitude"), data.get("longitude")
    return (
        _is_number(lat) and -90 <= lat <= 90
        and _is_number(lon) and -180 <= lon <= 180
        and _non_negative(data.get("speed"))
    )


def _here_route_consistent(data: Mapping[str, Any]) -> bool:
    route = data.get("route") or {}
    duration = route.get("duration")
    delay = route.get("trafficDelay")
    if not (_is_number(duration) and duration > 0 and _non_negative(route.get("distance"))):
        return False
    return delay is None or (_is_number(delay) and 0 <= delay <= duration)


def _mapbox_route_consistent(data: Mapping[str, Any]) -> bool:
    routes = data.get("routes") or []
    if not routes:
        return False
    route = routes[0]
    duration = route.get("duration")
    typical = route.get("duration_typical")
    return (
        _is_number(duration) and duration > 0
        and _non_negative(route.get("distance"))
        and (typical is None or (_is_number(typical) and typical > 0))
    )


def _weather_consistent(data: Mapping[str, Any]) -> bool:
    humidity = (data.get("main") or {}).get("humidity")
    return (
        _non_negative(data.get("visibility"))
        and _non_negative((data.get("wind") or {}).get("speed"))
        and (humidity is None or (_is_number(humidity) and 0 <= humidity <= 100))
    )


def _traffic_consistent(data: Mapping[str, Any]) -> bool:
    level = data.get("congestionLevel")
    return (
        _is_number(level) and 0 <= level <= 10
        and _non_negative(data.get("averageSpeed"))
        and isinstance(data.get("incidents", []), list)
    )


def _historical_consistent(data: Mapping[str, Any]) -> bool:
    average = data.get("averageDeliveryTime")
    by_day = data.get("deliveryTimesByDayOfWeek") or {}
    return (
        _is_number(average) and average > 0
        and all(_is_number(v) and v > 0 for v in by_day.values())
    )


def _events_consistent(data: Mapping[str, Any]) -> bool:
    return isinstance(data.get("events"), list) and isinstance(data.get("roadClosures", []), list)


CONSISTENCY_CHECKS: Dict[str, Callable[[Mapping[str, Any]], bool]] = {
    DRIVER_LOCATION: _location_consistent,
    HERE_FLEET: _here_route_consistent,
    MAPBOX_DIRECTIONS: _mapbox_route_consistent,
    WEATHER_DATA: _weather_consistent,
    TRAFFIC_DATA: _traffic_consistent,
    HISTORICAL_DATA: _historical_consistent,
    SPECIAL_EVENTS: _events_consistent,
}


class QualityScorer:
    """Scores validated data against the number of registered sources."""

    def __init__(self, registered_source_count: int):
        self.registered_source_count = registered_source_count

    def score(self, validated_data: Mapping[str, CollectedSource]) -> DataQualityMetrics:
        """
        Compute quality metrics for the validated sources.

        Args:
            validated_data: Source type -> collected source that passed validation

        Returns:
            DataQualityMetrics with every field in [0, 1]
        """
        if self.registered_source_count <= 0 or not validated_data:
            return DataQualityMetrics.zero()

        total = float(self.registered_source_count)
        trust = freshness = consistent = 0.0

        for collected in validated_data.values():
            trust += TRUST_BY_ORIGIN.get(collected.origin, 0.0)
            freshness += FRESHNESS_BY_ORIGIN.get(collected.origin, 0.0)
            if self.is_consistent(collected):
                consistent += 1.0

        return DataQualityMetrics(
            completeness=min(1.0, len(validated_data) / total),
            accuracy=min(1.0, trust / total),
            timeliness=min(1.0, freshness / total),
            consistency=min(1.0, consistent / total),
        )

    def is_consistent(self, collected: CollectedSource) -> bool:
        check = CONSISTENCY_CHECKS.get(collected.provider)
        if check is None:
            return True
        try:
            return bool(check(collected.data))
        except (AttributeError, KeyError, TypeError, IndexError) as e:
            logger.debug(f"Consistency check for {collected.source_type} failed: {e}")
            return False
