"""
Presentation stage: shape enriched data into the consumer payload.

Only branches that survived enrichment are included; absent branches and
null fields are omitted rather than zero-filled. Load and vehicle summaries
come from an injected SummaryLookup owned by the caller.
"""
import logging
from abc import ABC, abstractmethod
from dataclasses import asdict
from datetime import datetime
from typing import Any, Dict, Mapping, Optional

from ..enrichment import EnrichedContext

logger = logging.getLogger(__name__)


def _camel(name: str) -> str:
    head, *rest = name.split("_")
    return head + "".join(part.title() for part in rest)


def to_camel_dict(value: Any) -> Any:
    """Recursively camelCase dict keys and ISO-format datetimes."""
    if isinstance(value, Mapping):
        return {_camel(str(k)): to_camel_dict(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_camel_dict(v) for v in value]
    if isinstance(value, datetime):
        return value.isoformat()
    return value


def _iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value is not None else None


def _without_nulls(block: Dict[str, Any]) -> Dict[str, Any]:
    return {k: v for k, v in block.items() if v is not None}


class SummaryLookup(ABC):
    """Supplies load and vehicle summary blocks for the payload."""

    @abstractmethod
    def load_summary(self, load_id: str) -> Optional[Dict[str, Any]]:
        pass

    @abstractmethod
    def vehicle_summary(self, driver_id: str, load_id: str) -> Optional[Dict[str, Any]]:
        pass


class StaticSummaryLookup(SummaryLookup):
    """Summaries from in-memory mappings, e.g. the ``summaries`` config section."""

    def __init__(
        self,
        loads: Optional[Mapping[str, Dict[str, Any]]] = None,
        vehicles: Optional[Mapping[str, Dict[str, Any]]] = None,
    ):
        self.loads = dict(loads or {})
        self.vehicles = dict(vehicles or {})

    def load_summary(self, load_id: str) -> Optional[Dict[str, Any]]:
        summary = self.loads.get(load_id)
        return dict(summary, id=load_id) if summary is not None else None

    def vehicle_summary(self, driver_id: str, load_id: str) -> Optional[Dict[str, Any]]:
        summary = self.vehicles.get(driver_id)
        return dict(summary) if summary is not None else None


class Presenter:
    """Builds the ``{promptType, userRole, data}`` payload."""

    def __init__(self, summary_lookup: Optional[SummaryLookup] = None):
        self.summary_lookup = summary_lookup

    def present(
        self,
        enriched: Optional[EnrichedContext],
        prompt_type: str,
        user_role: str,
        driver_id: str,
        load_id: str,
    ) -> Dict[str, Any]:
        """
        Shape enriched data for the downstream consumer.

        Args:
            enriched: Output of the enrichment stage; None yields an empty data block
            prompt_type: Consumer prompt type, e.g. ``eta_prediction``
            user_role: Role the payload is built for, e.g. ``carrier``
            driver_id: Driver identifier
            load_id: Load identifier

        Returns:
            Payload dictionary with camelCase keys
        """
        data: Dict[str, Any] = {}
        if enriched is not None:
            data.update(self._branches(enriched))

        if self.summary_lookup is not None:
            load = self.summary_lookup.load_summary(load_id)
            if load is not None:
                data["loadData"] = to_camel_dict(load)
            vehicle = self.summary_lookup.vehicle_summary(driver_id, load_id)
            if vehicle is not None:
                data["vehicleData"] = to_camel_dict(vehicle)

        logger.info(f"Prepared {prompt_type} payload for {user_role} with {len(data)} blocks")
        return {"promptType": prompt_type, "userRole": user_role, "data": data}

    def _branches(self, enriched: EnrichedContext) -> Dict[str, Any]:
        canonical = enriched.canonical
        features = enriched.derived_features
        data: Dict[str, Any] = {}

        if canonical.traffic is not None:
            traffic = canonical.traffic
            data["trafficData"] = {
                "condition": traffic.condition,
                "congestionLevel": traffic.congestion_level,
                "averageSpeed": traffic.average_speed,
                "delayMinutes": traffic.delay_minutes,
                "incidents": traffic.incidents,
                "isHistoricalAverage": traffic.is_historical_average,
                "impact": self._feature(features.traffic_impact),
            }

        if canonical.weather is not None:
            weather = canonical.weather
            data["weatherData"] = {
                "condition": weather.condition,
                "description": weather.description,
                "temperature": weather.temperature,
                "precipitation": weather.precipitation,
                "windSpeed": weather.wind_speed,
                "visibility": weather.visibility_miles,
                "alerts": weather.alerts,
                "isHistoricalAverage": weather.is_historical_average,
                "impact": self._feature(features.weather_impact),
            }

        if canonical.location is not None:
            location = canonical.location
            data["locationData"] = {
                "latitude": location.latitude,
                "longitude": location.longitude,
                "timestamp": location.timestamp,
                "speed": location.speed,
                "heading": location.heading,
                "distanceToDestination": (
                    round(canonical.route.distance_miles, 1) if canonical.route is not None else None
                ),
            }

        if canonical.historical is not None:
            historical = canonical.historical
            data["historicalData"] = {
                "avgDeliveryTime": historical.average_delivery_time,
                "delayFrequency": historical.delay_frequency,
                "commonDelayCauses": historical.common_delay_causes,
                "patterns": self._feature(features.historical_patterns),
            }

        if canonical.route is not None:
            route = canonical.route
            data["routeData"] = {
                "provider": route.provider,
                "originalEta": _iso(enriched.route_eta),
                "currentEta": _iso(enriched.adjusted_eta or enriched.route_eta),
                "remainingDistance": round(route.distance_miles, 1),
                "remainingDrivingTime": int(round(route.duration_seconds / 60)),
                "adjustedDuration": enriched.adjusted_duration_seconds,
                "trafficLevel": route.traffic_level,
            }

        events = canonical.special_events
        if events is not None and (events.events or events.holidays or events.road_closures):
            data["specialEvents"] = {
                "events": events.events,
                "holidays": events.holidays,
                "roadClosures": events.road_closures,
            }

        if enriched.proximity_alerts:
            data["proximityAlerts"] = enriched.proximity_alerts

        risk = features.combined_risk_factors
        if risk.breakdown:
            data["riskFactors"] = to_camel_dict(asdict(risk))

        return {
            name: _without_nulls(block) if isinstance(block, dict) else block
            for name, block in data.items()
        }

    def _feature(self, feature: Any) -> Optional[Dict[str, Any]]:
        if feature is None:
            return None
        return to_camel_dict(asdict(feature))
