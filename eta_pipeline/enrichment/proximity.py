"""
Proximity alerts for special events, road closures and traffic incidents
near the driver's current position.
"""
import logging
import math
from typing import Any, Callable, Dict, List, Mapping, Optional

from ..transformation import LocationData, SpecialEventsData, TrafficData
from .features import round_half_up

logger = logging.getLogger(__name__)

EARTH_RADIUS_MILES = 6371 * 0.621371

# Alert radius in miles; targets exactly at the radius are excluded
EVENT_RADIUS_MILES = 10
ROAD_CLOSURE_RADIUS_MILES = 5
INCIDENT_RADIUS_MILES = 5

INCIDENT_IMPACT = {
    "minor": "low",
    "moderate": "medium",
    "major": "high",
    "severe": "critical",
}

DistanceFn = Callable[[float, float, float, float], float]


def _is_coordinate(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def haversine_miles(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance between two points, in miles."""
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_MILES * c


class ProximityAlertBuilder:
    """Builds proximity alerts around a driver location."""

    def __init__(self, distance_fn: DistanceFn = haversine_miles):
        self.distance_fn = distance_fn

    def build(
        self,
        location: Optional[LocationData],
        special_events: Optional[SpecialEventsData],
        traffic: Optional[TrafficData],
    ) -> List[Dict[str, Any]]:
        alerts: List[Dict[str, Any]] = []
        if location is None:
            return alerts

        if special_events is not None:
            for event in special_events.events:
                distance = self._distance_within(location, event, EVENT_RADIUS_MILES)
                if distance is None:
                    continue
                alerts.append({
                    "type": "special_event",
                    "name": event.get("name"),
                    "distance": distance,
                    "impact": event.get("trafficImpact") or "medium",
                    "startTime": event.get("startTime"),
                    "endTime": event.get("endTime"),
                    "description": f"{event.get('name')} at {event.get('venue')} ({distance} miles away)",
                })

            for closure in special_events.road_closures:
                distance = self._distance_within(location, closure, ROAD_CLOSURE_RADIUS_MILES)
                if distance is None:
                    continue
                alerts.append({
                    "type": "road_closure",
                    "distance": distance,
                    "impact": "high",
                    "startTime": closure.get("startTime"),
                    "endTime": closure.get("endTime"),
                    "affectedRoads": closure.get("affectedRoads"),
                    "description": f"Road closure: {closure.get('reason')} ({distance} miles away)",
                })

        if traffic is not None:
            for incident in traffic.incidents:
                distance = self._distance_within(location, incident, INCIDENT_RADIUS_MILES)
                if distance is None:
                    continue
                severity = incident.get("severity")
                alerts.append({
                    "type": "traffic_incident",
                    "incidentType": incident.get("type"),
                    "severity": severity,
                    "distance": distance,
                    "impact": INCIDENT_IMPACT.get(severity, "medium"),
                    "startTime": incident.get("startTime"),
                    "endTime": incident.get("endTime"),
                    "description": (
                        f"{incident.get('type')} ({severity}): {incident.get('description')} "
                        f"({distance} miles ahead)"
                    ),
                })

        return alerts

    def _distance_within(
        self,
        location: LocationData,
        target: Mapping[str, Any],
        radius: float,
    ) -> Optional[float]:
        """Rounded distance to the target, or None if it has no usable location or is out of range."""
        if not isinstance(target, Mapping):
            return None
        position = target.get("location")
        if not isinstance(position, Mapping):
            return None
        lat, lon = position.get("latitude"), position.get("longitude")
        if not _is_coordinate(lat) or not _is_coordinate(lon):
            logger.debug(f"Skipping target without numeric coordinates: {position!r}")
            return None

        distance = self.distance_fn(location.latitude, location.longitude, lat, lon)
        if distance >= radius:
            return None
        return round_half_up(distance, 1)
