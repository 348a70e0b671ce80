"""
Canonical, fixed-schema records produced by the transformation stage.

All distances are in miles. Every branch of CanonicalContext is optional;
a missing branch means no usable input reached the transformer.
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class LocationData:
    latitude: float
    longitude: float
    timestamp: Any
    speed: float = 0.0
    heading: float = 0.0
    accuracy: float = 10.0


@dataclass
class RouteData:
    provider: str
    distance_miles: float
    duration_seconds: float
    traffic_level: str
    typical_duration_seconds: Optional[float] = None
    geometry: Optional[Dict[str, Any]] = None
    legs: List[Dict[str, Any]] = field(default_factory=list)
    eta: Optional[datetime] = None


@dataclass
class WeatherData:
    condition: str
    description: Optional[str]
    temperature: Optional[float]
    feels_like: Optional[float] = None
    humidity: Optional[float] = None
    precipitation: float = 0.0
    wind_speed: float = 0.0
    visibility_miles: Optional[float] = None
    alerts: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    is_historical_average: bool = False


@dataclass
class TrafficData:
    condition: str
    congestion_level: float
    delay_minutes: int
    average_speed: Optional[float] = None
    incidents: List[Dict[str, Any]] = field(default_factory=list)
    timestamp: Optional[datetime] = None
    is_historical_average: bool = False


@dataclass
class HistoricalData:
    average_delivery_time: float
    delay_frequency: Optional[float] = None
    common_delay_causes: List[str] = field(default_factory=list)
    delivery_times_by_day_of_week: Dict[str, float] = field(default_factory=dict)
    delivery_times_by_time_of_day: Dict[str, float] = field(default_factory=dict)
    seasonal_factors: Dict[str, float] = field(default_factory=dict)


@dataclass
class SpecialEventsData:
    events: List[Dict[str, Any]] = field(default_factory=list)
    holidays: List[Dict[str, Any]] = field(default_factory=list)
    road_closures: List[Dict[str, Any]] = field(default_factory=list)


@dataclass
class CanonicalContext:
    """The six-branch record every later stage reads."""
    location: Optional[LocationData] = None
    route: Optional[RouteData] = None
    weather: Optional[WeatherData] = None
    traffic: Optional[TrafficData] = None
    historical: Optional[HistoricalData] = None
    special_events: Optional[SpecialEventsData] = None
