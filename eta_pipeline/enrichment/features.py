"""
Derived features computed from the canonical context.

Every function here is pure and null-safe: a missing input branch yields
None rather than raising.
"""
import math
from dataclasses import dataclass, field
from datetime import datetime
from typing import Dict, List, Optional

from ..transformation import HistoricalData, TrafficData, WeatherData

SEVERITY_LEVELS = ("none", "low", "moderate", "high", "severe")

SEVERITY_RISK = {
    "none": 0.0,
    "low": 0.2,
    "moderate": 0.5,
    "high": 0.8,
    "severe": 1.0,
}

# Traffic condition label -> severity scale used for risk
TRAFFIC_CONDITION_SEVERITY = {
    "light": "low",
    "moderate": "moderate",
    "heavy": "high",
    "severe": "severe",
}

INCIDENT_DELAY_MINUTES = {
    "minor": 5,
    "moderate": 15,
    "major": 30,
    "severe": 60,
}

EVENTS_RISK = 0.5
RISK_CATEGORY_COUNT = 5

HIGH_WIND = 25
MODERATE_WIND = 15
POOR_VISIBILITY_MILES = 1

# Indexed by datetime.weekday(); independent of LC_TIME
DAY_NAMES = ("monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday")


def round_half_up(value: float, digits: int = 0) -> float:
    """Round halves toward positive infinity: 2.5 -> 3, -2.5 -> -2."""
    scale = 10 ** digits
    return math.floor(value * scale + 0.5) / scale


def increase_severity(severity: str) -> str:
    """Step one level up the severity scale, saturating at severe."""
    if severity not in SEVERITY_LEVELS:
        return severity
    index = SEVERITY_LEVELS.index(severity)
    return SEVERITY_LEVELS[min(index + 1, len(SEVERITY_LEVELS) - 1)]


@dataclass
class WeatherImpact:
    condition: str
    severity: str
    estimated_delay_minutes: int
    description: str = ""


@dataclass
class TrafficImpact:
    condition: str
    severity: str
    estimated_delay_minutes: int
    incidents: List[Dict] = field(default_factory=list)
    description: str = ""


@dataclass
class HistoricalPatterns:
    day_of_week: str
    time_of_day: str
    season: str
    day_of_week_factor: float
    time_of_day_factor: float
    seasonal_factor: float
    combined_factor: float
    estimated_delay_minutes: int


@dataclass
class CombinedRiskFactors:
    total: float
    breakdown: Dict[str, float] = field(default_factory=dict)


@dataclass
class DerivedFeatures:
    weather_impact: Optional[WeatherImpact] = None
    traffic_impact: Optional[TrafficImpact] = None
    historical_patterns: Optional[HistoricalPatterns] = None
    combined_risk_factors: CombinedRiskFactors = field(
        default_factory=lambda: CombinedRiskFactors(total=0.0)
    )


def _base_weather_impact(weather: WeatherData):
    condition = weather.condition
    if condition in ("clear", "clouds"):
        return "none", 0
    if condition in ("mist", "fog"):
        visibility = weather.visibility_miles
        if visibility is not None and visibility < POOR_VISIBILITY_MILES:
            return "moderate", 15
        return "low", 5
    if condition == "rain":
        precipitation = weather.precipitation or 0.0
        if precipitation < 0.1:
            return "low", 5
        if precipitation < 0.5:
            return "moderate", 15
        return "high", 30
    if condition == "snow":
        return "high", 45
    if condition == "thunderstorm":
        return "severe", 60
    return "low", 5


def weather_impact(weather: Optional[WeatherData]) -> Optional[WeatherImpact]:
    """
    Severity and delay for the current weather.

    Wind above 25 escalates severity one level and adds 15 minutes; wind
    above 15 (up to 25) adds 5 minutes only.
    """
    if weather is None:
        return None

    severity, delay = _base_weather_impact(weather)

    wind = weather.wind_speed or 0.0
    if wind > HIGH_WIND:
        severity = increase_severity(severity)
        delay += 15
    elif wind > MODERATE_WIND:
        delay += 5

    return WeatherImpact(condition=weather.condition, severity=severity, estimated_delay_minutes=delay)


def traffic_impact(traffic: Optional[TrafficData]) -> Optional[TrafficImpact]:
    """Congestion delay plus a fixed increment per incident severity."""
    if traffic is None:
        return None

    delay = traffic.delay_minutes or 0
    for incident in traffic.incidents:
        delay += INCIDENT_DELAY_MINUTES.get(incident.get("severity"), 0)

    return TrafficImpact(
        condition=traffic.condition,
        severity=TRAFFIC_CONDITION_SEVERITY.get(traffic.condition, traffic.condition),
        estimated_delay_minutes=delay,
        incidents=list(traffic.incidents),
    )


def time_of_day_band(hour: int) -> str:
    if 12 <= hour < 17:
        return "afternoon"
    if 17 <= hour < 21:
        return "evening"
    if hour >= 21 or hour < 6:
        return "night"
    return "morning"


def season_band(month: int) -> str:
    """Season for a 1-based calendar month."""
    index = month - 1
    if 2 <= index < 5:
        return "spring"
    if 5 <= index < 8:
        return "summer"
    if 8 <= index < 11:
        return "fall"
    return "winter"


def _relative_factor(value: Optional[float], average: float) -> float:
    if not value or not average:
        return 1.0
    return value / average


def historical_patterns(historical: Optional[HistoricalData], now: datetime) -> Optional[HistoricalPatterns]:
    """
    Day, time and season factors relative to the average delivery time.

    Args:
        historical: Canonical historical statistics
        now: Moment the estimate is made for

    Returns:
        HistoricalPatterns, or None without historical data
    """
    if historical is None:
        return None

    average = historical.average_delivery_time
    day = DAY_NAMES[now.weekday()]
    band = time_of_day_band(now.hour)
    season = season_band(now.month)

    day_factor = _relative_factor(historical.delivery_times_by_day_of_week.get(day), average)
    time_factor = _relative_factor(historical.delivery_times_by_time_of_day.get(band), average)
    seasonal_factor = historical.seasonal_factors.get(season) or 1.0
    combined = day_factor * time_factor * seasonal_factor

    return HistoricalPatterns(
        day_of_week=day,
        time_of_day=band,
        season=season,
        day_of_week_factor=day_factor,
        time_of_day_factor=time_factor,
        seasonal_factor=seasonal_factor,
        combined_factor=combined,
        estimated_delay_minutes=int(round_half_up((combined - 1) * average)),
    )


def combined_risk(
    weather: Optional[WeatherImpact],
    traffic: Optional[TrafficImpact],
    patterns: Optional[HistoricalPatterns],
    has_events: bool,
) -> CombinedRiskFactors:
    """Per-category risk and a total normalized to [0, 1]."""
    breakdown: Dict[str, float] = {}

    if weather is not None:
        breakdown["weather"] = SEVERITY_RISK.get(weather.severity, 0.0)
    if traffic is not None:
        breakdown["traffic"] = SEVERITY_RISK.get(traffic.severity, 0.0)
    if has_events:
        breakdown["events"] = EVENTS_RISK
    if patterns is not None:
        breakdown["day_of_week"] = max(0.0, (patterns.day_of_week_factor - 1) * 2)
        breakdown["time_of_day"] = max(0.0, (patterns.time_of_day_factor - 1) * 2)
        breakdown["seasonal"] = max(0.0, (patterns.seasonal_factor - 1) * 2)

    total = min(1.0, sum(breakdown.values()) / RISK_CATEGORY_COUNT)
    return CombinedRiskFactors(total=total, breakdown=breakdown)


def adjusted_duration(base_duration_seconds: float, features: DerivedFeatures) -> int:
    """Base duration plus weather and traffic delays, scaled by the historical factor."""
    duration = base_duration_seconds
    if features.weather_impact is not None:
        duration += features.weather_impact.estimated_delay_minutes * 60
    if features.traffic_impact is not None:
        duration += features.traffic_impact.estimated_delay_minutes * 60
    if features.historical_patterns is not None:
        duration *= features.historical_patterns.combined_factor
    return int(round_half_up(duration))
