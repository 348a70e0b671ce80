"""Derived risk features, adjusted ETA and proximity alerts."""
from .enricher import EnrichedContext, Enricher
from .explainer import ImpactExplainer
from .features import (
    CombinedRiskFactors,
    DerivedFeatures,
    HistoricalPatterns,
    TrafficImpact,
    WeatherImpact,
    adjusted_duration,
    combined_risk,
    historical_patterns,
    increase_severity,
    season_band,
    time_of_day_band,
    traffic_impact,
    weather_impact,
)
from .proximity import ProximityAlertBuilder, haversine_miles

__all__ = [
    "EnrichedContext",
    "Enricher",
    "ImpactExplainer",
    "CombinedRiskFactors",
    "DerivedFeatures",
    "HistoricalPatterns",
    "TrafficImpact",
    "WeatherImpact",
    "adjusted_duration",
    "combined_risk",
    "historical_patterns",
    "increase_severity",
    "season_band",
    "time_of_day_band",
    "traffic_impact",
    "weather_impact",
    "ProximityAlertBuilder",
    "haversine_miles",
]
