"""
Enrichment stage: derived risk features, adjusted ETA and proximity alerts.
"""
import logging
from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Any, Callable, Dict, List, Optional

from ..transformation import CanonicalContext
from .explainer import ImpactExplainer
from .features import (
    DerivedFeatures,
    adjusted_duration,
    combined_risk,
    historical_patterns,
    traffic_impact,
    weather_impact,
)
from .proximity import ProximityAlertBuilder

logger = logging.getLogger(__name__)


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


@dataclass
class EnrichedContext:
    """Canonical data plus everything derived from it for one invocation."""
    canonical: CanonicalContext
    derived_features: DerivedFeatures
    proximity_alerts: List[Dict[str, Any]] = field(default_factory=list)
    route_eta: Optional[datetime] = None
    adjusted_duration_seconds: Optional[int] = None
    adjusted_eta: Optional[datetime] = None


class Enricher:
    """Computes derived features against an injectable clock."""

    def __init__(
        self,
        clock: Callable[[], datetime] = utc_now,
        explainer: Optional[ImpactExplainer] = None,
        proximity: Optional[ProximityAlertBuilder] = None,
    ):
        self.clock = clock
        self.explainer = explainer or ImpactExplainer()
        self.proximity = proximity or ProximityAlertBuilder()

    def enrich(self, canonical: CanonicalContext, now: Optional[datetime] = None) -> EnrichedContext:
        """
        Enrich a canonical context.

        Each feature is computed on its own; one that fails is logged and
        left as None without affecting the others.

        Args:
            canonical: Output of the transformation stage
            now: Moment to estimate for. Defaults to the enricher's clock.

        Returns:
            EnrichedContext; features without input are None
        """
        now = now or self.clock()
        features = DerivedFeatures(
            weather_impact=self._guarded("weatherImpact", self._weather, canonical),
            traffic_impact=self._guarded("trafficImpact", self._traffic, canonical),
            historical_patterns=self._guarded(
                "historicalPatterns", historical_patterns, canonical.historical, now
            ),
        )

        risk = self._guarded("combinedRiskFactors", self._risk, canonical, features)
        if risk is not None:
            features.combined_risk_factors = risk

        enriched = EnrichedContext(canonical=canonical, derived_features=features)

        route = canonical.route
        if route is not None:
            enriched.route_eta = self._guarded("routeEta", self._route_eta, route, now)
            enriched.adjusted_duration_seconds = self._guarded(
                "adjustedDuration", adjusted_duration, route.duration_seconds, features
            )
            if enriched.adjusted_duration_seconds is not None:
                enriched.adjusted_eta = now + timedelta(seconds=enriched.adjusted_duration_seconds)

        enriched.proximity_alerts = self._guarded(
            "proximityAlerts",
            self.proximity.build,
            canonical.location,
            canonical.special_events,
            canonical.traffic,
        ) or []

        logger.info(
            f"Enriched: risk={features.combined_risk_factors.total:.2f}, "
            f"{len(enriched.proximity_alerts)} proximity alerts"
        )
        return enriched

    def _guarded(self, feature: str, compute: Callable[..., Any], *args: Any) -> Any:
        try:
            return compute(*args)
        except Exception as e:
            logger.warning(f"Enrichment of {feature} failed: {type(e).__name__}: {e}")
            return None

    def _weather(self, canonical: CanonicalContext):
        impact = weather_impact(canonical.weather)
        if impact is not None:
            impact.description = self.explainer.describe_weather(impact.condition, impact.severity)
        return impact

    def _traffic(self, canonical: CanonicalContext):
        impact = traffic_impact(canonical.traffic)
        if impact is not None:
            impact.description = self.explainer.describe_traffic(impact.condition, impact.incidents)
        return impact

    @staticmethod
    def _risk(canonical: CanonicalContext, features: DerivedFeatures):
        has_events = bool(canonical.special_events and canonical.special_events.events)
        return combined_risk(
            features.weather_impact,
            features.traffic_impact,
            features.historical_patterns,
            has_events,
        )

    @staticmethod
    def _route_eta(route, now: datetime) -> datetime:
        return route.eta or now + timedelta(seconds=route.duration_seconds)
