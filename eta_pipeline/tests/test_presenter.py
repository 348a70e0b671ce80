"""
Tests for the consumer payload.
"""
from datetime import datetime, timezone

import pytest

from conftest import FIXED_NOW
from eta_pipeline.enrichment import Enricher
from eta_pipeline.ingestion import CollectedSource, CollectionOrigin
from eta_pipeline.presentation import Presenter, StaticSummaryLookup, to_camel_dict
from eta_pipeline.registry import ALL_SOURCE_TYPES, WEATHER_DATA
from eta_pipeline.transformation import CanonicalContext, Transformer


def enrich(payloads, source_types=ALL_SOURCE_TYPES):
    data = {
        t: CollectedSource(t, t, payloads[t], CollectionOrigin.FRESH)
        for t in source_types
    }
    return Enricher().enrich(Transformer().transform(data), now=FIXED_NOW)


def present(enriched, lookup=None):
    return Presenter(lookup).present(
        enriched,
        prompt_type="eta_prediction",
        user_role="carrier",
        driver_id="D-42",
        load_id="L-1001",
    )


class TestCamelCase:

    def test_nested_keys_and_datetimes(self):
        value = {
            "day_of_week": 1,
            "items": [{"start_time": datetime(2026, 1, 1, tzinfo=timezone.utc)}],
        }

        assert to_camel_dict(value) == {
            "dayOfWeek": 1,
            "items": [{"startTime": "2026-01-01T00:00:00+00:00"}],
        }


class TestPayload:

    def test_envelope(self, payloads):
        payload = present(enrich(payloads))

        assert payload["promptType"] == "eta_prediction"
        assert payload["userRole"] == "carrier"
        assert set(payload["data"]) == {
            "trafficData",
            "weatherData",
            "locationData",
            "historicalData",
            "routeData",
            "specialEvents",
            "proximityAlerts",
            "riskFactors",
        }

    def test_route_block(self, payloads):
        route = present(enrich(payloads))["data"]["routeData"]

        assert route["provider"] == "mapbox_directions"
        assert route["remainingDistance"] == 10.0
        assert route["remainingDrivingTime"] == 35
        assert route["originalEta"] == "2026-10-19T09:35:00+00:00"
        assert route["adjustedDuration"] == 7786
        assert route["currentEta"] == "2026-10-19T11:09:46+00:00"
        assert route["trafficLevel"] == "moderate"

    def test_location_distance_to_destination(self, payloads):
        location = present(enrich(payloads))["data"]["locationData"]

        assert location["latitude"] == 40.7580
        assert location["distanceToDestination"] == 10.0

    def test_weather_and_traffic_impacts(self, payloads):
        data = present(enrich(payloads))["data"]

        weather = data["weatherData"]
        assert weather["visibility"] == pytest.approx(8000 / 1609.344)
        assert weather["impact"]["severity"] == "moderate"
        assert weather["impact"]["estimatedDelayMinutes"] == 15

        traffic = data["trafficData"]
        assert traffic["isHistoricalAverage"] is False
        assert traffic["impact"]["estimatedDelayMinutes"] == 51

    def test_historical_block(self, payloads):
        historical = present(enrich(payloads))["data"]["historicalData"]

        assert historical["avgDeliveryTime"] == 185
        assert historical["delayFrequency"] == 22
        assert "dock congestion" in historical["commonDelayCauses"]
        assert historical["patterns"]["dayOfWeek"] == "monday"

    def test_risk_factors_camel_cased(self, payloads):
        risk = present(enrich(payloads))["data"]["riskFactors"]

        assert "dayOfWeek" in risk["breakdown"]
        assert 0.0 <= risk["total"] <= 1.0

    def test_absent_branches_omitted(self, payloads):
        data = present(enrich(payloads, [WEATHER_DATA]))["data"]

        assert set(data) == {"weatherData", "riskFactors"}

    def test_location_without_route(self, payloads):
        data = present(enrich(payloads, ["driver_location"]))["data"]

        assert "distanceToDestination" not in data["locationData"]
        assert "routeData" not in data

    def test_no_enrichment_gives_empty_data(self):
        payload = present(None)
        assert payload["data"] == {}

    def test_empty_context_omits_risk(self):
        data = present(Enricher().enrich(CanonicalContext(), now=FIXED_NOW))["data"]
        assert data == {}

    def test_failed_features_leave_no_null_keys(self, payloads):
        enriched = enrich(payloads)
        enriched.derived_features.weather_impact = None
        enriched.route_eta = None
        enriched.adjusted_eta = None
        enriched.adjusted_duration_seconds = None

        data = present(enriched)["data"]

        assert "impact" not in data["weatherData"]
        assert set(data["routeData"]) == {
            "provider", "remainingDistance", "remainingDrivingTime", "trafficLevel",
        }
        for block in data.values():
            if isinstance(block, dict):
                assert None not in block.values()


class TestSummaries:

    def test_load_and_vehicle_blocks(self):
        lookup = StaticSummaryLookup(
            loads={"L-1001": {"origin": "Newark, NJ", "destination": "Boston, MA"}},
            vehicles={"D-42": {"vehicle_type": "Dry van"}},
        )

        data = present(None, lookup)["data"]

        assert data["loadData"] == {"origin": "Newark, NJ", "destination": "Boston, MA", "id": "L-1001"}
        assert data["vehicleData"] == {"vehicleType": "Dry van"}

    def test_unknown_ids_omitted(self):
        data = present(None, StaticSummaryLookup())["data"]
        assert "loadData" not in data
        assert "vehicleData" not in data
