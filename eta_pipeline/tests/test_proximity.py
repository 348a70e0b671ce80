"""
Tests for proximity alerts around the driver location.
"""
import pytest

from eta_pipeline.enrichment import ProximityAlertBuilder, haversine_miles
from eta_pipeline.transformation import LocationData, SpecialEventsData, TrafficData
from eta_pipeline.transformation.transformer import parse_special_events, parse_traffic

DRIVER = LocationData(latitude=40.7580, longitude=-73.9855, timestamp=None)


def at(lat, lon):
    return {"latitude": lat, "longitude": lon}


def fixed_distance(miles):
    return lambda lat1, lon1, lat2, lon2: miles


class TestHaversine:

    def test_zero_distance(self):
        assert haversine_miles(40.0, -74.0, 40.0, -74.0) == 0.0

    def test_one_degree_of_latitude(self):
        assert haversine_miles(0.0, 0.0, 1.0, 0.0) == pytest.approx(69.1, abs=0.1)


class TestFixtureAlerts:

    @pytest.fixture
    def alerts(self, payloads):
        builder = ProximityAlertBuilder()
        return builder.build(
            DRIVER,
            parse_special_events(payloads["special_events"]),
            parse_traffic(payloads["traffic_data"]),
        )

    def test_one_alert_of_each_type(self, alerts):
        assert [a["type"] for a in alerts] == ["special_event", "road_closure", "traffic_incident"]

    def test_event_alert(self, alerts):
        event = alerts[0]
        assert event["name"] == "Baseball Game"
        assert event["distance"] == 5.8
        assert event["impact"] == "high"
        assert event["description"] == "Baseball Game at Yankee Stadium (5.8 miles away)"

    def test_road_closure_alert(self, alerts):
        closure = alerts[1]
        assert closure["distance"] == 2.3
        assert closure["impact"] == "high"
        assert closure["affectedRoads"] == ["Main St", "Broadway"]
        assert closure["description"] == "Road closure: Street fair (2.3 miles away)"

    def test_incident_alert(self, alerts):
        incident = alerts[2]
        assert incident["incidentType"] == "construction"
        assert incident["severity"] == "moderate"
        assert incident["impact"] == "medium"
        assert incident["distance"] == 1.5
        assert incident["description"].endswith("(1.5 miles ahead)")


class TestRadius:

    @pytest.mark.parametrize("distance,included", [(9.99, True), (10.0, False), (12.0, False)])
    def test_event_radius_is_exclusive(self, distance, included):
        events = SpecialEventsData(events=[{"name": "Concert", "location": at(40.8, -73.9)}])

        alerts = ProximityAlertBuilder(fixed_distance(distance)).build(DRIVER, events, None)

        assert bool(alerts) is included

    @pytest.mark.parametrize("distance,included", [(4.9, True), (5.0, False)])
    def test_closure_and_incident_radius(self, distance, included):
        events = SpecialEventsData(road_closures=[{"reason": "Parade", "location": at(40.8, -73.9)}])
        traffic = TrafficData(
            condition="heavy",
            congestion_level=7,
            delay_minutes=42,
            incidents=[{"type": "accident", "severity": "major", "location": at(40.8, -73.9)}],
        )

        alerts = ProximityAlertBuilder(fixed_distance(distance)).build(DRIVER, events, traffic)

        assert len(alerts) == (2 if included else 0)

    def test_distance_rounded_to_one_decimal(self):
        events = SpecialEventsData(events=[{"name": "Concert", "location": at(40.8, -73.9)}])

        alerts = ProximityAlertBuilder(fixed_distance(3.25)).build(DRIVER, events, None)

        assert alerts[0]["distance"] == 3.3


class TestMissingInputs:

    def test_no_location_no_alerts(self, payloads):
        alerts = ProximityAlertBuilder().build(
            None, parse_special_events(payloads["special_events"]), None
        )
        assert alerts == []

    def test_target_without_location_skipped(self):
        events = SpecialEventsData(events=[{"name": "Somewhere"}])
        assert ProximityAlertBuilder().build(DRIVER, events, None) == []

    @pytest.mark.parametrize("location", [
        at("42.36", "-71.06"),
        at(True, -71.06),
        "42.36,-71.06",
        None,
    ])
    def test_target_with_unusable_location_skipped(self, location):
        events = SpecialEventsData(events=[
            {"name": "Bad coordinates", "location": location},
            {"name": "Market", "location": at(40.76, -73.98)},
        ])

        alerts = ProximityAlertBuilder().build(DRIVER, events, None)

        assert [a["name"] for a in alerts] == ["Market"]

    def test_non_mapping_target_skipped(self):
        events = SpecialEventsData(events=["Street fair on Main St"])
        assert ProximityAlertBuilder().build(DRIVER, events, None) == []

    def test_default_impact_for_unrated_event(self):
        events = SpecialEventsData(events=[{"name": "Market", "location": at(40.76, -73.98)}])

        alerts = ProximityAlertBuilder().build(DRIVER, events, None)

        assert alerts[0]["impact"] == "medium"
