"""
Tests for rule validation and data quality scoring.
"""
import pytest

from eta_pipeline.ingestion import CollectedSource, CollectionOrigin
from eta_pipeline.registry import (
    ALL_SOURCE_TYPES,
    DRIVER_LOCATION,
    HERE_FLEET,
    HISTORICAL_DATA,
    MAPBOX_DIRECTIONS,
    TRAFFIC_DATA,
    WEATHER_DATA,
    RuleKind,
    SourceRegistry,
    ValidationRule,
)
from eta_pipeline.validation import QualityScorer, Validator, get_nested_value


def collected(source_type, data, origin=CollectionOrigin.FRESH, provider=None):
    return CollectedSource(source_type, provider or source_type, data, origin)


def all_fresh(payloads):
    return {t: collected(t, payloads[t]) for t in ALL_SOURCE_TYPES}


class TestNestedValue:

    def test_dot_path(self):
        assert get_nested_value({"main": {"temp": 61}}, "main.temp") == 61

    def test_numeric_segment_indexes_list(self):
        data = {"routes": [{"duration": 2100}]}
        assert get_nested_value(data, "routes.0.duration") == 2100

    def test_out_of_range_index(self):
        assert get_nested_value({"routes": []}, "routes.0.duration") is None

    def test_missing_segment(self):
        assert get_nested_value({"main": {}}, "main.temp") is None
        assert get_nested_value({"main": 5}, "main.temp") is None


class TestRules:

    @pytest.fixture
    def validator(self):
        return Validator(SourceRegistry())

    def test_required(self, validator):
        rule = ValidationRule("a.b", RuleKind.REQUIRED, "a.b missing")
        assert validator.check_rules({"a": {"b": 0}}, [rule]) == []
        assert validator.check_rules({"a": {}}, [rule]) == ["a.b missing"]

    def test_min_max(self, validator):
        rules = [
            ValidationRule("v", RuleKind.MIN, "too small", 0),
            ValidationRule("v", RuleKind.MAX, "too big", 10),
        ]
        assert validator.check_rules({"v": 5}, rules) == []
        assert validator.check_rules({"v": -1}, rules) == ["too small"]
        assert validator.check_rules({"v": 11}, rules) == ["too big"]

    def test_range_ignores_non_numeric(self, validator):
        rule = ValidationRule("v", RuleKind.RANGE, "out of range", (0, 10))
        assert validator.check_rules({"v": "abc"}, [rule]) == []
        assert validator.check_rules({"v": 10}, [rule]) == []
        assert validator.check_rules({"v": 10.5}, [rule]) == ["out of range"]

    def test_format(self, validator):
        rule = ValidationRule("eta", RuleKind.FORMAT, "bad eta", r"\d{4}-\d{2}-\d{2}T.*")
        assert validator.check_rules({"eta": "2026-10-19T10:30:00Z"}, [rule]) == []
        assert validator.check_rules({"eta": "soon"}, [rule]) == ["bad eta"]

    def test_custom_predicate(self, validator):
        rule = ValidationRule("v", RuleKind.CUSTOM, "must be even", lambda v: v % 2 == 0)
        assert validator.check_rules({"v": 4}, [rule]) == []
        assert validator.check_rules({"v": 3}, [rule]) == ["must be even"]

    def test_custom_predicate_error_fails_rule(self, validator):
        rule = ValidationRule("v", RuleKind.CUSTOM, "must be even", lambda v: v % 2 == 0)
        assert validator.check_rules({}, [rule]) == ["must be even"]

    def test_errors_in_rule_order(self, validator):
        rules = [
            ValidationRule("a", RuleKind.REQUIRED, "first"),
            ValidationRule("b", RuleKind.REQUIRED, "second"),
        ]
        assert validator.check_rules({}, rules) == ["first", "second"]


class TestValidate:

    def test_all_valid(self, payloads):
        registry = SourceRegistry()
        outcome = Validator(registry).validate(all_fresh(payloads))

        assert set(outcome.validated_data) == set(ALL_SOURCE_TYPES)
        assert all(r.valid for r in outcome.validation_results.values())
        assert outcome.data_quality.completeness == 1.0
        assert outcome.data_quality.accuracy == 1.0
        assert outcome.data_quality.consistency == 1.0

    def test_missing_required_field_excludes_source(self, payloads):
        data = all_fresh(payloads)
        weather = dict(payloads[WEATHER_DATA])
        del weather["main"]
        data[WEATHER_DATA] = collected(WEATHER_DATA, weather)

        outcome = Validator(SourceRegistry()).validate(data)

        assert WEATHER_DATA not in outcome.validated_data
        result = outcome.validation_results[WEATHER_DATA]
        assert not result.valid
        assert "Temperature is required" in result.errors
        assert outcome.data_quality.completeness == pytest.approx(6 / 7)

    def test_out_of_range_congestion_excluded(self, payloads):
        data = all_fresh(payloads)
        data[TRAFFIC_DATA] = collected(TRAFFIC_DATA, dict(payloads[TRAFFIC_DATA], congestionLevel=14))

        outcome = Validator(SourceRegistry()).validate(data)

        assert TRAFFIC_DATA not in outcome.validated_data
        assert outcome.validation_results[TRAFFIC_DATA].errors == [
            "Congestion level must be between 0 and 10"
        ]

    def test_non_positive_average_delivery_time_excluded(self, payloads):
        data = {HISTORICAL_DATA: collected(HISTORICAL_DATA, dict(payloads[HISTORICAL_DATA], averageDeliveryTime=0))}

        outcome = Validator(SourceRegistry()).validate(data)

        assert outcome.validation_results[HISTORICAL_DATA].errors == [
            "Average delivery time must be positive"
        ]

    def test_alternative_payload_validated_with_provider_rules(self, payloads):
        data = {
            MAPBOX_DIRECTIONS: collected(
                MAPBOX_DIRECTIONS,
                payloads[HERE_FLEET],
                origin=CollectionOrigin.ALTERNATIVE_SOURCE,
                provider=HERE_FLEET,
            ),
        }

        outcome = Validator(SourceRegistry()).validate(data)

        assert MAPBOX_DIRECTIONS in outcome.validated_data
        assert outcome.validation_results[MAPBOX_DIRECTIONS].provider == HERE_FLEET

    def test_empty_input(self):
        outcome = Validator(SourceRegistry()).validate({})

        assert outcome.validated_data == {}
        assert outcome.data_quality.to_dict() == {
            "completeness": 0.0,
            "accuracy": 0.0,
            "timeliness": 0.0,
            "consistency": 0.0,
        }


class TestQualityScorer:

    def test_scores_bounded(self, payloads):
        metrics = QualityScorer(7).score(all_fresh(payloads))
        for value in metrics.to_dict().values():
            assert 0.0 <= value <= 1.0

    def test_fallback_origins_lower_accuracy_and_timeliness(self, payloads):
        fresh = all_fresh(payloads)
        degraded = dict(fresh)
        degraded[WEATHER_DATA] = collected(
            WEATHER_DATA, payloads[WEATHER_DATA], origin=CollectionOrigin.HISTORICAL_AVERAGE
        )
        degraded[DRIVER_LOCATION] = collected(
            DRIVER_LOCATION, payloads[DRIVER_LOCATION], origin=CollectionOrigin.STALE_CACHE
        )

        scorer = QualityScorer(7)
        fresh_metrics, degraded_metrics = scorer.score(fresh), scorer.score(degraded)

        assert degraded_metrics.completeness == fresh_metrics.completeness
        assert degraded_metrics.accuracy < fresh_metrics.accuracy
        assert degraded_metrics.timeliness < fresh_metrics.timeliness

    def test_more_sources_never_lowers_scores(self, payloads):
        scorer = QualityScorer(7)
        previous = None
        current = {}
        for source_type in ALL_SOURCE_TYPES:
            current[source_type] = collected(source_type, payloads[source_type])
            metrics = scorer.score(current)
            if previous is not None:
                for name, value in metrics.to_dict().items():
                    assert value >= previous[name]
            previous = metrics.to_dict()

    def test_inconsistent_payload_lowers_consistency(self, payloads):
        data = all_fresh(payloads)
        data[DRIVER_LOCATION] = collected(DRIVER_LOCATION, dict(payloads[DRIVER_LOCATION], speed=-5))

        metrics = QualityScorer(7).score(data)

        assert metrics.consistency == pytest.approx(6 / 7)
