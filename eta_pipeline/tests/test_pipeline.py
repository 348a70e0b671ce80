"""
End-to-end tests of the five-stage orchestrator.
"""
import threading

import pytest

from conftest import FIXED_NOW, fast_registry, register_payloads
from eta_pipeline.errors import ConfigurationError, PipelineCancelledError
from eta_pipeline.orchestration import (
    STAGE_ORDER,
    ETADataPipeline,
    PipelineStage,
    StageStateMachine,
)
from eta_pipeline.presentation import StaticSummaryLookup
from eta_pipeline.registry import (
    ALL_SOURCE_TYPES,
    HERE_FLEET,
    MAPBOX_DIRECTIONS,
    SPECIAL_EVENTS,
    WEATHER_DATA,
)
from eta_pipeline.storage import CacheStore


class Exploding:
    """Stand-in for a stage component whose every method raises."""

    def __init__(self, error):
        self.error = error

    def __getattr__(self, name):
        def fail(*args, **kwargs):
            raise self.error
        return fail


def pipeline_for(registry, **kwargs):
    return ETADataPipeline(registry, cache=CacheStore(), clock=lambda: FIXED_NOW, **kwargs)


@pytest.fixture
def pipeline(registry, payloads):
    register_payloads(registry, payloads)
    return pipeline_for(registry)


class TestStateMachine:

    def test_stages_in_order(self):
        machine = StageStateMachine()
        for stage in STAGE_ORDER:
            machine.advance(stage)

        assert machine.is_terminal()
        assert machine.completed == STAGE_ORDER[:-1]

    def test_must_start_with_collection(self):
        valid, reason = StageStateMachine().validate_transition(None, PipelineStage.VALIDATE)

        assert not valid
        assert "data_collection" in reason

    @pytest.mark.parametrize("current,new", [
        (PipelineStage.COLLECT, PipelineStage.TRANSFORM),
        (PipelineStage.VALIDATE, PipelineStage.VALIDATE),
        (PipelineStage.ENRICH, PipelineStage.COLLECT),
        (PipelineStage.PRESENT, PipelineStage.COLLECT),
    ])
    def test_skips_repeats_and_back_edges_rejected(self, current, new):
        valid, _ = StageStateMachine().validate_transition(current, new)
        assert not valid

    def test_advance_raises_on_invalid_transition(self):
        machine = StageStateMachine()
        machine.advance(PipelineStage.COLLECT)

        with pytest.raises(RuntimeError, match="Invalid transition"):
            machine.advance(PipelineStage.ENRICH)


class TestHappyPath:

    def test_all_sources_no_fallbacks(self, pipeline):
        result = pipeline.execute("D-42", "L-1001")

        assert result.success
        assert result.error is None
        assert result.metrics.sources_used == list(ALL_SOURCE_TYPES)
        assert result.metrics.fallbacks_triggered == []
        assert result.metrics.data_quality.completeness == 1.0
        assert result.timestamp == FIXED_NOW

    def test_payload_shape(self, pipeline):
        result = pipeline.execute("D-42", "L-1001", prompt_type="eta_update", user_role="shipper")

        assert result.data["promptType"] == "eta_update"
        assert result.data["userRole"] == "shipper"
        assert result.data["data"]["routeData"]["provider"] == MAPBOX_DIRECTIONS
        assert result.data["data"]["routeData"]["adjustedDuration"] == 7786

    def test_summaries_included(self, registry, payloads):
        register_payloads(registry, payloads)
        lookup = StaticSummaryLookup(loads={"L-1001": {"origin": "Newark, NJ"}})

        result = pipeline_for(registry, summary_lookup=lookup).execute("D-42", "L-1001")

        assert result.data["data"]["loadData"] == {"origin": "Newark, NJ", "id": "L-1001"}

    def test_run_metrics(self, pipeline):
        result = pipeline.execute("D-42", "L-1001")
        run = result.run_metrics

        assert list(run.stage_durations_ms) == [s.value for s in STAGE_ORDER]
        assert run.success is True
        assert run.errors == 0
        assert run.sources_collected == list(ALL_SOURCE_TYPES)
        assert all(h["healthy"] for h in run.source_health.values())
        assert run.data_quality["completeness"] == 1.0

    def test_to_dict(self, pipeline):
        result = pipeline.execute("D-42", "L-1001").to_dict()

        assert result["success"] is True
        assert set(result["metrics"]) == {
            "executionTimeMs",
            "dataQuality",
            "sourcesUsed",
            "fallbacksTriggered",
        }
        assert result["timestamp"] == FIXED_NOW.isoformat()
        assert "error" not in result

    def test_repeat_run_served_from_cache(self, pipeline):
        pipeline.execute("D-42", "L-1001")
        result = pipeline.execute("D-42", "L-1001")

        assert result.success
        assert result.metrics.sources_used == list(ALL_SOURCE_TYPES)


class TestDegradation:

    def test_primary_route_timeout_falls_back_to_secondary(self, payloads, release):
        registry = fast_registry(**{MAPBOX_DIRECTIONS: {"timeout_seconds": 0.2}})

        def hang(ctx):
            release.wait(10)
            return {}

        register_payloads(registry, payloads, mapbox_directions=hang)

        result = pipeline_for(registry).execute("D-42", "L-1001")

        assert result.success
        assert result.data["data"]["routeData"]["provider"] == HERE_FLEET
        assert MAPBOX_DIRECTIONS in result.metrics.fallbacks_triggered
        assert HERE_FLEET in result.metrics.sources_used
        assert MAPBOX_DIRECTIONS not in result.metrics.sources_used
        assert MAPBOX_DIRECTIONS in result.run_metrics.sources_failed

    def test_invalid_payload_dropped_but_run_succeeds(self, registry, payloads):
        weather = dict(payloads[WEATHER_DATA])
        del weather["main"]
        register_payloads(registry, payloads, weather_data=lambda ctx: dict(weather))

        result = pipeline_for(registry).execute("D-42", "L-1001")

        assert result.success
        assert "weatherData" not in result.data["data"]
        assert result.metrics.data_quality.completeness < 1.0

    def test_malformed_event_location_keeps_enrichment(self, registry, payloads):
        events = dict(payloads[SPECIAL_EVENTS])
        events["events"] = events["events"] + [
            {"name": "Parade", "location": {"latitude": "42.36", "longitude": "-71.06"}},
        ]
        register_payloads(registry, payloads, special_events=lambda ctx: dict(events))

        result = pipeline_for(registry).execute("D-42", "L-1001")

        data = result.data["data"]
        assert result.success
        assert result.run_metrics.stage_errors == []
        assert data["weatherData"]["impact"]["severity"] == "moderate"
        assert data["routeData"]["adjustedDuration"] == 7786
        assert data["routeData"]["currentEta"] == "2026-10-19T11:09:46+00:00"

    def test_malformed_weather_field_keeps_other_branches(self, registry, payloads):
        weather = dict(payloads[WEATHER_DATA], weather=[{"main": 800}])
        register_payloads(registry, payloads, weather_data=lambda ctx: dict(weather))

        result = pipeline_for(registry).execute("D-42", "L-1001")

        data = result.data["data"]
        assert result.success
        assert result.run_metrics.stage_errors == []
        assert "weatherData" not in data
        assert {"locationData", "routeData", "trafficData", "historicalData", "specialEvents"} <= set(data)

    def test_non_fatal_stage_error_yields_partial_result(self, pipeline):
        pipeline.transformer = Exploding(ValueError("bad geometry"))

        result = pipeline.execute("D-42", "L-1001")

        assert result.success
        assert result.data["data"] == {}
        assert result.metrics.data_quality.completeness == 1.0
        assert result.run_metrics.stage_errors == [{
            "stage": "data_transformation",
            "error_type": "ValueError",
            "message": "bad geometry",
            "fatal": False,
        }]


class TestFatalErrors:

    def test_overridden_handler_marks_failure_fatal(self, registry, payloads):
        register_payloads(registry, payloads)
        pipeline = pipeline_for(
            registry,
            error_handlers={PipelineStage.TRANSFORM: lambda error, context: ({}, True)},
        )
        pipeline.transformer = Exploding(ValueError("bad geometry"))

        result = pipeline.execute("D-42", "L-1001")

        assert not result.success
        assert isinstance(result.error, ValueError)
        assert result.data is None
        assert result.metrics.data_quality.to_dict() == {
            "completeness": 0.0,
            "accuracy": 0.0,
            "timeliness": 0.0,
            "consistency": 0.0,
        }
        # later stages never ran
        assert list(result.run_metrics.stage_durations_ms) == [
            "data_collection", "data_validation", "data_transformation",
        ]
        assert result.to_dict()["error"] == "ValueError: bad geometry"

    def test_configuration_error_is_fatal_by_default(self, pipeline):
        pipeline.validator = Exploding(ConfigurationError("no rules for source"))

        result = pipeline.execute("D-42", "L-1001")

        assert not result.success
        assert isinstance(result.error, ConfigurationError)

    def test_cancellation_is_fatal(self, pipeline):
        cancel = threading.Event()
        cancel.set()

        result = pipeline.execute("D-42", "L-1001", cancel_event=cancel)

        assert not result.success
        assert isinstance(result.error, PipelineCancelledError)
        assert list(result.run_metrics.stage_durations_ms) == ["data_collection"]
        assert result.run_metrics.stage_errors[0]["fatal"] is True

    def test_raising_handler_is_fatal(self, registry, payloads):
        register_payloads(registry, payloads)

        def broken_handler(error, context):
            raise RuntimeError("handler bug")

        pipeline = pipeline_for(registry, error_handlers={PipelineStage.ENRICH: broken_handler})
        pipeline.enricher = Exploding(ValueError("bad features"))

        result = pipeline.execute("D-42", "L-1001")

        assert not result.success
        assert isinstance(result.error, ValueError)
