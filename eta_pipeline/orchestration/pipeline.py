"""
Pipeline orchestrator for the ETA data pipeline.

This module coordinates one invocation through five stages:
1. Collection: Fetch every registered source concurrently with fallbacks
2. Validation: Drop payloads that fail their rules, score data quality
3. Transformation: Canonicalize provider payloads into one schema
4. Enrichment: Derive risk features, adjusted ETA and proximity alerts
5. Presentation: Shape the payload for the downstream consumer

The orchestrator is designed to be:
- Degrading: A failing stage hands the next stage a safe partial result
- Observable: Stage timings, errors and source outcomes land in RunMetrics
- Deterministic: Only collection does I/O; the clock is injected
- Composable: Each stage is a plain callable over the running context
"""
import logging
import threading
import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple

from ..enrichment import DerivedFeatures, EnrichedContext, Enricher
from ..errors import ConfigurationError, PipelineCancelledError
from ..ingestion import Collector, FetchContext
from ..observability import RunMetrics
from ..presentation import Presenter, SummaryLookup
from ..registry import SourceRegistry
from ..storage import CacheStore
from ..transformation import CanonicalContext, Transformer
from ..validation import DataQualityMetrics, Validator
from .state_machine import PipelineStage, StageStateMachine

logger = logging.getLogger(__name__)

FATAL_ERRORS = (ConfigurationError, PipelineCancelledError)

# (error, running context) -> (partial context, fatal)
StageErrorHandler = Callable[[Exception, Dict[str, Any]], Tuple[Dict[str, Any], bool]]


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


def _dedupe(values: List[str]) -> List[str]:
    return list(dict.fromkeys(values))


@dataclass
class ExecutionMetrics:
    """Consumer-facing metrics of one invocation."""
    execution_time_ms: float
    data_quality: DataQualityMetrics
    sources_used: List[str] = field(default_factory=list)
    fallbacks_triggered: List[str] = field(default_factory=list)


@dataclass
class PipelineExecutionResult:
    """
    Terminal result of one invocation.

    ``success`` is False only when a stage handler marked a failure fatal;
    ``error`` then holds the exception that caused it.
    """
    success: bool
    metrics: ExecutionMetrics
    timestamp: datetime
    data: Optional[Dict[str, Any]] = None
    error: Optional[Exception] = None
    run_metrics: Optional[RunMetrics] = None

    def to_dict(self) -> Dict[str, Any]:
        result: Dict[str, Any] = {
            "success": self.success,
            "metrics": {
                "executionTimeMs": self.metrics.execution_time_ms,
                "dataQuality": self.metrics.data_quality.to_dict(),
                "sourcesUsed": list(self.metrics.sources_used),
                "fallbacksTriggered": list(self.metrics.fallbacks_triggered),
            },
            "timestamp": self.timestamp.isoformat(),
        }
        if self.data is not None:
            result["data"] = self.data
        if self.error is not None:
            result["error"] = f"{type(self.error).__name__}: {self.error}"
        return result


class ETADataPipeline:
    """
    Runs collect -> validate -> transform -> enrich -> present for one
    driver/load pair.

    The registry and cache are process-wide and injected; everything else
    is created per invocation. Stage error handlers can be overridden per
    stage; the defaults are fatal only for configuration errors and
    cancellation.
    """

    def __init__(
        self,
        registry: SourceRegistry,
        cache: Optional[CacheStore] = None,
        summary_lookup: Optional[SummaryLookup] = None,
        clock: Callable[[], datetime] = utc_now,
        retry_backoff_seconds: float = 0.0,
        max_attempt_workers: Optional[int] = None,
        error_handlers: Optional[Mapping[PipelineStage, StageErrorHandler]] = None,
    ):
        """
        Initialize the pipeline.

        Args:
            registry: Source configurations and adapters
            cache: Shared cache. A private one is created if None.
            summary_lookup: Supplies load and vehicle summaries for the payload
            clock: Source of "now" for ETAs and historical patterns
            retry_backoff_seconds: Base back-off between fetch attempts
            max_attempt_workers: Size of the collector's attempt pool
            error_handlers: Per-stage overrides of the default handlers
        """
        self.registry = registry
        self.cache = cache if cache is not None else CacheStore()
        self.clock = clock

        self.collector = Collector(
            registry,
            self.cache,
            retry_backoff_seconds=retry_backoff_seconds,
            max_attempt_workers=max_attempt_workers,
        )
        self.validator = Validator(registry)
        self.transformer = Transformer()
        self.enricher = Enricher(clock=clock)
        self.presenter = Presenter(summary_lookup)

        self.stages: List[Tuple[PipelineStage, Callable[[Dict[str, Any]], Dict[str, Any]]]] = [
            (PipelineStage.COLLECT, self._collect),
            (PipelineStage.VALIDATE, self._validate),
            (PipelineStage.TRANSFORM, self._transform),
            (PipelineStage.ENRICH, self._enrich),
            (PipelineStage.PRESENT, self._present),
        ]

        self.error_handlers: Dict[PipelineStage, StageErrorHandler] = {
            PipelineStage.COLLECT: self._handle_collection_error,
            PipelineStage.VALIDATE: self._handle_validation_error,
            PipelineStage.TRANSFORM: self._handle_transformation_error,
            PipelineStage.ENRICH: self._handle_enrichment_error,
            PipelineStage.PRESENT: self._handle_presentation_error,
        }
        if error_handlers:
            self.error_handlers.update(error_handlers)

    def execute(
        self,
        driver_id: str,
        load_id: str,
        prompt_type: str = "eta_prediction",
        user_role: str = "carrier",
        cancel_event: Optional[threading.Event] = None,
        attributes: Optional[Dict[str, Any]] = None,
    ) -> PipelineExecutionResult:
        """
        Run all five stages for one driver/load pair.

        Args:
            driver_id: Driver identifier
            load_id: Load identifier
            prompt_type: Consumer prompt type
            user_role: Role the payload is built for
            cancel_event: Setting it abandons in-flight fetches
            attributes: Extra per-invocation hints for adapters, e.g. destination

        Returns:
            PipelineExecutionResult; never raises for stage failures
        """
        started = time.monotonic()
        now = self.clock()
        run_metrics = RunMetrics(
            run_id=str(uuid.uuid4()),
            driver_id=driver_id,
            load_id=load_id,
            started_at=now,
        )
        context: Dict[str, Any] = {
            "driver_id": driver_id,
            "load_id": load_id,
            "prompt_type": prompt_type,
            "user_role": user_role,
            "now": now,
            "cancel_event": cancel_event if cancel_event is not None else threading.Event(),
            "attributes": dict(attributes or {}),
        }
        state = StageStateMachine()
        fatal_error: Optional[Exception] = None

        logger.info(f"=== Starting ETA pipeline run {run_metrics.run_id} for driver {driver_id}, load {load_id} ===")

        for stage, process in self.stages:
            state.advance(stage)
            logger.info(f"Executing pipeline stage: {stage.value}")
            stage_started = time.monotonic()

            try:
                context.update(process(context))
                logger.info(f"Completed pipeline stage: {stage.value}")
            except Exception as e:
                logger.error(f"Error in pipeline stage {stage.value}: {e}", exc_info=True)
                partial, fatal = self._run_handler(stage, e, context)
                context.update(partial)
                run_metrics.record_stage_error(stage.value, e, fatal)
                if fatal:
                    fatal_error = e
            finally:
                run_metrics.record_stage(stage.value, (time.monotonic() - stage_started) * 1000)

            if stage is PipelineStage.COLLECT:
                run_metrics.record_collection(context)
            if fatal_error is not None:
                logger.error(f"Fatal error in pipeline stage {stage.value}; aborting run")
                break

        return self._finish(context, run_metrics, started, fatal_error)

    def _run_handler(self, stage: PipelineStage, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        handler = self.error_handlers[stage]
        try:
            return handler(error, context)
        except Exception as e:
            logger.error(f"Error handler for {stage.value} raised: {e}", exc_info=True)
            return {}, True

    def _finish(
        self,
        context: Dict[str, Any],
        run_metrics: RunMetrics,
        started: float,
        fatal_error: Optional[Exception],
    ) -> PipelineExecutionResult:
        success = fatal_error is None
        if success:
            data_quality = context.get("data_quality") or DataQualityMetrics.zero()
        else:
            data_quality = DataQualityMetrics.zero()

        metrics = ExecutionMetrics(
            execution_time_ms=round((time.monotonic() - started) * 1000, 3),
            data_quality=data_quality,
            sources_used=_dedupe(context.get("sources_collected", [])),
            fallbacks_triggered=_dedupe(context.get("fallbacks_triggered", [])),
        )

        run_metrics.success = success
        run_metrics.data_quality = data_quality.to_dict()
        run_metrics.completed_at = self.clock()

        logger.info(
            f"=== Pipeline run {run_metrics.run_id} {'complete' if success else 'failed'}: "
            f"{len(metrics.sources_used)} sources used, "
            f"{len(metrics.fallbacks_triggered)} fallbacks, "
            f"{metrics.execution_time_ms:.1f} ms ==="
        )
        return PipelineExecutionResult(
            success=success,
            metrics=metrics,
            timestamp=run_metrics.completed_at,
            data=context.get("output") if success else None,
            error=fatal_error,
            run_metrics=run_metrics,
        )

    # Stages

    def _collect(self, context: Dict[str, Any]) -> Dict[str, Any]:
        fetch_context = FetchContext(
            driver_id=context["driver_id"],
            load_id=context["load_id"],
            cancel_event=context["cancel_event"],
            attributes=context["attributes"],
        )
        return self.collector.collect(fetch_context).to_context()

    def _validate(self, context: Dict[str, Any]) -> Dict[str, Any]:
        return self.validator.validate(context.get("collected_data") or {}).to_context()

    def _transform(self, context: Dict[str, Any]) -> Dict[str, Any]:
        return {"canonical": self.transformer.transform(context.get("validated_data") or {})}

    def _enrich(self, context: Dict[str, Any]) -> Dict[str, Any]:
        canonical = context.get("canonical") or CanonicalContext()
        return {"enriched": self.enricher.enrich(canonical, now=context["now"])}

    def _present(self, context: Dict[str, Any]) -> Dict[str, Any]:
        output = self.presenter.present(
            context.get("enriched"),
            prompt_type=context["prompt_type"],
            user_role=context["user_role"],
            driver_id=context["driver_id"],
            load_id=context["load_id"],
        )
        return {"output": output}

    # Default stage error handlers

    def _handle_collection_error(self, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        collected = context.get("sources_collected", [])
        failed = [t for t in self.registry.source_types if t not in collected]
        partial = {
            "collected_data": context.get("collected_data", {}),
            "sources_collected": list(collected),
            "sources_failed": failed,
            "fallbacks_triggered": context.get("fallbacks_triggered", []),
        }
        return partial, isinstance(error, FATAL_ERRORS)

    def _handle_validation_error(self, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        partial = {
            "validated_data": {},
            "validation_results": {},
            "data_quality": DataQualityMetrics.zero(),
        }
        return partial, isinstance(error, FATAL_ERRORS)

    def _handle_transformation_error(self, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        return {"canonical": CanonicalContext()}, isinstance(error, FATAL_ERRORS)

    def _handle_enrichment_error(self, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        canonical = context.get("canonical") or CanonicalContext()
        partial = {"enriched": EnrichedContext(canonical=canonical, derived_features=DerivedFeatures())}
        return partial, isinstance(error, FATAL_ERRORS)

    def _handle_presentation_error(self, error: Exception, context: Dict[str, Any]) -> Tuple[Dict[str, Any], bool]:
        partial = {
            "output": {
                "promptType": context.get("prompt_type", "eta_prediction"),
                "userRole": context.get("user_role", "carrier"),
                "data": {},
            }
        }
        return partial, isinstance(error, FATAL_ERRORS)
