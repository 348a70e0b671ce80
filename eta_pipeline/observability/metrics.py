"""
Metrics collection for pipeline invocations.

This module provides RunMetrics, a dataclass that tracks all observability
metrics for a single pipeline invocation including:
- Wall-clock duration of every stage that ran
- Stage errors and whether they were fatal
- Which sources were collected, failed, or fell back
- Per-adapter source health
- Data quality scores of the validated data

Design decisions:
- Single metrics object per invocation, owned by the orchestrator
- Stage durations keyed by stage name in execution order
- Serializable to_dict() for logging and the run report
"""
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional


@dataclass
class RunMetrics:
    """
    Metrics for a single pipeline invocation.

    Tracks stage timing, stage errors, source outcomes, source health and
    data quality.
    """
    run_id: str
    driver_id: str
    load_id: str
    started_at: datetime
    completed_at: Optional[datetime] = None
    success: Optional[bool] = None

    # Key: stage name (e.g., "data_collection"), Value: milliseconds
    stage_durations_ms: Dict[str, float] = field(default_factory=dict)
    stage_errors: List[Dict[str, Any]] = field(default_factory=list)

    sources_collected: List[str] = field(default_factory=list)
    sources_failed: List[str] = field(default_factory=list)
    fallbacks_triggered: List[str] = field(default_factory=list)

    # Key: source type, Value: dict with health status
    source_health: Dict[str, Dict[str, Any]] = field(default_factory=dict)

    data_quality: Dict[str, float] = field(default_factory=dict)

    @property
    def errors(self) -> int:
        return len(self.stage_errors)

    def record_stage(self, stage: str, duration_ms: float):
        """
        Record how long a stage took.

        Args:
            stage: Stage name
            duration_ms: Wall-clock duration in milliseconds
        """
        self.stage_durations_ms[stage] = round(duration_ms, 3)

    def record_stage_error(self, stage: str, error: BaseException, fatal: bool):
        """
        Record an exception raised inside a stage.

        Args:
            stage: Stage name
            error: The exception the stage raised
            fatal: Whether the stage handler aborted the pipeline
        """
        self.stage_errors.append({
            "stage": stage,
            "error_type": type(error).__name__,
            "message": str(error),
            "fatal": fatal,
        })

    def record_collection(self, context: Dict[str, Any]):
        """
        Copy source outcomes and adapter health from the collection output.

        Args:
            context: Running pipeline context after the collection stage
        """
        self.sources_collected = list(context.get("sources_collected", []))
        self.sources_failed = list(context.get("sources_failed", []))
        self.fallbacks_triggered = list(context.get("fallbacks_triggered", []))

        for source_type, health in (context.get("source_health") or {}).items():
            self.source_health[source_type] = {
                "healthy": health.is_healthy,
                "fetch_count": health.fetch_count,
                "last_fetch": health.last_fetch.isoformat() if health.last_fetch else None,
                "error": health.error_message,
            }

    def to_dict(self) -> Dict[str, Any]:
        """
        Convert metrics to dictionary for JSON serialization.

        Returns:
            Dictionary representation suitable for logging or storage
        """
        return {
            "run_id": self.run_id,
            "driver_id": self.driver_id,
            "load_id": self.load_id,
            "started_at": self.started_at.isoformat(),
            "completed_at": self.completed_at.isoformat() if self.completed_at else None,
            "success": self.success,
            "errors": self.errors,
            "stage_durations_ms": dict(self.stage_durations_ms),
            "stage_errors": list(self.stage_errors),
            "sources_collected": list(self.sources_collected),
            "sources_failed": list(self.sources_failed),
            "fallbacks_triggered": list(self.fallbacks_triggered),
            "source_health": dict(self.source_health),
            "data_quality": dict(self.data_quality),
        }
