"""Five-stage orchestration of one pipeline invocation."""
from .pipeline import (
    FATAL_ERRORS,
    ETADataPipeline,
    ExecutionMetrics,
    PipelineExecutionResult,
    StageErrorHandler,
)
from .state_machine import STAGE_ORDER, PipelineStage, StageStateMachine

__all__ = [
    "FATAL_ERRORS",
    "ETADataPipeline",
    "ExecutionMetrics",
    "PipelineExecutionResult",
    "StageErrorHandler",
    "STAGE_ORDER",
    "PipelineStage",
    "StageStateMachine",
]
