"""
ETA data pipeline.

Collects telemetry from independent sources, validates and normalizes it,
derives delay and risk features, and shapes the payload handed to the
downstream ETA estimation consumer.
"""
from .errors import (
    ConfigurationError,
    ETAPipelineError,
    PipelineCancelledError,
    SourceFetchError,
)
from .orchestration import ETADataPipeline, PipelineExecutionResult
from .registry import SourceRegistry
from .storage import CacheStore

__version__ = "0.1.0"

__all__ = [
    "CacheStore",
    "ConfigurationError",
    "ETADataPipeline",
    "ETAPipelineError",
    "PipelineCancelledError",
    "PipelineExecutionResult",
    "SourceFetchError",
    "SourceRegistry",
]
