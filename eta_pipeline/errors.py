"""
Exception hierarchy for the ETA data pipeline.

Ordinary source unavailability is never raised past the collection stage;
these exceptions cover configuration mistakes, exhausted fetch budgets and
caller cancellation.
"""


class ETAPipelineError(Exception):
    """Base class for all pipeline errors."""


class ConfigurationError(ETAPipelineError):
    """Raised for unregistered source types or invalid source configuration."""


class SourceFetchError(ETAPipelineError):
    """Raised when a source cannot produce data within its timeout/retry budget."""

    def __init__(self, source_type: str, message: str):
        super().__init__(f"{source_type}: {message}")
        self.source_type = source_type


class PipelineCancelledError(ETAPipelineError):
    """Raised when the caller abandons an invocation."""
