"""
Observability layer for the ETA pipeline.

This module provides metrics collection and reporting for pipeline
invocations.

Main exports:
- RunMetrics: Tracks metrics for one invocation
- RunReporter: Generates Markdown reports
"""
from .metrics import RunMetrics
from .reporter import RunReporter

__all__ = [
    "RunMetrics",
    "RunReporter",
]
