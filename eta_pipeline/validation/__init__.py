"""
Validation layer for the ETA data pipeline.

Applies declarative per-source rules to raw payloads and scores the
quality of what survives.
"""
from .quality import DataQualityMetrics, QualityScorer
from .validator import ValidationOutcome, ValidationResult, Validator, get_nested_value

__all__ = [
    "DataQualityMetrics",
    "QualityScorer",
    "ValidationOutcome",
    "ValidationResult",
    "Validator",
    "get_nested_value",
]
