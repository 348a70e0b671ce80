"""
Validation stage: declarative rule checks against raw source payloads.

Rules are evaluated in configured order against the payload of the
provider that produced it. A source that fails any rule is dropped from the
validated set; it never aborts the pipeline.
"""
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Sequence

from ..ingestion.collector import CollectedSource
from ..registry import RuleKind, SourceRegistry, ValidationRule
from .quality import DataQualityMetrics, QualityScorer

logger = logging.getLogger(__name__)


def get_nested_value(obj: Any, path: str) -> Any:
    """
    Resolve a dot path. Numeric segments index into lists and tuples.

    Returns None when any segment is absent.
    """
    current = obj
    for key in path.split("."):
        if current is None:
            return None
        if isinstance(current, (list, tuple)):
            if not key.isdigit():
                return None
            index = int(key)
            current = current[index] if index < len(current) else None
        elif isinstance(current, Mapping):
            current = current.get(key)
        else:
            return None
    return current


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


@dataclass
class ValidationResult:
    """Outcome of validating one source."""
    source_type: str
    provider: str
    valid: bool
    errors: List[str] = field(default_factory=list)


@dataclass
class ValidationOutcome:
    """Output of the validation stage."""
    validated_data: Dict[str, CollectedSource]
    validation_results: Dict[str, ValidationResult]
    data_quality: DataQualityMetrics

    def to_context(self) -> Dict[str, Any]:
        return {
            "validated_data": self.validated_data,
            "validation_results": self.validation_results,
            "data_quality": self.data_quality,
        }


class Validator:
    """Applies each source's validation rules and scores data quality."""

    def __init__(self, registry: SourceRegistry):
        self.registry = registry
        self.scorer = QualityScorer(len(registry.source_types))

    def validate(self, collected_data: Mapping[str, CollectedSource]) -> ValidationOutcome:
        """
        Validate every collected source.

        Args:
            collected_data: Source type -> collected payload

        Returns:
            ValidationOutcome with validated data, per-source results and
            quality metrics
        """
        validated: Dict[str, CollectedSource] = {}
        results: Dict[str, ValidationResult] = {}

        for source_type, collected in collected_data.items():
            if collected is None or collected.data is None:
                continue

            config = self.registry.get_config(collected.provider)
            errors = self.check_rules(collected.data, config.validation_rules)
            results[source_type] = ValidationResult(
                source_type=source_type,
                provider=collected.provider,
                valid=not errors,
                errors=errors,
            )

            if errors:
                logger.warning(f"Dropping {source_type}: {'; '.join(errors)}")
            else:
                validated[source_type] = collected

        quality = self.scorer.score(validated)
        logger.info(
            f"Validated {len(validated)}/{len(self.registry.source_types)} sources "
            f"(completeness={quality.completeness:.2f})"
        )
        return ValidationOutcome(validated, results, quality)

    def check_rules(self, data: Any, rules: Sequence[ValidationRule]) -> List[str]:
        """Return the error messages of every failing rule, in rule order."""
        errors = []
        for rule in rules:
            value = get_nested_value(data, rule.field)
            if not self._passes(rule, value):
                errors.append(rule.error_message)
        return errors

    def _passes(self, rule: ValidationRule, value: Any) -> bool:
        kind = rule.kind

        if kind is RuleKind.REQUIRED:
            return value is not None

        if kind is RuleKind.MIN:
            return not _is_number(value) or value >= rule.value

        if kind is RuleKind.MAX:
            return not _is_number(value) or value <= rule.value

        if kind is RuleKind.RANGE:
            low, high = rule.value
            return not _is_number(value) or low <= value <= high

        if kind is RuleKind.FORMAT:
            if not isinstance(value, str) or rule.value is None:
                return True
            return re.fullmatch(rule.value, value) is not None

        if kind is RuleKind.CUSTOM:
            if rule.value is None:
                return True
            try:
                return bool(rule.value(value))
            except Exception as e:
                logger.error(f"Custom rule on {rule.field} raised: {e}", exc_info=True)
                return False

        logger.warning(f"Unknown rule kind: {kind}")
        return True
