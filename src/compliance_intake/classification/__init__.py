"""Filename-based classification of compliance documents."""

from compliance_intake.classification.engine import (
    ClassificationResult,
    Confidence,
    DATA_EXTENSION_OVERRIDE,
    classify,
    is_data_file,
)
from compliance_intake.classification.rules import (
    ClassificationRule,
    DEFAULT_RULES,
    RuleField,
)

__all__ = [
    # Engine
    "ClassificationResult",
    "Confidence",
    "DATA_EXTENSION_OVERRIDE",
    "classify",
    "is_data_file",
    # Rules
    "ClassificationRule",
    "DEFAULT_RULES",
    "RuleField",
]
