"""Filename classification engine.

Maps a filename to a jurisdiction and document category using an ordered
rule table. Tabular files that look like quarterly reports are classified
as lab data instead.
"""

import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Optional, Sequence

from compliance_intake.classification.rules import (
    DEFAULT_RULES,
    ClassificationRule,
    RuleField,
)
from compliance_intake.models.category import LAB_DATA, QUARTERLY_REPORT

DATA_EXTENSIONS = re.compile(r"\.(xlsx|xls|csv|tsv|txt)$", re.IGNORECASE)

DATA_EXTENSION_OVERRIDE = f"category:{LAB_DATA} (override: data file extension)"


class Confidence(str, Enum):
    """How much of a filename's classification was resolved."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


@dataclass(frozen=True)
class ClassificationResult:
    """Result of classifying one filename."""

    state_code: Optional[str] = None
    category: Optional[str] = None
    confidence: Confidence = Confidence.LOW
    matched_patterns: tuple[str, ...] = field(default_factory=tuple)

    @property
    def resolved_fields(self) -> int:
        return int(self.state_code is not None) + int(self.category is not None)

    def to_dict(self) -> dict:
        return {
            "state_code": self.state_code,
            "category": self.category,
            "confidence": self.confidence.value,
            "matched_patterns": list(self.matched_patterns),
        }


def is_data_file(file_name: str) -> bool:
    """Check if a filename has a tabular-data extension."""
    return DATA_EXTENSIONS.search(file_name) is not None


def classify(
    file_name: str,
    rules: Sequence[ClassificationRule] = DEFAULT_RULES,
) -> ClassificationResult:
    """Classify a filename against an ordered rule table.

    The table is scanned once. The first matching rule for each field wins
    and scanning continues so a later rule can still fill the other field.

    Args:
        file_name: Name of the file, including extension.
        rules: Ordered classification rules.

    Returns:
        ClassificationResult with a confidence of high (both fields),
        medium (one field) or low (neither).
    """
    state_code: Optional[str] = None
    category: Optional[str] = None
    matched: list[str] = []
    data_file = is_data_file(file_name)

    for rule in rules:
        if not rule.value or not rule.matches(file_name):
            continue

        if rule.field == RuleField.STATE and state_code is None:
            state_code = rule.value
            matched.append(f"state:{rule.value}")
        elif rule.field == RuleField.CATEGORY and category is None:
            if data_file and rule.value == QUARTERLY_REPORT:
                category = LAB_DATA
                matched.append(DATA_EXTENSION_OVERRIDE)
            else:
                category = rule.value
                matched.append(f"category:{rule.value}")

    if state_code and category:
        confidence = Confidence.HIGH
    elif state_code or category:
        confidence = Confidence.MEDIUM
    else:
        confidence = Confidence.LOW

    return ClassificationResult(
        state_code=state_code,
        category=category,
        confidence=confidence,
        matched_patterns=tuple(matched),
    )
