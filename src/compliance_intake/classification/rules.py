"""Filename classification rule table.

Rules are evaluated in order. State rules come first (abbreviations, full
names, permit-number prefixes), then category rules.
"""

import re
from dataclasses import dataclass
from enum import Enum
from typing import Pattern


class RuleField(str, Enum):
    """Field a classification rule assigns."""

    STATE = "state"
    CATEGORY = "category"


@dataclass(frozen=True)
class ClassificationRule:
    """Assigns ``value`` to ``field`` when ``pattern`` matches a filename."""

    pattern: Pattern[str]
    field: RuleField
    value: str

    def matches(self, file_name: str) -> bool:
        return self.pattern.search(file_name) is not None


def _state(pattern: str, value: str, flags: int = re.IGNORECASE) -> ClassificationRule:
    return ClassificationRule(re.compile(pattern, flags), RuleField.STATE, value)


def _category(pattern: str, value: str, flags: int = re.IGNORECASE) -> ClassificationRule:
    return ClassificationRule(re.compile(pattern, flags), RuleField.CATEGORY, value)


DEFAULT_RULES: tuple[ClassificationRule, ...] = (
    # State abbreviations
    _state(r"\b(AL)\b", "AL"),
    _state(r"\b(KY)\b", "KY"),
    _state(r"\b(TN)\b", "TN"),
    _state(r"\b(VA)\b", "VA"),
    _state(r"\b(WV)\b", "WV"),
    # State names
    _state(r"\balabama\b", "AL"),
    _state(r"\bkentucky\b", "KY"),
    _state(r"\btennessee\b", "TN"),
    _state(r"\bvirginia\b", "VA"),
    _state(r"\bwest.?virginia\b", "WV"),
    # Permit number prefixes (case-sensitive)
    _state(r"AL\d{7}", "AL", flags=0),
    _state(r"KYGE\d{5}", "KY", flags=0),
    _state(r"TN[R0]\d{6}", "TN", flags=0),
    _state(r"VA\d{7}", "VA", flags=0),
    _state(r"WV\d{7}", "WV", flags=0),
    # Permits and permit actions
    _category(r"\bnpdes|permit\b", "npdes_permit"),
    _category(r"\bmonitoring.?release|outfall.?release\b", "npdes_permit"),
    _category(r"\bwet.?suspension|toxicity.?suspension\b", "npdes_permit"),
    _category(r"\bselenium.?compliance\b", "npdes_permit"),
    _category(r"\bmodification|mod\s*#\d", "npdes_permit"),
    _category(r"\binactivation\b", "npdes_permit"),
    _category(r"\btransfer\b", "npdes_permit"),
    _category(r"\btsmp\b|TNR\d{6}", "npdes_permit"),
    _category(r"\bEKCL\b|KYGE\d{5}", "npdes_permit"),
    _category(r"\bNPE\(|NPR\s*#", "npdes_permit"),
    # Remaining categories
    _category(r"\blab|analytical|results|edd\b", "lab_data"),
    _category(r"\bdmr|discharge.?monitoring\b", "dmr"),
    _category(r"\bquarterly|q[1-4]\b", "quarterly_report"),
    _category(
        r"\bfield.?inspect|inspection.?report|site.?visit|swppp\b",
        "field_inspection",
    ),
    _category(r"\baudit|ems\b", "audit_report"),
    _category(r"\benforcement|nov|penalty|violation\b", "enforcement"),
)
