"""EPA NODI (No Data Indicator) codes used in DMR submissions.

Parsers consult these when deciding whether a reported value takes part in
limit calculations.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field


class NodiCategory(str, Enum):
    """Groups of NODI codes."""

    NO_DISCHARGE = "no_discharge"
    NO_DATA = "no_data"
    QUALIFIER = "qualifier"
    CONDITIONAL = "conditional"


class NodiCode(BaseModel):
    """A single NODI code."""

    model_config = {"frozen": True}

    code: str = Field(..., description="Single-character code")
    description: str = Field(..., description="Meaning of the code")
    category: NodiCategory = Field(..., description="Code group")
    exclude_from_calculations: bool = Field(
        ..., description="Whether values carrying this code are left out of calculations"
    )


def _nodi(code: str, description: str, category: NodiCategory, exclude: bool) -> NodiCode:
    return NodiCode(
        code=code,
        description=description,
        category=category,
        exclude_from_calculations=exclude,
    )


NODI_CODES: dict[str, NodiCode] = {
    "C": _nodi("C", "No Discharge (entire monitoring period)", NodiCategory.NO_DISCHARGE, True),
    "9": _nodi("9", "Conditional Monitoring - not required this period", NodiCategory.CONDITIONAL, True),
    "N": _nodi("N", "No Data - monitoring not performed", NodiCategory.NO_DATA, True),
    "B": _nodi("B", "Below Detection Limit", NodiCategory.QUALIFIER, False),
    "E": _nodi("E", "Estimated Value", NodiCategory.QUALIFIER, False),
    "G": _nodi("G", "Greater Than (value exceeds instrument range)", NodiCategory.QUALIFIER, False),
    "K": _nodi("K", "Actual Value (no qualifier)", NodiCategory.QUALIFIER, False),
    "Q": _nodi("Q", "Quantity (for mass-based limits)", NodiCategory.QUALIFIER, False),
    "R": _nodi("R", "Rejected - QA/QC failed", NodiCategory.NO_DATA, True),
    "T": _nodi("T", "Too numerous to count", NodiCategory.QUALIFIER, False),
    "U": _nodi("U", "Unable to measure", NodiCategory.NO_DATA, True),
    "W": _nodi("W", "Waived - variance granted", NodiCategory.CONDITIONAL, True),
}


def get_nodi_code(code: Optional[str]) -> Optional[NodiCode]:
    if not code:
        return None
    return NODI_CODES.get(code.upper())


def is_no_data_code(code: Optional[str]) -> bool:
    """Check if a NODI code means the value must not be recorded."""
    nodi = get_nodi_code(code)
    return nodi.exclude_from_calculations if nodi else False


def is_no_discharge_code(code: Optional[str]) -> bool:
    """Check if a NODI code means no discharge occurred."""
    return bool(code) and code.upper() in {"C", "9"}


def is_below_detection_code(code: Optional[str]) -> bool:
    return bool(code) and code.upper() == "B"
