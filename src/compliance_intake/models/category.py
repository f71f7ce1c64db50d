"""Document category configuration.

Each category ties together its queue key, storage bucket, display label,
accepted MIME types and storage path layout.
"""

import re
from enum import Enum
from typing import Optional

from pydantic import BaseModel, Field

from compliance_intake.core.errors import UnknownCategoryError
from compliance_intake.models.jurisdiction import get_jurisdiction

PDF = "application/pdf"
DOCX = "application/vnd.openxmlformats-officedocument.wordprocessingml.document"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"
XLS = "application/vnd.ms-excel"
CSV = "text/csv"
TSV = "text/tab-separated-values"
TEXT = "text/plain"
PNG = "image/png"
JPEG = "image/jpeg"
TIFF = "image/tiff"

_QUARTER_PATTERN = re.compile(r"[Qq]([1-4])[_\s-]?(\d{4})")


class PathStrategy(str, Enum):
    """Storage path layouts."""

    STATE_SCOPED = "state_scoped"
    FLAT = "flat"
    QUARTER_SCOPED = "quarter_scoped"


class CategoryConfig(BaseModel):
    """Configuration for one document category."""

    model_config = {"frozen": True}

    db_key: str = Field(..., description="Queue record file_category value")
    bucket: str = Field(..., description="Storage bucket name")
    label: str = Field(..., description="Human-readable label")
    matrix_label: str = Field(..., description="Compliance matrix column header")
    accepted_types: tuple[str, ...] = Field(..., description="Accepted MIME types")
    priority: int = Field(..., description="Upload priority (1 = highest)")
    path_strategy: PathStrategy = Field(
        PathStrategy.STATE_SCOPED, description="Storage path layout"
    )

    def accepts(self, mime_type: str) -> bool:
        return mime_type in self.accepted_types

    def build_path(
        self,
        file_name: str,
        hash_prefix: str,
        state_code: Optional[str] = None,
    ) -> str:
        """Build the object key for a file in this category's bucket."""
        if self.path_strategy == PathStrategy.FLAT:
            return f"{hash_prefix}_{file_name}"
        if self.path_strategy == PathStrategy.QUARTER_SCOPED:
            match = _QUARTER_PATTERN.search(file_name)
            if match:
                return f"Q{match.group(1)}_{match.group(2)}/{hash_prefix}_{file_name}"
        return f"{_state_folder(state_code)}/{hash_prefix}_{file_name}"


def _state_folder(state_code: Optional[str]) -> str:
    if not state_code:
        return "Unassigned"
    jurisdiction = get_jurisdiction(state_code)
    return jurisdiction.folder_name if jurisdiction else state_code


CATEGORIES: tuple[CategoryConfig, ...] = (
    CategoryConfig(
        db_key="npdes_permit",
        bucket="permits",
        label="NPDES Permits",
        matrix_label="Permits",
        accepted_types=(PDF, PNG, JPEG, TIFF),
        priority=1,
    ),
    CategoryConfig(
        db_key="lab_data",
        bucket="lab-data",
        label="Lab Data",
        matrix_label="Lab Data",
        accepted_types=(PDF, CSV, XLS, XLSX, TEXT, TSV),
        priority=2,
    ),
    CategoryConfig(
        db_key="field_inspection",
        bucket="field-inspections",
        label="Field Inspections",
        matrix_label="Field Insp.",
        accepted_types=(PDF, JPEG, PNG, TIFF),
        priority=3,
    ),
    CategoryConfig(
        db_key="quarterly_report",
        bucket="quarterly-reports",
        label="Quarterly Reports",
        matrix_label="Quarterly",
        accepted_types=(PDF, DOCX),
        priority=4,
        path_strategy=PathStrategy.QUARTER_SCOPED,
    ),
    CategoryConfig(
        db_key="dmr",
        bucket="dmrs",
        label="DMRs",
        matrix_label="DMRs",
        accepted_types=(PDF, CSV, XLS, XLSX),
        priority=4,
    ),
    CategoryConfig(
        db_key="audit_report",
        bucket="audit-reports",
        label="Audit Reports",
        matrix_label="Audits",
        accepted_types=(PDF,),
        priority=5,
        path_strategy=PathStrategy.FLAT,
    ),
    CategoryConfig(
        db_key="enforcement",
        bucket="enforcement",
        label="Enforcement",
        matrix_label="Enforcement",
        accepted_types=(PDF,),
        priority=6,
    ),
    CategoryConfig(
        db_key="other",
        bucket="other",
        label="Other",
        matrix_label="Other",
        # Restricted list; "any type" is not accepted.
        accepted_types=(PDF, DOCX, XLSX, XLS, CSV, TEXT, PNG, JPEG, TIFF),
        priority=7,
        path_strategy=PathStrategy.FLAT,
    ),
)

CATEGORY_BY_DB_KEY: dict[str, CategoryConfig] = {c.db_key: c for c in CATEGORIES}
CATEGORY_BY_BUCKET: dict[str, CategoryConfig] = {c.bucket: c for c in CATEGORIES}

DEFAULT_CATEGORY = "other"
QUARTERLY_REPORT = "quarterly_report"
LAB_DATA = "lab_data"


def get_category(db_key: str) -> Optional[CategoryConfig]:
    """Look up a category configuration by its queue key."""
    return CATEGORY_BY_DB_KEY.get(db_key)


def require_category(db_key: str) -> CategoryConfig:
    """Look up a category configuration, raising if it is not configured."""
    config = CATEGORY_BY_DB_KEY.get(db_key)
    if config is None:
        raise UnknownCategoryError(db_key)
    return config


def build_storage_path(
    category: str,
    state_code: Optional[str],
    file_name: str,
    hash_prefix: str,
) -> str:
    """Build the object key for a file under the given category."""
    return require_category(category).build_path(file_name, hash_prefix, state_code)
