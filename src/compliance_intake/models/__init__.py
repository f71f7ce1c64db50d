"""Reference data models for categories, jurisdictions and NODI codes."""

from compliance_intake.models.category import (
    CategoryConfig,
    PathStrategy,
    CATEGORIES,
    CATEGORY_BY_DB_KEY,
    CATEGORY_BY_BUCKET,
    DEFAULT_CATEGORY,
    LAB_DATA,
    QUARTERLY_REPORT,
    get_category,
    require_category,
    build_storage_path,
)
from compliance_intake.models.jurisdiction import (
    Jurisdiction,
    JURISDICTIONS,
    VALID_STATE_CODES,
    get_jurisdiction,
)
from compliance_intake.models.nodi import (
    NodiCategory,
    NodiCode,
    NODI_CODES,
    get_nodi_code,
    is_no_data_code,
    is_no_discharge_code,
    is_below_detection_code,
)

__all__ = [
    "CategoryConfig",
    "PathStrategy",
    "CATEGORIES",
    "CATEGORY_BY_DB_KEY",
    "CATEGORY_BY_BUCKET",
    "DEFAULT_CATEGORY",
    "LAB_DATA",
    "QUARTERLY_REPORT",
    "get_category",
    "require_category",
    "build_storage_path",
    "Jurisdiction",
    "JURISDICTIONS",
    "VALID_STATE_CODES",
    "get_jurisdiction",
    "NodiCategory",
    "NodiCode",
    "NODI_CODES",
    "get_nodi_code",
    "is_no_data_code",
    "is_no_discharge_code",
    "is_below_detection_code",
]
