"""
Hypothesis strategies and builders shared by the test modules.
"""
from datetime import datetime, timezone
from typing import Optional

from hypothesis import strategies as st

from compliance_intake.auth import Role, RoleAssignment
from compliance_intake.models import VALID_STATE_CODES
from compliance_intake.processing import QueueEntry, QueueStatus

PDF = "application/pdf"
CSV = "text/csv"
XLSX = "application/vnd.openxmlformats-officedocument.spreadsheetml.sheet"

FIXED_TIME = datetime(2024, 1, 15, 10, 30, 0, tzinfo=timezone.utc)

DATA_EXTENSIONS = ["xlsx", "xls", "csv", "tsv", "txt"]


def make_assignment(
    role: Role,
    site_id: Optional[str] = None,
    assignment_id: str = "ra-1",
    user_id: str = "user-1",
) -> RoleAssignment:
    """Build a role assignment with a fixed timestamp."""
    return RoleAssignment(
        id=assignment_id,
        user_id=user_id,
        role_id=f"role-{role.value}",
        role_name=role,
        site_id=site_id,
        created_at=FIXED_TIME,
    )


def make_queue_entry(**overrides) -> QueueEntry:
    """Build a queued entry for a lab data file."""
    fields = {
        "id": "entry-1",
        "status": QueueStatus.QUEUED,
        "storage_bucket": "lab-data",
        "storage_path": "Kentucky/abcd1234_KY_lab_results.csv",
        "file_name": "KY_lab_results.csv",
        "file_size_bytes": 2048,
        "mime_type": CSV,
        "file_hash": "abcd1234" + "0" * 56,
        "file_category": "lab_data",
        "created_at": FIXED_TIME,
        "updated_at": FIXED_TIME,
    }
    fields.update(overrides)
    return QueueEntry(**fields)


@st.composite
def file_name_strategy(draw):
    """Generate filenames mixing domain keywords, separators and extensions."""
    words = draw(st.lists(
        st.sampled_from([
            "AL", "KY", "TN", "VA", "WV", "kentucky", "West Virginia",
            "NPDES", "permit", "lab", "results", "DMR", "Q3", "quarterly",
            "audit", "inspection", "NOV", "report", "2024", "outfall",
            "KYGE40021", "TN0012345", "misc", "data",
        ]) | st.text(
            min_size=1,
            max_size=8,
            alphabet=st.characters(whitelist_categories=("L", "N")),
        ),
        min_size=1,
        max_size=5,
    ))
    separator = draw(st.sampled_from(["_", " ", "-", "."]))
    extension = draw(st.sampled_from(["pdf", "docx", "png"] + DATA_EXTENSIONS))
    return f"{separator.join(words)}.{extension}"


@st.composite
def role_assignments_strategy(draw, max_size: int = 6):
    """Generate a list of global and site-scoped role assignments."""
    count = draw(st.integers(min_value=0, max_value=max_size))
    assignments = []
    for i in range(count):
        role = draw(st.sampled_from(list(Role)))
        site_id = draw(st.sampled_from([None, "site-a", "site-b"]))
        assignments.append(make_assignment(role, site_id=site_id, assignment_id=f"ra-{i}"))
    return assignments


state_codes_strategy = st.lists(
    st.sampled_from(sorted(VALID_STATE_CODES) + ["al", "ky", "OH", "PA", "xx"]),
    max_size=4,
)
