"""Data models for staging and upload tracking."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional

from compliance_intake.classification import ClassificationResult
from compliance_intake.models.category import DEFAULT_CATEGORY
from compliance_intake.upload.files import FileHandle


@dataclass(frozen=True)
class ManualOverride:
    """State and/or category chosen by the user over the classifier."""

    state_code: Optional[str] = None
    category: Optional[str] = None


@dataclass
class StagedFile:
    """A candidate file held in staging.

    ``content_hash`` stays None until just before transfer.
    """

    id: str
    file: FileHandle
    file_name: str
    file_size: int
    mime_type: str
    classification: ClassificationResult
    manual_override: Optional[ManualOverride] = None
    validation_errors: list[str] = field(default_factory=list)
    content_hash: Optional[str] = None

    @property
    def effective_category(self) -> str:
        if self.manual_override and self.manual_override.category:
            return self.manual_override.category
        return self.classification.category or DEFAULT_CATEGORY

    @property
    def effective_state(self) -> Optional[str]:
        if self.manual_override and self.manual_override.state_code:
            return self.manual_override.state_code
        return self.classification.state_code

    @property
    def is_ready(self) -> bool:
        return not self.validation_errors


class UploadState(str, Enum):
    """Status of an in-flight upload."""

    PENDING = "pending"
    HASHING = "hashing"
    UPLOADING = "uploading"
    DONE = "done"
    ERROR = "error"


# Statuses that occupy a transfer slot.
ACTIVE_STATES = frozenset({UploadState.HASHING, UploadState.UPLOADING})


@dataclass(frozen=True)
class UploadProgress:
    """Progress of one admitted file.

    ``sequence`` is the admission order used for queue positions.
    """

    file_id: str
    sequence: int
    percent: int = 0
    status: UploadState = UploadState.PENDING
    error: Optional[str] = None


class OutcomeStatus(str, Enum):
    """Final result of an upload attempt."""

    UPLOADED = "uploaded"
    DUPLICATE = "duplicate"
    REFUSED = "refused"
    FAILED = "failed"
    CANCELLED = "cancelled"


@dataclass
class UploadOutcome:
    """What happened to one staged file."""

    file_id: str
    file_name: str
    status: OutcomeStatus
    queue_entry_id: Optional[str] = None
    storage_path: Optional[str] = None
    message: Optional[str] = None
    retryable: bool = False

    def to_dict(self) -> dict[str, Any]:
        """Convert to dictionary."""
        return {
            "file_id": self.file_id,
            "file_name": self.file_name,
            "status": self.status.value,
            "queue_entry_id": self.queue_entry_id,
            "storage_path": self.storage_path,
            "message": self.message,
            "retryable": self.retryable,
        }
