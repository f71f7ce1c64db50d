"""Data models for the file processing queue."""

import json
import uuid
from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from pydantic import BaseModel, Field


class QueueStatus(str, Enum):
    """Processing status of a queue entry."""

    UPLOADED = "uploaded"
    QUEUED = "queued"
    PROCESSING = "processing"
    PARSED = "parsed"
    FAILED = "failed"
    IMPORTED = "imported"


# Forward order of the success path. uploaded and queued are the same
# initial state.
STATUS_RANK: dict[QueueStatus, int] = {
    QueueStatus.UPLOADED: 0,
    QueueStatus.QUEUED: 0,
    QueueStatus.PROCESSING: 1,
    QueueStatus.PARSED: 2,
    QueueStatus.IMPORTED: 3,
}

TERMINAL_STATUSES = frozenset({QueueStatus.FAILED, QueueStatus.IMPORTED})

# Payload fields stored as JSON strings so DynamoDB never sees floats.
JSON_FIELDS = frozenset({"extracted_data", "import_stats"})
DATETIME_FIELDS = frozenset({
    "created_at",
    "updated_at",
    "processing_started_at",
    "processing_completed_at",
    "imported_at",
})


def utc_now() -> datetime:
    return datetime.now(timezone.utc)


class QueueEntry(BaseModel):
    """Persisted record tracking one uploaded file through processing."""

    id: str = Field(default_factory=lambda: str(uuid.uuid4()), description="Queue entry identifier")
    status: QueueStatus = Field(default=QueueStatus.QUEUED, description="Current status")
    storage_bucket: str = Field(..., description="Bucket holding the uploaded object")
    storage_path: str = Field(..., description="Object key within the bucket")
    file_name: str = Field(..., description="Original file name")
    file_size_bytes: int = Field(..., description="File size in bytes")
    mime_type: str = Field(default="", description="MIME type reported at upload")
    file_hash: str = Field(..., description="SHA-256 of the file contents")
    file_category: str = Field(..., description="Category db_key")
    state_code: Optional[str] = Field(None, description="Jurisdiction code, if known")
    uploaded_by: Optional[str] = Field(None, description="User that uploaded the file")
    extracted_data: Optional[dict[str, Any]] = Field(None, description="Parser output payload")
    records_extracted: int = Field(default=0, description="Number of records the parser extracted")
    error_log: Optional[list[str]] = Field(None, description="Failure detail or parser warnings")
    import_stats: Optional[dict[str, Any]] = Field(None, description="Import step statistics")
    processing_started_at: Optional[datetime] = Field(None)
    processing_completed_at: Optional[datetime] = Field(None)
    imported_at: Optional[datetime] = Field(None)
    created_at: datetime = Field(default_factory=utc_now)
    updated_at: datetime = Field(default_factory=utc_now)
    version: int = Field(default=1, description="Incremented on every write")

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_STATUSES

    def to_dynamo_item(self) -> dict[str, Any]:
        """Convert to DynamoDB item format."""
        item: dict[str, Any] = {}
        for name, value in self.model_dump().items():
            if value is None:
                continue
            item[name] = to_dynamo_value(name, value)
        return item

    @classmethod
    def from_dynamo_item(cls, item: dict[str, Any]) -> "QueueEntry":
        """Create from DynamoDB item."""
        data: dict[str, Any] = {}
        for name, value in item.items():
            if name in JSON_FIELDS and isinstance(value, str):
                value = json.loads(value)
            elif isinstance(value, Decimal):
                value = int(value)
            data[name] = value
        return cls.model_validate(data)


def to_dynamo_value(name: str, value: Any) -> Any:
    """Serialize one queue entry field for DynamoDB."""
    if value is None:
        return None
    if name in JSON_FIELDS:
        return json.dumps(value, default=str)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    return value
