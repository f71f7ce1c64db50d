"""Error classification for upload and parser failure paths.

Every failure surfaced to a user goes through two independent checks:
- ``classify_error`` maps the raw message onto a user-facing explanation
- ``is_retryable_error`` decides whether resubmitting unchanged may succeed

The two use separate keyword tables on purpose; a failure kind can be
retryable or not depending on its wording.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

import structlog

logger = structlog.get_logger(__name__)

MAX_ERROR_LENGTH = 800
TRUNCATION_MARKER = "..."


class ErrorKind(str, Enum):
    """Failure kinds recognised by the taxonomy, in evaluation order."""

    FORMAT_MISMATCH = "format_mismatch"
    EMPTY_FILE = "empty_file"
    MISSING_WORKSHEET = "missing_worksheet"
    ROW_LIMIT_EXCEEDED = "row_limit_exceeded"
    UNSUPPORTED_FORMAT = "unsupported_format"
    PASSWORD_PROTECTED = "password_protected"
    CORRUPT_FILE = "corrupt_file"
    ARCHIVE_EXTRACTION = "archive_extraction"
    RESOURCE_EXHAUSTED = "resource_exhausted"
    TIMEOUT = "timeout"
    STORAGE_ACCESS = "storage_access"
    DATABASE = "database"
    DMR_FORMAT = "dmr_format"
    UNMAPPED_PARAMETER = "unmapped_parameter"
    PERMIT_NOT_FOUND = "permit_not_found"
    OUTFALL_NOT_FOUND = "outfall_not_found"
    UNKNOWN = "unknown"


@dataclass(frozen=True)
class ErrorRule:
    """One row of the classification table.

    Matches when every ``all_of`` keyword is present and, if ``any_of`` is
    non-empty, at least one of those is present too.
    """

    kind: ErrorKind
    message: str
    any_of: tuple[str, ...] = ()
    all_of: tuple[str, ...] = ()

    def matches(self, lowered: str) -> bool:
        if not all(kw in lowered for kw in self.all_of):
            return False
        if self.any_of:
            return any(kw in lowered for kw in self.any_of)
        return True


ERROR_RULES: tuple[ErrorRule, ...] = (
    ErrorRule(
        ErrorKind.FORMAT_MISMATCH,
        "File does not match the expected format. Check that this is the correct "
        "file type for this category.",
        any_of=("mismatch", "expected"),
        all_of=("header",),
    ),
    ErrorRule(
        ErrorKind.EMPTY_FILE,
        "File contains no data rows. Only headers were found.",
        any_of=("no data rows", "no rows", "empty"),
    ),
    ErrorRule(
        ErrorKind.MISSING_WORKSHEET,
        "Could not find a valid worksheet in this Excel file.",
        any_of=("no worksheet", "no sheet"),
    ),
    ErrorRule(
        ErrorKind.ROW_LIMIT_EXCEEDED,
        "File exceeds the 50,000 row limit. Please split into smaller files.",
        any_of=("row limit", "too many rows", "50,000", "50000"),
    ),
    ErrorRule(
        ErrorKind.UNSUPPORTED_FORMAT,
        "File format not supported. Expected .xlsx, .xls, .csv, or .zip.",
        any_of=("unsupported format", "not supported"),
    ),
    ErrorRule(
        ErrorKind.PASSWORD_PROTECTED,
        "File is password protected. Please upload an unlocked version.",
        any_of=("password", "encrypted"),
    ),
    ErrorRule(
        ErrorKind.CORRUPT_FILE,
        "File could not be read. It may be corrupted or in an unsupported format.",
        any_of=("corrupt", "malformed", "invalid"),
    ),
    ErrorRule(
        ErrorKind.ARCHIVE_EXTRACTION,
        "Failed to extract ZIP archive. The file may be corrupted or use "
        "unsupported compression.",
        any_of=("zip", "archive", "decompress"),
    ),
    ErrorRule(
        ErrorKind.RESOURCE_EXHAUSTED,
        "Parser ran out of compute resources. The file may be too large.",
        any_of=("worker", "compute", "resource", "memory"),
    ),
    ErrorRule(
        ErrorKind.TIMEOUT,
        "Processing timed out. The file may be too large.",
        any_of=("timeout", "timed out", "abort"),
    ),
    ErrorRule(
        ErrorKind.STORAGE_ACCESS,
        "Failed to download file from storage. Please try again.",
        any_of=("storage", "download", "fetch"),
    ),
    ErrorRule(
        ErrorKind.DATABASE,
        "Database operation failed. Please try again or contact support.",
        any_of=("database", "postgres", "dynamodb"),
    ),
    ErrorRule(
        ErrorKind.DMR_FORMAT,
        "DMR data format error. Check that this is a valid NetDMR export file.",
        any_of=("netdmr", "dmr"),
    ),
    ErrorRule(
        ErrorKind.UNMAPPED_PARAMETER,
        "Unknown parameter code found. Some parameters could not be mapped.",
        any_of=("storet", "parameter code"),
    ),
    ErrorRule(
        ErrorKind.PERMIT_NOT_FOUND,
        "Permit number not found in database. Import the permit before "
        "processing this file.",
        all_of=("permit", "not found"),
    ),
    ErrorRule(
        ErrorKind.OUTFALL_NOT_FOUND,
        "Outfall not found in database. Import the permit limits before "
        "processing this file.",
        all_of=("outfall", "not found"),
    ),
)

# Independent of ERROR_RULES; see module docstring.
RETRYABLE_KEYWORDS: tuple[str, ...] = (
    "timeout",
    "timed out",
    "network",
    "connection",
    "temporarily",
    "transient",
    "rate limit",
    "429",
    "503",
    "504",
)


def error_message(error: object) -> str:
    """Extract the raw message text from an exception or arbitrary value."""
    message = getattr(error, "message", None)
    if isinstance(message, str):
        return message
    return str(error)


def truncate_message(message: str, max_length: int = MAX_ERROR_LENGTH) -> str:
    """Cut a message to ``max_length`` characters, marking the cut."""
    if len(message) > max_length:
        return message[:max_length] + TRUNCATION_MARKER
    return message


def match_rule(error: object) -> Optional[ErrorRule]:
    """Return the first taxonomy rule matching the error, if any."""
    lowered = error_message(error).lower()
    for rule in ERROR_RULES:
        if rule.matches(lowered):
            return rule
    return None


def classify_error(error: object, max_length: int = MAX_ERROR_LENGTH) -> list[str]:
    """Classify an error into user-facing text plus technical detail.

    Returns:
        ``[friendly_message, raw_detail]`` when a rule matches, otherwise
        ``[raw_detail]``. The raw detail is truncated to ``max_length``.
    """
    raw = truncate_message(error_message(error), max_length)
    rule = match_rule(error)
    if rule is None:
        return [raw]
    return [rule.message, raw]


def get_user_friendly_error(error: object) -> str:
    """Extract the user-friendly message from the classified error."""
    return classify_error(error)[0]


def is_retryable_error(error: object) -> bool:
    """Check whether an error looks transient enough to retry unchanged."""
    lowered = error_message(error).lower()
    return any(kw in lowered for kw in RETRYABLE_KEYWORDS)


@dataclass(frozen=True)
class ErrorClassification:
    """Combined verdict for one failure."""

    kind: ErrorKind
    message: str
    detail: str
    retryable: bool

    def to_error_log(self) -> list[str]:
        """Render in the ``error_log`` shape stored on queue entries."""
        if self.kind == ErrorKind.UNKNOWN:
            return [self.detail]
        return [self.message, self.detail]


def describe_error(error: object, max_length: int = MAX_ERROR_LENGTH) -> ErrorClassification:
    """Run both taxonomy checks and bundle the result."""
    detail = truncate_message(error_message(error), max_length)
    rule = match_rule(error)
    return ErrorClassification(
        kind=rule.kind if rule else ErrorKind.UNKNOWN,
        message=rule.message if rule else detail,
        detail=detail,
        retryable=is_retryable_error(error),
    )


@dataclass
class FailureRecord:
    """Record of a classified failure."""

    timestamp: datetime
    component: str
    subject_id: Optional[str]
    error_type: str
    classification: ErrorClassification
    details: dict = field(default_factory=dict)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "component": self.component,
            "subject_id": self.subject_id,
            "error_type": self.error_type,
            "kind": self.classification.kind.value,
            "message": self.classification.message,
            "detail": self.classification.detail,
            "retryable": self.classification.retryable,
            "details": self.details,
        }


class FailureLog:
    """Bounded history of classified failures with per-kind counts."""

    def __init__(self, max_history: int = 1000, max_error_length: int = MAX_ERROR_LENGTH):
        """Initialize failure log.

        Args:
            max_history: Maximum number of failures to keep in history.
            max_error_length: Truncation length for raw error detail.
        """
        self._history: list[FailureRecord] = []
        self._max_history = max_history
        self._max_error_length = max_error_length
        self._counts: dict[ErrorKind, int] = {kind: 0 for kind in ErrorKind}

    def record(
        self,
        error: object,
        component: str,
        subject_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> FailureRecord:
        """Classify and record a failure, logging it.

        Args:
            error: The exception or raw message that occurred.
            component: Pipeline component reporting the failure.
            subject_id: File or queue entry the failure concerns.
            details: Additional context for the log line.

        Returns:
            FailureRecord for the logged failure.
        """
        classification = describe_error(error, self._max_error_length)
        record = FailureRecord(
            timestamp=datetime.now(timezone.utc),
            component=component,
            subject_id=subject_id,
            error_type=type(error).__name__,
            classification=classification,
            details=details or {},
        )

        self._counts[classification.kind] += 1
        self._history.append(record)
        if len(self._history) > self._max_history:
            self._history.pop(0)

        logger.error(
            "failure_recorded",
            component=component,
            subject_id=subject_id,
            kind=classification.kind.value,
            retryable=classification.retryable,
            error_type=record.error_type,
            detail=classification.detail,
            **record.details,
        )
        return record

    def counts(self) -> dict[str, int]:
        """Get failure counts by kind."""
        return {kind.value: count for kind, count in self._counts.items()}

    def recent(
        self,
        limit: int = 100,
        kind: Optional[ErrorKind] = None,
    ) -> list[FailureRecord]:
        """Get recent failures, optionally filtered by kind."""
        records = self._history
        if kind:
            records = [r for r in records if r.classification.kind == kind]
        return records[-limit:]

    def retryable(self) -> list[FailureRecord]:
        """Failures an external retry trigger may resubmit."""
        return [r for r in self._history if r.classification.retryable]

    def clear(self) -> None:
        """Clear failure history."""
        self._history.clear()
        self._counts = {kind: 0 for kind in ErrorKind}
