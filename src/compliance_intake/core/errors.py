"""Custom exception classes for the compliance intake pipeline."""

from typing import Optional


class IntakeError(Exception):
    """Base exception for all compliance intake errors."""

    def __init__(
        self,
        message: str,
        error_code: Optional[str] = None,
        details: Optional[dict] = None,
    ):
        super().__init__(message)
        self.message = message
        self.error_code = error_code
        self.details = details or {}

    def __str__(self) -> str:
        if self.error_code:
            return f"[{self.error_code}] {self.message}"
        return self.message


class PersistenceError(IntakeError):
    """Error raised when the queue record store rejects or fails a write."""

    def __init__(
        self,
        message: str,
        entry_id: Optional[str] = None,
        operation: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "PERSISTENCE")
        super().__init__(message, **kwargs)
        self.entry_id = entry_id
        self.operation = operation
        self.details.update({
            "entry_id": entry_id,
            "operation": operation,
        })


class QueueEntryNotFoundError(PersistenceError):
    """No queue entry exists for the given identifier."""

    def __init__(self, entry_id: str, operation: Optional[str] = None):
        super().__init__(
            f"Queue entry {entry_id} not found",
            entry_id=entry_id,
            operation=operation,
            error_code="QUEUE_ENTRY_NOT_FOUND",
        )


class StaleWriteError(PersistenceError):
    """A writer tried to update a queue entry that changed since it was read."""

    def __init__(
        self,
        entry_id: str,
        expected_version: int,
        actual_version: Optional[int] = None,
        operation: Optional[str] = None,
    ):
        super().__init__(
            f"Queue entry {entry_id} was modified concurrently "
            f"(expected version {expected_version}, found {actual_version})",
            entry_id=entry_id,
            operation=operation,
            error_code="STALE_WRITE",
        )
        self.expected_version = expected_version
        self.actual_version = actual_version
        self.details.update({
            "expected_version": expected_version,
            "actual_version": actual_version,
        })


class InvalidTransitionError(IntakeError):
    """A queue entry was asked to move backward or out of a terminal state."""

    def __init__(self, entry_id: str, current_status: str, target_status: str):
        super().__init__(
            f"Queue entry {entry_id} cannot move from '{current_status}' to '{target_status}'",
            error_code="INVALID_TRANSITION",
        )
        self.entry_id = entry_id
        self.current_status = current_status
        self.target_status = target_status
        self.details.update({
            "entry_id": entry_id,
            "current_status": current_status,
            "target_status": target_status,
        })


class UploadError(IntakeError):
    """Error during hashing or transfer of a staged file."""

    def __init__(
        self,
        message: str,
        file_id: Optional[str] = None,
        file_name: Optional[str] = None,
        **kwargs,
    ):
        kwargs.setdefault("error_code", "UPLOAD")
        super().__init__(message, **kwargs)
        self.file_id = file_id
        self.file_name = file_name
        self.details.update({
            "file_id": file_id,
            "file_name": file_name,
        })


class StorageError(UploadError):
    """Error raised by the object storage collaborator."""

    def __init__(
        self,
        message: str,
        bucket: Optional[str] = None,
        key: Optional[str] = None,
        **kwargs,
    ):
        super().__init__(message, error_code="STORAGE", **kwargs)
        self.bucket = bucket
        self.key = key
        self.details.update({
            "bucket": bucket,
            "key": key,
        })


class UploadCancelledError(UploadError):
    """The file's upload was cancelled while it was in flight."""

    def __init__(self, file_id: str):
        super().__init__("Upload cancelled", file_id=file_id, error_code="CANCELLED")


class UnknownCategoryError(IntakeError):
    """A file resolved to a category with no configuration."""

    def __init__(self, category: str):
        super().__init__(f"Unknown category: {category}", error_code="UNKNOWN_CATEGORY")
        self.category = category
        self.details["category"] = category
