"""Core utilities shared by every stage of the intake pipeline."""

from compliance_intake.core.logging import (
    get_logger,
    configure_logging,
    configure_logging_from_config,
    bind_session,
)
from compliance_intake.core.config import IntakeConfig
from compliance_intake.core.errors import (
    IntakeError,
    PersistenceError,
    QueueEntryNotFoundError,
    StaleWriteError,
    InvalidTransitionError,
    UploadError,
    StorageError,
    UploadCancelledError,
    UnknownCategoryError,
)
from compliance_intake.core.error_taxonomy import (
    MAX_ERROR_LENGTH,
    ErrorKind,
    ErrorRule,
    ErrorClassification,
    FailureLog,
    FailureRecord,
    classify_error,
    describe_error,
    get_user_friendly_error,
    is_retryable_error,
    truncate_message,
)

__all__ = [
    # Logging
    "get_logger",
    "configure_logging",
    "configure_logging_from_config",
    "bind_session",
    # Config
    "IntakeConfig",
    # Errors
    "IntakeError",
    "PersistenceError",
    "QueueEntryNotFoundError",
    "StaleWriteError",
    "InvalidTransitionError",
    "UploadError",
    "StorageError",
    "UploadCancelledError",
    "UnknownCategoryError",
    # Error taxonomy
    "MAX_ERROR_LENGTH",
    "ErrorKind",
    "ErrorRule",
    "ErrorClassification",
    "FailureLog",
    "FailureRecord",
    "classify_error",
    "describe_error",
    "get_user_friendly_error",
    "is_retryable_error",
    "truncate_message",
]
