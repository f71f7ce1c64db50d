"""Client-side staging and bounded-concurrency upload."""

from compliance_intake.upload.files import FileHandle, LocalFile, InMemoryFile
from compliance_intake.upload.models import (
    ManualOverride,
    StagedFile,
    UploadState,
    UploadProgress,
    OutcomeStatus,
    UploadOutcome,
)
from compliance_intake.upload.validator import FileValidator, Validator, MAX_FILE_SIZE
from compliance_intake.upload.staging import StagingRegistry
from compliance_intake.upload.hashing import hash_file, sha256_hex
from compliance_intake.upload.storage import ObjectStore, InMemoryObjectStore, S3ObjectStore
from compliance_intake.upload.orchestrator import CancellationToken, UploadOrchestrator

__all__ = [
    # Files
    "FileHandle",
    "LocalFile",
    "InMemoryFile",
    # Models
    "ManualOverride",
    "StagedFile",
    "UploadState",
    "UploadProgress",
    "OutcomeStatus",
    "UploadOutcome",
    # Validation and staging
    "FileValidator",
    "Validator",
    "MAX_FILE_SIZE",
    "StagingRegistry",
    # Transfer
    "hash_file",
    "sha256_hex",
    "ObjectStore",
    "InMemoryObjectStore",
    "S3ObjectStore",
    "CancellationToken",
    "UploadOrchestrator",
]
