"""Upload orchestrator.

Admits staged files into hashing and transfer under two independent limits:

- Transfer gate: fewer than ``upload_concurrency`` files hashing or uploading
- Hash gate: fewer than ``hash_concurrency`` hashes in flight

Files are admitted first-come first-served by admission sequence. All
bookkeeping runs on the event loop thread; suspension only happens while
hashing, talking to the queue store, or transferring bytes.
"""

import asyncio
import dataclasses
import functools
import itertools
from typing import Callable, Optional

from compliance_intake.auth import Permission, PermissionResolver
from compliance_intake.core import (
    FailureLog,
    IntakeConfig,
    StorageError,
    UnknownCategoryError,
    UploadCancelledError,
    UploadError,
    get_logger,
)
from compliance_intake.models.category import get_category
from compliance_intake.processing.models import QueueEntry, QueueStatus
from compliance_intake.processing.repository import QueueRepository
from compliance_intake.upload.hashing import hash_file
from compliance_intake.upload.models import (
    ACTIVE_STATES,
    OutcomeStatus,
    StagedFile,
    UploadOutcome,
    UploadProgress,
    UploadState,
)
from compliance_intake.upload.staging import StagingRegistry
from compliance_intake.upload.storage import ObjectStore

logger = get_logger(__name__)

CANCELLED_MESSAGE = "Upload cancelled"
DUPLICATE_MESSAGE = "This file has already been uploaded (matching file hash)."
INVALID_FILE_MESSAGE = "File has validation errors and cannot be uploaded."
IN_FLIGHT_MESSAGE = "File is already being uploaded."


class CancellationToken:
    """Cooperative cancellation flag for one upload."""

    def __init__(self, file_id: str):
        self.file_id = file_id
        self._cancelled = False

    @property
    def cancelled(self) -> bool:
        return self._cancelled

    def cancel(self) -> None:
        self._cancelled = True

    def raise_if_cancelled(self) -> None:
        if self._cancelled:
            raise UploadCancelledError(self.file_id)


class UploadOrchestrator:
    """Runs staged files through hash, duplicate check, transfer and queue insert."""

    def __init__(
        self,
        staging: StagingRegistry,
        repository: QueueRepository,
        object_store: ObjectStore,
        failure_log: Optional[FailureLog] = None,
        config: Optional[IntakeConfig] = None,
        user_id: Optional[str] = None,
    ):
        """Initialize the orchestrator.

        Args:
            staging: Registry the files are uploaded from.
            repository: Queue store for duplicate checks and new entries.
            object_store: Where file contents are stored.
            failure_log: Where classified upload failures are recorded.
            config: Concurrency limits and truncation length.
            user_id: Recorded as ``uploaded_by`` on queue entries.
        """
        self.config = config or IntakeConfig()
        self.staging = staging
        self.repository = repository
        self.object_store = object_store
        self.failure_log = failure_log or FailureLog(
            max_error_length=self.config.max_error_length
        )
        self.user_id = user_id

        self._uploads: dict[str, UploadProgress] = {}
        self._hashing_in_flight = 0
        self._sequence = itertools.count(1)
        self._tokens: dict[str, CancellationToken] = {}
        self._waiters: list[asyncio.Future] = []

    # ==================== Bookkeeping ====================

    @property
    def uploads(self) -> dict[str, UploadProgress]:
        """Snapshot of in-flight entries keyed by file ID."""
        return dict(self._uploads)

    @property
    def hashing_in_flight(self) -> int:
        return self._hashing_in_flight

    def progress(self, file_id: str) -> Optional[UploadProgress]:
        return self._uploads.get(file_id)

    def enqueue(self, file_id: str) -> UploadProgress:
        """Admit a file as pending, assigning its admission sequence.

        A file that is already pending or in flight keeps its entry; a file
        whose previous attempt failed is re-admitted at the back.
        """
        existing = self._uploads.get(file_id)
        if existing is not None and existing.status != UploadState.ERROR:
            return existing
        entry = UploadProgress(file_id=file_id, sequence=next(self._sequence))
        self._uploads[file_id] = entry
        return entry

    def start_upload(self, file_id: str) -> UploadProgress:
        existing = self._uploads.get(file_id)
        sequence = existing.sequence if existing else next(self._sequence)
        entry = UploadProgress(
            file_id=file_id, sequence=sequence, percent=0, status=UploadState.UPLOADING
        )
        self._uploads[file_id] = entry
        self._notify()
        return entry

    def update_progress(self, file_id: str, percent: int) -> None:
        """Record transfer progress; never moves backward while uploading."""
        current = self._uploads.get(file_id)
        if current is None:
            return
        percent = max(0, min(100, int(percent)))
        if current.status == UploadState.UPLOADING:
            percent = max(current.percent, percent)
        self._uploads[file_id] = dataclasses.replace(current, percent=percent)

    def set_status(
        self,
        file_id: str,
        status: UploadState,
        error: Optional[str] = None,
    ) -> None:
        current = self._uploads.get(file_id)
        if current is None:
            return
        self._uploads[file_id] = dataclasses.replace(
            current, status=UploadState(status), error=error
        )
        self._notify()

    def complete_upload(self, file_id: str) -> None:
        """Drop a finished file, freeing its slot."""
        self._uploads.pop(file_id, None)
        self._notify()

    def fail_upload(self, file_id: str, error: str) -> None:
        """Replace a file's entry with an error entry."""
        current = self._uploads.get(file_id)
        sequence = current.sequence if current else next(self._sequence)
        self._uploads[file_id] = UploadProgress(
            file_id=file_id,
            sequence=sequence,
            percent=0,
            status=UploadState.ERROR,
            error=error,
        )
        self._notify()

    def start_hash(self) -> None:
        self._hashing_in_flight += 1

    def complete_hash(self) -> None:
        self._hashing_in_flight = max(0, self._hashing_in_flight - 1)
        self._notify()

    def slots_in_use(self) -> int:
        """Number of files hashing or uploading."""
        return sum(1 for u in self._uploads.values() if u.status in ACTIVE_STATES)

    def can_start_upload(self) -> bool:
        return self.slots_in_use() < self.config.upload_concurrency

    def can_start_hash(self) -> bool:
        return self._hashing_in_flight < self.config.hash_concurrency

    def active_upload_count(self) -> int:
        """Number of files currently transferring bytes."""
        return sum(1 for u in self._uploads.values() if u.status == UploadState.UPLOADING)

    def queue_position(self, file_id: str) -> int:
        """Count of pending files admitted before this one.

        Unknown files are placed behind every pending file.
        """
        pending = [u for u in self._uploads.values() if u.status == UploadState.PENDING]
        target = self._uploads.get(file_id)
        if target is None:
            return len(pending)
        return sum(1 for u in pending if u.sequence < target.sequence)

    # ==================== Admission ====================

    def _notify(self) -> None:
        waiters, self._waiters = self._waiters, []
        for waiter in waiters:
            if not waiter.done():
                waiter.set_result(None)

    async def _wait_until(self, predicate: Callable[[], bool], token: CancellationToken) -> None:
        while not predicate():
            token.raise_if_cancelled()
            waiter = asyncio.get_running_loop().create_future()
            self._waiters.append(waiter)
            await waiter
        token.raise_if_cancelled()

    def _may_start_transfer(self, file_id: str) -> bool:
        return self.queue_position(file_id) == 0 and self.can_start_upload()

    def _on_transfer_progress(self, file_id: str, token: CancellationToken, percent: int) -> None:
        if not token.cancelled:
            self.update_progress(file_id, percent)

    def cancel(self, file_id: str) -> bool:
        """Cancel an admitted upload.

        Pending files are dropped. Files already hashing or uploading are
        marked as errored at once, freeing their slot; the running task stops
        at its next suspension point.

        Returns:
            True if an upload was cancelled.
        """
        token = self._tokens.get(file_id)
        if token is None or token.cancelled:
            return False
        token.cancel()

        entry = self._uploads.get(file_id)
        if entry is not None:
            if entry.status == UploadState.PENDING:
                del self._uploads[file_id]
            else:
                self._uploads[file_id] = UploadProgress(
                    file_id=file_id,
                    sequence=entry.sequence,
                    status=UploadState.ERROR,
                    error=CANCELLED_MESSAGE,
                )
        self._notify()
        logger.info(
            "upload_cancel_requested",
            file_id=file_id,
            status=entry.status.value if entry else None,
        )
        return True

    # ==================== Pipeline ====================

    def _outcome(self, staged: StagedFile, status: OutcomeStatus, **kwargs) -> UploadOutcome:
        return UploadOutcome(
            file_id=staged.id, file_name=staged.file_name, status=status, **kwargs
        )

    async def upload_file(
        self,
        staged: StagedFile,
        permissions: PermissionResolver,
        site_id: Optional[str] = None,
    ) -> UploadOutcome:
        """Upload one staged file.

        Refusals (no upload permission, validation errors, already in flight)
        change nothing. Failures are classified, recorded and left in the
        in-flight map as error entries.

        Args:
            staged: File to upload.
            permissions: Resolver for the acting user.
            site_id: Site the upload targets, if any.

        Returns:
            UploadOutcome describing what happened.
        """
        auth = permissions.authorize(Permission.UPLOAD, site_id)
        if not auth.allowed:
            return self._outcome(staged, OutcomeStatus.REFUSED, message=auth.reason)
        # overrides replace the staged record, so validate the live one
        staged = self.staging.get(staged.id) or staged
        if staged.validation_errors:
            return self._outcome(staged, OutcomeStatus.REFUSED, message=INVALID_FILE_MESSAGE)
        if staged.id in self._tokens:
            return self._outcome(staged, OutcomeStatus.REFUSED, message=IN_FLIGHT_MESSAGE)

        category = staged.effective_category
        config = get_category(category)
        if config is None:
            record = self.failure_log.record(
                UnknownCategoryError(category), component="upload", subject_id=staged.id
            )
            return self._outcome(
                staged, OutcomeStatus.FAILED, message=record.classification.message
            )

        token = CancellationToken(staged.id)
        self._tokens[staged.id] = token
        self.enqueue(staged.id)
        storage_path: Optional[str] = None

        try:
            await self._wait_until(functools.partial(self._may_start_transfer, staged.id), token)
            self.start_upload(staged.id)
            self.set_status(staged.id, UploadState.HASHING)

            await self._wait_until(self.can_start_hash, token)
            self.start_hash()
            try:
                content_hash, data = await hash_file(staged.file)
            finally:
                self.complete_hash()
            token.raise_if_cancelled()
            self.staging.update(staged.id, content_hash=content_hash)

            duplicate = await asyncio.to_thread(
                self.repository.find_by_hash, content_hash, config.bucket
            )
            token.raise_if_cancelled()
            if duplicate is not None:
                self.complete_upload(staged.id)
                logger.warning(
                    "duplicate_upload_skipped",
                    file_id=staged.id,
                    file_name=staged.file_name,
                    queue_entry_id=duplicate.id,
                )
                return self._outcome(
                    staged,
                    OutcomeStatus.DUPLICATE,
                    queue_entry_id=duplicate.id,
                    storage_path=duplicate.storage_path,
                    message=DUPLICATE_MESSAGE,
                )

            storage_path = config.build_path(
                staged.file_name, content_hash[:8], staged.effective_state
            )
            self.set_status(staged.id, UploadState.UPLOADING)
            await self.object_store.put(
                config.bucket,
                storage_path,
                data,
                staged.mime_type,
                on_progress=functools.partial(self._on_transfer_progress, staged.id, token),
            )
            if token.cancelled:
                await self.object_store.remove(config.bucket, storage_path)
                token.raise_if_cancelled()

            entry = QueueEntry(
                storage_bucket=config.bucket,
                storage_path=storage_path,
                file_name=staged.file_name,
                file_size_bytes=staged.file_size,
                mime_type=staged.mime_type,
                file_hash=content_hash,
                file_category=category,
                state_code=staged.effective_state,
                status=QueueStatus.QUEUED,
                uploaded_by=self.user_id,
            )
            try:
                await asyncio.to_thread(self.repository.create_entry, entry)
            except Exception as e:
                await self._remove_orphan(config.bucket, storage_path)
                raise UploadError(
                    f"Queue insert failed: {getattr(e, 'message', e)}",
                    file_id=staged.id,
                    file_name=staged.file_name,
                ) from e

            self.staging.remove(staged.id)
            self.complete_upload(staged.id)
            logger.info(
                "file_uploaded",
                file_id=staged.id,
                file_name=staged.file_name,
                bucket=config.bucket,
                storage_path=storage_path,
                queue_entry_id=entry.id,
            )
            return self._outcome(
                staged,
                OutcomeStatus.UPLOADED,
                queue_entry_id=entry.id,
                storage_path=storage_path,
            )

        except UploadCancelledError:
            logger.info("upload_cancelled", file_id=staged.id, file_name=staged.file_name)
            return self._outcome(staged, OutcomeStatus.CANCELLED, message=CANCELLED_MESSAGE)

        except Exception as e:
            if token.cancelled:
                return self._outcome(staged, OutcomeStatus.CANCELLED, message=CANCELLED_MESSAGE)
            record = self.failure_log.record(
                e,
                component="upload",
                subject_id=staged.id,
                details={"file_name": staged.file_name},
            )
            self.fail_upload(staged.id, record.classification.message)
            return self._outcome(
                staged,
                OutcomeStatus.FAILED,
                storage_path=storage_path,
                message=record.classification.message,
                retryable=record.classification.retryable,
            )

        finally:
            if self._tokens.get(staged.id) is token:
                del self._tokens[staged.id]
            self._release_interrupted(staged.id)

    def _release_interrupted(self, file_id: str) -> None:
        """Drop an entry left pending or active by a task that was torn down."""
        entry = self._uploads.get(file_id)
        if entry is None or entry.status not in ACTIVE_STATES | {UploadState.PENDING}:
            return
        del self._uploads[file_id]
        self._notify()
        logger.warning("upload_interrupted", file_id=file_id, status=entry.status.value)

    async def _remove_orphan(self, bucket: str, key: str) -> None:
        try:
            await self.object_store.remove(bucket, key)
        except StorageError as e:
            logger.warning("orphaned_object", bucket=bucket, key=key, error=str(e))

    async def upload_all(
        self,
        permissions: PermissionResolver,
        site_id: Optional[str] = None,
    ) -> list[UploadOutcome]:
        """Upload every ready file concurrently, admitted in staging order."""
        ready = self.staging.ready_files()
        if not ready:
            logger.info("no_files_ready")
            return []

        auth = permissions.authorize(Permission.UPLOAD, site_id)
        if not auth.allowed:
            return [self._outcome(s, OutcomeStatus.REFUSED, message=auth.reason) for s in ready]

        logger.info("upload_batch_started", count=len(ready))
        outcomes = await asyncio.gather(
            *(self.upload_file(staged, permissions, site_id) for staged in ready)
        )
        return list(outcomes)
