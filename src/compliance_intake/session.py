"""Per-session intake context.

One ``IntakeSession`` is built for each signed-in user and owns that user's
staging registry, upload orchestrator, permission resolver and failure log.
"""

import uuid
from dataclasses import dataclass, field
from typing import Any, Iterable, Optional

from compliance_intake.auth import Permission, PermissionResolver, RoleAssignment
from compliance_intake.classification import classify
from compliance_intake.core import (
    FailureLog,
    IntakeConfig,
    bind_session,
    configure_logging_from_config,
    get_logger,
)
from compliance_intake.processing.repository import DynamoQueueRepository, QueueRepository
from compliance_intake.upload.files import FileHandle
from compliance_intake.upload.models import StagedFile, UploadOutcome
from compliance_intake.upload.orchestrator import UploadOrchestrator
from compliance_intake.upload.staging import StagingRegistry
from compliance_intake.upload.storage import ObjectStore, S3ObjectStore
from compliance_intake.upload.validator import FileValidator

logger = get_logger(__name__)


@dataclass
class StagingReport:
    """Result of staging a batch of dropped files."""

    staged: list[StagedFile] = field(default_factory=list)
    with_errors: list[StagedFile] = field(default_factory=list)
    refused_reason: Optional[str] = None

    @property
    def refused(self) -> bool:
        return self.refused_reason is not None

    @property
    def ready_count(self) -> int:
        return len(self.staged) - len(self.with_errors)


class IntakeSession:
    """Explicitly owned intake state for one user session."""

    def __init__(
        self,
        user_id: str,
        assignments: Iterable[RoleAssignment],
        repository: QueueRepository,
        object_store: ObjectStore,
        config: Optional[IntakeConfig] = None,
        session_id: Optional[str] = None,
    ):
        """Initialize the session.

        Args:
            user_id: Authenticated user.
            assignments: The user's role assignments.
            repository: Queue store shared with the processing side.
            object_store: Storage for uploaded contents.
            config: Limits; defaults to ``IntakeConfig()``.
            session_id: Identifier bound into log context.
        """
        self.config = config or IntakeConfig()
        self.user_id = user_id
        self.session_id = session_id or str(uuid.uuid4())

        self.permissions = PermissionResolver(assignments)
        self.failure_log = FailureLog(max_error_length=self.config.max_error_length)
        self.staging = StagingRegistry(
            classifier=classify,
            validator=FileValidator(max_file_size=self.config.max_file_size),
        )
        self.uploads = UploadOrchestrator(
            staging=self.staging,
            repository=repository,
            object_store=object_store,
            failure_log=self.failure_log,
            config=self.config,
            user_id=user_id,
        )
        bind_session(user_id, self.session_id)
        logger.info(
            "intake_session_started",
            role=self.permissions.effective_role().value,
            assignments=len(self.permissions.assignments),
        )

    @classmethod
    def from_role_records(
        cls,
        user_id: str,
        role_records: Iterable[dict[str, Any]],
        repository: QueueRepository,
        object_store: ObjectStore,
        config: Optional[IntakeConfig] = None,
    ) -> "IntakeSession":
        """Build a session from raw role-assignment rows."""
        assignments = [RoleAssignment.from_record(row) for row in role_records]
        return cls(user_id, assignments, repository, object_store, config=config)

    @classmethod
    def from_env(
        cls,
        user_id: str,
        assignments: Iterable[RoleAssignment],
        session_id: Optional[str] = None,
    ) -> "IntakeSession":
        """Build a session wired to DynamoDB and S3 from INTAKE_* settings.

        Logging is configured from the same settings before the session
        starts, so this is the entry point for a deployed process.
        """
        config = IntakeConfig.from_env()
        configure_logging_from_config(config)
        return cls(
            user_id,
            assignments,
            DynamoQueueRepository.from_config(config),
            S3ObjectStore.from_config(config),
            config=config,
            session_id=session_id,
        )

    def can(self, permission: Permission, site_id: Optional[str] = None) -> bool:
        return self.permissions.can(permission, site_id)

    def stage_files(
        self,
        handles: Iterable[FileHandle],
        site_id: Optional[str] = None,
    ) -> StagingReport:
        """Classify, validate and stage dropped files.

        Users without upload permission get a refusal and nothing is staged.
        """
        auth = self.permissions.authorize(Permission.UPLOAD, site_id)
        if not auth.allowed:
            return StagingReport(refused_reason=auth.reason)

        staged = self.staging.stage(handles)
        return StagingReport(
            staged=staged,
            with_errors=[f for f in staged if f.validation_errors],
        )

    def override(
        self,
        file_id: str,
        **choices: Optional[str],
    ) -> Optional[StagedFile]:
        """Apply the user's ``state_code`` and/or ``category`` choice to a staged file."""
        return self.staging.override(file_id, **choices)

    async def upload_file(
        self,
        file_id: str,
        site_id: Optional[str] = None,
    ) -> Optional[UploadOutcome]:
        """Upload one staged file by ID; None if it is not staged."""
        staged = self.staging.get(file_id)
        if staged is None:
            return None
        return await self.uploads.upload_file(staged, self.permissions, site_id)

    async def upload_all(self, site_id: Optional[str] = None) -> list[UploadOutcome]:
        return await self.uploads.upload_all(self.permissions, site_id)

    def cancel(self, file_id: str) -> bool:
        return self.uploads.cancel(file_id)
