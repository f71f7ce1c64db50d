"""Staging registry for candidate files awaiting upload."""

import dataclasses
import uuid
from typing import Any, Callable, Iterable, Optional

from compliance_intake.classification import ClassificationResult, classify
from compliance_intake.core import UnknownCategoryError, get_logger
from compliance_intake.models.category import DEFAULT_CATEGORY, get_category, require_category
from compliance_intake.upload.files import FileHandle
from compliance_intake.upload.models import ManualOverride, StagedFile
from compliance_intake.upload.validator import FileValidator, Validator

logger = get_logger(__name__)

Classifier = Callable[[str], ClassificationResult]

_UNSET: Any = object()


class StagingRegistry:
    """Ordered set of staged files.

    Insertion order is kept; it decides admission order when files are
    uploaded together.
    """

    def __init__(
        self,
        classifier: Classifier = classify,
        validator: Optional[Validator] = None,
    ):
        """Initialize the registry.

        Args:
            classifier: Maps a filename to a classification.
            validator: Checks a file against its category.
        """
        self._files: list[StagedFile] = []
        self.classifier = classifier
        self.validator = validator or FileValidator()

    @property
    def files(self) -> list[StagedFile]:
        return list(self._files)

    def __len__(self) -> int:
        return len(self._files)

    def __contains__(self, file_id: object) -> bool:
        return any(f.id == file_id for f in self._files)

    def get(self, file_id: str) -> Optional[StagedFile]:
        for staged in self._files:
            if staged.id == file_id:
                return staged
        return None

    def add(self, files: Iterable[StagedFile]) -> None:
        """Append staged files after the existing ones."""
        self._files.extend(files)

    def remove(self, file_id: str) -> None:
        """Remove one file; no-op if absent."""
        self._files = [f for f in self._files if f.id != file_id]

    def update(self, file_id: str, **fields: Any) -> Optional[StagedFile]:
        """Merge fields into one file; no-op if absent.

        Returns:
            The updated file, or None when no file has this ID.
        """
        for i, staged in enumerate(self._files):
            if staged.id == file_id:
                updated = dataclasses.replace(staged, **fields)
                self._files[i] = updated
                return updated
        return None

    def clear(self) -> None:
        self._files = []

    def ready_files(self) -> list[StagedFile]:
        """Files with no validation errors, in staging order."""
        return [f for f in self._files if not f.validation_errors]

    def files_with_errors(self) -> list[StagedFile]:
        return [f for f in self._files if f.validation_errors]

    def _validate(self, handle: FileHandle, category: str) -> list[str]:
        config = get_category(category) or require_category(DEFAULT_CATEGORY)
        return self.validator.validate(handle, config)

    def stage(
        self,
        handles: Iterable[FileHandle],
        classifier: Optional[Classifier] = None,
        validator: Optional[Validator] = None,
    ) -> list[StagedFile]:
        """Classify, validate and append candidate files.

        Args:
            handles: Files selected or dropped by the user.
            classifier: Overrides the registry's classifier for this call.
            validator: Overrides the registry's validator for this call.

        Returns:
            The newly staged files, in the order given.
        """
        classifier = classifier or self.classifier
        validator = validator or self.validator
        staged: list[StagedFile] = []

        for handle in handles:
            classification = classifier(handle.name)
            category = classification.category or DEFAULT_CATEGORY
            config = get_category(category) or require_category(DEFAULT_CATEGORY)
            staged.append(
                StagedFile(
                    id=str(uuid.uuid4()),
                    file=handle,
                    file_name=handle.name,
                    file_size=handle.size,
                    mime_type=handle.mime_type,
                    classification=classification,
                    validation_errors=validator.validate(handle, config),
                )
            )

        self.add(staged)
        logger.info(
            "files_staged",
            count=len(staged),
            with_errors=sum(1 for f in staged if f.validation_errors),
        )
        return staged

    def override(
        self,
        file_id: str,
        state_code: Optional[str] = _UNSET,
        category: Optional[str] = _UNSET,
    ) -> Optional[StagedFile]:
        """Apply a user's state and/or category choice and re-validate.

        Omitted arguments keep the current override value; passing None
        clears it.

        Raises:
            UnknownCategoryError: If ``category`` is not configured.
        """
        staged = self.get(file_id)
        if staged is None:
            return None

        current = staged.manual_override or ManualOverride()
        new_override = ManualOverride(
            state_code=current.state_code if state_code is _UNSET else state_code,
            category=current.category if category is _UNSET else category,
        )
        if new_override.category is not None and get_category(new_override.category) is None:
            raise UnknownCategoryError(new_override.category)

        if new_override.state_code is None and new_override.category is None:
            manual_override = None
        else:
            manual_override = new_override

        candidate = dataclasses.replace(staged, manual_override=manual_override)
        errors = self._validate(staged.file, candidate.effective_category)
        logger.debug(
            "staged_file_overridden",
            file_id=file_id,
            state_code=candidate.effective_state,
            category=candidate.effective_category,
            errors=len(errors),
        )
        return self.update(file_id, manual_override=manual_override, validation_errors=errors)
