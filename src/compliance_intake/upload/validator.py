"""File validation against a category's rules.

Checks, in order:
- Blocked executable and archive extensions (reported alone)
- File size (50MB by default)
- MIME type against the category's accepted types, inferring the type
  from the extension when none was reported
"""

from typing import Optional, Protocol

from compliance_intake.models.category import (
    CSV,
    DOCX,
    JPEG,
    PDF,
    PNG,
    TEXT,
    TIFF,
    TSV,
    XLS,
    XLSX,
    CategoryConfig,
)
from compliance_intake.upload.files import FileHandle

MAX_FILE_SIZE = 50 * 1024 * 1024  # 50MB

BLOCKED_EXTENSIONS = frozenset({
    ".exe", ".bat", ".sh", ".cmd", ".ps1", ".dll", ".msi",
    ".jar", ".zip", ".tar", ".gz", ".7z", ".rar", ".com",
    ".scr", ".vbs", ".wsf", ".js",
})

KNOWN_EXTENSIONS: dict[str, str] = {
    ".pdf": PDF,
    ".csv": CSV,
    ".txt": TEXT,
    ".xls": XLS,
    ".xlsx": XLSX,
    ".docx": DOCX,
    ".png": PNG,
    ".jpg": JPEG,
    ".jpeg": JPEG,
    ".tiff": TIFF,
    ".tif": TIFF,
    ".tsv": TSV,
}


class Validator(Protocol):
    """Anything that can check a file against a category."""

    def validate(self, file: FileHandle, category: CategoryConfig) -> list[str]: ...


def file_extension(file_name: str) -> str:
    """Lowercased extension including the dot; a dotless name is its own extension."""
    return "." + file_name.rsplit(".", 1)[-1].lower()


def format_size(num_bytes: int) -> str:
    if num_bytes < 1024:
        return f"{num_bytes} B"
    if num_bytes < 1024 * 1024:
        return f"{num_bytes / 1024:.1f} KB"
    return f"{num_bytes / (1024 * 1024):.1f} MB"


class FileValidator:
    """Validates staged files against their target category.

    An empty list means the file may be uploaded.
    """

    def __init__(self, max_file_size: int = MAX_FILE_SIZE):
        self.max_file_size = max_file_size

    def validate(self, file: FileHandle, category: CategoryConfig) -> list[str]:
        """Validate a file for a category.

        Args:
            file: The candidate file.
            category: Configuration of the category it will be stored under.

        Returns:
            Human-readable validation errors.
        """
        errors: list[str] = []
        name = file.name
        ext = file_extension(name)

        if ext in BLOCKED_EXTENSIONS:
            errors.append(f'Executable and archive files are not accepted. "{name}" is blocked.')
            return errors

        if file.size > self.max_file_size:
            errors.append(
                f"File size ({format_size(file.size)}) exceeds the "
                f"{self.max_file_size // (1024 * 1024)}MB limit."
            )

        type_error = self._check_type(name, file.mime_type, ext, category)
        if type_error:
            errors.append(type_error)

        return errors

    def _check_type(
        self,
        name: str,
        mime_type: str,
        ext: str,
        category: CategoryConfig,
    ) -> Optional[str]:
        accepted = ", ".join(t.rsplit("/", 1)[-1] for t in category.accepted_types)

        if mime_type:
            if category.accepts(mime_type):
                return None
            return (
                f"The '{category.label}' category accepts {accepted} files only. "
                f'"{name}" ({mime_type}) is not allowed.'
            )

        inferred = KNOWN_EXTENSIONS.get(ext)
        if inferred and not category.accepts(inferred):
            return (
                f"The '{category.label}' category accepts {accepted} files only. "
                f'"{name}" is not allowed.'
            )
        # Unknown extensions with no reported type are let through.
        return None
