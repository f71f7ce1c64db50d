"""Runtime configuration for the compliance intake pipeline."""

import logging
import os
from dataclasses import dataclass
from typing import Optional


def _env_int(name: str, default: int) -> int:
    return int(os.environ.get(name, str(default)))


def _env_bool(name: str, default: bool) -> bool:
    return os.environ.get(name, "true" if default else "false").lower() == "true"


@dataclass
class IntakeConfig:
    """Configuration for staging, upload admission and queue persistence."""

    upload_concurrency: int = 10
    hash_concurrency: int = 2
    max_file_size: int = 50 * 1024 * 1024  # 50MB
    max_error_length: int = 800
    queue_table_name: str = "compliance-intake-queue"
    aws_region: str = "us-east-1"
    bucket_prefix: str = ""
    log_level: str = "INFO"
    json_logs: bool = False
    log_file: Optional[str] = None

    def __post_init__(self) -> None:
        if self.upload_concurrency < 1:
            raise ValueError("upload_concurrency must be at least 1")
        if self.hash_concurrency < 1:
            raise ValueError("hash_concurrency must be at least 1")
        if self.max_error_length < 1:
            raise ValueError("max_error_length must be at least 1")
        if not isinstance(logging.getLevelName(self.log_level.upper()), int):
            raise ValueError(f"Unknown log level: {self.log_level}")

    @classmethod
    def from_env(cls) -> "IntakeConfig":
        """Build a configuration from INTAKE_* environment variables."""
        return cls(
            upload_concurrency=_env_int("INTAKE_UPLOAD_CONCURRENCY", 10),
            hash_concurrency=_env_int("INTAKE_HASH_CONCURRENCY", 2),
            max_file_size=_env_int("INTAKE_MAX_FILE_SIZE", 50 * 1024 * 1024),
            max_error_length=_env_int("INTAKE_MAX_ERROR_LENGTH", 800),
            queue_table_name=os.environ.get(
                "INTAKE_QUEUE_TABLE", "compliance-intake-queue"
            ),
            aws_region=os.environ.get("AWS_REGION", "us-east-1"),
            bucket_prefix=os.environ.get("INTAKE_BUCKET_PREFIX", ""),
            log_level=os.environ.get("INTAKE_LOG_LEVEL", "INFO"),
            json_logs=_env_bool("INTAKE_JSON_LOGS", False),
            log_file=os.environ.get("INTAKE_LOG_FILE") or None,
        )
