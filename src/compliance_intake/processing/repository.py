"""Queue entry persistence.

The state machine and upload orchestrator only talk to ``QueueRepository``.
Every write can carry the version the writer last read; a mismatch raises
``StaleWriteError`` instead of overwriting a newer update.
"""

import threading
from abc import ABC, abstractmethod
from typing import Any, Optional

import boto3
from boto3.dynamodb.conditions import Attr, Key
from botocore.exceptions import ClientError

from compliance_intake.core import (
    IntakeConfig,
    PersistenceError,
    QueueEntryNotFoundError,
    StaleWriteError,
    get_logger,
)
from compliance_intake.processing.models import QueueEntry, QueueStatus, to_dynamo_value

logger = get_logger(__name__)


class QueueRepository(ABC):
    """Abstract store for processing queue entries."""

    @abstractmethod
    def create_entry(self, entry: QueueEntry) -> QueueEntry:
        """
        Persist a new queue entry.

        Args:
            entry: The entry to create.

        Returns:
            The stored entry.

        Raises:
            PersistenceError: If the store rejects the write.
        """
        ...

    @abstractmethod
    def get_entry(self, entry_id: str) -> Optional[QueueEntry]:
        """
        Get a queue entry by ID.

        Returns:
            The entry if found, None otherwise.
        """
        ...

    @abstractmethod
    def find_by_hash(self, file_hash: str, storage_bucket: str) -> Optional[QueueEntry]:
        """
        Find an existing entry for the same content in the same bucket.

        Failed entries are ignored so a file whose processing failed can be
        submitted again.

        Args:
            file_hash: SHA-256 hex digest of the file.
            storage_bucket: Bucket the file would be stored in.

        Returns:
            A matching entry, or None when the content is new.
        """
        ...

    @abstractmethod
    def update_queue_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> QueueEntry:
        """
        Merge fields into an existing entry and bump its version.

        Args:
            entry_id: Entry to update.
            fields: Field values to overwrite.
            expected_version: Version the caller last read. When given, the
                write only succeeds if the stored version still matches.

        Returns:
            The updated entry.

        Raises:
            QueueEntryNotFoundError: If no entry has this ID.
            StaleWriteError: If ``expected_version`` no longer matches.
            PersistenceError: If the store fails the write.
        """
        ...


class InMemoryQueueRepository(QueueRepository):
    """
    In-memory implementation of QueueRepository.

    Useful for testing and local development. Safe to call from worker
    threads.
    """

    def __init__(self):
        self._entries: dict[str, QueueEntry] = {}  # entry_id -> entry
        self._lock = threading.Lock()

    def create_entry(self, entry: QueueEntry) -> QueueEntry:
        with self._lock:
            if entry.id in self._entries:
                raise PersistenceError(
                    f"Queue entry {entry.id} already exists",
                    entry_id=entry.id,
                    operation="create_entry",
                )
            self._entries[entry.id] = entry.model_copy(deep=True)
        logger.info("queue_entry_created", entry_id=entry.id, status=entry.status.value)
        return entry.model_copy(deep=True)

    def get_entry(self, entry_id: str) -> Optional[QueueEntry]:
        with self._lock:
            entry = self._entries.get(entry_id)
            return entry.model_copy(deep=True) if entry else None

    def find_by_hash(self, file_hash: str, storage_bucket: str) -> Optional[QueueEntry]:
        with self._lock:
            for entry in self._entries.values():
                if (
                    entry.file_hash == file_hash
                    and entry.storage_bucket == storage_bucket
                    and entry.status != QueueStatus.FAILED
                ):
                    return entry.model_copy(deep=True)
        return None

    def update_queue_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> QueueEntry:
        with self._lock:
            current = self._entries.get(entry_id)
            if current is None:
                raise QueueEntryNotFoundError(entry_id, operation="update_queue_entry")
            if expected_version is not None and current.version != expected_version:
                raise StaleWriteError(
                    entry_id,
                    expected_version,
                    actual_version=current.version,
                    operation="update_queue_entry",
                )
            updates = dict(fields)
            updates["version"] = current.version + 1
            updated = QueueEntry.model_validate({**current.model_dump(), **updates})
            self._entries[entry_id] = updated
            return updated.model_copy(deep=True)

    def list_entries(self) -> list[QueueEntry]:
        """All entries in creation order."""
        with self._lock:
            return [e.model_copy(deep=True) for e in self._entries.values()]


class DynamoQueueRepository(QueueRepository):
    """Stores queue entries in a DynamoDB table keyed by ``id``.

    Duplicate lookups use a ``file_hash-index`` global secondary index.
    """

    HASH_INDEX = "file_hash-index"

    def __init__(
        self,
        table_name: Optional[str] = None,
        region_name: Optional[str] = None,
        table: Optional[Any] = None,
    ):
        """Initialize the repository.

        Args:
            table_name: DynamoDB table name.
            region_name: AWS region for the boto3 resource.
            table: Optional pre-built Table resource (for testing).
        """
        self.table_name = table_name or IntakeConfig.queue_table_name
        self.region_name = region_name or IntakeConfig.aws_region
        self._table = table

    @classmethod
    def from_config(cls, config: IntakeConfig) -> "DynamoQueueRepository":
        return cls(table_name=config.queue_table_name, region_name=config.aws_region)

    @property
    def table(self):
        """Get DynamoDB table resource."""
        if self._table is None:
            dynamodb = boto3.resource("dynamodb", region_name=self.region_name)
            self._table = dynamodb.Table(self.table_name)
        return self._table

    def create_entry(self, entry: QueueEntry) -> QueueEntry:
        try:
            self.table.put_item(
                Item=entry.to_dynamo_item(),
                ConditionExpression=Attr("id").not_exists(),
            )
        except ClientError as e:
            logger.error("queue_entry_create_failed", entry_id=entry.id, error=str(e))
            raise PersistenceError(
                f"Failed to create queue entry: {e}",
                entry_id=entry.id,
                operation="create_entry",
            ) from e
        logger.info("queue_entry_created", entry_id=entry.id, status=entry.status.value)
        return entry

    def get_entry(self, entry_id: str) -> Optional[QueueEntry]:
        try:
            response = self.table.get_item(Key={"id": entry_id}, ConsistentRead=True)
        except ClientError as e:
            logger.error("queue_entry_get_failed", entry_id=entry_id, error=str(e))
            raise PersistenceError(
                f"Failed to read queue entry: {e}",
                entry_id=entry_id,
                operation="get_entry",
            ) from e
        item = response.get("Item")
        return QueueEntry.from_dynamo_item(item) if item else None

    def find_by_hash(self, file_hash: str, storage_bucket: str) -> Optional[QueueEntry]:
        query_args: dict[str, Any] = {
            "IndexName": self.HASH_INDEX,
            "KeyConditionExpression": Key("file_hash").eq(file_hash),
            "FilterExpression": (
                Attr("storage_bucket").eq(storage_bucket)
                & Attr("status").ne(QueueStatus.FAILED.value)
            ),
        }
        try:
            while True:
                response = self.table.query(**query_args)
                items = response.get("Items", [])
                if items:
                    return QueueEntry.from_dynamo_item(items[0])
                last_key = response.get("LastEvaluatedKey")
                if not last_key:
                    return None
                query_args["ExclusiveStartKey"] = last_key
        except ClientError as e:
            logger.error(
                "queue_duplicate_check_failed",
                file_hash=file_hash,
                storage_bucket=storage_bucket,
                error=str(e),
            )
            raise PersistenceError(
                f"Duplicate check failed: {e}",
                operation="find_by_hash",
            ) from e

    def update_queue_entry(
        self,
        entry_id: str,
        fields: dict[str, Any],
        expected_version: Optional[int] = None,
    ) -> QueueEntry:
        set_clauses = []
        remove_clauses = []
        expr_names = {"#id": "id", "#version": "version"}
        expr_values: dict[str, Any] = {":one": 1}

        for i, (name, value) in enumerate(fields.items()):
            placeholder = f"#f{i}"
            expr_names[placeholder] = name
            if value is None:
                remove_clauses.append(placeholder)
            else:
                set_clauses.append(f"{placeholder} = :v{i}")
                expr_values[f":v{i}"] = to_dynamo_value(name, value)
        set_clauses.append("#version = #version + :one")

        update_expr = "SET " + ", ".join(set_clauses)
        if remove_clauses:
            update_expr += " REMOVE " + ", ".join(remove_clauses)

        condition = "attribute_exists(#id)"
        if expected_version is not None:
            condition += " AND #version = :expected"
            expr_values[":expected"] = expected_version

        try:
            response = self.table.update_item(
                Key={"id": entry_id},
                UpdateExpression=update_expr,
                ConditionExpression=condition,
                ExpressionAttributeNames=expr_names,
                ExpressionAttributeValues=expr_values,
                ReturnValues="ALL_NEW",
            )
        except ClientError as e:
            code = e.response.get("Error", {}).get("Code")
            if code == "ConditionalCheckFailedException":
                current = self.get_entry(entry_id)
                if current is None:
                    raise QueueEntryNotFoundError(entry_id, operation="update_queue_entry") from e
                logger.warning(
                    "queue_entry_stale_write",
                    entry_id=entry_id,
                    expected_version=expected_version,
                    actual_version=current.version,
                )
                raise StaleWriteError(
                    entry_id,
                    expected_version,
                    actual_version=current.version,
                    operation="update_queue_entry",
                ) from e
            logger.error("queue_entry_update_failed", entry_id=entry_id, error=str(e))
            raise PersistenceError(
                f"Failed to update queue entry: {e}",
                entry_id=entry_id,
                operation="update_queue_entry",
            ) from e

        return QueueEntry.from_dynamo_item(response["Attributes"])
