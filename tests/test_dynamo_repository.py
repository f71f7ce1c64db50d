"""Tests for the queue repositories and the DynamoDB item mapping."""

import json
from decimal import Decimal
from unittest.mock import MagicMock

import pytest
from boto3.dynamodb.conditions import Attr
from botocore.exceptions import ClientError

from compliance_intake.core import (
    IntakeConfig,
    PersistenceError,
    QueueEntryNotFoundError,
    StaleWriteError,
)
from compliance_intake.processing import (
    DynamoQueueRepository,
    InMemoryQueueRepository,
    QueueEntry,
    QueueStatus,
)
from tests.strategies import FIXED_TIME, make_queue_entry


def client_error(code: str, operation: str = "UpdateItem") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, operation)


@pytest.fixture
def table():
    return MagicMock()


@pytest.fixture
def repository(table):
    return DynamoQueueRepository(table_name="test-queue", table=table)


class TestItemMapping:
    """Tests for QueueEntry <-> DynamoDB item conversion."""

    def test_to_dynamo_item(self):
        entry = make_queue_entry(
            extracted_data={"states": ["KY"], "ph": 7.2},
            status=QueueStatus.PARSED,
        )

        item = entry.to_dynamo_item()

        assert item["status"] == "parsed"
        assert item["created_at"] == FIXED_TIME.isoformat()
        assert json.loads(item["extracted_data"]) == {"states": ["KY"], "ph": 7.2}
        assert "state_code" not in item
        assert "import_stats" not in item

    def test_from_dynamo_item(self):
        item = make_queue_entry(import_stats={"inserted": 3}).to_dynamo_item()
        item["file_size_bytes"] = Decimal("2048")
        item["version"] = Decimal("4")

        entry = QueueEntry.from_dynamo_item(item)

        assert entry.file_size_bytes == 2048
        assert entry.version == 4
        assert entry.import_stats == {"inserted": 3}
        assert entry.created_at == FIXED_TIME
        assert entry.status == QueueStatus.QUEUED


class TestDynamoQueueRepository:
    """Tests for DynamoQueueRepository against a mocked table."""

    def test_create_entry_is_conditional(self, repository, table):
        entry = make_queue_entry()

        assert repository.create_entry(entry) == entry

        kwargs = table.put_item.call_args.kwargs
        assert kwargs["Item"]["id"] == "entry-1"
        assert "ConditionExpression" in kwargs

    def test_create_entry_failure(self, repository, table):
        table.put_item.side_effect = client_error("ConditionalCheckFailedException", "PutItem")

        with pytest.raises(PersistenceError) as exc_info:
            repository.create_entry(make_queue_entry())

        assert exc_info.value.operation == "create_entry"

    def test_get_entry(self, repository, table):
        table.get_item.return_value = {"Item": make_queue_entry().to_dynamo_item()}

        entry = repository.get_entry("entry-1")

        assert entry.id == "entry-1"
        table.get_item.assert_called_once_with(Key={"id": "entry-1"}, ConsistentRead=True)

    def test_get_missing_entry(self, repository, table):
        table.get_item.return_value = {}
        assert repository.get_entry("missing") is None

    def test_find_by_hash_follows_pages(self, repository, table):
        table.query.side_effect = [
            {"Items": [], "LastEvaluatedKey": {"id": "x"}},
            {"Items": [make_queue_entry(id="dup").to_dynamo_item()]},
        ]

        entry = repository.find_by_hash("abcd", "lab-data")

        assert entry.id == "dup"
        assert table.query.call_count == 2
        second_call = table.query.call_args_list[1].kwargs
        assert second_call["IndexName"] == "file_hash-index"
        assert second_call["ExclusiveStartKey"] == {"id": "x"}

    def test_find_by_hash_skips_failed_entries(self, repository, table):
        table.query.return_value = {"Items": []}

        repository.find_by_hash("abcd", "lab-data")

        kwargs = table.query.call_args.kwargs
        assert kwargs["FilterExpression"] == (
            Attr("storage_bucket").eq("lab-data") & Attr("status").ne("failed")
        )

    def test_find_by_hash_none(self, repository, table):
        table.query.return_value = {"Items": []}
        assert repository.find_by_hash("abcd", "lab-data") is None

    def test_find_by_hash_failure(self, repository, table):
        table.query.side_effect = client_error("ProvisionedThroughputExceededException", "Query")

        with pytest.raises(PersistenceError):
            repository.find_by_hash("abcd", "lab-data")

    def test_update_builds_expression(self, repository, table):
        table.update_item.return_value = {
            "Attributes": make_queue_entry(status=QueueStatus.PROCESSING, version=2).to_dynamo_item()
        }

        updated = repository.update_queue_entry(
            "entry-1",
            {"status": QueueStatus.PROCESSING, "error_log": None},
            expected_version=1,
        )

        kwargs = table.update_item.call_args.kwargs
        assert kwargs["UpdateExpression"] == (
            "SET #f0 = :v0, #version = #version + :one REMOVE #f1"
        )
        assert kwargs["ConditionExpression"] == "attribute_exists(#id) AND #version = :expected"
        assert kwargs["ExpressionAttributeNames"]["#f0"] == "status"
        assert kwargs["ExpressionAttributeNames"]["#f1"] == "error_log"
        assert kwargs["ExpressionAttributeValues"][":v0"] == "processing"
        assert kwargs["ExpressionAttributeValues"][":expected"] == 1
        assert updated.status == QueueStatus.PROCESSING
        assert updated.version == 2

    def test_update_serializes_json_fields(self, repository, table):
        table.update_item.return_value = {"Attributes": make_queue_entry().to_dynamo_item()}

        repository.update_queue_entry("entry-1", {"extracted_data": {"ph": 7.2}})

        kwargs = table.update_item.call_args.kwargs
        assert json.loads(kwargs["ExpressionAttributeValues"][":v0"]) == {"ph": 7.2}
        assert kwargs["ConditionExpression"] == "attribute_exists(#id)"

    def test_conditional_failure_on_changed_entry_is_stale(self, repository, table):
        table.update_item.side_effect = client_error("ConditionalCheckFailedException")
        table.get_item.return_value = {"Item": make_queue_entry(version=3).to_dynamo_item()}

        with pytest.raises(StaleWriteError) as exc_info:
            repository.update_queue_entry("entry-1", {"records_extracted": 1}, expected_version=2)

        assert exc_info.value.actual_version == 3

    def test_conditional_failure_on_missing_entry(self, repository, table):
        table.update_item.side_effect = client_error("ConditionalCheckFailedException")
        table.get_item.return_value = {}

        with pytest.raises(QueueEntryNotFoundError):
            repository.update_queue_entry("entry-1", {"records_extracted": 1})

    def test_other_client_errors(self, repository, table):
        table.update_item.side_effect = client_error("InternalServerError")

        with pytest.raises(PersistenceError) as exc_info:
            repository.update_queue_entry("entry-1", {"records_extracted": 1})

        assert not isinstance(exc_info.value, StaleWriteError)

    def test_from_config(self):
        repository = DynamoQueueRepository.from_config(
            IntakeConfig(queue_table_name="queue-prod", aws_region="eu-west-1")
        )

        assert repository.table_name == "queue-prod"
        assert repository.region_name == "eu-west-1"

    def test_defaults_follow_config_defaults(self):
        repository = DynamoQueueRepository()

        assert repository.table_name == IntakeConfig().queue_table_name
        assert repository.region_name == IntakeConfig().aws_region


class TestInMemoryDuplicateLookup:
    """Tests for InMemoryQueueRepository.find_by_hash."""

    def test_matches_hash_and_bucket(self):
        repository = InMemoryQueueRepository()
        repository.create_entry(make_queue_entry(file_hash="abcd", storage_bucket="lab-data"))

        assert repository.find_by_hash("abcd", "lab-data").id == "entry-1"
        assert repository.find_by_hash("abcd", "permits") is None

    def test_failed_entries_are_ignored(self):
        repository = InMemoryQueueRepository()
        repository.create_entry(make_queue_entry(
            file_hash="abcd", storage_bucket="lab-data", status=QueueStatus.FAILED
        ))

        assert repository.find_by_hash("abcd", "lab-data") is None

        repository.create_entry(make_queue_entry(
            id="entry-2", file_hash="abcd", storage_bucket="lab-data", status=QueueStatus.PARSED
        ))

        assert repository.find_by_hash("abcd", "lab-data").id == "entry-2"
