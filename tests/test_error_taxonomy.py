"""Tests for error classification, retryability and the failure log."""

import pytest
from hypothesis import given, strategies as st

from compliance_intake.core import (
    ErrorKind,
    FailureLog,
    IntakeError,
    MAX_ERROR_LENGTH,
    classify_error,
    describe_error,
    get_user_friendly_error,
    is_retryable_error,
    truncate_message,
)
from compliance_intake.core.error_taxonomy import ERROR_RULES, match_rule


class TestClassifyError:
    """Tests for classify_error."""

    def test_password_protected(self):
        """Test password protected files get the password message."""
        result = classify_error(Exception("File is password protected"))

        rule = next(r for r in ERROR_RULES if r.kind == ErrorKind.PASSWORD_PROTECTED)
        assert result == [rule.message, "File is password protected"]

    def test_accepts_plain_strings(self):
        result = classify_error("Workbook is encrypted")
        assert match_rule("Workbook is encrypted").kind == ErrorKind.PASSWORD_PROTECTED
        assert len(result) == 2

    def test_header_rule_requires_both_keywords(self):
        """Test 'header' alone does not count as a format mismatch."""
        assert match_rule("Header mismatch in column B").kind == ErrorKind.FORMAT_MISMATCH
        assert match_rule("Expected header 'Date'").kind == ErrorKind.FORMAT_MISMATCH
        assert match_rule("header row") is None

    def test_first_match_wins(self):
        """Test an empty corrupt file is reported as empty."""
        assert match_rule("Sheet is empty and corrupt").kind == ErrorKind.EMPTY_FILE

    def test_case_insensitive(self):
        assert match_rule("STORET CODE 00530 NOT MAPPED").kind == ErrorKind.UNMAPPED_PARAMETER

    @pytest.mark.parametrize("message,kind", [
        ("No worksheet named Data", ErrorKind.MISSING_WORKSHEET),
        ("Exceeded row limit", ErrorKind.ROW_LIMIT_EXCEEDED),
        ("File has 50,000 rows", ErrorKind.ROW_LIMIT_EXCEEDED),
        ("Format not supported", ErrorKind.UNSUPPORTED_FORMAT),
        ("Malformed XML", ErrorKind.CORRUPT_FILE),
        ("Could not decompress payload", ErrorKind.ARCHIVE_EXTRACTION),
        ("Worker exceeded memory", ErrorKind.RESOURCE_EXHAUSTED),
        ("Request timed out", ErrorKind.TIMEOUT),
        ("Download from bucket failed", ErrorKind.STORAGE_ACCESS),
        ("Postgres constraint error", ErrorKind.DATABASE),
        ("NetDMR export unreadable", ErrorKind.DMR_FORMAT),
        ("Permit KY0001 not found", ErrorKind.PERMIT_NOT_FOUND),
        ("Outfall 002 not found", ErrorKind.OUTFALL_NOT_FOUND),
    ])
    def test_rule_table(self, message, kind):
        assert match_rule(message).kind == kind

    def test_uses_intake_error_message_without_code(self):
        """Test the [code] prefix of IntakeError is not part of the detail."""
        error = IntakeError("Something odd happened", error_code="ODD")
        assert classify_error(error) == ["Something odd happened"]

    def test_fallback_returns_raw_message(self):
        assert classify_error(Exception("Something odd happened")) == ["Something odd happened"]

    def test_fallback_truncates_long_messages(self):
        """Test messages over 800 characters are cut and marked."""
        message = "q" * 1000
        result = classify_error(Exception(message))

        assert len(result) == 1
        assert result[0] == "q" * MAX_ERROR_LENGTH + "..."

    def test_message_at_limit_is_not_truncated(self):
        message = "q" * MAX_ERROR_LENGTH
        assert classify_error(message) == [message]

    def test_get_user_friendly_error(self):
        friendly = get_user_friendly_error(Exception("Request timed out after 30s"))
        assert friendly == match_rule("timed out").message


class TestRetryability:
    """Tests for is_retryable_error."""

    def test_connection_timed_out_is_retryable(self):
        assert is_retryable_error(Exception("connection timed out")) is True

    def test_unknown_parameter_code_is_not_retryable(self):
        assert is_retryable_error(Exception("unknown parameter code")) is False

    @pytest.mark.parametrize("message", [
        "Service temporarily unavailable",
        "HTTP 429 Too Many Requests",
        "upstream returned 503",
        "Gateway 504",
        "transient failure",
        "Rate limit hit",
        "network unreachable",
    ])
    def test_transient_keywords(self, message):
        assert is_retryable_error(message) is True

    def test_independent_of_classification(self):
        """Test a classified kind can be retryable or not depending on wording."""
        assert match_rule("Storage fetch failed: connection reset").kind == ErrorKind.STORAGE_ACCESS
        assert is_retryable_error("Storage fetch failed: connection reset") is True
        assert match_rule("Storage object missing").kind == ErrorKind.STORAGE_ACCESS
        assert is_retryable_error("Storage object missing") is False


class TestDescribeError:
    """Tests for describe_error and ErrorClassification."""

    def test_matched_error(self):
        classification = describe_error(ConnectionError("Database connection reset"))

        assert classification.kind == ErrorKind.DATABASE
        assert classification.detail == "Database connection reset"
        assert classification.retryable is True
        assert classification.to_error_log() == [
            classification.message,
            "Database connection reset",
        ]

    def test_unknown_error(self):
        classification = describe_error(ValueError("boom"))

        assert classification.kind == ErrorKind.UNKNOWN
        assert classification.retryable is False
        assert classification.to_error_log() == ["boom"]


class TestFailureLog:
    """Tests for FailureLog."""

    @pytest.fixture
    def failure_log(self):
        return FailureLog(max_history=3)

    def test_record_counts_by_kind(self, failure_log):
        failure_log.record(Exception("Request timed out"), component="upload", subject_id="f-1")
        failure_log.record(Exception("Request timed out"), component="upload", subject_id="f-2")
        failure_log.record(Exception("boom"), component="parser")

        counts = failure_log.counts()
        assert counts["timeout"] == 2
        assert counts["unknown"] == 1

    def test_history_is_bounded(self, failure_log):
        for i in range(5):
            failure_log.record(Exception(f"boom {i}"), component="parser")

        recent = failure_log.recent()
        assert len(recent) == 3
        assert recent[-1].classification.detail == "boom 4"

    def test_recent_filters_by_kind(self, failure_log):
        failure_log.record(Exception("Request timed out"), component="upload")
        failure_log.record(Exception("boom"), component="upload")

        records = failure_log.recent(kind=ErrorKind.TIMEOUT)
        assert [r.classification.kind for r in records] == [ErrorKind.TIMEOUT]

    def test_retryable(self, failure_log):
        failure_log.record(Exception("network down"), component="upload")
        failure_log.record(Exception("corrupt file"), component="upload")

        assert [r.classification.detail for r in failure_log.retryable()] == ["network down"]

    def test_record_to_dict(self, failure_log):
        record = failure_log.record(
            ValueError("boom"), component="parser", subject_id="entry-1", details={"attempt": 1}
        )
        data = record.to_dict()

        assert data["component"] == "parser"
        assert data["subject_id"] == "entry-1"
        assert data["error_type"] == "ValueError"
        assert data["kind"] == "unknown"
        assert data["details"] == {"attempt": 1}

    def test_clear(self, failure_log):
        failure_log.record(Exception("boom"), component="parser")
        failure_log.clear()

        assert failure_log.recent() == []
        assert all(count == 0 for count in failure_log.counts().values())


class TestTruncationProperties:
    """Property tests for message truncation."""

    @given(st.text(min_size=0, max_size=2000))
    def test_truncation_bound(self, message):
        truncated = truncate_message(message)

        if len(message) > MAX_ERROR_LENGTH:
            assert truncated == message[:MAX_ERROR_LENGTH] + "..."
        else:
            assert truncated == message

    @given(st.text(max_size=300))
    def test_classify_is_deterministic(self, message):
        assert classify_error(message) == classify_error(message)
        assert is_retryable_error(message) == is_retryable_error(message)
