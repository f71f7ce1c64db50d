"""Processing queue state machine.

External parser processes advance queue entries through

    uploaded/queued -> processing -> parsed -> imported

with ``failed`` reachable from ``processing``. Entries never move backward
and never leave ``failed`` or ``imported``. Re-applying the current status
overwrites the same fields again.
"""

from typing import Any, Iterable, Optional

from compliance_intake.core import (
    FailureLog,
    InvalidTransitionError,
    QueueEntryNotFoundError,
    get_logger,
)
from compliance_intake.models.jurisdiction import VALID_STATE_CODES
from compliance_intake.processing.models import (
    STATUS_RANK,
    TERMINAL_STATUSES,
    QueueEntry,
    QueueStatus,
    utc_now,
)
from compliance_intake.processing.repository import QueueRepository

logger = get_logger(__name__)


def is_allowed_transition(current: QueueStatus, target: QueueStatus) -> bool:
    """Check whether a queue entry may move from ``current`` to ``target``."""
    if current == target:
        return True
    if STATUS_RANK.get(current) == 0 and STATUS_RANK.get(target) == 0:
        return True
    if current in TERMINAL_STATUSES:
        return False
    if target == QueueStatus.FAILED:
        return current == QueueStatus.PROCESSING
    return STATUS_RANK[target] > STATUS_RANK[current]


def single_state_code(
    extracted_data: Optional[dict[str, Any]],
    valid_codes: Iterable[str] = VALID_STATE_CODES,
) -> Optional[str]:
    """Return the one jurisdiction named by a parser payload, if unambiguous.

    The payload's ``states`` list must hold exactly one distinct value and
    that value, uppercased, must be a valid state code.
    """
    if not extracted_data:
        return None
    states = extracted_data.get("states")
    if not isinstance(states, (list, tuple)):
        return None
    distinct = {str(s).strip().upper() for s in states if s is not None}
    if len(distinct) != 1:
        return None
    code = distinct.pop()
    return code if code in set(valid_codes) else None


class QueueStateMachine:
    """Records parser outcomes on queue entries.

    Every transition reads the entry, checks the move is forward-only and
    writes with the version it read, so a concurrent writer surfaces as
    ``StaleWriteError`` rather than a lost update.
    """

    def __init__(
        self,
        repository: QueueRepository,
        failure_log: Optional[FailureLog] = None,
        valid_state_codes: Iterable[str] = VALID_STATE_CODES,
    ):
        """Initialize the state machine.

        Args:
            repository: Queue entry store.
            failure_log: Where classified parser failures are recorded.
            valid_state_codes: Jurisdiction codes eligible for auto-fill.
        """
        self.repository = repository
        self.failure_log = failure_log or FailureLog()
        self.valid_state_codes = frozenset(valid_state_codes)

    def _load(self, entry_id: str, operation: str) -> QueueEntry:
        entry = self.repository.get_entry(entry_id)
        if entry is None:
            raise QueueEntryNotFoundError(entry_id, operation=operation)
        return entry

    def _transition(
        self,
        entry: QueueEntry,
        target: QueueStatus,
        fields: dict[str, Any],
    ) -> QueueEntry:
        if not is_allowed_transition(entry.status, target):
            logger.warning(
                "queue_transition_rejected",
                entry_id=entry.id,
                current_status=entry.status.value,
                target_status=target.value,
            )
            raise InvalidTransitionError(entry.id, entry.status.value, target.value)

        fields["status"] = target
        fields.setdefault("updated_at", utc_now())
        updated = self.repository.update_queue_entry(
            entry.id, fields, expected_version=entry.version
        )
        logger.info(
            "queue_entry_marked",
            entry_id=entry.id,
            previous_status=entry.status.value,
            status=target.value,
            version=updated.version,
        )
        return updated

    def mark_processing(self, entry_id: str) -> QueueEntry:
        """Mark an entry as picked up by a parser."""
        entry = self._load(entry_id, "mark_processing")
        now = utc_now()
        return self._transition(
            entry,
            QueueStatus.PROCESSING,
            {"processing_started_at": now, "updated_at": now},
        )

    def mark_parsed(
        self,
        entry_id: str,
        extracted_data: dict[str, Any],
        record_count: int,
        current_state_code: Optional[str] = None,
        warnings: Optional[list[str]] = None,
    ) -> QueueEntry:
        """Store parser output on an entry.

        Non-empty ``warnings`` are kept in ``error_log`` as advisories. When
        neither the caller nor the stored entry knows the jurisdiction and the
        payload names exactly one valid state, ``state_code`` is filled in.

        Args:
            entry_id: Entry being parsed.
            extracted_data: Parser output payload.
            record_count: Number of records extracted.
            current_state_code: State code the parser saw on the entry.
            warnings: Non-fatal parser warnings.

        Returns:
            The updated entry.
        """
        entry = self._load(entry_id, "mark_parsed")
        now = utc_now()
        fields: dict[str, Any] = {
            "extracted_data": extracted_data,
            "records_extracted": record_count,
            "processing_completed_at": now,
            "updated_at": now,
        }
        if warnings:
            fields["error_log"] = list(warnings)

        known_state = current_state_code or entry.state_code
        if not known_state:
            state_code = single_state_code(extracted_data, self.valid_state_codes)
            if state_code:
                fields["state_code"] = state_code
                logger.info("queue_state_code_autofilled", entry_id=entry_id, state_code=state_code)

        return self._transition(entry, QueueStatus.PARSED, fields)

    def mark_failed(self, entry_id: str, errors: list[str]) -> QueueEntry:
        """Mark an entry failed with the given error lines."""
        entry = self._load(entry_id, "mark_failed")
        now = utc_now()
        return self._transition(
            entry,
            QueueStatus.FAILED,
            {"error_log": list(errors), "processing_completed_at": now, "updated_at": now},
        )

    def mark_failed_from_exception(self, entry_id: str, error: BaseException) -> QueueEntry:
        """Classify a parser exception and mark the entry failed with it."""
        record = self.failure_log.record(error, component="parser", subject_id=entry_id)
        return self.mark_failed(entry_id, record.classification.to_error_log())

    def mark_imported(self, entry_id: str, import_stats: dict[str, Any]) -> QueueEntry:
        """Mark an entry's data as imported into the domain tables."""
        entry = self._load(entry_id, "mark_imported")
        now = utc_now()
        return self._transition(
            entry,
            QueueStatus.IMPORTED,
            {"import_stats": import_stats, "imported_at": now, "updated_at": now},
        )
