"""Server-side processing queue: records and the state machine that advances them."""

from compliance_intake.processing.models import (
    QueueEntry,
    QueueStatus,
    STATUS_RANK,
    TERMINAL_STATUSES,
)
from compliance_intake.processing.repository import (
    QueueRepository,
    InMemoryQueueRepository,
    DynamoQueueRepository,
)
from compliance_intake.processing.state_machine import (
    QueueStateMachine,
    is_allowed_transition,
    single_state_code,
)

__all__ = [
    # Models
    "QueueEntry",
    "QueueStatus",
    "STATUS_RANK",
    "TERMINAL_STATUSES",
    # Repositories
    "QueueRepository",
    "InMemoryQueueRepository",
    "DynamoQueueRepository",
    # State machine
    "QueueStateMachine",
    "is_allowed_transition",
    "single_state_code",
]
