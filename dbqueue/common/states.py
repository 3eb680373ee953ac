# dbqueue/common/states.py
from enum import IntEnum
from typing import Dict, FrozenSet


class Status(IntEnum):
    """
    Lifecycle of a queued message.

    State transitions:
    - WAITING -> EXECUTING (claimed by a worker)
    - EXECUTING -> DONE (callback returned)
    - EXECUTING -> WAITING (timed out, retries left)
    - EXECUTING -> FAILED (timed out, retries exhausted)
    """

    WAITING = 10
    EXECUTING = 20
    DONE = 30
    FAILED = 40

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS: Dict[Status, str] = {
    Status.WAITING: "Waiting",
    Status.EXECUTING: "Executing",
    Status.DONE: "Done",
    Status.FAILED: "Failed",
}

UNKNOWN_STATUS_LABEL = "Unknown"

ALLOWED_TRANSITIONS: Dict[Status, FrozenSet[Status]] = {
    Status.WAITING: frozenset({Status.EXECUTING}),
    Status.EXECUTING: frozenset({Status.DONE, Status.FAILED, Status.WAITING}),
    Status.DONE: frozenset(),
    Status.FAILED: frozenset(),
}


def status_label(value: int) -> str:
    try:
        return Status(value).label
    except ValueError:
        return UNKNOWN_STATUS_LABEL


def can_transition(old: int, new: Status) -> bool:
    return new in ALLOWED_TRANSITIONS.get(old, frozenset())


def sources_of(new: Status) -> FrozenSet[Status]:
    """Statuses a row may be in for an update to move it to ``new``."""
    return frozenset(old for old, targets in ALLOWED_TRANSITIONS.items() if new in targets)
