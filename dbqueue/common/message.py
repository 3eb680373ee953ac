# dbqueue/common/message.py
import json
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any, Mapping, Optional

from dbqueue.common.payload import Payload, parse_payload
from dbqueue.common.states import Status, status_label

DEFAULT_WEIGHT = 100


def utcnow() -> datetime:
    return datetime.now(UTC)


def as_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Attach UTC to naive datetimes read back from stores that drop tzinfo."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


@dataclass
class Message:
    """
    A single unit of work as persisted in the queue table.

    Read-only view: every mutation goes through the queue engine.
    """

    queue: str
    data: str  # canonical JSON of the payload

    id: Optional[int] = None
    status: int = Status.WAITING
    weight: int = DEFAULT_WEIGHT
    attempts: int = 0
    available_at: datetime = field(default_factory=utcnow)
    progress_current: int = 0
    progress_total: int = 0
    error: str = ""
    created_at: datetime = field(default_factory=utcnow)
    updated_at: datetime = field(default_factory=utcnow)

    @classmethod
    def from_row(cls, row: Mapping[str, Any]) -> "Message":
        return cls(
            id=row["id"],
            queue=row["queue"],
            status=row["status"],
            weight=row["weight"],
            attempts=row["attempts"],
            available_at=as_utc(row["available_at"]),
            data=row["data"],
            progress_current=row["progress_current"] or 0,
            progress_total=row["progress_total"] or 0,
            error=row["error"] or "",
            created_at=as_utc(row["created_at"]),
            updated_at=as_utc(row["updated_at"]),
        )

    @property
    def status_text(self) -> str:
        return status_label(self.status)

    @property
    def progress(self) -> str:
        if self.status != Status.EXECUTING or self.progress_total == 0:
            return self.status_text
        percent = round(self.progress_current / self.progress_total * 100, 2)
        return f"{percent:g}%"

    @property
    def payload(self) -> Payload:
        return parse_payload(json.loads(self.data))

    def __repr__(self) -> str:
        return (
            f"Message(id={self.id}, queue={self.queue}, "
            f"status={self.status_text}, weight={self.weight}, attempts={self.attempts})"
        )
