# dbqueue/storage/base.py
from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional

from dbqueue.common.message import Message


class QueueStorage(ABC):
    """
    Query/update surface over the queue table.

    Only the queue engine calls these methods. Every status-changing update
    must be a single conditional statement, since other worker processes may
    be running the same statement against the same rows.
    """

    table: str

    @abstractmethod
    def create_schema(self) -> None: ...

    @abstractmethod
    def insert(self, message: Message) -> Message: ...

    @abstractmethod
    def find_waiting(
        self, queue: str, data: str, available_at: datetime
    ) -> Optional[Message]: ...

    @abstractmethod
    def next_available(self, queue: str, now: datetime) -> Optional[Message]: ...

    @abstractmethod
    def claim(self, message_id: int, now: datetime) -> bool:
        """WAITING -> EXECUTING guarded by the current status. True if this caller won."""

    @abstractmethod
    def mark_done(self, message_id: int, now: datetime) -> bool:
        """EXECUTING -> DONE. False when the reaper already moved the row on."""

    @abstractmethod
    def append_error(self, message_id: int, error: str, now: datetime) -> None: ...

    @abstractmethod
    def set_progress(
        self, message_id: int, current: int, total: int, now: datetime
    ) -> bool: ...

    @abstractmethod
    def requeue_timed_out(
        self, cutoff: datetime, max_retries: int, now: datetime
    ) -> int: ...

    @abstractmethod
    def fail_timed_out(self, cutoff: datetime, max_retries: int, now: datetime) -> int: ...

    @abstractmethod
    def delete_done_before(self, cutoff: datetime) -> int: ...

    @abstractmethod
    def get_message(self, message_id: int) -> Optional[Message]: ...
