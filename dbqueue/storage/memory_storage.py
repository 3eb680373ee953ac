# dbqueue/storage/memory_storage.py
from dataclasses import replace
from datetime import datetime
from threading import RLock
from typing import Dict, Optional

from dbqueue.common.message import Message
from dbqueue.common.states import Status, can_transition
from dbqueue.storage.base import QueueStorage


class MemoryStorage(QueueStorage):
    """Process-local queue table. Every operation runs under one lock."""

    def __init__(self, table: str = "memory"):
        self.table = table
        self._rows: Dict[int, Message] = {}
        self._next_id = 1
        self._lock = RLock()

    def create_schema(self) -> None:
        pass

    def insert(self, message: Message) -> Message:
        with self._lock:
            stored = replace(message, id=self._next_id)
            self._rows[stored.id] = stored
            self._next_id += 1
            return replace(stored)

    def find_waiting(
        self, queue: str, data: str, available_at: datetime
    ) -> Optional[Message]:
        with self._lock:
            for message_id in sorted(self._rows):
                row = self._rows[message_id]
                if (
                    row.queue == queue
                    and row.status == Status.WAITING
                    and row.data == data
                    and row.available_at == available_at
                ):
                    return replace(row)
            return None

    def next_available(self, queue: str, now: datetime) -> Optional[Message]:
        with self._lock:
            candidates = [
                row
                for row in self._rows.values()
                if row.queue == queue
                and row.status == Status.WAITING
                and row.available_at <= now
            ]
            if not candidates:
                return None
            best = min(candidates, key=lambda row: (row.weight, row.id))
            return replace(best)

    def claim(self, message_id: int, now: datetime) -> bool:
        with self._lock:
            row = self._rows.get(message_id)
            if row is None or not can_transition(row.status, Status.EXECUTING):
                return False
            row.status = Status.EXECUTING
            row.updated_at = now
            return True

    def mark_done(self, message_id: int, now: datetime) -> bool:
        with self._lock:
            row = self._rows.get(message_id)
            if row is None or not can_transition(row.status, Status.DONE):
                return False
            row.status = Status.DONE
            row.updated_at = now
            return True

    def append_error(self, message_id: int, error: str, now: datetime) -> None:
        with self._lock:
            row = self._rows.get(message_id)
            if row is not None:
                row.error = (row.error or "") + error
                row.updated_at = now

    def set_progress(
        self, message_id: int, current: int, total: int, now: datetime
    ) -> bool:
        with self._lock:
            row = self._rows.get(message_id)
            if row is None or row.status != Status.EXECUTING:
                return False
            row.progress_current = current
            row.progress_total = total
            row.updated_at = now
            return True

    def requeue_timed_out(
        self, cutoff: datetime, max_retries: int, now: datetime
    ) -> int:
        return self._expire(cutoff, now, lambda row: row.attempts < max_retries, Status.WAITING)

    def fail_timed_out(self, cutoff: datetime, max_retries: int, now: datetime) -> int:
        return self._expire(cutoff, now, lambda row: row.attempts >= max_retries, Status.FAILED)

    def _expire(self, cutoff, now, predicate, new_status: Status) -> int:
        changed = 0
        with self._lock:
            for row in self._rows.values():
                if (
                    can_transition(row.status, new_status)
                    and row.updated_at < cutoff
                    and predicate(row)
                ):
                    row.attempts += 1
                    row.status = new_status
                    row.updated_at = now
                    changed += 1
        return changed

    def delete_done_before(self, cutoff: datetime) -> int:
        with self._lock:
            expired = [
                message_id
                for message_id, row in self._rows.items()
                if row.status == Status.DONE and row.updated_at < cutoff
            ]
            for message_id in expired:
                del self._rows[message_id]
            return len(expired)

    def get_message(self, message_id: int) -> Optional[Message]:
        with self._lock:
            row = self._rows.get(message_id)
            return replace(row) if row else None
