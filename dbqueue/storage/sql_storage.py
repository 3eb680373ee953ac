# dbqueue/storage/sql_storage.py
from __future__ import annotations

import logging
from datetime import datetime
from typing import Optional

from sqlalchemy import (
    Column,
    DateTime,
    Engine,
    Index,
    Integer,
    MetaData,
    SmallInteger,
    String,
    Table,
    Text,
    create_engine,
    delete,
    func,
    insert,
    select,
    update,
)
from sqlalchemy.exc import SQLAlchemyError

from dbqueue.common.exceptions import QueueStoreError
from dbqueue.common.message import Message
from dbqueue.common.states import Status, sources_of
from dbqueue.storage.base import QueueStorage

logger = logging.getLogger(__name__)

DEFAULT_TABLE = "dbqueue_jobs"


def build_queue_table(name: str, metadata: Optional[MetaData] = None) -> Table:
    """Describe the queue table; the name is chosen per connection."""
    metadata = metadata if metadata is not None else MetaData()
    return Table(
        name,
        metadata,
        Column("id", Integer, primary_key=True, autoincrement=True),
        Column("queue", String(255), nullable=False),
        Column("status", SmallInteger, nullable=False, default=int(Status.WAITING)),
        Column("weight", Integer, nullable=False, default=100),
        Column("attempts", Integer, nullable=False, default=0),
        Column("available_at", DateTime(timezone=True), nullable=False),
        Column("data", Text, nullable=False),
        Column("progress_current", Integer, nullable=False, default=0),
        Column("progress_total", Integer, nullable=False, default=0),
        Column("error", Text, nullable=False, default=""),
        Column("created_at", DateTime(timezone=True), nullable=False),
        Column("updated_at", DateTime(timezone=True), nullable=False),
        Index(f"ix_{name}_poll", "queue", "status", "available_at", "weight"),
    )


class SqlStorage(QueueStorage):
    def __init__(
        self,
        connection_url: Optional[str] = None,
        engine: Optional[Engine] = None,
        table: str = DEFAULT_TABLE,
        create_tables: bool = True,
    ) -> None:
        if engine is None and connection_url is None:
            raise ValueError("connection_url or engine is required")
        self.engine = engine or create_engine(connection_url)
        self.table = table
        self.metadata = MetaData()
        self.jobs = build_queue_table(table, self.metadata)
        if create_tables:
            self.create_schema()

    def create_schema(self) -> None:
        self.metadata.create_all(self.engine)

    def _may_become(self, status: Status):
        return self.jobs.c.status.in_(sorted(int(old) for old in sources_of(status)))

    def insert(self, message: Message) -> Message:
        with self.engine.begin() as conn:
            result = conn.execute(
                insert(self.jobs).values(
                    queue=message.queue,
                    status=int(message.status),
                    weight=message.weight,
                    attempts=message.attempts,
                    available_at=message.available_at,
                    data=message.data,
                    progress_current=message.progress_current,
                    progress_total=message.progress_total,
                    error=message.error,
                    created_at=message.created_at,
                    updated_at=message.updated_at,
                )
            )
            message_id = result.inserted_primary_key[0]
            row = conn.execute(
                select(self.jobs).where(self.jobs.c.id == message_id)
            ).mappings().one()
        return Message.from_row(row)

    def find_waiting(
        self, queue: str, data: str, available_at: datetime
    ) -> Optional[Message]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.jobs)
                .where(
                    self.jobs.c.queue == queue,
                    self.jobs.c.status == int(Status.WAITING),
                    self.jobs.c.data == data,
                    self.jobs.c.available_at == available_at,
                )
                .order_by(self.jobs.c.id)
                .limit(1)
            ).mappings().first()
        return Message.from_row(row) if row else None

    def next_available(self, queue: str, now: datetime) -> Optional[Message]:
        query = (
            select(self.jobs)
            .where(
                self.jobs.c.queue == queue,
                self.jobs.c.status == int(Status.WAITING),
                self.jobs.c.available_at <= now,
            )
            .order_by(self.jobs.c.weight, self.jobs.c.id)
            .limit(1)
        )
        try:
            with self.engine.connect() as conn:
                row = conn.execute(query).mappings().first()
        except SQLAlchemyError as exc:
            raise QueueStoreError.for_table(self.table) from exc
        return Message.from_row(row) if row else None

    def claim(self, message_id: int, now: datetime) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.jobs)
                .where(
                    self.jobs.c.id == message_id,
                    self._may_become(Status.EXECUTING),
                )
                .values(status=int(Status.EXECUTING), updated_at=now)
            )
        return result.rowcount == 1

    def mark_done(self, message_id: int, now: datetime) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.jobs)
                .where(
                    self.jobs.c.id == message_id,
                    self._may_become(Status.DONE),
                )
                .values(status=int(Status.DONE), updated_at=now)
            )
        return result.rowcount == 1

    def append_error(self, message_id: int, error: str, now: datetime) -> None:
        with self.engine.begin() as conn:
            conn.execute(
                update(self.jobs)
                .where(self.jobs.c.id == message_id)
                .values(
                    error=func.coalesce(self.jobs.c.error, "").concat(error),
                    updated_at=now,
                )
            )

    def set_progress(
        self, message_id: int, current: int, total: int, now: datetime
    ) -> bool:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.jobs)
                .where(
                    self.jobs.c.id == message_id,
                    self.jobs.c.status == int(Status.EXECUTING),
                )
                .values(progress_current=current, progress_total=total, updated_at=now)
            )
        return result.rowcount == 1

    def requeue_timed_out(
        self, cutoff: datetime, max_retries: int, now: datetime
    ) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.jobs)
                .where(
                    self._may_become(Status.WAITING),
                    self.jobs.c.updated_at < cutoff,
                    self.jobs.c.attempts < max_retries,
                )
                .values(
                    attempts=self.jobs.c.attempts + 1,
                    status=int(Status.WAITING),
                    updated_at=now,
                )
            )
        return result.rowcount

    def fail_timed_out(self, cutoff: datetime, max_retries: int, now: datetime) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                update(self.jobs)
                .where(
                    self._may_become(Status.FAILED),
                    self.jobs.c.updated_at < cutoff,
                    self.jobs.c.attempts >= max_retries,
                )
                .values(
                    attempts=self.jobs.c.attempts + 1,
                    status=int(Status.FAILED),
                    updated_at=now,
                )
            )
        return result.rowcount

    def delete_done_before(self, cutoff: datetime) -> int:
        with self.engine.begin() as conn:
            result = conn.execute(
                delete(self.jobs).where(
                    self.jobs.c.status == int(Status.DONE),
                    self.jobs.c.updated_at < cutoff,
                )
            )
        return result.rowcount

    def get_message(self, message_id: int) -> Optional[Message]:
        with self.engine.connect() as conn:
            row = conn.execute(
                select(self.jobs).where(self.jobs.c.id == message_id)
            ).mappings().first()
        return Message.from_row(row) if row else None
