# dbqueue/server/engine.py
import logging
import time
import traceback
from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import Any, Callable, Mapping, Optional, Union

from dbqueue.common.exceptions import NoActiveClaimError
from dbqueue.common.message import DEFAULT_WEIGHT, Message, utcnow
from dbqueue.common.payload import Payload
from dbqueue.common.states import Status
from dbqueue.config import QueueSettings
from dbqueue.events.base import JOB_FAILED, JOB_SUCCEEDED, EventPublisher, NullPublisher
from dbqueue.serialization.base import BaseSerializer
from dbqueue.serialization.json_serializer import JsonSerializer
from dbqueue.server.context import ClaimContext, claim_scope, current_claim
from dbqueue.storage.base import QueueStorage

logger = logging.getLogger(__name__)

Callback = Callable[[dict], Any]

RECEIVE_INTERVAL_SECONDS = 1.0
ERROR_RULE = "-" * 54


@dataclass
class HousekeepingResult:
    requeued: int = 0
    failed: int = 0
    deleted: int = 0

    @property
    def changed(self) -> bool:
        return bool(self.requeued or self.failed or self.deleted)


def format_error(exc: BaseException, at: datetime) -> str:
    """Diagnostic block appended to a message's error column."""
    frames = traceback.extract_tb(exc.__traceback__)
    if frames:
        origin = f"{frames[-1].filename}:{frames[-1].lineno}"
    else:
        origin = "unknown"
    return (
        f"{at.strftime('%Y-%m-%d %H:%M:%S')}\n"
        f"{type(exc).__name__} - {exc}\n\n"
        f"file: {origin}\n"
        f"{ERROR_RULE}\n\n"
    )


class QueueEngine:
    """
    Enqueue, claim, execute and reap messages in one queue table.

    Safe to run from many worker processes against the same table: the claim
    is a conditional update, and every other write only moves rows that are
    already eligible for the transition.
    """

    def __init__(
        self,
        storage: QueueStorage,
        settings: Optional[QueueSettings] = None,
        events: Optional[EventPublisher] = None,
        serializer: Optional[BaseSerializer] = None,
        clock: Callable[[], datetime] = utcnow,
        sleep: Callable[[float], None] = time.sleep,
    ):
        self.storage = storage
        self.settings = settings or QueueSettings()
        self.events = events or NullPublisher()
        self.serializer = serializer or JsonSerializer()
        self.clock = clock
        self.sleep = sleep

    @property
    def default_queue(self) -> str:
        return self.settings.default_queue

    def _now(self) -> datetime:
        return self.clock().astimezone(UTC)

    def send(
        self,
        data: Union[Payload, Mapping[str, Any]],
        queue: str = "",
        weight: int = DEFAULT_WEIGHT,
        available_at: Optional[datetime] = None,
    ) -> Message:
        """
        Enqueue a payload, or return the identical WAITING message already queued.
        """
        queue = queue or self.default_queue
        now = self._now()
        if available_at is None:
            available_at = now
        elif available_at.tzinfo is None:
            available_at = available_at.replace(tzinfo=UTC)
        available_at = available_at.astimezone(UTC).replace(microsecond=0)
        serialized = self.serializer.serialize_payload(data)

        existing = self.storage.find_waiting(queue, serialized, available_at)
        if existing is not None:
            logger.debug("Message %s already waiting on %s, not enqueuing again", existing.id, queue)
            return existing

        message = self.storage.insert(
            Message(
                queue=queue,
                data=serialized,
                status=Status.WAITING,
                weight=weight,
                attempts=0,
                available_at=available_at,
                created_at=now,
                updated_at=now,
            )
        )
        logger.info("Enqueued message %s on %s (weight=%s)", message.id, queue, weight)
        return message

    def fetch(self, callback: Callback, queue: str = "") -> bool:
        """
        Claim and run the next message. Returns False only when nothing was eligible.
        """
        queue = queue or self.default_queue
        message = self.storage.next_available(queue, self._now())

        # Nothing to run at the moment.
        if message is None:
            self.housekeeping()
            return False

        if not self.storage.claim(message.id, self._now()):
            logger.debug("Message %s was claimed by another worker", message.id)
            return True

        claimed = replace(message, status=Status.EXECUTING)
        data = self.serializer.deserialize_payload(message.data)

        try:
            with claim_scope(ClaimContext(engine=self, message=claimed)):
                callback(data)
        except Exception as exc:
            now = self._now()
            self.storage.append_error(message.id, format_error(exc, now), now)
            logger.error("Message %s failed on %s", message.id, queue, exc_info=True)
            self.events.publish(
                JOB_FAILED, error=exc, message=self.storage.get_message(message.id) or claimed
            )
            raise

        if not self.storage.mark_done(message.id, self._now()):
            # Reaped while running; the row now belongs to the retry or is FAILED.
            logger.debug("Message %s was no longer executing, not marking done", message.id)
            return True

        logger.info("Message %s done", message.id)
        self.events.publish(
            JOB_SUCCEEDED, message=self.storage.get_message(message.id) or claimed
        )

        # There could be more to run.
        return True

    def receive(
        self,
        callback: Callback,
        queue: str = "",
        interval: float = RECEIVE_INTERVAL_SECONDS,
        should_stop: Optional[Callable[[], bool]] = None,
    ) -> bool:
        """
        Block until a message has been claimed and run.

        Returns False only when ``should_stop`` asks the wait to end first.
        """
        while not self.fetch(callback, queue):
            if should_stop is not None and should_stop():
                return False
            self.sleep(interval)
        return True

    def progress(self, current: int, total: int) -> None:
        context = current_claim()
        if context is None or context.engine is not self:
            raise NoActiveClaimError("Progress can only be reported while running a claimed message")

        self.storage.set_progress(context.message.id, current, total, self._now())
        context.message.progress_current = current
        context.message.progress_total = total

    def housekeeping(self) -> HousekeepingResult:
        """
        Resolve timed-out claims and purge old DONE messages. Safe to call repeatedly.
        """
        now = self._now()
        cutoff = now - timedelta(seconds=self.settings.timeout)
        max_retries = self.settings.max_retries

        result = HousekeepingResult()
        # Retry first so a row requeued here is not also failed in this pass.
        result.requeued = self.storage.requeue_timed_out(cutoff, max_retries, now)
        result.failed = self.storage.fail_timed_out(cutoff, max_retries, now)

        retention = self.settings.delete_done_messages_after
        if retention is not None:
            result.deleted = self.storage.delete_done_before(now - timedelta(seconds=retention))

        if result.changed:
            logger.info(
                "Housekeeping on %s: requeued=%d failed=%d deleted=%d",
                self.storage.table,
                result.requeued,
                result.failed,
                result.deleted,
            )
        return result
