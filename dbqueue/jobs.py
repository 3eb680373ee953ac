# dbqueue/jobs.py
"""
Job handlers and the dispatch API.

A job is a class with a ``handle(data)`` classmethod. Dispatching one queues
``{"job": <identity>, "data": data}`` through an explicitly supplied engine::

    SendWelcomeEmail.using(engine).weight(10).delay(5).dispatch({"user_id": 1})

Every fluent call returns a new value, so options never carry over from one
dispatch to the next.
"""

from dataclasses import dataclass, replace
from datetime import UTC, datetime, timedelta
from typing import TYPE_CHECKING, Any, Dict, Optional, Type, Union

from dbqueue.common.exceptions import NoActiveClaimError
from dbqueue.common.message import DEFAULT_WEIGHT, Message, utcnow
from dbqueue.common.payload import JobPayload
from dbqueue.server.context import current_claim

if TYPE_CHECKING:
    from dbqueue.server.engine import QueueEngine

TimeLike = Union[datetime, str]


def to_datetime(value: TimeLike) -> datetime:
    if isinstance(value, str):
        value = datetime.fromisoformat(value)
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value


@dataclass(frozen=True)
class DispatchOptions:
    weight: Optional[int] = None
    available_at: Optional[datetime] = None
    queue: Optional[str] = None

    def with_weight(self, weight: int) -> "DispatchOptions":
        return replace(self, weight=weight)

    def delayed(self, minutes: float, now: Optional[datetime] = None) -> "DispatchOptions":
        return replace(self, available_at=(now or utcnow()) + timedelta(minutes=minutes))

    def until(self, time: TimeLike) -> "DispatchOptions":
        return replace(self, available_at=to_datetime(time))

    def on_queue(self, queue: str) -> "DispatchOptions":
        return replace(self, queue=queue)


class Job:
    default_weight: int = DEFAULT_WEIGHT
    default_queue: Optional[str] = None

    @classmethod
    def handle(cls, data: Dict[str, Any]) -> Any:
        raise NotImplementedError(f"{cls.__name__} must implement handle()")

    @classmethod
    def identity(cls) -> str:
        return f"{cls.__module__}.{cls.__qualname__}"

    @classmethod
    def using(cls, engine: "QueueEngine") -> "PendingDispatch":
        return PendingDispatch(engine=engine, job=cls)

    @classmethod
    def dispatch(
        cls,
        engine: "QueueEngine",
        data: Optional[Dict[str, Any]] = None,
        options: Optional[DispatchOptions] = None,
    ) -> Message:
        return PendingDispatch(engine=engine, job=cls, options=options or DispatchOptions()).dispatch(data)

    @classmethod
    def set_progress(cls, current: int, total: int) -> None:
        """Report progress from inside handle(); the claim holder's engine records it."""
        context = current_claim()
        if context is None:
            raise NoActiveClaimError(f"{cls.__name__}.set_progress called outside of a running job")
        context.engine.progress(current, total)


@dataclass(frozen=True)
class PendingDispatch:
    engine: "QueueEngine"
    job: Type[Job]
    options: DispatchOptions = DispatchOptions()

    def weight(self, weight: int) -> "PendingDispatch":
        return replace(self, options=self.options.with_weight(weight))

    def delay(self, minutes: float) -> "PendingDispatch":
        return replace(self, options=self.options.delayed(minutes, now=self.engine.clock()))

    def delay_until(self, time: TimeLike) -> "PendingDispatch":
        return replace(self, options=self.options.until(time))

    def on_queue(self, queue: str) -> "PendingDispatch":
        return replace(self, options=self.options.on_queue(queue))

    def dispatch(self, data: Optional[Dict[str, Any]] = None) -> Message:
        options = self.options
        weight = options.weight if options.weight is not None else self.job.default_weight
        queue = options.queue or self.job.default_queue or ""
        return self.engine.send(
            JobPayload(job=self.job.identity(), data=dict(data or {})),
            queue=queue,
            weight=weight,
            available_at=options.available_at,
        )
