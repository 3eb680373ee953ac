# dbqueue/events/base.py
from abc import ABC, abstractmethod
from typing import Any

JOB_SUCCEEDED = "job.succeeded"
JOB_FAILED = "job.failed"


class EventPublisher(ABC):
    """Outbound notification boundary. The engine publishes, it never subscribes."""

    @abstractmethod
    def publish(self, event: str, **payload: Any) -> None: ...


class NullPublisher(EventPublisher):
    def publish(self, event: str, **payload: Any) -> None:
        pass  # Notifications disabled
