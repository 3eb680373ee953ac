from typing import Optional

from .base import JOB_FAILED, JOB_SUCCEEDED, EventPublisher, NullPublisher
from .bus import EventBus


def get_publisher(
    kind: str = "none", redis_url: Optional[str] = None, channel: Optional[str] = None
) -> EventPublisher:
    kind = kind.strip().lower()
    if kind in ("", "none"):
        return NullPublisher()
    if kind == "local":
        return EventBus()
    if kind != "redis":
        raise ValueError("kind must be 'none', 'local' or 'redis'")

    from .redis_publisher import DEFAULT_CHANNEL, RedisEventPublisher

    return RedisEventPublisher(url=redis_url, channel=channel or DEFAULT_CHANNEL)


__all__ = [
    "JOB_FAILED",
    "JOB_SUCCEEDED",
    "EventBus",
    "EventPublisher",
    "NullPublisher",
    "get_publisher",
]
