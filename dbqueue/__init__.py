from .client import QueueClient
from .config import QueueSettings, configure as _configure, get_configured_events
from .jobs import DispatchOptions, Job
from .queue import connect
from .server.engine import QueueEngine

_queue: QueueEngine | None = None


def configure(settings: QueueSettings | None = None, events=None) -> None:
    _configure(settings, events)
    global _queue
    _queue = None


def get_queue() -> QueueEngine:
    """Shared engine for the default connection, created on first use."""
    global _queue
    if _queue is None:
        _queue = connect(events=get_configured_events())
    return _queue


def get_client() -> QueueClient:
    return QueueClient(get_queue())


__all__ = [
    "DispatchOptions",
    "Job",
    "QueueClient",
    "QueueEngine",
    "QueueSettings",
    "configure",
    "connect",
    "get_client",
    "get_queue",
]
