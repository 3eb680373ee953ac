# dbqueue/events/bus.py
import logging
from collections import defaultdict
from threading import RLock
from typing import Any, Callable, Dict, List

from dbqueue.events.base import EventPublisher

logger = logging.getLogger(__name__)

Listener = Callable[..., None]


class EventBus(EventPublisher):
    """In-process publish/subscribe. Listeners run synchronously in publish order."""

    def __init__(self):
        self._listeners: Dict[str, List[Listener]] = defaultdict(list)
        self._lock = RLock()

    def on(self, event: str, listener: Listener) -> Listener:
        with self._lock:
            self._listeners[event].append(listener)
        return listener

    def off(self, event: str, listener: Listener) -> None:
        with self._lock:
            if listener in self._listeners.get(event, []):
                self._listeners[event].remove(listener)

    def publish(self, event: str, **payload: Any) -> None:
        with self._lock:
            listeners = list(self._listeners.get(event, []))
        logger.debug("Publishing %s to %d listener(s)", event, len(listeners))
        for listener in listeners:
            listener(**payload)
