# dbqueue/events/redis_publisher.py
import json
import logging
import time
from typing import Any, Dict, Optional

import redis

from dbqueue.common.message import Message
from dbqueue.events.base import EventPublisher

logger = logging.getLogger(__name__)

DEFAULT_CHANNEL = "dbqueue:events"


class RedisEventPublisher(EventPublisher):
    """Publishes queue events as JSON documents on a Redis pub/sub channel."""

    def __init__(
        self,
        redis_client: Optional[redis.Redis] = None,
        url: Optional[str] = None,
        channel: str = DEFAULT_CHANNEL,
    ):
        if redis_client is not None:
            self.redis_client = redis_client
        elif url:
            self.redis_client = redis.Redis.from_url(url, decode_responses=True)
        else:
            self.redis_client = redis.Redis(
                host="localhost", port=6379, db=0, decode_responses=True
            )
        self.channel = channel

    def _encode(self, event: str, payload: Dict[str, Any]) -> str:
        body: Dict[str, Any] = {
            "event": event,
            "timestamp": int(time.time() * 1000),
        }
        for key, value in payload.items():
            if isinstance(value, Message):
                body[key] = {
                    "id": value.id,
                    "queue": value.queue,
                    "status": value.status_text,
                    "attempts": value.attempts,
                    "data": value.data,
                }
            elif isinstance(value, BaseException):
                body[key] = {"type": type(value).__name__, "message": str(value)}
            else:
                body[key] = value
        return json.dumps(body, default=str)

    def publish(self, event: str, **payload: Any) -> None:
        receivers = self.redis_client.publish(self.channel, self._encode(event, payload))
        logger.debug("Published %s to %s (%s receivers)", event, self.channel, receivers)
