# dbqueue/client.py
from typing import Any, Dict, Optional, Type, Union

from dbqueue.common.message import Message
from dbqueue.common.payload import CommandPayload, JobPayload
from dbqueue.jobs import DispatchOptions, Job
from dbqueue.server.engine import QueueEngine


class QueueClient:
    """
    Producer-side helpers for queueing commands and jobs through an engine.
    """

    def __init__(self, engine: QueueEngine):
        self.engine = engine

    def command(self, command: str, options: Optional[DispatchOptions] = None) -> Message:
        """Queue a command line for a worker to run."""
        return self._send(CommandPayload(command=command), options)

    def job(
        self,
        handler: Union[str, Type[Job]],
        data: Optional[Dict[str, Any]] = None,
        options: Optional[DispatchOptions] = None,
    ) -> Message:
        """Queue a job handler, given as a Job subclass or its identity string."""
        if isinstance(handler, type) and issubclass(handler, Job):
            return handler.dispatch(self.engine, data, options)
        return self._send(JobPayload(job=handler, data=dict(data or {})), options)

    def _send(self, payload, options: Optional[DispatchOptions]) -> Message:
        options = options or DispatchOptions()
        send_kwargs: Dict[str, Any] = {
            "queue": options.queue or "",
            "available_at": options.available_at,
        }
        if options.weight is not None:
            send_kwargs["weight"] = options.weight
        return self.engine.send(payload, **send_kwargs)

    def get_message(self, message_id: int) -> Optional[Message]:
        return self.engine.storage.get_message(message_id)
