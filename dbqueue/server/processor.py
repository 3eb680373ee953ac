# dbqueue/server/processor.py
import logging
from typing import Any, Dict, Optional

from dbqueue.common.payload import CommandPayload, JobPayload, parse_payload
from dbqueue.execution.performer import perform_job, run_command
from dbqueue.server.reporter import LoggingReporter, WorkerReporter

logger = logging.getLogger(__name__)


class PayloadProcessor:
    """Callback handed to QueueEngine.fetch: runs one claimed payload."""

    def __init__(self, reporter: Optional[WorkerReporter] = None):
        self.reporter = reporter or LoggingReporter()

    def __call__(self, data: Dict[str, Any]) -> Any:
        # Raises QueueWorkError for anything that is neither a command nor a job.
        payload = parse_payload(data)
        self.reporter.executing(payload)

        if isinstance(payload, CommandPayload):
            result = run_command(payload.command)
        elif isinstance(payload, JobPayload):
            result = perform_job(payload.job, payload.data)

        self.reporter.succeeded(payload)
        return result
