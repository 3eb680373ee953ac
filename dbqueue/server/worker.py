# dbqueue/server/worker.py
import logging
import sys
import time
import uuid
from typing import Callable, Optional

from dbqueue.server.engine import QueueEngine
from dbqueue.server.processor import PayloadProcessor
from dbqueue.server.reporter import LoggingReporter, WorkerReporter

logger = logging.getLogger(__name__)

TIME_LIMIT_REACHED = "Time Limit Reached"
MEMORY_LIMIT_REACHED = "Memory Limit Reached"
BATCH_LIMIT_REACHED = "Maximum Batch Size Reached"
QUEUE_EMPTY = "Queue Empty"
SHUTDOWN_REQUESTED = "Shutdown Requested"


def memory_usage_mb() -> float:
    """
    Peak resident set size of this process in megabytes.

    This is the high-water mark, not current usage: once a unit pushes the
    process over the limit the worker stops, even if that memory was freed.
    """
    try:
        import resource
    except ImportError:  # pragma: no cover - not available on Windows
        return 0.0
    peak = resource.getrusage(resource.RUSAGE_SELF).ru_maxrss
    # Linux reports kilobytes, macOS bytes.
    if sys.platform == "darwin":
        return peak / 1024 / 1024
    return peak / 1024


class Worker:
    def __init__(
        self,
        engine: QueueEngine,
        queue: Optional[str] = None,
        processor: Optional[Callable[[dict], object]] = None,
        reporter: Optional[WorkerReporter] = None,
        max_execution_time: int = 0,
        memory_limit_mb: int = 0,
        max_batch: int = 0,
        wait: bool = False,
        time_margin: int = 5,
        memory_margin_mb: int = 10,
        monotonic: Callable[[], float] = time.monotonic,
        memory_probe: Callable[[], float] = memory_usage_mb,
    ):
        self.engine = engine
        self.queue = queue or engine.default_queue
        self.reporter = reporter or LoggingReporter()
        self.processor = processor or PayloadProcessor(self.reporter)
        self.max_execution_time = max_execution_time
        self.memory_limit_mb = memory_limit_mb
        self.max_batch = max_batch
        self.wait = wait
        self.time_margin = time_margin
        self.memory_margin_mb = memory_margin_mb
        self.monotonic = monotonic
        self.memory_probe = memory_probe
        self.worker_id = f"worker:{uuid.uuid4()}"
        self.jobs_processed = 0
        self._shutdown_requested = False

    @classmethod
    def from_settings(cls, engine: QueueEngine, **options) -> "Worker":
        settings = engine.settings
        options.setdefault("max_execution_time", settings.worker_max_execution_time)
        options.setdefault("memory_limit_mb", settings.worker_memory_limit_mb)
        options.setdefault("max_batch", settings.max_worker_batch)
        return cls(engine, **options)

    def stop(self) -> None:
        self._shutdown_requested = True

    def run(self) -> str:
        """Work the queue until a stop condition fires. Returns the reason."""
        self.reporter.working(self.queue)
        logger.info("[%s] Starting worker for queue: %s", self.worker_id, self.queue)

        start = self.monotonic()
        self.jobs_processed = 0
        response = True
        reason = QUEUE_EMPTY

        while response:
            try:
                if self.wait:
                    response = self.engine.receive(
                        self.processor, self.queue, should_stop=lambda: self._shutdown_requested
                    )
                else:
                    response = self.engine.fetch(self.processor, self.queue)
                if response:
                    self.jobs_processed += 1
            except Exception as e:
                # A single failing message must not stop the worker.
                self.jobs_processed += 1
                response = True
                self.reporter.failed(e)
                logger.error("[%s] Unhandled exception in worker loop: %s", self.worker_id, e, exc_info=True)

            stop_reason = self._stop_reason(start)
            if stop_reason:
                reason = stop_reason
                self.reporter.stopped(reason)
                break

        logger.info(
            "[%s] Worker has stopped after %d message(s): %s",
            self.worker_id,
            self.jobs_processed,
            reason,
        )
        return reason

    def _stop_reason(self, start: float) -> Optional[str]:
        if self.max_execution_time > 0:
            if self.monotonic() - start > self.max_execution_time - self.time_margin:
                return TIME_LIMIT_REACHED
        if self.memory_limit_mb > 0:
            if self.memory_probe() > self.memory_limit_mb - self.memory_margin_mb:
                return MEMORY_LIMIT_REACHED
        if self.max_batch > 0 and self.jobs_processed >= self.max_batch:
            return BATCH_LIMIT_REACHED
        if self._shutdown_requested:
            return SHUTDOWN_REQUESTED
        return None
