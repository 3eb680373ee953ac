# dbqueue/server/reporter.py
import logging

from dbqueue.common.payload import Payload

logger = logging.getLogger("dbqueue.server.worker")


class WorkerReporter:
    """Receives the worker's progress lines. The base class ignores them."""

    def working(self, queue: str) -> None:
        pass

    def executing(self, payload: Payload) -> None:
        pass

    def succeeded(self, payload: Payload) -> None:
        pass

    def failed(self, exc: BaseException) -> None:
        pass

    def stopped(self, reason: str) -> None:
        pass


class LoggingReporter(WorkerReporter):
    def working(self, queue: str) -> None:
        logger.info("Working Queue: %s", queue)

    def executing(self, payload: Payload) -> None:
        logger.info("Executing %s", payload.describe())

    def succeeded(self, payload: Payload) -> None:
        logger.info("Success: %s", payload.describe())

    def failed(self, exc: BaseException) -> None:
        logger.error("Failed: %s - %s", type(exc).__name__, exc)

    def stopped(self, reason: str) -> None:
        logger.info("Exiting Worker: %s", reason)
