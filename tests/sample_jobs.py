# tests/sample_jobs.py
from dbqueue.jobs import Job

CALLS = []


class RecordingJob(Job):
    """A job that records the data it was called with."""

    @classmethod
    def handle(cls, data):
        CALLS.append(data)
        return True


class ReportsQueueJob(Job):
    default_queue = "reports"
    default_weight = 20

    @classmethod
    def handle(cls, data):
        CALLS.append(("reports", data))
        return True


class ProgressJob(Job):
    @classmethod
    def handle(cls, data):
        total = data.get("total", 4)
        for step in range(1, data.get("steps", total) + 1):
            cls.set_progress(step, total)
        return True


class FailingJob(Job):
    """A job that is designed to fail."""

    @classmethod
    def handle(cls, data):
        raise ValueError("This job is designed to fail")


def plain_handler(data):
    CALLS.append(("plain", data))
