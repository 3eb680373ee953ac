import shlex
import subprocess
import sys
from itertools import count

import pytest

from dbqueue.common.exceptions import JobLoadError, QueueWorkError
from dbqueue.common.payload import CommandPayload, JobPayload
from dbqueue.common.states import Status
from dbqueue.execution.performer import load_handler, run_command
from dbqueue.server.processor import PayloadProcessor
from dbqueue.server.reporter import WorkerReporter
from dbqueue.server.worker import (
    BATCH_LIMIT_REACHED,
    MEMORY_LIMIT_REACHED,
    QUEUE_EMPTY,
    SHUTDOWN_REQUESTED,
    TIME_LIMIT_REACHED,
    Worker,
    memory_usage_mb,
)
from tests import sample_jobs
from tests.sample_jobs import FailingJob, ProgressJob, RecordingJob


class RecordingReporter(WorkerReporter):
    def __init__(self):
        self.lines = []

    def working(self, queue):
        self.lines.append(("working", queue))

    def executing(self, payload):
        self.lines.append(("executing", payload.describe()))

    def succeeded(self, payload):
        self.lines.append(("succeeded", payload.describe()))

    def failed(self, exc):
        self.lines.append(("failed", type(exc).__name__))

    def stopped(self, reason):
        self.lines.append(("stopped", reason))


def test_worker_drains_queue_and_stops_when_empty(engine, storage):
    first = RecordingJob.dispatch(engine, {"n": 1})
    second = RecordingJob.dispatch(engine, {"n": 2})

    worker = Worker(engine)
    assert worker.run() == QUEUE_EMPTY
    assert worker.jobs_processed == 2
    assert sample_jobs.CALLS == [{"n": 1}, {"n": 2}]
    assert storage.get_message(first.id).status == Status.DONE
    assert storage.get_message(second.id).status == Status.DONE


def test_worker_continues_after_a_failing_message(engine, storage):
    failing = FailingJob.dispatch(engine, {"n": 1})
    RecordingJob.dispatch(engine, {"n": 2})
    reporter = RecordingReporter()

    worker = Worker(engine, reporter=reporter)
    assert worker.run() == QUEUE_EMPTY

    assert sample_jobs.CALLS == [{"n": 2}]
    assert ("failed", "ValueError") in reporter.lines
    stored = storage.get_message(failing.id)
    assert stored.status == Status.EXECUTING
    assert "This job is designed to fail" in stored.error


def test_worker_reports_progress_lines(engine):
    RecordingJob.dispatch(engine, {"n": 1})
    reporter = RecordingReporter()

    Worker(engine, reporter=reporter).run()

    identity = RecordingJob.identity()
    assert reporter.lines == [
        ("working", "default"),
        ("executing", f"Job: {identity}"),
        ("succeeded", f"Job: {identity}"),
    ]


def test_worker_stops_at_batch_limit(engine, storage):
    messages = [RecordingJob.dispatch(engine, {"n": n}) for n in range(3)]
    reporter = RecordingReporter()

    worker = Worker(engine, reporter=reporter, max_batch=2)
    assert worker.run() == BATCH_LIMIT_REACHED
    assert reporter.lines[-1] == ("stopped", BATCH_LIMIT_REACHED)
    assert storage.get_message(messages[2].id).status == Status.WAITING


def test_worker_stops_near_time_limit(engine):
    for n in range(3):
        RecordingJob.dispatch(engine, {"n": n})
    ticks = count(0, 3)

    worker = Worker(
        engine, max_execution_time=10, monotonic=lambda: next(ticks)
    )
    # started at 0, then 3 and 6; 6 is past the 10 - 5 second margin
    assert worker.run() == TIME_LIMIT_REACHED
    assert worker.jobs_processed == 2


def test_worker_stops_near_memory_limit(engine):
    RecordingJob.dispatch(engine, {"n": 1})
    RecordingJob.dispatch(engine, {"n": 2})

    worker = Worker(engine, memory_limit_mb=100, memory_probe=lambda: 95.0)
    assert worker.run() == MEMORY_LIMIT_REACHED
    assert worker.jobs_processed == 1


def test_time_limit_is_checked_before_memory(engine):
    RecordingJob.dispatch(engine, {"n": 1})
    ticks = iter([0, 100])

    worker = Worker(
        engine,
        max_execution_time=10,
        memory_limit_mb=100,
        monotonic=lambda: next(ticks),
        memory_probe=lambda: 500.0,
    )
    assert worker.run() == TIME_LIMIT_REACHED


def test_worker_ignores_disabled_limits(engine):
    RecordingJob.dispatch(engine, {"n": 1})

    worker = Worker(engine, memory_limit_mb=0, memory_probe=lambda: 1e9)
    assert worker.run() == QUEUE_EMPTY


def test_waiting_worker_exits_on_shutdown(engine, monkeypatch):
    RecordingJob.dispatch(engine, {"n": 1})
    worker = Worker(engine, wait=True)
    monkeypatch.setattr(engine, "sleep", lambda seconds: worker.stop())

    assert worker.run() == SHUTDOWN_REQUESTED
    assert worker.jobs_processed == 1
    assert sample_jobs.CALLS == [{"n": 1}]


def test_worker_from_settings_uses_configured_limits(engine):
    engine.settings.max_worker_batch = 7
    engine.settings.worker_max_execution_time = 60

    worker = Worker.from_settings(engine, queue="emails")
    assert worker.queue == "emails"
    assert worker.max_batch == 7
    assert worker.max_execution_time == 60
    assert worker.memory_limit_mb == engine.settings.worker_memory_limit_mb


def test_processor_reports_progress_through_job(engine, storage):
    message = ProgressJob.dispatch(engine, {"steps": 2, "total": 4})

    engine.fetch(PayloadProcessor())

    stored = storage.get_message(message.id)
    assert stored.status == Status.DONE
    assert (stored.progress_current, stored.progress_total) == (2, 4)


def test_processor_runs_commands():
    command = f"{shlex.quote(sys.executable)} -c \"print('hello')\""
    result = PayloadProcessor()({"command": command})
    assert result.stdout.strip() == "hello"


def test_processor_raises_on_failing_command():
    command = f"{shlex.quote(sys.executable)} -c \"raise SystemExit(3)\""
    with pytest.raises(subprocess.CalledProcessError):
        PayloadProcessor()({"command": command})


def test_processor_rejects_unknown_payloads():
    with pytest.raises(QueueWorkError):
        PayloadProcessor()({"callback": "serialized-closure"})


def test_processor_runs_plain_function_handlers():
    PayloadProcessor()(JobPayload("tests.sample_jobs.plain_handler", {"x": 1}).to_dict())
    assert sample_jobs.CALLS == [("plain", {"x": 1})]


def test_load_handler_accepts_colon_form():
    handler = load_handler("tests.sample_jobs:RecordingJob")
    handler({"y": 2})
    assert sample_jobs.CALLS == [{"y": 2}]


@pytest.mark.parametrize(
    "identity", ["tests.sample_jobs.Missing", "no_such_module.Job", "nodots"]
)
def test_load_handler_errors(identity):
    with pytest.raises(JobLoadError):
        load_handler(identity)


def test_run_command_rejects_empty_command():
    with pytest.raises(ValueError):
        run_command("   ")


def test_command_payload_via_engine(engine, storage):
    message = engine.send(CommandPayload(f"{shlex.quote(sys.executable)} -c \"pass\""))
    assert engine.fetch(PayloadProcessor()) is True
    assert storage.get_message(message.id).status == Status.DONE


@pytest.mark.skipif(sys.platform == "win32", reason="resource is POSIX only")
def test_memory_usage_reports_peak_rss():
    before = memory_usage_mb()
    ballast = bytearray(32 * 1024 * 1024)
    after = memory_usage_mb()
    del ballast

    assert before > 0
    assert after >= before
    # the high-water mark does not drop once the memory is released
    assert memory_usage_mb() >= after
