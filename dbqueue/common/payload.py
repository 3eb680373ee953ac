# dbqueue/common/payload.py
from dataclasses import dataclass, field
from typing import Any, Dict, Mapping, Union

from dbqueue.common.exceptions import QueueWorkError


@dataclass(frozen=True)
class CommandPayload:
    """A shell command line to run."""

    command: str

    def to_dict(self) -> Dict[str, Any]:
        return {"command": self.command}

    def describe(self) -> str:
        return f"Command: {self.command}"


@dataclass(frozen=True)
class JobPayload:
    """A named job handler plus the data it is called with."""

    job: str
    data: Dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {"job": self.job, "data": dict(self.data)}

    def describe(self) -> str:
        return f"Job: {self.job}"


Payload = Union[CommandPayload, JobPayload]


def parse_payload(data: Any) -> Payload:
    """Turn a stored payload mapping back into its variant."""
    if isinstance(data, (CommandPayload, JobPayload)):
        return data
    if not isinstance(data, Mapping):
        raise QueueWorkError()

    command = data.get("command")
    if isinstance(command, str) and command:
        return CommandPayload(command=command)

    job = data.get("job")
    if isinstance(job, str) and job:
        job_data = data.get("data") or {}
        if not isinstance(job_data, Mapping):
            raise QueueWorkError(f"Job data for {job} must be a mapping")
        return JobPayload(job=job, data=dict(job_data))

    raise QueueWorkError()


def payload_to_dict(data: Union[Payload, Mapping[str, Any]]) -> Dict[str, Any]:
    if isinstance(data, (CommandPayload, JobPayload)):
        return data.to_dict()
    return dict(data)
