# dbqueue/execution/performer.py
import importlib
import logging
import shlex
import subprocess
from typing import Any, Callable, Dict

from dbqueue.common.exceptions import JobLoadError

logger = logging.getLogger(__name__)


def load_handler(identity: str) -> Callable[[Dict[str, Any]], Any]:
    """Resolve "package.module.Name" (or "package.module:Name") to something callable with the job data."""
    if ":" in identity:
        module_name, _, attr_path = identity.partition(":")
    else:
        module_name, _, attr_path = identity.rpartition(".")
    if not module_name or not attr_path:
        raise JobLoadError(f"Could not load job handler: {identity}")

    try:
        target: Any = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            target = getattr(target, attr)
    except (ImportError, AttributeError) as e:
        raise JobLoadError(f"Could not load job handler: {identity}") from e

    handle = getattr(target, "handle", None)
    if isinstance(target, type) and callable(handle):
        return handle
    if callable(target):
        return target
    raise JobLoadError(f"Job handler is not callable: {identity}")


def perform_job(identity: str, data: Dict[str, Any]) -> Any:
    """Dynamically imports and executes the named job handler."""
    return load_handler(identity)(data)


def run_command(command: str) -> subprocess.CompletedProcess:
    """Run a command line without a shell. A non-zero exit raises CalledProcessError."""
    args = shlex.split(command)
    if not args:
        raise ValueError("Command is empty")
    completed = subprocess.run(args, check=True, capture_output=True, text=True)
    if completed.stdout:
        logger.info("%s: %s", args[0], completed.stdout.rstrip())
    return completed
