# dbqueue/server/context.py
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import TYPE_CHECKING, Iterator, Optional

from dbqueue.common.message import Message

if TYPE_CHECKING:
    from dbqueue.server.engine import QueueEngine


@dataclass
class ClaimContext:
    engine: "QueueEngine"
    message: Message


_current_claim: ContextVar[Optional[ClaimContext]] = ContextVar(
    "dbqueue_current_claim", default=None
)


def current_claim() -> Optional[ClaimContext]:
    return _current_claim.get()


@contextmanager
def claim_scope(context: ClaimContext) -> Iterator[ClaimContext]:
    token = _current_claim.set(context)
    try:
        yield context
    finally:
        _current_claim.reset(token)
