"""Litestar integration helpers for dbqueue."""

from __future__ import annotations

from typing import Dict

try:
    from litestar import Litestar
    from litestar.datastructures import State
    from litestar.di import Provide
except ImportError as exc:  # pragma: no cover - optional dependency
    raise ImportError(
        "Litestar integration requires 'litestar'. Install with `pip install dbqueue[litestar]`."
    ) from exc

from dbqueue.client import QueueClient
from dbqueue.server.engine import QueueEngine
from dbqueue.storage.connection import dispose_engines


def get_dbqueue_client(state: State) -> QueueClient:
    return state.dbqueue_client


def get_dbqueue_engine(state: State) -> QueueEngine:
    return state.dbqueue_engine


def dbqueue_dependency() -> Provide:
    return Provide(get_dbqueue_client, sync_to_thread=False)


def dbqueue_dependencies() -> Dict[str, Provide]:
    """``Litestar(dependencies=dbqueue_dependencies())`` injects ``queue`` and ``queue_engine``."""
    return {
        "queue": dbqueue_dependency(),
        "queue_engine": Provide(get_dbqueue_engine, sync_to_thread=False),
    }


def _dispose_engines_hook(*_app) -> None:
    dispose_engines()


def configure_dbqueue(
    app: Litestar, engine: QueueEngine, dispose_on_shutdown: bool = False
) -> QueueClient:
    """
    Store the engine and a client on ``app.state``.

    With ``dispose_on_shutdown`` the shared database engines are disposed when
    the application stops.
    """
    client = QueueClient(engine)
    app.state.dbqueue_engine = engine
    app.state.dbqueue_client = client
    if dispose_on_shutdown:
        app.on_shutdown.append(_dispose_engines_hook)
    return client
