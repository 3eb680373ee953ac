"""FastAPI integration helpers for dbqueue."""

from __future__ import annotations

import threading
from contextlib import asynccontextmanager
from typing import Any, AsyncIterator, Optional

try:
    from fastapi import FastAPI, Request
except ImportError as exc:  # pragma: no cover - optional dependency
    raise ImportError(
        "FastAPI integration requires 'fastapi'. Install with `pip install dbqueue[fastapi]`."
    ) from exc

from dbqueue.client import QueueClient
from dbqueue.server.engine import QueueEngine
from dbqueue.server.worker import Worker


class DbQueueFastAPIPlugin:
    def __init__(self, app: FastAPI, engine: QueueEngine):
        self.app = app
        self.engine = engine
        self.client = QueueClient(engine)
        self.worker: Optional[Worker] = None
        self._worker_thread: Optional[threading.Thread] = None

        app.state.dbqueue_engine = engine
        app.state.dbqueue_client = self.client
        self._wrap_lifespan(app)

    def _wrap_lifespan(self, app: FastAPI) -> None:
        inner = app.router.lifespan_context

        @asynccontextmanager
        async def lifespan(app_: FastAPI) -> AsyncIterator[Any]:
            await self.startup()
            try:
                async with inner(app_) as state:
                    yield state
            finally:
                await self.shutdown()

        app.router.lifespan_context = lifespan

    def get_client(self) -> QueueClient:
        return self.client

    def run_worker_in_background(self, **worker_options) -> "DbQueueFastAPIPlugin":
        # The hosted worker keeps polling an empty queue.
        worker_options.setdefault("wait", True)
        self.worker = Worker.from_settings(self.engine, **worker_options)
        self._worker_thread = threading.Thread(target=self.worker.run, daemon=True)
        return self

    async def startup(self) -> None:
        if self._worker_thread:
            self._worker_thread.start()

    async def shutdown(self) -> None:
        if self.worker:
            self.worker.stop()
        if self._worker_thread:
            self._worker_thread.join(timeout=10)


def get_dbqueue_client(request: Request) -> QueueClient:
    """Dependency: ``client: QueueClient = Depends(get_dbqueue_client)``."""
    return request.app.state.dbqueue_client


def add_dbqueue_to_fastapi(app: FastAPI, engine: QueueEngine) -> DbQueueFastAPIPlugin:
    return DbQueueFastAPIPlugin(app, engine)
