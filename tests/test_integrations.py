import pytest

from dbqueue.client import QueueClient
from dbqueue.common.payload import CommandPayload
from dbqueue.common.states import Status
from dbqueue.server.engine import QueueEngine
from dbqueue.storage.memory_storage import MemoryStorage
from tests.conftest import make_settings
from tests.sample_jobs import RecordingJob


@pytest.fixture
def memory_engine():
    return QueueEngine(MemoryStorage(), settings=make_settings())


def test_fastapi_plugin_exposes_client(memory_engine):
    pytest.importorskip("fastapi")
    from fastapi import Depends, FastAPI
    from fastapi.testclient import TestClient

    from dbqueue.integrations.fastapi import add_dbqueue_to_fastapi, get_dbqueue_client

    app = FastAPI()
    plugin = add_dbqueue_to_fastapi(app, memory_engine)

    @app.post("/commands")
    def queue_command(payload: dict, client: QueueClient = Depends(get_dbqueue_client)):
        message = client.command(payload["command"])
        return {"id": message.id}

    with TestClient(app) as http:
        response = http.post("/commands", json={"command": "echo hi"})

    assert response.status_code == 200
    stored = memory_engine.storage.get_message(response.json()["id"])
    assert stored.payload == CommandPayload("echo hi")
    assert plugin.get_client() is app.state.dbqueue_client
    assert app.state.dbqueue_engine is memory_engine


def test_fastapi_background_worker_runs_until_shutdown(memory_engine):
    pytest.importorskip("fastapi")
    from fastapi import FastAPI
    from fastapi.testclient import TestClient

    from dbqueue.integrations.fastapi import DbQueueFastAPIPlugin

    memory_engine.sleep = lambda seconds: None
    message = RecordingJob.dispatch(memory_engine, {"n": 1})
    app = FastAPI()
    plugin = DbQueueFastAPIPlugin(app, memory_engine).run_worker_in_background()

    with TestClient(app):
        pass

    assert not plugin._worker_thread.is_alive()
    assert memory_engine.storage.get_message(message.id).status == Status.DONE


def test_litestar_dependency_provides_client(memory_engine):
    pytest.importorskip("litestar")
    from litestar import Litestar, post
    from litestar.testing import TestClient

    from dbqueue.integrations.litestar import configure_dbqueue, dbqueue_dependency

    @post("/commands")
    async def queue_command(data: dict, client: QueueClient) -> dict:
        message = client.command(data["command"])
        return {"id": message.id}

    app = Litestar(
        route_handlers=[queue_command],
        dependencies={"client": dbqueue_dependency()},
    )
    configure_dbqueue(app, memory_engine)

    with TestClient(app=app) as http:
        response = http.post("/commands", json={"command": "echo hi"})

    assert response.status_code == 201
    stored = memory_engine.storage.get_message(response.json()["id"])
    assert stored.payload == CommandPayload("echo hi")


def test_litestar_dependencies_expose_engine(memory_engine, monkeypatch):
    pytest.importorskip("litestar")
    from litestar import Litestar, get
    from litestar.testing import TestClient

    from dbqueue.integrations import litestar as integration

    disposed = []
    monkeypatch.setattr(integration, "dispose_engines", lambda: disposed.append(True))

    @get("/queue")
    async def queue_info(queue: QueueClient, queue_engine: QueueEngine) -> dict:
        message = queue.command("echo hi")
        return {"queue": queue_engine.default_queue, "id": message.id}

    app = Litestar(
        route_handlers=[queue_info],
        dependencies=integration.dbqueue_dependencies(),
    )
    integration.configure_dbqueue(app, memory_engine, dispose_on_shutdown=True)

    with TestClient(app=app) as http:
        response = http.get("/queue")

    assert response.status_code == 200
    assert response.json()["queue"] == "default"
    assert app.state.dbqueue_engine is memory_engine
    assert disposed == [True]
