# tests/test_api.py
import pytest
from fastapi import FastAPI
from fastapi.testclient import TestClient

from xovis.api.routes.current import router as current_router
from xovis.api.routes.service import router as service_router
from xovis.api.routes.version import router as version_router
from xovis.core.types import Configuration, Line, Zone
from xovis.services import collector as collector_runtime
from xovis.services.current_store import current_store


@pytest.fixture
def app(store):
    app = FastAPI()
    app.include_router(current_router)
    app.include_router(service_router)
    app.include_router(version_router)
    app.state.store = store
    return app


@pytest.fixture
def running(monkeypatch):
    class StubCollector:
        def __init__(self):
            self.discovered = []
            self.scheduler = self

        def status(self):
            return [{"key": "scan", "alive": True}]

        def discover_config(self, config):
            self.discovered.append(config.id)
            return 4

    c = StubCollector()
    monkeypatch.setattr(collector_runtime, "_COLLECTOR", c)
    return c


def test_version(app):
    r = TestClient(app).get("/version")
    assert r.status_code == 200
    assert set(r.json()) == {"timestamp", "commit"}


def test_current_and_export(app):
    current_store.clear()
    current_store.apply_poll(1, [Line(id=1, name="Door", device_mac="AA", forward=2)],
                             [Zone(id=2, name="Hall", device_mac="AA", presence=5)])
    client = TestClient(app)
    rows = client.get("/api/current").json()
    assert [(x["kind"], x["logic_id"]) for x in rows] == [("line", 1), ("zone", 2)]
    assert rows[0]["forward"] == 2 and rows[0]["backward"] is None
    assert rows[1]["presence"] == 5

    r = client.get("/api/current/export")
    assert r.status_code == 200
    assert r.headers["content-type"].startswith("application/vnd.openxmlformats")
    assert r.content[:2] == b"PK"
    current_store.clear()


def test_status_without_collector(app, monkeypatch):
    monkeypatch.setattr(collector_runtime, "_COLLECTOR", None)
    assert TestClient(app).get("/api/status").json() == {"running": False, "tasks": []}


def test_status_with_collector(app, running):
    body = TestClient(app).get("/api/status").json()
    assert body["running"] is True
    assert body["tasks"][0]["key"] == "scan"


def test_discovery_on_demand(app, running, store, config):
    r = TestClient(app).post(f"/api/configurations/{config.id}/discovery")
    assert r.status_code == 200
    assert r.json()["discovered"] == 4
    assert running.discovered == [config.id]


def test_discovery_unknown_and_disabled(app, running, store):
    client = TestClient(app)
    assert client.post("/api/configurations/404/discovery").status_code == 404
    off = store.insert_config(Configuration(enable=False))
    assert client.post(f"/api/configurations/{off.id}/discovery").status_code == 409
    assert running.discovered == []
