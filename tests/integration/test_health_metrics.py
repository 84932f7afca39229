from fastapi.testclient import TestClient

from onthelist.config import Settings
from onthelist.main import create_app


def test_healthz(client):
    r = client.get("/healthz")
    assert r.status_code == 200
    assert r.json() == {"status": "ok", "database": "up", "classifier": "configured"}


def test_healthz_without_api_key(tmp_path):
    app = create_app(Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'h.db'}"))
    r = TestClient(app).get("/healthz")
    assert r.json()["classifier"] == "unconfigured"


def test_metrics_label_task_paths(client):
    client.get("/tasks/abc")
    body = client.get("/metrics").text
    assert "onthelist_requests_total" in body
    assert 'path="/tasks/:id"' in body
    assert "onthelist_task_writes_total" in body


def test_app_state_is_per_instance(tmp_path, provider):
    a = create_app(Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'a.db'}"), provider)
    b = create_app(Settings(database_url=f"sqlite+pysqlite:///{tmp_path / 'b.db'}"), provider)
    assert a.state.gateway is not b.state.gateway
    TestClient(a).post("/tasks", json={"entry": "x", "name": "x", "type": "Focus", "category": "Task"})
    assert TestClient(b).get("/tasks").json() == []
