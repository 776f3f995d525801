"""
HTTP API Tests
==============

End-to-end over FastAPI's TestClient with an in-memory store and a
temporary solid mirror file. Entering the client context runs the
startup reconciliation.
"""

import os
from unittest.mock import MagicMock

import pytest
from fastapi.testclient import TestClient
from pymongo.errors import PyMongoError

from matter_backend.api.server import create_app
from matter_backend.contracts.base import Matter, MatterState
from matter_backend.engine import BackendConfig, MatterTrackerBackend
from matter_backend.storage import InMemoryMatterStore, MongoMatterStore, MatterStorageConfig
from tests.fixtures import solid_snapshot


def _backend(tmp_path, store=None):
    config = BackendConfig(
        storage=MatterStorageConfig(backend_type="memory"),
        solid_file=str(tmp_path / "solidMatters.json"),
    )
    return MatterTrackerBackend(config, store=store)


@pytest.fixture
def backend(tmp_path):
    return _backend(tmp_path)


@pytest.fixture
def client(backend):
    with TestClient(create_app(backend=backend)) as c:
        yield c


class TestCreateAndRead:

    def test_create(self, client):
        r = client.post("/matter", json={"id": 1, "name": "Ice"})
        assert r.status_code == 201
        body = r.json()
        assert body["id"] == 1
        assert body["name"] == "Ice"
        assert body["state"] == "gaseous"
        assert body["stateHistory"] == []
        assert body["createdAt"].endswith("Z")

    def test_duplicate_id(self, client):
        client.post("/matter", json={"id": 1, "name": "Ice"})
        r = client.post("/matter", json={"id": 1, "name": "Again"})
        assert r.status_code == 400
        assert "duplicate" in r.json()["error"]

    @pytest.mark.parametrize("body", [
        {"id": 1},
        {"name": "Ice"},
        {"id": "abc", "name": "Ice"},
        {"id": 1, "name": ""},
    ])
    def test_invalid_create(self, client, body):
        r = client.post("/matter", json=body)
        assert r.status_code == 400
        assert r.json()["error"]

    def test_get_one(self, client):
        client.post("/matter", json={"id": 1, "name": "Ice"})
        r = client.get("/matter/1")
        assert r.status_code == 200
        assert r.json()["name"] == "Ice"

    def test_non_integer_path_id(self, client):
        r = client.get("/matter/abc")
        assert r.status_code == 400
        assert "error" in r.json()

    @pytest.mark.parametrize("method,path", [
        ("get", "/matter/42"),
        ("get", "/matter/42/history"),
        ("delete", "/matter/42"),
    ])
    def test_unknown_id(self, client, method, path):
        r = getattr(client, method)(path)
        assert r.status_code == 404
        assert r.json() == {"error": "Matter not found"}

    def test_update_unknown_id(self, client):
        r = client.put("/matter/42", json={"state": "liquid"})
        assert r.status_code == 404
        assert r.json() == {"error": "Matter not found"}


class TestStateTransitions:

    def test_ice_scenario(self, client, backend):
        client.post("/matter", json={"id": 1, "name": "Ice"})

        r = client.put("/matter/1", json={"state": "liquid"})
        assert r.status_code == 200
        assert [e["state"] for e in r.json()["stateHistory"]] == ["liquid"]

        r = client.put("/matter/1", json={"state": "solid"})
        assert r.status_code == 200
        assert [e["state"] for e in r.json()["stateHistory"]] == ["liquid", "solid"]
        assert [s["id"] for s in backend.mirror.load()] == [1]
        frozen = r.json()

        r = client.put("/matter/1", json={"state": "gaseous"})
        assert r.status_code == 400
        assert r.json() == {"error": "Cannot update state of a solid matter"}

        r = client.delete("/matter/1")
        assert r.status_code == 400
        assert r.json() == {"error": "Cannot delete a solid matter"}

        assert client.get("/matter/1").json() == frozen

    def test_invalid_state_value(self, client):
        client.post("/matter", json={"id": 1, "name": "Water"})
        r = client.put("/matter/1", json={"state": "plasma"})
        assert r.status_code == 400
        assert "plasma" in r.json()["error"]

    def test_missing_state(self, client):
        client.post("/matter", json={"id": 1, "name": "Water"})
        r = client.put("/matter/1", json={})
        assert r.status_code == 400

    def test_history_endpoint(self, client):
        client.post("/matter", json={"id": 2, "name": "Water"})
        for state in ["liquid", "gaseous"]:
            client.put("/matter/2", json={"state": state})

        r = client.get("/matter/2/history")
        assert r.status_code == 200
        body = r.json()
        assert body["id"] == 2
        assert body["name"] == "Water"
        assert [e["state"] for e in body["stateHistory"]] == ["liquid", "gaseous"]

    def test_delete(self, client):
        client.post("/matter", json={"id": 3, "name": "Steam"})
        r = client.delete("/matter/3")
        assert r.status_code == 200
        body = r.json()
        assert body["message"] == "Matter deleted"
        assert body["matter"]["id"] == 3
        assert client.get("/matter/3").status_code == 404


class TestListAndCount:

    @pytest.fixture
    def populated(self, client):
        for matter_id, name in [(1, "Ice"), (2, "Water"), (3, "Steam")]:
            client.post("/matter", json={"id": matter_id, "name": name})
        client.put("/matter/1", json={"state": "solid"})
        client.put("/matter/2", json={"state": "liquid"})
        return client

    def test_list_all(self, populated):
        r = populated.get("/matters")
        assert r.status_code == 200
        assert sorted(m["id"] for m in r.json()) == [1, 2, 3]

    def test_list_filtered(self, populated):
        r = populated.get("/matters", params={"state": "solid"})
        assert [m["id"] for m in r.json()] == [1]

    def test_counts(self, populated):
        r = populated.get("/matters/counts")
        assert r.status_code == 200
        body = r.json()
        assert body["total"] == 3
        assert sum(g["count"] for g in body["states"]) == 3
        assert {g["_id"] for g in body["states"]} == {"gaseous", "liquid", "solid"}


class TestStartup:

    def test_health_after_startup(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "online", "ready": True}

    def test_not_ready_without_lifespan(self, backend):
        # No context manager: lifespan never runs
        client = TestClient(create_app(backend=backend))
        r = client.get("/health")
        assert r.status_code == 503
        assert r.json() == {"error": "Backend not initialized"}

    def test_reconciles_before_serving(self, tmp_path):
        store = InMemoryMatterStore()
        store.insert(Matter(id=7, name="Steam", state=MatterState.LIQUID))
        backend = _backend(tmp_path, store=store)
        backend.mirror.save([solid_snapshot(5)])

        with TestClient(create_app(backend=backend)) as client:
            ids = [m["id"] for m in client.get("/matters").json()]
            assert ids == [5]
            assert client.get("/matter/7").status_code == 404
            assert client.get("/matter/5").json() == solid_snapshot(5)

    def test_builds_backend_from_config(self, tmp_path):
        config = BackendConfig(
            storage=MatterStorageConfig(backend_type="memory"),
            solid_file=str(tmp_path / "solidMatters.json"),
        )
        app = create_app(config=config)
        with TestClient(app) as client:
            assert client.post("/matter", json={"id": 1, "name": "Ice"}).status_code == 201
        assert app.state.backend.ready


class TestErrorMapping:
    """Failures below the service surface as 400 {"error": ...}."""

    TOO_BIG = 2 ** 64

    def test_create_with_id_beyond_int64(self, client):
        r = client.post("/matter", json={"id": self.TOO_BIG, "name": "Ice"})
        assert r.status_code == 400
        assert "64-bit" in r.json()["error"]

    @pytest.mark.parametrize("method,path,body", [
        ("get", f"/matter/{TOO_BIG}", None),
        ("get", f"/matter/{TOO_BIG}/history", None),
        ("delete", f"/matter/{TOO_BIG}", None),
        ("put", f"/matter/{TOO_BIG}", {"state": "liquid"}),
    ])
    def test_path_id_beyond_int64(self, client, method, path, body):
        kwargs = {"json": body} if body is not None else {}
        r = client.request(method.upper(), path, **kwargs)
        assert r.status_code == 400
        assert "64-bit" in r.json()["error"]

    def test_unwritable_solid_file(self, client, backend):
        client.post("/matter", json={"id": 1, "name": "Ice"})
        # A directory where the file should be makes every read fail
        os.mkdir(backend.mirror.path)

        r = client.put("/matter/1", json={"state": "solid"})

        assert r.status_code == 400
        assert r.json()["error"]

    def test_store_error_returns_raw_message(self, tmp_path):
        collection = MagicMock()
        collection.delete_many.return_value.deleted_count = 0
        collection.find_one.side_effect = PyMongoError("boom")
        backend = _backend(tmp_path, store=MongoMatterStore(collection))

        with TestClient(create_app(backend=backend)) as client:
            r = client.get("/matter/1")

        assert r.status_code == 400
        assert r.json() == {"error": "boom"}
