"""End-to-end tests for the REST routes."""

from __future__ import annotations

from unittest.mock import MagicMock, patch

import pytest
from fastapi.testclient import TestClient

from storage_gateway.config import DatabaseConfig, Settings, reset_settings
from storage_gateway.kv.memory import MemoryKVNamespace
from storage_gateway.kv.registry import NamespaceRegistry
from storage_gateway.main import app, create_app
from storage_gateway.sql.engine import DuckDBEngine


@pytest.fixture
def engine():
    """Create an in-memory engine with a users table."""
    engine = DuckDBEngine(settings=Settings(database=DatabaseConfig(path=":memory:")))
    engine.initialize()
    with engine.get_connection() as conn:
        conn.execute("CREATE TABLE users (id VARCHAR, name VARCHAR, status VARCHAR)")
        conn.execute(
            "INSERT INTO users VALUES "
            "('1', 'Ada', 'active'), ('2', 'Grace', 'inactive'), ('3', 'Linus', 'active')"
        )
    yield engine
    engine.close()


@pytest.fixture
def namespace() -> MemoryKVNamespace:
    """Create a memory namespace with two keys."""
    return MemoryKVNamespace("Alphas", {"a": "1", "b": "2"})


@pytest.fixture
def client(engine: DuckDBEngine, namespace: MemoryKVNamespace):
    """Create a test client wired to the in-memory backends."""
    registry = NamespaceRegistry([namespace])
    with (
        patch("storage_gateway.api.routes.rest.get_engine", return_value=engine),
        patch("storage_gateway.api.routes.rest.get_registry", return_value=registry),
    ):
        yield TestClient(app)


class TestPathValidation:
    """Tests for malformed paths."""

    @pytest.mark.parametrize("path", ["/rest", "/rest/", "/rest/DB", "/rest/KV"])
    def test_too_short(self, client: TestClient, path: str):
        """Test paths missing the resource segment are rejected."""
        response = client.get(path)

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid path")

    def test_unknown_kind(self, client: TestClient):
        """Test a kind other than KV or DB is rejected."""
        response = client.get("/rest/XX/users")
        assert response.status_code == 400

    def test_unknown_prefix_not_routed(self, client: TestClient):
        """Test paths outside the prefix are not served by the REST router."""
        response = client.get("/other/DB/users")
        assert response.status_code == 404


class TestKVRoutes:
    """Tests for /rest/KV routes."""

    def test_multi_get(self, client: TestClient):
        """Test found keys are returned and missing keys omitted."""
        response = client.get("/rest/KV/Alphas", params={"keys": "a,missing,b"})

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "namespace": "Alphas",
            "data": {"a": "1", "b": "2"},
        }

    def test_multi_get_none_found(self, client: TestClient):
        """Test a multi-get with no hits is a 404."""
        response = client.get("/rest/KV/Alphas", params={"keys": "x,y"})

        assert response.status_code == 404
        assert response.json()["error"] == "No values found"

    def test_empty_keys_parameter(self, client: TestClient):
        """Test a keys parameter with nothing in it is rejected."""
        response = client.get("/rest/KV/Alphas", params={"keys": " , ,"})

        assert response.status_code == 400
        assert "No keys specified" in response.json()["error"]

    def test_unknown_namespace(self, client: TestClient):
        """Test an unconfigured namespace is rejected."""
        response = client.get("/rest/KV/NoSuchNS", params={"keys": "a"})

        assert response.status_code == 400
        assert response.json() == {"error": "Invalid KV namespace", "namespace": "NoSuchNS"}

    def test_get_one(self, client: TestClient):
        """Test a key in the path reads a single value."""
        response = client.get("/rest/KV/Alphas/a")

        assert response.status_code == 200
        assert response.json() == {"key": "a", "value": "1"}

    def test_get_one_missing(self, client: TestClient):
        """Test a missing single key is a 404."""
        response = client.get("/rest/KV/Alphas/zzz")

        assert response.status_code == 404
        assert response.json()["error"] == "Key not found"

    def test_list_keys(self, client: TestClient):
        """Test a bare namespace path lists every key."""
        response = client.get("/rest/KV/Alphas")

        assert response.status_code == 200
        assert response.json() == {
            "success": True,
            "namespace": "Alphas",
            "keys": ["a", "b"],
            "total": 2,
        }

    def test_put(self, client: TestClient, namespace: MemoryKVNamespace):
        """Test a JSON object body writes every pair."""
        response = client.put("/rest/KV/Alphas", json={"c": "3", "d": {"nested": True}})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"] == {"processed": 2, "keys": ["c", "d"]}

        follow_up = client.get("/rest/KV/Alphas", params={"keys": "c,d"})
        assert follow_up.json()["data"] == {"c": "3", "d": '{"nested": true}'}

    def test_put_empty_body(self, client: TestClient):
        """Test an empty object body is rejected."""
        response = client.put("/rest/KV/Alphas", json={})

        assert response.status_code == 400
        assert response.json()["error"] == "No data provided"

    @pytest.mark.parametrize("method", ["POST", "PATCH", "DELETE"])
    def test_method_not_allowed(self, client: TestClient, method: str):
        """Test unmapped verbs on KV paths are 405."""
        response = client.request(method, "/rest/KV/Alphas")

        assert response.status_code == 405
        assert "KV method not allowed" in response.json()["error"]


class TestDBRoutes:
    """Tests for /rest/DB routes."""

    def test_fetch_all(self, client: TestClient):
        """Test fetching a whole table."""
        response = client.get("/rest/DB/users")

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert len(body["results"]) == 3
        assert body["meta"]["rows_read"] == 3

    def test_fetch_filtered_sorted_paginated(self, client: TestClient):
        """Test filters, sort and pagination combine."""
        response = client.get(
            "/rest/DB/users",
            params={"status": "active", "sort_by": "name", "order": "desc", "limit": "1"},
        )

        assert response.status_code == 200
        assert [row["name"] for row in response.json()["results"]] == ["Linus"]

    def test_fetch_by_id(self, client: TestClient):
        """Test fetching a single row by id."""
        response = client.get("/rest/DB/users/2")

        assert response.status_code == 200
        assert response.json()["results"] == [{"id": "2", "name": "Grace", "status": "inactive"}]

    def test_fetch_bad_limit(self, client: TestClient):
        """Test a non-numeric limit is rejected."""
        response = client.get("/rest/DB/users", params={"limit": "ten"})
        assert response.status_code == 400

    def test_fetch_unknown_table(self, client: TestClient):
        """Test backend errors surface as 500 with the backend message."""
        response = client.get("/rest/DB/no_such_table")

        assert response.status_code == 500
        assert "no_such_table" in response.json()["error"]

    def test_create(self, client: TestClient):
        """Test creating a row echoes the record with 201."""
        record = {"id": "4", "name": "Barbara", "status": "active"}
        response = client.post("/rest/DB/users", json=record)

        assert response.status_code == 201
        assert response.json() == {"message": "Resource created successfully", "data": record}
        assert client.get("/rest/DB/users/4").json()["results"] == [record]

    def test_create_array_body(self, client: TestClient):
        """Test a JSON array body is rejected."""
        response = client.post("/rest/DB/users", json=[{"id": "4"}])

        assert response.status_code == 400
        assert response.json()["error"] == "Invalid data format"

    def test_create_invalid_json(self, client: TestClient):
        """Test an undecodable body is rejected."""
        response = client.post(
            "/rest/DB/users", content=b"{oops", headers={"content-type": "application/json"}
        )

        assert response.status_code == 400
        assert response.json()["error"].startswith("Invalid JSON body")

    @pytest.mark.parametrize("method", ["PUT", "PATCH"])
    def test_update(self, client: TestClient, method: str):
        """Test updating a row by id."""
        response = client.request(method, "/rest/DB/users/1", json={"status": "retired"})

        assert response.status_code == 200
        assert response.json() == {
            "message": "Resource updated successfully",
            "data": {"status": "retired"},
        }
        assert client.get("/rest/DB/users/1").json()["results"][0]["status"] == "retired"

    def test_update_without_id(self, client: TestClient):
        """Test updates require an id."""
        response = client.put("/rest/DB/users", json={"status": "retired"})

        assert response.status_code == 400
        assert response.json() == {"error": "ID is required for updates"}

    def test_delete(self, client: TestClient):
        """Test deleting a row by id."""
        response = client.delete("/rest/DB/users/3")

        assert response.status_code == 200
        assert response.json() == {"message": "Resource deleted successfully"}
        assert client.get("/rest/DB/users/3").json()["results"] == []

    def test_delete_without_id(self, client: TestClient):
        """Test deletes require an id."""
        response = client.delete("/rest/DB/users")

        assert response.status_code == 400
        assert response.json() == {"error": "ID is required for deletion"}

    def test_unmapped_verb(self, client: TestClient):
        """Test unmapped verbs on DB paths are 405."""
        response = client.options("/rest/DB/users")

        assert response.status_code == 405
        assert response.json() == {"error": "Method not allowed"}

    def test_identifier_sanitized(self, client: TestClient):
        """Test injected table names are stripped to safe identifiers."""
        response = client.get("/rest/DB/users;DROP TABLE users")

        assert response.status_code == 500
        assert len(client.get("/rest/DB/users").json()["results"]) == 3


class TestEngineInitialization:
    """Tests for lazy engine startup on first request."""

    def test_uninitialized_engine_is_started(self):
        """Test the route initializes the engine when needed."""
        engine = MagicMock()
        engine.is_initialized = False
        engine.execute.side_effect = RuntimeError("boom")
        registry = NamespaceRegistry([])

        with (
            patch("storage_gateway.api.routes.rest.get_engine", return_value=engine),
            patch("storage_gateway.api.routes.rest.get_registry", return_value=registry),
        ):
            response = TestClient(app).get("/rest/DB/users")

        engine.initialize.assert_called_once()
        assert response.status_code == 500
        assert response.json() == {"error": "boom"}


class TestCustomPrefix:
    """Tests for a configured route prefix."""

    @pytest.fixture
    def prefixed_client(self, engine: DuckDBEngine, namespace: MemoryKVNamespace, monkeypatch):
        """Create a client factory for an app built with a given prefix."""
        registry = NamespaceRegistry([namespace])

        def factory(prefix: str) -> TestClient:
            monkeypatch.setenv("STORAGE_GATEWAY_API__PREFIX", prefix)
            reset_settings()
            return TestClient(create_app())

        with (
            patch("storage_gateway.api.routes.rest.get_engine", return_value=engine),
            patch("storage_gateway.api.routes.rest.get_registry", return_value=registry),
        ):
            yield factory

    def test_custom_prefix(self, prefixed_client):
        """Test the REST router mounts under the configured prefix."""
        client = prefixed_client("api")

        assert client.get("/api/KV/Alphas/a").json() == {"key": "a", "value": "1"}
        assert client.get("/rest/KV/Alphas/a").status_code == 404

    def test_multi_segment_prefix(self, prefixed_client):
        """Test a prefix spanning several segments serves KV and DB routes."""
        client = prefixed_client("api/v1")

        kv_response = client.get("/api/v1/KV/Alphas/a")
        assert kv_response.status_code == 200
        assert kv_response.json() == {"key": "a", "value": "1"}

        db_response = client.get("/api/v1/DB/users/2")
        assert db_response.status_code == 200
        assert db_response.json()["results"][0]["name"] == "Grace"

    def test_prefix_slashes_stripped(self, prefixed_client):
        """Test leading and trailing slashes in the prefix are ignored."""
        client = prefixed_client("/api/v1/")

        assert client.get("/api/v1/KV/Alphas/b").json() == {"key": "b", "value": "2"}

    def test_messages_name_prefix(self, prefixed_client):
        """Test usage and 405 messages show the configured prefix."""
        client = prefixed_client("api/v1")

        malformed = client.get("/api/v1/DB")
        assert malformed.status_code == 400
        assert malformed.json()["error"] == (
            "Invalid path. Expected format: /api/v1/KV/{KVNamespace}[/{key}] "
            "or /api/v1/DB/{tableName}[/{id}]"
        )

        not_allowed = client.post("/api/v1/KV/Alphas")
        assert not_allowed.status_code == 405
        assert "/api/v1/KV/" in not_allowed.json()["error"]
