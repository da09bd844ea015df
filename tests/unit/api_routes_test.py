"""Tests for the FastAPI routes using the in-memory store."""

from __future__ import annotations

import json
from typing import Any

import pytest
from fastapi.testclient import TestClient
from httpx import Response

from jsonapi_kit.api.app import create_app
from jsonapi_kit.api.router import resource_routes
from jsonapi_kit.core.config import CollectionAction
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.types import JSONAPI_MEDIA_TYPE
from jsonapi_kit.db.memory import InMemoryStore
from tests.conftest import register_variant

JSONAPI_HEADERS = {"content-type": JSONAPI_MEDIA_TYPE}


@pytest.fixture
def client(jsonapi: JSONAPI) -> TestClient:
    return TestClient(create_app(jsonapi))


def _send(client: TestClient, method: str, url: str, body: Any, headers: dict[str, str] | None = None) -> Response:
    """Helper: send ``body`` as a JSON:API document."""
    return client.request(method, url, content=json.dumps(body), headers=headers or JSONAPI_HEADERS)


def _ids(resp: Response) -> list[str]:
    return [document["id"] for document in resp.json()["data"]]


def _error(resp: Response) -> dict[str, Any]:
    body = resp.json()
    assert resp.headers["content-type"] == JSONAPI_MEDIA_TYPE
    assert len(body["errors"]) == 1
    error: dict[str, Any] = body["errors"][0]
    assert error["status"] == str(resp.status_code)
    return error


class TestRootRoute:
    def test_root_returns_discovery(self, client: TestClient) -> None:
        resp = client.get("/")
        assert resp.status_code == 200
        body = resp.json()
        assert body["jsonapi"]["version"] == "1.0"
        assert body["links"]["parents"] == "/parents"
        assert body["links"]["children"] == "/children"
        assert body["meta"]["title"] == "JSON:API"


class TestHealthRoutes:
    def test_liveness_returns_ok(self, client: TestClient) -> None:
        resp = client.get("/healthz/live")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok"}

    def test_readiness_counts_resources(self, client: TestClient) -> None:
        resp = client.get("/healthz/ready")
        assert resp.status_code == 200
        assert resp.json() == {"status": "ok", "resources": 2}

    def test_readiness_without_resources(self) -> None:
        resp = TestClient(create_app(JSONAPI())).get("/healthz/ready")
        assert resp.status_code == 503
        assert resp.json()["status"] == "degraded"


class TestListRoutes:
    def test_list(self, client: TestClient) -> None:
        resp = client.get("/parents")
        assert resp.status_code == 200
        assert resp.headers["content-type"] == JSONAPI_MEDIA_TYPE
        assert _ids(resp) == ["alice", "bob", "eve", "frank"]
        assert resp.json()["meta"]["total"] == 4

    def test_filter_sort_and_page(self, client: TestClient) -> None:
        assert _ids(client.get("/parents?filter[age]=30")) == ["alice"]
        assert _ids(client.get("/parents?sort=-age&page[limit]=2")) == ["frank", "eve"]
        assert _ids(client.get("/parents?filter[older-than]=45&sort=-age")) == ["frank", "eve"]

    def test_sort_ties_use_later_fields(self, client: TestClient, store: InMemoryStore) -> None:
        store.put("parents", "amy", {"id": "amy", "name": "Amy", "age": 40, "spouse": None, "children": []})
        assert _ids(client.get("/parents?sort=-age,name")) == ["frank", "eve", "amy", "bob", "alice"]

    def test_filter_array(self, client: TestClient) -> None:
        assert _ids(client.get("/parents?filter[id][]=bob&filter[id][]=eve")) == ["bob", "eve"]

    def test_search(self, client: TestClient) -> None:
        resp = client.get("/parents?search=e")
        assert _ids(resp) == ["alice", "eve"]
        assert resp.json()["meta"]["searchTotal"] == 2

    def test_include(self, client: TestClient) -> None:
        resp = client.get("/parents?include=children&filter[age]=30")
        assert [document["id"] for document in resp.json()["included"]] == ["charlie", "dolores"]

    def test_label(self, client: TestClient) -> None:
        assert _ids(client.get("/parents/fifty-plus")) == ["eve", "frank"]

    def test_unknown_label_is_404(self, client: TestClient) -> None:
        resp = client.get("/parents/toddlers")
        assert resp.status_code == 404
        assert "toddlers" in _error(resp)["detail"]

    def test_resource_without_labels_has_no_label_route(self, client: TestClient) -> None:
        assert client.get("/children/toddlers").status_code == 404

    def test_invalid_parameters_are_400(self, client: TestClient) -> None:
        assert client.get("/parents?page[offset]=-1").status_code == 400
        assert client.get("/parents?sort=,").status_code == 400
        assert client.get("/parents?include=siblings").status_code == 400
        assert client.get("/parents?filter=age&filter[age]=1").status_code == 400


class TestShowRoutes:
    def test_show(self, client: TestClient) -> None:
        resp = client.get("/parents/-/alice")
        assert resp.status_code == 200
        assert resp.json()["data"]["attributes"] == {"name": "Alice", "age": 30}

    def test_singleton(self, client: TestClient) -> None:
        assert client.get("/parents/-/oldest").json()["data"]["id"] == "frank"

    def test_missing_document_is_404(self, client: TestClient) -> None:
        resp = client.get("/parents/-/mallory")
        assert resp.status_code == 404
        assert _error(resp)["title"] == "Not Found"

    def test_show_related(self, client: TestClient) -> None:
        resp = client.get("/parents/-/alice/spouse")
        assert resp.status_code == 200
        assert resp.json()["data"]["id"] == "bob"

    def test_list_related(self, client: TestClient) -> None:
        resp = client.get("/parents/-/alice/children?sort=-age")
        assert resp.status_code == 200
        assert _ids(resp) == ["dolores", "charlie"]
        assert resp.json()["meta"]["total"] == 2


class TestWriteRoutes:
    def test_create(self, client: TestClient, store: InMemoryStore) -> None:
        body = {"data": {"type": "parents", "attributes": {"name": "Zoe", "age": 35}}}
        resp = _send(client, "POST", "/parents", body)
        assert resp.status_code == 201, resp.text
        assert resp.json()["data"]["id"] == "zoe"
        assert store.has("parents", "zoe")

    def test_update(self, client: TestClient) -> None:
        body = {"data": {"type": "parents", "id": "alice", "attributes": {"age": 31}}}
        resp = _send(client, "PATCH", "/parents/-/alice", body)
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["attributes"] == {"name": "Alice", "age": 31}

    def test_update_id_mismatch_is_409(self, client: TestClient) -> None:
        resp = _send(client, "PATCH", "/parents/-/alice", {"data": {"type": "parents", "id": "bob", "attributes": {}}})
        assert resp.status_code == 409

    def test_replace(self, client: TestClient) -> None:
        body = {"data": {"type": "parents", "id": "bob", "attributes": {"name": "Robert"}}}
        resp = _send(client, "PUT", "/parents/-/bob", body)
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["attributes"] == {"name": "Robert", "age": None}

    def test_delete_by_id(self, client: TestClient, store: InMemoryStore) -> None:
        resp = client.delete("/parents/-/alice")
        assert resp.status_code == 200
        assert resp.json()["data"] == [{"type": "parents", "id": "alice"}]
        assert resp.json()["meta"] == {"deletedCount": 1}
        assert not store.has("parents", "alice")

    def test_bulk_delete(self, client: TestClient, store: InMemoryStore) -> None:
        resp = _send(client, "DELETE", "/parents", {"meta": {"filters": {"older-than": 45}}})
        assert resp.status_code == 200, resp.text
        assert resp.json()["meta"] == {"deletedCount": 2}
        assert sorted(store.tables["parents"]) == ["alice", "bob"]

    def test_bulk_delete_requires_body(self, client: TestClient) -> None:
        assert client.delete("/parents").status_code == 400


class TestRequestGate:
    def test_wrong_content_type_is_415(self, client: TestClient) -> None:
        resp = client.post("/parents", json={"data": {"type": "parents", "attributes": {"name": "Zoe"}}})
        assert resp.status_code == 415
        assert JSONAPI_MEDIA_TYPE in _error(resp)["detail"]

    def test_unacceptable_media_type_is_406(self, client: TestClient) -> None:
        assert client.get("/parents", headers={"accept": "text/html"}).status_code == 406

    def test_plain_json_can_be_negotiated(self, client: TestClient) -> None:
        resp = client.get("/parents", headers={"accept": "text/html, application/json"})
        assert resp.status_code == 200
        assert resp.headers["content-type"] == "application/json"

    def test_malformed_json_is_400(self, client: TestClient) -> None:
        resp = client.post("/parents", content="{not json", headers=JSONAPI_HEADERS)
        assert resp.status_code == 400
        assert "Malformed" in _error(resp)["detail"]

    def test_content_type_is_checked_before_body_is_parsed(self, client: TestClient) -> None:
        resp = client.post("/parents", content="name=Zoe", headers={"content-type": "text/plain"})
        assert resp.status_code == 415

    def test_missing_body_is_400(self, client: TestClient) -> None:
        assert client.post("/parents", headers=JSONAPI_HEADERS).status_code == 400

    def test_body_on_get_is_400(self, client: TestClient) -> None:
        resp = client.request("GET", "/parents", content=json.dumps({"data": None}), headers=JSONAPI_HEADERS)
        assert resp.status_code == 400

    def test_read_only_resource_is_403(self, jsonapi: JSONAPI) -> None:
        register_variant(jsonapi, "archived-parents", read_only=True)
        client = TestClient(create_app(jsonapi))
        resp = _send(
            client,
            "POST",
            "/archived-parents",
            {"data": {"type": "archived-parents", "attributes": {"name": "Zoe"}}},
        )
        assert resp.status_code == 403
        assert client.get("/archived-parents").status_code == 200

    def test_unknown_path_is_error_document(self, client: TestClient) -> None:
        resp = client.get("/pets")
        assert resp.status_code == 404
        assert _error(resp)["detail"] == "Not Found"

    def test_method_not_allowed(self, client: TestClient) -> None:
        resp = client.patch("/parents")
        assert resp.status_code == 405
        assert "allow" in resp.headers

    def test_server_errors_hide_details(self, jsonapi: JSONAPI) -> None:
        def explode(resource: object, context: object, body: object) -> None:
            raise RuntimeError("database password is hunter2")

        register_variant(jsonapi, "fragile", collection_actions=[CollectionAction("explode", explode)])
        resp = TestClient(create_app(jsonapi)).post("/fragile/explode")
        assert resp.status_code == 500
        assert "hunter2" not in resp.text
        assert _error(resp)["detail"] == "An internal server error occurred"


class TestCustomActionRoutes:
    def test_collection_action(self, client: TestClient) -> None:
        resp = client.get("/parents/average-age")
        assert resp.status_code == 200
        assert resp.json()["data"] is None
        assert resp.json()["meta"] == {"averageAge": 45.0, "count": 4}

    def test_document_action(self, client: TestClient, store: InMemoryStore) -> None:
        resp = client.post("/parents/-/frank/birthday")
        assert resp.status_code == 200, resp.text
        assert resp.json()["data"]["attributes"]["age"] == 61
        assert store.tables["parents"]["frank"]["age"] == 61

    def test_custom_routes_precede_labels(self, jsonapi: JSONAPI) -> None:
        routes = resource_routes(jsonapi.registry.get("parents"))
        paths = [(route.method, route.path) for route in routes]
        assert paths.index(("GET", "/parents/average-age")) < paths.index(("GET", "/parents/{label}"))
        assert ("POST", "/parents/-/{id}/birthday") in paths
        assert ("GET", "/parents/-/{id}/children") in paths
