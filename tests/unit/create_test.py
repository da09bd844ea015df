from __future__ import annotations

import asyncio
import copy
from typing import Any

import pytest

from jsonapi_kit.core.collection import Collection
from jsonapi_kit.core.config import AttributeConfig, ScopeConfig
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.types import ListParams
from jsonapi_kit.db.memory import InMemoryStore
from tests.conftest import make_context, register_variant


def _create(jsonapi: JSONAPI, data: Any, resource_type: str = "parents") -> Pack:
    pack = Pack.deserialize(jsonapi.registry, {"data": data})
    return asyncio.run(jsonapi.create(resource_type, pack, make_context("create")))


def _status(jsonapi: JSONAPI, data: Any, resource_type: str = "parents") -> int:
    with pytest.raises(APIError) as exc_info:
        _create(jsonapi, data, resource_type)
    return exc_info.value.status


def _zoe(**extra: Any) -> dict[str, Any]:
    return {"type": "parents", "attributes": {"name": "Zoe", "age": 35}, **extra}


class TestCreate:
    def test_creates_document(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        pack = _create(
            jsonapi,
            _zoe(relationships={"spouse": {"data": {"type": "parents", "id": "bob"}}}),
        )
        assert pack.data.id == "zoe"
        assert pack.data.attributes == {"name": "Zoe", "age": 35}
        assert pack.data.relationships == {
            "spouse": {"data": {"type": "parents", "id": "bob"}},
            "children": {"data": []},
        }
        assert store.has("parents", "zoe")
        assert store.tables["parents"]["zoe"]["spouse"] == "bob"

    def test_created_document_is_listed(self, jsonapi: JSONAPI) -> None:
        _create(jsonapi, _zoe())
        pack = asyncio.run(jsonapi.list("parents", ListParams(), make_context("list")))
        assert pack.meta["total"] == 5

    def test_plural_relationship_is_stored_as_ids(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        children = [{"type": "children", "id": "isaac"}, {"type": "children", "id": "henry"}]
        _create(jsonapi, _zoe(relationships={"children": {"data": children}}))
        assert store.tables["parents"]["zoe"]["children"] == ["isaac", "henry"]


class TestRequestDocument:
    def test_missing_document_is_400(self, jsonapi: JSONAPI) -> None:
        with pytest.raises(APIError) as exc_info:
            asyncio.run(jsonapi.create("parents", Pack(None), make_context("create")))
        assert exc_info.value.status == 400

    def test_collection_is_400(self, jsonapi: JSONAPI) -> None:
        pack = Pack(Collection([Document("parents", attributes={"name": "Zoe"})]))
        with pytest.raises(APIError) as exc_info:
            asyncio.run(jsonapi.create("parents", pack, make_context("create")))
        assert exc_info.value.status == 400

    def test_type_mismatch_is_409(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        before = copy.deepcopy(dict(store.tables))
        assert _status(jsonapi, {"type": "children", "attributes": {"name": "Zoe"}}) == 409
        assert dict(store.tables) == before

    def test_linkage_type_mismatch_writes_nothing(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        before = copy.deepcopy(dict(store.tables))
        spouse = {"spouse": {"data": {"type": "children", "id": "isaac"}}}
        assert _status(jsonapi, _zoe(relationships=spouse)) == 409
        assert dict(store.tables) == before

    def test_client_ids_are_forbidden_by_default(self, jsonapi: JSONAPI) -> None:
        assert _status(jsonapi, _zoe(id="zoe")) == 403

    def test_client_ids_when_allowed(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        register_variant(jsonapi, "imported-parents", allow_client_ids=True)
        pack = _create(jsonapi, {**_zoe(id="z-1"), "type": "imported-parents"}, "imported-parents")
        assert pack.data.id == "z-1"
        assert store.has("parents", "z-1")

    def test_duplicate_client_id_is_409(self, jsonapi: JSONAPI) -> None:
        register_variant(jsonapi, "imported-parents", allow_client_ids=True)
        assert _status(jsonapi, {**_zoe(id="alice"), "type": "imported-parents"}, "imported-parents") == 409


class TestWritability:
    def test_non_writable_attribute_is_403(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        register_variant(jsonapi, "locked", attributes={"name": True, "age": AttributeConfig(writable=False)})
        assert _status(jsonapi, {**_zoe(), "type": "locked"}, "locked") == 403
        assert not store.has("parents", "zoe")

    def test_create_only_attribute(self, jsonapi: JSONAPI) -> None:
        register_variant(jsonapi, "locked", attributes={"name": True, "age": AttributeConfig(writable="create")})
        assert _create(jsonapi, {**_zoe(), "type": "locked"}, "locked").data.attributes["age"] == 35

    def test_callable_writable(self, jsonapi: JSONAPI) -> None:
        register_variant(
            jsonapi,
            "locked",
            attributes={"name": True, "age": AttributeConfig(writable=lambda entity, context: False)},
        )
        assert _status(jsonapi, {**_zoe(), "type": "locked"}, "locked") == 403

    def test_unavailable_attribute_is_403(self, jsonapi: JSONAPI) -> None:
        register_variant(
            jsonapi,
            "locked",
            attributes={"name": True, "age": AttributeConfig(when=lambda entity, context: "name" not in entity)},
        )
        assert _status(jsonapi, {**_zoe(), "type": "locked"}, "locked") == 403

    def test_custom_setter(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        register_variant(
            jsonapi,
            "shouting",
            attributes={
                "name": AttributeConfig(
                    get=lambda entity, context: entity["name"],
                    set=lambda entity, value, context: entity.update(name=value.upper()),
                ),
                "age": True,
            },
        )
        pack = _create(jsonapi, {**_zoe(), "type": "shouting"}, "shouting")
        assert pack.data.attributes["name"] == "ZOE"
        assert store.tables["parents"]["zoe"]["name"] == "ZOE"


class TestRelationshipInput:
    def test_linkage_type_mismatch_is_409(self, jsonapi: JSONAPI) -> None:
        spouse = {"spouse": {"data": {"type": "children", "id": "isaac"}}}
        assert _status(jsonapi, _zoe(relationships=spouse)) == 409

    def test_plural_relationship_requires_array(self, jsonapi: JSONAPI) -> None:
        children = {"children": {"data": {"type": "children", "id": "isaac"}}}
        assert _status(jsonapi, _zoe(relationships=children)) == 400

    def test_singular_relationship_rejects_array(self, jsonapi: JSONAPI) -> None:
        spouse = {"spouse": {"data": [{"type": "parents", "id": "bob"}]}}
        assert _status(jsonapi, _zoe(relationships=spouse)) == 400


class TestScope:
    def test_scope_ensure_applies_defaults(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        register_variant(
            jsonapi,
            "smiths",
            scope=ScopeConfig(
                query=lambda query, context: query.filter("family", "smith"),
                ensure=lambda entity, context: entity.setdefault("family", "smith"),
            ),
        )
        _create(jsonapi, {**_zoe(), "type": "smiths"}, "smiths")
        assert store.tables["parents"]["zoe"]["family"] == "smith"

        pack = asyncio.run(jsonapi.list("smiths", ListParams(), make_context("list")))
        assert [document.id for document in pack.data] == ["zoe"]
