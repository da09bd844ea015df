from __future__ import annotations

import asyncio

import pytest

from jsonapi_kit.core.config import CollectionAction, DocumentAction
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.types import IDLocator, SingletonLocator
from jsonapi_kit.db.memory import InMemoryStore
from tests.conftest import make_context, register_variant


class TestCollectionActions:
    def test_average_age(self, jsonapi: JSONAPI) -> None:
        pack = asyncio.run(jsonapi.collection_action("parents", "average-age", None, make_context("average-age")))
        assert pack.data is None
        assert pack.meta == {"averageAge": 45.0, "count": 4}

    def test_synchronous_handler(self, jsonapi: JSONAPI) -> None:
        register_variant(
            jsonapi,
            "echoes",
            collection_actions=[CollectionAction("echo", lambda resource, context, body: Pack(body))],
        )
        pack = asyncio.run(jsonapi.collection_action("echoes", "echo", {"shout": "hi"}, make_context("echo")))
        assert pack.serialize()["data"] == {"shout": "hi"}

    def test_unknown_action_is_404(self, jsonapi: JSONAPI) -> None:
        with pytest.raises(APIError) as exc_info:
            asyncio.run(jsonapi.collection_action("parents", "median-age", None, make_context("median-age")))
        assert exc_info.value.status == 404

    def test_before_hooks_run_first(self, jsonapi: JSONAPI) -> None:
        calls: list[str] = []
        register_variant(jsonapi, "hooked", before=[lambda context: calls.append(context.action)])
        asyncio.run(jsonapi.collection_action("hooked", "average-age", None, make_context("average-age")))
        assert calls == ["average-age"]


def _document_action(jsonapi: JSONAPI, resource_type: str, locator: object, name: str, body: object = None) -> Pack:
    return asyncio.run(jsonapi.document_action(resource_type, locator, name, body, make_context(name)))


class TestDocumentActions:
    def test_birthday(self, jsonapi: JSONAPI, store: InMemoryStore) -> None:
        pack = _document_action(jsonapi, "parents", IDLocator("alice"), "birthday")
        assert pack.data.id == "alice"
        assert pack.data.attributes["age"] == 31
        assert store.tables["parents"]["alice"]["age"] == 31

    def test_birthday_of_unknown_document_is_404(self, jsonapi: JSONAPI) -> None:
        with pytest.raises(APIError) as exc_info:
            _document_action(jsonapi, "parents", IDLocator("mallory"), "birthday")
        assert exc_info.value.status == 404

    def test_birthday_by_singleton_is_400(self, jsonapi: JSONAPI) -> None:
        with pytest.raises(APIError) as exc_info:
            _document_action(jsonapi, "parents", SingletonLocator("oldest"), "birthday")
        assert exc_info.value.status == 400

    def test_handler_receives_locator_and_body(self, jsonapi: JSONAPI) -> None:
        seen: list[tuple[object, object]] = []

        async def record(resource: object, context: object, locator: object, body: object) -> Pack:
            seen.append((locator, body))
            return Pack.empty()

        register_variant(jsonapi, "recorded", document_actions=[DocumentAction("record", record)])
        _document_action(jsonapi, "recorded", IDLocator("bob"), "record", {"x": 1})
        assert seen == [(IDLocator("bob"), {"x": 1})]

    def test_unknown_action_is_404(self, jsonapi: JSONAPI) -> None:
        with pytest.raises(APIError) as exc_info:
            _document_action(jsonapi, "parents", IDLocator("alice"), "wedding")
        assert exc_info.value.status == 404
