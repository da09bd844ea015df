"""A small family API on the in-memory store, served by ``jsonapi-kit serve`` by default."""

from __future__ import annotations

from typing import Any

from fastapi import FastAPI

from jsonapi_kit.api.app import create_app
from jsonapi_kit.config import JSONAPISettings, get_settings
from jsonapi_kit.core.config import CollectionAction, DocumentAction, RelationshipConfig, ResourceConfig
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import ActionOptions, IDLocator, ListOptions, Pagination, Sort
from jsonapi_kit.db.memory import InMemoryStore, MemoryQuery, memory_adapter_factory

PARENTS: list[dict[str, Any]] = [
    {"id": "alice", "name": "Alice", "age": 30, "spouse": "bob", "children": ["charlie", "dolores"]},
    {"id": "bob", "name": "Bob", "age": 40, "spouse": "alice", "children": ["charlie", "dolores"]},
    {"id": "eve", "name": "Eve", "age": 50, "spouse": "frank", "children": ["isaac", "henry"]},
    {"id": "frank", "name": "Frank", "age": 60, "spouse": "eve", "children": ["isaac", "henry"]},
]

CHILDREN: list[dict[str, Any]] = [
    {"id": "charlie", "name": "Charlie", "age": 9, "parents": ["alice", "bob"]},
    {"id": "dolores", "name": "Dolores", "age": 12, "parents": ["alice", "bob"]},
    {"id": "isaac", "name": "Isaac", "age": 3, "parents": ["eve", "frank"]},
    {"id": "henry", "name": "Henry", "age": 6, "parents": ["eve", "frank"]},
]


def seed(store: InMemoryStore) -> None:
    store.seed("parents", PARENTS)
    store.seed("children", CHILDREN)


# ---------------------------------------------------------------------------
# Custom actions
# ---------------------------------------------------------------------------


async def average_age(resource: Resource, context: RequestContext, body: Any) -> Pack:
    adapter = resource.adapter(context)
    query = await resource.query(adapter, context)
    pack = await adapter.find(query, Pagination(), ListOptions(auto_include=False))
    ages = [document.attributes["age"] for document in pack.data]
    average = sum(ages) / len(ages) if ages else None
    return Pack(None, meta={"averageAge": average, "count": len(ages)})


async def birthday(resource: Resource, context: RequestContext, locator: Any, body: Any) -> Pack:
    if not isinstance(locator, IDLocator):
        raise APIError(400, "Birthdays are only celebrated by ID")
    adapter = resource.adapter(context)
    query = await resource.query(adapter, context)
    entity = await adapter.load(query, locator.id)
    if entity is None:
        raise APIError(404, f"Resource `{resource.type}` with ID `{locator.id}` not found")

    document = Document(resource.type, locator.id, {"age": entity["age"] + 1})
    response = await adapter.update(query, document, ActionOptions())
    return response.pack


# ---------------------------------------------------------------------------
# Resources
# ---------------------------------------------------------------------------


def _older_than(query: MemoryQuery, value: Any, context: RequestContext) -> MemoryQuery:
    try:
        age = int(value)
    except (TypeError, ValueError) as exc:
        raise APIError(400, f"Filter `older-than` expects an integer, got `{value}`") from exc
    return query.where(lambda entity: entity["age"] > age)


PARENTS_CONFIG = ResourceConfig(
    attributes={"name": True, "age": True},
    relationships={
        "spouse": RelationshipConfig(type="parents"),
        "children": RelationshipConfig(type="children", plural=True),
    },
    labels={
        "fifty-plus": lambda query, context: query.where(lambda entity: entity["age"] >= 50),
    },
    singletons={
        "oldest": lambda query, context: query.order_by(Sort("age", -1)),
    },
    filters={"older-than": _older_than},
    collection_actions=[CollectionAction("average-age", average_age, method="get")],
    document_actions=[DocumentAction("birthday", birthday)],
)

CHILDREN_CONFIG = ResourceConfig(
    attributes={"name": True, "age": True},
    relationships={
        "parents": RelationshipConfig(type="parents", plural=True),
    },
    filters={"older-than": _older_than},
)


def build_demo_api(store: InMemoryStore | None = None, settings: JSONAPISettings | None = None) -> JSONAPI:
    if store is None:
        store = InMemoryStore()
        seed(store)

    jsonapi = JSONAPI(settings=settings or get_settings(), adapter_factory=memory_adapter_factory(store))
    jsonapi.register("parents", PARENTS_CONFIG)
    jsonapi.register("children", CHILDREN_CONFIG)
    return jsonapi


def create_demo_app() -> FastAPI:
    return create_app(build_demo_api(), title="Family API", description="Parents and their children.")
