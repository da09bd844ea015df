"""Shared fixtures and helpers for tests."""

import dataclasses
from pathlib import Path
from typing import Any

import pytest

from jsonapi_kit.config import JSONAPISettings
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.db.memory import InMemoryStore, memory_adapter_factory
from jsonapi_kit.demo import CHILDREN_CONFIG, PARENTS_CONFIG, seed

_REPO_ROOT = Path(__file__).parent.parent


# ---------------------------------------------------------------------------
# Auto-marker: tag tests as "unit" or "integration" based on directory
# ---------------------------------------------------------------------------


def pytest_collection_modifyitems(items: list[pytest.Item]) -> None:
    for item in items:
        test_path = Path(str(item.fspath))
        rel = test_path.relative_to(_REPO_ROOT / "tests")
        parts = rel.parts
        if parts and parts[0] == "integration":
            item.add_marker(pytest.mark.integration)
        else:
            item.add_marker(pytest.mark.unit)


# ---------------------------------------------------------------------------
# Family fixtures: parents and children on the in-memory store
# ---------------------------------------------------------------------------


def name_id(document: Document) -> Any:
    """IDs of created documents are their lower-cased name."""
    return str(document.attributes.get("name", "")).lower()


def make_context(action: str, **params: Any) -> RequestContext:
    return RequestContext(action, params)


@pytest.fixture
def settings() -> JSONAPISettings:
    return JSONAPISettings(debug=False, enforce_content_type=True, max_page_size=None, default_page_size=50)


@pytest.fixture
def store() -> InMemoryStore:
    store = InMemoryStore()
    seed(store)
    return store


@pytest.fixture
def jsonapi(store: InMemoryStore, settings: JSONAPISettings) -> JSONAPI:
    jsonapi = JSONAPI(settings=settings, adapter_factory=memory_adapter_factory(store, id_factory=name_id))
    jsonapi.register("parents", PARENTS_CONFIG)
    jsonapi.register("children", CHILDREN_CONFIG)
    return jsonapi


def register_variant(jsonapi: JSONAPI, type_: str, **changes: Any) -> Resource:
    """Register an auxiliary resource over the parents table with a modified config."""
    config = dataclasses.replace(PARENTS_CONFIG, entity="parents", auxiliary=True, **changes)
    return jsonapi.register(type_, config)
