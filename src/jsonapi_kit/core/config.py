"""Declarative per-resource configuration.

Hooks and modifiers may be plain functions or coroutines. Query modifiers
receive the adapter's query object and return a new one.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

Writable = bool | Literal["create"] | Callable[[Any, Any], Any]


@dataclass(frozen=True)
class AttributeConfig:
    detail: bool = False
    writable: Writable | None = None
    when: Callable[[Any, Any], Any] | None = None
    get: Callable[[Any, Any], Any] | None = None
    set: Callable[[Any, Any, Any], Any] | None = None

    @property
    def readable(self) -> bool:
        # A setter without a getter makes an attribute write-only.
        return not (self.get is None and self.set is not None)


@dataclass(frozen=True)
class RelationshipConfig:
    type: str | None = None
    plural: bool = False
    detail: bool = False
    writable: Writable | None = None
    when: Callable[[Any, Any], Any] | None = None
    get: Callable[[Any, Any], Any] | None = None
    set: Callable[[Any, Any, Any], Any] | None = None
    include: bool = False

    @property
    def polymorphic(self) -> bool:
        return self.type is None


@dataclass(frozen=True)
class ScopeConfig:
    query: Callable[[Any, Any], Any]
    ensure: Callable[[Any, Any], Any] | None = None


@dataclass(frozen=True)
class CollectionAction:
    """A named action on ``/{plural}/{endpoint}``.

    ``handler(resource, context, body)`` returns a Pack. ``body`` is a Pack
    unless ``deserialize`` is false, in which case the raw JSON is passed.
    """

    name: str
    handler: Callable[..., Any]
    method: str = "post"
    endpoint: str | None = None
    deserialize: bool = True

    @property
    def path(self) -> str:
        return self.endpoint or self.name


@dataclass(frozen=True)
class DocumentAction:
    """A named action on ``/{plural}/-/{id}/{endpoint}``.

    ``handler(resource, context, locator, body)`` returns a Pack.
    """

    name: str
    handler: Callable[..., Any]
    method: str = "post"
    endpoint: str | None = None
    deserialize: bool = True

    @property
    def path(self) -> str:
        return self.endpoint or self.name


CustomAction = CollectionAction | DocumentAction


@dataclass
class ResourceConfig:
    attributes: Mapping[str, AttributeConfig | bool] = field(default_factory=dict)
    relationships: Mapping[str, RelationshipConfig] = field(default_factory=dict)

    # Naming & identity
    plural: str | None = None
    entity: str | None = None
    auxiliary: bool = False
    id_attribute: str = "id"
    allow_client_ids: bool = False

    # Capabilities
    read_only: bool = False
    totals: bool = True

    # Data retrieval
    adapter: Callable[[Any, Any], Any] | None = None
    query: Callable[[Any, Any], Any] | None = None
    scope: ScopeConfig | None = None
    search: Callable[[Any, str, Any], Any] | None = None
    labels: Mapping[str, Callable[[Any, Any], Any]] = field(default_factory=dict)
    singletons: Mapping[str, Callable[[Any, Any], Any]] = field(default_factory=dict)
    filters: Mapping[str, Callable[[Any, Any, Any], Any]] = field(default_factory=dict)
    sorts: Mapping[str, Callable[[Any, int, Any], Any]] = field(default_factory=dict)

    # Meta
    meta: Mapping[str, Any] | Callable[..., Any] | None = None
    document_meta: Callable[..., Any] | None = None

    # Pagination
    force_pagination: bool = False
    page_size: int | None = None

    # Actions
    before: list[Callable[[Any], Any]] = field(default_factory=list)
    collection_actions: list[CollectionAction] = field(default_factory=list)
    document_actions: list[DocumentAction] = field(default_factory=list)
