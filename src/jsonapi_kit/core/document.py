from __future__ import annotations

import copy
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any

from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.types import Linkage, is_relationship

if TYPE_CHECKING:
    from jsonapi_kit.core.registry import ResourceRegistry
    from jsonapi_kit.core.resource import Resource


@dataclass(frozen=True)
class Document:
    """One JSON:API resource object.

    The document refers to its resource by type name only; the owning
    :class:`Resource` is looked up through a registry when needed. All maps are
    deep-copied on construction so a document never shares state with its
    input.
    """

    type: str
    id: Any = None
    attributes: dict[str, Any] = field(default_factory=dict)
    relationships: dict[str, dict[str, Any]] = field(default_factory=dict)
    links: dict[str, str] = field(default_factory=dict)
    meta: dict[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        for name in ("attributes", "relationships", "links", "meta"):
            object.__setattr__(self, name, copy.deepcopy(dict(getattr(self, name) or {})))

        for name, relationship in self.relationships.items():
            if not is_relationship(relationship):
                raise APIError(400, f'Invalid relationship "{name}"')
        for name, link in self.links.items():
            if not isinstance(link, str):
                raise APIError(400, f'Invalid link "{name}": links must be strings')

    def resource(self, registry: ResourceRegistry) -> Resource:
        return registry.get(self.type)

    def to_linkage(self) -> Linkage:
        if self.id is None:
            raise APIError(500, f"Cannot create a linkage for a `{self.type}` document without an ID")
        return Linkage(self.type, self.id)

    def serialize(self) -> dict[str, Any]:
        serialized: dict[str, Any] = {
            "id": self.id,
            "type": self.type,
            "attributes": copy.deepcopy(self.attributes),
            "relationships": copy.deepcopy(self.relationships),
        }
        if self.links:
            serialized["links"] = dict(self.links)
        if self.meta:
            serialized["meta"] = copy.deepcopy(self.meta)
        return serialized

    @classmethod
    def deserialize(cls, registry: ResourceRegistry, raw: Any, detail: bool = True) -> Document:
        if not isinstance(raw, Mapping):
            raise APIError(400, "Invalid document: expected an object")

        type_ = raw.get("type")
        if type_ is None:
            raise APIError(400, "Missing document type")
        if not isinstance(type_, str):
            raise APIError(400, "Invalid document type")

        resource = registry.get(type_)
        attributes = _mapping(raw, "attributes")
        relationships = _mapping(raw, "relationships")
        links = _mapping(raw, "links")
        meta = _mapping(raw, "meta")

        for name in attributes:
            if name not in resource.attributes:
                raise APIError(403, f'Attribute "{name}" not found on resource `{type_}`')
        for name, relationship in relationships.items():
            if name not in resource.relationships:
                raise APIError(403, f'Relationship "{name}" not found on resource `{type_}`')
            if not is_relationship(relationship):
                raise APIError(400, f'Invalid relationship "{name}"')

        if not detail:
            attributes = {name: value for name, value in attributes.items() if not resource.attributes[name].detail}
            relationships = {
                name: value for name, value in relationships.items() if not resource.relationships[name].detail
            }

        return cls(
            type=type_,
            id=raw.get("id"),
            attributes=attributes,
            relationships=relationships,
            links=links,
            meta=meta,
        )


def _mapping(raw: Mapping[str, Any], key: str) -> dict[str, Any]:
    value = raw.get(key)
    if value is None:
        return {}
    if not isinstance(value, Mapping):
        raise APIError(400, f"Invalid document: `{key}` must be an object")
    return dict(value)
