"""Value types shared by the document model, the resources and the adapters."""

from __future__ import annotations

import enum
from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any, Literal

JSONAPI_MEDIA_TYPE = "application/vnd.api+json"
JSON_MEDIA_TYPE = "application/json"
SUPPORTED_MEDIA_TYPES = (JSON_MEDIA_TYPE, JSONAPI_MEDIA_TYPE)

# ---------------------------------------------------------------------------
# Linkages & relationships
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class Linkage:
    type: str
    id: Any

    def serialize(self) -> dict[str, Any]:
        return {"type": self.type, "id": self.id}

    @classmethod
    def from_raw(cls, raw: Mapping[str, Any]) -> Linkage:
        return cls(type=raw["type"], id=raw["id"])


def is_linkage(value: Any) -> bool:
    if isinstance(value, Linkage):
        return True
    if not isinstance(value, Mapping):
        return False
    if set(value) - {"type", "id", "meta"}:
        return False
    return isinstance(value.get("type"), str) and value.get("id") is not None


def is_relationship(value: Any) -> bool:
    """Whether ``value`` is a wire-shaped relationship object."""
    if not isinstance(value, Mapping) or "data" not in value:
        return False
    if set(value) - {"data", "links", "meta"}:
        return False

    links = value.get("links")
    if links is not None and (
        not isinstance(links, Mapping) or not all(isinstance(link, str) for link in links.values())
    ):
        return False
    if value.get("meta") is not None and not isinstance(value["meta"], Mapping):
        return False

    data = value["data"]
    if data is None:
        return True
    if isinstance(data, list):
        return all(is_linkage(item) for item in data)
    return is_linkage(data)


# ---------------------------------------------------------------------------
# Query parameters
# ---------------------------------------------------------------------------

SortDirection = Literal[1, -1]


@dataclass(frozen=True)
class Sort:
    field: str
    direction: SortDirection = 1

    @property
    def descending(self) -> bool:
        return self.direction == -1


@dataclass(frozen=True)
class Pagination:
    offset: int = 0
    limit: int | None = None


@dataclass(frozen=True)
class ListParams:
    label: str | None = None
    filters: dict[str, Any] = field(default_factory=dict)
    search: str | None = None
    sorts: tuple[Sort, ...] = ()
    pagination: Pagination = field(default_factory=Pagination)


# ---------------------------------------------------------------------------
# Locators & selectors
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class IDLocator:
    id: Any


@dataclass(frozen=True)
class SingletonLocator:
    singleton: str


DocumentLocator = IDLocator | SingletonLocator


@dataclass(frozen=True)
class BulkSelector:
    ids: tuple[Any, ...] | None = None
    filters: dict[str, Any] | None = None
    search: str | None = None

    @property
    def empty(self) -> bool:
        return self.ids is None and not self.filters and self.search is None


# ---------------------------------------------------------------------------
# Action options
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ActionOptions:
    label: str | None = None
    include: tuple[str, ...] = ()
    detail: bool = True
    auto_include: bool = True


@dataclass(frozen=True)
class ListOptions(ActionOptions):
    detail: bool = False
    filters: dict[str, Any] | None = None
    search: str | None = None
    sorts: tuple[Sort, ...] = ()
    pagination: Pagination | None = None

    @classmethod
    def from_params(cls, params: ListParams, include: tuple[str, ...] = ()) -> ListOptions:
        return cls(
            label=params.label,
            include=include,
            filters=params.filters or None,
            search=params.search,
            sorts=params.sorts,
            pagination=params.pagination,
        )


# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


class ActionKind(str, enum.Enum):
    LIST = "list"
    SHOW = "show"
    CREATE = "create"
    UPDATE = "update"
    REPLACE = "replace"
    DELETE = "delete"
    LIST_RELATED = "list-related"
    SHOW_RELATED = "show-related"


class Operation(str, enum.Enum):
    READ = "$read"
    WRITE = "$write"
    CUSTOM = "$custom"


_OPERATIONS: dict[str, Operation] = {
    ActionKind.LIST.value: Operation.READ,
    ActionKind.SHOW.value: Operation.READ,
    ActionKind.LIST_RELATED.value: Operation.READ,
    ActionKind.SHOW_RELATED.value: Operation.READ,
    ActionKind.CREATE.value: Operation.WRITE,
    ActionKind.UPDATE.value: Operation.WRITE,
    ActionKind.REPLACE.value: Operation.WRITE,
    ActionKind.DELETE.value: Operation.WRITE,
}


def operation_for_action(action: str | ActionKind) -> Operation:
    name = action.value if isinstance(action, ActionKind) else action
    return _OPERATIONS.get(name, Operation.CUSTOM)
