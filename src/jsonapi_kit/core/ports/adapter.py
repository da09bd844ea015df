from __future__ import annotations

from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Protocol

from jsonapi_kit.core.document import Document
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.types import ActionOptions, DocumentLocator, Linkage, ListOptions, Pagination, Sort

if TYPE_CHECKING:
    from jsonapi_kit.core.resource import Resource


@dataclass
class GetResponse:
    pack: Pack


@dataclass
class MutationResponse:
    pack: Pack


@dataclass
class DeleteResponse:
    deleted_count: int
    linkages: list[Linkage] = field(default_factory=list)


class Adapter(Protocol):
    """Storage-facing collaborator bound to one resource and one request context.

    Query objects are opaque to the core; only the adapter and the resource's
    configured modifiers know their shape.
    """

    def query(self) -> Any: ...

    async def apply_filters(self, query: Any, filters: dict[str, Any]) -> Any: ...

    async def apply_search(self, query: Any, term: str) -> Any: ...

    async def apply_sorts(self, query: Any, sorts: list[Sort]) -> Any: ...

    async def count(self, query: Any) -> int: ...

    async def find(self, query: Any, pagination: Pagination, options: ListOptions) -> Pack: ...

    async def get(self, query: Any, locator: DocumentLocator, options: ActionOptions) -> GetResponse: ...

    async def create(self, query: Any, document: Document, options: ActionOptions) -> MutationResponse: ...

    async def update(self, query: Any, document: Document, options: ActionOptions) -> MutationResponse: ...

    async def replace(self, query: Any, document: Document, options: ActionOptions) -> MutationResponse: ...

    async def delete(self, query: Any, options: ActionOptions) -> DeleteResponse: ...

    async def related_query(self, parent: Resource, relationship_name: str, parent_id: Any) -> Any: ...

    async def get_related(
        self,
        query: Any,
        relationship_name: str,
        parent_id: Any,
        options: ActionOptions,
    ) -> GetResponse: ...
