from __future__ import annotations

from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any

from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.ports.adapter import GetResponse
from jsonapi_kit.core.types import ActionOptions, IDLocator, ListOptions, Pagination

if TYPE_CHECKING:
    from jsonapi_kit.core.context import RequestContext
    from jsonapi_kit.core.resource import Resource


class BaseAdapter(ABC):
    """Relationship traversal shared by the bundled adapters.

    Subclasses provide the storage primitives of the adapter protocol plus
    :meth:`load`, which fetches one entity by ID within a query.
    """

    def __init__(self, resource: Resource, context: RequestContext) -> None:
        self.resource = resource
        self.context = context

    @abstractmethod
    def query(self) -> Any:
        ...

    @abstractmethod
    async def apply_filters(self, query: Any, filters: dict[str, Any]) -> Any:
        ...

    @abstractmethod
    async def find(self, query: Any, pagination: Pagination, options: ListOptions) -> Pack:
        ...

    @abstractmethod
    async def get(self, query: Any, locator: Any, options: ActionOptions) -> GetResponse:
        ...

    @abstractmethod
    async def load(self, query: Any, id_: Any) -> Any | None:
        ...

    async def _load_parent(self, parent: Resource, parent_id: Any) -> Any:
        adapter = parent.adapter(self.context)
        if not isinstance(adapter, BaseAdapter):
            raise APIError(405, f"Resource `{parent.type}` cannot be shown")

        query = await parent.query(adapter, self.context)
        entity = await adapter.load(query, parent.parse_id(parent_id))
        if entity is None:
            raise APIError(404, f"Resource `{parent.type}` with ID `{parent_id}` not found")
        return entity

    async def related_query(self, parent: Resource, relationship_name: str, parent_id: Any) -> Any:
        entity = await self._load_parent(parent, parent_id)
        relationship = await parent.get_relationship(entity, relationship_name, self.context)

        data = relationship["data"]
        linkages = data if isinstance(data, list) else [data] if data is not None else []
        ids = [self.resource.parse_id(linkage["id"]) for linkage in linkages]
        return await self.apply_filters(self.query(), {self.resource.config.id_attribute: ids})

    async def get_related(
        self,
        query: Any,
        relationship_name: str,
        parent_id: Any,
        options: ActionOptions,
    ) -> GetResponse:
        entity = await self.load(query, self.resource.parse_id(parent_id))
        if entity is None:
            raise APIError(404, f"Resource `{self.resource.type}` with ID `{parent_id}` not found")

        relationship = await self.resource.get_relationship(entity, relationship_name, self.context)
        data = relationship["data"]
        if data is None:
            return GetResponse(Pack(None))

        if isinstance(data, list):
            config = self.resource.relationships[relationship_name]
            related = self.resource.registry.get(config.type or "")
            adapter = related.adapter(self.context)
            if adapter is None:
                raise APIError(405, f"Resource `{related.type}` cannot be listed")
            related_query = await adapter.related_query(self.resource, relationship_name, parent_id)
            list_options = ListOptions(
                include=options.include, detail=options.detail, auto_include=options.auto_include
            )
            pack = await adapter.find(related_query, Pagination(), list_options)
            return GetResponse(pack)

        related = self.resource.registry.get(data["type"])
        adapter = related.adapter(self.context)
        if adapter is None:
            raise APIError(405, f"Resource `{related.type}` cannot be shown")
        related_query = await related.query(adapter, self.context)
        return await adapter.get(related_query, IDLocator(related.parse_id(data["id"])), options)
