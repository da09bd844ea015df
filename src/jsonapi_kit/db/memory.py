import copy
import logging
import uuid
from collections import defaultdict
from collections.abc import Callable, Iterable
from dataclasses import dataclass, replace
from typing import Any

from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.ports.adapter import DeleteResponse, GetResponse, MutationResponse
from jsonapi_kit.core.resource import Resource, read_value
from jsonapi_kit.core.types import ActionOptions, DocumentLocator, IDLocator, Linkage, ListOptions, Pagination, Sort
from jsonapi_kit.db.base import BaseAdapter

logger = logging.getLogger(__name__)

Entity = dict[str, Any]


def _matches(actual: Any, expected: Any) -> bool:
    if isinstance(expected, list | tuple | set):
        return any(_matches(actual, item) for item in expected)
    if isinstance(actual, list):
        return any(_matches(item, expected) for item in actual)
    if actual == expected:
        return True
    # Query strings carry every value as text.
    return actual is not None and expected is not None and str(actual) == str(expected)


@dataclass(frozen=True)
class MemoryQuery:
    """An immutable query over one in-memory table."""

    table: str
    filters: tuple[tuple[str, Any], ...] = ()
    predicates: tuple[Callable[[Entity], bool], ...] = ()
    sorts: tuple[Sort, ...] = ()

    def filter(self, name: str, value: Any) -> "MemoryQuery":
        return replace(self, filters=(*self.filters, (name, value)))

    def where(self, predicate: Callable[[Entity], bool]) -> "MemoryQuery":
        return replace(self, predicates=(*self.predicates, predicate))

    def order_by(self, *sorts: Sort) -> "MemoryQuery":
        return replace(self, sorts=tuple(sorts))

    def matches(self, entity: Entity) -> bool:
        if not all(_matches(entity.get(name), value) for name, value in self.filters):
            return False
        return all(predicate(entity) for predicate in self.predicates)

    def select(self, entities: Iterable[Entity]) -> list[Entity]:
        rows = [entity for entity in entities if self.matches(entity)]
        # Stable sorts applied from the least to the most significant field.
        for sort in reversed(self.sorts):
            rows.sort(key=lambda row, field=sort.field: _sort_key(row.get(field)), reverse=sort.descending)
        return rows


def _sort_key(value: Any) -> tuple[int, int, Any]:
    # Numbers sort before other values, None last; mixed columns never compare across kinds.
    if value is None:
        return (1, 0, 0)
    if isinstance(value, bool | int | float):
        return (0, 0, value)
    return (0, 1, str(value))


class InMemoryStore:
    """Tables of dict entities keyed by the string form of their ID."""

    def __init__(self) -> None:
        self.tables: dict[str, dict[str, Entity]] = defaultdict(dict)

    def rows(self, table: str) -> list[Entity]:
        return [copy.deepcopy(entity) for entity in self.tables[table].values()]

    def put(self, table: str, id_: Any, entity: Entity) -> None:
        self.tables[table][str(id_)] = copy.deepcopy(entity)

    def has(self, table: str, id_: Any) -> bool:
        return str(id_) in self.tables[table]

    def remove(self, table: str, id_: Any) -> None:
        self.tables[table].pop(str(id_), None)

    def seed(self, table: str, entities: Iterable[Entity], id_attribute: str = "id") -> None:
        for entity in entities:
            self.put(table, entity[id_attribute], entity)

    def clear(self) -> None:
        self.tables.clear()


class InMemoryAdapter(BaseAdapter):
    def __init__(
        self,
        resource: Resource,
        context: RequestContext,
        store: InMemoryStore,
        id_factory: Callable[[Document], Any] | None = None,
    ) -> None:
        super().__init__(resource, context)
        self.store = store
        self.id_factory = id_factory

    @property
    def table(self) -> str:
        return self.resource.entity

    @property
    def id_attribute(self) -> str:
        return self.resource.config.id_attribute

    # ------------------------------------------------------------------
    # Query modifiers
    # ------------------------------------------------------------------

    def query(self) -> MemoryQuery:
        return MemoryQuery(self.table)

    async def apply_filters(self, query: MemoryQuery, filters: dict[str, Any]) -> MemoryQuery:
        for name, value in filters.items():
            query = query.filter(name, value)
        return query

    async def apply_search(self, query: MemoryQuery, term: str) -> MemoryQuery:
        needle = term.lower()
        names = list(self.resource.attributes)

        def predicate(entity: Entity) -> bool:
            return any(isinstance(entity.get(name), str) and needle in entity[name].lower() for name in names)

        return query.where(predicate)

    async def apply_sorts(self, query: MemoryQuery, sorts: list[Sort]) -> MemoryQuery:
        return query.order_by(*sorts)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    def _select(self, query: MemoryQuery) -> list[Entity]:
        return query.select(self.store.rows(query.table))

    async def count(self, query: MemoryQuery) -> int:
        return len(self._select(query))

    async def find(self, query: MemoryQuery, pagination: Pagination, options: ListOptions) -> Pack:
        rows = self._select(query)
        end = None if pagination.limit is None else pagination.offset + pagination.limit
        return await self.resource.collection_pack(rows[pagination.offset : end], self.context, options)

    async def load(self, query: MemoryQuery, id_: Any) -> Entity | None:
        for entity in self._select(query):
            if str(read_value(entity, self.id_attribute)) == str(id_):
                return entity
        return None

    async def get(self, query: MemoryQuery, locator: DocumentLocator, options: ActionOptions) -> GetResponse:
        if isinstance(locator, IDLocator):
            entity = await self.load(query, locator.id)
        else:
            rows = self._select(query)
            entity = rows[0] if rows else None

        if entity is None:
            return GetResponse(Pack(None))
        return GetResponse(await self.resource.document_pack(entity, self.context, options))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _blank(self, id_: Any) -> Entity:
        entity: Entity = {self.id_attribute: id_}
        for name, relationship in self.resource.relationships.items():
            if relationship.get is None:
                entity[name] = [] if relationship.plural else None
        return entity

    def _new_id(self, document: Document) -> Any:
        if document.id is not None:
            return self.resource.parse_id(document.id)
        if self.id_factory is not None:
            return self.id_factory(document)
        return uuid.uuid4().hex

    async def create(self, query: MemoryQuery, document: Document, options: ActionOptions) -> MutationResponse:
        id_ = self._new_id(document)
        if self.store.has(self.table, id_):
            raise APIError(409, f"Resource `{self.resource.type}` with ID `{id_}` already exists")

        entity = self._blank(id_)
        await self.resource.apply_document(entity, document, self.context, create=True)
        self.store.put(self.table, id_, entity)
        logger.debug("Stored %s/%s", self.table, id_)
        return MutationResponse(await self.resource.document_pack(entity, self.context, options))

    async def _existing(self, query: MemoryQuery, document: Document) -> Entity:
        entity = await self.load(query, document.id)
        if entity is None:
            raise APIError(404, f"Resource `{self.resource.type}` with ID `{document.id}` not found")
        return entity

    async def update(self, query: MemoryQuery, document: Document, options: ActionOptions) -> MutationResponse:
        entity = await self._existing(query, document)
        await self.resource.apply_document(entity, document, self.context, create=False)
        self.store.put(self.table, entity[self.id_attribute], entity)
        return MutationResponse(await self.resource.document_pack(entity, self.context, options))

    async def replace(self, query: MemoryQuery, document: Document, options: ActionOptions) -> MutationResponse:
        existing = await self._existing(query, document)
        entity = self._blank(existing[self.id_attribute])
        await self.resource.apply_document(entity, document, self.context, create=False)
        self.store.put(self.table, entity[self.id_attribute], entity)
        return MutationResponse(await self.resource.document_pack(entity, self.context, options))

    async def delete(self, query: MemoryQuery, options: ActionOptions) -> DeleteResponse:
        rows = self._select(query)
        linkages: list[Linkage] = []
        for entity in rows:
            id_ = entity[self.id_attribute]
            self.store.remove(self.table, id_)
            linkages.append(Linkage(self.resource.type, id_))
        logger.debug("Removed %d row(s) from %s", len(rows), self.table)
        return DeleteResponse(deleted_count=len(rows), linkages=linkages)


def memory_adapter_factory(
    store: InMemoryStore,
    id_factory: Callable[[Document], Any] | None = None,
) -> Callable[[Resource, RequestContext], InMemoryAdapter]:
    """Adapter factory for :class:`ResourceRegistry` backed by one shared store."""

    def factory(resource: Resource, context: RequestContext) -> InMemoryAdapter:
        return InMemoryAdapter(resource, context, store, id_factory)

    return factory
