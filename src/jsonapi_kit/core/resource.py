from __future__ import annotations

import logging
from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import TYPE_CHECKING, Any

from jsonapi_kit.config import JSONAPISettings
from jsonapi_kit.core.collection import Collection
from jsonapi_kit.core.config import AttributeConfig, RelationshipConfig, ResourceConfig
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.include import IncludeCollector
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.types import (
    ActionOptions,
    BulkSelector,
    DocumentLocator,
    IDLocator,
    Linkage,
    ListParams,
    Pagination,
    SingletonLocator,
    Sort,
    is_linkage,
    is_relationship,
)
from jsonapi_kit.core.util import maybe_await

if TYPE_CHECKING:
    from jsonapi_kit.core.context import RequestContext
    from jsonapi_kit.core.ports.adapter import Adapter
    from jsonapi_kit.core.registry import ResourceRegistry

logger = logging.getLogger(__name__)

RelationshipWriter = Callable[[Any, str, RelationshipConfig, Any], Awaitable[None]]

_PRIMITIVES = (str, int, float, bool, bytes)


def read_value(entity: Any, name: str) -> Any:
    if isinstance(entity, Mapping):
        return entity.get(name)
    return getattr(entity, name, None)


def write_value(entity: Any, name: str, value: Any) -> None:
    if isinstance(entity, dict):
        entity[name] = value
    else:
        setattr(entity, name, value)


class Resource:
    """A registered resource type: its configuration plus everything the actions need from it.

    Query building, request extraction and entity <-> document conversion all
    live here, so that adapters only deal with storage primitives.
    """

    def __init__(self, registry: ResourceRegistry, type_: str, config: ResourceConfig) -> None:
        self.registry = registry
        self.type = type_
        self.config = config
        self.attributes: dict[str, AttributeConfig] = {
            name: attribute if isinstance(attribute, AttributeConfig) else AttributeConfig()
            for name, attribute in config.attributes.items()
            if attribute is not False
        }
        self.relationships: dict[str, RelationshipConfig] = dict(config.relationships)

    def __repr__(self) -> str:
        return f"Resource({self.type!r})"

    # ------------------------------------------------------------------
    # Naming & settings
    # ------------------------------------------------------------------

    @property
    def plural(self) -> str:
        return self.config.plural or self.type

    @property
    def entity(self) -> str:
        return self.config.entity or self.type

    @property
    def settings(self) -> JSONAPISettings:
        return self.registry.settings

    @property
    def read_only(self) -> bool:
        return self.config.read_only

    @property
    def totals(self) -> bool:
        return self.config.totals

    @property
    def label_names(self) -> list[str]:
        return list(self.config.labels)

    @property
    def singleton_names(self) -> list[str]:
        return list(self.config.singletons)

    def relationship(self, name: str) -> RelationshipConfig | None:
        return self.relationships.get(name)

    def _attribute_config(self, name: str) -> AttributeConfig:
        attribute = self.attributes.get(name)
        if attribute is None:
            raise APIError(403, f'Attribute "{name}" not found on resource `{self.type}`')
        return attribute

    def _relationship_config(self, name: str) -> RelationshipConfig:
        relationship = self.relationships.get(name)
        if relationship is None:
            raise APIError(403, f'Relationship "{name}" not found on resource `{self.type}`')
        return relationship

    def parse_id(self, raw: Any) -> Any:
        try:
            return self.registry.parse_id(raw)
        except (TypeError, ValueError) as exc:
            raise APIError(400, f"Invalid ID `{raw}` for resource `{self.type}`") from exc

    # ------------------------------------------------------------------
    # Adapter & hooks
    # ------------------------------------------------------------------

    def adapter(self, context: RequestContext) -> Adapter | None:
        return self.registry.adapter_for(self, context)

    async def run_before_hooks(self, context: RequestContext) -> None:
        for hook in self.config.before:
            await maybe_await(hook(context))

    # ------------------------------------------------------------------
    # Queries
    # ------------------------------------------------------------------

    async def query(self, adapter: Adapter, context: RequestContext, label: str | None = None) -> Any:
        """Base query for this resource: adapter query, query defaults, scope and label."""
        query = adapter.query()
        query = await self.apply_query_defaults(query, context)
        query = await self.apply_scope(query, context)
        if label is not None:
            query = await self.apply_label(query, label, context)
        return query

    async def apply_query_defaults(self, query: Any, context: RequestContext) -> Any:
        if self.config.query is None:
            return query
        return await maybe_await(self.config.query(query, context))

    async def apply_scope(self, query: Any, context: RequestContext) -> Any:
        if self.config.scope is None:
            return query
        return await maybe_await(self.config.scope.query(query, context))

    async def apply_label(self, query: Any, label: str, context: RequestContext) -> Any:
        modifier = self.config.labels.get(label)
        if modifier is None:
            raise APIError(404, f"Label `{label}` not found")
        return await maybe_await(modifier(query, context))

    async def apply_singleton(self, query: Any, singleton: str, context: RequestContext) -> Any:
        modifier = self.config.singletons.get(singleton)
        if modifier is None:
            raise APIError(404, f"Singleton `{singleton}` (of {self.type}) not found")
        return await maybe_await(modifier(query, context))

    async def apply_filters(
        self, adapter: Adapter, query: Any, filters: Mapping[str, Any], context: RequestContext
    ) -> Any:
        for name, value in filters.items():
            modifier = self.config.filters.get(name)
            if modifier is not None:
                query = await maybe_await(modifier(query, value, context))
            else:
                query = await adapter.apply_filters(query, {name: value})
        return query

    async def apply_search(self, adapter: Adapter, query: Any, term: str, context: RequestContext) -> Any:
        if self.config.search is not None:
            return await maybe_await(self.config.search(query, term, context))
        return await adapter.apply_search(query, term)

    async def apply_sorts(self, adapter: Adapter, query: Any, sorts: Iterable[Sort], context: RequestContext) -> Any:
        sorts = list(sorts)
        plain = [sort for sort in sorts if sort.field not in self.config.sorts]
        if plain:
            query = await adapter.apply_sorts(query, plain)
        for sort in sorts:
            modifier = self.config.sorts.get(sort.field)
            if modifier is not None:
                query = await maybe_await(modifier(query, sort.direction, context))
        return query

    async def apply_bulk_selector(
        self, adapter: Adapter, query: Any, selector: BulkSelector, context: RequestContext
    ) -> Any:
        if selector.filters:
            query = await self.apply_filters(adapter, query, selector.filters, context)
        if selector.search is not None:
            query = await self.apply_search(adapter, query, selector.search, context)
        if selector.ids is not None:
            query = await adapter.apply_filters(query, {self.config.id_attribute: list(selector.ids)})
        return query

    def pagination_params(self, pagination: Pagination | None) -> Pagination:
        pagination = pagination or Pagination()
        limit = pagination.limit
        if limit is None and self.config.force_pagination:
            limit = self.config.page_size or self.settings.default_page_size

        max_page_size = self.settings.max_page_size
        if max_page_size is not None:
            limit = max_page_size if limit is None else min(limit, max_page_size)

        return Pagination(offset=pagination.offset, limit=limit)

    # ------------------------------------------------------------------
    # Attributes & relationships
    # ------------------------------------------------------------------

    async def available(
        self, config: AttributeConfig | RelationshipConfig, entity: Any, detail: bool, context: RequestContext
    ) -> bool:
        if config.detail and not detail:
            return False
        if config.when is None:
            return True
        return bool(await maybe_await(config.when(entity, context)))

    async def writable(
        self,
        config: AttributeConfig | RelationshipConfig,
        entity: Any,
        create: bool,
        context: RequestContext,
    ) -> bool:
        if callable(config.writable):
            return bool(await maybe_await(config.writable(entity, context)))
        return _static_writable(config, create)

    def validate_writable(self, document: Document, create: bool) -> None:
        """Reject writes to statically non-writable fields before touching storage."""
        for name in document.attributes:
            attribute = self._attribute_config(name)
            if not callable(attribute.writable) and not _static_writable(attribute, create):
                raise APIError(403, f'Attribute "{name}" is not writable')
        for name in document.relationships:
            relationship = self._relationship_config(name)
            if not callable(relationship.writable) and not _static_writable(relationship, create):
                raise APIError(403, f'Relationship "{name}" is not writable')

    async def get_attributes(self, entity: Any, detail: bool, context: RequestContext) -> dict[str, Any]:
        attributes: dict[str, Any] = {}
        for name, attribute in self.attributes.items():
            if not await self.available(attribute, entity, detail, context):
                continue
            if not attribute.readable:
                continue
            if attribute.get is not None:
                attributes[name] = await maybe_await(attribute.get(entity, context))
            else:
                attributes[name] = read_value(entity, name)
        return attributes

    async def get_relationships(self, entity: Any, detail: bool, context: RequestContext) -> dict[str, dict[str, Any]]:
        relationships: dict[str, dict[str, Any]] = {}
        for name, relationship in self.relationships.items():
            if not await self.available(relationship, entity, detail, context):
                continue
            relationships[name] = await self.get_relationship(entity, name, context)
        return relationships

    async def get_relationship(self, entity: Any, name: str, context: RequestContext) -> dict[str, Any]:
        """Read relationship ``name`` of ``entity`` as a wire-shaped relationship object."""
        relationship = self.relationships[name]
        if relationship.get is not None:
            value = await maybe_await(relationship.get(entity, context))
        else:
            value = read_value(entity, name)

        if is_relationship(value):
            data = value["data"]
            coerced = dict(value)
            if isinstance(data, list):
                coerced["data"] = [self._linkage(name, relationship, item).serialize() for item in data]
            elif data is not None:
                coerced["data"] = self._linkage(name, relationship, data).serialize()
            return coerced

        if relationship.plural:
            if value is None:
                return {"data": []}
            if isinstance(value, Mapping | str | bytes) or not isinstance(value, Iterable):
                raise APIError(500, f'Relationship "{name}" is plural, but does not yield an array')
            return {"data": [self._linkage(name, relationship, item).serialize() for item in value]}

        if isinstance(value, list | tuple):
            raise APIError(500, f'Relationship "{name}" is singular, but yields an array')
        if value is None:
            return {"data": None}
        return {"data": self._linkage(name, relationship, value).serialize()}

    def _linkage(self, name: str, relationship: RelationshipConfig, value: Any) -> Linkage:
        bare = isinstance(value, _PRIMITIVES) or (isinstance(value, Mapping) and "type" not in value)
        if relationship.polymorphic and bare:
            raise APIError(500, f'Relationship "{name}" is polymorphic but yields at least one bare ID')
        return self.to_linkage(value, relationship.type)

    def to_linkage(self, value: Any, type_: str | None = None) -> Linkage:
        """Coerce a linkage, a linkage-shaped mapping, an entity or a bare ID into a :class:`Linkage`."""
        if isinstance(value, Linkage):
            return value
        if is_linkage(value):
            return Linkage.from_raw(value)
        if isinstance(value, Mapping):
            if type_ is None:
                raise APIError(500, "Cannot determine linkage type for a mapping without `type`")
            return Linkage(type_, value.get("id"))
        if not isinstance(value, _PRIMITIVES) and hasattr(value, "id"):
            if type_ is None:
                type_ = self.registry.resource_for_entity(type(value).__name__).type
            return Linkage(type_, value.id)
        if type_ is None:
            raise APIError(500, f"Cannot determine linkage type for ID `{value}`")
        return Linkage(type_, value)

    # ------------------------------------------------------------------
    # Entity -> document
    # ------------------------------------------------------------------

    async def entity_to_document(self, entity: Any, context: RequestContext, detail: bool = True) -> Document:
        id_ = read_value(entity, self.config.id_attribute)
        attributes = await self.get_attributes(entity, detail, context)
        relationships = await self.get_relationships(entity, detail, context)
        meta = await self.get_document_meta(entity, context)
        return Document(self.type, id_, attributes, relationships, meta=meta)

    async def entities_to_collection(
        self, entities: Iterable[Any], context: RequestContext, detail: bool = False
    ) -> Collection:
        collection = Collection()
        for entity in entities:
            collection.add(await self.entity_to_document(entity, context, detail=detail))
        return collection

    async def collection_pack(self, entities: Iterable[Any], context: RequestContext, options: ActionOptions) -> Pack:
        collection = await self.entities_to_collection(entities, context, detail=options.detail)
        included = await self.resolve_included(list(collection), context, options)
        return Pack(collection, included)

    async def document_pack(self, entity: Any, context: RequestContext, options: ActionOptions) -> Pack:
        document = await self.entity_to_document(entity, context, detail=options.detail)
        included = await self.resolve_included([document], context, options)
        return Pack(document, included)

    async def resolve_included(
        self, base: list[Document], context: RequestContext, options: ActionOptions
    ) -> Collection:
        include = list(options.include)
        if options.auto_include:
            include.extend(name for name in self.auto_includes(options.detail) if name not in include)
        if not include:
            return Collection()

        collector = IncludeCollector(self.registry, context)
        return Collection(await collector.collect(base, include))

    def auto_includes(self, detail: bool) -> list[str]:
        includes: list[str] = []
        for name, relationship in self._own_auto_includes(detail):
            self._collect_auto_includes(includes, name, relationship, detail, {self.type}, None)
        return includes

    def _own_auto_includes(self, detail: bool) -> list[tuple[str, RelationshipConfig]]:
        return [
            (name, relationship)
            for name, relationship in self.relationships.items()
            if relationship.include and (detail or not relationship.detail)
        ]

    def _collect_auto_includes(
        self,
        includes: list[str],
        name: str,
        relationship: RelationshipConfig,
        detail: bool,
        processed: set[str],
        prefix: str | None,
    ) -> None:
        path = name if prefix is None else f"{prefix}.{name}"
        if relationship.type is None or not self.registry.has(relationship.type):
            return
        # Stop at resources already visited to prevent include loops.
        if relationship.type in processed:
            return
        processed.add(relationship.type)

        includes.append(path)
        nested = self.registry.get(relationship.type)
        for nested_name, nested_relationship in nested._own_auto_includes(detail):
            nested._collect_auto_includes(includes, nested_name, nested_relationship, detail, processed, path)

    # ------------------------------------------------------------------
    # Meta
    # ------------------------------------------------------------------

    async def get_pack_meta(self, context: RequestContext, entity: Any = None) -> dict[str, Any]:
        meta = self.config.meta
        if meta is None:
            return {}
        if callable(meta):
            return dict(await maybe_await(meta(entity, context)) or {})
        return dict(meta)

    async def get_document_meta(self, entity: Any, context: RequestContext) -> dict[str, Any]:
        if self.config.document_meta is None:
            return {}
        return dict(await maybe_await(self.config.document_meta(entity, context)) or {})

    # ------------------------------------------------------------------
    # Document -> entity
    # ------------------------------------------------------------------

    async def apply_document(
        self,
        entity: Any,
        document: Document,
        context: RequestContext,
        create: bool,
        relationship_writer: RelationshipWriter | None = None,
    ) -> Any:
        """Write the attributes and relationships of ``document`` onto ``entity``."""
        for name, value in document.attributes.items():
            attribute = self._attribute_config(name)
            if not await self.available(attribute, entity, True, context):
                raise APIError(403, f'Attribute "{name}" is not available')
            if not await self.writable(attribute, entity, create, context):
                raise APIError(403, f'Attribute "{name}" is not writable')

            if attribute.set is not None:
                await maybe_await(attribute.set(entity, value, context))
            else:
                write_value(entity, name, value)

        for name, raw in document.relationships.items():
            relationship = self._relationship_config(name)
            if not await self.available(relationship, entity, True, context):
                raise APIError(403, f'Relationship "{name}" is not available')
            if not await self.writable(relationship, entity, create, context):
                raise APIError(403, f'Relationship "{name}" is not writable')

            value = self._relationship_input(name, relationship, raw["data"])
            if relationship.set is not None:
                await maybe_await(relationship.set(entity, value, context))
            elif relationship_writer is not None:
                await relationship_writer(entity, name, relationship, value)
            else:
                write_value(entity, name, value)

        if self.config.scope is not None and self.config.scope.ensure is not None:
            await maybe_await(self.config.scope.ensure(entity, context))

        return entity

    def _relationship_input(self, name: str, relationship: RelationshipConfig, data: Any) -> Any:
        """Turn incoming relationship data into stored IDs (or linkage dicts for polymorphic relationships)."""

        def convert(item: Any) -> Any:
            linkage = Linkage.from_raw(item)
            if relationship.polymorphic:
                return linkage.serialize()
            if linkage.type != relationship.type:
                raise APIError(409, f'Relationship "{name}" expects linkages of type `{relationship.type}`')
            return self.registry.get(relationship.type).parse_id(linkage.id)

        if relationship.plural:
            if not isinstance(data, list):
                raise APIError(400, f'Relationship "{name}" is plural and requires an array')
            return [convert(item) for item in data]

        if isinstance(data, list):
            raise APIError(400, f'Relationship "{name}" is singular and does not accept an array')
        return None if data is None else convert(data)

    # ------------------------------------------------------------------
    # Request extraction
    # ------------------------------------------------------------------

    def extract_list_params(self, context: RequestContext) -> ListParams:
        return ListParams(
            label=context.param("label", str | None),
            filters=self.extract_filters(context),
            search=self.extract_search(context),
            sorts=self.extract_sorts(context),
            pagination=self.extract_pagination(context),
        )

    def extract_filters(self, context: RequestContext) -> dict[str, Any]:
        return context.param("filter", dict[str, Any], default={})

    def extract_search(self, context: RequestContext) -> str | None:
        return context.param("search", str | None)

    def extract_sorts(self, context: RequestContext) -> tuple[Sort, ...]:
        raw = context.param("sort", str | None)
        if not raw:
            return ()

        sorts: list[Sort] = []
        seen: set[str] = set()
        for part in raw.split(","):
            part = part.strip()
            descending = part.startswith("-")
            field = part[1:] if descending else part
            if not field:
                raise APIError(400, f"Invalid sort `{raw}`")
            # The first occurrence of a field determines its direction and precedence.
            if field in seen:
                continue
            seen.add(field)
            sorts.append(Sort(field, -1 if descending else 1))
        return tuple(sorts)

    def extract_pagination(self, context: RequestContext) -> Pagination:
        page = context.param("page", dict[str, Any], default={})
        offset = context.param("offset", int | None)
        limit = context.param("limit", int | None)

        if offset is None and "offset" in page:
            offset = _page_int(page, "offset")
        if limit is None and "limit" in page:
            limit = _page_int(page, "limit")

        offset = 0 if offset is None else offset
        if offset < 0:
            raise APIError(400, "Parameter \"offset\" must not be negative")
        if limit is not None and limit < 0:
            raise APIError(400, "Parameter \"limit\" must not be negative")
        return Pagination(offset=offset, limit=limit)

    def extract_include(self, context: RequestContext) -> tuple[str, ...]:
        raw = context.param("include", str | None)
        if not raw:
            return ()

        paths = tuple(path.strip() for path in raw.split(",") if path.strip())
        for path in paths:
            self._validate_include_path(path)
        return paths

    def _validate_include_path(self, path: str) -> None:
        resource: Resource | None = self
        for segment in path.split("."):
            if resource is None:
                # Past a polymorphic relationship the target type is unknown.
                return
            relationship = resource.relationship(segment)
            if relationship is None:
                raise APIError(400, f"Invalid include path `{path}`")
            if relationship.type is None or not self.registry.has(relationship.type):
                resource = None
            else:
                resource = self.registry.get(relationship.type)

    def extract_document_locator(self, context: RequestContext, singleton: bool = True) -> DocumentLocator:
        id_ = context.param("id", str)
        if singleton and id_ in self.config.singletons:
            return SingletonLocator(id_)
        return IDLocator(self.parse_id(id_))

    def extract_request_document(self, pack: Pack, endpoint_id: Any = None) -> Document:
        document = pack.data
        if document is None:
            raise APIError(400, "No document sent")
        if not isinstance(document, Document):
            raise APIError(400, "Expected a single document")
        if endpoint_id is not None and document.id is None:
            raise APIError(400, "Document ID required")
        if endpoint_id is not None and str(document.id) != str(endpoint_id):
            raise APIError(409, "Document ID does not match endpoint ID")
        if document.type != self.type:
            raise APIError(409, "Document type does not match endpoint type")
        if endpoint_id is None and document.id is not None and not self.config.allow_client_ids:
            raise APIError(403, f"Client-generated IDs are not supported for resource `{self.type}`")
        return document

    def extract_bulk_selector(self, pack: Pack, context: RequestContext) -> BulkSelector:
        if context.param("id", str | None) is not None:
            locator = self.extract_document_locator(context, singleton=False)
            return BulkSelector(ids=(locator.id,))

        data = pack.data
        filters = pack.meta.get("filters")
        search = pack.meta.get("search")

        if data is not None and (filters is not None or search is not None):
            raise APIError(400, "Mix of explicit linkages and filters/search specified")

        if data is not None:
            if not isinstance(data, Collection):
                raise APIError(400, "Array of linkages expected")
            return BulkSelector(ids=tuple(self._bulk_selector_id(document) for document in data))

        if filters is not None and not isinstance(filters, Mapping):
            raise APIError(400, "Node `meta.filters`: must be an object")
        if search is not None and not isinstance(search, str):
            raise APIError(400, "Node `meta.search`: must be a string")

        selector = BulkSelector(filters=dict(filters) if filters is not None else None, search=search)
        if selector.empty:
            raise APIError(400, "No linkages, filters or search given")
        return selector

    def _bulk_selector_id(self, document: Document) -> Any:
        if document.type != self.type:
            raise APIError(409, "Linkage type does not match endpoint type")
        if document.id is None:
            raise APIError(400, "ID required in linkage")
        return self.parse_id(document.id)


def _static_writable(config: AttributeConfig | RelationshipConfig, create: bool) -> bool:
    if config.writable is None:
        return not (config.get is not None and config.set is None)
    if config.writable == "create":
        return create
    return bool(config.writable)


def _page_int(page: Mapping[str, Any], key: str) -> int:
    try:
        return int(page[key])
    except (TypeError, ValueError) as exc:
        raise APIError(400, f'Parameter "page[{key}]" must be an integer') from exc
