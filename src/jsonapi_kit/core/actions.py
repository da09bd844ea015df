"""The action pipeline: each action turns a resource, a context and its inputs into a Pack.

Actions assume the pre-action gate (see :mod:`jsonapi_kit.core.pre`) has
already run. They raise :class:`APIError` on failure and never return a
partial result.
"""

from __future__ import annotations

import logging
from typing import Any

from jsonapi_kit.core.collection import Collection
from jsonapi_kit.core.config import RelationshipConfig
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.ports.adapter import Adapter
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import (
    ActionOptions,
    BulkSelector,
    DocumentLocator,
    IDLocator,
    ListOptions,
    SingletonLocator,
)
from jsonapi_kit.core.util import maybe_await

logger = logging.getLogger(__name__)


def _require_adapter(resource: Resource, context: RequestContext, verb: str) -> Adapter:
    adapter = resource.adapter(context)
    if adapter is None:
        raise APIError(405, f"Resource `{resource.type}` cannot be {verb}")
    return adapter


def _count(pack: Pack) -> int:
    if isinstance(pack.data, Collection):
        return len(pack.data)
    return 0 if pack.data is None else 1


# ---------------------------------------------------------------------------
# Retrieval
# ---------------------------------------------------------------------------


async def list_documents(resource: Resource, context: RequestContext, options: ListOptions) -> Pack:
    adapter = _require_adapter(resource, context, "listed")

    query = await resource.query(adapter, context, options.label)
    grand_total = await adapter.count(query) if resource.totals else None
    if options.filters:
        query = await resource.apply_filters(adapter, query, options.filters, context)
    if options.search is not None:
        query = await resource.apply_search(adapter, query, options.search, context)
    if options.sorts:
        query = await resource.apply_sorts(adapter, query, options.sorts, context)

    pagination = resource.pagination_params(options.pagination)
    pack = await adapter.find(query, pagination, options)
    pack.meta.update(await resource.get_pack_meta(context))

    # searchTotal is only recounted when a search term is given; filters alone
    # leave it equal to the unfiltered total.
    pack.meta["total"] = grand_total
    if not resource.totals or options.search is None:
        pack.meta["searchTotal"] = grand_total
    else:
        pack.meta["searchTotal"] = await adapter.count(query)

    pack.meta["offset"] = pagination.offset
    pack.meta["limit"] = pagination.limit
    pack.meta["count"] = _count(pack)
    return pack


async def show_document(
    resource: Resource, context: RequestContext, locator: DocumentLocator, options: ActionOptions
) -> Pack:
    adapter = _require_adapter(resource, context, "shown")

    query = await resource.query(adapter, context, options.label)
    if isinstance(locator, SingletonLocator):
        query = await resource.apply_singleton(query, locator.singleton, context)

    response = await adapter.get(query, locator, options)
    if response.pack.data is None:
        if isinstance(locator, SingletonLocator):
            raise APIError(404, f"Singleton `{locator.singleton}` (of {resource.type}) not found")
        raise APIError(404, f"Resource `{resource.type}` with ID `{locator.id}` not found")

    pack = response.pack
    pack.meta.update(await resource.get_pack_meta(context))
    return pack


# ---------------------------------------------------------------------------
# Mutation
# ---------------------------------------------------------------------------


async def create_document(
    resource: Resource, context: RequestContext, request_pack: Pack, options: ActionOptions
) -> Pack:
    document = resource.extract_request_document(request_pack, None)
    resource.validate_writable(document, create=True)
    adapter = _require_adapter(resource, context, "created")

    query = await resource.query(adapter, context, options.label)
    response = await adapter.create(query, document, options)
    logger.debug("Created %s document", resource.type)
    return response.pack


async def update_document(
    resource: Resource, context: RequestContext, locator: IDLocator, request_pack: Pack, options: ActionOptions
) -> Pack:
    document = resource.extract_request_document(request_pack, locator.id)
    resource.validate_writable(document, create=False)
    adapter = _require_adapter(resource, context, "updated")

    query = await resource.query(adapter, context, options.label)
    response = await adapter.update(query, document, options)
    return response.pack


async def replace_document(
    resource: Resource, context: RequestContext, locator: IDLocator, request_pack: Pack, options: ActionOptions
) -> Pack:
    document = resource.extract_request_document(request_pack, locator.id)
    resource.validate_writable(document, create=False)
    adapter = _require_adapter(resource, context, "replaced")

    query = await resource.query(adapter, context, options.label)
    response = await adapter.replace(query, document, options)
    return response.pack


async def delete_documents(
    resource: Resource, context: RequestContext, selector: BulkSelector, options: ActionOptions
) -> Pack:
    adapter = _require_adapter(resource, context, "deleted")

    query = await resource.query(adapter, context, options.label)
    query = await resource.apply_bulk_selector(adapter, query, selector, context)
    response = await adapter.delete(query, options)
    logger.debug("Deleted %d %s", response.deleted_count, resource.type)

    return Pack(list(response.linkages), meta={"deletedCount": response.deleted_count})


# ---------------------------------------------------------------------------
# Relationships
# ---------------------------------------------------------------------------


def _related(resource: Resource, relationship_name: str) -> tuple[RelationshipConfig, Resource]:
    relationship = resource.relationship(relationship_name)
    if relationship is None:
        raise APIError(404, f"Relationship `{relationship_name}` not found")
    if relationship.polymorphic:
        raise APIError(409, "This action is unavailable for polymorphic relationships")
    if not resource.registry.has(relationship.type):
        raise APIError(404, f"Related resource `{relationship.type}` was not found")
    return relationship, resource.registry.get(relationship.type)


async def list_related(
    resource: Resource, context: RequestContext, relationship_name: str, parent_id: Any, options: ListOptions
) -> Pack:
    _, related = _related(resource, relationship_name)
    adapter = _require_adapter(related, context, "listed")

    query = await adapter.related_query(resource, relationship_name, parent_id)
    query = await related.apply_scope(query, context)
    if options.filters:
        query = await related.apply_filters(adapter, query, options.filters, context)
    if options.sorts:
        query = await related.apply_sorts(adapter, query, options.sorts, context)

    pagination = related.pagination_params(options.pagination)
    pack = await adapter.find(query, pagination, options)
    pack.meta["total"] = await adapter.count(query)
    pack.meta["offset"] = pagination.offset
    pack.meta["limit"] = pagination.limit
    pack.meta["count"] = _count(pack)
    return pack


async def show_related(
    resource: Resource, context: RequestContext, relationship_name: str, parent_id: Any, options: ActionOptions
) -> Pack:
    _related(resource, relationship_name)
    adapter = _require_adapter(resource, context, "shown")

    query = await resource.query(adapter, context, options.label)
    response = await adapter.get_related(query, relationship_name, parent_id, options)
    return response.pack


# ---------------------------------------------------------------------------
# Custom actions
# ---------------------------------------------------------------------------


async def run_collection_action(resource: Resource, context: RequestContext, name: str, body: Any) -> Pack:
    action = next((action for action in resource.config.collection_actions if action.name == name), None)
    if action is None:
        raise APIError(404, f"Collection action `{resource.type}::{name}` not found")
    return await maybe_await(action.handler(resource, context, body))


async def run_document_action(
    resource: Resource, context: RequestContext, name: str, locator: DocumentLocator, body: Any
) -> Pack:
    action = next((action for action in resource.config.document_actions if action.name == name), None)
    if action is None:
        raise APIError(404, f"Document action `{resource.type}::{name}` not found")
    return await maybe_await(action.handler(resource, context, locator, body))
