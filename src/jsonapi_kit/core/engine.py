"""Programmatic entry point: a registry plus action methods that run before-hooks first."""

from __future__ import annotations

from collections.abc import Callable, Iterable
from typing import Any

from jsonapi_kit.config import JSONAPISettings
from jsonapi_kit.core import actions
from jsonapi_kit.core.config import ResourceConfig
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.middleware import Middleware
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.registry import AdapterFactory, ResourceRegistry
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import (
    ActionKind,
    ActionOptions,
    BulkSelector,
    DocumentLocator,
    IDLocator,
    Linkage,
    ListOptions,
    ListParams,
)


class JSONAPI:
    def __init__(
        self,
        settings: JSONAPISettings | None = None,
        adapter_factory: AdapterFactory | None = None,
        parse_id: Callable[[Any], Any] = str,
        middleware: Iterable[Middleware] = (),
    ) -> None:
        self.registry = ResourceRegistry(
            settings=settings,
            adapter_factory=adapter_factory,
            parse_id=parse_id,
            middleware=middleware,
        )

    @property
    def settings(self) -> JSONAPISettings:
        return self.registry.settings

    def register(self, type_: str, config: ResourceConfig) -> Resource:
        return self.registry.register(type_, config)

    def context(self, action: str | ActionKind, params: dict[str, Any] | None = None, **kwargs: Any) -> RequestContext:
        name = action.value if isinstance(action, ActionKind) else action
        return RequestContext(name, params, **kwargs)

    async def _prepare(self, resource_type: str, context: RequestContext) -> Resource:
        resource = self.registry.get(resource_type)
        await resource.run_before_hooks(context)
        return resource

    # ------------------------------------------------------------------
    # CRUD
    # ------------------------------------------------------------------

    async def list(
        self,
        resource_type: str,
        params: ListParams,
        context: RequestContext,
        include: tuple[str, ...] = (),
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.list_documents(resource, context, ListOptions.from_params(params, include))

    async def show(
        self,
        resource_type: str,
        locator: DocumentLocator,
        context: RequestContext,
        options: ActionOptions | None = None,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.show_document(resource, context, locator, options or ActionOptions())

    async def create(
        self,
        resource_type: str,
        request_pack: Pack,
        context: RequestContext,
        options: ActionOptions | None = None,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.create_document(resource, context, request_pack, options or ActionOptions())

    async def update(
        self,
        resource_type: str,
        request_pack: Pack,
        context: RequestContext,
        options: ActionOptions | None = None,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        locator = IDLocator(_document_id(request_pack))
        return await actions.update_document(resource, context, locator, request_pack, options or ActionOptions())

    async def replace(
        self,
        resource_type: str,
        request_pack: Pack,
        context: RequestContext,
        options: ActionOptions | None = None,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        locator = IDLocator(_document_id(request_pack))
        return await actions.replace_document(resource, context, locator, request_pack, options or ActionOptions())

    async def delete(self, resource_type: str, request_pack: Pack, context: RequestContext) -> Pack:
        resource = await self._prepare(resource_type, context)
        selector = resource.extract_bulk_selector(request_pack, context)
        return await actions.delete_documents(resource, context, selector, ActionOptions())

    async def delete_selected(self, resource_type: str, selector: BulkSelector, context: RequestContext) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.delete_documents(resource, context, selector, ActionOptions())

    async def list_related(
        self,
        resource_type: str,
        parent_id: Any,
        relationship_name: str,
        params: ListParams,
        context: RequestContext,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        options = ListOptions.from_params(params)
        return await actions.list_related(resource, context, relationship_name, parent_id, options)

    async def show_related(
        self,
        resource_type: str,
        parent_id: Any,
        relationship_name: str,
        context: RequestContext,
        options: ActionOptions | None = None,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.show_related(resource, context, relationship_name, parent_id, options or ActionOptions())

    # ------------------------------------------------------------------
    # Custom actions
    # ------------------------------------------------------------------

    async def collection_action(self, resource_type: str, name: str, body: Any, context: RequestContext) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.run_collection_action(resource, context, name, body)

    async def document_action(
        self,
        resource_type: str,
        locator: DocumentLocator,
        name: str,
        body: Any,
        context: RequestContext,
    ) -> Pack:
        resource = await self._prepare(resource_type, context)
        return await actions.run_document_action(resource, context, name, locator, body)

    # ------------------------------------------------------------------
    # Serialization helpers
    # ------------------------------------------------------------------

    async def document_pack(
        self, resource_type: str, entity: Any, context: RequestContext, detail: bool = True
    ) -> Pack:
        resource = self.registry.get(resource_type)
        return await resource.document_pack(entity, context, ActionOptions(detail=detail))

    async def entity_to_document(self, resource_type: str, entity: Any, context: RequestContext) -> Document:
        return await self.registry.get(resource_type).entity_to_document(entity, context)

    def to_linkage(self, value: Any, resource_type: str) -> Linkage:
        return self.registry.get(resource_type).to_linkage(value, resource_type)


def _document_id(pack: Pack) -> Any:
    document = pack.document
    if document is None or document.id is None:
        raise APIError(400, "Document ID required")
    return document.id
