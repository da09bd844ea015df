"""Route table and HTTP wiring for every registered resource.

Each route runs the same sequence: build a :class:`RequestContext` from path
and query parameters, run the pre-action gate, run the action, render the
resulting Pack with the negotiated media type. Errors leave through
:func:`jsonapi_kit.api.errors.error_response`.
"""

from __future__ import annotations

import json
import logging
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from functools import partial
from typing import Any

from fastapi import APIRouter, Request, Response
from fastapi.encoders import jsonable_encoder
from fastapi.responses import JSONResponse

from jsonapi_kit.api.errors import error_response
from jsonapi_kit.api.params import parse_query_params
from jsonapi_kit.core import actions
from jsonapi_kit.core.config import CollectionAction, CustomAction, DocumentAction
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.pre import RequestInfo, pre_action
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import ActionKind, ActionOptions, IDLocator, ListOptions

logger = logging.getLogger(__name__)

Handler = Callable[[Resource, RequestContext, RequestInfo], Awaitable[Pack]]


@dataclass(frozen=True)
class Route:
    method: str
    path: str
    resource: str
    action: str
    handler: Handler
    status_code: int = 200
    custom: CustomAction | None = None
    params: dict[str, Any] = field(default_factory=dict)

    @property
    def name(self) -> str:
        return f"{self.resource}:{self.action}:{self.method.lower()}:{self.path}"


# ---------------------------------------------------------------------------
# Action handlers
# ---------------------------------------------------------------------------


async def _list(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    params = resource.extract_list_params(context)
    options = ListOptions.from_params(params, resource.extract_include(context))
    return await actions.list_documents(resource, context, options)


async def _show(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    locator = resource.extract_document_locator(context)
    options = ActionOptions(include=resource.extract_include(context))
    return await actions.show_document(resource, context, locator, options)


async def _create(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    pack = Pack.deserialize(resource.registry, request.body)
    return await actions.create_document(resource, context, pack, ActionOptions())


def _id_locator(resource: Resource, context: RequestContext) -> IDLocator:
    locator = resource.extract_document_locator(context, singleton=False)
    assert isinstance(locator, IDLocator)
    return locator


async def _update(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    locator = _id_locator(resource, context)
    pack = Pack.deserialize(resource.registry, request.body)
    return await actions.update_document(resource, context, locator, pack, ActionOptions())


async def _replace(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    locator = _id_locator(resource, context)
    pack = Pack.deserialize(resource.registry, request.body)
    return await actions.replace_document(resource, context, locator, pack, ActionOptions())


async def _delete(resource: Resource, context: RequestContext, request: RequestInfo) -> Pack:
    pack = Pack.deserialize(resource.registry, request.body) if request.body is not None else Pack.empty()
    selector = resource.extract_bulk_selector(pack, context)
    return await actions.delete_documents(resource, context, selector, ActionOptions())


async def _list_related(
    resource: Resource, context: RequestContext, request: RequestInfo, relationship: str
) -> Pack:
    parent_id = resource.parse_id(context.param("id", str))
    options = ListOptions.from_params(resource.extract_list_params(context))
    return await actions.list_related(resource, context, relationship, parent_id, options)


async def _show_related(
    resource: Resource, context: RequestContext, request: RequestInfo, relationship: str
) -> Pack:
    parent_id = resource.parse_id(context.param("id", str))
    return await actions.show_related(resource, context, relationship, parent_id, ActionOptions())


def _action_body(resource: Resource, request: RequestInfo, action: CustomAction) -> Any:
    if not action.deserialize:
        return request.body
    # Bodies that do not look like a pack reach the handler as opaque data.
    return Pack.try_deserialize(resource.registry, request.body) or Pack(request.body)


async def _collection_action(
    resource: Resource, context: RequestContext, request: RequestInfo, action: CollectionAction
) -> Pack:
    body = _action_body(resource, request, action)
    return await actions.run_collection_action(resource, context, action.name, body)


async def _document_action(
    resource: Resource, context: RequestContext, request: RequestInfo, action: DocumentAction
) -> Pack:
    locator = resource.extract_document_locator(context)
    body = _action_body(resource, request, action)
    return await actions.run_document_action(resource, context, action.name, locator, body)


# ---------------------------------------------------------------------------
# Route table
# ---------------------------------------------------------------------------


def resource_routes(resource: Resource) -> list[Route]:
    """All routes of one resource, most specific first."""
    base = f"/{resource.plural}"
    document = f"{base}/-/{{id}}"
    routes: list[Route] = []

    for action in resource.config.collection_actions:
        handler = partial(_collection_action, action=action)
        routes.append(
            Route(action.method.upper(), f"{base}/{action.path}", resource.type, action.name, handler, custom=action)
        )
    for action in resource.config.document_actions:
        handler = partial(_document_action, action=action)
        path = f"{document}/{action.path}"
        routes.append(Route(action.method.upper(), path, resource.type, action.name, handler, custom=action))

    routes.append(Route("GET", base, resource.type, ActionKind.LIST.value, _list))
    routes.append(Route("POST", base, resource.type, ActionKind.CREATE.value, _create, status_code=201))
    routes.append(Route("DELETE", base, resource.type, ActionKind.DELETE.value, _delete))
    if resource.label_names:
        routes.append(Route("GET", f"{base}/{{label}}", resource.type, ActionKind.LIST.value, _list))

    for name, relationship in resource.relationships.items():
        if relationship.plural:
            kind, handler = ActionKind.LIST_RELATED, partial(_list_related, relationship=name)
        else:
            kind, handler = ActionKind.SHOW_RELATED, partial(_show_related, relationship=name)
        routes.append(
            Route("GET", f"{document}/{name}", resource.type, kind.value, handler, params={"relationship": name})
        )

    routes.append(Route("GET", document, resource.type, ActionKind.SHOW.value, _show))
    routes.append(Route("PATCH", document, resource.type, ActionKind.UPDATE.value, _update))
    routes.append(Route("PUT", document, resource.type, ActionKind.REPLACE.value, _replace))
    routes.append(Route("DELETE", document, resource.type, ActionKind.DELETE.value, _delete))
    return routes


def iter_routes(jsonapi: JSONAPI) -> list[Route]:
    routes: list[Route] = []
    for resource in jsonapi.registry.all():
        routes.extend(resource_routes(resource))
    return routes


# ---------------------------------------------------------------------------
# HTTP endpoints
# ---------------------------------------------------------------------------


def decode_json_body(raw: bytes) -> Any:
    if not raw.strip():
        return None
    try:
        return json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as exc:
        raise APIError(400, f"Malformed JSON body: {exc}") from exc


def request_context(jsonapi: JSONAPI, route: Route, request: Request) -> RequestContext:
    params = parse_query_params(request.query_params.multi_items())
    params.update(request.path_params)
    params.update(route.params)
    return jsonapi.context(
        route.action,
        params,
        request_uri=str(request.url),
        dependencies={"request": request, "jsonapi": jsonapi},
    )


def _endpoint(jsonapi: JSONAPI, route: Route) -> Callable[[Request], Awaitable[Response]]:
    async def endpoint(request: Request) -> Response:
        try:
            resource = jsonapi.registry.get(route.resource)
            raw = await request.body()
            malformed: APIError | None = None
            try:
                body = decode_json_body(raw)
            except APIError as exc:
                # Still a body for the gate; reported only after the content type has been checked.
                body, malformed = raw, exc
            info = RequestInfo(
                method=request.method,
                headers={key.lower(): value for key, value in request.headers.items()},
                body=body,
                path_params={**request.path_params, **route.params},
            )
            context = request_context(jsonapi, route, request)
            content_type = await pre_action(resource, info, context, jsonapi.settings, route.custom)
            if malformed is not None:
                raise malformed
            pack = await route.handler(resource, context, info)
        except Exception as exc:
            return error_response(exc, jsonapi.settings.debug)

        return JSONResponse(
            jsonable_encoder(pack.serialize()),
            status_code=route.status_code,
            media_type=content_type,
        )

    return endpoint


def build_router(jsonapi: JSONAPI) -> APIRouter:
    router = APIRouter()
    for route in iter_routes(jsonapi):
        router.add_api_route(
            route.path,
            _endpoint(jsonapi, route),
            methods=[route.method],
            name=route.name,
            response_model=None,
            tags=[route.resource],
        )
        logger.debug("Mounted %s %s -> %s", route.method, route.path, route.action)
    return router
