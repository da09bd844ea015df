"""The pre-action gate.

Checks run once per request, before any adapter call, in this order: request
method, body presence, read-only operation, content negotiation, before-hooks.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from jsonapi_kit.config import JSONAPISettings
from jsonapi_kit.core.config import CustomAction
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import JSONAPI_MEDIA_TYPE, SUPPORTED_MEDIA_TYPES, Operation, operation_for_action

ALLOWED_METHODS = frozenset({"get", "post", "put", "patch", "delete"})


@dataclass(frozen=True)
class RequestInfo:
    """Transport-independent view of an incoming request.

    ``headers`` keys are expected in lower case; ``body`` is the parsed JSON
    body, the raw bytes when they are not valid JSON, or ``None`` when the
    request carried none.
    """

    method: str
    headers: Mapping[str, str] = field(default_factory=dict)
    body: Any = None
    path_params: Mapping[str, Any] = field(default_factory=dict)

    def header(self, name: str) -> str | None:
        return self.headers.get(name.lower())


def validate_request_method(request: RequestInfo) -> None:
    if request.method.lower() not in ALLOWED_METHODS:
        raise APIError(405, "Invalid request method")


def body_present(request: RequestInfo) -> bool:
    body = request.body
    if body is None:
        return False
    if isinstance(body, Mapping | list | str | bytes) and len(body) == 0:
        return False
    return True


def needs_body(request: RequestInfo, custom: CustomAction | None = None) -> bool | None:
    """Whether the request needs a body: ``True``, ``False``, or ``None`` when optional."""
    method = request.method.lower()
    if custom is not None:
        return False if method == "get" else None
    if method in ("post", "patch", "put"):
        return True
    if method == "delete":
        return request.path_params.get("relationship") is not None or request.path_params.get("id") is None
    return False


def validate_request_body(request: RequestInfo, custom: CustomAction | None = None) -> None:
    present = body_present(request)
    needed = needs_body(request, custom)
    if present and needed is False:
        raise APIError(400, "Request body not allowed")
    if not present and needed is True:
        raise APIError(400, "Request body required")


def validate_operation(context: RequestContext, resource: Resource) -> None:
    if resource.read_only and operation_for_action(context.action) is Operation.WRITE:
        raise APIError(403, "This resource is read-only")


def negotiate_content_type(request: RequestInfo) -> str:
    """Pick the response media type from the ``Accept`` header, or fail with 406."""
    accept = request.header("accept")
    if accept is None or not accept.strip():
        return JSONAPI_MEDIA_TYPE

    for entry in accept.split(","):
        media_type = entry.split(";")[0].strip().lower()
        if media_type == "*/*":
            return JSONAPI_MEDIA_TYPE
        if media_type in SUPPORTED_MEDIA_TYPES:
            return media_type
    raise APIError(406, f"None of the accepted media types are supported: {accept}")


def validate_content_type(request: RequestInfo) -> None:
    if not body_present(request):
        return

    content_type = request.header("content-type")
    media_type = content_type.split(";")[0].strip().lower() if content_type else None
    if media_type != JSONAPI_MEDIA_TYPE:
        raise APIError(415, f'Content type "{JSONAPI_MEDIA_TYPE}" is required')


def validate_request(
    request: RequestInfo, context: RequestContext, resource: Resource, custom: CustomAction | None = None
) -> None:
    validate_request_method(request)
    validate_request_body(request, custom)
    validate_operation(context, resource)


async def pre_action(
    resource: Resource,
    request: RequestInfo,
    context: RequestContext,
    settings: JSONAPISettings,
    custom: CustomAction | None = None,
) -> str:
    """Run the full gate and return the negotiated response content type."""
    validate_request(request, context, resource, custom)

    content_type = JSONAPI_MEDIA_TYPE
    if settings.enforce_content_type:
        content_type = negotiate_content_type(request)
        if custom is None or custom.deserialize:
            validate_content_type(request)

    await resource.run_before_hooks(context)
    return content_type
