"""HTTP error boundary: every failure leaves as a JSON:API error document."""

from __future__ import annotations

import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from jsonapi_kit.core.errors import APIError, ErrorPack
from jsonapi_kit.core.types import JSONAPI_MEDIA_TYPE

logger = logging.getLogger(__name__)


def error_response(error: BaseException, debug: bool = False) -> JSONResponse:
    pack = ErrorPack.from_exception(error, debug=debug)
    if pack.status >= 500:
        if isinstance(error, APIError):
            logger.error("API error %d: %s", pack.status, error.message, exc_info=error)
        else:
            logger.error("Unhandled %s", type(error).__name__, exc_info=error)
    else:
        logger.debug("API error %d: %s", pack.status, error)
    return JSONResponse(pack.serialize(), status_code=pack.status, media_type=JSONAPI_MEDIA_TYPE)


def _debug(request: Request) -> bool:
    jsonapi = getattr(request.app.state, "jsonapi", None)
    return bool(jsonapi is not None and jsonapi.settings.debug)


def register_exception_handlers(app: FastAPI) -> None:
    @app.exception_handler(APIError)
    async def handle_api_error(request: Request, exc: APIError) -> JSONResponse:
        return error_response(exc, _debug(request))

    @app.exception_handler(StarletteHTTPException)
    async def handle_http_error(request: Request, exc: StarletteHTTPException) -> JSONResponse:
        # Routing failures (unknown path, method not allowed) use the same error document.
        response = error_response(APIError(exc.status_code, str(exc.detail)), _debug(request))
        if exc.headers:
            response.headers.update(exc.headers)
        return response

    @app.exception_handler(RequestValidationError)
    async def handle_validation_error(request: Request, exc: RequestValidationError) -> JSONResponse:
        problems = "; ".join(str(error.get("msg")) for error in exc.errors())
        return error_response(APIError(400, problems or None), _debug(request))
