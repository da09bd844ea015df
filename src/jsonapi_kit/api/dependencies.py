from __future__ import annotations

from fastapi import FastAPI, Request

from jsonapi_kit.core.engine import JSONAPI


def get_jsonapi(request: Request) -> JSONAPI:
    """Return the ``JSONAPI`` instance the application was created with."""
    return request.app.state.jsonapi


async def shutdown_engine(app: FastAPI) -> None:
    engine = getattr(app.state, "engine", None)
    if engine is not None:
        await engine.dispose()
        app.state.engine = None
