from __future__ import annotations

from fastapi import FastAPI
from sqlalchemy.ext.asyncio import AsyncEngine

from jsonapi_kit.api.errors import register_exception_handlers
from jsonapi_kit.api.lifespan import lifespan
from jsonapi_kit.api.router import build_router
from jsonapi_kit.api.routes.health import router as health_router
from jsonapi_kit.api.routes.root import router as root_router
from jsonapi_kit.core.engine import JSONAPI


def create_app(
    jsonapi: JSONAPI,
    title: str = "JSON:API",
    description: str = "JSON:API resources with pluggable storage adapters.",
    version: str = "0.1.0",
    engine: AsyncEngine | None = None,
) -> FastAPI:
    """Build the FastAPI application serving every resource registered on ``jsonapi``.

    Resources must be registered before this is called. An ``engine`` given
    here is disposed on shutdown.
    """
    app = FastAPI(
        title=title,
        description=description,
        version=version,
        lifespan=lifespan,
    )
    app.state.jsonapi = jsonapi
    app.state.engine = engine

    register_exception_handlers(app)

    app.include_router(root_router, include_in_schema=False)
    app.include_router(health_router, include_in_schema=False)
    app.include_router(build_router(jsonapi))

    return app
