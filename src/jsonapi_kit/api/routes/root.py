from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends, Request

from jsonapi_kit.api.dependencies import get_jsonapi
from jsonapi_kit.core.engine import JSONAPI

router = APIRouter()


@router.get("/")
async def root(request: Request, jsonapi: JSONAPI = Depends(get_jsonapi)) -> dict[str, Any]:
    """Root discovery endpoint: links to every registered resource collection."""
    links: dict[str, str] = {"self": "/"}
    for resource in jsonapi.registry.all():
        links[resource.plural] = f"/{resource.plural}"
    links["openapi"] = "/openapi.json"
    links["docs"] = "/docs"

    return {
        "jsonapi": {"version": "1.0"},
        "meta": {
            "title": request.app.title,
            "description": request.app.description,
            "version": request.app.version,
        },
        "links": links,
    }
