from __future__ import annotations

import logging
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager

from fastapi import FastAPI

from jsonapi_kit.api.dependencies import shutdown_engine

logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    logger.info("Serving %d resource(s)", len(app.state.jsonapi.registry))
    yield
    await shutdown_engine(app)
