from jsonapi_kit.db.base import BaseAdapter
from jsonapi_kit.db.engine import get_engine, get_session_factory
from jsonapi_kit.db.memory import (
    InMemoryAdapter,
    InMemoryStore,
    MemoryQuery,
    memory_adapter_factory,
)
from jsonapi_kit.db.sql import SQLAlchemyAdapter, sqlalchemy_adapter_factory

__all__ = [
    "BaseAdapter",
    "InMemoryAdapter",
    "InMemoryStore",
    "MemoryQuery",
    "SQLAlchemyAdapter",
    "get_engine",
    "get_session_factory",
    "memory_adapter_factory",
    "sqlalchemy_adapter_factory",
]
