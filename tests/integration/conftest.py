"""Fixtures for integration tests against a real SQLite database through aiosqlite."""

from __future__ import annotations

from collections.abc import AsyncGenerator
from pathlib import Path

import pytest_asyncio
from sqlalchemy import ForeignKey, String
from sqlalchemy.ext.asyncio import AsyncEngine, create_async_engine
from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, relationship

from jsonapi_kit.core.config import RelationshipConfig, ResourceConfig
from jsonapi_kit.core.engine import JSONAPI
from jsonapi_kit.db.engine import get_session_factory
from jsonapi_kit.db.sql import sqlalchemy_adapter_factory


class Base(DeclarativeBase):
    pass


class Author(Base):
    __tablename__ = "authors"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[str] = mapped_column(String(100))
    age: Mapped[int | None] = mapped_column(nullable=True)
    books: Mapped[list[Book]] = relationship(back_populates="author")


class Book(Base):
    __tablename__ = "books"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    author_id: Mapped[int | None] = mapped_column(ForeignKey("authors.id"), nullable=True)
    author: Mapped[Author | None] = relationship(back_populates="books")


AUTHORS_CONFIG = ResourceConfig(
    attributes={"name": True, "age": True},
    relationships={"books": RelationshipConfig(type="books", plural=True)},
)

BOOKS_CONFIG = ResourceConfig(
    attributes={"title": True},
    relationships={"author": RelationshipConfig(type="authors")},
)


@pytest_asyncio.fixture
async def database(tmp_path: Path) -> AsyncGenerator[AsyncEngine, None]:
    """Per-test engine on a fresh database file so each event loop gets its own connection pool."""
    engine = create_async_engine(f"sqlite+aiosqlite:///{tmp_path / 'library.db'}", future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest_asyncio.fixture
async def library(database: AsyncEngine) -> JSONAPI:
    """Authors and books, seeded and registered on a SQLAlchemy-backed JSONAPI."""
    session_factory = get_session_factory(database)
    async with session_factory() as session:
        ursula = Author(id=1, name="Ursula", age=88)
        terry = Author(id=2, name="Terry", age=66)
        iain = Author(id=3, name="Iain", age=59)
        session.add_all([ursula, terry, iain])
        session.add_all(
            [
                Book(id=1, title="A Wizard of Earthsea", author=ursula),
                Book(id=2, title="The Dispossessed", author=ursula),
                Book(id=3, title="Mort", author=terry),
                Book(id=4, title="Guards! Guards!", author=terry),
            ]
        )
        await session.commit()

    models: dict[str, type[Base]] = {"authors": Author, "books": Book, "imported-authors": Author}
    jsonapi = JSONAPI(adapter_factory=sqlalchemy_adapter_factory(session_factory, models))
    jsonapi.register("authors", AUTHORS_CONFIG)
    jsonapi.register("books", BOOKS_CONFIG)
    return jsonapi
