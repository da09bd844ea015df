from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker, create_async_engine

from jsonapi_kit.config import get_settings


def get_engine(database_url: str | None = None) -> AsyncEngine:
    db_url = database_url or get_settings().database_url
    return create_async_engine(db_url, future=True)


def get_session_factory(engine: AsyncEngine) -> async_sessionmaker[AsyncSession]:
    # Documents are built after commit, so loaded state must survive it.
    return async_sessionmaker(engine, expire_on_commit=False)
