"""Adapter for SQLAlchemy ORM models over an async engine."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from sqlalchemy import Select, String, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import ColumnProperty, selectinload
from sqlalchemy.orm.attributes import InstrumentedAttribute

from jsonapi_kit.core.config import RelationshipConfig
from jsonapi_kit.core.context import RequestContext
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.pack import Pack
from jsonapi_kit.core.ports.adapter import DeleteResponse, GetResponse, MutationResponse
from jsonapi_kit.core.resource import Resource
from jsonapi_kit.core.types import ActionOptions, DocumentLocator, IDLocator, Linkage, ListOptions, Pagination, Sort
from jsonapi_kit.db.base import BaseAdapter

logger = logging.getLogger(__name__)


class SQLAlchemyAdapter(BaseAdapter):
    """Maps the adapter protocol onto ``select()`` statements for one mapped model.

    Every operation runs in its own session. Relationships are eagerly loaded
    so documents can be built after the session is closed.
    """

    def __init__(
        self,
        resource: Resource,
        context: RequestContext,
        session_factory: async_sessionmaker[AsyncSession],
        model: type[Any],
    ) -> None:
        super().__init__(resource, context)
        self.session_factory = session_factory
        self.model = model

    # ------------------------------------------------------------------
    # Columns
    # ------------------------------------------------------------------

    def _column(self, name: str) -> InstrumentedAttribute[Any]:
        attribute = getattr(self.model, name, None)
        if not isinstance(attribute, InstrumentedAttribute) or not isinstance(attribute.property, ColumnProperty):
            raise APIError(400, f"Unknown field `{name}` for resource `{self.resource.type}`")
        return attribute

    @property
    def _pk(self) -> InstrumentedAttribute[Any]:
        return self._column(self.resource.config.id_attribute)

    @staticmethod
    def _coerce(column: InstrumentedAttribute[Any], value: Any) -> Any:
        if value is None:
            return None
        try:
            python_type = column.property.columns[0].type.python_type
        except NotImplementedError:
            return value
        if isinstance(value, python_type):
            return value
        if python_type is bool and isinstance(value, str):
            return value.lower() in ("1", "true", "yes")
        try:
            return python_type(value)
        except (TypeError, ValueError) as exc:
            raise APIError(400, f"Invalid value `{value}` for `{column.key}`") from exc

    # ------------------------------------------------------------------
    # Query modifiers
    # ------------------------------------------------------------------

    def query(self) -> Select[Any]:
        return select(self.model)

    async def apply_filters(self, query: Select[Any], filters: dict[str, Any]) -> Select[Any]:
        for name, value in filters.items():
            column = self._column(name)
            if isinstance(value, list | tuple | set):
                query = query.where(column.in_([self._coerce(column, item) for item in value]))
            elif value is None:
                query = query.where(column.is_(None))
            else:
                query = query.where(column == self._coerce(column, value))
        return query

    async def apply_search(self, query: Select[Any], term: str) -> Select[Any]:
        columns = []
        for name in self.resource.attributes:
            attribute = getattr(self.model, name, None)
            if isinstance(attribute, InstrumentedAttribute) and isinstance(attribute.property, ColumnProperty):
                if isinstance(attribute.property.columns[0].type, String):
                    columns.append(attribute)
        if not columns:
            raise APIError(409, f"Resource `{self.resource.type}` does not support searching")
        return query.where(or_(*(column.ilike(f"%{term}%") for column in columns)))

    async def apply_sorts(self, query: Select[Any], sorts: list[Sort]) -> Select[Any]:
        clauses = []
        for sort in sorts:
            column = self._column(sort.field)
            clauses.append(column.desc() if sort.descending else column.asc())
        return query.order_by(None).order_by(*clauses)

    # ------------------------------------------------------------------
    # Retrieval
    # ------------------------------------------------------------------

    async def count(self, query: Select[Any]) -> int:
        statement = select(func.count()).select_from(query.order_by(None).subquery())
        async with self.session_factory() as session:
            return int(await session.scalar(statement) or 0)

    async def find(self, query: Select[Any], pagination: Pagination, options: ListOptions) -> Pack:
        statement = query.options(selectinload("*")).offset(pagination.offset)
        if pagination.limit is not None:
            statement = statement.limit(pagination.limit)
        async with self.session_factory() as session:
            entities = (await session.scalars(statement)).all()
        return await self.resource.collection_pack(entities, self.context, options)

    async def _load_in(self, session: AsyncSession, query: Select[Any], id_: Any) -> Any | None:
        statement = (
            query.where(self._pk == self._coerce(self._pk, id_))
            .options(selectinload("*"))
            .execution_options(populate_existing=True)
        )
        return (await session.scalars(statement)).first()

    async def load(self, query: Select[Any], id_: Any) -> Any | None:
        async with self.session_factory() as session:
            return await self._load_in(session, query, id_)

    async def get(self, query: Select[Any], locator: DocumentLocator, options: ActionOptions) -> GetResponse:
        if isinstance(locator, IDLocator):
            entity = await self.load(query, locator.id)
        else:
            async with self.session_factory() as session:
                entity = (await session.scalars(query.options(selectinload("*")).limit(1))).first()

        if entity is None:
            return GetResponse(Pack(None))
        return GetResponse(await self.resource.document_pack(entity, self.context, options))

    # ------------------------------------------------------------------
    # Mutation
    # ------------------------------------------------------------------

    def _relationship_writer(self, session: AsyncSession) -> Callable[..., Any]:
        async def write(entity: Any, name: str, relationship: RelationshipConfig, value: Any) -> None:
            if relationship.type is None:
                raise APIError(403, f'Polymorphic relationship "{name}" cannot be written')
            related = self.resource.registry.get(relationship.type)
            adapter = related.adapter(self.context)
            if not isinstance(adapter, SQLAlchemyAdapter):
                raise APIError(405, f"Resource `{related.type}` cannot be linked")

            pk = adapter._pk
            if relationship.plural:
                ids = [adapter._coerce(pk, id_) for id_ in value]
                targets = (await session.scalars(select(adapter.model).where(pk.in_(ids)))).all() if ids else []
                if len(targets) != len(set(ids)):
                    raise APIError(404, f'Relationship "{name}" refers to unknown `{related.type}` resources')
                setattr(entity, name, list(targets))
            elif value is None:
                setattr(entity, name, None)
            else:
                target = await session.get(adapter.model, adapter._coerce(pk, value))
                if target is None:
                    raise APIError(404, f"Resource `{related.type}` with ID `{value}` not found")
                setattr(entity, name, target)

        return write

    async def _commit(self, session: AsyncSession, entity: Any, options: ActionOptions) -> Pack:
        try:
            await session.commit()
        except IntegrityError as exc:
            await session.rollback()
            raise APIError(409, f"Could not store `{self.resource.type}`: constraint violated") from exc

        id_ = getattr(entity, self.resource.config.id_attribute)
        reloaded = await self._load_in(session, select(self.model), id_)
        return await self.resource.document_pack(reloaded, self.context, options)

    async def create(self, query: Select[Any], document: Document, options: ActionOptions) -> MutationResponse:
        async with self.session_factory() as session:
            entity = self.model()
            if document.id is not None:
                setattr(entity, self.resource.config.id_attribute, self._coerce(self._pk, document.id))
            await self.resource.apply_document(
                entity, document, self.context, create=True, relationship_writer=self._relationship_writer(session)
            )
            session.add(entity)
            pack = await self._commit(session, entity, options)
        logger.debug("Inserted %s row", self.model.__name__)
        return MutationResponse(pack)

    async def _existing(self, session: AsyncSession, query: Select[Any], document: Document) -> Any:
        entity = await self._load_in(session, query, document.id)
        if entity is None:
            raise APIError(404, f"Resource `{self.resource.type}` with ID `{document.id}` not found")
        return entity

    async def update(self, query: Select[Any], document: Document, options: ActionOptions) -> MutationResponse:
        async with self.session_factory() as session:
            entity = await self._existing(session, query, document)
            await self.resource.apply_document(
                entity, document, self.context, create=False, relationship_writer=self._relationship_writer(session)
            )
            pack = await self._commit(session, entity, options)
        return MutationResponse(pack)

    async def replace(self, query: Select[Any], document: Document, options: ActionOptions) -> MutationResponse:
        async with self.session_factory() as session:
            entity = await self._existing(session, query, document)
            for name, attribute in self.resource.attributes.items():
                if attribute.set is None and attribute.get is None and name not in document.attributes:
                    setattr(entity, name, None)
            for name, relationship in self.resource.relationships.items():
                if relationship.set is None and relationship.get is None and name not in document.relationships:
                    setattr(entity, name, [] if relationship.plural else None)
            await self.resource.apply_document(
                entity, document, self.context, create=False, relationship_writer=self._relationship_writer(session)
            )
            pack = await self._commit(session, entity, options)
        return MutationResponse(pack)

    async def delete(self, query: Select[Any], options: ActionOptions) -> DeleteResponse:
        async with self.session_factory() as session:
            entities = (await session.scalars(query.options(selectinload("*")))).all()
            linkages: list[Linkage] = []
            for entity in entities:
                linkages.append(Linkage(self.resource.type, getattr(entity, self.resource.config.id_attribute)))
                await session.delete(entity)
            await session.commit()
        logger.debug("Deleted %d %s row(s)", len(linkages), self.model.__name__)
        return DeleteResponse(deleted_count=len(linkages), linkages=linkages)


def sqlalchemy_adapter_factory(
    session_factory: async_sessionmaker[AsyncSession],
    models: dict[str, type[Any]],
) -> Callable[[Resource, RequestContext], SQLAlchemyAdapter | None]:
    """Adapter factory mapping resource types to ORM models."""

    def factory(resource: Resource, context: RequestContext) -> SQLAlchemyAdapter | None:
        model = models.get(resource.type)
        if model is None:
            return None
        return SQLAlchemyAdapter(resource, context, session_factory, model)

    return factory
