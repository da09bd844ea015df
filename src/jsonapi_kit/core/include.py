"""Side-loading of related documents into a pack's ``included`` section."""

from __future__ import annotations

from collections import defaultdict
from typing import TYPE_CHECKING, Any

from jsonapi_kit.core.document import Document
from jsonapi_kit.core.types import ListOptions, Pagination

if TYPE_CHECKING:
    from jsonapi_kit.core.context import RequestContext
    from jsonapi_kit.core.registry import ResourceRegistry


class IncludeCollector:
    """Resolves include paths (``children``, ``spouse.children``) into documents.

    Documents already present, either as primary data or as earlier includes,
    are never collected twice.
    """

    def __init__(self, registry: ResourceRegistry, context: RequestContext) -> None:
        self.registry = registry
        self.context = context
        self._collected: dict[str, set[str]] = defaultdict(set)

    async def collect(self, base: list[Document], paths: list[str]) -> list[Document]:
        collected: list[Document] = []
        self._mark(base)
        for path in paths:
            await self._collect_path(base, path.split("."), collected)
        return collected

    async def _collect_path(self, base: list[Document], segments: list[str], collected: list[Document]) -> None:
        head, *tail = segments

        linkages: list[dict[str, Any]] = []
        for document in base:
            relationship = document.relationships.get(head)
            if relationship is None or relationship["data"] is None:
                continue
            data = relationship["data"]
            linkages.extend(data if isinstance(data, list) else [data])

        documents = await self._fetch(linkages)
        collected.extend(documents)
        self._mark(documents)

        if tail:
            # Walk on from every target, including ones collected earlier.
            targets = documents + [doc for doc in collected if self._linked(doc, linkages) and doc not in documents]
            await self._collect_path(targets, tail, collected)

    async def _fetch(self, linkages: list[dict[str, Any]]) -> list[Document]:
        by_type: dict[str, list[Any]] = defaultdict(list)
        for linkage in linkages:
            key = str(linkage["id"])
            if key in self._collected[linkage["type"]]:
                continue
            if linkage["id"] not in by_type[linkage["type"]]:
                by_type[linkage["type"]].append(linkage["id"])

        documents: list[Document] = []
        for type_, ids in by_type.items():
            if not self.registry.has(type_):
                continue
            resource = self.registry.get(type_)
            adapter = resource.adapter(self.context)
            if adapter is None:
                continue

            query = await resource.query(adapter, self.context)
            query = await adapter.apply_filters(query, {resource.config.id_attribute: ids})
            pack = await adapter.find(query, Pagination(), ListOptions(auto_include=False))
            documents.extend(pack.data)
        return documents

    def _mark(self, documents: list[Document]) -> None:
        for document in documents:
            if document.id is not None:
                self._collected[document.type].add(str(document.id))

    @staticmethod
    def _linked(document: Document, linkages: list[dict[str, Any]]) -> bool:
        return any(linkage["type"] == document.type and str(linkage["id"]) == str(document.id) for linkage in linkages)
