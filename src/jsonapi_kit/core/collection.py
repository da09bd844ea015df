from __future__ import annotations

from collections.abc import Iterable, Iterator
from typing import TYPE_CHECKING, Any

from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError

if TYPE_CHECKING:
    from jsonapi_kit.core.registry import ResourceRegistry


class Collection:
    """An ordered list of documents. Insertion order is the order sent to the client."""

    def __init__(self, documents: Iterable[Document] = ()) -> None:
        self.documents: list[Document] = []
        self.add(*documents)

    def add(self, *items: Document | Collection) -> None:
        for item in items:
            if isinstance(item, Collection):
                self.documents.extend(item.documents)
            else:
                self.documents.append(item)

    def __iter__(self) -> Iterator[Document]:
        return iter(self.documents)

    def __len__(self) -> int:
        return len(self.documents)

    def __getitem__(self, index: int) -> Document:
        return self.documents[index]

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Collection):
            return NotImplemented
        return self.documents == other.documents

    def __repr__(self) -> str:
        return f"Collection({self.documents!r})"

    def serialize(self) -> list[dict[str, Any]]:
        return [document.serialize() for document in self.documents]

    @classmethod
    def deserialize(cls, registry: ResourceRegistry, raw: Any) -> Collection:
        if not isinstance(raw, list):
            raise APIError(400, "Invalid collection: expected an array")
        return cls(Document.deserialize(registry, item, detail=False) for item in raw)
