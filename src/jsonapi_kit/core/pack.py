from __future__ import annotations

import copy
from collections.abc import Mapping
from typing import TYPE_CHECKING, Any

from jsonapi_kit.core.collection import Collection
from jsonapi_kit.core.document import Document
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.types import Linkage

if TYPE_CHECKING:
    from jsonapi_kit.core.registry import ResourceRegistry

PACK_KEYS = frozenset({"data", "included", "meta", "links"})


class Pack:
    """The top-level JSON:API envelope.

    ``data`` is ``None``, a :class:`Document`, a :class:`Collection`, or an
    arbitrary JSON payload returned by a custom action.
    """

    def __init__(
        self,
        data: Any = None,
        included: Collection | None = None,
        meta: dict[str, Any] | None = None,
        links: dict[str, str] | None = None,
    ) -> None:
        self.data = data
        self.included = included if included is not None else Collection()
        self.meta: dict[str, Any] = dict(meta or {})
        self.links: dict[str, str] = dict(links or {})

    @classmethod
    def empty(cls) -> Pack:
        return cls(None)

    @property
    def document(self) -> Document | None:
        return self.data if isinstance(self.data, Document) else None

    @property
    def collection(self) -> Collection | None:
        return self.data if isinstance(self.data, Collection) else None

    def __repr__(self) -> str:
        return f"Pack(data={self.data!r}, meta={self.meta!r})"

    # ------------------------------------------------------------------
    # Serialization
    # ------------------------------------------------------------------

    def serialize(self) -> dict[str, Any]:
        serialized: dict[str, Any] = {
            "data": _serialize_data(self.data),
            "included": self.included.serialize(),
            "meta": copy.deepcopy(self.meta),
        }
        if self.links:
            serialized["links"] = dict(self.links)
        return serialized

    @classmethod
    def deserialize(cls, registry: ResourceRegistry, raw: Any) -> Pack:
        if not isinstance(raw, Mapping):
            raise APIError(400, "Invalid pack: expected an object")

        extraneous = sorted(set(raw) - PACK_KEYS)
        if extraneous:
            raise APIError(400, f"Invalid pack: unknown key(s) {', '.join(extraneous)}")

        data_raw = raw.get("data")
        data: Document | Collection | None
        if data_raw is None:
            data = None
        elif isinstance(data_raw, list):
            data = Collection.deserialize(registry, data_raw)
        elif isinstance(data_raw, Mapping):
            data = Document.deserialize(registry, data_raw)
        else:
            raise APIError(400, "Invalid pack: `data` must be an object, an array or null")

        included = Collection.deserialize(registry, raw.get("included") or [])

        meta = raw.get("meta") or {}
        if not isinstance(meta, Mapping):
            raise APIError(400, "Invalid pack: `meta` must be an object")
        links = raw.get("links") or {}
        if not isinstance(links, Mapping) or not all(isinstance(link, str) for link in links.values()):
            raise APIError(400, "Invalid pack: `links` must be an object of strings")

        return cls(data, included, dict(meta), dict(links))

    @classmethod
    def try_deserialize(cls, registry: ResourceRegistry, raw: Any) -> Pack | None:
        """Deserialize ``raw`` if it looks like a pack, otherwise return ``None``.

        Only plausibility is checked here. Once the input passes, errors from
        the strict :meth:`deserialize` propagate.
        """
        if not isinstance(raw, Mapping) or "data" not in raw:
            return None

        data = raw["data"]
        if data is None or data == []:
            return cls.deserialize(registry, raw)

        sample = data[0] if isinstance(data, list) else data
        type_ = sample.get("type") if isinstance(sample, Mapping) else None
        # Without a type the strict path reports the malformed document.
        if type_ is not None and (not isinstance(type_, str) or not registry.has(type_)):
            return None
        return cls.deserialize(registry, raw)


def _serialize_data(data: Any) -> Any:
    if isinstance(data, Document | Collection | Linkage):
        return data.serialize()
    if isinstance(data, list):
        return [_serialize_data(item) for item in data]
    return copy.deepcopy(data)
