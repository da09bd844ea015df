from __future__ import annotations

import logging
from collections.abc import Callable, Iterable
from typing import TYPE_CHECKING, Any

from jsonapi_kit.config import JSONAPISettings
from jsonapi_kit.core.config import ResourceConfig
from jsonapi_kit.core.errors import APIError
from jsonapi_kit.core.middleware import Middleware, apply_middleware
from jsonapi_kit.core.resource import Resource

if TYPE_CHECKING:
    from jsonapi_kit.core.context import RequestContext
    from jsonapi_kit.core.ports.adapter import Adapter

logger = logging.getLogger(__name__)

AdapterFactory = Callable[[Resource, "RequestContext"], "Adapter | None"]


class ResourceRegistry:
    """Maps resource type names to :class:`Resource` definitions.

    Registration happens at startup. During request handling the registry and
    its resources are only read.
    """

    def __init__(
        self,
        settings: JSONAPISettings | None = None,
        adapter_factory: AdapterFactory | None = None,
        parse_id: Callable[[Any], Any] = str,
        middleware: Iterable[Middleware] = (),
    ) -> None:
        self.settings = settings if settings is not None else JSONAPISettings()
        self.adapter_factory = adapter_factory
        self.parse_id = parse_id
        self.middleware = list(middleware)
        self._resources: dict[str, Resource] = {}

    def __contains__(self, type_: str) -> bool:
        return self.has(type_)

    def __len__(self) -> int:
        return len(self._resources)

    # ------------------------------------------------------------------
    # Registration
    # ------------------------------------------------------------------

    def register(self, type_: str, config: ResourceConfig) -> Resource:
        config = apply_middleware(type_, config, self.middleware)
        resource = Resource(self, type_, config)
        if not config.auxiliary:
            for other in self._resources.values():
                if other.type != type_ and not other.config.auxiliary and other.entity == resource.entity:
                    raise ValueError(
                        f"Entity `{resource.entity}` is already claimed by resource `{other.type}`; "
                        "mark one of them auxiliary"
                    )
        if type_ in self._resources:
            logger.warning("Resource %s registered twice, replacing previous registration", type_)
        self._resources[type_] = resource
        logger.info("Registered resource %s", type_)
        return resource

    def unregister(self, type_: str) -> None:
        self._resources.pop(type_, None)

    # ------------------------------------------------------------------
    # Lookup
    # ------------------------------------------------------------------

    def has(self, type_: str) -> bool:
        return type_ in self._resources

    def get(self, type_: str) -> Resource:
        resource = self._resources.get(type_)
        if resource is None:
            raise APIError(404, f"Resource `{type_}` not found")
        return resource

    def all(self) -> list[Resource]:
        return list(self._resources.values())

    def resource_for_entity(self, entity: str) -> Resource:
        """Return the primary (non-auxiliary) resource backed by ``entity``."""
        for resource in self._resources.values():
            if resource.config.auxiliary:
                continue
            if resource.entity == entity:
                return resource
        raise APIError(404, f"No resource found for entity `{entity}`")

    # ------------------------------------------------------------------
    # Adapters
    # ------------------------------------------------------------------

    def adapter_for(self, resource: Resource, context: RequestContext) -> Adapter | None:
        if resource.config.adapter is not None:
            return resource.config.adapter(resource, context)
        if self.adapter_factory is not None:
            return self.adapter_factory(resource, context)
        return None
