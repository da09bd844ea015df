from __future__ import annotations

from collections.abc import Mapping
from functools import lru_cache
from types import MappingProxyType
from typing import Any

from pydantic import TypeAdapter, ValidationError

from jsonapi_kit.core.errors import APIError

_MISSING: Any = object()


@lru_cache(maxsize=256)
def _type_adapter(type_: Any) -> TypeAdapter[Any]:
    return TypeAdapter(type_)


def _accepts_none(adapter: TypeAdapter[Any]) -> bool:
    try:
        adapter.validate_python(None)
    except ValidationError:
        return False
    return True


class RequestContext:
    """Per-request state handed to resources, hooks and adapters.

    ``params`` is a read-only view combining path and query parameters.
    Dependencies are keyed by string tokens; a callable registered under a
    token is treated as a factory and invoked once, on first resolution.
    """

    def __init__(
        self,
        action: str,
        params: Mapping[str, Any] | None = None,
        request_uri: str | None = None,
        dependencies: Mapping[str, Any] | None = None,
    ) -> None:
        self.action = action
        self.params: Mapping[str, Any] = MappingProxyType(dict(params or {}))
        self.request_uri = request_uri
        self._providers: dict[str, Any] = dict(dependencies or {})
        self._resolved: dict[str, Any] = {}

    def __repr__(self) -> str:
        return f"RequestContext(action={self.action!r}, params={dict(self.params)!r})"

    # ------------------------------------------------------------------
    # Parameters
    # ------------------------------------------------------------------

    def has_param(self, name: str) -> bool:
        return name in self.params

    def param(self, name: str, type_: Any = Any, default: Any = _MISSING) -> Any:
        """Return parameter ``name`` coerced to ``type_``.

        A missing parameter yields ``default`` when given, ``None`` when the
        type is optional, and a 400 otherwise. Coercion failures are 400s.
        """
        adapter = _type_adapter(type_)

        if name not in self.params or self.params[name] is None:
            if default is not _MISSING:
                return default
            if _accepts_none(adapter):
                return None
            raise APIError(400, f'Parameter "{name}" is required')

        try:
            return adapter.validate_python(self.params[name])
        except ValidationError as exc:
            problems = "; ".join(error["msg"] for error in exc.errors())
            raise APIError(400, f'Parameter "{name}": {problems}') from exc

    # ------------------------------------------------------------------
    # Dependencies
    # ------------------------------------------------------------------

    def provide(self, token: str, value: Any) -> None:
        self._providers[token] = value
        self._resolved.pop(token, None)

    def can_resolve(self, token: str) -> bool:
        return token in self._providers

    def resolve(self, token: str) -> Any:
        if token in self._resolved:
            return self._resolved[token]
        if token not in self._providers:
            raise APIError(500, f'No dependency provided for "{token}"')

        provider = self._providers[token]
        value = provider() if callable(provider) else provider
        self._resolved[token] = value
        return value
