"""Query-string parsing with bracket notation (``filter[age]=30``, ``filter[id][]=1``)."""

from __future__ import annotations

import re
from collections.abc import Iterable
from typing import Any

from jsonapi_kit.core.errors import APIError

_KEY = re.compile(r"^([^\[\]]+)((?:\[[^\[\]]*\])*)$")
_SEGMENT = re.compile(r"\[([^\[\]]*)\]")


def parse_query_params(items: Iterable[tuple[str, str]]) -> dict[str, Any]:
    """Fold ``(key, value)`` pairs into nested dicts.

    ``a[b]=1`` becomes ``{"a": {"b": "1"}}`` and ``a[]=1&a[]=2`` becomes
    ``{"a": ["1", "2"]}``. Keys without brackets are kept as-is; for repeated
    plain keys the last value wins.
    """
    params: dict[str, Any] = {}
    for key, value in items:
        match = _KEY.match(key)
        if match is None:
            params[key] = value
            continue

        name, brackets = match.groups()
        _assign(params, [name, *_SEGMENT.findall(brackets)], value, key)
    return params


def _assign(target: dict[str, Any], path: list[str], value: str, key: str) -> None:
    append = path[-1] == "" and len(path) > 1
    if append:
        path = path[:-1]
    if "" in path:
        raise APIError(400, f"Invalid query parameter `{key}`")

    node = target
    for segment in path[:-1]:
        child = node.setdefault(segment, {})
        if not isinstance(child, dict):
            raise APIError(400, f"Conflicting query parameter `{key}`")
        node = child

    last = path[-1]
    if append:
        items = node.setdefault(last, [])
        if not isinstance(items, list):
            raise APIError(400, f"Conflicting query parameter `{key}`")
        items.append(value)
    elif isinstance(node.get(last), dict | list):
        raise APIError(400, f"Conflicting query parameter `{key}`")
    else:
        node[last] = value
