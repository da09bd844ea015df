"""Registration-time middleware: functions that rewrite a resource config before it is registered."""

from __future__ import annotations

import dataclasses
from collections.abc import Callable
from typing import Any

from jsonapi_kit.core.config import ResourceConfig

Middleware = Callable[[str, ResourceConfig], ResourceConfig]


def prepend_before(*hooks: Callable[[Any], Any]) -> Middleware:
    """Run ``hooks`` ahead of every resource's own before-hooks."""

    def middleware(_type: str, config: ResourceConfig) -> ResourceConfig:
        return dataclasses.replace(config, before=[*hooks, *config.before])

    return middleware


def append_before(*hooks: Callable[[Any], Any]) -> Middleware:
    """Run ``hooks`` after every resource's own before-hooks."""

    def middleware(_type: str, config: ResourceConfig) -> ResourceConfig:
        return dataclasses.replace(config, before=[*config.before, *hooks])

    return middleware


def apply_middleware(type_: str, config: ResourceConfig, middleware: list[Middleware]) -> ResourceConfig:
    for step in middleware:
        config = step(type_, config)
    return config
