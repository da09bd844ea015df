import importlib
from typing import Annotated, Any

import typer
from fastapi import FastAPI
from rich.console import Console

from jsonapi_kit.core.engine import JSONAPI

console = Console()

DEFAULT_TARGET = "jsonapi_kit.demo:create_demo_app"

TargetOption = Annotated[
    str,
    typer.Option(
        "--target",
        "-t",
        help="`module:attribute` naming a FastAPI app, a JSONAPI instance, or a factory returning either.",
    ),
]


def load_target(target: str) -> FastAPI | JSONAPI:
    """Import ``module:attribute`` and call it if it is a factory."""
    module_name, _, attribute = target.partition(":")
    if not module_name or not attribute:
        raise typer.BadParameter(f"Expected `module:attribute`, got `{target}`")

    try:
        module = importlib.import_module(module_name)
    except ImportError as exc:
        raise typer.BadParameter(f"Cannot import `{module_name}`: {exc}") from exc
    value: Any = getattr(module, attribute, None)
    if value is None:
        raise typer.BadParameter(f"`{module_name}` has no attribute `{attribute}`")

    if not isinstance(value, FastAPI | JSONAPI) and callable(value):
        value = value()
    if not isinstance(value, FastAPI | JSONAPI):
        raise typer.BadParameter(f"`{target}` is neither a FastAPI app nor a JSONAPI instance")
    return value


def load_app(target: str) -> FastAPI:
    from jsonapi_kit.api.app import create_app

    value = load_target(target)
    return value if isinstance(value, FastAPI) else create_app(value)


def serve(
    target: TargetOption = DEFAULT_TARGET,
    host: str = "127.0.0.1",
    port: int = 8000,
) -> None:
    """Start the JSON:API server."""
    import uvicorn

    app = load_app(target)
    console.print(f"[green]Starting API server on {host}:{port}[/green]")
    uvicorn.run(app, host=host, port=port)
