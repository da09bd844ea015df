import typer
from rich.console import Console
from rich.table import Table

from jsonapi_kit.api.router import iter_routes
from jsonapi_kit.cli.serve import DEFAULT_TARGET, TargetOption, load_target
from jsonapi_kit.core.engine import JSONAPI

console = Console()


def resources(target: TargetOption = DEFAULT_TARGET) -> None:
    """List registered resources and the routes they expose."""
    value = load_target(target)
    jsonapi = value if isinstance(value, JSONAPI) else getattr(value.state, "jsonapi", None)
    if jsonapi is None:
        console.print(f"[red]`{target}` was not built with create_app()[/red]")
        raise typer.Exit(code=1)

    table = Table(show_lines=False)
    for header in ("method", "path", "resource", "action"):
        table.add_column(header)
    routes = iter_routes(jsonapi)
    for route in routes:
        table.add_row(route.method, route.path, route.resource, route.action)
    console.print(table)
    console.print(f"({len(jsonapi.registry)} resources, {len(routes)} routes)")
