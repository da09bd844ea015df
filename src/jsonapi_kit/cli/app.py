import logging
from typing import Annotated

import typer

from jsonapi_kit.cli.resources import resources
from jsonapi_kit.cli.serve import serve

app = typer.Typer(
    name="jsonapi-kit",
    help="jsonapi-kit CLI: serve and inspect JSON:API resources.",
    no_args_is_help=True,
    context_settings={"help_option_names": ["-h", "--help"]},
)


@app.callback()
def configure(
    log_level: Annotated[str, typer.Option(help="Logging level (DEBUG, INFO, WARNING, ...).")] = "INFO",
) -> None:
    level = logging.getLevelName(log_level.upper())
    if not isinstance(level, int):
        raise typer.BadParameter(f"Unknown log level `{log_level}`", param_hint="--log-level")
    logging.basicConfig(level=level, format="%(asctime)s %(levelname)s %(name)s %(message)s")


app.command("serve")(serve)
app.command("resources")(resources)


def main() -> None:
    app()
