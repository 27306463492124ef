"""CLI application for Unity Catalog access management."""

import logging
from pathlib import Path

import typer
from rich.logging import RichHandler

from ucaccess.cli.commands.catalogs import catalogs_app
from ucaccess.cli.commands.config import config_app
from ucaccess.cli.commands.requests import requests_app
from ucaccess.cli.common.context import build_context
from ucaccess.cli.common.options import HomeOpt, VerboseOpt
from ucaccess.cli.common.output import err_console

app = typer.Typer(
    help="ucaccess - Unity Catalog access requests",
    no_args_is_help=True,
)

app.add_typer(config_app, name="config")
app.add_typer(catalogs_app, name="catalogs")
app.add_typer(requests_app, name="requests")


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.WARNING,
        format="%(message)s",
        datefmt="[%X]",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@app.callback()
def _init(
    ctx: typer.Context,
    home: Path | None = HomeOpt,
    verbose: bool = VerboseOpt,
):
    """Initialize logging and the shared application context."""
    _setup_logging(verbose)
    ctx.obj = build_context(home)


if __name__ == "__main__":
    app()
