"""Commands for syncing Unity Catalog metadata."""

from __future__ import annotations

import typer

from ucaccess.cli.common.context import AppContext
from ucaccess.cli.common.exits import exit_from_exc
from ucaccess.cli.common.options import ExpandOpt
from ucaccess.cli.common.output import out
from ucaccess.core.errors import UCAccessError
from ucaccess.core.models import CatalogNode
from ucaccess.core.service import AccessService

catalogs_app = typer.Typer(help="Unity Catalog metadata.", no_args_is_help=True)


def load_tree(service: AccessService, *, expand: bool) -> list[CatalogNode]:
    """Fetch catalogs and, when asked, their schemas and tables."""
    catalogs = service.fetch_catalogs()
    if expand:
        for catalog in catalogs:
            service.expand(catalog)
            for schema in catalog.children:
                service.expand(schema)
    return catalogs


@catalogs_app.command("list")
def list_(ctx: typer.Context, expand: bool = ExpandOpt):
    """List catalogs visible to the configured service principal."""
    appctx: AppContext = ctx.obj
    try:
        with out.status("Syncing catalogs..."):
            catalogs = load_tree(appctx.service, expand=expand)
    except UCAccessError as exc:
        exit_from_exc(exc, message=f"Sync error: {exc}", code=1)

    if not catalogs:
        out.warn("No catalogs found (or the catalog service did not answer).")
        raise typer.Exit(0)

    out.catalog_tree(catalogs)
