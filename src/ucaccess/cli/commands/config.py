"""Commands for viewing and changing the ucaccess configuration."""

from __future__ import annotations

from dataclasses import replace

import typer

from ucaccess.cli.common.context import AppContext
from ucaccess.cli.common.exits import exit_from_exc
from ucaccess.cli.common.options import ProfileOpt
from ucaccess.cli.common.output import out
from ucaccess.core.errors import UCAccessError
from ucaccess.core.models import AuthMode, IdpKind, StorageKind, VaultKind

config_app = typer.Typer(help="Show and change settings.", no_args_is_help=True)


@config_app.command("show")
def show(ctx: typer.Context):
    """Show the current configuration (secrets masked)."""
    appctx: AppContext = ctx.obj
    config = appctx.service.load_config()
    out.header(f"Configuration ({appctx.service.config_store.path})")
    out.config(config.to_dict())


@config_app.command("set")
def set_(
    ctx: typer.Context,
    auth_mode: AuthMode | None = typer.Option(None, "--auth-mode", help="MOCK, WORKSPACE or ACCOUNT"),
    host: str | None = typer.Option(None, "--host", help="Workspace or account host"),
    client_id: str | None = typer.Option(None, "--client-id", help="Service principal client id"),
    client_secret: str | None = typer.Option(
        None, "--client-secret", help="Service principal client secret"
    ),
    account_id: str | None = typer.Option(None, "--account-id", help="Databricks account id"),
    storage_kind: StorageKind | None = typer.Option(None, "--storage", help="Storage backend"),
    storage_path: str | None = typer.Option(None, "--storage-path", help="Storage path"),
    idp_kind: IdpKind | None = typer.Option(None, "--idp", help="Identity provider kind"),
    vault_kind: VaultKind | None = typer.Option(None, "--vault", help="Secret vault kind"),
):
    """Update one or more settings. Saving also clears cached tokens."""
    appctx: AppContext = ctx.obj
    service = appctx.service

    changes = {
        "auth_mode": auth_mode,
        "host": host,
        "client_id": client_id,
        "client_secret": client_secret,
        "account_id": account_id,
        "storage_kind": storage_kind,
        "storage_path": storage_path,
        "idp_kind": idp_kind,
        "vault_kind": vault_kind,
    }
    changes = {k: v for k, v in changes.items() if v is not None}
    if not changes:
        out.warn("Nothing to change.")
        raise typer.Exit(0)

    try:
        config = replace(service.load_config(), **changes)
        service.save_config(config)
    except UCAccessError as exc:
        exit_from_exc(exc, code=1)

    out.success("Settings saved successfully. Token cache cleared.")


@config_app.command("import-profile")
def import_profile(ctx: typer.Context, profile: str | None = ProfileOpt):
    """Take host and M2M credentials from a Databricks CLI profile."""
    appctx: AppContext = ctx.obj
    try:
        with out.status("Resolving Databricks profile..."):
            config = appctx.service.import_profile(profile)
    except UCAccessError as exc:
        exit_from_exc(exc, code=1)

    out.success(f"Imported profile '{profile or 'DEFAULT'}'.")
    out.config(config.to_dict())
