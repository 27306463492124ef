"""Common CLI options for the CLI."""

import typer

HomeOpt = typer.Option(
    None,
    "--home",
    envvar="UCACCESS_HOME",
    help="Application directory holding config.json and requests.json",
)

VerboseOpt = typer.Option(
    False,
    "--verbose",
    "-v",
    help="Enable debug logging",
)

ProfileOpt = typer.Option(
    None,
    "--profile",
    "-p",
    help="Databricks CLI profile (from ~/.databrickscfg)",
)

ExpandOpt = typer.Option(
    False,
    "--expand",
    help="Also load schemas and tables below each catalog",
)

ObjectOpt = typer.Option(
    [],
    "--object",
    "-o",
    help="Id of a catalog object to request access to. This is reusable.",
    show_default=False,
)

PermissionOpt = typer.Option(
    [],
    "--permission",
    help="Privilege to request (e.g. SELECT, MODIFY). This is reusable.",
    show_default=False,
)

RequesterOpt = typer.Option(
    "user_current",
    "--requester",
    help="Identity id of the requester",
)

YesOpt = typer.Option(False, "--yes", help="Skip confirmation prompt")
