"""Commands for submitting and deciding access requests."""

from __future__ import annotations

import typer

from ucaccess.cli.commands.catalogs import load_tree
from ucaccess.cli.common.context import AppContext
from ucaccess.cli.common.exits import die, exit_from_exc
from ucaccess.cli.common.options import (
    ExpandOpt,
    ObjectOpt,
    PermissionOpt,
    RequesterOpt,
    YesOpt,
)
from ucaccess.cli.common.output import out
from ucaccess.cli.tui import select_nodes
from ucaccess.core.errors import UCAccessError, ValidationError
from ucaccess.core.models import AccessRequest, CatalogNode, Identity, RequestStatus, find_node
from ucaccess.core.service import AccessService

requests_app = typer.Typer(help="Access requests.", no_args_is_help=True)


def _resolve_requester(service: AccessService, requester_id: str) -> Identity:
    """Map an identity id to a known identity, or a bare one named after the id."""
    if requester_id == "user_current":
        return Identity("user_current", "Current User")
    try:
        known = service.identities()
    except UCAccessError as exc:
        out.warn(f"Could not load identities: {exc}")
        known = []
    for identity in known:
        if identity.id == requester_id:
            return identity
    return Identity(requester_id, requester_id)


def _get_request_or_exit(service: AccessService, request_id: str) -> AccessRequest:
    request = service.find_request(request_id)
    if request is None:
        die(f"Request '{request_id}' does not exist.", code=2)
    return request


@requests_app.command("list")
def list_(
    ctx: typer.Context,
    status: RequestStatus | None = typer.Option(None, "--status", help="Filter by status"),
):
    """List access requests, newest first."""
    appctx: AppContext = ctx.obj
    requests = appctx.service.list_requests()
    if status:
        requests = [r for r in requests if r.status is status]

    if not requests:
        out.warn("No requests found.")
        raise typer.Exit(0)

    out.requests_table(requests)
    out.info(f"Pending: {appctx.service.pending_count()}")


@requests_app.command("submit")
def submit(
    ctx: typer.Context,
    object_ids: list[str] = ObjectOpt,
    permission: list[str] = PermissionOpt,
    justification: str = typer.Option("", "--justification", "-j", help="Why access is needed"),
    requester: str = RequesterOpt,
    expand: bool = ExpandOpt,
):
    """Request access to one or more catalog objects."""
    appctx: AppContext = ctx.obj
    service = appctx.service

    try:
        with out.status("Syncing catalogs..."):
            tree = load_tree(service, expand=expand)
    except UCAccessError as exc:
        exit_from_exc(exc, message=f"Sync error: {exc}", code=1)

    selected: list[CatalogNode] = []
    if object_ids:
        for object_id in object_ids:
            node = find_node(tree, object_id)
            if node is None:
                die(f"Catalog object '{object_id}' not found.", code=2)
            selected.append(node)
    elif tree:
        selected = select_nodes(tree)

    try:
        created = service.submit(
            selected, permission, justification, _resolve_requester(service, requester)
        )
    except ValidationError as exc:
        exit_from_exc(exc, code=2)
    except UCAccessError as exc:
        exit_from_exc(exc, code=1)

    out.success("Your access request has been sent for approval.")
    out.requests_table(created, title="Submitted")


def _decide(ctx: typer.Context, request_id: str, *, approve: bool, yes: bool) -> None:
    appctx: AppContext = ctx.obj
    service = appctx.service
    request = _get_request_or_exit(service, request_id)
    verb = "approve" if approve else "reject"

    if not yes and not out.confirm(f"{verb.capitalize()} request {request.id}?"):
        out.warn("Cancelled.")
        raise typer.Exit(0)

    try:
        if approve:
            service.approve(request)
        else:
            service.reject(request)
    except UCAccessError as exc:
        exit_from_exc(exc, code=1)

    out.success(f"Request {request.id} {request.status.value.lower()}.")


@requests_app.command("approve")
def approve(ctx: typer.Context, request_id: str = typer.Argument(...), yes: bool = YesOpt):
    """Approve a pending request."""
    _decide(ctx, request_id, approve=True, yes=yes)


@requests_app.command("reject")
def reject(ctx: typer.Context, request_id: str = typer.Argument(...), yes: bool = YesOpt):
    """Reject a pending request."""
    _decide(ctx, request_id, approve=False, yes=yes)


@requests_app.command("identities")
def identities(ctx: typer.Context):
    """List the users, groups and service principals that can request access."""
    appctx: AppContext = ctx.obj

    try:
        with out.status("Loading identities..."):
            found = appctx.service.identities()
    except UCAccessError as exc:
        exit_from_exc(exc, message=f"Sync error: {exc}", code=1)

    if not found:
        out.warn("No identities found.")
        raise typer.Exit(0)

    out.identities_table(found)
