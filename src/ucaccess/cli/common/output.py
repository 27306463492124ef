"""Output formatting utilities for the CLI."""

from __future__ import annotations

from contextlib import contextmanager
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Any, Iterable, Mapping

import questionary
from rich.console import Console
from rich.table import Table
from rich.theme import Theme
from rich.tree import Tree

from ucaccess.cli.common.tui_style import QUESTIONARY_STYLE_CONFIRM
from ucaccess.core.models import AccessRequest, CatalogNode, Identity, RequestStatus

_THEME = Theme(
    {
        "ok": "bold green",
        "warn": "yellow",
        "err": "bold red",
        "title": "bold cyan",
        "meta": "dim",
    }
)

console = Console(theme=_THEME)
err_console = Console(theme=_THEME, stderr=True)

_STATUS_STYLE = {
    RequestStatus.PENDING: "warn",
    RequestStatus.APPROVED: "ok",
    RequestStatus.REJECTED: "err",
}

_SECRET_KEYS = {"ucClientSecret"}


def _format_ts(ms: int) -> str:
    if not ms:
        return ""
    return datetime.fromtimestamp(ms / 1000, tz=timezone.utc).strftime("%Y-%m-%d %H:%M")


def _mask(value: Any) -> str:
    if not value:
        return ""
    text = str(value)
    return "****" if len(text) <= 4 else f"****{text[-4:]}"


@dataclass(frozen=True)
class Out:
    """Output formatter for CLI messages, trees and tables."""

    def info(self, msg: str) -> None:
        console.print(f"[title]›[/] {msg}")

    @contextmanager
    def status(self, msg: str):
        """Show a transient status spinner while work is in progress."""
        with console.status(msg, spinner="dots"):
            yield

    def success(self, msg: str) -> None:
        console.print(f"[ok]✓[/] {msg}")

    def warn(self, msg: str) -> None:
        console.print(f"[warn]⚠[/] {msg}")

    def error(self, msg: str) -> None:
        err_console.print(f"[err]✗[/] {msg}")

    def header(self, title: str) -> None:
        console.print(f"[title]{title}[/]")

    def kv(self, items: Mapping[str, Any]) -> None:
        """Print key-value pairs."""
        for k, v in items.items():
            console.print(f"[meta]{k}[/]: {v}")

    def config(self, data: Mapping[str, Any]) -> None:
        """Print a configuration mapping with secrets masked."""
        self.kv({k: _mask(v) if k in _SECRET_KEYS else v for k, v in data.items()})

    def confirm(self, message: str, *, default: bool = False) -> bool:
        """Ask the user for a y/n confirmation."""
        prompt = questionary.confirm(
            message,
            default=default,
            style=QUESTIONARY_STYLE_CONFIRM,
            qmark="✦",
        )
        return bool(prompt.ask())

    def catalog_tree(self, nodes: Iterable[CatalogNode], title: str = "Catalogs") -> None:
        """Render catalog nodes and their loaded children as a tree."""
        root = Tree(f"[title]{title}[/]")

        def _add(branch: Tree, node: CatalogNode) -> None:
            owners = f" [meta]({', '.join(node.owners)})[/]" if node.owners else ""
            child = branch.add(
                f"[ok]{node.name}[/] [meta]{node.type.value} · {node.id}[/]{owners}"
            )
            for c in node.children:
                _add(child, c)

        for node in nodes:
            _add(root, node)
        console.print(root)

    def requests_table(
        self, requests: Iterable[AccessRequest], title: str = "Access requests"
    ) -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("Request ID", style="ok", no_wrap=True)
        t.add_column("Requester")
        t.add_column("Object")
        t.add_column("Permissions", style="meta")
        t.add_column("Status")
        t.add_column("Submitted", style="meta")
        t.add_column("Justification", style="meta")

        for r in requests:
            style = _STATUS_STYLE.get(r.status, "meta")
            t.add_row(
                r.id,
                r.user_name or r.user_id,
                f"{r.object_name} [meta]{r.object_type}[/]",
                ", ".join(sorted(r.permissions)),
                f"[{style}]{r.status.value}[/{style}]",
                _format_ts(r.timestamp),
                r.justification,
            )

        console.print(t)

    def identities_table(self, identities: Iterable[Identity], title: str = "Identities") -> None:
        t = Table(title=title, show_lines=False)
        t.add_column("ID", style="ok", no_wrap=True)
        t.add_column("Name")
        t.add_column("Kind", style="meta")
        t.add_column("Email", style="meta")

        for i in identities:
            t.add_row(i.id, i.name, i.kind.value, i.email or "")

        console.print(t)


out = Out()
