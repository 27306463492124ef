"""Terminal UI utilities for picking catalog objects."""

from __future__ import annotations

import questionary

from ucaccess.cli.common.tui_style import QUESTIONARY_STYLE_SELECT
from ucaccess.core.models import CatalogNode

_MAX_NAME_WIDTH = 64
_INDENT = "  "


def _truncate(text: str, max_len: int) -> str:
    """Return text capped at max_len characters using an ASCII ellipsis."""
    if max_len <= 3 or len(text) <= max_len:
        return text[:max_len]
    return f"{text[: max_len - 3]}..."


def _flatten(nodes: list[CatalogNode], depth: int = 0) -> list[tuple[CatalogNode, int]]:
    """Return (node, depth) pairs in display order (parents before children)."""
    flat: list[tuple[CatalogNode, int]] = []
    for node in nodes:
        flat.append((node, depth))
        flat.extend(_flatten(node.children, depth + 1))
    return flat


def _node_choice_title(node: CatalogNode, depth: int, *, name_width: int) -> str:
    """Format one node as an indented `<name>  [TYPE]` row with aligned type column."""
    label = f"{_INDENT * depth}{_truncate(node.name, _MAX_NAME_WIDTH)}"
    return f"{label.ljust(name_width)}  [{node.type.value}]"


def select_nodes(nodes: list[CatalogNode]) -> list[CatalogNode]:
    """Display a checkbox prompt to select catalog objects from a tree.

    Args:
        nodes: Root nodes; loaded children are listed indented below them.

    Returns:
        The selected nodes, or an empty list if none selected.
    """
    flat = _flatten(nodes)
    name_width = max(
        (len(_INDENT * d) + len(_truncate(n.name, _MAX_NAME_WIDTH)) for n, d in flat),
        default=0,
    )
    choices = [
        questionary.Choice(
            title=_node_choice_title(node, depth, name_width=name_width),
            value=node,
        )
        for node, depth in flat
    ]
    return (
        questionary.checkbox(
            "Select data objects:",
            choices=choices,
            style=QUESTIONARY_STYLE_SELECT,
        ).ask()
        or []
    )
