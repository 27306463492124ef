"""Built-in catalog tree and identities used when auth mode is MOCK."""

from __future__ import annotations

from ucaccess.core.models import CatalogNode, Identity, IdentityKind, NodeType


def mock_catalogs() -> list[CatalogNode]:
    """Return a fresh copy of the fixed demo catalog tree."""
    main = CatalogNode(id="cat_main", name="main_catalog", type=NodeType.CATALOG)
    finance = main.add_child(
        CatalogNode(id="sch_finance", name="finance", type=NodeType.SCHEMA)
    )
    finance.add_child(
        CatalogNode(id="tbl_transactions", name="transactions", type=NodeType.TABLE)
    )
    finance.add_child(CatalogNode(id="tbl_budget", name="budget", type=NodeType.TABLE))
    return [main]


def mock_identities() -> list[Identity]:
    return [
        Identity("user_alice", "Alice Admin", "alice@example.com", IdentityKind.USER),
        Identity("user_bob", "Bob Buyer", "bob@example.com", IdentityKind.USER),
        Identity("group_finance", "Finance Team", None, IdentityKind.GROUP),
    ]
