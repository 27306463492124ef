from __future__ import annotations

import logging
from typing import Any

import requests

from ucaccess.core.auth import TokenCache, http_timeout, with_scheme
from ucaccess.core.errors import ConfigurationError, SyncError
from ucaccess.core.mock_data import mock_catalogs
from ucaccess.core.models import AuthMode, CatalogNode, Configuration, NodeType

logger = logging.getLogger(__name__)

CATALOGS_PATH = "/api/2.1/unity-catalog/catalogs"
SCHEMAS_PATH = "/api/2.1/unity-catalog/schemas"
TABLES_PATH = "/api/2.1/unity-catalog/tables"


def _owners(item: dict[str, Any]) -> list[str]:
    owner = item.get("owner")
    return [owner] if owner else []


def get_page(
    session: requests.Session,
    url: str,
    *,
    headers: dict[str, str],
    params: dict[str, Any] | None,
    timeout: float,
) -> dict[str, Any] | None:
    """
    GET one JSON object from ``url``.

    Returns None for a non-200 response (logged with status and body) and
    raises SyncError when the call fails or the body is not a JSON object.
    """
    try:
        response = session.get(url, headers=headers, params=params, timeout=timeout)
    except requests.exceptions.RequestException as exc:
        raise SyncError(f"Could not reach {url}: {exc}") from exc

    if response.status_code != 200:
        logger.warning(
            "Databricks responded with HTTP %s for %s: %s",
            response.status_code,
            url,
            response.text,
        )
        return None

    try:
        payload = response.json()
    except ValueError as exc:
        raise SyncError(f"Unreadable response from {url}: {exc}") from exc
    if not isinstance(payload, dict):
        raise SyncError(f"Unexpected response from {url}: not a JSON object.")
    return payload


def page_items(payload: dict[str, Any], key: str, url: str) -> list[dict[str, Any]]:
    """Return the object entries listed under ``key`` in ``payload``."""
    page = payload.get(key) or []
    if not isinstance(page, list):
        raise SyncError(f"Unexpected response from {url}: '{key}' is not a list.")
    return [item for item in page if isinstance(item, dict)]


class CatalogClient:
    """Client for the Unity Catalog REST API (catalogs/schemas/tables).

    Non-200 responses degrade to an empty result and are logged. This holds
    for every page of a paginated listing: a non-200 on a later page discards
    the pages already fetched, so callers never see a silently truncated
    list. Network and decoding failures raise SyncError. Token errors from
    the TokenCache are passed through unchanged.
    """

    def __init__(self, tokens: TokenCache, *, timeout: float | None = None) -> None:
        self.tokens = tokens
        self.timeout = timeout if timeout is not None else http_timeout()

    @property
    def session(self) -> requests.Session:
        return self.tokens.session

    def workspace_url(self, config: Configuration) -> str:
        """Return the workspace base URL, or raise if no host is configured."""
        if not config.host or not config.host.strip():
            raise ConfigurationError("Workspace URL (UC host) is not configured.")
        return with_scheme(config.host)

    def _list(
        self,
        config: Configuration,
        path: str,
        key: str,
        params: dict[str, str] | None = None,
    ) -> list[dict[str, Any]]:
        """GET a paginated list endpoint and return the items under ``key``."""
        url = f"{self.workspace_url(config)}{path}"
        token = self.tokens.get_token(config)
        headers = {"Authorization": f"Bearer {token}"}
        query = dict(params or {})
        items: list[dict[str, Any]] = []

        while True:
            payload = get_page(
                self.session,
                url,
                headers=headers,
                params=dict(query) or None,
                timeout=self.timeout,
            )
            if payload is None:
                return []
            items.extend(page_items(payload, key, url))

            next_token = payload.get("next_page_token")
            if not next_token:
                return items
            query["page_token"] = next_token

    def fetch_catalogs(self, config: Configuration) -> list[CatalogNode]:
        """
        Return the catalogs visible to the configured service principal.

        In MOCK mode the built-in demo tree is returned without any network
        call. Otherwise each remote catalog becomes a CATALOG node with
        ``id == name``.
        """
        if config.auth_mode is AuthMode.MOCK:
            return mock_catalogs()

        out: list[CatalogNode] = []
        for c in self._list(config, CATALOGS_PATH, "catalogs"):
            name = c.get("name")
            if not name:
                continue
            out.append(
                CatalogNode(
                    id=str(name), name=str(name), type=NodeType.CATALOG, owners=_owners(c)
                )
            )
        logger.debug("Fetched %d catalog(s)", len(out))
        return out

    def expand(self, config: Configuration, node: CatalogNode) -> CatalogNode:
        """
        Replace ``node.children`` with its remote children.

        CATALOG nodes get their schemas, SCHEMA nodes their tables and
        views. Leaf nodes and MOCK mode leave the node untouched.
        """
        if config.auth_mode is AuthMode.MOCK:
            return node
        if node.type is NodeType.CATALOG:
            children = self._schemas(config, node)
        elif node.type is NodeType.SCHEMA:
            children = self._tables(config, node)
        else:
            return node

        node.children = []
        for child in children:
            node.add_child(child)
        return node

    def _schemas(self, config: Configuration, catalog: CatalogNode) -> list[CatalogNode]:
        out: list[CatalogNode] = []
        items = self._list(
            config, SCHEMAS_PATH, "schemas", {"catalog_name": catalog.name}
        )
        for s in items:
            name = s.get("name")
            full_name = s.get("full_name")
            if not name and full_name:
                name = str(full_name).split(".")[-1]
            if not full_name and name:
                full_name = f"{catalog.name}.{name}"
            if not name or not full_name:
                continue
            out.append(
                CatalogNode(
                    id=str(full_name), name=str(name), type=NodeType.SCHEMA, owners=_owners(s)
                )
            )
        return out

    def _tables(self, config: Configuration, schema: CatalogNode) -> list[CatalogNode]:
        catalog_name, _, schema_name = schema.id.partition(".")
        if not schema_name:
            catalog_name, schema_name = schema.parent_id or "", schema.name

        out: list[CatalogNode] = []
        items = self._list(
            config,
            TABLES_PATH,
            "tables",
            {"catalog_name": catalog_name, "schema_name": schema_name},
        )
        for t in items:
            full_name = t.get("full_name")
            if not full_name:
                continue
            # table_type is e.g. MANAGED, EXTERNAL, VIEW, MATERIALIZED_VIEW
            table_type = str(t.get("table_type") or "").upper()
            out.append(
                CatalogNode(
                    id=str(full_name),
                    name=str(t.get("name") or str(full_name).split(".")[-1]),
                    type=NodeType.VIEW if "VIEW" in table_type else NodeType.TABLE,
                    owners=_owners(t),
                )
            )
        return out
