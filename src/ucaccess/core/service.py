"""Application service used by frontends.

AccessService is the composition root of the core. It owns one ConfigStore,
RequestStore, TokenCache, CatalogClient, IdentityClient and AccessWorkflow
and exposes the operations a frontend needs. Catalog data and request data stay independent;
they are only joined by the node ids a frontend passes to ``submit``.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable

import requests

from ucaccess.core.adapters.scim import IdentityClient
from ucaccess.core.adapters.unitycatalog import CatalogClient
from ucaccess.core.auth import TokenCache, configuration_from_profile
from ucaccess.core.errors import UCAccessError
from ucaccess.core.models import (
    AccessRequest,
    CatalogNode,
    Configuration,
    Identity,
    RequestStatus,
)
from ucaccess.core.storage import ConfigStore, CorruptConfigPolicy, RequestStore
from ucaccess.core.workflow import AccessWorkflow

logger = logging.getLogger(__name__)


@dataclass
class SyncResult:
    """Outcome of a refresh: catalogs and requests, plus the sync error if any."""

    catalogs: list[CatalogNode] = field(default_factory=list)
    requests: list[AccessRequest] = field(default_factory=list)
    error: UCAccessError | None = None


class AccessService:
    """Facade over configuration, catalog sync and the request workflow."""

    def __init__(
        self,
        app_dir: Path | None = None,
        *,
        session: requests.Session | None = None,
        on_corrupt_config: CorruptConfigPolicy = CorruptConfigPolicy.USE_DEFAULT,
        config_store: ConfigStore | None = None,
        request_store: RequestStore | None = None,
        tokens: TokenCache | None = None,
        catalog_client: CatalogClient | None = None,
        identity_client: IdentityClient | None = None,
        workflow: AccessWorkflow | None = None,
    ) -> None:
        self.config_store = config_store or ConfigStore(
            app_dir, on_corrupt=on_corrupt_config
        )
        self.request_store = request_store or RequestStore(app_dir)
        self.tokens = tokens or TokenCache(session)
        self.catalog_client = catalog_client or CatalogClient(self.tokens)
        self.identity_client = identity_client or IdentityClient(self.tokens)
        self.workflow = workflow or AccessWorkflow(self.request_store)

    # configuration

    def load_config(self) -> Configuration:
        return self.config_store.load()

    def save_config(self, config: Configuration) -> None:
        """Persist ``config`` and drop cached tokens issued for old settings."""
        self.config_store.save(config)
        self.tokens.clear()

    def import_profile(self, profile: str | None = None) -> Configuration:
        """Seed host and M2M credentials from a Databricks CLI profile and save."""
        config = configuration_from_profile(self.load_config(), profile)
        self.save_config(config)
        return config

    def identities(self) -> list[Identity]:
        """Return the demo identities in MOCK mode, the SCIM identities otherwise."""
        return self.identity_client.fetch_identities(self.load_config())

    # catalog

    def fetch_catalogs(self) -> list[CatalogNode]:
        return self.catalog_client.fetch_catalogs(self.load_config())

    def expand(self, node: CatalogNode) -> CatalogNode:
        return self.catalog_client.expand(self.load_config(), node)

    def refresh(self) -> SyncResult:
        """
        Reload catalogs and requests.

        Catalog sync failures do not abort the refresh: the catalog list
        falls back to empty and the error is returned for display.
        """
        result = SyncResult()
        try:
            result.catalogs = self.fetch_catalogs()
        except UCAccessError as exc:
            logger.warning("Catalog sync failed: %s", exc)
            result.error = exc
        result.requests = self.list_requests()
        return result

    # requests

    def list_requests(self) -> list[AccessRequest]:
        return self.workflow.list_requests()

    def pending_count(self) -> int:
        return sum(1 for r in self.list_requests() if r.status is RequestStatus.PENDING)

    def find_request(self, request_id: str) -> AccessRequest | None:
        return next((r for r in self.list_requests() if r.id == request_id), None)

    def submit(
        self,
        selected_nodes: Iterable[CatalogNode],
        permissions: Iterable[str],
        justification: str,
        requester: Identity,
    ) -> list[AccessRequest]:
        return self.workflow.submit(selected_nodes, permissions, justification, requester)

    def approve(self, request: AccessRequest) -> AccessRequest:
        return self.workflow.approve(request)

    def reject(self, request: AccessRequest) -> AccessRequest:
        return self.workflow.reject(request)
