"""Identity lookup through the Databricks SCIM API.

Users, groups and service principals are read from the workspace SCIM
endpoint in WORKSPACE mode and from the account SCIM endpoint in ACCOUNT
mode, with the same M2M token the catalog client uses.
"""

from __future__ import annotations

import logging
from typing import Any

import requests

from ucaccess.core.adapters.unitycatalog import get_page, page_items
from ucaccess.core.auth import DEFAULT_ACCOUNTS_HOST, TokenCache, http_timeout, with_scheme
from ucaccess.core.errors import ConfigurationError
from ucaccess.core.mock_data import mock_identities
from ucaccess.core.models import AuthMode, Configuration, Identity, IdentityKind

logger = logging.getLogger(__name__)

WORKSPACE_SCIM_PATH = "/api/2.0/preview/scim/v2"
ACCOUNT_SCIM_PATH = "/api/2.0/accounts/{account_id}/scim/v2"
PAGE_SIZE = 100


def _primary_email(user: dict[str, Any]) -> str | None:
    emails = [e for e in user.get("emails") or [] if isinstance(e, dict) and e.get("value")]
    for e in emails:
        if e.get("primary"):
            return str(e["value"])
    if emails:
        return str(emails[0]["value"])
    user_name = user.get("userName")
    return str(user_name) if user_name and "@" in str(user_name) else None


def _user(item: dict[str, Any]) -> Identity:
    name = item.get("displayName") or item.get("userName") or item["id"]
    return Identity(str(item["id"]), str(name), _primary_email(item), IdentityKind.USER)


def _group(item: dict[str, Any]) -> Identity:
    name = item.get("displayName") or item["id"]
    return Identity(str(item["id"]), str(name), None, IdentityKind.GROUP)


def _service_principal(item: dict[str, Any]) -> Identity:
    name = item.get("displayName") or item.get("applicationId") or item["id"]
    return Identity(str(item["id"]), str(name), None, IdentityKind.SERVICE_PRINCIPAL)


# resource name -> mapper, in the order identities are returned
_RESOURCES = (
    ("Users", _user),
    ("Groups", _group),
    ("ServicePrincipals", _service_principal),
)


class IdentityClient:
    """Client for the SCIM Users, Groups and ServicePrincipals listings.

    Follows the catalog client's error policy: a non-200 for one resource
    type yields no identities of that type and is logged. Network and
    decoding failures raise SyncError. Token errors pass through.
    """

    def __init__(self, tokens: TokenCache, *, timeout: float | None = None) -> None:
        self.tokens = tokens
        self.timeout = timeout if timeout is not None else http_timeout()

    @property
    def session(self) -> requests.Session:
        return self.tokens.session

    def scim_url(self, config: Configuration) -> str:
        """Return the SCIM base URL for the configured auth mode."""
        if config.auth_mode is AuthMode.ACCOUNT:
            if not config.account_id or not config.account_id.strip():
                raise ConfigurationError("Account ID is required for account-level identities.")
            base = with_scheme(config.host or DEFAULT_ACCOUNTS_HOST)
            return base + ACCOUNT_SCIM_PATH.format(account_id=config.account_id.strip())
        if not config.host or not config.host.strip():
            raise ConfigurationError("Workspace URL (UC host) is not configured.")
        return with_scheme(config.host) + WORKSPACE_SCIM_PATH

    def _resources(self, url: str, headers: dict[str, str]) -> list[dict[str, Any]]:
        """Read every page of one SCIM listing (1-based ``startIndex``)."""
        items: list[dict[str, Any]] = []
        start = 1
        while True:
            payload = get_page(
                self.session,
                url,
                headers=headers,
                params={"startIndex": start, "count": PAGE_SIZE},
                timeout=self.timeout,
            )
            if payload is None:
                return []
            page = page_items(payload, "Resources", url)
            items.extend(page)

            total = payload.get("totalResults")
            if not page or not isinstance(total, int) or start - 1 + len(page) >= total:
                return items
            start += len(page)

    def fetch_identities(self, config: Configuration) -> list[Identity]:
        """
        Return users, then groups, then service principals.

        MOCK mode returns the built-in demo identities without any network
        call. Entries without an ``id`` are skipped.
        """
        if config.auth_mode is AuthMode.MOCK:
            return mock_identities()

        base = self.scim_url(config)
        headers = {"Authorization": f"Bearer {self.tokens.get_token(config)}"}
        out: list[Identity] = []
        for resource, to_identity in _RESOURCES:
            for item in self._resources(f"{base}/{resource}", headers):
                if item.get("id"):
                    out.append(to_identity(item))
        logger.debug("Fetched %d identities from %s", len(out), base)
        return out
