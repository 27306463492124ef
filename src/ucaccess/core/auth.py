"""Authentication helpers for Databricks.

This module owns the M2M (OAuth client-credentials) token cache used to call
the Unity Catalog REST API, the shared HTTP session, and small normalization
rules for host URLs. It can also seed credentials from a Databricks CLI
profile via the Databricks SDK unified configuration.
"""

from __future__ import annotations

import logging
import os
import re
import threading
import time
from dataclasses import dataclass, replace
from typing import Callable

import requests
from requests.adapters import HTTPAdapter
from databricks.sdk.core import Config

from ucaccess.core.errors import AuthServiceError, ConfigurationError, CredentialError
from ucaccess.core.models import Configuration

logger = logging.getLogger(__name__)

DEFAULT_ACCOUNTS_HOST = "accounts.cloud.databricks.com"
TOKEN_PATH = "/oidc/v1/token"
TOKEN_SCOPE = "all-apis"

HTTP_TIMEOUT_ENV = "UCACCESS_HTTP_TIMEOUT"
DEFAULT_HTTP_TIMEOUT = 10.0
# seconds shaved off expires_in so a token is never used right at its edge
EXPIRY_SKEW_SECONDS = 60


def http_timeout() -> float:
    """Return the per-call HTTP timeout in seconds, honoring env override."""
    raw = os.getenv(HTTP_TIMEOUT_ENV)
    if raw is None:
        return DEFAULT_HTTP_TIMEOUT
    try:
        value = float(raw)
    except ValueError:
        return DEFAULT_HTTP_TIMEOUT
    return value if value > 0 else DEFAULT_HTTP_TIMEOUT


def build_session(max_retries: int = 2) -> requests.Session:
    """Create the HTTP session shared by the token cache and catalog client."""
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=max_retries)
    session.mount("https://", adapter)
    session.mount("http://", adapter)
    return session


def _sanitize_host(host: str | None) -> str | None:
    """
    Normalize a Databricks host URL.

    - Removes query strings (e.g. '?o=123456789')
    - Removes trailing slashes
    """
    if not host:
        return host
    host = host.strip().split("?", 1)[0]
    return host.rstrip("/")


def with_scheme(host: str) -> str:
    """Return ``host`` sanitized and prefixed with https:// if it has no scheme."""
    host = _sanitize_host(host) or ""
    if host.startswith(("http://", "https://")):
        return host
    return f"https://{host}"


def _is_blank(value: str | None) -> bool:
    return value is None or not value.strip()


@dataclass(frozen=True)
class _CachedToken:
    value: str
    expires_at: float | None

    def is_fresh(self, now: float) -> bool:
        return self.expires_at is None or now < self.expires_at


class TokenCache:
    """
    Cache of M2M bearer tokens keyed by ``(client_id, host)``.

    Tokens are fetched with the OAuth client-credentials grant. When the
    token response carries ``expires_in`` the entry expires shortly before
    the token does; otherwise it stays until ``clear()``.

    The cache map is guarded by a lock and may be shared across threads.
    Concurrent misses on one key share a single exchange.
    """

    def __init__(
        self,
        session: requests.Session | None = None,
        *,
        timeout: float | None = None,
        clock: Callable[[], float] = time.monotonic,
    ) -> None:
        self.session = session or build_session()
        self.timeout = timeout if timeout is not None else http_timeout()
        self._clock = clock
        self._lock = threading.Lock()
        self._tokens: dict[tuple[str, str], _CachedToken] = {}
        self._fetching: dict[tuple[str, str], threading.Lock] = {}

    def __len__(self) -> int:
        with self._lock:
            return len(self._tokens)

    def clear(self) -> None:
        """Drop every cached token."""
        with self._lock:
            self._tokens.clear()
        logger.debug("Token cache cleared")

    def get_token(self, config: Configuration) -> str:
        """
        Return a bearer token for the configured service principal.

        Raises:
            CredentialError: If client id or secret is blank.
            AuthServiceError: If the token endpoint fails or is unreachable.
        """
        if _is_blank(config.client_id) or _is_blank(config.client_secret):
            raise CredentialError(
                "M2M credentials (client ID / secret) are missing in settings."
            )

        key = (config.client_id, config.host or "")
        cached = self._fresh(key)
        if cached is not None:
            return cached

        # One exchange per key at a time; waiters re-check once it lands.
        with self._key_lock(key):
            cached = self._fresh(key)
            if cached is not None:
                return cached
            token = self._exchange(config)
            with self._lock:
                self._tokens[key] = token
        return token.value

    def _fresh(self, key: tuple[str, str]) -> str | None:
        with self._lock:
            cached = self._tokens.get(key)
            if cached is not None and cached.is_fresh(self._clock()):
                return cached.value
        return None

    def _key_lock(self, key: tuple[str, str]) -> threading.Lock:
        with self._lock:
            return self._fetching.setdefault(key, threading.Lock())

    def _exchange(self, config: Configuration) -> _CachedToken:
        """Run the client-credentials exchange against the token endpoint."""
        base_url = with_scheme(config.host or DEFAULT_ACCOUNTS_HOST)
        token_url = f"{base_url}{TOKEN_PATH}"
        form = {
            "grant_type": "client_credentials",
            "client_id": config.client_id,
            "client_secret": config.client_secret,
            "scope": TOKEN_SCOPE,
        }
        logger.debug("Requesting M2M token from %s", token_url)
        try:
            response = self.session.post(
                token_url,
                data=form,
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=self.timeout,
            )
        except requests.exceptions.RequestException as exc:
            raise AuthServiceError(
                None, "", f"Token endpoint {token_url} is unreachable: {exc}"
            ) from exc

        if response.status_code != 200:
            logger.warning(
                "M2M token error (%s): %s", response.status_code, response.text
            )
            raise AuthServiceError(response.status_code, response.text)

        try:
            payload = response.json()
            value = payload["access_token"]
        except (ValueError, KeyError, TypeError) as exc:
            raise AuthServiceError(
                response.status_code,
                response.text,
                "Token endpoint returned no usable access_token.",
            ) from exc

        expires_at = None
        expires_in = payload.get("expires_in")
        if isinstance(expires_in, (int, float)) and expires_in > 0:
            expires_at = self._clock() + max(expires_in - EXPIRY_SKEW_SECONDS, 0)
        return _CachedToken(value=str(value), expires_at=expires_at)


def _format_auth_error(message: str, profile: str | None) -> str:
    """Return a user-friendly profile resolution error message."""
    login_match = re.search(r"databricks auth login ([^\s]+)", message)
    if login_match:
        cmd = "databricks auth login"
        if profile:
            cmd = f"{cmd} --profile {profile}"
        return (
            "Databricks profile could not be resolved.\n"
            f"Re-authenticate with:\n  $ {cmd}"
        )
    return f"Databricks profile could not be resolved: {message}"


def configuration_from_profile(
    base: Configuration, profile: str | None = None
) -> Configuration:
    """
    Return ``base`` with host and M2M credentials taken from a CLI profile.

    The profile is resolved using the Databricks unified authentication
    configuration (~/.databrickscfg or environment variables). Fields the
    profile does not define keep their value from ``base``.
    """
    try:
        cfg = Config(profile=profile) if profile else Config()
    except ValueError as exc:
        raise ConfigurationError(_format_auth_error(str(exc), profile)) from exc

    return replace(
        base,
        host=_sanitize_host(cfg.host) or base.host,
        client_id=cfg.client_id or base.client_id,
        client_secret=cfg.client_secret or base.client_secret,
        account_id=cfg.account_id or base.account_id,
    )
