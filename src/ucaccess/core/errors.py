"""Typed errors raised by the ucaccess core.

Every error carries a human-readable message (``str(exc)``) that frontends
can show as-is.
"""

from __future__ import annotations


class UCAccessError(RuntimeError):
    """Base class for all ucaccess errors."""


class ConfigurationError(UCAccessError):
    """Raised when a required setting (such as the host) is missing."""


class CredentialError(UCAccessError):
    """Raised when the M2M client id or secret is missing."""


class AuthServiceError(UCAccessError):
    """Raised when the token endpoint does not hand out a token."""

    def __init__(self, status_code: int | None, body: str, message: str | None = None):
        self.status_code = status_code
        self.body = body
        if message is None:
            message = f"Failed to get token (HTTP {status_code}): {body}"
        super().__init__(message)


class SyncError(UCAccessError):
    """Raised when the catalog fetch fails on the network or while parsing."""


class ValidationError(UCAccessError):
    """Raised when a workflow call receives unusable input."""


class PersistenceError(UCAccessError):
    """Raised when a store cannot read or write its file."""


class InvalidTransitionError(UCAccessError):
    """Raised when an access request is moved out of a terminal state."""

    def __init__(self, current, target):
        self.current = current
        self.target = target
        super().__init__(
            f"Cannot move request from {current.value} to {target.value}."
        )
