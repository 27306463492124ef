"""Core domain models for Unity Catalog access management.

This module defines the configuration record, the catalog tree and the
access request model. The models are free of HTTP and CLI concerns; each one
knows how to convert itself to and from the camelCase JSON layout used by
the persisted files.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from pathlib import Path
from typing import Any, Mapping


class StorageKind(str, Enum):
    """Backend used to persist configuration and requests."""

    LOCAL = "LOCAL"
    RDBMS = "RDBMS"
    VERSION_CONTROLLED = "VERSION_CONTROLLED"
    MOCK = "MOCK"


class AuthMode(str, Enum):
    """How the remote catalog service is reached."""

    MOCK = "MOCK"
    WORKSPACE = "WORKSPACE"
    ACCOUNT = "ACCOUNT"


class IdpKind(str, Enum):
    SAML = "SAML"
    OIDC = "OIDC"


class VaultKind(str, Enum):
    LOCAL = "LOCAL"
    HASHICORP = "HASHICORP"
    AZURE_KEY_VAULT = "AZURE_KEY_VAULT"


class NodeType(str, Enum):
    """
    Type of a catalog tree node.

    Values:
        CATALOG: Top-level container, holds schemas.
        SCHEMA: Holds tables and views.
        TABLE: Leaf node.
        VIEW: Leaf node.
    """

    CATALOG = "CATALOG"
    SCHEMA = "SCHEMA"
    TABLE = "TABLE"
    VIEW = "VIEW"


ALLOWED_CHILDREN: Mapping[NodeType, frozenset[NodeType]] = {
    NodeType.CATALOG: frozenset({NodeType.SCHEMA}),
    NodeType.SCHEMA: frozenset({NodeType.TABLE, NodeType.VIEW}),
    NodeType.TABLE: frozenset(),
    NodeType.VIEW: frozenset(),
}


class RequestStatus(str, Enum):
    """
    Lifecycle state of an access request.

    Values:
        PENDING: Submitted and waiting for a decision.
        APPROVED: Granted by an approver (terminal).
        REJECTED: Denied by an approver (terminal).
    """

    PENDING = "PENDING"
    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


class IdentityKind(str, Enum):
    USER = "USER"
    GROUP = "GROUP"
    SERVICE_PRINCIPAL = "SERVICE_PRINCIPAL"


def default_storage_path() -> str:
    """Return the default storage directory (``~/.ucaccess``)."""
    return str(Path.home() / ".ucaccess")


def _enum_or_default(enum_cls, raw: Any, default):
    """Parse an enum value, falling back to the default for unknown input."""
    if raw is None:
        return default
    try:
        return enum_cls(str(raw).upper())
    except ValueError:
        return default


def _opt_str(raw: Any) -> str | None:
    return None if raw is None else str(raw)


@dataclass(frozen=True)
class Configuration:
    """
    Settings record for storage and remote catalog access.

    Instances are immutable. Build a changed copy with
    ``dataclasses.replace`` and persist it through ConfigStore.save.

    Attributes:
        storage_kind: Backend used for persistence.
        storage_path: Directory for the persisted files.
        auth_mode: MOCK uses built-in data, WORKSPACE/ACCOUNT call Databricks.
        client_id: OAuth client id of the service principal.
        client_secret: OAuth client secret of the service principal.
        host: Workspace or account host, with or without scheme.
        account_id: Databricks account id (ACCOUNT mode).
        idp_kind: Identity provider used by the organization.
        vault_kind: Secret vault used by the organization.
    """

    storage_kind: StorageKind = StorageKind.LOCAL
    storage_path: str = field(default_factory=default_storage_path)
    auth_mode: AuthMode = AuthMode.MOCK
    client_id: str | None = None
    client_secret: str | None = None
    host: str | None = None
    account_id: str | None = None
    idp_kind: IdpKind = IdpKind.SAML
    vault_kind: VaultKind = VaultKind.LOCAL

    def to_dict(self) -> dict[str, Any]:
        """Return the camelCase JSON representation."""
        return {
            "type": self.storage_kind.value,
            "path": self.storage_path,
            "ucAuthType": self.auth_mode.value,
            "ucClientId": self.client_id,
            "ucClientSecret": self.client_secret,
            "ucHost": self.host,
            "ucAccountId": self.account_id,
            "idpType": self.idp_kind.value,
            "vaultType": self.vault_kind.value,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> Configuration:
        """Build a configuration from its JSON representation.

        Missing keys take their defaults. The legacy storage kind ``GIT`` is
        read as VERSION_CONTROLLED.
        """
        if not isinstance(data, Mapping):
            raise TypeError("configuration must be a JSON object")
        defaults = cls()
        raw_kind = data.get("type")
        if isinstance(raw_kind, str) and raw_kind.upper() == "GIT":
            raw_kind = StorageKind.VERSION_CONTROLLED.value
        return cls(
            storage_kind=_enum_or_default(StorageKind, raw_kind, defaults.storage_kind),
            storage_path=_opt_str(data.get("path")) or defaults.storage_path,
            auth_mode=_enum_or_default(AuthMode, data.get("ucAuthType"), defaults.auth_mode),
            client_id=_opt_str(data.get("ucClientId")),
            client_secret=_opt_str(data.get("ucClientSecret")),
            host=_opt_str(data.get("ucHost")),
            account_id=_opt_str(data.get("ucAccountId")),
            idp_kind=_enum_or_default(IdpKind, data.get("idpType"), defaults.idp_kind),
            vault_kind=_enum_or_default(VaultKind, data.get("vaultType"), defaults.vault_kind),
        )


@dataclass
class CatalogNode:
    """
    One entry of the catalog tree.

    Children are owned by their parent; ``parent_id`` is a plain value
    reference back to the parent's id.
    """

    id: str
    name: str
    type: NodeType
    parent_id: str | None = None
    owners: list[str] = field(default_factory=list)
    children: list[CatalogNode] = field(default_factory=list)

    def add_child(self, child: CatalogNode) -> CatalogNode:
        """Attach a child node, enforcing the allowed parent/child types."""
        if child.type not in ALLOWED_CHILDREN[self.type]:
            raise ValueError(
                f"A {self.type.value} node cannot contain a {child.type.value} node."
            )
        child.parent_id = self.id
        self.children.append(child)
        return child

    def walk(self):
        """Yield this node and all descendants, depth first."""
        yield self
        for child in self.children:
            yield from child.walk()


def find_node(nodes: list[CatalogNode], node_id: str) -> CatalogNode | None:
    """Return the node with the given id anywhere in the forest."""
    for root in nodes:
        for node in root.walk():
            if node.id == node_id:
                return node
    return None


@dataclass(frozen=True)
class Identity:
    """A user, group or service principal known to the organization."""

    id: str
    name: str
    email: str | None = None
    kind: IdentityKind = IdentityKind.USER


@dataclass
class AccessRequest:
    """
    A request for permissions on one catalog object.

    Attributes:
        id: Unique request id (``REQ-<epoch ms>``).
        user_id: Id of the requester.
        user_name: Display name of the requester.
        object_id: Id of the requested catalog node.
        object_name: Name of the requested catalog node.
        object_type: Type of the requested catalog node.
        permissions: Requested privilege tags (e.g. ``SELECT``).
        status: Current lifecycle state.
        justification: Free text supplied by the requester.
        timestamp: Submission time in epoch milliseconds.
    """

    id: str
    user_id: str
    user_name: str
    object_id: str
    object_name: str
    object_type: str
    permissions: frozenset[str] = frozenset()
    status: RequestStatus = RequestStatus.PENDING
    justification: str = ""
    timestamp: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "userId": self.user_id,
            "userName": self.user_name,
            "objectId": self.object_id,
            "objectName": self.object_name,
            "objectType": self.object_type,
            "permissions": sorted(self.permissions),
            "status": self.status.value,
            "justification": self.justification,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> AccessRequest:
        """Build a request from its JSON representation.

        Raises KeyError / TypeError / ValueError on malformed entries.
        """
        return cls(
            id=str(data["id"]),
            user_id=str(data.get("userId") or ""),
            user_name=str(data.get("userName") or ""),
            object_id=str(data["objectId"]),
            object_name=str(data.get("objectName") or ""),
            object_type=str(data.get("objectType") or ""),
            permissions=frozenset(str(p) for p in data.get("permissions") or []),
            status=RequestStatus(data.get("status") or RequestStatus.PENDING.value),
            justification=str(data.get("justification") or ""),
            timestamp=int(data.get("timestamp") or 0),
        )
