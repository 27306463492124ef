"""File-backed persistence for the configuration record and access requests.

Both stores keep their data as JSON files in the application directory
(``$UCACCESS_HOME`` or ``~/.ucaccess``). Files are always rewritten whole:
the new content is written to a temporary sibling and renamed into place.

Each store carries a re-entrant lock. Writers inside one process are
serialized by holding ``store.lock`` across a read-modify-write; writers in
other processes are not coordinated (last writer wins).
"""

from __future__ import annotations

import json
import logging
import os
import threading
from enum import Enum
from pathlib import Path
from typing import Any, Iterable

from ucaccess.core.errors import PersistenceError
from ucaccess.core.models import AccessRequest, Configuration

logger = logging.getLogger(__name__)

APP_DIR_ENV = "UCACCESS_HOME"
CONFIG_FILE = "config.json"
REQUESTS_FILE = "requests.json"


class CorruptConfigPolicy(str, Enum):
    """What ConfigStore.load does with an unreadable config file."""

    USE_DEFAULT = "USE_DEFAULT"
    RAISE = "RAISE"


def default_app_dir() -> Path:
    """Return the application directory, honoring the env override."""
    override = os.getenv(APP_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path.home() / ".ucaccess"


def _dump(payload) -> str:
    return json.dumps(payload, indent=2) + "\n"


def _write_atomic(path: Path, text: str) -> None:
    """Replace ``path`` with ``text`` via a temporary sibling file."""
    tmp = path.with_name(f".{path.name}.tmp")
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        tmp.write_text(text, encoding="utf-8")
        os.replace(tmp, path)
    except OSError as exc:
        raise PersistenceError(f"Could not write {path}: {exc}") from exc


class ConfigStore:
    """Loads and saves the single Configuration record."""

    def __init__(
        self,
        app_dir: Path | None = None,
        *,
        on_corrupt: CorruptConfigPolicy = CorruptConfigPolicy.USE_DEFAULT,
    ) -> None:
        self.app_dir = Path(app_dir) if app_dir else default_app_dir()
        self.path = self.app_dir / CONFIG_FILE
        self.on_corrupt = on_corrupt
        self.lock = threading.RLock()
        self._config: Configuration | None = None

    def _ensure_dir(self) -> None:
        try:
            self.app_dir.mkdir(parents=True, exist_ok=True)
        except OSError as exc:
            raise PersistenceError(
                f"Could not create storage directory {self.app_dir}: {exc}"
            ) from exc

    def _read(self) -> Configuration:
        if not self.path.exists():
            return Configuration()
        try:
            return Configuration.from_dict(
                json.loads(self.path.read_text(encoding="utf-8"))
            )
        except (OSError, ValueError, TypeError) as exc:
            if self.on_corrupt is CorruptConfigPolicy.RAISE:
                raise PersistenceError(f"Could not read {self.path}: {exc}") from exc
            logger.warning("Config file %s is unreadable, using defaults: %s", self.path, exc)
            return Configuration()

    def load(self) -> Configuration:
        """
        Return the live configuration.

        The first call creates the storage directory and reads the persisted
        file; a missing file yields defaults, a corrupt file is handled by
        ``on_corrupt``.
        """
        with self.lock:
            if self._config is None:
                self._ensure_dir()
                self._config = self._read()
            return self._config

    def save(self, config: Configuration) -> None:
        """Persist ``config`` and make it the live configuration."""
        with self.lock:
            _write_atomic(self.path, _dump(config.to_dict()))
            self._config = config
        logger.debug("Saved configuration to %s", self.path)


class RequestStore:
    """
    Loads and saves the ordered list of access requests (newest first).

    Entries in the file that cannot be decoded are never dropped: every
    ``save_all`` carries them over unchanged after the decoded requests.
    """

    def __init__(self, app_dir: Path | None = None) -> None:
        self.app_dir = Path(app_dir) if app_dir else default_app_dir()
        self.path = self.app_dir / REQUESTS_FILE
        self.lock = threading.RLock()

    def _read_entries(self) -> list[Any]:
        """Return the raw JSON entries; a missing or unreadable file has none."""
        if not self.path.exists():
            return []
        try:
            payload = json.loads(self.path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.warning("Request file %s is unreadable, treating as empty: %s", self.path, exc)
            return []
        if not isinstance(payload, list):
            logger.warning("Request file %s does not hold a list, treating as empty", self.path)
            return []
        return payload

    @staticmethod
    def _split(entries: list[Any]) -> tuple[list[AccessRequest], list[Any]]:
        decoded: list[AccessRequest] = []
        undecodable: list[Any] = []
        for item in entries:
            try:
                decoded.append(AccessRequest.from_dict(item))
            except (KeyError, TypeError, ValueError) as exc:
                logger.debug("Undecodable request entry %r: %s", item, exc)
                undecodable.append(item)
        return decoded, undecodable

    def fetch_all(self) -> list[AccessRequest]:
        """
        Return all persisted requests.

        A missing or unreadable file yields an empty list; single entries
        that cannot be decoded are left out of the result but stay on disk.
        """
        decoded, undecodable = self._split(self._read_entries())
        for item in undecodable:
            logger.warning("Skipping malformed request entry %r", item)
        return decoded

    def save_all(self, requests: Iterable[AccessRequest]) -> None:
        """
        Overwrite the persisted list with ``requests``.

        Undecodable entries already in the file are appended unchanged,
        unless one of ``requests`` now carries the same id.
        """
        with self.lock:
            rows = [r.to_dict() for r in requests]
            _, undecodable = self._split(self._read_entries())
            if undecodable:
                ids = {row["id"] for row in rows}
                kept = [
                    item for item in undecodable
                    if not (isinstance(item, dict) and item.get("id") in ids)
                ]
                logger.info("Keeping %d undecodable request entries in %s", len(kept), self.path)
                rows.extend(kept)
            _write_atomic(self.path, _dump(rows))
