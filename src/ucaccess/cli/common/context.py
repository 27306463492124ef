"""Application context management for the CLI."""

from dataclasses import dataclass
from pathlib import Path

from ucaccess.core.service import AccessService


@dataclass
class AppContext:
    """Application context holding the access service for one invocation."""

    home: Path | None
    service: AccessService


def build_context(home: Path | None) -> AppContext:
    """Build the application context rooted at ``home`` (or the default dir)."""
    return AppContext(home=home, service=AccessService(home))
