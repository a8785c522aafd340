"""Snapshot source registry."""

from __future__ import annotations

from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from trendpress.ingest.base import BaseSnapshotSource

SOURCES: dict[str, type[BaseSnapshotSource]] = {}


def register_source(name: str):
    """Decorator to register a snapshot source."""

    def decorator(cls):
        SOURCES[name] = cls
        return cls

    return decorator


# Import implementations to trigger registration
from trendpress.ingest.database import DatabaseSnapshotSource  # noqa: E402, F401
