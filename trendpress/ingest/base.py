"""Abstract base class for trend snapshot sources."""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime

from trendpress.models import TrendSnapshot


class BaseSnapshotSource(ABC):
    """Supplies the raw trending-list rows a sync pass clusters."""

    def __init__(self, config: dict):
        self.config = config

    @abstractmethod
    async def list_snapshots(
        self, window_start: datetime, window_end: datetime,
    ) -> list[TrendSnapshot]:
        """Snapshots captured inside [window_start, window_end], newest first."""
        ...

    @property
    @abstractmethod
    def name(self) -> str:
        """Human-readable source name."""
        ...
