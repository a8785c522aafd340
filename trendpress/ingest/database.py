"""Snapshot source backed by the local ``snapshots`` table."""

from __future__ import annotations

import logging
from datetime import datetime

from trendpress.config import get_db_path
from trendpress.db import get_connection, list_snapshots
from trendpress.ingest import register_source
from trendpress.ingest.base import BaseSnapshotSource
from trendpress.models import TrendSnapshot

logger = logging.getLogger(__name__)


@register_source("database")
class DatabaseSnapshotSource(BaseSnapshotSource):

    @property
    def name(self) -> str:
        return "Database"

    async def list_snapshots(
        self, window_start: datetime, window_end: datetime,
    ) -> list[TrendSnapshot]:
        conn = get_connection(get_db_path(self.config))
        try:
            snapshots = list_snapshots(conn, window_start, window_end)
        finally:
            conn.close()
        logger.info(
            "Loaded %d snapshots between %s and %s",
            len(snapshots), window_start.isoformat(), window_end.isoformat(),
        )
        return snapshots
