"""Read side of the performance metrics recorded for published drafts."""

from __future__ import annotations

import sqlite3
from dataclasses import dataclass, field
from datetime import datetime

from trendpress.db import query_performance_metrics
from trendpress.models import Page

DEFAULT_PAGE_SIZE = 20
MAX_PAGE_SIZE = 100


@dataclass
class MetricsPage(Page):
    """A page of metrics plus counter sums and mean CTR over the whole filter."""

    summary: dict[str, float] = field(default_factory=dict)


def list_performance_metrics(
    conn: sqlite3.Connection,
    account_id: int | None = None,
    since: datetime | None = None,
    until: datetime | None = None,
    page: int = 1,
    page_size: int = DEFAULT_PAGE_SIZE,
) -> MetricsPage:
    page = max(1, int(page if page is not None else 1))
    if page_size is None:
        page_size = DEFAULT_PAGE_SIZE
    page_size = min(MAX_PAGE_SIZE, max(1, int(page_size)))
    items, total, summary = query_performance_metrics(
        conn,
        account_id=account_id,
        since=since,
        until=until,
        limit=page_size,
        offset=(page - 1) * page_size,
    )
    return MetricsPage(
        items=items, page=page, page_size=page_size, total=total, summary=summary,
    )
