"""Run one coroutine per item with failures isolated to that item."""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Iterable

logger = logging.getLogger(__name__)


@dataclass
class FanOutResult:
    success_count: int = 0
    fail_count: int = 0
    results: list[Any] = field(default_factory=list)
    errors: list[BaseException] = field(default_factory=list)


async def fan_out(
    items: Iterable[Any],
    worker: Callable[[Any], Awaitable[Any]],
    label: str = "item",
) -> FanOutResult:
    """Await ``worker(item)`` for every item concurrently.

    A failing item is logged and counted; it never cancels its siblings.
    ``results`` holds the return values of the successful calls in input
    order.
    """
    async def _run(item: Any) -> tuple[bool, Any]:
        try:
            return True, await worker(item)
        except Exception as exc:
            logger.exception("Processing %s failed: %r", label, item)
            return False, exc

    outcomes = await asyncio.gather(*[_run(item) for item in items])

    result = FanOutResult()
    for ok, value in outcomes:
        if ok:
            result.success_count += 1
            result.results.append(value)
        else:
            result.fail_count += 1
            result.errors.append(value)
    return result
