"""Exponential backoff for outbound generation and publishing calls."""

from __future__ import annotations

import asyncio
import logging

import httpx

logger = logging.getLogger(__name__)

RETRYABLE_HTTP_CODES = {429, 500, 502, 503, 504}
RETRYABLE_EXCEPTIONS = (
    httpx.TimeoutException,
    httpx.ConnectError,
    httpx.RemoteProtocolError,
    ConnectionError,
    TimeoutError,
)
# anthropic SDK errors, matched by name so this module does not import the SDK
RETRYABLE_SDK_ERRORS = {
    "RateLimitError",
    "OverloadedError",
    "InternalServerError",
    "APIConnectionError",
    "APITimeoutError",
}


def _backoff(attempt: int, base_delay: float, max_delay: float) -> float:
    return min(base_delay * (2**attempt), max_delay)


def _retry_after(response: httpx.Response, fallback: float, max_delay: float) -> float:
    value = response.headers.get("retry-after")
    if not value:
        return fallback
    try:
        return min(float(value), max_delay)
    except ValueError:
        return fallback


async def retry_async(
    fn,
    *args,
    max_retries: int = 3,
    base_delay: float = 1.0,
    max_delay: float = 60.0,
    **kwargs,
):
    """Await ``fn(*args, **kwargs)``, retrying transient failures.

    Retried: httpx timeouts and connection errors, HTTP 429/5xx (honouring
    ``Retry-After``), and the anthropic SDK's rate-limit/overload errors.
    Anything else propagates on the first failure. After the last attempt
    the final exception is re-raised unchanged.
    """
    last_exc: BaseException | None = None
    for attempt in range(max_retries + 1):
        try:
            return await fn(*args, **kwargs)
        except RETRYABLE_EXCEPTIONS as exc:
            last_exc = exc
            if attempt == max_retries:
                break
            delay = _backoff(attempt, base_delay, max_delay)
            logger.warning(
                "Retry %d/%d after %s: %s (waiting %.1fs)",
                attempt + 1, max_retries, type(exc).__name__, exc, delay,
            )
        except httpx.HTTPStatusError as exc:
            if exc.response.status_code not in RETRYABLE_HTTP_CODES:
                raise
            last_exc = exc
            if attempt == max_retries:
                break
            delay = _retry_after(
                exc.response, _backoff(attempt, base_delay, max_delay), max_delay,
            )
            logger.warning(
                "Retry %d/%d after HTTP %d (waiting %.1fs)",
                attempt + 1, max_retries, exc.response.status_code, delay,
            )
        except Exception as exc:
            exc_name = type(exc).__name__
            if exc_name not in RETRYABLE_SDK_ERRORS:
                raise
            last_exc = exc
            if attempt == max_retries:
                break
            delay = _backoff(attempt, base_delay, max_delay)
            logger.warning(
                "Retry %d/%d after %s (waiting %.1fs)",
                attempt + 1, max_retries, exc_name, delay,
            )
        await asyncio.sleep(delay)

    raise last_exc  # type: ignore[misc]
