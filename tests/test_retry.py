"""Tests for retry logic."""

from __future__ import annotations

import httpx
import pytest

from trendpress.retry import retry_async

URL = "https://gateway.example.com/publish"


def _status_error(code, headers=None):
    request = httpx.Request("POST", URL)
    response = httpx.Response(code, request=request, headers=headers or {})
    return httpx.HTTPStatusError(f"HTTP {code}", request=request, response=response)


@pytest.mark.asyncio
async def test_retry_succeeds_on_first_try():
    """No retries needed when function succeeds."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        return "ok"

    result = await retry_async(fn)
    assert result == "ok"
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_succeeds_after_transient_failure():
    """Retries on transient error and eventually succeeds."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        if call_count < 3:
            raise ConnectionError("transient")
        return "ok"

    result = await retry_async(fn, max_retries=3, base_delay=0.01)
    assert result == "ok"
    assert call_count == 3


@pytest.mark.asyncio
async def test_retry_exhausts_retries():
    """Raises after max retries exhausted."""

    async def fn():
        raise TimeoutError("always fails")

    with pytest.raises(TimeoutError, match="always fails"):
        await retry_async(fn, max_retries=2, base_delay=0.01)


@pytest.mark.asyncio
async def test_retry_does_not_retry_non_transient():
    """Non-retryable exceptions are raised immediately."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        raise ValueError("bad input")

    with pytest.raises(ValueError, match="bad input"):
        await retry_async(fn, max_retries=3, base_delay=0.01)
    assert call_count == 1


@pytest.mark.asyncio
async def test_retry_on_server_error_status():
    """HTTP 503 is retried, honouring a short Retry-After."""
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise _status_error(503, {"retry-after": "0"})
        return "ok"

    assert await retry_async(fn, max_retries=2, base_delay=0.01) == "ok"
    assert call_count == 2


@pytest.mark.asyncio
async def test_client_error_status_not_retried():
    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        raise _status_error(400)

    with pytest.raises(httpx.HTTPStatusError):
        await retry_async(fn, max_retries=3, base_delay=0.01)
    assert call_count == 1


@pytest.mark.asyncio
async def test_sdk_rate_limit_error_retried_by_name():
    class RateLimitError(Exception):
        pass

    call_count = 0

    async def fn():
        nonlocal call_count
        call_count += 1
        if call_count == 1:
            raise RateLimitError("slow down")
        return "ok"

    assert await retry_async(fn, max_retries=1, base_delay=0.01) == "ok"
    assert call_count == 2
