from __future__ import annotations

import asyncio
import json
from unittest.mock import AsyncMock, patch

import httpx
import pytest

from gami_vaults.core.errors import InvalidInputError, NotFoundError
from gami_vaults.core.utils.retry import (
    exponential_backoff_s,
    is_transient_error,
    retry_async,
)


def _status_error(status: int) -> httpx.HTTPStatusError:
    request = httpx.Request("GET", "https://example.test")
    response = httpx.Response(status, request=request)
    return httpx.HTTPStatusError("boom", request=request, response=response)


def test_exponential_backoff():
    assert exponential_backoff_s(0) == 0.25
    assert exponential_backoff_s(2) == 1.0
    assert exponential_backoff_s(5, max_delay_s=2.0) == 2.0


@pytest.mark.parametrize(
    "exc,expected",
    [
        (_status_error(429), True),
        (_status_error(503), True),
        (_status_error(400), False),
        (_status_error(404), False),
        (httpx.ConnectError("down"), True),
        (httpx.ReadTimeout("slow"), True),
        (asyncio.TimeoutError(), True),
        (json.JSONDecodeError("bad", "", 0), True),
        (NotFoundError("gone"), False),
        (InvalidInputError("bad"), False),
        (RuntimeError("other"), False),
    ],
)
def test_is_transient_error(exc, expected):
    assert is_transient_error(exc) is expected


@pytest.mark.asyncio
async def test_retry_async_retries_transient_then_succeeds():
    fn = AsyncMock(side_effect=[httpx.ConnectError("down"), _status_error(503), "ok"])
    retries = []
    with patch("gami_vaults.core.utils.retry.asyncio.sleep", new=AsyncMock()) as sleep:
        result = await retry_async(
            fn, on_retry=lambda attempt, exc, delay: retries.append((attempt, delay))
        )
    assert result == "ok"
    assert fn.await_count == 3
    assert retries == [(0, 0.25), (1, 0.5)]
    assert sleep.await_count == 2


@pytest.mark.asyncio
async def test_retry_async_does_not_retry_not_found():
    fn = AsyncMock(side_effect=NotFoundError("gone"))
    with pytest.raises(NotFoundError):
        await retry_async(fn)
    assert fn.await_count == 1


@pytest.mark.asyncio
async def test_retry_async_gives_up_after_max_retries():
    fn = AsyncMock(side_effect=httpx.ConnectError("down"))
    with patch("gami_vaults.core.utils.retry.asyncio.sleep", new=AsyncMock()):
        with pytest.raises(httpx.ConnectError):
            await retry_async(fn, max_retries=3)
    assert fn.await_count == 3


@pytest.mark.asyncio
async def test_retry_async_rejects_zero_retries():
    with pytest.raises(ValueError):
        await retry_async(AsyncMock(), max_retries=0)
