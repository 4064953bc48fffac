from __future__ import annotations

import asyncio
import json
from collections.abc import Awaitable, Callable
from typing import TypeVar

import httpx

from gami_vaults.core.errors import InvalidInputError, NotFoundError

T = TypeVar("T")

RETRYABLE_HTTP_STATUS = frozenset({429, 500, 502, 503, 504})


def exponential_backoff_s(
    attempt: int, *, base_delay_s: float = 0.25, max_delay_s: float | None = None
) -> float:
    delay_s = base_delay_s * (2**attempt)
    if max_delay_s is not None:
        delay_s = min(delay_s, max_delay_s)
    return delay_s


def is_transient_error(exc: BaseException) -> bool:
    """Network blips, timeouts, rate limits and 5xx. Never not-found or bad input."""
    if isinstance(exc, (NotFoundError, InvalidInputError)):
        return False
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in RETRYABLE_HTTP_STATUS
    if isinstance(exc, (httpx.TransportError, httpx.TimeoutException)):
        return True
    if isinstance(exc, (asyncio.TimeoutError, json.JSONDecodeError)):
        return True
    return False


async def retry_async(
    fn: Callable[[], Awaitable[T]],
    *,
    max_retries: int = 3,
    base_delay_s: float = 0.25,
    max_delay_s: float | None = None,
    should_retry: Callable[[Exception], bool] | None = is_transient_error,
    get_delay_s: Callable[[int, Exception], float] | None = None,
    on_retry: Callable[[int, Exception, float], None] | None = None,
) -> T:
    if max_retries < 1:
        raise ValueError("max_retries must be >= 1")

    for attempt in range(max_retries):
        try:
            return await fn()
        except Exception as exc:  # noqa: BLE001
            if attempt >= max_retries - 1:
                raise
            if should_retry is not None and not should_retry(exc):
                raise

            delay_s = (
                get_delay_s(attempt, exc)
                if get_delay_s is not None
                else exponential_backoff_s(
                    attempt, base_delay_s=base_delay_s, max_delay_s=max_delay_s
                )
            )
            if on_retry is not None:
                on_retry(attempt, exc, delay_s)
            await asyncio.sleep(delay_s)

    raise RuntimeError("retry_async exhausted retries")
