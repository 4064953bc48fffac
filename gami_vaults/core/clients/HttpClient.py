import asyncio
import time
from typing import Any

import httpx
from loguru import logger

from gami_vaults.core.constants.base import (
    DEFAULT_HTTP_TIMEOUT,
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_S,
)
from gami_vaults.core.errors import NotFoundError
from gami_vaults.core.utils.retry import retry_async


class HttpClient:
    """Shared httpx plumbing: one AsyncClient, timing logs, retry on transient errors."""

    name = "http"

    def __init__(
        self,
        *,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT,
        max_retries: int = DEFAULT_MAX_RETRIES,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        self._timeout = httpx.Timeout(timeout_s)
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=self._timeout)
        self.max_retries = max_retries
        self.headers = {
            "Accept": "application/json",
            "User-Agent": "gami-vaults/0.1",
        }
        self._client_loop: asyncio.AbstractEventLoop | None = None

    async def _reset_client(self) -> None:
        if not self._owns_client:
            return
        try:
            await self.client.aclose()
        except Exception:  # noqa: BLE001
            pass
        self.client = httpx.AsyncClient(timeout=self._timeout)

    async def _ensure_client(self) -> None:
        loop = asyncio.get_running_loop()
        if self._client_loop is None:
            self._client_loop = loop
            return
        if self._client_loop is not loop or getattr(self.client, "is_closed", False):
            await self._reset_client()
            self._client_loop = loop

    async def _send(
        self,
        method: str,
        url: str,
        *,
        headers: dict[str, str] | None = None,
        **kwargs: Any,
    ) -> httpx.Response:
        await self._ensure_client()
        logger.debug(f"Making {method} request to {url}")
        start_time = time.time()

        merged_headers = dict(self.headers)
        if headers:
            merged_headers.update(headers)
        resp = await self.client.request(method, url, headers=merged_headers, **kwargs)

        elapsed = time.time() - start_time
        if resp.status_code >= 400:
            logger.warning(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )
        else:
            logger.debug(
                f"HTTP {resp.status_code} response for {method} {url} after {elapsed:.2f}s"
            )

        if resp.status_code == 404:
            raise NotFoundError(f"{self.name}: {url} not found")
        resp.raise_for_status()
        return resp

    def _on_retry(self, attempt: int, exc: Exception, delay_s: float) -> None:
        logger.warning(
            "{} request failed (attempt {}/{}): {}; retrying in {:.2f}s",
            self.name,
            attempt + 1,
            self.max_retries,
            type(exc).__name__,
            delay_s,
        )

    async def _request(self, method: str, url: str, **kwargs: Any) -> httpx.Response:
        return await retry_async(
            lambda: self._send(method, url, **kwargs),
            max_retries=self.max_retries,
            base_delay_s=DEFAULT_RETRY_BASE_DELAY_S,
            on_retry=self._on_retry,
        )

    async def _get_json(self, url: str, **kwargs: Any) -> Any:
        resp = await self._request("GET", url, **kwargs)
        return resp.json()

    async def close(self) -> None:
        if self._owns_client:
            await self.client.aclose()
