import asyncio
from contextlib import asynccontextmanager
from typing import Any

from aiohttp import ClientTimeout
from loguru import logger
from web3 import AsyncHTTPProvider, AsyncWeb3

from gami_vaults.core.config import get_rpc_url
from gami_vaults.core.constants.base import (
    DEFAULT_MAX_RETRIES,
    DEFAULT_RETRY_BASE_DELAY_S,
    RPC_TIMEOUT_S,
)
from gami_vaults.core.errors import UnsupportedError

_RETRYABLE_RPC_STATUS_CODES = {429, 502, 503, 504}


def _extract_http_status(exc: Exception) -> int | None:
    for attr in ("status", "status_code"):
        value = getattr(exc, attr, None)
        if isinstance(value, int):
            return value
    response = getattr(exc, "response", None)
    if response is not None:
        code = getattr(response, "status_code", None)
        if isinstance(code, int):
            return code
    return None


class _RetryingRpcProvider(AsyncHTTPProvider):
    """HTTP provider that backs off on rate limits and gateway errors."""

    def __init__(
        self,
        rpc: str,
        chain_id: int,
        *,
        max_retries: int = DEFAULT_MAX_RETRIES,
        base_delay_s: float = DEFAULT_RETRY_BASE_DELAY_S,
        request_kwargs: dict[str, Any] | None = None,
    ):
        super().__init__(rpc, request_kwargs=request_kwargs)
        self.chain_id = chain_id
        self.max_retries = max_retries
        self.base_delay_s = base_delay_s

    async def make_request(self, method, params):  # type: ignore[override]
        for attempt in range(self.max_retries):
            try:
                return await super().make_request(method, params)
            except Exception as exc:
                status = _extract_http_status(exc)
                retryable = status in _RETRYABLE_RPC_STATUS_CODES or isinstance(
                    exc, asyncio.TimeoutError
                )
                if retryable and attempt < (self.max_retries - 1):
                    logger.warning(
                        f"RPC {method} failed on chain {self.chain_id} "
                        f"(attempt {attempt + 1}/{self.max_retries}): {exc}"
                    )
                    await asyncio.sleep(self.base_delay_s * (2**attempt))
                    continue
                raise


def _get_web3(rpc: str, chain_id: int) -> AsyncWeb3:
    provider = _RetryingRpcProvider(
        rpc,
        chain_id,
        request_kwargs={
            "headers": AsyncHTTPProvider.get_request_headers(),
            "timeout": ClientTimeout(total=RPC_TIMEOUT_S),
        },
    )
    return AsyncWeb3(provider)


def get_web3_from_chain_id(chain_id: int) -> AsyncWeb3:
    rpc = get_rpc_url(chain_id)
    if not rpc:
        raise UnsupportedError(f"No RPC configured for chain ID {chain_id}")
    return _get_web3(rpc, chain_id)


@asynccontextmanager
async def web3_from_chain_id(chain_id: int):
    web3 = get_web3_from_chain_id(chain_id)
    try:
        yield web3
    finally:
        await web3.provider.disconnect()
