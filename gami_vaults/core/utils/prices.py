from __future__ import annotations

from uuid import uuid4

from aiocache import Cache
from loguru import logger

from gami_vaults.core.constants.base import CACHE_TTL_PRICE
from gami_vaults.core.constants.chainlink import (
    CHAINLINK_AGGREGATOR_ABI,
    chainlink_feed_for,
)
from gami_vaults.core.utils.normalize import normalize_to_string, safe_parse_number
from gami_vaults.core.utils.web3 import web3_from_chain_id


class ChainlinkPriceOracle:
    """USD prices from Chainlink aggregators, memoized for ``ttl_s`` seconds."""

    def __init__(self, *, ttl_s: int = CACHE_TTL_PRICE) -> None:
        self._cache = Cache(Cache.MEMORY, namespace=f"price:{uuid4().hex}")
        self._ttl_s = ttl_s

    async def get_usd_price(self, token_address: str, chain_id: int) -> float:
        cache_key = f"price:{chain_id}:{token_address.lower()}"
        cached = await self._cache.get(cache_key)
        if cached is not None:
            return cached

        feed = chainlink_feed_for(token_address, chain_id)
        if feed is None:
            raise ValueError(
                f"No Chainlink feed for token {token_address} on chain {chain_id}"
            )

        async with web3_from_chain_id(chain_id) as web3:
            aggregator = web3.eth.contract(
                address=web3.to_checksum_address(feed), abi=CHAINLINK_AGGREGATOR_ABI
            )
            round_data = await aggregator.functions.latestRoundData().call()
            decimals = await aggregator.functions.decimals().call()

        answer = int(round_data[1])
        if answer <= 0:
            raise ValueError(f"Chainlink feed {feed} returned non-positive answer")
        price = answer / (10 ** int(decimals))
        logger.debug(f"Chainlink price for {token_address} on {chain_id}: {price}")
        await self._cache.set(cache_key, price, ttl=self._ttl_s)
        return price

    async def usd_value(self, token_address: str, amount: str, chain_id: int) -> str:
        """USD value of ``amount`` tokens; falls back to the raw token amount."""
        try:
            price = await self.get_usd_price(token_address, chain_id)
        except Exception as exc:  # noqa: BLE001
            logger.warning(
                f"Oracle price unavailable for {token_address} on {chain_id}, "
                f"using raw amount: {exc}"
            )
            return normalize_to_string(amount)
        return normalize_to_string(safe_parse_number(amount) * price)

    async def close(self) -> None:
        await self._cache.clear(namespace=self._cache.namespace)
