from __future__ import annotations

from contextlib import asynccontextmanager
from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gami_vaults.core.constants.tokens import USDC_MAINNET, WBTC_MAINNET
from gami_vaults.core.utils.prices import ChainlinkPriceOracle

PRICES_MODULE = "gami_vaults.core.utils.prices"


def _aggregator(answer: int, decimals: int = 8) -> MagicMock:
    aggregator = MagicMock()
    aggregator.functions.latestRoundData.return_value = MagicMock(
        call=AsyncMock(return_value=(1, answer, 0, 0, 1))
    )
    aggregator.functions.decimals.return_value = MagicMock(
        call=AsyncMock(return_value=decimals)
    )
    return aggregator


@pytest.fixture
def web3_factory():
    calls = []

    def install(aggregator: MagicMock):
        web3 = MagicMock()
        web3.eth.contract = MagicMock(return_value=aggregator)
        web3.to_checksum_address = MagicMock(side_effect=lambda a: a)

        @asynccontextmanager
        async def mock_web3_ctx(chain_id):
            calls.append(chain_id)
            yield web3

        return patch(f"{PRICES_MODULE}.web3_from_chain_id", mock_web3_ctx)

    install.calls = calls
    return install


@pytest.mark.asyncio
async def test_get_usd_price_is_cached(web3_factory):
    oracle = ChainlinkPriceOracle()
    with web3_factory(_aggregator(65_000 * 10**8)):
        assert await oracle.get_usd_price(WBTC_MAINNET, 1) == 65_000
        assert await oracle.get_usd_price(WBTC_MAINNET.lower(), 1) == 65_000
    assert web3_factory.calls == [1]
    await oracle.close()


@pytest.mark.asyncio
async def test_get_usd_price_without_feed():
    oracle = ChainlinkPriceOracle()
    with pytest.raises(ValueError, match="No Chainlink feed"):
        await oracle.get_usd_price("0x" + "42" * 20, 1)


@pytest.mark.asyncio
async def test_get_usd_price_rejects_non_positive_answer(web3_factory):
    oracle = ChainlinkPriceOracle()
    with web3_factory(_aggregator(0)):
        with pytest.raises(ValueError, match="non-positive"):
            await oracle.get_usd_price(USDC_MAINNET, 1)


@pytest.mark.asyncio
async def test_usd_value(web3_factory):
    oracle = ChainlinkPriceOracle()
    with web3_factory(_aggregator(2 * 10**8)):
        assert await oracle.usd_value(WBTC_MAINNET, "1.5", 1) == "3"


@pytest.mark.asyncio
async def test_usd_value_falls_back_to_amount():
    oracle = ChainlinkPriceOracle()
    assert await oracle.usd_value("0x" + "42" * 20, "12.5", 1) == "12.5"
