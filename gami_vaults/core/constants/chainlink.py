from __future__ import annotations

from gami_vaults.core.constants.chains import CHAIN_ID_ETHEREUM

CHAINLINK_AGGREGATOR_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "latestRoundData",
        "inputs": [],
        "outputs": [
            {"name": "roundId", "type": "uint80"},
            {"name": "answer", "type": "int256"},
            {"name": "startedAt", "type": "uint256"},
            {"name": "updatedAt", "type": "uint256"},
            {"name": "answeredInRound", "type": "uint80"},
        ],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "decimals",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
]

# token (lowercase) -> USD aggregator
CHAINLINK_USD_FEEDS: dict[int, dict[str, str]] = {
    CHAIN_ID_ETHEREUM: {
        # WBTC priced with the BTC/USD feed
        "0x2260fac5e5542a773aa44fbcfedf7c193bc2c599": "0xF4030086522a5bEEA4988F8Ca5B36dbC97BeE88c",
        "0xc02aaa39b223fe8d0a0e5c4f27ead9083c756cc2": "0x5f4eC3Df9cbd43714FE2740f5E3616155c5b8419",
        "0xa0b86991c6218b36c1d19d4a2e9eb0ce3606eb48": "0x8fFfFfd4AfB6115b954Bd326cbe7B4BA576818f6",
        "0xdac17f958d2ee523a2206206994597c13d831ec7": "0x3E7d1eAB13ad0104d2750B8863b489D65364e32D",
    },
}


def chainlink_feed_for(token_address: str, chain_id: int) -> str | None:
    return CHAINLINK_USD_FEEDS.get(int(chain_id), {}).get(str(token_address).lower())
