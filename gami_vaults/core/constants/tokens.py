from __future__ import annotations

ZERO_ADDRESS = "0x0000000000000000000000000000000000000000"

USDC_MAINNET = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USDT_MAINNET = "0xdAC17F958D2ee523a2206206994597C13D831ec7"
WETH_MAINNET = "0xC02aaA39b223FE8D0A0e5C4F27eAD9083C756Cc2"
WBTC_MAINNET = "0x2260FAC5E5542a773Aa44fBCfeDf7C193bc2C599"

# symbol -> (address, decimals) on Ethereum mainnet
COMMON_TOKENS: dict[str, tuple[str, int]] = {
    "ETH": (ZERO_ADDRESS, 18),
    "WETH": (WETH_MAINNET, 18),
    "USDC": (USDC_MAINNET, 6),
    "USDT": (USDT_MAINNET, 6),
    "DAI": ("0x6B175474E89094C44Da98b954EedeAC495271d0F", 18),
    "BTC": (WBTC_MAINNET, 8),
    "WBTC": (WBTC_MAINNET, 8),
    "LBTC": ("0x8236a87084f8B84306f72007F36F2618A5634494", 8),
    "tBTC": ("0x18084fbA666a33d37592fA2633fD49a74DD93a88", 18),
    "wstETH": ("0x7f39C581F595B53c5cb19bD0b3f8dA6c935E2Ca0", 18),
    "stETH": ("0xae7ab96520DE3A18E5e111B5EaAb095312D7fE84", 18),
    "rETH": ("0xae78736Cd615f374D3085123A210448E74Fc6393", 18),
    "rsETH": ("0xA1290d69c65A6Fe4DF752f95823fae25cB99e5A7", 18),
    "USDe": ("0x4c9EDD5852cd905f086C759E8383e09bff1E68B3", 18),
    "sUSDe": ("0x9D39A5DE30e57443BfF2A8307A4256c8797A3497", 18),
}

# Fallback decimals when an index only reports the asset symbol.
KNOWN_TOKEN_DECIMALS: dict[str, int] = {
    "USDC": 6,
    "USDT": 6,
    "USDbC": 6,
    "WBTC": 8,
    "BTC": 8,
    "LBTC": 8,
    "cbBTC": 8,
}


def known_decimals(symbol: str | None, default: int = 18) -> int:
    if not symbol:
        return default
    return KNOWN_TOKEN_DECIMALS.get(symbol, default)
