CHAIN_ID_ETHEREUM = 1
CHAIN_ID_UNICHAIN = 130
CHAIN_ID_TAC = 239
CHAIN_ID_BASE = 8453
CHAIN_ID_ARBITRUM = 42161
CHAIN_ID_AVALANCHE = 43114
CHAIN_ID_INK = 57073

CHAIN_CODE_TO_ID = {
    "ethereum": CHAIN_ID_ETHEREUM,
    "mainnet": CHAIN_ID_ETHEREUM,
    "arbitrum": CHAIN_ID_ARBITRUM,
    "base": CHAIN_ID_BASE,
    "avalanche": CHAIN_ID_AVALANCHE,
    "unichain": CHAIN_ID_UNICHAIN,
    "tac": CHAIN_ID_TAC,
    "ink": CHAIN_ID_INK,
}

CHAIN_ID_TO_CODE: dict[int, str] = {
    v: k for k, v in CHAIN_CODE_TO_ID.items() if k != "mainnet"
}

DEFAULT_SUPPORTED_CHAINS = [CHAIN_ID_ETHEREUM]
