from __future__ import annotations

ERC4626_ABI = [
    {
        "type": "function",
        "stateMutability": "view",
        "name": "asset",
        "inputs": [],
        "outputs": [{"name": "", "type": "address"}],
    },
    # --- ERC-20 metadata (ERC-4626 shares are ERC-20) ---
    {
        "type": "function",
        "stateMutability": "view",
        "name": "name",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "symbol",
        "inputs": [],
        "outputs": [{"name": "", "type": "string"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "decimals",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint8"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "totalSupply",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "view",
        "name": "totalAssets",
        "inputs": [],
        "outputs": [{"name": "", "type": "uint256"}],
    },
    # Lagoon vaults expose a pause flag; plain ERC-4626 vaults may not.
    {
        "type": "function",
        "stateMutability": "view",
        "name": "paused",
        "inputs": [],
        "outputs": [{"name": "", "type": "bool"}],
    },
    # --- synchronous flow ---
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "deposit",
        "inputs": [
            {"name": "assets", "type": "uint256"},
            {"name": "receiver", "type": "address"},
        ],
        "outputs": [{"name": "shares", "type": "uint256"}],
    },
    {
        "type": "function",
        "stateMutability": "nonpayable",
        "name": "redeem",
        "inputs": [
            {"name": "shares", "type": "uint256"},
            {"name": "receiver", "type": "address"},
            {"name": "owner", "type": "address"},
        ],
        "outputs": [{"name": "assets", "type": "uint256"}],
    },
]
