from __future__ import annotations

from web3 import AsyncWeb3

from gami_vaults.core.constants.erc20_abi import ERC20_ABI
from gami_vaults.core.constants.tokens import ZERO_ADDRESS
from gami_vaults.core.utils.web3 import web3_from_chain_id

NATIVE_TOKEN_ADDRESSES: set = {
    ZERO_ADDRESS,
    "0xeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeeee",
}


def is_native_token(token_address: str | None) -> bool:
    if token_address is None:
        return True
    normalized = str(token_address).strip().lower()
    if normalized in ("", "native"):
        return True
    return normalized in NATIVE_TOKEN_ADDRESSES


async def get_token_decimals(
    token_address: str | None,
    chain_id: int,
    *,
    web3: AsyncWeb3 | None = None,
    block_identifier: str | int = "latest",
    default_native_decimals: int = 18,
) -> int:
    if is_native_token(token_address):
        return int(default_native_decimals)

    async def _read_with_web3(w3: AsyncWeb3) -> int:
        checksum_token = w3.to_checksum_address(str(token_address))
        contract = w3.eth.contract(address=checksum_token, abi=ERC20_ABI)
        decimals = await contract.functions.decimals().call(
            block_identifier=block_identifier
        )
        return int(decimals)

    if web3 is None:
        async with web3_from_chain_id(chain_id) as w3:
            return await _read_with_web3(w3)
    return await _read_with_web3(web3)
