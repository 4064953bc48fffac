from __future__ import annotations

from unittest.mock import AsyncMock

import pytest
from eth_abi import decode
from eth_utils import function_signature_to_4byte_selector, to_checksum_address

from gami_vaults.core.errors import InvalidInputError, UnsupportedError, UpstreamError
from gami_vaults.core.models import (
    Provider,
    UnderlyingToken,
    VaultAction,
    VaultRecord,
    VaultVariant,
)
from gami_vaults.engine.transactions import (
    AsyncRedemptionStrategy,
    SyncRedemptionStrategy,
    TransactionBuilder,
    strategy_for,
)

VAULT = "0xdae854d0896ad2fee335689a3f7b4a95fd1a3e46"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"
USER = "0x81830bC5f811aF86fF6f17Fb9a619088B09Dff43"
SPENDER = "0x" + "5a" * 20


def _selector(signature: str) -> str:
    return "0x" + function_signature_to_4byte_selector(signature).hex()


def _vault(variant: VaultVariant, *, underlying: str = USDC) -> VaultRecord:
    return VaultRecord(
        id=VAULT,
        chain_id=1,
        name="Test Vault",
        symbol="tv",
        underlying=UnderlyingToken(symbol="USDC", address=underlying, decimals=6),
        provider=Provider.LAGOON if variant is VaultVariant.ASYNC else Provider.UPSHIFT,
        variant=variant,
    )


def _reader(decimals: dict[str, int] | None = None) -> AsyncMock:
    table = {USDC: 6, VAULT: 18, **(decimals or {})}
    return AsyncMock(side_effect=lambda token, chain_id: table[token])


def _args(data: str, types: list[str]) -> tuple:
    return decode(types, bytes.fromhex(data[10:]))


def test_strategy_for():
    assert isinstance(strategy_for(VaultVariant.SYNC), SyncRedemptionStrategy)
    assert isinstance(strategy_for("async"), AsyncRedemptionStrategy)
    with pytest.raises(InvalidInputError):
        strategy_for("hybrid")
    with pytest.raises(InvalidInputError):
        strategy_for(None)


@pytest.mark.asyncio
async def test_sync_deposit():
    reader = _reader()
    call = await TransactionBuilder(decimals_reader=reader).build(
        _vault(VaultVariant.SYNC), "deposit", "1.5", USER
    )

    assert call.to == to_checksum_address(VAULT)
    assert call.value == "0x0"
    assert call.chain_id == 1
    assert call.data.startswith(_selector("deposit(uint256,address)"))
    assets, receiver = _args(call.data, ["uint256", "address"])
    assert assets == 1_500_000
    assert receiver.lower() == USER.lower()
    reader.assert_awaited_once_with(USDC, 1)


@pytest.mark.asyncio
async def test_sync_withdraw_uses_share_decimals():
    reader = _reader()
    call = await TransactionBuilder(decimals_reader=reader).build(
        _vault(VaultVariant.SYNC), VaultAction.WITHDRAW, "2", USER
    )

    assert call.data.startswith(_selector("redeem(uint256,address,address)"))
    shares, receiver, owner = _args(call.data, ["uint256", "address", "address"])
    assert shares == 2 * 10**18
    assert receiver.lower() == owner.lower() == USER.lower()
    reader.assert_awaited_once_with(VAULT, 1)


@pytest.mark.asyncio
async def test_async_deposit_emits_request():
    call = await TransactionBuilder(decimals_reader=_reader()).build(
        _vault(VaultVariant.ASYNC), "deposit", "100", USER
    )

    assert call.data.startswith(_selector("requestDeposit(uint256,address,address)"))
    assert not call.data.startswith(_selector("deposit(uint256,address)"))
    assets, receiver, owner = _args(call.data, ["uint256", "address", "address"])
    assert assets == 100 * 10**6
    assert receiver.lower() == owner.lower() == USER.lower()


@pytest.mark.asyncio
async def test_async_withdraw_emits_request():
    call = await TransactionBuilder(decimals_reader=_reader()).build(
        _vault(VaultVariant.ASYNC), "withdraw", "0.5", USER
    )

    assert call.data.startswith(_selector("requestRedeem(uint256,address,address)"))
    assert not call.data.startswith(_selector("redeem(uint256,address,address)"))


@pytest.mark.asyncio
@pytest.mark.parametrize("variant", [VaultVariant.SYNC, VaultVariant.ASYNC])
async def test_approve_targets_underlying(variant):
    call = await TransactionBuilder(decimals_reader=_reader()).build(
        _vault(variant), "approve", "10", USER
    )

    assert call.to == USDC
    assert call.data.startswith("0x095ea7b3")
    spender, amount = _args(call.data, ["address", "uint256"])
    assert spender.lower() == VAULT.lower()
    assert amount == 10 * 10**6


@pytest.mark.asyncio
async def test_approve_custom_spender():
    call = await TransactionBuilder(decimals_reader=_reader()).build(
        _vault(VaultVariant.SYNC), "approve", "1", USER, spender=SPENDER
    )
    spender, _ = _args(call.data, ["address", "uint256"])
    assert spender.lower() == SPENDER


@pytest.mark.asyncio
async def test_approve_native_underlying_rejected():
    reader = _reader()
    with pytest.raises(InvalidInputError):
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC, underlying="0x" + "00" * 20), "approve", "1", USER
        )
    reader.assert_not_awaited()


@pytest.mark.asyncio
@pytest.mark.parametrize("action", ["deposit", "approve"])
@pytest.mark.parametrize("underlying", ["", "native", "USDC"])
async def test_unknown_underlying_address_rejected(action, underlying):
    reader = _reader()
    with pytest.raises(InvalidInputError, match="has no address"):
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC, underlying=underlying), action, "1", USER
        )
    reader.assert_not_awaited()


@pytest.mark.asyncio
async def test_withdraw_does_not_need_underlying_address():
    reader = _reader()
    call = await TransactionBuilder(decimals_reader=reader).build(
        _vault(VaultVariant.SYNC, underlying=""), "withdraw", "2", USER
    )
    assert call.data.startswith(_selector("redeem(uint256,address,address)"))
    reader.assert_awaited_once_with(VAULT, 1)


@pytest.mark.asyncio
@pytest.mark.parametrize("amount", ["0", "0.000", "-1", "abc", "1e18", "", "1,5"])
async def test_invalid_amount_rejected_before_chain_call(amount):
    reader = _reader()
    with pytest.raises(InvalidInputError):
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC), "deposit", amount, USER
        )
    reader.assert_not_awaited()


@pytest.mark.asyncio
async def test_excess_precision_rejected():
    with pytest.raises(InvalidInputError, match="fractional digits"):
        await TransactionBuilder(decimals_reader=_reader()).build(
            _vault(VaultVariant.SYNC), "deposit", "1.0000001", USER
        )


@pytest.mark.asyncio
async def test_invalid_user_address_rejected():
    reader = _reader()
    with pytest.raises(InvalidInputError):
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC), "deposit", "1", "not-an-address"
        )
    reader.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_action_rejected():
    reader = _reader()
    with pytest.raises(InvalidInputError):
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC), "claim", "1", USER
        )
    reader.assert_not_awaited()


@pytest.mark.asyncio
async def test_unknown_variant_rejected():
    vault = _vault(VaultVariant.SYNC).model_copy(update={"variant": "hybrid"})
    with pytest.raises(InvalidInputError):
        await TransactionBuilder(decimals_reader=_reader()).build(
            vault, "deposit", "1", USER
        )


@pytest.mark.asyncio
async def test_decimals_failure_fails_closed():
    reader = AsyncMock(side_effect=UnsupportedError("No RPC configured for chain ID 1"))
    with pytest.raises(UpstreamError) as exc_info:
        await TransactionBuilder(decimals_reader=reader).build(
            _vault(VaultVariant.SYNC), "deposit", "1", USER
        )
    assert exc_info.value.provider == "upshift"


@pytest.mark.asyncio
async def test_implausible_decimals_rejected():
    with pytest.raises(UpstreamError):
        await TransactionBuilder(decimals_reader=_reader({USDC: 255})).build(
            _vault(VaultVariant.SYNC), "deposit", "1", USER
        )
