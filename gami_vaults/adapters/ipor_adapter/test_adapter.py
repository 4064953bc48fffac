from __future__ import annotations

from unittest.mock import AsyncMock, MagicMock, patch

import pytest

from gami_vaults.adapters.ipor_adapter.adapter import (
    IporAdapter,
    dedupe_vaults,
    transform_ipor_vault,
)
from gami_vaults.core.errors import NotFoundError, UpstreamError
from gami_vaults.core.models import Provider, RiskLevel, VaultVariant

ADAPTER_MODULE = "gami_vaults.adapters.ipor_adapter.adapter"
VAULT = "0x43Ee0243eA8CF02f7087d8B16C8D2007CC9c7cA2"
USDC = "0xA0b86991c6218b36c1d19D4a2e9Eb0cE3606eB48"


def _ipor_vault(**overrides) -> dict:
    vault = {
        "address": VAULT,
        "chainId": 1,
        "name": "IPOR USDC Prime",
        "asset": "USDC",
        "assetAddress": USDC,
        "tvl": "5200000.12",
        "apy": "0.0915",
    }
    vault.update(overrides)
    return vault


@pytest.fixture
def client():
    client = MagicMock()
    client.get_vaults = AsyncMock(return_value=[_ipor_vault()])
    client.close = AsyncMock()
    return client


@pytest.fixture
def adapter(client):
    return IporAdapter(client=client)


def test_adapter_type(adapter):
    assert adapter.adapter_type == "IPOR"
    assert adapter.provider is Provider.IPOR
    assert adapter.variant is VaultVariant.SYNC


def test_dedupe_drops_pilots_and_keeps_longest_name():
    vaults = dedupe_vaults(
        [
            _ipor_vault(name="IPOR USDC"),
            _ipor_vault(address=VAULT.lower(), name="IPOR USDC Prime Long"),
            _ipor_vault(address="0x" + "11" * 20, name="Pilot USDC"),
            _ipor_vault(address=None),
            _ipor_vault(chainId=8453, name="Base"),
        ]
    )
    assert sorted(v["name"] for v in vaults) == ["Base", "IPOR USDC Prime Long"]


def test_transform_ipor_vault():
    record = transform_ipor_vault(_ipor_vault(), decimals=6)
    assert record.symbol == "ipUSDC"
    assert record.tvl_usd == "5200000.12"
    assert record.apy_net == "0.0915"
    assert record.underlying.decimals == 6
    assert record.strategy.risk_level is RiskLevel.HIGH
    assert record.strategist.id == "ipor-protocol"
    assert record.metadata.website == f"https://app.ipor.io/fusion/ethereum/{VAULT.lower()}"


def test_transform_uses_known_decimals_without_chain_read():
    assert transform_ipor_vault(_ipor_vault()).underlying.decimals == 6
    assert transform_ipor_vault(_ipor_vault(asset="WETH")).underlying.decimals == 18


def test_transform_rejects_non_numeric_values():
    record = transform_ipor_vault(_ipor_vault(tvl="n/a", apy=None))
    assert record.tvl_usd == "0"
    assert record.apy_net == "0"


@pytest.mark.asyncio
async def test_get_vault_reads_decimals_on_chain(adapter):
    with patch(
        f"{ADAPTER_MODULE}.get_token_decimals", new=AsyncMock(return_value=6)
    ) as mock_decimals:
        record = await adapter.get_vault(1, VAULT.lower())

    assert record.id == VAULT
    assert record.underlying.decimals == 6
    mock_decimals.assert_awaited_once_with(USDC, 1)


@pytest.mark.asyncio
async def test_get_vault_falls_back_to_known_decimals(adapter):
    with patch(
        f"{ADAPTER_MODULE}.get_token_decimals",
        new=AsyncMock(side_effect=RuntimeError("rpc down")),
    ):
        record = await adapter.get_vault(1, VAULT)
    assert record.underlying.decimals == 6


@pytest.mark.asyncio
async def test_get_vault_not_found(adapter):
    with pytest.raises(NotFoundError):
        await adapter.get_vault(8453, VAULT)


@pytest.mark.asyncio
async def test_index_is_cached(adapter, client):
    with patch(f"{ADAPTER_MODULE}.get_token_decimals", new=AsyncMock(return_value=6)):
        await adapter.get_vault(1, VAULT)
        await adapter.get_vault(1, VAULT)
    await adapter.list_vaults([1])
    assert client.get_vaults.await_count == 1


@pytest.mark.asyncio
async def test_index_failure_is_upstream(adapter, client):
    client.get_vaults.side_effect = RuntimeError("api down")
    with pytest.raises(UpstreamError):
        await adapter.list_vaults([1])


@pytest.mark.asyncio
async def test_list_vaults_filters_chain(adapter, client):
    client.get_vaults.return_value = [
        _ipor_vault(),
        _ipor_vault(address="0x" + "22" * 20, chainId=42161, name="Arb"),
    ]
    records = await adapter.list_vaults([42161])
    assert [r.name for r in records] == ["Arb"]


@pytest.mark.asyncio
async def test_close(adapter, client):
    await adapter.close()
    client.close.assert_awaited_once()
