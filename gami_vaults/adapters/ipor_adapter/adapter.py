from __future__ import annotations

from typing import Any
from uuid import uuid4

from aiocache import Cache

from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter, upstream_errors
from gami_vaults.core.clients.IporClient import IporClient, IporVault
from gami_vaults.core.constants.base import CACHE_TTL_PROVIDER_INDEX
from gami_vaults.core.constants.chains import CHAIN_ID_TO_CODE
from gami_vaults.core.constants.tokens import known_decimals
from gami_vaults.core.errors import NotFoundError
from gami_vaults.core.models import (
    Fees,
    Provider,
    RiskLevel,
    Strategist,
    Strategy,
    UnderlyingToken,
    VaultMetadata,
    VaultRecord,
    VaultStatus,
    VaultVariant,
)
from gami_vaults.core.utils.normalize import normalize_to_string
from gami_vaults.core.utils.tokens import get_token_decimals

IPOR_APP_URL = "https://app.ipor.io/fusion"
IPOR_LOGO = "https://app.ipor.io/favicon.ico"
_INDEX_CACHE_KEY = "ipor:vaults"


def dedupe_vaults(vaults: list[IporVault]) -> list[IporVault]:
    """Drop pilot vaults and keep the longest name per ``(chain, address)``."""
    unique: dict[tuple[int, str], IporVault] = {}
    for vault in vaults:
        name = str(vault.get("name") or "")
        if "pilot" in name.lower() or not vault.get("address"):
            continue
        key = (int(vault.get("chainId") or 0), str(vault["address"]).lower())
        existing = unique.get(key)
        if existing is None or len(name) > len(str(existing.get("name") or "")):
            unique[key] = vault
    return list(unique.values())


def transform_ipor_vault(vault: IporVault, *, decimals: int | None = None) -> VaultRecord:
    chain_id = int(vault["chainId"])
    asset = str(vault.get("asset") or "UNKNOWN")
    chain_name = CHAIN_ID_TO_CODE.get(chain_id, "unknown")
    return VaultRecord(
        id=str(vault["address"]),
        chain_id=chain_id,
        name=str(vault.get("name") or ""),
        symbol=f"ip{asset}",
        tvl_usd=normalize_to_string(vault.get("tvl")),
        apy_net=normalize_to_string(vault.get("apy")),
        fees=Fees(),
        underlying=UnderlyingToken(
            symbol=asset,
            address=str(vault.get("assetAddress") or ""),
            decimals=decimals if decimals is not None else known_decimals(asset),
        ),
        status=VaultStatus.ACTIVE,
        provider=Provider.IPOR,
        variant=VaultVariant.SYNC,
        strategy=Strategy(
            name="IPOR Fusion",
            description="Yield optimization with leveraged strategies",
            risk_level=RiskLevel.HIGH,
        ),
        strategist=Strategist(id="ipor-protocol", name="IPOR Protocol", logo=IPOR_LOGO),
        metadata=VaultMetadata(
            website=f"{IPOR_APP_URL}/{chain_name}/{str(vault['address']).lower()}",
            description=f"IPOR Plasma Vault for {asset}",
            logo=IPOR_LOGO,
        ),
    )


class IporAdapter(BaseVaultAdapter):
    """IPOR Fusion plasma vaults: index from the Fusion API, decimals from chain."""

    adapter_type = "IPOR"
    provider = Provider.IPOR
    variant = VaultVariant.SYNC

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        client: IporClient | None = None,
        index_ttl_s: int = CACHE_TTL_PROVIDER_INDEX,
    ) -> None:
        super().__init__("ipor_adapter", config)
        self.client = client or IporClient()
        self._cache = Cache(Cache.MEMORY, namespace=f"ipor:{uuid4().hex}")
        self._index_ttl_s = index_ttl_s

    async def _index(self) -> list[IporVault]:
        cached = await self._cache.get(_INDEX_CACHE_KEY)
        if cached is not None:
            return cached
        vaults = dedupe_vaults(await self.client.get_vaults())
        self.logger.debug(f"IPOR index refreshed with {len(vaults)} vaults")
        await self._cache.set(_INDEX_CACHE_KEY, vaults, ttl=self._index_ttl_s)
        return vaults

    async def _underlying_decimals(self, vault: IporVault) -> int:
        asset_address = vault.get("assetAddress")
        fallback = known_decimals(vault.get("asset"))
        if not asset_address:
            return fallback
        try:
            return await get_token_decimals(asset_address, int(vault["chainId"]))
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(
                f"Could not read decimals for {asset_address}, using {fallback}: {exc}"
            )
            return fallback

    @upstream_errors
    async def get_vault(self, chain_id: int, address: str) -> VaultRecord:
        self.require_address(address)
        for vault in await self._index():
            if int(vault.get("chainId") or 0) != int(chain_id):
                continue
            if str(vault["address"]).lower() == address.lower():
                decimals = await self._underlying_decimals(vault)
                return transform_ipor_vault(vault, decimals=decimals)
        raise NotFoundError(f"IPOR vault {address} not found on chain {chain_id}")

    @upstream_errors
    async def list_vaults(self, chain_ids: list[int]) -> list[VaultRecord]:
        wanted = {int(c) for c in chain_ids}
        return [
            transform_ipor_vault(v)
            for v in await self._index()
            if int(v.get("chainId") or 0) in wanted
        ]

    async def close(self) -> None:
        await self._cache.clear(namespace=self._cache.namespace)
        await self.client.close()
