from __future__ import annotations

from gami_vaults.core.constants.chains import CHAIN_ID_ETHEREUM
from gami_vaults.core.models import CuratedVault, Provider

# Upshift vaults hold funds in subaccounts, so TVL cannot be read from the
# vault contract balance. The August vault summary aggregates subaccounts.
_SUBACCOUNT_NOTE = "Funds in subaccounts; TVL comes from the vault summary"

CURATED_VAULTS: tuple[CuratedVault, ...] = (
    CuratedVault(
        address="0xD066649Bcb7d8D3335fE29CaD0AED6E17D5828B5",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Upshift USDC Vault",
        underlying_symbol="USDC",
        provider=Provider.UPSHIFT,
        external_url="https://app.upshift.finance/pools/1/0xD066649Bcb7d8D3335fE29CaD0AED6E17D5828B5",
        note=_SUBACCOUNT_NOTE,
    ),
    CuratedVault(
        address="0x0985C88929A776a2E059615137a48bA5A473E25D",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Upshift USDC Vault",
        underlying_symbol="USDC",
        provider=Provider.UPSHIFT,
        external_url="https://app.upshift.finance/pools/1/0x0985C88929A776a2E059615137a48bA5A473E25D",
        note=_SUBACCOUNT_NOTE,
    ),
    CuratedVault(
        address="0x6625bA54DC861e9f5c678983dBa5BA96d19a9224",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Upshift BTC Vault",
        underlying_symbol="BTC",
        provider=Provider.UPSHIFT,
        external_url="https://app.upshift.finance/pools/1/0x6625bA54DC861e9f5c678983dBa5BA96d19a9224",
    ),
    CuratedVault(
        address="0xdae854d0896ad2fee335689a3f7b4a95fd1a3e46",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Gami USDC",
        underlying_symbol="USDC",
        provider=Provider.LAGOON,
        external_url="https://app.lagoon.finance/vault/1/0xdae854d0896ad2fee335689a3f7b4a95fd1a3e46",
    ),
    CuratedVault(
        address="0x59b7942f7d2afd085691ce65c152e0d38d4eff22",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Gami Capital lvlUSD",
        underlying_symbol="USDC",
        provider=Provider.LAGOON,
        external_url="https://app.lagoon.finance/vault/1/0x59b7942f7d2afd085691ce65c152e0d38d4eff22",
    ),
    CuratedVault(
        address="0x33e1339567c183fbadcb43f72d11c47229d468ab",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Gami Stake DAO USDC",
        underlying_symbol="USDC",
        provider=Provider.LAGOON,
        external_url="https://app.lagoon.finance/vault/1/0x33e1339567c183fbadcb43f72d11c47229d468ab",
    ),
    CuratedVault(
        address="0x414070fb9e64fd69160d75da57e75ba11f9f605a",
        chain_id=CHAIN_ID_ETHEREUM,
        name="Gami WBTC",
        underlying_symbol="WBTC",
        provider=Provider.LAGOON,
        external_url="https://v1.lagoon.finance/vault/1/0x414070fb9e64fd69160d75da57e75ba11f9f605a",
    ),
)


class CuratedVaultRegistry:
    """Immutable lookup of curated vaults keyed by ``(lowercase address, chain)``."""

    def __init__(self, vaults: tuple[CuratedVault, ...] | list[CuratedVault] = CURATED_VAULTS):
        self._vaults = tuple(vaults)
        self._by_key = {(v.address.lower(), int(v.chain_id)): v for v in self._vaults}

    def get(self, address: str, chain_id: int) -> CuratedVault | None:
        return self._by_key.get((str(address).lower(), int(chain_id)))

    def is_curated(self, address: str, chain_id: int) -> bool:
        return self.get(address, chain_id) is not None

    def provider_for(self, address: str, chain_id: int) -> Provider | None:
        vault = self.get(address, chain_id)
        return vault.provider if vault else None

    def all(self) -> tuple[CuratedVault, ...]:
        return self._vaults

    def by_provider(self, provider: Provider | str) -> list[CuratedVault]:
        return [v for v in self._vaults if v.provider == provider]

    def by_chain(self, chain_ids: list[int] | tuple[int, ...]) -> list[CuratedVault]:
        wanted = {int(c) for c in chain_ids}
        return [v for v in self._vaults if v.chain_id in wanted]

    def __len__(self) -> int:
        return len(self._vaults)

    def __iter__(self):
        return iter(self._vaults)


CURATED_REGISTRY = CuratedVaultRegistry()
