from __future__ import annotations

import asyncio
import time
from collections.abc import Callable
from dataclasses import dataclass
from datetime import UTC, datetime
from decimal import Decimal
from typing import Any

from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter, upstream_errors
from gami_vaults.core.clients.LagoonSubgraphClient import LagoonSubgraphClient
from gami_vaults.core.config import get_lagoon_subgraph_url
from gami_vaults.core.constants.base import UNKNOWN_VAULT_AGE
from gami_vaults.core.constants.erc4626_abi import ERC4626_ABI
from gami_vaults.core.constants.tokens import COMMON_TOKENS, ZERO_ADDRESS
from gami_vaults.core.errors import InvalidInputError, UnsupportedError
from gami_vaults.core.models import (
    ActivityType,
    CuratedVault,
    Fees,
    HistoricalPoint,
    PeriodSummary,
    Provider,
    UnderlyingToken,
    VaultActivity,
    VaultMetadata,
    VaultRecord,
    VaultStatus,
    VaultVariant,
    YieldWindows,
)
from gami_vaults.core.utils.normalize import normalize_to_string, safe_parse_int
from gami_vaults.core.utils.prices import ChainlinkPriceOracle
from gami_vaults.core.utils.tokens import get_token_decimals
from gami_vaults.core.utils.units import format_units
from gami_vaults.core.utils.web3 import web3_from_chain_id
from gami_vaults.core.utils.yields import (
    HISTORY_PERIODS,
    compute_yield_windows,
    historical_series,
    vault_age_days,
)

LAGOON_APP_URL = "https://app.lagoon.finance/vault"


@dataclass(frozen=True)
class LagoonVaultState:
    address: str
    name: str
    symbol: str
    total_supply: int
    total_assets: int
    asset: str
    paused: bool
    decimals: int


def _iso(ts: int) -> str:
    return datetime.fromtimestamp(int(ts), tz=UTC).isoformat().replace("+00:00", "Z")


@dataclass(frozen=True)
class _ActivityKind:
    source: str
    type: ActivityType
    label: str
    amount_field: str
    address_fields: tuple[str, ...] = ()


_ACTIVITY_KINDS: dict[str, _ActivityKind] = {
    "deposits": _ActivityKind(
        "deposit", ActivityType.DEPOSIT, "Deposit", "assets", ("owner",)
    ),
    "withdraws": _ActivityKind(
        "withdraw", ActivityType.WITHDRAW, "Withdraw", "assets", ("owner",)
    ),
    "depositRequests": _ActivityKind(
        "deposit-request",
        ActivityType.DEPOSIT,
        "Deposit Request",
        "assets",
        ("sender", "owner"),
    ),
    "totalAssetsUpdateds": _ActivityKind(
        "valuation", ActivityType.VALUATION, "Valuation", "totalAssets"
    ),
    "settleDeposits": _ActivityKind(
        "settle-deposit", ActivityType.SETTLEMENT, "Settlement", "totalAssets"
    ),
    "settleRedeems": _ActivityKind(
        "settle-redeem", ActivityType.SETTLEMENT, "Settlement", "totalAssets"
    ),
}


def transform_activity(
    events: dict[str, list[dict[str, Any]]],
    *,
    decimals: int,
    usd_price: float | None = None,
) -> list[VaultActivity]:
    """Flatten subgraph activity into one feed, newest first."""
    price = Decimal(str(usd_price)) if usd_price is not None else None
    items: list[VaultActivity] = []
    for entity, rows in events.items():
        kind = _ACTIVITY_KINDS.get(entity)
        if kind is None:
            continue
        for row in rows:
            timestamp = safe_parse_int(row.get("blockTimestamp"))
            if timestamp <= 0:
                continue
            amount = normalize_to_string(
                safe_parse_int(row.get(kind.amount_field)), decimals
            )
            address = next(
                (row[f] for f in kind.address_fields if row.get(f)), None
            )
            items.append(
                VaultActivity(
                    id=f"{kind.source}-{row.get('id', '')}",
                    type=kind.type,
                    label=kind.label,
                    source=kind.source,
                    address=address,
                    amount=amount,
                    amount_usd=(
                        normalize_to_string(Decimal(amount) * price)
                        if price is not None
                        else None
                    ),
                    timestamp=timestamp,
                    tx_hash=str(row.get("transactionHash") or ""),
                )
            )
    items.sort(key=lambda item: item.timestamp, reverse=True)
    return items


class LagoonAdapter(BaseVaultAdapter):
    """
    Lagoon vaults: ERC-7540 asynchronous deposits and redemptions.

    Vault state comes from direct contract reads; yield history comes from the
    Lagoon subgraph ``periodSummaries`` and is turned into APR/APY windows.
    """

    adapter_type = "LAGOON"
    provider = Provider.LAGOON
    variant = VaultVariant.ASYNC

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        subgraph_clients: dict[int, LagoonSubgraphClient] | None = None,
        oracle: ChainlinkPriceOracle | None = None,
        clock: Callable[[], float] = time.time,
    ) -> None:
        super().__init__("lagoon_adapter", config)
        self._subgraphs: dict[int, LagoonSubgraphClient] = dict(subgraph_clients or {})
        self.oracle = oracle or ChainlinkPriceOracle()
        self._clock = clock

    def supports_chain(self, chain_id: int) -> bool:
        return int(chain_id) in self._subgraphs or bool(
            get_lagoon_subgraph_url(chain_id)
        )

    def subgraph(self, chain_id: int) -> LagoonSubgraphClient:
        chain_id = int(chain_id)
        if chain_id not in self._subgraphs:
            url = get_lagoon_subgraph_url(chain_id)
            if not url:
                raise UnsupportedError(f"No Lagoon subgraph for chain {chain_id}")
            self._subgraphs[chain_id] = LagoonSubgraphClient(url)
        return self._subgraphs[chain_id]

    # -- on-chain ------------------------------------------------------------------

    async def read_vault_state(self, chain_id: int, address: str) -> LagoonVaultState:
        async with web3_from_chain_id(chain_id) as web3:
            vault = web3.eth.contract(
                address=web3.to_checksum_address(address), abi=ERC4626_ABI
            )

            async def _optional(fn_name: str, default: Any) -> Any:
                try:
                    return await getattr(vault.functions, fn_name)().call()
                except Exception as exc:  # noqa: BLE001
                    self.logger.warning(
                        f"Lagoon {address}: {fn_name}() unreadable, using {default!r}: {exc}"
                    )
                    return default

            name, symbol, paused = await asyncio.gather(
                _optional("name", "Lagoon Vault"),
                _optional("symbol", "LAG"),
                _optional("paused", False),
            )
            total_supply, total_assets, asset, decimals = await asyncio.gather(
                vault.functions.totalSupply().call(),
                vault.functions.totalAssets().call(),
                vault.functions.asset().call(),
                vault.functions.decimals().call(),
            )
        return LagoonVaultState(
            address=address,
            name=str(name or "Lagoon Vault"),
            symbol=str(symbol or "LAG"),
            total_supply=int(total_supply),
            total_assets=int(total_assets),
            asset=str(asset),
            paused=bool(paused),
            decimals=int(decimals),
        )

    async def _summaries(self, chain_id: int, address: str) -> list[PeriodSummary]:
        try:
            return await self.subgraph(chain_id).get_period_summaries(address)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(f"Lagoon subgraph unavailable for {address}: {exc}")
            return []

    async def _underlying_symbol(self, chain_id: int, asset: str) -> str:
        for symbol, (token_address, _) in COMMON_TOKENS.items():
            if token_address.lower() == asset.lower() and symbol != "BTC":
                return symbol
        try:
            async with web3_from_chain_id(chain_id) as web3:
                token = web3.eth.contract(
                    address=web3.to_checksum_address(asset), abi=ERC4626_ABI
                )
                return str(await token.functions.symbol().call())
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(f"Could not read symbol of {asset}: {exc}")
            return "UNKNOWN"

    # -- records -------------------------------------------------------------------

    @upstream_errors
    async def get_vault(
        self, chain_id: int, address: str, *, underlying_symbol: str | None = None
    ) -> VaultRecord:
        self.require_address(address)
        self.ensure_chain(chain_id)

        state = await self.read_vault_state(chain_id, address)
        asset_decimals, summaries = await asyncio.gather(
            get_token_decimals(state.asset, chain_id),
            self._summaries(chain_id, address),
        )
        symbol = underlying_symbol or await self._underlying_symbol(chain_id, state.asset)

        metrics = compute_yield_windows(
            summaries, asset_decimals=asset_decimals, share_decimals=state.decimals
        )
        tvl_usd = await self.oracle.usd_value(
            state.asset, format_units(state.total_assets, asset_decimals), chain_id
        )
        age = vault_age_days(summaries, int(self._clock()))

        return VaultRecord(
            id=address,
            chain_id=int(chain_id),
            name=state.name,
            symbol=state.symbol,
            tvl_usd=tvl_usd,
            apy_net=normalize_to_string(metrics.apy_all),
            fees=Fees(),
            underlying=UnderlyingToken(
                symbol=symbol, address=state.asset, decimals=asset_decimals
            ),
            status=VaultStatus.PAUSED if state.paused else VaultStatus.ACTIVE,
            provider=Provider.LAGOON,
            variant=VaultVariant.ASYNC,
            metadata=VaultMetadata(
                website=f"{LAGOON_APP_URL}/{chain_id}/{address.lower()}",
                description=f"Lagoon {symbol} Vault",
                vault_age=f"{age}d" if age is not None else UNKNOWN_VAULT_AGE,
                apr_net=YieldWindows(
                    all=normalize_to_string(metrics.apr_all),
                    d30=normalize_to_string(metrics.apr_30d),
                    d7=normalize_to_string(metrics.apr_7d),
                ),
                apy_net=YieldWindows(
                    all=normalize_to_string(metrics.apy_all),
                    d30=normalize_to_string(metrics.apy_30d),
                    d7=normalize_to_string(metrics.apy_7d),
                ),
            ),
        )

    async def get_curated_vault(self, curated: CuratedVault) -> VaultRecord:
        return await self.get_vault(
            curated.chain_id, curated.address, underlying_symbol=curated.underlying_symbol
        )

    def placeholder(self, curated: CuratedVault) -> VaultRecord:
        """Zeroed stand-in for a curated vault whose on-chain data is unreachable."""
        symbol = curated.underlying_symbol
        token_address, decimals = COMMON_TOKENS.get(symbol, (ZERO_ADDRESS, 18))
        return VaultRecord(
            id=curated.address,
            chain_id=curated.chain_id,
            name=curated.name,
            symbol=f"lag{symbol}",
            tvl_usd="0",
            apy_net="0",
            fees=Fees(),
            underlying=UnderlyingToken(
                symbol=symbol, address=token_address, decimals=decimals
            ),
            status=VaultStatus.ACTIVE,
            provider=Provider.LAGOON,
            variant=VaultVariant.ASYNC,
            metadata=VaultMetadata(
                website=curated.external_url,
                description=f"Lagoon {symbol} Vault - On-chain data unavailable",
                vault_age=UNKNOWN_VAULT_AGE,
                placeholder=True,
            ),
        )

    @upstream_errors
    async def get_historical(
        self, chain_id: int, address: str, period: str = "30d"
    ) -> list[HistoricalPoint]:
        """Share price, TVL and per-period APY over ``7d``, ``30d`` or ``all``."""
        if period not in HISTORY_PERIODS:
            raise InvalidInputError(f"Unknown history period: {period!r}")
        self.require_address(address)
        self.ensure_chain(chain_id)

        window_s = HISTORY_PERIODS[period]
        summaries = await self.subgraph(chain_id).get_period_summaries(address)
        if not summaries:
            return []

        state = await self.read_vault_state(chain_id, address)
        asset_decimals = await get_token_decimals(state.asset, chain_id)
        series = historical_series(
            summaries,
            window_s,
            asset_decimals=asset_decimals,
            share_decimals=state.decimals,
        )
        tvls = await asyncio.gather(
            *(
                self.oracle.usd_value(
                    state.asset, format_units(p.assets, asset_decimals), chain_id
                )
                for p in series
            )
        )
        return [
            HistoricalPoint(
                timestamp=_iso(p.timestamp),
                apy=normalize_to_string(p.apy),
                tvl=tvl,
                price=normalize_to_string(p.price),
            )
            for p, tvl in zip(series, tvls, strict=True)
        ]

    @upstream_errors
    async def get_activity(self, chain_id: int, address: str) -> list[VaultActivity]:
        """Deposits, withdrawals, valuations and settlements of a vault."""
        self.require_address(address)
        self.ensure_chain(chain_id)

        events = await self.subgraph(chain_id).get_vault_activity(address)
        if not any(events.values()):
            return []

        state = await self.read_vault_state(chain_id, address)
        asset_decimals = await get_token_decimals(state.asset, chain_id)
        try:
            usd_price = await self.oracle.get_usd_price(state.asset, chain_id)
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(f"No USD price for {state.asset}, activity unpriced: {exc}")
            usd_price = None
        return transform_activity(events, decimals=asset_decimals, usd_price=usd_price)

    async def close(self) -> None:
        await asyncio.gather(*(c.close() for c in self._subgraphs.values()))
        await self.oracle.close()
