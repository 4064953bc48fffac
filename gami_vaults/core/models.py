from __future__ import annotations

from enum import StrEnum
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class Provider(StrEnum):
    UPSHIFT = "upshift"
    LAGOON = "lagoon"
    IPOR = "ipor"


class VaultStatus(StrEnum):
    ACTIVE = "active"
    PAUSED = "paused"
    DEPRECATED = "deprecated"


class VaultVariant(StrEnum):
    SYNC = "sync"
    ASYNC = "async"


class VaultAction(StrEnum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    APPROVE = "approve"


class RiskLevel(StrEnum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class ActivityType(StrEnum):
    DEPOSIT = "deposit"
    WITHDRAW = "withdraw"
    VALUATION = "valuation"
    SETTLEMENT = "settlement"


class _Record(BaseModel):
    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    def to_dict(self) -> dict[str, Any]:
        return self.model_dump(by_alias=True, mode="json", exclude_none=True)


class Fees(_Record):
    mgmt_bps: str = "0"
    perf_bps: str = "0"


class UnderlyingToken(_Record):
    symbol: str
    address: str
    decimals: int


class YieldWindows(_Record):
    all: str = "0"
    d30: str = Field(default="0", alias="30d")
    d7: str = Field(default="0", alias="7d")


class Reward(_Record):
    token: str
    apy: str = "0"
    symbol: str = "Reward"


class Strategy(_Record):
    name: str | None = None
    description: str | None = None
    risk_level: RiskLevel = RiskLevel.MEDIUM


class Strategist(_Record):
    name: str | None = None
    logo: str | None = None
    id: str


class VaultMetadata(_Record):
    website: str | None = None
    description: str | None = None
    logo: str | None = None
    vault_age: str | None = None
    realized_apy: str | None = None
    apr_net: YieldWindows | None = None
    apy_net: YieldWindows | None = None
    placeholder: bool = False


class VaultRecord(_Record):
    id: str
    chain_id: int
    name: str
    symbol: str
    tvl_usd: str = "0"
    apy_net: str = "0"
    fees: Fees = Fees()
    underlying: UnderlyingToken
    status: VaultStatus = VaultStatus.ACTIVE
    provider: Provider
    variant: VaultVariant = VaultVariant.SYNC
    metadata: VaultMetadata | None = None
    rewards: list[Reward] = []
    strategy: Strategy | None = None
    strategist: Strategist | None = None


class PeriodSummary(_Record):
    """One accounting period of a subgraph-indexed vault. Amounts are raw integers."""

    total_assets_at_start: int = 0
    total_supply_at_start: int = 0
    total_assets_at_end: int = 0
    total_supply_at_end: int = 0
    net_total_supply_at_end: int = 0
    start_timestamp: int = 0
    duration_seconds: int = 0

    @classmethod
    def from_subgraph(cls, row: dict[str, Any]) -> PeriodSummary:
        def _int(key: str) -> int:
            value = row.get(key)
            try:
                return int(value) if value not in (None, "") else 0
            except (TypeError, ValueError):
                return 0

        return cls(
            total_assets_at_start=_int("totalAssetsAtStart"),
            total_supply_at_start=_int("totalSupplyAtStart"),
            total_assets_at_end=_int("totalAssetsAtEnd"),
            total_supply_at_end=_int("totalSupplyAtEnd"),
            net_total_supply_at_end=_int("netTotalSupplyAtEnd"),
            start_timestamp=_int("blockTimestamp"),
            duration_seconds=_int("duration"),
        )

    @property
    def end_timestamp(self) -> int:
        return self.start_timestamp + self.duration_seconds

    @property
    def supply_at_end(self) -> int:
        return self.net_total_supply_at_end or self.total_supply_at_end

    @property
    def is_completed(self) -> bool:
        return (
            self.duration_seconds > 0
            and self.total_assets_at_end > 0
            and self.supply_at_end > 0
        )

    @property
    def has_valid_start(self) -> bool:
        return self.total_assets_at_start > 0 and self.total_supply_at_start > 0


class YieldMetrics(_Record):
    apr_all: float = 0.0
    apr_30d: float = 0.0
    apr_7d: float = 0.0
    apy_all: float = 0.0
    apy_30d: float = 0.0
    apy_7d: float = 0.0


class CallDescriptor(_Record):
    """Unsigned contract call ready to hand to a wallet."""

    to: str
    data: str
    value: str = "0x0"
    chain_id: int


class HistoricalPoint(_Record):
    timestamp: str
    apy: str = "0"
    tvl: str = "0"
    price: str = "0"


class Redemption(_Record):
    vault: str
    chain_id: int
    address: str
    claimable_amount: str = "0"
    claimable_value_usd: str = "0"
    token: UnderlyingToken


class Position(_Record):
    vault: str
    chain_id: int
    shares: str = "0"
    value_usd: str = "0"
    pnl_usd: str = "0"
    entry_usd: str = "0"


class Portfolio(_Record):
    """A wallet's vault positions on one chain, with USD totals."""

    address: str
    chain_id: int
    positions: list[Position] = []
    total_value_usd: str = "0"
    total_pnl_usd: str = "0"
    last_updated: str


class VaultActivity(_Record):
    """One subgraph event on a vault. ``amount`` is in underlying tokens."""

    id: str
    type: ActivityType
    label: str
    source: str
    address: str | None = None
    amount: str = "0"
    amount_usd: str | None = None
    timestamp: int
    tx_hash: str


class VaultStats(_Record):
    total_tvl_usd: str = "0"
    average_apy: str = "0"
    active_vaults: int = 0
    networks: int = 0


class CuratedVault(_Record):
    address: str
    chain_id: int
    name: str
    underlying_symbol: str
    provider: Provider
    external_url: str | None = None
    note: str | None = None
