from __future__ import annotations

import asyncio
import re
import time
from collections.abc import Callable
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter, upstream_errors
from gami_vaults.core.clients.AugustClient import AugustClient, AugustVault
from gami_vaults.core.constants.base import SECONDARY_HTTP_TIMEOUT, SECONDS_PER_DAY
from gami_vaults.core.constants.tokens import COMMON_TOKENS
from gami_vaults.core.errors import InvalidInputError, NotFoundError
from gami_vaults.core.models import (
    Fees,
    Position,
    Provider,
    Redemption,
    Reward,
    RiskLevel,
    Strategist,
    Strategy,
    UnderlyingToken,
    VaultMetadata,
    VaultRecord,
    VaultStatus,
    VaultVariant,
)
from gami_vaults.core.utils.normalize import (
    is_address,
    normalize_to_string,
    safe_parse_number,
)
from gami_vaults.core.utils.units import plain_decimal_string

UPSHIFT_WEBSITE = "https://vaults.augustdigital.io"

# Receipt-token symbol patterns, checked in order.
_RECEIPT_SYMBOL_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"up(lbtc|btc)", "LBTC"),
    (r"shifteth", "ETH"),
    (r"gteth", "wstETH"),
    (r"upazt|upedge|upgamma|upsylva", "USDC"),
    (r"tacrse?th", "rsETH"),
    (r"uptbtc", "tBTC"),
    (r"upsusde", "sUSDe"),
    (r"hgeth", "rsETH"),
    (r"xupusdc", "USDC"),
    (r"upusdc", "USDC"),
    (r"upusdt", "USDT"),
    (r"upeth", "ETH"),
    (r"upwbtc", "WBTC"),
    (r"updai", "DAI"),
)

# Vault-name patterns, checked in order after the receipt symbol.
_NAME_PATTERNS: tuple[tuple[str, str], ...] = (
    (r"eth|ethereum", "ETH"),
    (r"usdc", "USDC"),
    (r"usdt", "USDT"),
    (r"wsteth|steth|treehouse", "wstETH"),
    (r"lbtc", "LBTC"),
    (r"tbtc", "tBTC"),
    (r"rseth|reth", "rsETH"),
    (r"btc|bitcoin", "BTC"),
    (r"susde|ethena", "sUSDe"),
    (r"dai", "DAI"),
    (r"wbtc", "WBTC"),
)


def _match_token(text: str | None, patterns: tuple[tuple[str, str], ...]) -> str | None:
    if not text:
        return None
    for pattern, token in patterns:
        if token in COMMON_TOKENS and re.search(pattern, text, re.IGNORECASE):
            return token
    return None


def infer_underlying(vault: AugustVault) -> UnderlyingToken:
    """
    Best guess at the deposit token of an August vault.

    Order: receipt-token integrations reported by the API, then the receipt
    symbol, then the vault name. Falls back to ``UNKNOWN`` at the vault address.
    """
    integrations = vault.get("receipt_token_integrations") or []
    if integrations:
        first = integrations[0] or {}
        if first.get("symbol") and first.get("address"):
            return UnderlyingToken(
                symbol=str(first["symbol"]),
                address=str(first["address"]),
                decimals=int(first.get("decimals") or 18),
            )

    token = _match_token(vault.get("receipt_token_symbol"), _RECEIPT_SYMBOL_PATTERNS)
    if token is None:
        token = _match_token(vault.get("vault_name"), _NAME_PATTERNS)
    if token is not None:
        address, decimals = COMMON_TOKENS[token]
        return UnderlyingToken(symbol=token, address=address, decimals=decimals)

    return UnderlyingToken(
        symbol="UNKNOWN", address=str(vault.get("address", "")), decimals=18
    )


def map_risk_level(risk: str | None) -> RiskLevel:
    if not risk:
        return RiskLevel.MEDIUM
    risk = risk.lower()
    if "low" in risk or "conservative" in risk:
        return RiskLevel.LOW
    if "high" in risk or "aggressive" in risk:
        return RiskLevel.HIGH
    return RiskLevel.MEDIUM


def get_strategists(vault: AugustVault) -> list[Strategist]:
    raw = list(vault.get("hardcoded_strategists") or [])
    for sub in vault.get("subaccounts") or []:
        if isinstance(sub, dict) and sub.get("strategist"):
            raw.append(sub["strategist"])

    seen: set[str] = set()
    strategists: list[Strategist] = []
    for s in raw:
        sid = str(s.get("id") or "")
        if not sid or sid in seen:
            continue
        seen.add(sid)
        strategists.append(
            Strategist(
                id=sid, name=s.get("strategist_name"), logo=s.get("strategist_logo")
            )
        )
    return strategists


def _positive(value: Any) -> float | None:
    parsed = safe_parse_number(value)
    return parsed if parsed > 0 else None


def _tvl_from(block: dict[str, Any], direct_keys: tuple[str, ...]) -> float | None:
    for key in direct_keys:
        if (tvl := _positive(block.get(key))) is not None:
            return tvl
    assets = _positive(block.get("total_assets"))
    price = _positive(block.get("underlying_price"))
    if assets is not None and price is not None:
        return assets * price
    return None


def vault_tvl(summary: dict[str, Any] | None) -> str:
    """TVL from a vault summary, trying each known field layout in turn."""
    if not summary:
        return "0"
    tvl = _tvl_from(summary, ("tvl", "total_value_locked"))
    if tvl is None and isinstance(summary.get("latest_snapshot"), dict):
        tvl = _tvl_from(summary["latest_snapshot"], ("tvl", "total_value"))
    return normalize_to_string(tvl) if tvl is not None else "0"


def realized_apy(apy_data: dict[str, Any] | None) -> str | None:
    if not apy_data:
        return None
    value = apy_data.get("liquidAPY30Day") or apy_data.get("liquidAPY7Day") or 0
    return normalize_to_string(safe_parse_number(value))


def vault_age_from_start(start_datetime: str | None, now: float) -> str | None:
    if not start_datetime:
        return None
    try:
        start = datetime.fromisoformat(str(start_datetime).replace("Z", "+00:00"))
    except ValueError:
        return None
    if start.tzinfo is None:
        start = start.replace(tzinfo=UTC)
    days = max(0, int(now - start.timestamp())) // SECONDS_PER_DAY
    return f"{days}d"


def transform_august_vault(vault: AugustVault) -> VaultRecord:
    strategists = get_strategists(vault)
    reported = vault.get("reported_apy") or {}
    return VaultRecord(
        id=str(vault["address"]),
        chain_id=int(vault.get("chain") or 0),
        name=str(vault.get("vault_name") or ""),
        symbol=str(vault.get("receipt_token_symbol") or ""),
        tvl_usd="0",
        apy_net=normalize_to_string(safe_parse_number(reported.get("apy"))),
        fees=Fees(
            mgmt_bps="0",
            perf_bps=normalize_to_string(
                safe_parse_number(vault.get("weekly_performance_fee_bps"))
            ),
        ),
        underlying=infer_underlying(vault),
        status=(
            VaultStatus.ACTIVE if vault.get("status") == "active" else VaultStatus.PAUSED
        ),
        provider=Provider.UPSHIFT,
        variant=VaultVariant.SYNC,
        rewards=[
            Reward(
                token=str(r.get("id") or ""),
                apy=normalize_to_string(safe_parse_number(r.get("multiplier"))),
                symbol=str(r.get("text") or "Reward"),
            )
            for r in (vault.get("rewards") or [])
            if isinstance(r, dict)
        ],
        strategy=Strategy(
            name=vault.get("public_type"),
            description=vault.get("description"),
            risk_level=map_risk_level(vault.get("risk")),
        ),
        strategist=strategists[0] if strategists else None,
        metadata=VaultMetadata(
            description=vault.get("description"),
            logo=vault.get("vault_logo_url"),
        ),
    )


def signed_amount(value: Any) -> str:
    """Decimal string that keeps its sign (PnL can be negative). Unparseable -> ``"0"``."""
    if value is None or isinstance(value, bool):
        return "0"
    try:
        amount = Decimal(str(value).strip())
    except InvalidOperation:
        return "0"
    if not amount.is_finite() or amount == 0:
        return "0"
    return plain_decimal_string(amount)


def transform_position(position: dict[str, Any], chain_id: int) -> Position:
    return Position(
        vault=str(position.get("vault") or ""),
        chain_id=int(chain_id),
        shares=signed_amount(position.get("shares")),
        value_usd=signed_amount(position.get("value")),
        pnl_usd=signed_amount(position.get("pnl")),
        entry_usd=signed_amount(position.get("entryValue")),
    )


class UpshiftAdapter(BaseVaultAdapter):
    """
    Upshift vaults served by the August Digital REST API.

    Upshift vaults are synchronous ERC-4626: deposits and redemptions settle
    in the same transaction.
    """

    adapter_type = "UPSHIFT"
    provider = Provider.UPSHIFT
    variant = VaultVariant.SYNC

    def __init__(
        self,
        config: dict[str, Any] | None = None,
        *,
        client: AugustClient | None = None,
        clock: Callable[[], float] = time.time,
        tvl_timeout_s: float = SECONDARY_HTTP_TIMEOUT,
    ) -> None:
        super().__init__("upshift_adapter", config)
        self.client = client or AugustClient()
        self._clock = clock
        self._tvl_timeout_s = tvl_timeout_s

    async def _optional(self, coro, label: str) -> dict[str, Any] | None:
        try:
            return await coro
        except Exception as exc:  # noqa: BLE001
            self.logger.warning(f"Upshift {label} unavailable: {exc}")
            return None

    async def _summary(self, address: str) -> dict[str, Any] | None:
        return await self._optional(
            asyncio.wait_for(
                self.client.get_vault_summary(address, timeout_s=self._tvl_timeout_s),
                timeout=self._tvl_timeout_s,
            ),
            f"summary for {address}",
        )

    @upstream_errors
    async def get_vault(self, chain_id: int, address: str) -> VaultRecord:
        self.require_address(address)
        vault = await self.client.get_vault(address)
        if not isinstance(vault, dict) or not vault.get("address"):
            raise NotFoundError(f"Upshift vault {address} not found")
        if vault.get("chain") is not None and int(vault["chain"]) != int(chain_id):
            raise NotFoundError(f"Upshift vault {address} is not on chain {chain_id}")

        summary, apy_data = await asyncio.gather(
            self._summary(address),
            self._optional(self.client.get_vault_apy(address), f"APY for {address}"),
        )

        record = transform_august_vault(vault)
        metadata = (record.metadata or VaultMetadata()).model_copy(
            update={
                "website": f"{UPSHIFT_WEBSITE}/{chain_id}/{address}",
                "vault_age": vault_age_from_start(
                    vault.get("start_datetime"), self._clock()
                ),
                "realized_apy": realized_apy(apy_data),
            }
        )
        return record.model_copy(
            update={
                "chain_id": int(chain_id),
                "tvl_usd": vault_tvl(summary),
                "metadata": metadata,
            }
        )

    @upstream_errors
    async def list_vaults(self, chain_ids: list[int]) -> list[VaultRecord]:
        wanted = {int(c) for c in chain_ids}
        vaults = [
            v
            for v in await self.client.get_vaults("active")
            if isinstance(v, dict) and v.get("address") and int(v.get("chain") or 0) in wanted
        ]
        summaries = await asyncio.gather(*(self._summary(v["address"]) for v in vaults))
        return [
            transform_august_vault(v).model_copy(update={"tvl_usd": vault_tvl(s)})
            for v, s in zip(vaults, summaries, strict=True)
        ]

    @upstream_errors
    async def find_address_by_slug(self, chain_id: int, slug: str) -> str | None:
        for vault in await self.client.get_vaults("active"):
            if str(vault.get("id")) == slug and int(vault.get("chain") or chain_id) == int(
                chain_id
            ):
                return str(vault["address"])
        return None

    @upstream_errors
    async def get_redemptions(
        self, chain_id: int, vault: str, user_address: str
    ) -> list[Redemption]:
        summary = await self.client.get_vault_withdrawals(chain_id, vault)
        pending = (summary or {}).get("pending_withdrawals") or []
        symbol = str((summary or {}).get("symbol") or "UNKNOWN")
        return [
            Redemption(
                vault=str(w.get("vault") or vault),
                chain_id=int(chain_id),
                address=user_address,
                claimable_amount=normalize_to_string(
                    safe_parse_number(w.get("normalized_amount"))
                ),
                claimable_value_usd="0",
                token=UnderlyingToken(symbol=symbol, address=vault, decimals=18),
            )
            for w in pending
            if isinstance(w, dict)
            and str(w.get("receiver", "")).lower() == user_address.lower()
        ]

    @upstream_errors
    async def get_positions(self, chain_id: int, user_address: str) -> list[Position]:
        """Open Upshift positions of ``user_address`` as reported by August."""
        if not is_address(user_address):
            raise InvalidInputError(f"Invalid user address: {user_address!r}")
        rows = await self.client.get_positions(chain_id, user_address)
        return [
            transform_position(row, chain_id)
            for row in rows
            if isinstance(row, dict) and row.get("vault")
        ]

    async def close(self) -> None:
        await self.client.close()
