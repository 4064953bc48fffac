from __future__ import annotations

import asyncio
import math
from collections.abc import Iterable, Mapping
from datetime import UTC, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from loguru import logger

from gami_vaults.adapters.ipor_adapter.adapter import IporAdapter
from gami_vaults.adapters.lagoon_adapter.adapter import LagoonAdapter
from gami_vaults.adapters.upshift_adapter.adapter import UpshiftAdapter
from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter
from gami_vaults.core.cache import CacheKeys, TTLCache
from gami_vaults.core.config import get_supported_chains
from gami_vaults.core.constants.base import (
    CACHE_TTL_ACTIVITY,
    CACHE_TTL_HISTORICAL,
    CACHE_TTL_USER_SPECIFIC,
    CACHE_TTL_VAULT_DETAIL,
    CACHE_TTL_VAULTS_LIST,
    DEFAULT_HTTP_TIMEOUT,
    MAX_VAULT_ID_LENGTH,
)
from gami_vaults.core.constants.curated_vaults import (
    CURATED_REGISTRY,
    CuratedVaultRegistry,
)
from gami_vaults.core.errors import (
    InvalidInputError,
    NotFoundError,
    UnsupportedError,
    UpstreamError,
)
from gami_vaults.core.models import (
    CallDescriptor,
    CuratedVault,
    HistoricalPoint,
    Portfolio,
    Position,
    Provider,
    Redemption,
    VaultActivity,
    VaultAction,
    VaultRecord,
    VaultStats,
    VaultStatus,
)
from gami_vaults.core.utils.normalize import (
    is_address,
    normalize_to_string,
    safe_parse_number,
)
from gami_vaults.core.utils.yields import HISTORY_PERIODS
from gami_vaults.engine.resolver import ProviderResolver
from gami_vaults.engine.transactions import TransactionBuilder


def default_adapters(
    config: dict[str, Any] | None = None,
) -> dict[Provider, BaseVaultAdapter]:
    return {
        Provider.UPSHIFT: UpshiftAdapter(config),
        Provider.LAGOON: LagoonAdapter(config),
        Provider.IPOR: IporAdapter(config),
    }


def _tvl(value: str) -> Decimal:
    try:
        tvl = Decimal(value)
    except (InvalidOperation, TypeError):
        return Decimal(0)
    return tvl if tvl.is_finite() and tvl > 0 else Decimal(0)


def compute_stats(
    vaults: Iterable[VaultRecord], *, networks: int | None = None
) -> VaultStats:
    """
    Aggregate figures over a vault list.

    Average APY only counts vaults reporting a finite, non-zero APY so that
    placeholders and vaults without history do not drag the mean to zero.
    """
    vaults = list(vaults)
    total_tvl = sum((_tvl(v.tvl_usd) for v in vaults), Decimal(0))
    apys = [
        apy
        for apy in (safe_parse_number(v.apy_net) for v in vaults)
        if math.isfinite(apy) and apy != 0
    ]
    average_apy = sum(apys) / len(apys) if apys else 0.0
    return VaultStats(
        total_tvl_usd=normalize_to_string(total_tvl),
        average_apy=normalize_to_string(average_apy),
        active_vaults=sum(1 for v in vaults if v.status == VaultStatus.ACTIVE),
        networks=networks if networks is not None else len({v.chain_id for v in vaults}),
    )


def _signed(value: str) -> Decimal:
    try:
        amount = Decimal(value)
    except (InvalidOperation, TypeError):
        return Decimal(0)
    return amount if amount.is_finite() else Decimal(0)


def compute_portfolio(
    address: str,
    chain_id: int,
    positions: Iterable[Position],
    *,
    last_updated: str,
) -> Portfolio:
    """Sum position values and PnL; losses are kept negative."""
    positions = list(positions)
    total_value = sum((_signed(p.value_usd) for p in positions), Decimal(0))
    total_pnl = sum((_signed(p.pnl_usd) for p in positions), Decimal(0))
    return Portfolio(
        address=address,
        chain_id=chain_id,
        positions=positions,
        total_value_usd=normalize_to_string(total_value),
        total_pnl_usd=normalize_to_string(total_pnl),
        last_updated=last_updated,
    )


class VaultEngine:
    """
    Entry point for vault lookups, listings and transaction building.

    Owns the response cache and the adapters. Use as an async context manager
    (or call ``start()``/``close()``) so the cache sweep task and HTTP clients
    are torn down with the engine.
    """

    def __init__(
        self,
        *,
        cache: TTLCache | None = None,
        adapters: Mapping[Provider, BaseVaultAdapter] | None = None,
        registry: CuratedVaultRegistry = CURATED_REGISTRY,
        resolver: ProviderResolver | None = None,
        tx_builder: TransactionBuilder | None = None,
        supported_chains: list[int] | None = None,
        config: dict[str, Any] | None = None,
    ) -> None:
        self.cache = cache or TTLCache()
        self.adapters = dict(adapters) if adapters is not None else default_adapters(config)
        self.registry = registry
        self.resolver = resolver or ProviderResolver(self.adapters, registry=registry)
        self.tx_builder = tx_builder or TransactionBuilder()
        self.supported_chains = [
            int(c)
            for c in (
                supported_chains if supported_chains is not None else get_supported_chains()
            )
        ]

    # -- lifecycle -----------------------------------------------------------------

    def start(self) -> None:
        self.cache.start()

    async def close(self) -> None:
        await self.cache.close()
        results = await asyncio.gather(
            *(a.close() for a in self.adapters.values()), return_exceptions=True
        )
        for adapter, result in zip(self.adapters.values(), results, strict=True):
            if isinstance(result, Exception):
                logger.warning(f"Closing {adapter.name} failed: {result}")

    async def __aenter__(self) -> VaultEngine:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()

    # -- validation ----------------------------------------------------------------

    def _check_chain(self, chain_id: int | str) -> int:
        try:
            chain_id = int(chain_id)
        except (TypeError, ValueError) as exc:
            raise InvalidInputError(f"Invalid chain id: {chain_id!r}") from exc
        if chain_id not in self.supported_chains:
            raise UnsupportedError(f"Chain {chain_id} is not supported")
        return chain_id

    def _check_chains(self, chain_ids: Iterable[int] | None) -> list[int]:
        if chain_ids is None:
            return list(self.supported_chains)
        checked = sorted({self._check_chain(c) for c in chain_ids})
        if not checked:
            raise InvalidInputError("At least one chain id is required")
        return checked

    @staticmethod
    def _check_vault_id(vault_id: str) -> str:
        if not isinstance(vault_id, str):
            raise InvalidInputError(f"Invalid vault id: {vault_id!r}")
        vault_id = vault_id.strip()
        if not 0 < len(vault_id) <= MAX_VAULT_ID_LENGTH:
            raise InvalidInputError(
                f"Vault id must be 1-{MAX_VAULT_ID_LENGTH} characters long"
            )
        return vault_id

    @staticmethod
    def _check_provider(provider: Provider | str | None) -> Provider | None:
        if provider is None:
            return None
        try:
            return Provider(str(provider).lower())
        except ValueError as exc:
            raise InvalidInputError(f"Unknown provider: {provider!r}") from exc

    # -- vaults --------------------------------------------------------------------

    async def resolve_vault(
        self,
        chain_id: int,
        vault_id: str,
        *,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT,
    ) -> VaultRecord:
        """
        One vault by address or provider slug.

        Raises ``NotFoundError``, ``UnsupportedError`` or ``InvalidInputError``.
        If ``timeout_s`` elapses the cached record is returned when there is
        one, otherwise ``UpstreamError``.
        """
        chain_id = self._check_chain(chain_id)
        vault_id = self._check_vault_id(vault_id)
        key = CacheKeys.vault(chain_id, vault_id)

        found, cached = self.cache.lookup(key)
        if found:
            return cached

        try:
            record = await asyncio.wait_for(
                self.resolver.resolve(chain_id, vault_id), timeout=timeout_s
            )
        except asyncio.TimeoutError as exc:
            found, cached = self.cache.lookup(key)
            if found:
                logger.warning(f"Resolving {vault_id} timed out, serving cached record")
                return cached
            raise UpstreamError(
                f"Resolving {vault_id} on chain {chain_id} timed out after {timeout_s}s"
            ) from exc

        self._remember(record, alias=vault_id)
        return record

    def _remember(self, record: VaultRecord, *, alias: str | None = None) -> None:
        # placeholders stand in for a failed read and are retried on the next request
        if record.metadata is not None and record.metadata.placeholder:
            return
        keys = {CacheKeys.vault(record.chain_id, record.id)}
        if alias is not None:
            # slug lookups are cached under the slug as well as the address
            keys.add(CacheKeys.vault(record.chain_id, alias))
        for key in keys:
            self.cache.set(key, record, CACHE_TTL_VAULT_DETAIL)

    async def list_vaults(
        self,
        chain_ids: list[int] | None = None,
        *,
        provider: Provider | str | None = None,
        include_uncurated: bool = False,
        timeout_s: float = DEFAULT_HTTP_TIMEOUT,
    ) -> list[VaultRecord]:
        """
        Curated vaults on ``chain_ids``, resolved concurrently.

        A vault that fails to resolve is logged and left out. If ``timeout_s``
        elapses, whatever finished is returned. Only complete listings are
        cached. ``include_uncurated`` appends each enabled provider's own
        listing after the curated vaults.
        """
        chains = self._check_chains(chain_ids)
        provider = self._check_provider(provider)
        key = CacheKeys.vaults(chains, provider)
        if include_uncurated:
            key += ":all"

        found, cached = self.cache.lookup(key)
        if found:
            return cached

        curated = [
            c
            for c in self.registry.by_chain(chains)
            if (provider is None or c.provider == provider)
            and self.resolver.is_enabled(c.provider)
        ]
        jobs = [self.resolver.resolve_curated(c) for c in curated]
        listings: list[BaseVaultAdapter] = []
        if include_uncurated:
            listings = [
                a
                for a in self.resolver.ordered_adapters()
                if provider is None or a.provider == provider
            ]
            jobs.extend(a.list_vaults(chains) for a in listings)

        results, complete = await self._gather_until(jobs, timeout_s)

        vaults: list[VaultRecord] = []
        seen: set[tuple[int, str]] = set()

        def add(record: VaultRecord) -> None:
            ident = (record.chain_id, record.id.lower())
            if ident not in seen:
                seen.add(ident)
                vaults.append(record)

        for vault, result in zip(curated, results[: len(curated)], strict=True):
            if isinstance(result, VaultRecord):
                self._remember(result)
                add(result)
            else:
                complete = False
                self._log_failure(vault, result)
        for adapter, result in zip(listings, results[len(curated) :], strict=True):
            if isinstance(result, list):
                for record in result:
                    add(record)
            else:
                complete = False
                logger.warning(f"{adapter.provider} listing unavailable: {result}")

        if complete:
            self.cache.set(key, vaults, CACHE_TTL_VAULTS_LIST)
        return vaults

    @staticmethod
    async def _gather_until(
        coros: list[Any], timeout_s: float
    ) -> tuple[list[Any], bool]:
        """Run ``coros`` concurrently; unfinished ones are cancelled at the deadline."""
        if not coros:
            return [], True
        tasks = [asyncio.ensure_future(c) for c in coros]
        _, pending = await asyncio.wait(tasks, timeout=timeout_s)
        for task in pending:
            task.cancel()
        if pending:
            await asyncio.gather(*pending, return_exceptions=True)

        results: list[Any] = []
        for task in tasks:
            if task.cancelled():
                results.append(asyncio.TimeoutError(f"no answer within {timeout_s}s"))
            elif task.exception() is not None:
                results.append(task.exception())
            else:
                results.append(task.result())
        return results, not pending

    @staticmethod
    def _log_failure(vault: CuratedVault, result: Any) -> None:
        if isinstance(result, NotFoundError):
            logger.info(f"Skipping {vault.name} ({vault.address}): {result}")
        else:
            logger.warning(f"Failed to resolve {vault.name} ({vault.address}): {result}")

    # -- transactions --------------------------------------------------------------

    async def build_transaction(
        self,
        vault: VaultRecord,
        action: VaultAction | str,
        amount: str,
        user_address: str,
        *,
        spender: str | None = None,
    ) -> CallDescriptor:
        self._check_chain(vault.chain_id)
        return await self.tx_builder.build(
            vault, action, amount, user_address, spender=spender
        )

    # -- history, redemptions, stats -----------------------------------------------

    async def get_historical(
        self, chain_id: int, vault_id: str, period: str = "30d"
    ) -> list[HistoricalPoint]:
        """Share price, TVL and APY series for a Lagoon vault."""
        if period not in HISTORY_PERIODS:
            raise InvalidInputError(
                f"Period must be one of {', '.join(HISTORY_PERIODS)}, got {period!r}"
            )
        vault = await self.resolve_vault(chain_id, vault_id)
        if vault.provider != Provider.LAGOON:
            raise UnsupportedError(
                f"Historical data is not available for {vault.provider} vaults"
            )

        key = CacheKeys.historical(vault.chain_id, vault.id, period)
        found, cached = self.cache.lookup(key)
        if found:
            return cached

        adapter = self.resolver.adapter_for(Provider.LAGOON)
        points = await adapter.get_historical(vault.chain_id, vault.id, period)
        self.cache.set(key, points, CACHE_TTL_HISTORICAL)
        return points

    async def get_redemptions(
        self, chain_id: int, vault: str, user_address: str
    ) -> list[Redemption]:
        """Withdrawals requested by ``user_address`` that are still pending on an Upshift vault."""
        chain_id = self._check_chain(chain_id)
        if not is_address(vault):
            raise InvalidInputError(f"Invalid vault address: {vault!r}")
        if not is_address(user_address):
            raise InvalidInputError(f"Invalid user address: {user_address!r}")
        curated_provider = self.registry.provider_for(vault, chain_id)
        if curated_provider is not None and curated_provider != Provider.UPSHIFT:
            raise UnsupportedError(
                f"Redemption tracking is not available for {curated_provider} vaults"
            )

        key = CacheKeys.redemptions(chain_id, vault, user_address)
        found, cached = self.cache.lookup(key)
        if found:
            return cached

        adapter = self.resolver.adapter_for(Provider.UPSHIFT)
        try:
            redemptions = await adapter.get_redemptions(chain_id, vault, user_address)
        except NotFoundError:
            logger.info(f"No withdrawal data for {vault} on chain {chain_id}")
            self.cache.set(key, [], CACHE_TTL_USER_SPECIFIC / 2)
            return []
        self.cache.set(key, redemptions, CACHE_TTL_USER_SPECIFIC)
        return redemptions

    async def get_portfolio(self, chain_id: int, user_address: str) -> Portfolio:
        """Upshift positions of ``user_address`` on ``chain_id`` with USD totals."""
        chain_id = self._check_chain(chain_id)
        if not is_address(user_address):
            raise InvalidInputError(f"Invalid user address: {user_address!r}")

        key = CacheKeys.portfolio(chain_id, user_address)
        found, cached = self.cache.lookup(key)
        if found:
            return cached

        adapter = self.resolver.adapter_for(Provider.UPSHIFT)
        try:
            positions = await adapter.get_positions(chain_id, user_address)
        except NotFoundError:
            logger.info(f"No positions for {user_address} on chain {chain_id}")
            positions = []

        portfolio = compute_portfolio(
            user_address,
            chain_id,
            positions,
            last_updated=datetime.now(UTC).isoformat().replace("+00:00", "Z"),
        )
        ttl = CACHE_TTL_USER_SPECIFIC if positions else CACHE_TTL_USER_SPECIFIC / 2
        self.cache.set(key, portfolio, ttl)
        return portfolio

    async def get_activity(self, chain_id: int, vault_id: str) -> list[VaultActivity]:
        """Deposit, withdrawal, valuation and settlement feed of a Lagoon vault."""
        vault = await self.resolve_vault(chain_id, vault_id)
        if vault.provider != Provider.LAGOON:
            raise UnsupportedError(
                f"Vault activity is not available for {vault.provider} vaults"
            )

        key = CacheKeys.activity(vault.chain_id, vault.id)
        found, cached = self.cache.lookup(key)
        if found:
            return cached

        adapter = self.resolver.adapter_for(Provider.LAGOON)
        activity = await adapter.get_activity(vault.chain_id, vault.id)
        self.cache.set(key, activity, CACHE_TTL_ACTIVITY)
        return activity

    async def get_stats(self, chain_ids: list[int] | None = None) -> VaultStats:
        chains = self._check_chains(chain_ids)
        key = CacheKeys.stats(chains)
        found, cached = self.cache.lookup(key)
        if found:
            return cached
        stats = compute_stats(await self.list_vaults(chains), networks=len(chains))
        self.cache.set(key, stats, CACHE_TTL_VAULTS_LIST)
        return stats
