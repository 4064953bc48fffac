from __future__ import annotations

from unittest.mock import AsyncMock

import pytest

from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter
from gami_vaults.core.constants.curated_vaults import CuratedVaultRegistry
from gami_vaults.core.errors import (
    InvalidInputError,
    NotFoundError,
    UnsupportedError,
    UpstreamError,
)
from gami_vaults.core.models import (
    CuratedVault,
    Provider,
    UnderlyingToken,
    VaultMetadata,
    VaultRecord,
    VaultVariant,
)
from gami_vaults.engine.resolver import ProviderResolver, first_success

CURATED_UPSHIFT = "0x" + "a1" * 20
CURATED_LAGOON = "0x" + "b2" * 20
OTHER = "0x" + "c3" * 20


def _record(address: str, provider: Provider, **kw) -> VaultRecord:
    return VaultRecord(
        id=address,
        chain_id=1,
        name=f"{provider} vault",
        symbol="v",
        underlying=UnderlyingToken(symbol="USDC", address="0x" + "dd" * 20, decimals=6),
        provider=provider,
        variant=VaultVariant.SYNC,
        **kw,
    )


class FakeAdapter(BaseVaultAdapter):
    def __init__(self, provider: Provider, variant: VaultVariant = VaultVariant.SYNC):
        super().__init__(f"{provider}_adapter")
        self.provider = provider
        self.variant = variant
        self.get_vault = AsyncMock(side_effect=lambda chain_id, address: _record(address, provider))
        self.find_address_by_slug = AsyncMock(return_value=None)

    async def get_vault(self, chain_id: int, address: str) -> VaultRecord:  # replaced per instance
        raise NotImplementedError


class FakeLagoon(FakeAdapter):
    def placeholder(self, curated: CuratedVault) -> VaultRecord:
        return _record(
            curated.address,
            Provider.LAGOON,
            metadata=VaultMetadata(placeholder=True),
        )


@pytest.fixture
def registry():
    return CuratedVaultRegistry(
        [
            CuratedVault(
                address=CURATED_UPSHIFT,
                chain_id=1,
                name="Curated Upshift",
                underlying_symbol="USDC",
                provider=Provider.UPSHIFT,
            ),
            CuratedVault(
                address=CURATED_LAGOON,
                chain_id=1,
                name="Curated Lagoon",
                underlying_symbol="USDC",
                provider=Provider.LAGOON,
            ),
        ]
    )


@pytest.fixture
def adapters():
    return {
        Provider.UPSHIFT: FakeAdapter(Provider.UPSHIFT),
        Provider.LAGOON: FakeLagoon(Provider.LAGOON, VaultVariant.ASYNC),
        Provider.IPOR: FakeAdapter(Provider.IPOR),
    }


@pytest.fixture
def resolver(adapters, registry):
    return ProviderResolver(
        adapters,
        registry=registry,
        priority=["ipor", "upshift"],
        is_enabled=lambda provider: True,
    )


@pytest.mark.asyncio
async def test_first_success_skips_failures_and_none():
    errors = []

    async def attempt(n: int) -> int | None:
        if n == 1:
            raise RuntimeError("one")
        if n == 2:
            return None
        return n * 10

    result = await first_success(
        [1, 2, 3, 4], attempt, on_error=lambda n, exc: errors.append(n)
    )
    assert result == 30
    assert errors == [1]


@pytest.mark.asyncio
async def test_first_success_propagates_invalid_input():
    async def attempt(n: int) -> int:
        raise InvalidInputError("bad")

    with pytest.raises(InvalidInputError):
        await first_success([1, 2], attempt)


@pytest.mark.asyncio
async def test_first_success_all_fail():
    async def attempt(n: int) -> int:
        raise UpstreamError("down")

    assert await first_success([1, 2], attempt) is None


@pytest.mark.asyncio
async def test_curated_vault_uses_only_its_provider(resolver, adapters):
    record = await resolver.resolve(1, CURATED_UPSHIFT.upper().replace("0X", "0x"))

    assert record.provider is Provider.UPSHIFT
    adapters[Provider.IPOR].get_vault.assert_not_awaited()


@pytest.mark.asyncio
async def test_curated_failure_is_not_found_without_fallback(resolver, adapters):
    adapters[Provider.UPSHIFT].get_vault.side_effect = UpstreamError("api down")

    with pytest.raises(NotFoundError):
        await resolver.resolve(1, CURATED_UPSHIFT)
    adapters[Provider.IPOR].get_vault.assert_not_awaited()


@pytest.mark.asyncio
async def test_curated_lagoon_failure_serves_placeholder(resolver, adapters):
    adapters[Provider.LAGOON].get_vault.side_effect = UpstreamError("rpc down")

    record = await resolver.resolve(1, CURATED_LAGOON)

    assert record.metadata.placeholder is True
    assert record.tvl_usd == "0"
    assert record.apy_net == "0"


@pytest.mark.asyncio
async def test_curated_record_is_annotated_with_variant(resolver):
    record = await resolver.resolve(1, CURATED_LAGOON)
    assert record.provider is Provider.LAGOON
    assert record.variant is VaultVariant.ASYNC


@pytest.mark.asyncio
async def test_curated_disabled_provider_is_unsupported(adapters, registry):
    resolver = ProviderResolver(
        adapters,
        registry=registry,
        priority=["ipor", "upshift"],
        is_enabled=lambda provider: provider != "upshift",
    )
    with pytest.raises(UnsupportedError):
        await resolver.resolve(1, CURATED_UPSHIFT)


@pytest.mark.asyncio
async def test_best_effort_follows_priority(resolver, adapters):
    record = await resolver.resolve(1, OTHER)

    assert record.provider is Provider.IPOR
    adapters[Provider.UPSHIFT].get_vault.assert_not_awaited()
    adapters[Provider.LAGOON].get_vault.assert_not_awaited()


@pytest.mark.asyncio
async def test_best_effort_falls_through_failures(resolver, adapters):
    adapters[Provider.IPOR].get_vault.side_effect = UpstreamError("index down")

    record = await resolver.resolve(1, OTHER)

    assert record.provider is Provider.UPSHIFT


@pytest.mark.asyncio
async def test_best_effort_priority_is_configurable(adapters, registry):
    resolver = ProviderResolver(
        adapters,
        registry=registry,
        priority=["upshift", "ipor"],
        is_enabled=lambda provider: True,
    )
    assert (await resolver.resolve(1, OTHER)).provider is Provider.UPSHIFT


@pytest.mark.asyncio
async def test_best_effort_skips_disabled(adapters, registry):
    resolver = ProviderResolver(
        adapters,
        registry=registry,
        priority=["ipor", "upshift"],
        is_enabled=lambda provider: provider != "ipor",
    )
    assert (await resolver.resolve(1, OTHER)).provider is Provider.UPSHIFT
    adapters[Provider.IPOR].get_vault.assert_not_awaited()


@pytest.mark.asyncio
async def test_best_effort_all_fail_is_not_found(resolver, adapters):
    adapters[Provider.IPOR].get_vault.side_effect = NotFoundError("no")
    adapters[Provider.UPSHIFT].get_vault.side_effect = UpstreamError("down")

    with pytest.raises(NotFoundError):
        await resolver.resolve(1, OTHER)


@pytest.mark.asyncio
async def test_slug_is_translated_before_resolution(resolver, adapters):
    adapters[Provider.UPSHIFT].find_address_by_slug.return_value = CURATED_UPSHIFT

    record = await resolver.resolve(1, "upusdc")

    assert record.id == CURATED_UPSHIFT
    adapters[Provider.UPSHIFT].get_vault.assert_awaited_once_with(1, CURATED_UPSHIFT)
    adapters[Provider.IPOR].find_address_by_slug.assert_awaited_once_with(1, "upusdc")


@pytest.mark.asyncio
async def test_slug_translation_failure_skips_adapter(resolver, adapters):
    adapters[Provider.IPOR].find_address_by_slug.side_effect = UpstreamError("down")
    adapters[Provider.UPSHIFT].find_address_by_slug.return_value = OTHER

    record = await resolver.resolve(1, "some-slug")

    assert record.id == OTHER


@pytest.mark.asyncio
async def test_unknown_slug_is_not_found(resolver):
    with pytest.raises(NotFoundError):
        await resolver.resolve(1, "nothing-here")


@pytest.mark.asyncio
async def test_slug_mapped_to_non_address_is_ignored(resolver, adapters):
    adapters[Provider.IPOR].find_address_by_slug.return_value = "still-a-slug"
    with pytest.raises(NotFoundError):
        await resolver.resolve(1, "loop")
