from __future__ import annotations

from collections.abc import Awaitable, Callable, Iterable, Mapping
from typing import Any, TypeVar

from loguru import logger

from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter
from gami_vaults.core.config import get_provider_priority, is_provider_enabled
from gami_vaults.core.constants.curated_vaults import (
    CURATED_REGISTRY,
    CuratedVaultRegistry,
)
from gami_vaults.core.errors import (
    InvalidInputError,
    NotFoundError,
    UnsupportedError,
)
from gami_vaults.core.models import CuratedVault, Provider, VaultRecord
from gami_vaults.core.utils.normalize import is_address


C = TypeVar("C")
T = TypeVar("T")


async def first_success(
    candidates: Iterable[C],
    attempt: Callable[[C], Awaitable[T | None]],
    *,
    on_error: Callable[[C, Exception], None] | None = None,
) -> T | None:
    """
    Try ``attempt`` on each candidate in order and return the first non-``None`` result.

    A candidate that raises is reported to ``on_error`` and skipped.
    ``InvalidInputError`` is not a per-candidate failure and propagates at once.
    """
    for candidate in candidates:
        try:
            result = await attempt(candidate)
        except InvalidInputError:
            raise
        except Exception as exc:  # noqa: BLE001
            if on_error is not None:
                on_error(candidate, exc)
            continue
        if result is not None:
            return result
    return None


class ProviderResolver:
    """
    Decides which adapter answers for ``(chain_id, vault_id)``.

    Curated vaults are pinned to one provider (strict mode). Everything else
    walks ``priority`` and takes the first adapter that knows the vault.
    """

    def __init__(
        self,
        adapters: Mapping[Provider, BaseVaultAdapter],
        *,
        registry: CuratedVaultRegistry = CURATED_REGISTRY,
        priority: list[Provider | str] | None = None,
        is_enabled: Callable[[str], bool] = is_provider_enabled,
    ) -> None:
        self.adapters = dict(adapters)
        self.registry = registry
        self.priority = [
            Provider(p) for p in (priority if priority is not None else get_provider_priority())
        ]
        self._is_enabled = is_enabled
        self.logger = logger.bind(component="ProviderResolver")

    def is_enabled(self, provider: Provider) -> bool:
        return provider in self.adapters and self._is_enabled(str(provider))

    def adapter_for(self, provider: Provider | str) -> BaseVaultAdapter:
        provider = Provider(provider)
        if not self.is_enabled(provider):
            raise UnsupportedError(f"Provider {provider} is disabled")
        return self.adapters[provider]

    def ordered_adapters(self) -> list[BaseVaultAdapter]:
        return [self.adapters[p] for p in self.priority if self.is_enabled(p)]

    async def resolve(self, chain_id: int, vault_id: str) -> VaultRecord:
        curated = self.registry.get(vault_id, chain_id)
        if curated is not None:
            return await self.resolve_curated(curated)
        if not is_address(vault_id):
            address = await self.translate_slug(chain_id, vault_id)
            if address is None:
                raise NotFoundError(f"No vault matches {vault_id!r} on chain {chain_id}")
            return await self.resolve(chain_id, address)
        return await self.resolve_best_effort(chain_id, vault_id)

    async def resolve_curated(self, curated: CuratedVault) -> VaultRecord:
        adapter = self.adapter_for(curated.provider)
        try:
            record = await adapter.get_curated_vault(curated)
        except InvalidInputError:
            raise
        except Exception as exc:  # noqa: BLE001
            placeholder = adapter.placeholder(curated)
            if placeholder is not None:
                self.logger.warning(
                    f"{curated.provider} vault {curated.address} unavailable, "
                    f"serving placeholder: {exc}"
                )
                return placeholder
            raise NotFoundError(
                f"Curated {curated.provider} vault {curated.address} "
                f"not found on chain {curated.chain_id}"
            ) from exc
        return self._annotate(record, adapter)

    async def resolve_best_effort(self, chain_id: int, address: str) -> VaultRecord:
        async def attempt(adapter: BaseVaultAdapter) -> VaultRecord:
            adapter.ensure_chain(chain_id)
            return self._annotate(await adapter.get_vault(chain_id, address), adapter)

        record = await first_success(
            self.ordered_adapters(), attempt, on_error=self._skip(address)
        )
        if record is None:
            raise NotFoundError(f"Vault {address} not found on chain {chain_id}")
        return record

    async def translate_slug(self, chain_id: int, slug: str) -> str | None:
        """Canonical vault address for a provider slug, asked in priority order."""

        async def attempt(adapter: BaseVaultAdapter) -> str | None:
            address = await adapter.find_address_by_slug(chain_id, slug)
            if address is not None and not is_address(address):
                self.logger.warning(
                    f"{adapter.provider} mapped slug {slug!r} to non-address {address!r}"
                )
                return None
            return address

        address = await first_success(
            self.ordered_adapters(), attempt, on_error=self._skip(slug)
        )
        if address is not None:
            self.logger.debug(f"Slug {slug!r} on chain {chain_id} -> {address}")
        return address

    def _skip(self, vault_id: str) -> Callable[[BaseVaultAdapter, Exception], None]:
        def report(adapter: BaseVaultAdapter, exc: Exception) -> None:
            if isinstance(exc, NotFoundError | UnsupportedError):
                self.logger.debug(f"{adapter.provider} has no {vault_id}: {exc}")
            else:
                self.logger.warning(f"{adapter.provider} failed for {vault_id}: {exc}")

        return report

    @staticmethod
    def _annotate(record: VaultRecord, adapter: BaseVaultAdapter) -> VaultRecord:
        update: dict[str, Any] = {}
        if record.provider != adapter.provider:
            update["provider"] = adapter.provider
        if record.variant != adapter.variant:
            update["variant"] = adapter.variant
        return record.model_copy(update=update) if update else record
