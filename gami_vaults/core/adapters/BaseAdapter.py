from __future__ import annotations

import functools
from abc import ABC, abstractmethod
from collections.abc import Callable
from typing import Any

from loguru import logger

from gami_vaults.core.errors import (
    InvalidInputError,
    UnsupportedError,
    UpstreamError,
    VaultEngineError,
)
from gami_vaults.core.models import CuratedVault, Provider, VaultRecord, VaultVariant
from gami_vaults.core.utils.normalize import is_address


def upstream_errors(fn: Callable) -> Callable:
    """Re-raise anything that is not already a typed engine error as ``UpstreamError``."""

    @functools.wraps(fn)
    async def wrapper(self: BaseVaultAdapter, *args: Any, **kwargs: Any) -> Any:
        try:
            return await fn(self, *args, **kwargs)
        except VaultEngineError:
            raise
        except Exception as exc:
            raise UpstreamError(
                f"{fn.__name__} failed: {exc}", provider=str(self.provider), cause=exc
            ) from exc

    return wrapper


class BaseVaultAdapter(ABC):
    """
    One external vault source mapped onto ``VaultRecord``.

    Adapters raise typed errors: ``NotFoundError`` when the source has no such
    vault, ``UpstreamError`` when the source itself failed. They never return
    partial records silently.
    """

    provider: Provider
    variant: VaultVariant = VaultVariant.SYNC

    def __init__(self, name: str, config: dict[str, Any] | None = None):
        self.name = name
        self.config = config or {}
        self.logger = logger.bind(adapter=self.__class__.__name__)

    @staticmethod
    def require_address(address: str) -> str:
        if not is_address(address):
            raise InvalidInputError(f"Invalid vault address: {address!r}")
        return address

    def supports_chain(self, chain_id: int) -> bool:
        return True

    def ensure_chain(self, chain_id: int) -> None:
        if not self.supports_chain(chain_id):
            raise UnsupportedError(f"{self.provider} does not support chain {chain_id}")

    @abstractmethod
    async def get_vault(self, chain_id: int, address: str) -> VaultRecord: ...

    async def list_vaults(self, chain_ids: list[int]) -> list[VaultRecord]:
        return []

    async def find_address_by_slug(self, chain_id: int, slug: str) -> str | None:
        return None

    async def get_curated_vault(self, curated: CuratedVault) -> VaultRecord:
        return await self.get_vault(curated.chain_id, curated.address)

    def placeholder(self, curated: CuratedVault) -> VaultRecord | None:
        """Stand-in record when a curated vault cannot be read. ``None`` means no stand-in."""
        return None

    async def close(self) -> None:
        pass
