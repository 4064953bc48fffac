from __future__ import annotations

from typing import Any, TypedDict

from gami_vaults.core.clients.HttpClient import HttpClient
from gami_vaults.core.config import get_ipor_api_url


class IporVault(TypedDict):
    address: str
    chainId: int
    name: str
    asset: str
    assetAddress: str
    tvl: str
    apy: str


class IporClient(HttpClient):
    """IPOR Fusion vault index."""

    name = "ipor"

    def __init__(self, *, api_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.api_url = api_url or get_ipor_api_url()

    async def get_vaults(self) -> list[IporVault]:
        data = await self._get_json(self.api_url)
        vaults = data.get("vaults") if isinstance(data, dict) else None
        return [v for v in (vaults or []) if isinstance(v, dict)]
