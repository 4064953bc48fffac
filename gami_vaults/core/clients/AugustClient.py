from __future__ import annotations

from typing import Any, NotRequired, Required, TypedDict

import httpx

from gami_vaults.core.clients.HttpClient import HttpClient
from gami_vaults.core.config import get_august_api_base_url


class AugustStrategist(TypedDict):
    id: Required[str]
    strategist_name: NotRequired[str]
    strategist_logo: NotRequired[str]


class AugustVault(TypedDict, total=False):
    id: str
    address: str
    chain: int
    vault_name: str
    receipt_token_symbol: str
    receipt_token_integrations: list[dict[str, Any]]
    reported_apy: dict[str, Any]
    weekly_performance_fee_bps: int
    status: str
    risk: str | None
    public_type: str
    description: str
    vault_logo_url: str
    start_datetime: str
    rewards: list[dict[str, Any]]
    hardcoded_strategists: list[AugustStrategist]
    subaccounts: list[dict[str, Any]]


class AugustClient(HttpClient):
    """August Digital REST API (backs Upshift vaults)."""

    name = "august"

    def __init__(self, *, base_url: str | None = None, **kwargs: Any) -> None:
        super().__init__(**kwargs)
        self.base_url = (base_url or get_august_api_base_url()).rstrip("/")

    async def get_vaults(self, status: str | None = None) -> list[AugustVault]:
        params = {"status": status} if status else None
        data = await self._get_json(f"{self.base_url}/tokenized_vault", params=params)
        return data if isinstance(data, list) else []

    async def get_vault(self, address: str) -> AugustVault:
        return await self._get_json(f"{self.base_url}/tokenized_vault/{address}")

    async def get_vault_summary(
        self, address: str, *, timeout_s: float | None = None
    ) -> dict[str, Any]:
        kwargs: dict[str, Any] = {}
        if timeout_s is not None:
            kwargs["timeout"] = httpx.Timeout(timeout_s)
        return await self._get_json(
            f"{self.base_url}/tokenized_vault/vault_summary/{address}", **kwargs
        )

    async def get_vault_apy(self, address: str) -> dict[str, Any]:
        return await self._get_json(
            f"{self.base_url}/tokenized_vault/annualized_apy/{address}"
        )

    async def get_vault_withdrawals(self, chain_id: int, address: str) -> dict[str, Any]:
        return await self._get_json(f"{self.base_url}/withdrawals/{chain_id}/{address}")

    async def get_positions(self, chain_id: int, user_address: str) -> list[dict[str, Any]]:
        data = await self._get_json(f"{self.base_url}/positions/{chain_id}/{user_address}")
        return data if isinstance(data, list) else []
