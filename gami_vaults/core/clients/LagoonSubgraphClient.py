from __future__ import annotations

from typing import Any

from gami_vaults.core.clients.HttpClient import HttpClient
from gami_vaults.core.constants.base import (
    LAGOON_ACTIVITY_PAGE_SIZE,
    LAGOON_SUBGRAPH_PAGE_SIZE,
)
from gami_vaults.core.errors import UpstreamError
from gami_vaults.core.models import PeriodSummary

_PERIOD_FIELDS = """
        totalAssetsAtStart
        totalSupplyAtStart
        totalAssetsAtEnd
        totalSupplyAtEnd
        netTotalSupplyAtEnd
        blockTimestamp
        duration
"""


def _period_summaries_query(with_before: bool) -> str:
    before_var = ", $before: BigInt!" if with_before else ""
    before_filter = ", blockTimestamp_lt: $before" if with_before else ""
    return f"""
    query PeriodSummaries($vault: Bytes!, $first: Int!{before_var}) {{
      periodSummaries(
        where: {{ vault: $vault{before_filter} }}
        orderBy: blockTimestamp
        orderDirection: desc
        first: $first
      ) {{{_PERIOD_FIELDS}      }}
    }}
    """


# entity -> fields, all ordered newest first
ACTIVITY_ENTITIES: dict[str, str] = {
    "deposits": "id owner shares assets blockTimestamp transactionHash",
    "withdraws": "id owner shares assets blockTimestamp transactionHash",
    "depositRequests": "id owner sender assets blockTimestamp transactionHash",
    "totalAssetsUpdateds": "id totalAssets blockTimestamp transactionHash",
    "settleDeposits": "id totalAssets totalSupply blockTimestamp transactionHash",
    "settleRedeems": "id totalAssets totalSupply blockTimestamp transactionHash",
}


def _activity_query() -> str:
    selections = "".join(
        f"""
      {entity}(
        where: {{ vault: $vault }}
        orderBy: blockTimestamp
        orderDirection: desc
        first: $first
        skip: $skip
      ) {{ {fields} }}"""
        for entity, fields in ACTIVITY_ENTITIES.items()
    )
    return f"""
    query VaultActivity($vault: Bytes!, $first: Int!, $skip: Int!) {{{selections}
    }}
    """


class LagoonSubgraphClient(HttpClient):
    """GraphQL client for the Lagoon vault subgraph."""

    name = "lagoon-subgraph"

    def __init__(
        self,
        subgraph_url: str,
        *,
        page_size: int = LAGOON_SUBGRAPH_PAGE_SIZE,
        **kwargs: Any,
    ) -> None:
        super().__init__(**kwargs)
        self.subgraph_url = str(subgraph_url)
        self.page_size = int(page_size)
        self.headers["Content-Type"] = "application/json"

    async def _post(self, *, query: str, variables: dict[str, Any] | None = None) -> Any:
        resp = await self._request(
            "POST",
            self.subgraph_url,
            json={"query": query, "variables": variables or {}},
        )
        data = resp.json()
        if isinstance(data, dict) and data.get("errors"):
            raise UpstreamError(
                f"Lagoon GraphQL errors: {data['errors']}", provider="lagoon"
            )
        return data.get("data", data) if isinstance(data, dict) else data

    async def get_period_summaries_page(
        self, vault: str, *, before: int | None = None, first: int | None = None
    ) -> list[PeriodSummary]:
        variables: dict[str, Any] = {
            "vault": vault.lower(),
            "first": first or self.page_size,
        }
        if before is not None:
            variables["before"] = str(before)
        payload = await self._post(
            query=_period_summaries_query(before is not None), variables=variables
        )
        rows = (payload or {}).get("periodSummaries") or []
        return [PeriodSummary.from_subgraph(r) for r in rows if isinstance(r, dict)]

    async def get_period_summaries(
        self, vault: str, *, until_ts: int | None = None
    ) -> list[PeriodSummary]:
        """
        Every period summary for ``vault``, newest first.

        Walks pages backwards with a ``blockTimestamp_lt`` cursor. Stops on a
        short page or, when ``until_ts`` is given, once the page reaches past it.
        """
        summaries: list[PeriodSummary] = []
        before: int | None = None
        while True:
            page = await self.get_period_summaries_page(vault, before=before)
            if not page:
                break
            summaries.extend(page)

            oldest_ts = page[-1].start_timestamp
            if len(page) < self.page_size or oldest_ts <= 0:
                break
            if until_ts is not None and oldest_ts < until_ts:
                break
            before = oldest_ts - 1
        return summaries

    async def get_vault_activity_page(
        self, vault: str, *, first: int = LAGOON_ACTIVITY_PAGE_SIZE, skip: int = 0
    ) -> dict[str, list[dict[str, Any]]]:
        payload = await self._post(
            query=_activity_query(),
            variables={"vault": vault.lower(), "first": int(first), "skip": int(skip)},
        )
        payload = payload or {}
        return {
            entity: [row for row in (payload.get(entity) or []) if isinstance(row, dict)]
            for entity in ACTIVITY_ENTITIES
        }

    async def get_vault_activity(
        self, vault: str, *, first: int = LAGOON_ACTIVITY_PAGE_SIZE
    ) -> dict[str, list[dict[str, Any]]]:
        """
        Every activity event for ``vault``, grouped by subgraph entity.

        All entities share one ``skip`` offset; paging stops once no entity
        returns a full page.
        """
        events: dict[str, list[dict[str, Any]]] = {e: [] for e in ACTIVITY_ENTITIES}
        skip = 0
        while True:
            page = await self.get_vault_activity_page(vault, first=first, skip=skip)
            for entity, rows in page.items():
                events[entity].extend(rows)
            if not any(len(rows) >= first for rows in page.values()):
                break
            skip += first
        return events
