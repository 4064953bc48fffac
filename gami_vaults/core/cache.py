from __future__ import annotations

import asyncio
import contextlib
import copy
import time
from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from loguru import logger

from gami_vaults.core.constants.base import CACHE_SWEEP_INTERVAL_S


@dataclass(slots=True)
class CacheEntry:
    data: Any
    stored_at: float
    ttl: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl


class TTLCache:
    """
    In-process key/value store with per-entry TTL.

    Expired entries are dropped lazily on read and eagerly by ``sweep()``.
    ``start()`` schedules a background task that sweeps every
    ``sweep_interval_s`` seconds until ``close()``. The clock is injectable so
    expiry can be driven by a fake clock in tests.

    Mutable containers (list/dict/set) are copied on the way in and out, so
    callers never share state with the cache. Frozen models are shared as-is.
    """

    def __init__(
        self,
        *,
        clock: Callable[[], float] = time.monotonic,
        sweep_interval_s: float = CACHE_SWEEP_INTERVAL_S,
    ) -> None:
        self._clock = clock
        self._sweep_interval_s = float(sweep_interval_s)
        self._entries: dict[str, CacheEntry] = {}
        self._sweep_task: asyncio.Task | None = None

    @staticmethod
    def _detach(value: Any) -> Any:
        if isinstance(value, (list, dict, set)):
            return copy.copy(value)
        return value

    def set(self, key: str, value: Any, ttl_s: float) -> None:
        self._entries[key] = CacheEntry(
            data=self._detach(value), stored_at=self._clock(), ttl=float(ttl_s)
        )

    def lookup(self, key: str) -> tuple[bool, Any]:
        entry = self._entries.get(key)
        if entry is None:
            return False, None
        if entry.is_expired(self._clock()):
            del self._entries[key]
            return False, None
        return True, self._detach(entry.data)

    def get(self, key: str) -> Any | None:
        _, value = self.lookup(key)
        return value

    def has(self, key: str) -> bool:
        found, _ = self.lookup(key)
        return found

    def delete(self, key: str) -> bool:
        return self._entries.pop(key, None) is not None

    def clear(self) -> None:
        self._entries.clear()

    def sweep(self) -> int:
        now = self._clock()
        expired = [k for k, e in self._entries.items() if e.is_expired(now)]
        for key in expired:
            del self._entries[key]
        if expired:
            logger.debug(f"Cache sweep removed {len(expired)} expired entries")
        return len(expired)

    def stats(self) -> dict[str, Any]:
        return {"size": len(self._entries), "keys": list(self._entries)}

    def __len__(self) -> int:
        return len(self._entries)

    # -- lifecycle -------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._sweep_task is not None and not self._sweep_task.done()

    async def _sweep_loop(self) -> None:
        while True:
            await asyncio.sleep(self._sweep_interval_s)
            self.sweep()

    def start(self) -> None:
        if self.running:
            return
        self._sweep_task = asyncio.get_running_loop().create_task(self._sweep_loop())

    async def close(self) -> None:
        task, self._sweep_task = self._sweep_task, None
        if task is None:
            return
        task.cancel()
        with contextlib.suppress(asyncio.CancelledError):
            await task

    async def __aenter__(self) -> TTLCache:
        self.start()
        return self

    async def __aexit__(self, *exc: object) -> None:
        await self.close()


class CacheKeys:
    @staticmethod
    def vaults(chain_ids: list[int] | tuple[int, ...], provider: str | None = None) -> str:
        key = "vaults:" + ",".join(str(c) for c in sorted(int(c) for c in chain_ids))
        return f"{key}:{provider}" if provider else key

    @staticmethod
    def vault(chain_id: int, vault_id: str) -> str:
        return f"vault:{chain_id}:{str(vault_id).lower()}"

    @staticmethod
    def redemptions(chain_id: int, vault: str, address: str) -> str:
        return f"redemptions:{chain_id}:{vault.lower()}:{address.lower()}"

    @staticmethod
    def historical(chain_id: int, vault: str, period: str) -> str:
        return f"historical:{chain_id}:{vault.lower()}:{period}"

    @staticmethod
    def portfolio(chain_id: int, address: str) -> str:
        return f"portfolio:{chain_id}:{address.lower()}"

    @staticmethod
    def activity(chain_id: int, vault: str) -> str:
        return f"activity:{chain_id}:{vault.lower()}"

    @staticmethod
    def stats(chain_ids: list[int] | tuple[int, ...]) -> str:
        return "stats:" + ",".join(str(c) for c in sorted(int(c) for c in chain_ids))
