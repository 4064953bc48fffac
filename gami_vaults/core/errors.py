from __future__ import annotations


class VaultEngineError(Exception):
    """Base class for every error raised by the vault engine."""


class NotFoundError(VaultEngineError):
    """No provider could produce a record for the requested vault."""


class UnsupportedError(VaultEngineError):
    """The chain, provider or action is not supported."""


class InvalidInputError(VaultEngineError, ValueError):
    """Caller supplied a malformed address, amount or identifier."""


class UpstreamError(VaultEngineError):
    """An external source (REST API, subgraph or RPC) failed or returned garbage."""

    def __init__(
        self,
        message: str,
        *,
        provider: str | None = None,
        cause: BaseException | None = None,
    ) -> None:
        super().__init__(message)
        self.provider = provider
        self.cause = cause

    def __str__(self) -> str:
        base = super().__str__()
        if self.provider:
            return f"[{self.provider}] {base}"
        return base
