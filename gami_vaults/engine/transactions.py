from __future__ import annotations

from abc import ABC
from collections.abc import Awaitable, Callable

from loguru import logger

from gami_vaults.core.errors import InvalidInputError, UpstreamError
from gami_vaults.core.models import (
    CallDescriptor,
    VaultAction,
    VaultRecord,
    VaultVariant,
)
from gami_vaults.core.utils.normalize import is_address
from gami_vaults.core.utils.tokens import get_token_decimals, is_native_token
from gami_vaults.core.utils.transaction import encode_call
from gami_vaults.core.utils.units import parse_units, validate_amount

APPROVE_SIGNATURE = "approve(address,uint256)"
# 10**78 no longer fits in a uint256
MAX_TOKEN_DECIMALS = 77

DecimalsReader = Callable[[str, int], Awaitable[int]]


class RedemptionStrategy(ABC):
    """Call shapes for one vault variant."""

    variant: VaultVariant
    deposit_signature: str
    withdraw_signature: str

    def deposit_args(self, assets: int, user_address: str) -> list:
        return [assets, user_address, user_address]

    def withdraw_args(self, shares: int, user_address: str) -> list:
        return [shares, user_address, user_address]

    def build_deposit(
        self, vault: VaultRecord, assets: int, user_address: str
    ) -> CallDescriptor:
        return encode_call(
            target=vault.id,
            signature=self.deposit_signature,
            args=self.deposit_args(assets, user_address),
            chain_id=vault.chain_id,
        )

    def build_withdraw(
        self, vault: VaultRecord, shares: int, user_address: str
    ) -> CallDescriptor:
        return encode_call(
            target=vault.id,
            signature=self.withdraw_signature,
            args=self.withdraw_args(shares, user_address),
            chain_id=vault.chain_id,
        )


class SyncRedemptionStrategy(RedemptionStrategy):
    """ERC-4626: deposit and redeem settle in the same call."""

    variant = VaultVariant.SYNC
    deposit_signature = "deposit(uint256,address)"
    withdraw_signature = "redeem(uint256,address,address)"

    def deposit_args(self, assets: int, user_address: str) -> list:
        return [assets, user_address]


class AsyncRedemptionStrategy(RedemptionStrategy):
    """
    ERC-7540: only the request is emitted.

    The position stays pending until the vault settles; claiming happens later
    and is left to the caller.
    """

    variant = VaultVariant.ASYNC
    deposit_signature = "requestDeposit(uint256,address,address)"
    withdraw_signature = "requestRedeem(uint256,address,address)"


STRATEGIES: dict[VaultVariant, RedemptionStrategy] = {
    VaultVariant.SYNC: SyncRedemptionStrategy(),
    VaultVariant.ASYNC: AsyncRedemptionStrategy(),
}


def strategy_for(variant: VaultVariant | str | None) -> RedemptionStrategy:
    try:
        return STRATEGIES[VaultVariant(variant)]
    except (ValueError, KeyError) as exc:
        raise InvalidInputError(f"Unknown vault variant: {variant!r}") from exc


class TransactionBuilder:
    """
    Unsigned deposit/withdraw/approve calls for a resolved vault.

    Inputs are validated before anything touches the chain. Token decimals are
    always read from the contract; a failed read raises ``UpstreamError``
    instead of assuming 18.
    """

    def __init__(self, *, decimals_reader: DecimalsReader = get_token_decimals) -> None:
        self._read_decimals = decimals_reader

    async def build(
        self,
        vault: VaultRecord,
        action: VaultAction | str,
        amount: str,
        user_address: str,
        *,
        spender: str | None = None,
    ) -> CallDescriptor:
        try:
            action = VaultAction(action)
        except ValueError as exc:
            raise InvalidInputError(f"Unknown action: {action!r}") from exc
        strategy = strategy_for(vault.variant)
        if not is_address(vault.id):
            raise InvalidInputError(f"Vault id is not an address: {vault.id!r}")
        if not is_address(user_address):
            raise InvalidInputError(f"Invalid user address: {user_address!r}")
        amount = validate_amount(amount)
        if action is not VaultAction.WITHDRAW and not is_address(vault.underlying.address):
            raise InvalidInputError(
                f"Underlying token of vault {vault.id} has no address: "
                f"{vault.underlying.address!r}"
            )

        if action is VaultAction.APPROVE:
            spender = spender or vault.id
            if not is_address(spender):
                raise InvalidInputError(f"Invalid spender: {spender!r}")
            if is_native_token(vault.underlying.address):
                raise InvalidInputError(
                    f"{vault.underlying.symbol} is native and cannot be approved"
                )

        # withdraw amounts are shares, so precision comes from the vault itself
        token = vault.id if action is VaultAction.WITHDRAW else vault.underlying.address
        decimals = await self._decimals(token, vault)
        raw = parse_units(amount, decimals)

        if action is VaultAction.APPROVE:
            call = encode_call(
                target=vault.underlying.address,
                signature=APPROVE_SIGNATURE,
                args=[spender, raw],
                chain_id=vault.chain_id,
            )
        elif action is VaultAction.DEPOSIT:
            call = strategy.build_deposit(vault, raw, user_address)
        else:
            call = strategy.build_withdraw(vault, raw, user_address)

        logger.info(
            f"Built {action} for {vault.provider} vault {vault.id} "
            f"({strategy.variant}) amount={amount} raw={raw}"
        )
        return call

    async def _decimals(self, token: str, vault: VaultRecord) -> int:
        try:
            decimals = int(await self._read_decimals(token, vault.chain_id))
        except Exception as exc:
            raise UpstreamError(
                f"Could not read decimals of {token} on chain {vault.chain_id}",
                provider=str(vault.provider),
                cause=exc,
            ) from exc
        if not 0 <= decimals <= MAX_TOKEN_DECIMALS:
            raise UpstreamError(
                f"Implausible decimals {decimals} for {token}",
                provider=str(vault.provider),
            )
        return decimals
