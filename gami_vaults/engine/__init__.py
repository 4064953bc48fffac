from gami_vaults.engine.resolver import ProviderResolver, first_success
from gami_vaults.engine.service import VaultEngine, compute_portfolio, compute_stats
from gami_vaults.engine.transactions import (
    AsyncRedemptionStrategy,
    SyncRedemptionStrategy,
    TransactionBuilder,
    strategy_for,
)

__all__ = [
    "AsyncRedemptionStrategy",
    "ProviderResolver",
    "SyncRedemptionStrategy",
    "TransactionBuilder",
    "VaultEngine",
    "compute_portfolio",
    "compute_stats",
    "first_success",
    "strategy_for",
]
