__version__ = "0.1.0"

from gami_vaults.core import (
    BaseVaultAdapter,
    CallDescriptor,
    Provider,
    VaultRecord,
    VaultVariant,
)
from gami_vaults.engine import VaultEngine

__all__ = [
    "__version__",
    "BaseVaultAdapter",
    "CallDescriptor",
    "Provider",
    "VaultEngine",
    "VaultRecord",
    "VaultVariant",
]
