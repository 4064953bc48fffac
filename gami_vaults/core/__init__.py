from gami_vaults.core.adapters.BaseAdapter import BaseVaultAdapter
from gami_vaults.core.models import (
    CallDescriptor,
    Provider,
    VaultRecord,
    VaultVariant,
)

__all__ = [
    "BaseVaultAdapter",
    "CallDescriptor",
    "Provider",
    "VaultRecord",
    "VaultVariant",
]
