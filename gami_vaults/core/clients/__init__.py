from gami_vaults.core.clients.AugustClient import AugustClient
from gami_vaults.core.clients.HttpClient import HttpClient
from gami_vaults.core.clients.IporClient import IporClient
from gami_vaults.core.clients.LagoonSubgraphClient import LagoonSubgraphClient

__all__ = [
    "AugustClient",
    "HttpClient",
    "IporClient",
    "LagoonSubgraphClient",
]
