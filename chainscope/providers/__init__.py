"""
On-chain data providers.
Helius supplies enhanced transaction history, Solscan supplies entity metadata.
"""

from chainscope.providers.base import (
    EntityMetadataProvider,
    ProviderError,
    TransactionProvider,
)
from chainscope.providers.helius import HeliusClient
from chainscope.providers.models import (
    EntityMetadata,
    NativeTransfer,
    ProviderResult,
    TokenTransfer,
    Transaction,
)
from chainscope.providers.solscan import SolscanClient

__all__ = [
    "EntityMetadata",
    "EntityMetadataProvider",
    "HeliusClient",
    "NativeTransfer",
    "ProviderError",
    "ProviderResult",
    "SolscanClient",
    "TokenTransfer",
    "Transaction",
    "TransactionProvider",
]
