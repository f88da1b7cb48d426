"""
Provider interfaces consumed by the analysis tools.
"""

from abc import ABC, abstractmethod
from typing import List, Optional

from chainscope.providers.models import ProviderResult, Transaction


class ProviderError(Exception):
    """Raised when a transaction provider request fails."""

    def __init__(self, message: str, provider: str):
        self.message = message
        self.provider = provider
        super().__init__(self.message)


class TransactionProvider(ABC):
    """Source of enhanced transaction history. Failures raise ProviderError."""

    @abstractmethod
    async def get_transactions_by_signature(
        self, signatures: List[str]
    ) -> List[Transaction]:
        """Resolve transactions directly by signature."""
        pass

    @abstractmethod
    async def get_transactions_by_address(
        self,
        address: str,
        hours_back: Optional[int] = None,
        before: Optional[str] = None,
    ) -> List[Transaction]:
        """Fetch history for an address, newest first."""
        pass

    async def get_token_transactions(
        self,
        address: str,
        token_mint: str,
        hours_back: Optional[int] = None,
    ) -> List[Transaction]:
        """Fetch history for an address restricted to one token mint."""
        transactions = await self.get_transactions_by_address(address, hours_back)
        return [tx for tx in transactions if tx.touches_mint(token_mint)]

    async def aclose(self) -> None:
        """Release network resources."""
        return None


class EntityMetadataProvider(ABC):
    """Source of address classification. Never raises past the adapter."""

    @abstractmethod
    async def search(self, address: str) -> ProviderResult:
        """Search-style lookup (carries isOnCurve and label metadata)."""
        pass

    @abstractmethod
    async def get_account_info(self, address: str) -> ProviderResult:
        """Direct account-info lookup."""
        pass

    async def aclose(self) -> None:
        """Release network resources."""
        return None
