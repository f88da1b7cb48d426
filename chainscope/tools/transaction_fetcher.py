"""
Transaction fetcher tools.
Retrieves transaction history by address, token mint, or signature.
"""

import logging
from typing import List, Optional

from pydantic import BaseModel, Field

from chainscope.providers.base import ProviderError, TransactionProvider
from chainscope.providers.models import Transaction

logger = logging.getLogger(__name__)


class FetchTransactionsInput(BaseModel):
    """Input schema for address history retrieval."""

    address: str = Field(min_length=1, description="Wallet or pool address")
    hours_back: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of hours to look back (None = latest page only)",
    )


class FetchTokenTransactionsInput(BaseModel):
    """Input schema for token-filtered retrieval."""

    wallet_address: str = Field(min_length=1, description="Wallet address")
    token_mint: str = Field(min_length=1, description="Token mint address")
    hours_back: Optional[int] = Field(
        default=None,
        ge=1,
        description="Number of hours to look back",
    )


class FetchBySignatureInput(BaseModel):
    """Input schema for signature lookup."""

    signatures: List[str] = Field(min_length=1, description="Transaction signatures")


class FetchTransactionsOutput(BaseModel):
    """Output schema shared by all retrieval tools."""

    success: bool
    total_transactions: int = 0
    transactions: List[Transaction] = Field(default_factory=list)
    time_range: Optional[str] = None
    error: Optional[str] = None


def describe_time_range(hours_back: Optional[int]) -> str:
    return f"Last {hours_back} hours" if hours_back else "Recent transactions"


class TransactionFetcher:
    """
    Tool for retrieving enhanced transaction history.

    Provider failures are reported as ``success=False`` with the error text so
    the calling node decides whether the failure is terminal.
    """

    def __init__(self, provider: TransactionProvider):
        self.provider = provider

    async def fetch_by_address(self, input_data: dict) -> FetchTransactionsOutput:
        """
        Fetch all transactions for an address within the window.

        Args:
            input_data: Dictionary matching FetchTransactionsInput schema

        Returns:
            FetchTransactionsOutput, newest first
        """
        validated_input = FetchTransactionsInput.model_validate(input_data)

        try:
            transactions = await self.provider.get_transactions_by_address(
                validated_input.address, validated_input.hours_back
            )
        except ProviderError as e:
            logger.error(f"Fetching transactions for {validated_input.address} failed: {e}")
            return FetchTransactionsOutput(success=False, error=e.message)

        return FetchTransactionsOutput(
            success=True,
            total_transactions=len(transactions),
            transactions=transactions,
            time_range=describe_time_range(validated_input.hours_back),
        )

    async def fetch_token_transactions(
        self, input_data: dict
    ) -> FetchTransactionsOutput:
        """Fetch transactions of a wallet that touch one token mint."""
        validated_input = FetchTokenTransactionsInput.model_validate(input_data)

        try:
            transactions = await self.provider.get_token_transactions(
                validated_input.wallet_address,
                validated_input.token_mint,
                validated_input.hours_back,
            )
        except ProviderError as e:
            logger.error(
                f"Fetching {validated_input.token_mint} transactions for "
                f"{validated_input.wallet_address} failed: {e}"
            )
            return FetchTransactionsOutput(success=False, error=e.message)

        return FetchTransactionsOutput(
            success=True,
            total_transactions=len(transactions),
            transactions=transactions,
            time_range=describe_time_range(validated_input.hours_back),
        )

    async def fetch_by_signatures(self, input_data: dict) -> FetchTransactionsOutput:
        """Resolve transactions directly by signature."""
        validated_input = FetchBySignatureInput.model_validate(input_data)

        try:
            transactions = await self.provider.get_transactions_by_signature(
                validated_input.signatures
            )
        except ProviderError as e:
            logger.error(f"Signature lookup failed: {e}")
            return FetchTransactionsOutput(success=False, error=e.message)

        return FetchTransactionsOutput(
            success=True,
            total_transactions=len(transactions),
            transactions=transactions,
        )
