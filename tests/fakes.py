"""
In-memory stand-ins for the on-chain providers and the completion service.
"""

from typing import Dict, List, Optional, Set

from chainscope.llm.completion import CompletionService
from chainscope.providers.base import (
    EntityMetadataProvider,
    ProviderError,
    TransactionProvider,
)
from chainscope.providers.models import ProviderResult, TokenTransfer, Transaction
from chainscope.tools.query_interpreter import PARSE_SYSTEM_PROMPT

FOCAL = "5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1"
WASH_TRADER = "9WzDXwBbmkg8ZTbNMqUxvQRAyrZzDsGYdLVL9zYtAWWM"
POOL_PDA = "7xKXtg2CW87d97TXJSDpbD5jBkheTqA83TZRuJosgAsU"
BYSTANDER = "HN7cABqLq46Es1jh92dQQisAq662SmxELLLsHHe4YWrH"
BONK_MINT = "DezXAZ8z7PnrnRJjz3wXBoRgixCa6xjnB7YaB1pPB263"
USDC_MINT = "EPjFWdd5AufqSSqeM2qN1xzybapC8G4wEGGkZwyTDt1v"
SIGNATURE = (
    "1eV1eejqaCUZ8e6GQkGmD3FNZQGQZnSgy893mL1LyCXrUkYTA5Ae2AGFcGeE6nUrRHqEHMZv4R4MYdPXjnqBBBRp"
)

NOW = 1_760_000_000


def transfer(
    sender: Optional[str],
    receiver: Optional[str],
    amount: float = 1.0,
    mint: str = USDC_MINT,
) -> TokenTransfer:
    return TokenTransfer(
        mint=mint,
        from_user_account=sender,
        to_user_account=receiver,
        token_amount=amount,
    )


def tx(
    signature: str,
    transfers: List[TokenTransfer],
    timestamp: Optional[int] = NOW,
    type: Optional[str] = "SWAP",
) -> Transaction:
    return Transaction(
        signature=signature,
        timestamp=timestamp,
        type=type,
        fee_payer=transfers[0].from_user_account if transfers else None,
        token_transfers=transfers,
    )


def abnormal_history() -> List[Transaction]:
    """
    History of FOCAL, newest first.

    WASH_TRADER buys and sells three times each, POOL_PDA sends 22 transfers
    at one-minute intervals, BYSTANDER receives a single transfer.
    """
    history = []
    for i in range(3):
        history.append(tx(f"wash-buy-{i}", [transfer(FOCAL, WASH_TRADER, 100)], NOW - i))
        history.append(tx(f"wash-sell-{i}", [transfer(WASH_TRADER, FOCAL, 100)], NOW - 10 - i))
    for i in range(22):
        history.append(tx(f"pool-{i}", [transfer(POOL_PDA, FOCAL, 5)], NOW - 100 - 60 * i))
    history.append(tx("bystander-0", [transfer(FOCAL, BYSTANDER, 1)], NOW - 5000))
    return history


def wash_trader_history() -> List[Transaction]:
    """Sixty transfers to five counterparties across three mints."""
    counterparties = [f"Counterparty{i}" for i in range(5)]
    mints = [USDC_MINT, BONK_MINT, "So11111111111111111111111111111111111111112"]
    return [
        tx(
            f"trader-{i}",
            [transfer(WASH_TRADER, counterparties[i % 5], 10, mints[i % 3])],
            NOW - 30 * i,
        )
        for i in range(60)
    ]


class FakeTransactionProvider(TransactionProvider):
    """Serves canned histories and records every request."""

    def __init__(
        self,
        histories: Optional[Dict[str, List[Transaction]]] = None,
        by_signature: Optional[Dict[str, Transaction]] = None,
        error: Optional[str] = None,
    ):
        self.histories = histories or {}
        self.by_signature = by_signature or {}
        self.error = error
        self.address_calls: List[tuple] = []
        self.signature_calls: List[List[str]] = []
        self.closed = False

    async def get_transactions_by_signature(self, signatures):
        self.signature_calls.append(list(signatures))
        if self.error:
            raise ProviderError(self.error, provider="fake")
        return [self.by_signature[s] for s in signatures if s in self.by_signature]

    async def get_transactions_by_address(self, address, hours_back=None, before=None):
        self.address_calls.append((address, hours_back))
        if self.error:
            raise ProviderError(self.error, provider="fake")
        return list(self.histories.get(address, []))

    async def aclose(self) -> None:
        self.closed = True


class FakeEntityProvider(EntityMetadataProvider):
    """
    Solscan-shaped payloads per address.

    Unknown addresses are on-curve wallets of type UNKNOWN; addresses in
    ``failing`` fail both lookups, addresses in ``failing_search`` only the
    search.
    """

    def __init__(
        self,
        search_results: Optional[Dict[str, dict]] = None,
        account_info: Optional[Dict[str, dict]] = None,
        failing: Optional[Set[str]] = None,
        failing_search: Optional[Set[str]] = None,
    ):
        self.search_results = search_results or {}
        self.account_info = account_info or {}
        self.failing = failing or set()
        self.failing_search = failing_search or set()
        self.search_calls: List[str] = []
        self.account_calls: List[str] = []

    async def search(self, address: str) -> ProviderResult:
        self.search_calls.append(address)
        if address in self.failing or address in self.failing_search:
            return ProviderResult(success=False, error="Solscan returned HTTP 503")
        payload = self.search_results.get(
            address, {"success": True, "data": [{"isOnCurve": True}]}
        )
        return ProviderResult(success=True, data=payload)

    async def get_account_info(self, address: str) -> ProviderResult:
        self.account_calls.append(address)
        if address in self.failing:
            return ProviderResult(success=False, error="Solscan returned HTTP 503")
        payload = self.account_info.get(
            address, {"success": True, "data": {"type": "UNKNOWN"}}
        )
        return ProviderResult(success=True, data=payload)


class FakeCompletionService(CompletionService):
    """Answers the parse prompt and the analysis prompt with fixed text."""

    def __init__(
        self,
        parse_response: str = "{}",
        analysis_response: str = "### Summary\nNothing unusual.",
        error: Optional[str] = None,
        analysis_error: Optional[str] = None,
    ):
        self.parse_response = parse_response
        self.analysis_response = analysis_response
        self.error = error
        self.analysis_error = analysis_error
        self.calls: List[tuple] = []

    async def complete(self, system_prompt: str, user_prompt: str) -> str:
        self.calls.append((system_prompt, user_prompt))
        if self.error:
            raise RuntimeError(self.error)
        if system_prompt == PARSE_SYSTEM_PROMPT:
            return self.parse_response
        if self.analysis_error:
            raise RuntimeError(self.analysis_error)
        return self.analysis_response
