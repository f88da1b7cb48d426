"""
External services used by one or more pipeline runs.
"""

import logging
from typing import Optional

from chainscope.llm.completion import CompletionService, get_completion_service
from chainscope.providers.base import EntityMetadataProvider, TransactionProvider
from chainscope.providers.helius import HeliusClient
from chainscope.providers.solscan import SolscanClient

logger = logging.getLogger(__name__)


class AnalysisServices:
    """
    Transaction provider, entity metadata provider and completion service.

    A ``None`` completion service selects the deterministic mock paths of the
    interpreter and narrative tools.
    """

    def __init__(
        self,
        transaction_provider: TransactionProvider,
        entity_provider: EntityMetadataProvider,
        completion_service: Optional[CompletionService] = None,
    ):
        self.transaction_provider = transaction_provider
        self.entity_provider = entity_provider
        self.completion_service = completion_service

    @classmethod
    def from_settings(cls, force_mock: bool = False) -> "AnalysisServices":
        completion_service = None if force_mock else get_completion_service()
        if completion_service is None:
            logger.info("Running with mock completions")
        return cls(
            transaction_provider=HeliusClient(),
            entity_provider=SolscanClient(),
            completion_service=completion_service,
        )

    async def aclose(self) -> None:
        await self.transaction_provider.aclose()
        await self.entity_provider.aclose()
        if self.completion_service is not None:
            await self.completion_service.aclose()
