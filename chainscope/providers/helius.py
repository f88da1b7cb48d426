"""
Helius enhanced transactions adapter.

Fetches parsed transaction history by address (newest first, paginated with
``before``) and resolves transactions by signature.
"""

import logging
import time
from typing import Any, Callable, List, Optional

import httpx
from pydantic import ValidationError

from chainscope.config import settings
from chainscope.providers.base import ProviderError, TransactionProvider
from chainscope.providers.models import Transaction

logger = logging.getLogger(__name__)


class HeliusClient(TransactionProvider):
    """
    Async client for the Helius enhanced transactions API.

    Errors are never swallowed: HTTP failures and malformed payloads raise
    ProviderError so callers cannot mistake a partial history for a full one.
    """

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        clock: Callable[[], float] = time.time,
    ):
        self.api_key = api_key if api_key is not None else settings.helius_api_key
        self.base_url = (base_url or settings.helius_base_url).rstrip("/")
        self.timeout = timeout or settings.http_timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None
        self._clock = clock

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    def _parse_transactions(self, payload: Any) -> List[Transaction]:
        if payload is None:
            return []
        if not isinstance(payload, list):
            raise ProviderError(
                f"Unexpected transaction payload type: {type(payload).__name__}",
                provider="helius",
            )
        try:
            return [Transaction.model_validate(item) for item in payload]
        except ValidationError as e:
            raise ProviderError(f"Malformed transaction record: {e}", provider="helius")

    async def _request(self, method: str, path: str, **kwargs) -> Any:
        params = dict(kwargs.pop("params", None) or {})
        params["api-key"] = self.api_key
        url = f"{self.base_url}{path}"
        try:
            response = await self._get_client().request(
                method, url, params=params, **kwargs
            )
            response.raise_for_status()
            return response.json()
        except httpx.HTTPStatusError as e:
            raise ProviderError(
                f"Helius returned HTTP {e.response.status_code} for {path}",
                provider="helius",
            )
        except (httpx.HTTPError, ValueError) as e:
            raise ProviderError(f"Helius request failed: {e}", provider="helius")

    async def get_transactions_by_signature(
        self, signatures: List[str]
    ) -> List[Transaction]:
        logger.debug(f"Resolving {len(signatures)} signature(s) via Helius")
        payload = await self._request(
            "POST", "/v0/transactions", json={"transactions": signatures}
        )
        return self._parse_transactions(payload)

    async def get_transactions_page(
        self, address: str, before: Optional[str] = None
    ) -> List[Transaction]:
        """Fetch one page of history, newest first."""
        params = {"before": before} if before else {}
        payload = await self._request(
            "GET", f"/v0/addresses/{address}/transactions", params=params
        )
        return self._parse_transactions(payload)

    async def get_transactions_by_address(
        self,
        address: str,
        hours_back: Optional[int] = None,
        before: Optional[str] = None,
    ) -> List[Transaction]:
        if not hours_back:
            return await self.get_transactions_page(address, before)

        cutoff = int(self._clock()) - hours_back * 3600
        collected: List[Transaction] = []
        cursor = before
        pages = 0

        while True:
            page = await self.get_transactions_page(address, cursor)
            pages += 1
            if not page:
                break

            reached_cutoff = False
            for tx in page:
                if tx.timestamp is None:
                    continue
                if tx.timestamp >= cutoff:
                    collected.append(tx)
                else:
                    reached_cutoff = True
                    break

            next_cursor = page[-1].signature
            if reached_cutoff or next_cursor == cursor:
                break
            cursor = next_cursor

        logger.debug(
            f"Fetched {len(collected)} transactions for {address} "
            f"over {pages} page(s) (last {hours_back}h)"
        )
        return collected
