"""
Solscan metadata adapter: address search and account info.
"""

import logging
from typing import Any, Optional

import httpx

from chainscope.config import settings
from chainscope.providers.base import EntityMetadataProvider
from chainscope.providers.models import ProviderResult

logger = logging.getLogger(__name__)


class SolscanClient(EntityMetadataProvider):
    """
    Async client for the Solscan v2 API.

    Both lookups report failures through ProviderResult instead of raising.
    """

    SEARCH_PATH = "/v2/search"
    ACCOUNT_PATH = "/v2/account"

    def __init__(
        self,
        base_url: Optional[str] = None,
        cookie: Optional[str] = None,
        timeout: Optional[float] = None,
        http_client: Optional[httpx.AsyncClient] = None,
    ):
        self.base_url = (base_url or settings.solscan_base_url).rstrip("/")
        self.cookie = cookie if cookie is not None else settings.solscan_cookie
        self.timeout = timeout or settings.http_timeout_seconds
        self._client = http_client
        self._owns_client = http_client is None

    def _headers(self) -> dict[str, str]:
        headers = {
            "accept": "application/json, text/plain, */*",
            "origin": "https://solscan.io",
            "referer": "https://solscan.io/",
        }
        if self.cookie:
            headers["cookie"] = self.cookie
        return headers

    def _get_client(self) -> httpx.AsyncClient:
        if self._client is None:
            self._client = httpx.AsyncClient(timeout=self.timeout)
        return self._client

    async def aclose(self) -> None:
        if self._client is not None and self._owns_client:
            await self._client.aclose()
            self._client = None

    @staticmethod
    def _strip_token_listing(payload: Any) -> Any:
        # Token listings are large and never read downstream.
        if isinstance(payload, dict) and isinstance(payload.get("metadata"), dict):
            payload["metadata"].pop("tokens", None)
        return payload

    async def _get(self, path: str, params: dict) -> ProviderResult:
        try:
            response = await self._get_client().get(
                f"{self.base_url}{path}", params=params, headers=self._headers()
            )
            response.raise_for_status()
            payload = response.json()
        except httpx.HTTPStatusError as e:
            logger.warning(f"Solscan {path} returned HTTP {e.response.status_code}")
            return ProviderResult(
                success=False,
                error=f"Solscan returned HTTP {e.response.status_code}",
            )
        except (httpx.HTTPError, ValueError) as e:
            logger.warning(f"Solscan {path} request failed: {e}")
            return ProviderResult(success=False, error=f"Solscan request failed: {e}")

        return ProviderResult(success=True, data=self._strip_token_listing(payload))

    async def search(self, address: str) -> ProviderResult:
        return await self._get(self.SEARCH_PATH, {"keyword": address})

    async def get_account_info(self, address: str) -> ProviderResult:
        return await self._get(
            self.ACCOUNT_PATH, {"address": address, "view_as": "account"}
        )
