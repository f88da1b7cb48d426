"""
Entity lookup tools.
Wraps the metadata provider and normalizes its payloads into EntityMetadata.
"""

import logging
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from chainscope.providers.base import EntityMetadataProvider
from chainscope.providers.models import EntityMetadata

logger = logging.getLogger(__name__)


class AddressInput(BaseModel):
    """Input schema for single-address lookups."""

    address: str = Field(min_length=1, description="Solana address to look up")


class SearchAddressOutput(BaseModel):
    """Output schema for the search lookup."""

    success: bool
    results: Any = None
    error: Optional[str] = None


class AccountInfoOutput(BaseModel):
    """Output schema for the account-info lookup."""

    success: bool
    account_info: Any = None
    error: Optional[str] = None


def _first_record(payload: Any) -> Any:
    """Search results carry either a list or a single record under ``data``."""
    if not isinstance(payload, dict):
        return None
    data = payload.get("data")
    if isinstance(data, list):
        return data[0] if data else None
    return data


def _account_record(payload: Any) -> dict:
    if not isinstance(payload, dict):
        return {}
    data = payload.get("data")
    return data if isinstance(data, dict) else payload


def _nested_accounts(container: Any) -> Any:
    metadata = container.get("metadata") if isinstance(container, dict) else None
    return metadata.get("accounts") if isinstance(metadata, dict) else None


def _search_accounts(payload: Any) -> dict:
    if not isinstance(payload, dict):
        return {}
    candidates = [
        _nested_accounts(payload),
        _nested_accounts(payload.get("data")),
        payload.get("accounts"),
    ]
    for accounts in candidates:
        if isinstance(accounts, dict) and accounts:
            return accounts
    return {}


def _tags(value: Any) -> List[str]:
    if not isinstance(value, list):
        return []
    return [str(tag) for tag in value if tag]


def resolve_is_on_curve(search_payload: Any, account_payload: Any) -> Optional[bool]:
    """On-curve flag from the search result first, then account info."""
    record = _first_record(search_payload)
    if isinstance(record, dict) and isinstance(record.get("isOnCurve"), bool):
        return record["isOnCurve"]

    account = _account_record(account_payload)
    if isinstance(account.get("isOnCurve"), bool):
        return account["isOnCurve"]

    return None


def metadata_from_account_info(
    address: str,
    account_payload: Any,
    is_on_curve: Optional[bool],
) -> EntityMetadata:
    """EntityMetadata built from the account-info payload alone."""
    account = _account_record(account_payload)
    return EntityMetadata(
        address=address,
        is_on_curve=is_on_curve,
        type=account.get("type"),
        account_type=account.get("account_type"),
        account_label=account.get("account_label"),
        account_tags=_tags(account.get("account_tags")),
    )


def merge_entity_metadata(
    address: str,
    search_payload: Any,
    account_payload: Any,
) -> EntityMetadata:
    """
    Merge search and account-info payloads for one address.

    Account info wins on type and label. Tags come from search, falling back
    to account info. The on-curve flag comes from whichever source reports it
    first (search, then account info).
    """
    is_on_curve = resolve_is_on_curve(search_payload, account_payload)
    from_account = metadata_from_account_info(address, account_payload, is_on_curve)

    search_type: Optional[str] = None
    search_account_type: Optional[str] = None
    search_label: Optional[str] = None
    search_tags: List[str] = []

    accounts = _search_accounts(search_payload)
    if isinstance(accounts.get(address), dict):
        entry = accounts[address]
        search_label = entry.get("account_label")
        search_tags = _tags(entry.get("account_tags"))
        search_account_type = entry.get("account_type")
    else:
        record = _first_record(search_payload)
        if isinstance(record, dict):
            search_type = record.get("type")
            search_label = record.get("name") or record.get("tag")

    account_type_value = from_account.type
    if not account_type_value or account_type_value.lower() == "unknown":
        account_type_value = search_type or account_type_value

    return EntityMetadata(
        address=address,
        is_on_curve=is_on_curve,
        type=account_type_value,
        account_type=from_account.account_type or search_account_type,
        account_label=from_account.account_label or search_label,
        account_tags=search_tags or from_account.account_tags,
    )


class EntityLookup:
    """
    Tool wrapper over the entity metadata provider.

    Exposes the search and account-info lookups as separate registry tools so
    every call lands in the audit trail.
    """

    def __init__(self, provider: EntityMetadataProvider):
        self.provider = provider

    async def search_address(self, input_data: dict) -> SearchAddressOutput:
        validated_input = AddressInput.model_validate(input_data)
        result = await self.provider.search(validated_input.address)
        return SearchAddressOutput(
            success=result.success, results=result.data, error=result.error
        )

    async def fetch_account_info(self, input_data: dict) -> AccountInfoOutput:
        validated_input = AddressInput.model_validate(input_data)
        result = await self.provider.get_account_info(validated_input.address)
        return AccountInfoOutput(
            success=result.success, account_info=result.data, error=result.error
        )
