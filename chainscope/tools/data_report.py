"""
Data report assembly.
Summarizes the fetched history of the primary address for the narrative stage.
"""

from collections import Counter
from datetime import datetime, timezone
from typing import Dict, List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from chainscope.providers.models import EntityMetadata, Transaction
from chainscope.tools.entity_classifier import classify_entity, describe_entity
from chainscope.tools.pattern_detector import DetectPatternsOutput

TOP_ADDRESS_LIMIT = 10
SAMPLE_TRANSACTION_LIMIT = 10
TOP_SUSPICIOUS_LIMIT = 5
COMPLETE_HISTORY_HOURS = 720


class EntityInfo(BaseModel):
    """Identity and classification of the primary address."""

    address: str
    type: str = "unknown"
    category: str
    name: Optional[str] = None
    tags: List[str] = Field(default_factory=list)
    account_info_type: Optional[str] = None
    account_info_account_type: Optional[str] = None
    is_on_curve: Optional[bool] = None
    is_pda: bool = False
    is_system_account: bool = False
    is_known_entity: bool = False
    is_benign: bool = False
    specific_token: Optional[str] = None
    description: str


class AddressFrequency(BaseModel):
    address: str
    transaction_count: int


class SampleTransaction(BaseModel):
    signature: str
    type: Optional[str] = None
    timestamp: Optional[str] = None
    token_transfers: int = 0


class TopSuspicious(BaseModel):
    address: str
    reason: str
    transaction_count: int


class PatternSummary(BaseModel):
    total_unique_counterparties: int
    suspicious_count: int
    top_suspicious: List[TopSuspicious] = Field(default_factory=list)


class AddressReport(BaseModel):
    """Report for an address (optionally token-filtered) history."""

    report_type: Literal["address_analysis"] = "address_analysis"
    entity_info: EntityInfo
    total_transactions: int
    time_range: str
    unique_addresses: int
    known_transaction_types: Dict[str, int] = Field(default_factory=dict)
    top_addresses_by_frequency: List[AddressFrequency] = Field(default_factory=list)
    account_type: Optional[str] = None
    sample_transactions: List[SampleTransaction] = Field(default_factory=list)
    suspicious_pattern_detection: PatternSummary


class TransactionLookupReport(BaseModel):
    """Report for a direct signature lookup."""

    report_type: Literal["transaction_lookup"] = "transaction_lookup"
    signatures: List[str]
    transactions: List[Transaction] = Field(default_factory=list)


def iso_timestamp(timestamp: Optional[int]) -> Optional[str]:
    if timestamp is None:
        return None
    return datetime.fromtimestamp(timestamp, tz=timezone.utc).isoformat()


def describe_window(hours_back: int, specific_token: Optional[str] = None) -> str:
    """Time range label, e.g. "Last 10 hours (0 days)"."""
    days = hours_back // 24
    if not specific_token:
        return f"Last {hours_back} hours ({days} days)"
    if hours_back >= COMPLETE_HISTORY_HOURS:
        return f"Complete history ({days} days) - filtered for token: {specific_token}"
    return f"Last {hours_back} hours ({days} days) - filtered for token: {specific_token}"


def build_entity_info(
    metadata: EntityMetadata,
    account_metadata: EntityMetadata,
    specific_token: Optional[str] = None,
) -> EntityInfo:
    """
    Args:
        metadata: Merged search + account-info metadata
        account_metadata: Metadata from the account-info payload alone
        specific_token: Token filter of the query, if any
    """
    classification = classify_entity(metadata)
    category = classification.category

    return EntityInfo(
        address=metadata.address,
        type=metadata.type or "unknown",
        category=category,
        name=metadata.account_label,
        tags=metadata.account_tags,
        account_info_type=account_metadata.type,
        account_info_account_type=account_metadata.account_type,
        is_on_curve=metadata.is_on_curve,
        is_pda=metadata.is_pda,
        is_system_account=category == "system_account",
        is_known_entity=bool(metadata.account_label) or category != "regular_wallet",
        is_benign=classification.is_benign,
        specific_token=specific_token,
        description=describe_entity(metadata, category),
    )


def address_frequency(transactions: Sequence[Transaction]) -> Counter:
    """Transfer count per participating address, focal address included."""
    counts: Counter = Counter()
    for tx in transactions:
        for transfer in tx.token_transfers:
            for party in (transfer.from_user_account, transfer.to_user_account):
                if party:
                    counts[party] += 1
    return counts


def known_transaction_types(transactions: Sequence[Transaction]) -> Dict[str, int]:
    counts = Counter(tx.type for tx in transactions if tx.type and tx.type != "UNKNOWN")
    return dict(counts)


def sample_transactions(transactions: Sequence[Transaction]) -> List[SampleTransaction]:
    return [
        SampleTransaction(
            signature=tx.signature,
            type=tx.type,
            timestamp=iso_timestamp(tx.timestamp),
            token_transfers=len(tx.token_transfers),
        )
        for tx in transactions[:SAMPLE_TRANSACTION_LIMIT]
        if tx.type and tx.type != "UNKNOWN"
    ]


def summarize_patterns(patterns: DetectPatternsOutput) -> PatternSummary:
    return PatternSummary(
        total_unique_counterparties=patterns.total_unique_addresses,
        suspicious_count=patterns.total_suspicious,
        top_suspicious=[
            TopSuspicious(
                address=record.address,
                reason=record.reason,
                transaction_count=record.transaction_count,
            )
            for record in patterns.suspicious_addresses[:TOP_SUSPICIOUS_LIMIT]
        ],
    )


def build_address_report(
    entity_info: EntityInfo,
    transactions: Sequence[Transaction],
    hours_back: int,
    patterns: DetectPatternsOutput,
    account_type: Optional[str] = None,
) -> AddressReport:
    """Assemble the report handed to the narrative stage."""
    frequency = address_frequency(transactions)

    return AddressReport(
        entity_info=entity_info,
        total_transactions=len(transactions),
        time_range=describe_window(hours_back, entity_info.specific_token),
        unique_addresses=len(frequency),
        known_transaction_types=known_transaction_types(transactions),
        top_addresses_by_frequency=[
            AddressFrequency(address=addr, transaction_count=count)
            for addr, count in frequency.most_common(TOP_ADDRESS_LIMIT)
        ],
        account_type=account_type,
        sample_transactions=sample_transactions(transactions),
        suspicious_pattern_detection=summarize_patterns(patterns),
    )
