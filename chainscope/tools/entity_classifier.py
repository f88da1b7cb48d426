"""
Entity classification rules.

Two independent rule lists: one categorizes the primary address of a query,
the other classifies suspicious counterparties during the deep dive. Both are
first-match-wins and both treat ``is_on_curve = False`` (a program derived
address) as benign.
"""

from datetime import datetime, timezone
from typing import List, Literal, Optional, Sequence

from pydantic import BaseModel, Field

from chainscope.providers.models import EntityMetadata, Transaction

EntityCategory = Literal[
    "pda",
    "system_account",
    "dex_pool",
    "protocol",
    "program",
    "known_entity",
    "regular_wallet",
]

SuspectClassification = Literal[
    "pda",
    "infrastructure",
    "likely_trader",
    "known_bot",
    "protocol",
    "program",
    "pda_authority",
    "dex_pool",
    "unknown",
]

BotLikelihood = Literal["HIGH", "MEDIUM", "LOW"]

DEX_TAGS = {"dex", "market", "meteora", "raydium", "orca", "jupiter"}
PROTOCOL_TAGS = {"protocol", "defi"}
SYSTEM_TYPES = {"SYSTEM", "system_account"}
INFRASTRUCTURE_ACCOUNT_TYPES = {"system_account", "token_account"}
BOT_TAGS = {"jupiter", "dex_wallet"}

BENIGN_CATEGORIES = {"pda", "system_account", "dex_pool", "protocol", "program"}


class EntityClassification(BaseModel):
    """Category of the primary address."""

    category: EntityCategory
    is_benign: bool


class SuspectVerdict(BaseModel):
    """Deep-dive classification of a suspicious counterparty."""

    classification: SuspectClassification
    is_benign: bool


class CounterpartySummary(BaseModel):
    """A suspect's own activity across its full history."""

    transaction_count: int
    unique_counterparties: int
    unique_tokens: int
    total_volume: float


def _is_system(metadata: EntityMetadata) -> bool:
    return metadata.type in SYSTEM_TYPES or metadata.account_type == "system_account"


def classify_entity(metadata: EntityMetadata) -> EntityClassification:
    """Categorize the primary address of a query."""
    tags = set(metadata.account_tags)

    if metadata.is_on_curve is False:
        category = "pda"
    elif _is_system(metadata):
        category = "system_account"
    elif tags & DEX_TAGS:
        category = "dex_pool"
    elif tags & PROTOCOL_TAGS:
        category = "protocol"
    elif "program" in tags or metadata.account_type == "program":
        category = "program"
    elif metadata.account_label:
        category = "known_entity"
    else:
        category = "regular_wallet"

    return EntityClassification(
        category=category, is_benign=category in BENIGN_CATEGORIES
    )


def describe_entity(metadata: EntityMetadata, category: str) -> str:
    """One-line description of the primary address for the report."""
    if category == "pda":
        return (
            "PDA (Program Derived Address) - program-controlled account, "
            "should NOT be flagged for illegal activity"
        )
    if category == "system_account":
        return (
            "SYSTEM ACCOUNT (infrastructure - should be filtered out from "
            "suspicious address detection)"
        )
    if metadata.account_label:
        if metadata.account_tags:
            return f"{metadata.account_label} ({', '.join(metadata.account_tags)})"
        return metadata.account_label
    if metadata.type and metadata.type.lower() != "unknown":
        return f"{metadata.type} account"
    return "Regular wallet"


def classify_suspect(metadata: EntityMetadata) -> SuspectVerdict:
    """Classify a suspicious counterparty from its account info."""
    solscan_type = metadata.type or "UNKNOWN"
    account_type = metadata.account_type or "unknown"
    label = metadata.account_label
    tags = set(metadata.account_tags)

    if metadata.is_on_curve is False:
        return SuspectVerdict(classification="pda", is_benign=True)
    if solscan_type in SYSTEM_TYPES or account_type in INFRASTRUCTURE_ACCOUNT_TYPES:
        return SuspectVerdict(classification="infrastructure", is_benign=True)
    if solscan_type == "UNKNOWN" and not label and not tags:
        return SuspectVerdict(classification="likely_trader", is_benign=False)
    if tags & BOT_TAGS:
        return SuspectVerdict(classification="known_bot", is_benign=False)
    if tags & {"protocol", "program"}:
        return SuspectVerdict(classification="protocol", is_benign=True)
    if account_type == "program":
        return SuspectVerdict(classification="program", is_benign=True)
    if label and "Authority" in label:
        return SuspectVerdict(classification="pda_authority", is_benign=True)
    if label and tags & {"dex", "market"}:
        return SuspectVerdict(classification="dex_pool", is_benign=True)
    if metadata.is_on_curve is True:
        return SuspectVerdict(classification="likely_trader", is_benign=False)
    return SuspectVerdict(classification="unknown", is_benign=True)


def summarize_counterparties(
    transactions: Sequence[Transaction], address: str
) -> CounterpartySummary:
    """Counterparties, distinct mints and cumulative volume for one address."""
    counterparties: set[str] = set()
    tokens: set[str] = set()
    total_volume = 0.0

    for tx in transactions:
        for transfer in tx.token_transfers:
            if transfer.mint:
                tokens.add(transfer.mint)
            for party in (transfer.from_user_account, transfer.to_user_account):
                if party and party != address:
                    counterparties.add(party)
            total_volume += transfer.token_amount or 0

    return CounterpartySummary(
        transaction_count=len(transactions),
        unique_counterparties=len(counterparties),
        unique_tokens=len(tokens),
        total_volume=total_volume,
    )


def estimate_bot_likelihood(
    is_benign: bool, transaction_count: int, counterparty_count: int
) -> BotLikelihood:
    if not is_benign and transaction_count > 50 and counterparty_count > 3:
        return "HIGH"
    if not is_benign and transaction_count > 20:
        return "MEDIUM"
    return "LOW"


class SuspectActivities(BaseModel):
    is_multi_pool_trader: bool
    is_high_frequency: bool
    trades_multiple_tokens: bool
    estimated_bot_likelihood: BotLikelihood


class SuspectSample(BaseModel):
    type: Optional[str] = None
    timestamp: Optional[str] = None
    token_transfers: int = 0


class SuspectProfile(BaseModel):
    """Deep-dive profile of one suspicious counterparty."""

    address: str
    original_reason: str
    is_on_curve: Optional[bool] = None
    is_pda: bool = False
    solscan_type: str
    account_type: str
    account_label: Optional[str] = None
    account_tags: List[str] = Field(default_factory=list)
    classification: SuspectClassification
    is_benign: bool
    transaction_count: int
    unique_counterparties: int
    unique_tokens: int
    total_volume: float
    activities: SuspectActivities
    sample_transactions: List[SuspectSample] = Field(default_factory=list)


def build_suspect_profile(
    metadata: EntityMetadata,
    reason: str,
    transactions: Sequence[Transaction],
) -> SuspectProfile:
    """Classify a suspect and summarize its own transaction history."""
    verdict = classify_suspect(metadata)
    summary = summarize_counterparties(transactions, metadata.address)

    return SuspectProfile(
        address=metadata.address,
        original_reason=reason,
        is_on_curve=metadata.is_on_curve,
        is_pda=metadata.is_pda,
        solscan_type=metadata.type or "UNKNOWN",
        account_type=metadata.account_type or "unknown",
        account_label=metadata.account_label,
        account_tags=metadata.account_tags,
        classification=verdict.classification,
        is_benign=verdict.is_benign,
        transaction_count=summary.transaction_count,
        unique_counterparties=summary.unique_counterparties,
        unique_tokens=summary.unique_tokens,
        total_volume=summary.total_volume,
        activities=SuspectActivities(
            is_multi_pool_trader=summary.unique_counterparties > 3,
            is_high_frequency=summary.transaction_count > 50,
            trades_multiple_tokens=summary.unique_tokens > 2,
            estimated_bot_likelihood=estimate_bot_likelihood(
                verdict.is_benign,
                summary.transaction_count,
                summary.unique_counterparties,
            ),
        ),
        sample_transactions=[
            SuspectSample(
                type=tx.type,
                timestamp=(
                    datetime.fromtimestamp(tx.timestamp, tz=timezone.utc).isoformat()
                    if tx.timestamp is not None
                    else None
                ),
                token_transfers=len(tx.token_transfers),
            )
            for tx in transactions[:3]
        ],
    )
