"""
Narrative synthesizer tool.
Turns the data report, pattern findings and deep-dive profiles into a written analysis.
"""

import json
import logging
from typing import Any, List, Optional, Union

from pydantic import BaseModel, Field

from chainscope.config import settings
from chainscope.errors import AnalysisFailure
from chainscope.llm.completion import CompletionService
from chainscope.providers.models import Transaction
from chainscope.tools.data_report import AddressReport, TransactionLookupReport
from chainscope.tools.entity_classifier import SuspectProfile

logger = logging.getLogger(__name__)

ANALYSIS_SYSTEM_PROMPT = """You are an expert Solana on-chain analyst specializing in market manipulation, wash trading and bot detection.

Transaction records follow the enhanced format:
- tokenTransfers[]: from (sender wallet), to (receiver wallet), mint (token), amount
- type: SWAP, TRANSFER, etc.
- timestamp: unix seconds

Classification rules:
- Addresses with isOnCurve false are program derived addresses (PDAs). They are program-controlled and must NEVER be flagged for illegal activity.
- Infrastructure, system accounts, protocols, programs and DEX pools are benign. Focus on likely traders and unknown addresses.

Structure the report with these sections:
### Summary
### Suspicious Addresses (risk level LOW/MEDIUM/HIGH/CRITICAL with evidence)
### Market Manipulation Indicators
### Network Analysis
### High-Impact Traders

Use concrete evidence: signatures, timestamps, volumes, ratios.
ALWAYS write COMPLETE 32-44 character Solana addresses. NEVER shorten an address (no "ABC...XYZ")."""

DEEP_DIVE_INSTRUCTIONS = """DEEP DIVE ANALYSIS: the top suspicious addresses were investigated individually.
- PDAs (isOnCurve false) were already removed from this list.
- Each profile carries the account type, label and tags, a classification, the address's own history, its counterparties and a bot likelihood.
- Discard benign profiles and concentrate on actual traders and bots."""

TOKEN_INSTRUCTIONS = """TOKEN-SPECIFIC ANALYSIS: only transactions touching the token {token} are included.
- Report total bought, total sold, net position, first and last trade, and trading frequency.
- Identify the pattern: accumulation, distribution, swing trading or holding.
- If the user asks for a table, use markdown columns: Date/Time | Type (Buy/Sell) | Amount | Running Balance"""


class SynthesizeNarrativeInput(BaseModel):
    """Input schema for narrative synthesis."""

    user_query: str
    data_report: Union[AddressReport, TransactionLookupReport]
    transactions: List[Transaction] = Field(default_factory=list)
    suspect_profiles: List[SuspectProfile] = Field(default_factory=list)
    hours_back: Optional[int] = None


class NarrativeOutput(BaseModel):
    """Output schema for narrative synthesis."""

    analysis: str
    prompt_transaction_count: int = 0
    generated_by: str


def _dump(value: Any) -> str:
    return json.dumps(value, indent=2, default=str)


def transaction_summary(transactions: List[Transaction]) -> dict:
    """Counts by type plus earliest/latest timestamps (input is newest first)."""
    by_type: dict = {}
    for tx in transactions:
        key = tx.type or "UNKNOWN"
        by_type[key] = by_type.get(key, 0) + 1

    return {
        "total": len(transactions),
        "byType": by_type,
        "timeRange": {
            "earliest": transactions[-1].timestamp if transactions else None,
            "latest": transactions[0].timestamp if transactions else None,
        },
    }


def compact_transactions(transactions: List[Transaction], limit: int) -> List[dict]:
    return [
        {
            "signature": tx.signature,
            "type": tx.type,
            "timestamp": tx.timestamp,
            "tokenTransfers": [
                {
                    "from": transfer.from_user_account,
                    "to": transfer.to_user_account,
                    "mint": transfer.mint,
                    "amount": transfer.token_amount,
                }
                for transfer in tx.token_transfers
            ],
            "nativeTransfers": len(tx.native_transfers),
        }
        for tx in transactions[:limit]
    ]


def build_user_prompt(
    validated_input: SynthesizeNarrativeInput, transaction_limit: int
) -> str:
    """Assemble the analysis prompt from every upstream artifact."""
    report = validated_input.data_report
    transactions = validated_input.transactions
    sections: List[str] = []

    if isinstance(report, AddressReport):
        sections.append(f"Entity Info: {_dump(report.entity_info.model_dump())}")
        sections.append(f"Total Transactions: {report.total_transactions}")
        sections.append(f"Time Range: {report.time_range}")
        if report.entity_info.specific_token:
            sections.append(
                TOKEN_INSTRUCTIONS.format(token=report.entity_info.specific_token)
            )
    else:
        sections.append(f"Transaction Lookup: {', '.join(report.signatures)}")
        sections.append(f"Total Transactions: {len(transactions)}")

    sections.append(
        "## TRANSACTION DATA FOR ANALYSIS\n\n"
        f"Summary:\n{_dump(transaction_summary(transactions))}"
    )
    sections.append(
        f"Initial Pattern Detection:\n{_dump(report.model_dump(exclude={'transactions'}))}"
    )

    if validated_input.suspect_profiles:
        profiles = [profile.model_dump() for profile in validated_input.suspect_profiles]
        sections.append(DEEP_DIVE_INSTRUCTIONS)
        sections.append(
            "RECURSIVE ANALYSIS OF SUSPICIOUS ADDRESSES (PDAs already filtered out):\n"
            f"{_dump(profiles)}"
        )

    sections.append(
        "## FULL TRANSACTION DETAILS\n\n"
        f"{_dump(compact_transactions(transactions, transaction_limit))}"
    )
    sections.append(f"User Query: {validated_input.user_query}")

    return "\n\n".join(sections)


def _draft_mock_narrative(validated_input: SynthesizeNarrativeInput) -> str:
    """Deterministic template report. Addresses are always written in full."""
    report = validated_input.data_report
    transactions = validated_input.transactions
    parts: List[str] = []

    if isinstance(report, TransactionLookupReport):
        parts.append("### Summary")
        parts.append(
            f"Looked up {len(report.signatures)} "
            f"{'signature' if len(report.signatures) == 1 else 'signatures'}; "
            f"{len(transactions)} {'transaction' if len(transactions) == 1 else 'transactions'} resolved."
        )
        for tx in transactions:
            parties = sorted(
                {
                    party
                    for transfer in tx.token_transfers
                    for party in (transfer.from_user_account, transfer.to_user_account)
                    if party
                }
            )
            parts.append(
                f"\n- {tx.signature}: type {tx.type or 'UNKNOWN'}, "
                f"fee payer {tx.fee_payer or 'unknown'}, "
                f"{len(tx.token_transfers)} token transfers"
            )
            if parties:
                parts.append(f"  Participants: {', '.join(parties)}")
        return "\n".join(parts)

    entity = report.entity_info
    patterns = report.suspicious_pattern_detection

    parts.append("### Summary")
    parts.append(
        f"Address {entity.address} ({entity.description}, category: {entity.category}). "
        f"{report.total_transactions} transactions analyzed over {report.time_range} "
        f"with {report.unique_addresses} unique participating addresses."
    )
    if report.known_transaction_types:
        types = ", ".join(
            f"{name}: {count}" for name, count in report.known_transaction_types.items()
        )
        parts.append(f"Transaction types: {types}.")

    parts.append("\n### Suspicious Addresses")
    if patterns.suspicious_count == 0:
        parts.append(
            f"No suspicious counterparties among {patterns.total_unique_counterparties} "
            "counterparties."
        )
    else:
        parts.append(
            f"{patterns.suspicious_count} of {patterns.total_unique_counterparties} "
            "counterparties tripped a heuristic:"
        )
        for i, suspect in enumerate(patterns.top_suspicious, 1):
            parts.append(
                f"{i}. {suspect.address} - {suspect.reason} "
                f"({suspect.transaction_count} transfers)"
            )

    if validated_input.suspect_profiles:
        parts.append("\n### Deep Dive")
        for profile in validated_input.suspect_profiles:
            label = f", label {profile.account_label}" if profile.account_label else ""
            parts.append(
                f"- {profile.address}: {profile.classification}"
                f"{' (benign)' if profile.is_benign else ''}{label}; "
                f"{profile.transaction_count} transactions, "
                f"{profile.unique_counterparties} counterparties, "
                f"{profile.unique_tokens} tokens, "
                f"bot likelihood {profile.activities.estimated_bot_likelihood}"
            )

    if report.top_addresses_by_frequency:
        parts.append("\n### High-Impact Traders")
        for entry in report.top_addresses_by_frequency[:5]:
            parts.append(f"- {entry.address}: {entry.transaction_count} transfers")

    return "\n".join(parts)


class NarrativeSynthesizer:
    """
    Tool for producing the final written analysis.

    In mock mode (no completion service): template-based report
    In real mode: completion service output, returned verbatim
    """

    def __init__(
        self,
        completion_service: Optional[CompletionService] = None,
        transaction_limit: Optional[int] = None,
    ):
        self.completion_service = completion_service
        self.use_mock = completion_service is None
        self.transaction_limit = transaction_limit or settings.narrative_transaction_limit

    async def execute(self, input_data: dict) -> NarrativeOutput:
        """
        Execute narrative synthesis.

        Args:
            input_data: Dictionary matching SynthesizeNarrativeInput schema

        Returns:
            NarrativeOutput

        Raises:
            AnalysisFailure: If the completion service fails
        """
        validated_input = SynthesizeNarrativeInput.model_validate(input_data)
        prompt_count = min(len(validated_input.transactions), self.transaction_limit)

        if self.use_mock:
            return NarrativeOutput(
                analysis=_draft_mock_narrative(validated_input),
                prompt_transaction_count=prompt_count,
                generated_by="template",
            )

        user_prompt = build_user_prompt(validated_input, self.transaction_limit)
        try:
            analysis = await self.completion_service.complete(
                ANALYSIS_SYSTEM_PROMPT, user_prompt
            )
        except Exception as e:
            logger.error(f"Narrative completion failed: {e}")
            raise AnalysisFailure(f"Analysis failed: {e}")

        return NarrativeOutput(
            analysis=analysis,
            prompt_transaction_count=prompt_count,
            generated_by="completion",
        )
