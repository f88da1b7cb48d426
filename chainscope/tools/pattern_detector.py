"""
Pattern detector tool.
Flags suspicious counterparties of a focal address using rule-based heuristics.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional, Sequence

from pydantic import BaseModel, Field

from chainscope.providers.models import Transaction

logger = logging.getLogger(__name__)

# Flagging thresholds
HIGH_FREQUENCY_THRESHOLD = 20
MIN_TIMESTAMPS_FOR_TIMING = 10
REGULARITY_RATIO = 0.1

# Reason thresholds
WASH_TRADING_REASON_MIN = 2
EXTREME_FREQUENCY_THRESHOLD = 30

MAX_REPORTED_SUSPECTS = 20


class DetectPatternsInput(BaseModel):
    """Input schema for pattern detection."""

    transactions: List[Transaction] = Field(
        default_factory=list,
        description="Transactions fetched for the focal address",
    )
    focal_address: str = Field(description="Address under investigation")


class SuspiciousAddressRecord(BaseModel):
    """A counterparty that tripped at least one heuristic."""

    address: str
    transaction_count: int
    buy_count: int
    sell_count: int
    total_volume: float
    reason: str


class DetectPatternsOutput(BaseModel):
    """Output schema for pattern detection."""

    focal_address: str
    suspicious_addresses: List[SuspiciousAddressRecord]
    total_unique_addresses: int
    total_suspicious: int


@dataclass
class CounterpartyActivity:
    """Running statistics for one counterparty."""

    address: str
    signatures: List[str] = field(default_factory=list)
    total_volume: float = 0.0
    buy_count: int = 0
    sell_count: int = 0
    timestamps: List[int] = field(default_factory=list)

    @property
    def transaction_count(self) -> int:
        return len(self.signatures)


def has_regular_intervals(timestamps: Sequence[int]) -> bool:
    """
    True when the gaps between sorted timestamps are nearly constant.

    Uses the population variance of successive deltas; regular means the
    variance is below 10% of the mean gap.
    """
    if len(timestamps) < 5:
        return False

    ordered = sorted(timestamps)
    intervals = [curr - prev for prev, curr in zip(ordered, ordered[1:])]
    if not intervals:
        return False

    mean = sum(intervals) / len(intervals)
    variance = sum((gap - mean) ** 2 for gap in intervals) / len(intervals)
    return variance < mean * REGULARITY_RATIO


def _has_bot_timing(activity: CounterpartyActivity) -> bool:
    return (
        len(activity.timestamps) >= MIN_TIMESTAMPS_FOR_TIMING
        and has_regular_intervals(activity.timestamps)
    )


def collect_activity(
    transactions: Sequence[Transaction], focal_address: str
) -> dict[str, CounterpartyActivity]:
    """Aggregate per-counterparty activity over every token transfer."""
    activity: dict[str, CounterpartyActivity] = {}

    for tx in transactions:
        for transfer in tx.token_transfers:
            sender = transfer.from_user_account
            receiver = transfer.to_user_account
            amount = transfer.token_amount or 0

            for addr in (sender, receiver):
                if not addr or addr == focal_address:
                    continue

                entry = activity.get(addr)
                if entry is None:
                    entry = CounterpartyActivity(address=addr)
                    activity[addr] = entry

                entry.signatures.append(tx.signature)
                entry.total_volume += amount
                if tx.timestamp is not None:
                    entry.timestamps.append(tx.timestamp)

                if addr == receiver:
                    entry.buy_count += 1
                if addr == sender:
                    entry.sell_count += 1

    return activity


def is_suspicious(activity: CounterpartyActivity) -> bool:
    """Any of: wash trading, high frequency, bot-like timing."""
    wash_trading = (
        activity.buy_count > 0
        and activity.sell_count > 0
        and activity.buy_count == activity.sell_count
    )
    high_frequency = activity.transaction_count > HIGH_FREQUENCY_THRESHOLD
    return wash_trading or high_frequency or _has_bot_timing(activity)


def describe_reason(activity: CounterpartyActivity) -> str:
    """Human-readable list of triggered heuristics."""
    reasons = []

    if (
        activity.buy_count == activity.sell_count
        and activity.buy_count > WASH_TRADING_REASON_MIN
    ):
        reasons.append("Wash trading pattern (equal buys/sells)")
    if activity.transaction_count > EXTREME_FREQUENCY_THRESHOLD:
        reasons.append("Extremely high frequency")
    if _has_bot_timing(activity):
        reasons.append("Bot-like regular intervals")

    return ", ".join(reasons) or "High activity"


def detect_patterns(
    transactions: Sequence[Transaction],
    focal_address: str,
    limit: Optional[int] = MAX_REPORTED_SUSPECTS,
) -> DetectPatternsOutput:
    """Run every heuristic and return suspects in detection order."""
    activity = collect_activity(transactions, focal_address)

    suspects = [
        SuspiciousAddressRecord(
            address=entry.address,
            transaction_count=entry.transaction_count,
            buy_count=entry.buy_count,
            sell_count=entry.sell_count,
            total_volume=entry.total_volume,
            reason=describe_reason(entry),
        )
        for entry in activity.values()
        if is_suspicious(entry)
    ]

    return DetectPatternsOutput(
        focal_address=focal_address,
        suspicious_addresses=suspects[:limit] if limit is not None else suspects,
        total_unique_addresses=len(activity),
        total_suspicious=len(suspects),
    )


class PatternDetector:
    """
    Tool for detecting suspicious counterparties.

    Heuristics:
    - Equal, non-zero buy and sell counts (wash trading)
    - More than 20 transfers (high frequency)
    - Ten or more timestamps at near-constant intervals (bot timing)
    """

    async def execute(self, input_data: dict) -> DetectPatternsOutput:
        """
        Execute pattern detection.

        Args:
            input_data: Dictionary matching DetectPatternsInput schema

        Returns:
            DetectPatternsOutput with suspects truncated to the first 20
        """
        validated_input = DetectPatternsInput.model_validate(input_data)

        output = detect_patterns(
            validated_input.transactions, validated_input.focal_address
        )

        logger.info(
            f"Pattern detection: {output.total_suspicious} suspicious of "
            f"{output.total_unique_addresses} counterparties"
        )
        return output
