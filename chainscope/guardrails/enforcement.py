"""
Guardrail enforcement for pipeline runs.
Provides tool allowlisting, a per-run call budget, query validation and address integrity checks.
"""

import logging
import re
from typing import List, Optional, Set

from chainscope.config import settings

logger = logging.getLogger(__name__)

# "ABC...XYZ" / "ABC…XYZ" style shortened identifiers
ELIDED_ADDRESS_PATTERN = re.compile(
    r"(?<![1-9A-HJ-NP-Za-km-z])[1-9A-HJ-NP-Za-km-z]{2,12}(?:\.{2,}|…)[1-9A-HJ-NP-Za-km-z]{2,12}(?![1-9A-HJ-NP-Za-km-z])"
)


class GuardrailViolation(Exception):
    """Exception raised when a guardrail check fails."""

    def __init__(self, message: str, violation_type: str):
        self.message = message
        self.violation_type = violation_type
        super().__init__(self.message)


class GuardrailEnforcer:
    """
    Enforces guardrails for a single pipeline run.

    Guardrails include:
    - Tool allowlist: Only approved tools can be invoked
    - Call budget: Limits number of tool calls per run
    - Address integrity: Flags shortened addresses in generated narratives
    """

    ALLOWED_TOOLS: Set[str] = {
        "query_interpreter",
        "search_address",
        "fetch_account_info",
        "fetch_transactions_by_address",
        "fetch_token_transactions",
        "fetch_transactions_by_signature",
        "pattern_detector",
        "narrative_synthesizer",
    }

    def __init__(self, max_tool_calls: Optional[int] = None):
        self.tool_call_count = 0
        self.max_tool_calls = max_tool_calls or settings.max_tool_calls_per_workflow

    def check_tool_allowlist(self, tool_name: str) -> None:
        """
        Verify that a tool is on the allowlist.

        Raises:
            GuardrailViolation: If tool is not allowed
        """
        if tool_name not in self.ALLOWED_TOOLS:
            raise GuardrailViolation(
                f"Tool '{tool_name}' is not on the allowlist. "
                f"Allowed tools: {', '.join(sorted(self.ALLOWED_TOOLS))}",
                violation_type="tool_not_allowed",
            )

    def check_address_integrity(self, text: str) -> List[str]:
        """
        Find shortened addresses in generated text.

        The text is never modified; findings are only reported.

        Returns:
            The elided fragments found, in order of appearance
        """
        findings = ELIDED_ADDRESS_PATTERN.findall(text or "")
        if findings:
            logger.warning(
                f"Narrative contains {len(findings)} shortened address(es): "
                f"{', '.join(findings[:5])}"
            )
        return findings

    def increment_tool_call(self) -> None:
        """
        Increment tool call counter and check the budget.

        Raises:
            GuardrailViolation: If the budget is exceeded
        """
        self.tool_call_count += 1

        if self.tool_call_count > self.max_tool_calls:
            raise GuardrailViolation(
                f"Tool call limit exceeded: {self.tool_call_count}/{self.max_tool_calls}",
                violation_type="rate_limit_exceeded",
            )

    def get_tool_call_stats(self) -> dict:
        return {
            "tool_calls_made": self.tool_call_count,
            "max_tool_calls": self.max_tool_calls,
            "remaining_calls": max(0, self.max_tool_calls - self.tool_call_count),
            "at_limit": self.tool_call_count >= self.max_tool_calls,
        }


def validate_query_input(query: Optional[str], max_length: Optional[int] = None) -> str:
    """
    Validate a user query before a job is created.

    Returns:
        The query with surrounding whitespace removed

    Raises:
        GuardrailViolation: If the query is empty or too long
    """
    limit = max_length or settings.max_query_length
    cleaned = (query or "").strip()

    if not cleaned:
        raise GuardrailViolation(
            "Query is required and must be a non-empty string",
            violation_type="invalid_query",
        )
    if len(cleaned) > limit:
        raise GuardrailViolation(
            f"Query is too long ({len(cleaned)} characters, limit {limit})",
            violation_type="invalid_query",
        )
    return cleaned
