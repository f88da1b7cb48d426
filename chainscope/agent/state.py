"""
LangGraph state definition for pipeline runs.
One state instance per run; nodes return partial updates that are merged back.
"""

from typing import Annotated, Any, List, Optional, TypedDict, Union

from chainscope.providers.models import Transaction
from chainscope.tools.data_report import AddressReport, TransactionLookupReport
from chainscope.tools.entity_classifier import SuspectProfile
from chainscope.tools.pattern_detector import SuspiciousAddressRecord


def merge_metadata(current: Optional[dict], update: Optional[dict]) -> dict:
    """Shallow merge: new keys overwrite, absent keys are preserved."""
    return {**(current or {}), **(update or {})}


class WorkflowState(TypedDict):
    """
    Shared state for one pipeline run.

    Fields a node does not return keep their previous value. ``metadata`` is
    merged instead of replaced.
    """

    run_id: str
    user_query: str

    # Interpretation
    extracted_addresses: List[str]
    extracted_tokens: List[str]
    transaction_signatures: List[str]
    query_type: Optional[str]
    intent: Optional[str]
    hours_back: Optional[int]
    specific_token: Optional[str]

    # Retrieval
    transactions: List[Transaction]
    account_info: Any
    data_report: Optional[Union[AddressReport, TransactionLookupReport]]
    suspicious_addresses: List[SuspiciousAddressRecord]

    # Deep dive
    suspect_profiles: List[SuspectProfile]

    # Output
    analysis: str
    error: Optional[str]

    metadata: Annotated[dict, merge_metadata]
