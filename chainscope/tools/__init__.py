"""
Tools module for pipeline operations.
Each tool validates its input with Pydantic and is registered with guardrails.
"""

from chainscope.tools.registry import ToolRegistry
from chainscope.tools.query_interpreter import QueryInterpreter
from chainscope.tools.transaction_fetcher import TransactionFetcher
from chainscope.tools.entity_lookup import EntityLookup
from chainscope.tools.pattern_detector import PatternDetector
from chainscope.tools.narrative_synthesizer import NarrativeSynthesizer

__all__ = [
    "ToolRegistry",
    "QueryInterpreter",
    "TransactionFetcher",
    "EntityLookup",
    "PatternDetector",
    "NarrativeSynthesizer",
]
