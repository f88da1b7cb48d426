"""
Query interpreter tool.
Turns a free-text question into addresses, signatures, intent and a time window.
"""

import json
import logging
import re
from typing import Any, List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from chainscope.config import settings
from chainscope.errors import ParseFailure
from chainscope.llm.completion import CompletionService

logger = logging.getLogger(__name__)

QueryType = Literal[
    "abnormality_detection",
    "wallet_analysis",
    "transaction_lookup",
    "general",
]

QUERY_TYPES = {"abnormality_detection", "wallet_analysis", "transaction_lookup", "general"}

BASE58 = "1-9A-HJ-NP-Za-km-z"
SIGNATURE_PATTERN = re.compile(rf"(?<![{BASE58}+/=])[{BASE58}+/=]{{87,88}}(?![{BASE58}+/=])")
ADDRESS_PATTERN = re.compile(rf"(?<![{BASE58}])[{BASE58}]{{32,44}}(?![{BASE58}])")
TOKEN_MINT_PATTERNS = [
    re.compile(rf"\$\w+\s*\(\s*([{BASE58}]{{32,44}})\s*\)"),
    re.compile(rf"\b(?:token|mint)\s*(?:address)?\s*[:=]?\s*([{BASE58}]{{32,44}})(?![{BASE58}])", re.IGNORECASE),
]

ALL_TIME_PATTERN = re.compile(
    r"\b(all[\s-]time|all of (?:its|the) history|complete history|entire history|"
    r"full history|from the (?:start|beginning)|since inception)\b",
    re.IGNORECASE,
)
TIME_WINDOW_PATTERN = re.compile(
    r"\b(?:last|past|previous)\s+(\d+)?\s*(hour|hr|day|week|month|year)s?\b",
    re.IGNORECASE,
)
SHORT_WINDOW_PATTERN = re.compile(r"\b(\d+)\s*(h|hrs?|hours?|d|days?)\b", re.IGNORECASE)
UNIT_HOURS = {"hour": 1, "hr": 1, "h": 1, "day": 24, "d": 24, "week": 168, "month": 720, "year": 8760}

ABNORMALITY_KEYWORDS = (
    "suspicious", "abnormal", "anomal", "unusual", "wash", "bot", "manipulat",
    "fraud", "sandwich", "pump", "dump", "rug", "sybil",
)
WALLET_KEYWORDS = ("wallet", "history", "token", "table", "tabular", "holdings", "trades")

PARSE_SYSTEM_PROMPT = """You analyze questions about Solana blockchain activity and extract structured parameters.

Identify:
1. Addresses: wallet, pool or token mint addresses (base58, 32-44 characters).
2. Transaction signatures (87-88 characters).
3. The query type:
   - "abnormality_detection": unusual patterns, suspicious activity, manipulation
   - "wallet_analysis": wallet behaviour, transaction history, a specific token, tables
   - "transaction_lookup": a specific transaction by signature
   - "general": anything else
4. The time window in hours ("last 6 hours" -> 6, "past day" -> 24).
   "all", "all time", "complete history" or "entire history" -> 8760.
   No time given and a token mentioned -> 8760. No time and no token -> 10.
5. A specific token mint if one is mentioned (often in parentheses after a symbol, e.g. "$icm (G5b...)").

Respond with ONLY a JSON object:
{
    "addresses": ["address1"],
    "transactionSignatures": ["sig1"],
    "queryType": "abnormality_detection",
    "timeParameters": {"hoursBack": 10},
    "tokenMint": null,
    "intent": "short description of what the user wants"
}"""


class InterpretQueryInput(BaseModel):
    """Input schema for query interpretation."""

    query: str = Field(min_length=1, description="Free-text user question")


class InterpretedQuery(BaseModel):
    """Structured intent extracted from a query."""

    addresses: List[str] = Field(default_factory=list)
    tokens: List[str] = Field(default_factory=list)
    signatures: List[str] = Field(default_factory=list)
    query_type: QueryType = "general"
    hours_back: int
    specific_token: Optional[str] = None
    intent: Optional[str] = None


class _TimeParameters(BaseModel):
    hours_back: Optional[float] = Field(default=None, alias="hoursBack")


class _CompletionPayload(BaseModel):
    """Shape of the JSON object the completion service is asked to return."""

    model_config = ConfigDict(extra="ignore")

    addresses: List[str] = Field(default_factory=list)
    transaction_signatures: List[str] = Field(
        default_factory=list, alias="transactionSignatures"
    )
    query_type: Optional[str] = Field(default=None, alias="queryType")
    time_parameters: Optional[_TimeParameters] = Field(
        default=None, alias="timeParameters"
    )
    token_mint: Optional[str] = Field(default=None, alias="tokenMint")
    intent: Optional[str] = None

    @field_validator("addresses", "transaction_signatures", mode="before")
    @classmethod
    def none_as_empty(cls, v: Any) -> Any:
        return [] if v is None else v

    @field_validator("token_mint", mode="before")
    @classmethod
    def null_string_as_none(cls, v: Any) -> Any:
        if isinstance(v, str) and v.strip().lower() in {"", "null", "none"}:
            return None
        return v


def strip_code_fences(text: str) -> str:
    """Remove ``` / ```json fence markers around a model response."""
    text = re.sub(r"```(?:json)?\s*", "", text, flags=re.IGNORECASE)
    return text.strip()


def _dedupe(values: List[str]) -> List[str]:
    return list(dict.fromkeys(v.strip() for v in values if v and v.strip()))


def numeric_window_hours(query: str) -> Optional[int]:
    """Hours named by a numeric or calendar window ("last 6 hours", "today")."""
    match = TIME_WINDOW_PATTERN.search(query)
    if match:
        count = int(match.group(1)) if match.group(1) else 1
        return count * UNIT_HOURS[match.group(2).lower()]

    match = SHORT_WINDOW_PATTERN.search(query)
    if match:
        unit = match.group(2).lower()
        return int(match.group(1)) * (24 if unit.startswith("d") else 1)

    if re.search(r"\btoday\b", query, re.IGNORECASE):
        return 24

    return None


def explicit_window_hours(query: str) -> Optional[int]:
    """
    Hours named by an explicit time phrase in the query, if any.

    A numeric window wins over an "all time" phrase in the same query.
    """
    hours = numeric_window_hours(query)
    if hours is None and ALL_TIME_PATTERN.search(query):
        return settings.token_hours_back
    return hours


def resolve_hours_back(
    query: str,
    specific_token: Optional[str],
    extracted_hours: Optional[float] = None,
) -> int:
    """
    Window policy.

    An "all time" phrase without a numeric window forces the token window.
    Otherwise hours extracted by the completion service are used as given,
    except that the short default answered for a token query without any
    time phrase becomes the token window. Without extracted hours, a numeric
    phrase in the query decides; otherwise default to the token window when
    a token is referenced and the short window when not.
    """
    explicit = explicit_window_hours(query)
    if explicit is not None and numeric_window_hours(query) is None:
        return explicit

    if extracted_hours and extracted_hours > 0:
        hours = int(extracted_hours)
        if specific_token and explicit is None and hours == settings.default_hours_back:
            return settings.token_hours_back
        return hours

    if explicit is not None:
        return explicit

    return settings.token_hours_back if specific_token else settings.default_hours_back


def classify_intent(query: str, addresses: List[str], signatures: List[str]) -> QueryType:
    lowered = query.lower()
    if any(keyword in lowered for keyword in ABNORMALITY_KEYWORDS):
        return "abnormality_detection"
    if signatures and not addresses:
        return "transaction_lookup"
    if any(keyword in lowered for keyword in WALLET_KEYWORDS):
        return "wallet_analysis"
    return "general"


class QueryInterpreter:
    """
    Tool for interpreting user queries.

    In mock mode (no completion service): regex and keyword extraction
    In real mode: the completion service returns a JSON object
    """

    def __init__(self, completion_service: Optional[CompletionService] = None):
        self.completion_service = completion_service
        self.use_mock = completion_service is None

    def _interpret_mock(self, query: str) -> InterpretedQuery:
        """Deterministic extraction without a language model."""
        signatures = _dedupe(SIGNATURE_PATTERN.findall(query))

        tokens: List[str] = []
        for pattern in TOKEN_MINT_PATTERNS:
            tokens.extend(pattern.findall(query))
        tokens = _dedupe(tokens)

        addresses = [
            addr for addr in _dedupe(ADDRESS_PATTERN.findall(query)) if addr not in tokens
        ]
        specific_token = tokens[0] if tokens else None

        return InterpretedQuery(
            addresses=addresses,
            tokens=tokens,
            signatures=signatures,
            query_type=classify_intent(query, addresses, signatures),
            hours_back=resolve_hours_back(query, specific_token),
            specific_token=specific_token,
            intent=query.strip()[:200],
        )

    def parse_completion(self, query: str, content: str) -> InterpretedQuery:
        """
        Parse the completion text into InterpretedQuery.

        Raises:
            ParseFailure: If the text is not a JSON object of the expected shape
        """
        try:
            raw = json.loads(strip_code_fences(content))
        except json.JSONDecodeError as e:
            logger.warning(f"Query completion is not valid JSON: {e}")
            raise ParseFailure("Failed to parse query")

        if not isinstance(raw, dict):
            raise ParseFailure("Failed to parse query")

        try:
            payload = _CompletionPayload.model_validate(raw)
        except ValidationError as e:
            logger.warning(f"Query completion has unexpected shape: {e}")
            raise ParseFailure("Failed to parse query")

        query_type = payload.query_type if payload.query_type in QUERY_TYPES else "general"
        extracted_hours = (
            payload.time_parameters.hours_back if payload.time_parameters else None
        )
        tokens = [payload.token_mint] if payload.token_mint else []

        return InterpretedQuery(
            addresses=_dedupe(payload.addresses),
            tokens=tokens,
            signatures=_dedupe(payload.transaction_signatures),
            query_type=query_type,
            hours_back=resolve_hours_back(query, payload.token_mint, extracted_hours),
            specific_token=payload.token_mint,
            intent=payload.intent,
        )

    async def execute(self, input_data: dict) -> InterpretedQuery:
        """
        Execute query interpretation.

        Args:
            input_data: Dictionary matching InterpretQueryInput schema

        Returns:
            InterpretedQuery

        Raises:
            ParseFailure: If the completion could not be turned into intent
        """
        validated_input = InterpretQueryInput.model_validate(input_data)
        query = validated_input.query

        if self.use_mock:
            return self._interpret_mock(query)

        try:
            content = await self.completion_service.complete(PARSE_SYSTEM_PROMPT, query)
        except Exception as e:
            logger.error(f"Query completion failed: {e}")
            raise ParseFailure(f"Failed to parse query: {e}")

        return self.parse_completion(query, content)
