"""
LangGraph node functions for pipeline runs.
Each node performs one stage and returns a partial state update.
"""

import logging
from typing import Optional

from chainscope.agent.state import WorkflowState
from chainscope.audit.logger import AuditLogger
from chainscope.config import settings
from chainscope.errors import LookupFailure, PipelineError, RetrievalFailure
from chainscope.guardrails.enforcement import GuardrailEnforcer, GuardrailViolation
from chainscope.tools.data_report import (
    AddressReport,
    TransactionLookupReport,
    build_address_report,
    build_entity_info,
)
from chainscope.tools.entity_classifier import SuspectProfile, build_suspect_profile
from chainscope.tools.entity_lookup import (
    merge_entity_metadata,
    metadata_from_account_info,
    resolve_is_on_curve,
)
from chainscope.tools.pattern_detector import SuspiciousAddressRecord
from chainscope.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)

NO_TARGET_MESSAGE = "No addresses or transaction signatures found in query"


class WorkflowContext:
    """
    Context object passed to nodes containing per-run resources.
    """

    def __init__(
        self,
        tool_registry: ToolRegistry,
        audit_logger: AuditLogger,
        guardrail_enforcer: GuardrailEnforcer,
        deep_dive_limit: Optional[int] = None,
    ):
        self.tool_registry = tool_registry
        self.audit_logger = audit_logger
        self.guardrail_enforcer = guardrail_enforcer
        self.deep_dive_limit = (
            settings.deep_dive_limit if deep_dive_limit is None else deep_dive_limit
        )


async def _fail(
    context: WorkflowContext,
    node_name: str,
    error: Exception,
    message: str,
    **extra,
) -> dict:
    """Record a terminal stage failure and turn it into a state update."""
    logger.error(f"Error in {node_name}: {message}")
    await context.audit_logger.log_error(node_name, error)
    return {"error": message, **extra}


async def parse_query(state: WorkflowState, context: WorkflowContext) -> dict:
    """
    Node 1: Interpret the free-text query.

    Extracts addresses, signatures, token filter, intent and time window.
    """
    node_name = "parse_query"
    await context.audit_logger.log_node_start(node_name)

    try:
        interpreted = await context.tool_registry.invoke_tool(
            tool_name="query_interpreter",
            input_data={"query": state["user_query"]},
            node_name=node_name,
        )
    except (PipelineError, GuardrailViolation) as e:
        return await _fail(context, node_name, e, e.message, query_type="general")
    except Exception as e:
        return await _fail(
            context, node_name, e, "Failed to parse query", query_type="general"
        )

    updates = {
        "extracted_addresses": interpreted.addresses,
        "extracted_tokens": interpreted.tokens,
        "transaction_signatures": interpreted.signatures,
        "query_type": interpreted.query_type,
        "intent": interpreted.intent,
        "hours_back": interpreted.hours_back,
        "specific_token": interpreted.specific_token,
    }

    logger.info(
        f"Parsed query: type={interpreted.query_type}, "
        f"addresses={len(interpreted.addresses)}, "
        f"signatures={len(interpreted.signatures)}, hours_back={interpreted.hours_back}"
    )
    await context.audit_logger.log_node_completion(
        node_name, output_data=updates, input_data={"query": state["user_query"]}
    )
    return updates


async def _lookup_signatures(
    signatures: list[str], context: WorkflowContext, node_name: str
) -> dict:
    result = await context.tool_registry.invoke_tool(
        tool_name="fetch_transactions_by_signature",
        input_data={"signatures": signatures},
        node_name=node_name,
    )
    if not result.success:
        raise LookupFailure(f"Failed to look up transaction: {result.error}")

    logger.info(f"Resolved {result.total_transactions} transaction(s) by signature")
    return {
        "transactions": result.transactions,
        "data_report": TransactionLookupReport(
            signatures=signatures, transactions=result.transactions
        ),
        "suspicious_addresses": [],
    }


async def _analyze_address(
    state: WorkflowState, context: WorkflowContext, node_name: str
) -> dict:
    address = state["extracted_addresses"][0]
    tokens = state.get("extracted_tokens") or []
    specific_token = state.get("specific_token") or (tokens[0] if tokens else None)
    default_hours = (
        settings.token_hours_back if specific_token else settings.default_hours_back
    )
    hours_back = state.get("hours_back") or default_hours
    registry = context.tool_registry

    search = await registry.invoke_tool(
        "search_address", {"address": address}, node_name
    )
    if not search.success:
        raise LookupFailure(f"Failed to search address: {search.error}")

    account = await registry.invoke_tool(
        "fetch_account_info", {"address": address}, node_name
    )
    if not account.success:
        raise LookupFailure(f"Failed to fetch account info: {account.error}")

    entity_metadata = merge_entity_metadata(address, search.results, account.account_info)
    account_metadata = metadata_from_account_info(
        address, account.account_info, entity_metadata.is_on_curve
    )
    entity_info = build_entity_info(entity_metadata, account_metadata, specific_token)
    logger.info(
        f"Entity {address}: {entity_info.name or 'Unknown'} "
        f"(type={entity_info.type}, category={entity_info.category})"
    )

    if specific_token:
        fetched = await registry.invoke_tool(
            "fetch_token_transactions",
            {
                "wallet_address": address,
                "token_mint": specific_token,
                "hours_back": hours_back,
            },
            node_name,
        )
        if not fetched.success:
            raise RetrievalFailure(f"Failed to fetch token transactions: {fetched.error}")
    else:
        fetched = await registry.invoke_tool(
            "fetch_transactions_by_address",
            {"address": address, "hours_back": hours_back},
            node_name,
        )
        if not fetched.success:
            raise RetrievalFailure(f"Failed to fetch transactions: {fetched.error}")

    logger.info(f"Found {fetched.total_transactions} transactions for {address}")

    refreshed = await registry.invoke_tool(
        "fetch_account_info", {"address": address}, node_name
    )
    if not refreshed.success:
        raise LookupFailure(f"Failed to fetch account info: {refreshed.error}")

    patterns = await registry.invoke_tool(
        "pattern_detector",
        {"transactions": fetched.transactions, "focal_address": address},
        node_name,
    )

    report = build_address_report(
        entity_info,
        fetched.transactions,
        hours_back,
        patterns,
        account_type=metadata_from_account_info(address, refreshed.account_info, None).type,
    )

    return {
        "transactions": fetched.transactions,
        "account_info": refreshed.account_info,
        "data_report": report,
        "suspicious_addresses": patterns.suspicious_addresses,
        "hours_back": hours_back,
        "specific_token": specific_token,
        "metadata": {
            "pattern_summary": {
                "total_unique_addresses": patterns.total_unique_addresses,
                "total_suspicious": patterns.total_suspicious,
            }
        },
    }


async def fetch_data(state: WorkflowState, context: WorkflowContext) -> dict:
    """
    Node 2: Retrieve on-chain data for the query target.

    Signatures take precedence over addresses. For an address the primary
    entity is identified, its history fetched and the data report built.
    """
    node_name = "fetch_data"
    await context.audit_logger.log_node_start(node_name)

    signatures = state.get("transaction_signatures") or []

    try:
        if signatures:
            updates = await _lookup_signatures(signatures, context, node_name)
        elif state.get("extracted_addresses"):
            updates = await _analyze_address(state, context, node_name)
        else:
            raise LookupFailure(NO_TARGET_MESSAGE)
    except (PipelineError, GuardrailViolation) as e:
        return await _fail(context, node_name, e, e.message)
    except Exception as e:
        return await _fail(context, node_name, e, f"Data fetch failed: {e}")

    await context.audit_logger.log_node_completion(
        node_name,
        output_data={
            "transactions": len(updates["transactions"]),
            "suspicious_addresses": len(updates["suspicious_addresses"]),
        },
        input_data={
            "addresses": state.get("extracted_addresses"),
            "signatures": signatures,
            "hours_back": state.get("hours_back"),
        },
    )
    return updates


async def _investigate_suspect(
    record: SuspiciousAddressRecord,
    hours_back: int,
    context: WorkflowContext,
    node_name: str,
) -> Optional[SuspectProfile]:
    """Profile one suspect, or None when it is skipped."""
    address = record.address
    registry = context.tool_registry

    search = await registry.invoke_tool("search_address", {"address": address}, node_name)
    if not search.success:
        logger.debug(f"Search for {address} failed, relying on account info: {search.error}")
    account = await registry.invoke_tool(
        "fetch_account_info", {"address": address}, node_name
    )
    if not account.success:
        logger.info(f"Skipping {address}: {account.error}")
        return None

    is_on_curve = resolve_is_on_curve(
        search.results if search.success else None, account.account_info
    )
    if is_on_curve is False:
        logger.info(f"Skipping {address}: program derived address")
        return None

    history = await registry.invoke_tool(
        "fetch_transactions_by_address",
        {"address": address, "hours_back": hours_back},
        node_name,
    )
    if not history.success:
        logger.info(f"Skipping {address}: {history.error}")
        return None

    metadata = metadata_from_account_info(address, account.account_info, is_on_curve)
    return build_suspect_profile(metadata, record.reason, history.transactions)


async def deep_dive(state: WorkflowState, context: WorkflowContext) -> dict:
    """
    Node 3: Investigate the top suspicious counterparties.

    Only runs for abnormality detection with an address report and at least
    one suspect. Failures for individual suspects are skipped.
    """
    node_name = "deep_dive"
    await context.audit_logger.log_node_start(node_name)

    suspects = state.get("suspicious_addresses") or []
    if (
        state.get("query_type") != "abnormality_detection"
        or not isinstance(state.get("data_report"), AddressReport)
        or not suspects
    ):
        logger.info("Skipping deep dive")
        await context.audit_logger.log_node_completion(
            node_name, output_data={"skipped": True}
        )
        return {"metadata": {}}

    try:
        hours_back = state.get("hours_back") or settings.default_hours_back
        targets = suspects[: context.deep_dive_limit]
        profiles: list[SuspectProfile] = []

        for record in targets:
            try:
                profile = await _investigate_suspect(record, hours_back, context, node_name)
            except Exception as e:
                logger.warning(f"Deep dive of {record.address} failed: {e}")
                continue
            if profile is not None:
                profiles.append(profile)
    except Exception as e:
        logger.error(f"Error in {node_name}: {e}")
        await context.audit_logger.log_error(node_name, e)
        return {"metadata": {"deep_dive_error": str(e)}}

    logger.info(f"Deep dive complete: profiled {len(profiles)} of {len(targets)} suspects")
    await context.audit_logger.log_node_completion(
        node_name,
        output_data={
            "profiled": [p.address for p in profiles],
            "classifications": [p.classification for p in profiles],
        },
        input_data={"suspects": [r.address for r in targets]},
    )
    return {
        "suspect_profiles": profiles,
        "metadata": {"deep_dive_investigated": len(targets)},
    }


async def analyze_data(state: WorkflowState, context: WorkflowContext) -> dict:
    """
    Node 4: Write the narrative analysis.

    The produced text is checked for shortened addresses; findings are
    recorded in metadata and the text is kept as is.
    """
    node_name = "analyze_data"
    await context.audit_logger.log_node_start(node_name)

    if state.get("data_report") is None:
        await context.audit_logger.log_node_completion(
            node_name, output_data={"skipped": True}
        )
        return {"analysis": ""}

    tool_input = {
        "user_query": state["user_query"],
        "data_report": state["data_report"],
        "transactions": state.get("transactions") or [],
        "suspect_profiles": state.get("suspect_profiles") or [],
        "hours_back": state.get("hours_back"),
    }

    try:
        result = await context.tool_registry.invoke_tool(
            tool_name="narrative_synthesizer",
            input_data=tool_input,
            node_name=node_name,
        )
    except (PipelineError, GuardrailViolation) as e:
        return await _fail(context, node_name, e, e.message)
    except Exception as e:
        return await _fail(context, node_name, e, f"Analysis failed: {e}")

    elided = context.guardrail_enforcer.check_address_integrity(result.analysis)
    updates = {
        "analysis": result.analysis,
        "metadata": {"elided_addresses": elided} if elided else {},
    }

    await context.audit_logger.log_node_completion(
        node_name,
        output_data={
            "generated_by": result.generated_by,
            "length": len(result.analysis),
            "elided_addresses": elided,
        },
        input_data={"prompt_transactions": result.prompt_transaction_count},
    )
    return updates


def format_error(message: str) -> str:
    return f"Error: {message}. Please check your query and try again."


async def format_response(state: WorkflowState, context: WorkflowContext) -> dict:
    """
    Node 5: Produce the final user-facing text.
    """
    node_name = "format_response"
    await context.audit_logger.log_node_start(node_name)

    if state.get("error"):
        analysis = format_error(state["error"])
    else:
        analysis = state.get("analysis") or "No analysis available"

    await context.audit_logger.log_node_completion(
        node_name,
        output_data={"error": state.get("error"), "length": len(analysis)},
    )
    return {"analysis": analysis}
