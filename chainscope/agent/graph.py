"""
LangGraph state machine definition and pipeline execution.
Defines the graph structure and error routing.
"""

import logging
from typing import Callable, Optional
from uuid import UUID, uuid4

from langgraph.graph import END, START, StateGraph
from sqlalchemy.ext.asyncio import AsyncSession

from chainscope.agent.nodes import (
    WorkflowContext,
    analyze_data,
    deep_dive,
    fetch_data,
    format_response,
    parse_query,
)
from chainscope.agent.services import AnalysisServices
from chainscope.agent.state import WorkflowState
from chainscope.audit.logger import AuditLogger
from chainscope.guardrails.enforcement import GuardrailEnforcer
from chainscope.tools.entity_lookup import EntityLookup
from chainscope.tools.narrative_synthesizer import NarrativeSynthesizer
from chainscope.tools.pattern_detector import PatternDetector
from chainscope.tools.query_interpreter import QueryInterpreter
from chainscope.tools.registry import ToolRegistry
from chainscope.tools.transaction_fetcher import TransactionFetcher

logger = logging.getLogger(__name__)


def error_router(next_node: str) -> Callable[[WorkflowState], str]:
    """
    Build the routing function for a conditional edge.

    Routes to "format_response" once an error is set, else to ``next_node``.
    """

    def route(state: WorkflowState) -> str:
        if state.get("error"):
            return "format_response"
        return next_node

    return route


def create_workflow(context: WorkflowContext):
    """
    Create and compile the pipeline graph with context-bound nodes.

    Returns:
        Compiled StateGraph ready for execution
    """
    graph = StateGraph(WorkflowState)

    async def node_parse(state):
        return await parse_query(state, context)

    async def node_fetch(state):
        return await fetch_data(state, context)

    async def node_deep_dive(state):
        return await deep_dive(state, context)

    async def node_analyze(state):
        return await analyze_data(state, context)

    async def node_format(state):
        return await format_response(state, context)

    graph.add_node("parse_query", node_parse)
    graph.add_node("fetch_data", node_fetch)
    graph.add_node("deep_dive", node_deep_dive)
    graph.add_node("analyze_data", node_analyze)
    graph.add_node("format_response", node_format)

    graph.add_edge(START, "parse_query")
    graph.add_conditional_edges(
        "parse_query",
        error_router("fetch_data"),
        {"fetch_data": "fetch_data", "format_response": "format_response"},
    )
    graph.add_conditional_edges(
        "fetch_data",
        error_router("deep_dive"),
        {"deep_dive": "deep_dive", "format_response": "format_response"},
    )
    graph.add_conditional_edges(
        "deep_dive",
        error_router("analyze_data"),
        {"analyze_data": "analyze_data", "format_response": "format_response"},
    )
    graph.add_edge("analyze_data", "format_response")
    graph.add_edge("format_response", END)

    return graph.compile()


def build_tool_registry(
    job_id: UUID,
    services: AnalysisServices,
    audit_logger: AuditLogger,
    guardrail_enforcer: GuardrailEnforcer,
) -> ToolRegistry:
    """Register every pipeline tool for one run."""
    tool_registry = ToolRegistry(job_id, audit_logger, guardrail_enforcer)

    interpreter = QueryInterpreter(services.completion_service)
    fetcher = TransactionFetcher(services.transaction_provider)
    lookup = EntityLookup(services.entity_provider)
    detector = PatternDetector()
    synthesizer = NarrativeSynthesizer(services.completion_service)

    tool_registry.register_tool("query_interpreter", interpreter.execute)
    tool_registry.register_tool("search_address", lookup.search_address)
    tool_registry.register_tool("fetch_account_info", lookup.fetch_account_info)
    tool_registry.register_tool("fetch_transactions_by_address", fetcher.fetch_by_address)
    tool_registry.register_tool("fetch_token_transactions", fetcher.fetch_token_transactions)
    tool_registry.register_tool("fetch_transactions_by_signature", fetcher.fetch_by_signatures)
    tool_registry.register_tool("pattern_detector", detector.execute)
    tool_registry.register_tool("narrative_synthesizer", synthesizer.execute)

    return tool_registry


def initial_state(job_id: UUID, query: str) -> WorkflowState:
    return {
        "run_id": str(job_id),
        "user_query": query,
        "extracted_addresses": [],
        "extracted_tokens": [],
        "transaction_signatures": [],
        "query_type": None,
        "intent": None,
        "hours_back": None,
        "specific_token": None,
        "transactions": [],
        "account_info": None,
        "data_report": None,
        "suspicious_addresses": [],
        "suspect_profiles": [],
        "analysis": "",
        "error": None,
        "metadata": {},
    }


def summarize_run(final_state: WorkflowState, guardrail_enforcer: GuardrailEnforcer) -> dict:
    """JSON-serializable result stored on the job."""
    report = final_state.get("data_report")
    return {
        "run_id": final_state["run_id"],
        "status": "error" if final_state.get("error") else "completed",
        "analysis": final_state.get("analysis", ""),
        "error": final_state.get("error"),
        "query_type": final_state.get("query_type"),
        "intent": final_state.get("intent"),
        "addresses": final_state.get("extracted_addresses", []),
        "transaction_signatures": final_state.get("transaction_signatures", []),
        "hours_back": final_state.get("hours_back"),
        "specific_token": final_state.get("specific_token"),
        "transaction_count": len(final_state.get("transactions") or []),
        "data_report": report.model_dump(mode="json") if report is not None else None,
        "suspicious_addresses": [
            record.model_dump(mode="json")
            for record in final_state.get("suspicious_addresses") or []
        ],
        "suspect_profiles": [
            profile.model_dump(mode="json")
            for profile in final_state.get("suspect_profiles") or []
        ],
        "metadata": final_state.get("metadata", {}),
        "tool_calls": guardrail_enforcer.get_tool_call_stats(),
    }


async def execute_workflow(
    job_id: UUID,
    query: str,
    session: Optional[AsyncSession] = None,
    services: Optional[AnalysisServices] = None,
) -> dict:
    """
    Run the pipeline for one query.

    Args:
        job_id: Identifier of the run (the job ID when queued)
        query: Free-text user question
        session: Database session for the audit trail (None keeps it in memory)
        services: External services (built from settings when omitted)

    Returns:
        Result dictionary (see summarize_run)

    Raises:
        Exception: Only for failures outside the stage error handling
    """
    logger.info(f"Starting run {job_id}")

    owns_services = services is None
    if services is None:
        services = AnalysisServices.from_settings()

    audit_logger = AuditLogger(session, job_id)
    guardrail_enforcer = GuardrailEnforcer()
    tool_registry = build_tool_registry(job_id, services, audit_logger, guardrail_enforcer)

    context = WorkflowContext(
        tool_registry=tool_registry,
        audit_logger=audit_logger,
        guardrail_enforcer=guardrail_enforcer,
    )

    state = initial_state(job_id, query)
    workflow = create_workflow(context)

    try:
        final_state = await workflow.ainvoke(state)
    except Exception as e:
        logger.error(f"Run {job_id} failed: {e}")
        await audit_logger.log_error("workflow", e, {"query": query})
        raise
    finally:
        if owns_services:
            await services.aclose()

    if final_state.get("error"):
        logger.info(f"Run {job_id} finished with error: {final_state['error']}")
    else:
        logger.info(f"Run {job_id} completed successfully")

    return summarize_run(final_state, guardrail_enforcer)


async def run_workflow(query: str, services: Optional[AnalysisServices] = None) -> str:
    """
    Run the pipeline in-process and return the final analysis text.

    Stage failures come back as "Error: ..." text rather than exceptions.
    """
    result = await execute_workflow(uuid4(), query, services=services)
    return result["analysis"]
