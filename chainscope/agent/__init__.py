"""
LangGraph agent module for pipeline orchestration.
Implements the state machine that turns a query into an analysis.
"""

from chainscope.agent.graph import create_workflow, execute_workflow, run_workflow
from chainscope.agent.services import AnalysisServices
from chainscope.agent.state import WorkflowState

__all__ = [
    "AnalysisServices",
    "WorkflowState",
    "create_workflow",
    "execute_workflow",
    "run_workflow",
]
