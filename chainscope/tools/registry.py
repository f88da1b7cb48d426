"""
Tool registry with guardrail enforcement.
Manages tool invocation, call budgets, and audit logging.
"""

import logging
import time
from typing import Any, Awaitable, Callable
from uuid import UUID

from chainscope.audit.logger import AuditLogger
from chainscope.guardrails.enforcement import GuardrailEnforcer

logger = logging.getLogger(__name__)

ToolFunc = Callable[[dict], Awaitable[Any]]


class ToolRegistry:
    """
    Central registry for pipeline tools with guardrail enforcement.

    All tool calls go through this registry which:
    - Checks tool allowlist
    - Enforces the per-run call budget
    - Logs to audit trail
    """

    def __init__(
        self,
        job_id: UUID,
        audit_logger: AuditLogger,
        guardrail_enforcer: GuardrailEnforcer,
    ):
        self.job_id = job_id
        self.audit_logger = audit_logger
        self.guardrail_enforcer = guardrail_enforcer
        self._tools: dict[str, ToolFunc] = {}

    def register_tool(self, name: str, func: ToolFunc) -> None:
        """
        Register a tool function.

        Args:
            name: Tool name (must be on allowlist)
            func: Async callable taking the tool's input dict
        """
        self.guardrail_enforcer.check_tool_allowlist(name)
        self._tools[name] = func
        logger.debug(f"Registered tool: {name}")

    async def invoke_tool(
        self,
        tool_name: str,
        input_data: dict[str, Any],
        node_name: str = "unknown",
    ) -> Any:
        """
        Invoke a registered tool with guardrail checks and audit logging.

        Args:
            tool_name: Name of the tool to invoke
            input_data: Input parameters for the tool
            node_name: Name of the calling node (for audit)

        Returns:
            The tool's output model

        Raises:
            GuardrailViolation: If any guardrail check fails
            ValueError: If tool is not registered
        """
        self.guardrail_enforcer.check_tool_allowlist(tool_name)
        self.guardrail_enforcer.increment_tool_call()

        if tool_name not in self._tools:
            raise ValueError(f"Tool '{tool_name}' is not registered")

        tool_func = self._tools[tool_name]
        start_time = time.perf_counter()

        try:
            output_data = await tool_func(input_data)
        except Exception as e:
            duration_ms = int((time.perf_counter() - start_time) * 1000)
            await self.audit_logger.log_tool_call(
                node_name=node_name,
                tool_name=tool_name,
                input_data=input_data,
                output_data={
                    "error": True,
                    "error_type": type(e).__name__,
                    "error_message": str(e),
                },
                duration_ms=duration_ms,
            )
            logger.error(f"Tool '{tool_name}' failed: {e}")
            raise

        duration_ms = int((time.perf_counter() - start_time) * 1000)
        await self.audit_logger.log_tool_call(
            node_name=node_name,
            tool_name=tool_name,
            input_data=input_data,
            output_data=output_data,
            duration_ms=duration_ms,
        )
        logger.info(f"Tool '{tool_name}' executed successfully ({duration_ms}ms)")

        return output_data

    def get_registered_tools(self) -> list[str]:
        return list(self._tools.keys())
