"""
Append-only audit logger for pipeline events.
Every node completion, tool call and error is recorded.
"""

import logging
import time
from typing import Any, Optional
from uuid import UUID

from pydantic import BaseModel
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chainscope.db.models import AuditEvent

logger = logging.getLogger(__name__)

SENSITIVE_KEYS = {"password", "api_key", "api-key", "apikey", "token", "secret", "cookie"}
MAX_STRING_LENGTH = 1000
MAX_LIST_ITEMS = 100


class AuditLogger:
    """
    Append-only audit logger that records pipeline execution details.

    With a database session, events are persisted to the audit_events table
    keyed by job ID. Without one (CLI runs), events are kept in memory and
    echoed to the module logger.
    """

    def __init__(self, session: Optional[AsyncSession], job_id: UUID):
        self.session = session
        self.job_id = job_id
        self.events: list[dict] = []
        self._start_times: dict[str, float] = {}

    def start_timer(self, key: str) -> None:
        self._start_times[key] = time.perf_counter()

    def stop_timer(self, key: str) -> int:
        """
        Stop a timer and return elapsed milliseconds.

        Returns:
            Elapsed time in milliseconds, 0 for an unknown timer
        """
        if key not in self._start_times:
            return 0
        elapsed = time.perf_counter() - self._start_times.pop(key)
        return int(elapsed * 1000)

    @staticmethod
    def _sanitize_data(data: Any) -> Any:
        """
        Sanitize data for audit logging.

        - Converts Pydantic models and other objects to JSON-serializable values
        - Truncates very large strings and lists
        - Redacts sensitive fields
        """
        if data is None:
            return {}

        if isinstance(data, BaseModel):
            return AuditLogger._sanitize_data(data.model_dump(mode="json"))

        if isinstance(data, dict):
            sanitized = {}
            for key, value in data.items():
                if str(key).lower() in SENSITIVE_KEYS:
                    sanitized[key] = "***REDACTED***"
                elif isinstance(value, str):
                    sanitized[key] = (
                        value[:MAX_STRING_LENGTH] + "... (truncated)"
                        if len(value) > MAX_STRING_LENGTH
                        else value
                    )
                elif value is None or isinstance(value, (int, float, bool)):
                    sanitized[key] = value
                else:
                    sanitized[key] = AuditLogger._sanitize_data(value)
            return sanitized

        if isinstance(data, (list, tuple, set)):
            items = list(data)[:MAX_LIST_ITEMS]
            return [
                item if isinstance(item, (str, int, float, bool)) else AuditLogger._sanitize_data(item)
                for item in items
            ]

        if isinstance(data, (str, int, float, bool)):
            return {"value": data}

        return {"value": str(data)}

    @staticmethod
    def _as_record(data: Any) -> dict:
        sanitized = AuditLogger._sanitize_data(data)
        return sanitized if isinstance(sanitized, dict) else {"items": sanitized}

    async def _record(
        self,
        node_name: str,
        tool_name: Optional[str],
        input_data: Any,
        output_data: Any,
        duration_ms: int,
    ) -> None:
        record = {
            "node_name": node_name,
            "tool_name": tool_name,
            "input_data": self._as_record(input_data),
            "output_data": self._as_record(output_data),
            "duration_ms": duration_ms,
        }

        if self.session is None:
            self.events.append(record)
            logger.debug(
                f"audit job={self.job_id} node={node_name} tool={tool_name} ({duration_ms}ms)"
            )
            return

        self.session.add(AuditEvent(job_id=self.job_id, **record))
        await self.session.flush()

    async def log_node_start(self, node_name: str) -> None:
        self.start_timer(f"node_{node_name}")

    async def log_node_completion(
        self,
        node_name: str,
        output_data: Any = None,
        input_data: Any = None,
    ) -> None:
        """
        Log the completion of a node execution.

        Args:
            node_name: Name of the node that completed
            output_data: Output data from the node
            input_data: Input data for the node (for audit record)
        """
        duration_ms = self.stop_timer(f"node_{node_name}")
        await self._record(node_name, None, input_data, output_data, duration_ms)

    async def log_tool_call(
        self,
        node_name: str,
        tool_name: str,
        input_data: Any,
        output_data: Any,
        duration_ms: int = 0,
    ) -> None:
        await self._record(node_name, tool_name, input_data, output_data, duration_ms)

    async def log_error(
        self,
        node_name: str,
        error: Exception,
        input_data: Any = None,
    ) -> None:
        """
        Log an error that occurred during a run.

        Args:
            node_name: Name of the node where error occurred
            error: The exception that was raised
            input_data: Input data that caused the error
        """
        duration_ms = self.stop_timer(f"node_{node_name}")
        await self._record(
            node_name,
            None,
            input_data,
            {
                "error": True,
                "error_type": type(error).__name__,
                "error_message": str(error),
            },
            duration_ms,
        )

    async def get_audit_trail(self) -> list:
        """
        Retrieve all audit events for this job.

        Returns:
            AuditEvent rows ordered by timestamp, or the in-memory records
        """
        if self.session is None:
            return list(self.events)

        result = await self.session.execute(
            select(AuditEvent)
            .where(AuditEvent.job_id == self.job_id)
            .order_by(AuditEvent.timestamp)
        )
        return list(result.scalars().all())

    async def get_event_count(self) -> int:
        events = await self.get_audit_trail()
        return len(events)
