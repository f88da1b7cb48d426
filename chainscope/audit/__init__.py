"""
Audit logging module for tracking pipeline events.
Provides an append-only trail of every node completion and tool call.
"""

from chainscope.audit.logger import AuditLogger

__all__ = ["AuditLogger"]
