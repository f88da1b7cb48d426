"""
Database module for chainscope.
Provides SQLAlchemy models, async session management, and base classes.
"""

from chainscope.db.base import Base
from chainscope.db.session import engine, async_session_maker
from chainscope.db.models import AnalysisJob, AuditEvent, JobState

__all__ = [
    "Base",
    "engine",
    "async_session_maker",
    "AnalysisJob",
    "AuditEvent",
    "JobState",
]
