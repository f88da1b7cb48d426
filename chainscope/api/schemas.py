"""
Pydantic schemas for API request/response models.
"""

from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field


class JobOptions(BaseModel):
    """Optional scheduling options for a submitted query."""

    priority: Optional[int] = Field(
        default=None,
        ge=0,
        description="Job priority (marks the job as prioritized; lower numbers resume first)",
    )
    delay: Optional[float] = Field(
        default=None,
        ge=0,
        description="Seconds to wait before processing starts",
    )


class QueryRequest(BaseModel):
    """Request to analyze a free-text query."""

    query: str = Field(
        description="Question about Solana on-chain activity",
        examples=[
            "Analyze wallet 5Q544fKrFoe6tsEbD7S8EmxGTJYAKtTVhAW5Q5pge4j1 for suspicious activity"
        ],
    )
    user_id: Optional[str] = Field(default=None, description="Submitter identifier")
    metadata: Optional[JobOptions] = None


class QueryResponse(BaseModel):
    """Response after queueing a query."""

    job_id: str = Field(description="Analysis job ID")
    state: str = Field(description="Initial job state")
    message: str
    status_url: str
    result_url: str
    created_at: datetime


class JobStatusResponse(BaseModel):
    """Response for job status query."""

    job_id: str
    state: str
    query: str
    user_id: Optional[str]
    priority: Optional[int]
    attempts_made: int
    failed_reason: Optional[str]
    created_at: datetime
    processed_on: Optional[datetime]
    finished_on: Optional[datetime]
    duration_ms: Optional[int]


class JobResultResponse(BaseModel):
    """Response for job result query."""

    job_id: str
    state: str
    message: Optional[str] = None
    analysis: Optional[str] = None
    query_type: Optional[str] = None
    error: Optional[str] = None
    result: Optional[dict] = None
    completed_at: Optional[datetime] = None


class JobSummary(BaseModel):
    """Summary of a job for listings."""

    job_id: str
    state: str
    query: str
    attempts_made: int
    created_at: datetime
    finished_on: Optional[datetime]


class ListJobsResponse(BaseModel):
    """Response for listing jobs."""

    jobs: List[JobSummary]
    total: int = Field(description="Number of jobs returned")


class RemoveJobResponse(BaseModel):
    job_id: str
    removed: bool


class AuditEventSummary(BaseModel):
    """Summary of an audit event."""

    id: str
    node_name: str
    tool_name: Optional[str]
    duration_ms: int
    timestamp: datetime


class GetAuditResponse(BaseModel):
    """Response for audit trail query."""

    job_id: str
    total_events: int
    events: List[AuditEventSummary]


class QueueStatsResponse(BaseModel):
    """Number of jobs per state."""

    waiting: int = 0
    active: int = 0
    completed: int = 0
    failed: int = 0
    delayed: int = 0
    prioritized: int = 0
    total: int = 0


class HealthResponse(BaseModel):
    """Health check response."""

    status: str
    app_name: str
    version: str
    database_connected: bool
    mock_mode: bool
    timestamp: datetime
