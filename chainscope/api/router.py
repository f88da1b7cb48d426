"""
FastAPI router with job submission and monitoring endpoints.
"""

import logging
from typing import Optional
from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from sqlalchemy import select

from chainscope.api.schemas import (
    AuditEventSummary,
    GetAuditResponse,
    HealthResponse,
    JobResultResponse,
    JobStatusResponse,
    JobSummary,
    ListJobsResponse,
    QueryRequest,
    QueryResponse,
    QueueStatsResponse,
    RemoveJobResponse,
)
from chainscope.config import settings
from chainscope.db.models import AnalysisJob, JobState, utc_now
from chainscope.guardrails.enforcement import GuardrailViolation, validate_query_input
from chainscope.jobs.queue import AnalysisQueue

logger = logging.getLogger(__name__)

router = APIRouter()


def get_job_queue(request: Request) -> AnalysisQueue:
    return request.app.state.job_queue


def parse_job_id(job_id: str) -> UUID:
    try:
        return UUID(job_id)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid job ID format")


async def load_job(job_id: str, queue: AnalysisQueue) -> AnalysisJob:
    job = await queue.get(parse_job_id(job_id))
    if job is None:
        raise HTTPException(status_code=404, detail="Job not found")
    return job


def duration_ms(job: AnalysisJob) -> Optional[int]:
    if job.finished_on is None or job.processed_on is None:
        return None
    return int((job.finished_on - job.processed_on).total_seconds() * 1000)


@router.post("/query", response_model=QueryResponse, status_code=202)
async def submit_query(
    request: QueryRequest,
    queue: AnalysisQueue = Depends(get_job_queue),
):
    """
    Queue a query for analysis.

    The job is processed in the background; poll the status and result URLs.
    """
    try:
        query = validate_query_input(request.query)
    except GuardrailViolation as e:
        raise HTTPException(status_code=400, detail=e.message)

    metadata = request.metadata.model_dump(exclude_none=True) if request.metadata else {}
    job = await queue.submit(query, user_id=request.user_id, metadata=metadata)

    return QueryResponse(
        job_id=str(job.id),
        state=job.state.value,
        message="Query submitted successfully",
        status_url=f"/api/v1/jobs/{job.id}",
        result_url=f"/api/v1/jobs/{job.id}/result",
        created_at=job.created_at,
    )


@router.get("/jobs/{job_id}", response_model=JobStatusResponse)
async def get_job(job_id: str, queue: AnalysisQueue = Depends(get_job_queue)):
    """
    Get job state, attempts and timestamps.
    """
    job = await load_job(job_id, queue)

    return JobStatusResponse(
        job_id=str(job.id),
        state=job.state.value,
        query=job.query,
        user_id=job.user_id,
        priority=job.priority,
        attempts_made=job.attempts_made,
        failed_reason=job.failed_reason,
        created_at=job.created_at,
        processed_on=job.processed_on,
        finished_on=job.finished_on,
        duration_ms=duration_ms(job),
    )


@router.get("/jobs/{job_id}/result", response_model=JobResultResponse)
async def get_job_result(job_id: str, queue: AnalysisQueue = Depends(get_job_queue)):
    """
    Get the analysis of a finished job.

    Failed jobs answer with HTTP 500; unfinished jobs with a processing message.
    """
    job = await load_job(job_id, queue)

    if job.state == JobState.FAILED:
        return JSONResponse(
            status_code=500,
            content={
                "job_id": str(job.id),
                "state": job.state.value,
                "error": job.failed_reason,
                "attempts_made": job.attempts_made,
            },
        )

    if job.state != JobState.COMPLETED:
        return JobResultResponse(
            job_id=str(job.id),
            state=job.state.value,
            message="Job is still processing",
        )

    result = job.result or {}
    return JobResultResponse(
        job_id=str(job.id),
        state=job.state.value,
        analysis=result.get("analysis"),
        query_type=result.get("query_type"),
        error=result.get("error"),
        result=result,
        completed_at=job.finished_on,
    )


@router.get("/jobs", response_model=ListJobsResponse)
async def list_jobs(
    state: Optional[JobState] = Query(default=None),
    limit: int = Query(default=50, ge=1, le=500),
    queue: AnalysisQueue = Depends(get_job_queue),
):
    """
    List jobs, newest first.
    """
    jobs = await queue.list_jobs(state=state, limit=limit)

    return ListJobsResponse(
        jobs=[
            JobSummary(
                job_id=str(job.id),
                state=job.state.value,
                query=job.query,
                attempts_made=job.attempts_made,
                created_at=job.created_at,
                finished_on=job.finished_on,
            )
            for job in jobs
        ],
        total=len(jobs),
    )


@router.delete("/jobs/{job_id}", response_model=RemoveJobResponse)
async def remove_job(job_id: str, queue: AnalysisQueue = Depends(get_job_queue)):
    removed = await queue.remove(parse_job_id(job_id))
    if not removed:
        raise HTTPException(status_code=404, detail="Job not found")
    return RemoveJobResponse(job_id=job_id, removed=True)


@router.get("/jobs/{job_id}/audit", response_model=GetAuditResponse)
async def get_job_audit(job_id: str, queue: AnalysisQueue = Depends(get_job_queue)):
    """
    Get full audit trail for a job.
    """
    job = await load_job(job_id, queue)
    events = await queue.audit_trail(job.id)

    return GetAuditResponse(
        job_id=str(job.id),
        total_events=len(events),
        events=[
            AuditEventSummary(
                id=str(event.id),
                node_name=event.node_name,
                tool_name=event.tool_name,
                duration_ms=event.duration_ms,
                timestamp=event.timestamp,
            )
            for event in events
        ],
    )


@router.get("/queues/stats", response_model=QueueStatsResponse)
async def queue_stats(queue: AnalysisQueue = Depends(get_job_queue)):
    counts = await queue.counts()
    return QueueStatsResponse(**counts, total=sum(counts.values()))


@router.get("/health", response_model=HealthResponse)
async def health_check(queue: AnalysisQueue = Depends(get_job_queue)):
    """
    Health check endpoint.
    """
    try:
        async with queue.session_maker() as session:
            await session.execute(select(1))
        database_connected = True
    except Exception as e:
        logger.error(f"Database health check failed: {e}")
        database_connected = False

    return HealthResponse(
        status="healthy" if database_connected else "degraded",
        app_name=settings.app_name,
        version=settings.app_version,
        database_connected=database_connected,
        mock_mode=settings.use_mock_llm,
        timestamp=utc_now(),
    )
