"""
Persistent analysis job queue.

Jobs are stored as AnalysisJob rows and processed by background asyncio
tasks, bounded by a concurrency semaphore. Exceptions escaping the pipeline
are retried with exponential backoff; stage errors inside the pipeline are
part of a normal, completed result.
"""

import asyncio
import logging
from datetime import timezone
from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

from sqlalchemy import delete, func, select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chainscope.agent.graph import execute_workflow
from chainscope.config import settings
from chainscope.db.models import AnalysisJob, AuditEvent, JobState, utc_now
from chainscope.db.session import async_session_maker

logger = logging.getLogger(__name__)

Runner = Callable[[UUID, str, AsyncSession], Awaitable[dict]]

PENDING_STATES = (JobState.WAITING, JobState.DELAYED, JobState.PRIORITIZED, JobState.ACTIVE)


async def run_pipeline(job_id: UUID, query: str, session: AsyncSession) -> dict:
    return await execute_workflow(job_id, query, session=session)


def initial_state_for(metadata: dict) -> JobState:
    if metadata.get("delay"):
        return JobState.DELAYED
    if metadata.get("priority") is not None:
        return JobState.PRIORITIZED
    return JobState.WAITING


class AnalysisQueue:
    """
    Submit, process and inspect analysis jobs.

    Each attempt runs the pipeline with its own database session, so the
    audit trail of an attempt is committed even when the attempt fails.
    """

    def __init__(
        self,
        session_maker: Optional[async_sessionmaker] = None,
        runner: Optional[Runner] = None,
        max_attempts: Optional[int] = None,
        backoff_seconds: Optional[float] = None,
        concurrency: Optional[int] = None,
    ):
        self.session_maker = session_maker or async_session_maker
        self.runner = runner or run_pipeline
        self.max_attempts = max_attempts or settings.job_max_attempts
        self.backoff_seconds = (
            settings.job_backoff_seconds if backoff_seconds is None else backoff_seconds
        )
        self._semaphore = asyncio.Semaphore(concurrency or settings.job_concurrency)
        self._tasks: set[asyncio.Task] = set()

    def backoff_delay(self, attempt: int) -> float:
        """Delay before retrying after the given (1-based) failed attempt."""
        return self.backoff_seconds * 2 ** (attempt - 1)

    async def submit(
        self,
        query: str,
        user_id: Optional[str] = None,
        metadata: Optional[dict] = None,
        schedule: bool = True,
    ) -> AnalysisJob:
        """
        Persist a new job and schedule it for processing.

        Args:
            query: Free-text user question
            user_id: Optional submitter identifier
            metadata: Optional job options (``priority``, ``delay`` in seconds)
            schedule: Start background processing immediately

        Returns:
            The stored AnalysisJob
        """
        metadata = dict(metadata or {})
        job = AnalysisJob(
            query=query,
            user_id=user_id,
            job_metadata=metadata,
            state=initial_state_for(metadata),
            priority=metadata.get("priority"),
            attempts_made=0,
        )

        async with self.session_maker() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(f"Job {job.id} submitted ({job.state.value})")

        if schedule:
            self._schedule(job.id, float(metadata.get("delay") or 0))
        return job

    def _schedule(self, job_id: UUID, delay: float = 0) -> None:
        task = asyncio.create_task(self._run_after(job_id, delay))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)

    async def _run_after(self, job_id: UUID, delay: float) -> None:
        if delay > 0:
            await asyncio.sleep(delay)
        try:
            await self.process(job_id)
        except Exception as e:
            logger.error(f"Job {job_id} could not be processed: {e}")

    async def _update(self, job_id: UUID, **values: Any) -> Optional[AnalysisJob]:
        async with self.session_maker() as session:
            job = await session.get(AnalysisJob, job_id)
            if job is None:
                return None
            for key, value in values.items():
                setattr(job, key, value)
            await session.commit()
            await session.refresh(job)
            return job

    async def process(self, job_id: UUID) -> Optional[AnalysisJob]:
        """
        Run a job to completion, retrying escaped exceptions.

        Attempts already recorded on the row count against ``max_attempts``.

        Returns:
            The final job row, or None if the job no longer exists
        """
        async with self._semaphore:
            job = await self.get(job_id)
            attempt = job.attempts_made if job is not None else 0

            while attempt < self.max_attempts:
                attempt += 1
                job = await self.get(job_id)
                if job is None:
                    logger.info(f"Job {job_id} was removed before processing")
                    return None

                await self._update(
                    job_id,
                    state=JobState.ACTIVE,
                    processed_on=job.processed_on or utc_now(),
                )
                logger.info(f"Processing job {job_id} (attempt {attempt}/{self.max_attempts})")

                try:
                    async with self.session_maker() as session:
                        try:
                            result = await self.runner(job_id, job.query, session)
                        finally:
                            await session.commit()
                except Exception as e:
                    logger.warning(f"Job {job_id} attempt {attempt} failed: {e}")

                    if attempt < self.max_attempts:
                        await self._update(
                            job_id,
                            state=JobState.DELAYED,
                            attempts_made=attempt,
                            failed_reason=str(e),
                        )
                        await asyncio.sleep(self.backoff_delay(attempt))
                        continue

                    logger.error(f"Job {job_id} failed after {attempt} attempts")
                    return await self._update(
                        job_id,
                        state=JobState.FAILED,
                        attempts_made=attempt,
                        failed_reason=str(e),
                        finished_on=utc_now(),
                    )

                logger.info(f"Job {job_id} completed")
                return await self._update(
                    job_id,
                    state=JobState.COMPLETED,
                    attempts_made=attempt,
                    result=result,
                    failed_reason=None,
                    finished_on=utc_now(),
                )

        if job is None:
            return None
        return await self._update(
            job_id,
            state=JobState.FAILED,
            failed_reason=job.failed_reason or "Maximum attempts reached",
            finished_on=utc_now(),
        )

    async def resume_pending(self) -> list[UUID]:
        """
        Schedule jobs left unfinished by a previous process.

        Prioritized jobs go first (lowest priority number first), then the
        rest oldest first. A job found ``active`` was interrupted mid-run and
        that run counts as one attempt.

        Returns:
            IDs of the jobs scheduled again
        """
        query = (
            select(AnalysisJob)
            .where(AnalysisJob.state.in_(PENDING_STATES))
            .order_by(
                AnalysisJob.priority.is_(None),
                AnalysisJob.priority,
                AnalysisJob.created_at,
            )
        )
        async with self.session_maker() as session:
            result = await session.execute(query)
            jobs = list(result.scalars().all())

        resumed = []
        for job in jobs:
            delay = 0.0
            if job.state == JobState.ACTIVE:
                job = await self._update(
                    job.id,
                    attempts_made=job.attempts_made + 1,
                    failed_reason=job.failed_reason or "Interrupted before completion",
                )
                if job is None:
                    continue
            elif job.state == JobState.DELAYED:
                delay = self._remaining_delay(job)

            self._schedule(job.id, delay)
            resumed.append(job.id)

        if resumed:
            logger.info(f"Resumed {len(resumed)} unfinished jobs")
        return resumed

    def _remaining_delay(self, job: AnalysisJob) -> float:
        if job.attempts_made:
            return self.backoff_delay(job.attempts_made)

        requested = float((job.job_metadata or {}).get("delay") or 0)
        created_at = job.created_at
        if created_at.tzinfo is None:
            created_at = created_at.replace(tzinfo=timezone.utc)
        elapsed = (utc_now() - created_at).total_seconds()
        return max(0.0, requested - elapsed)

    async def get(self, job_id: UUID) -> Optional[AnalysisJob]:
        async with self.session_maker() as session:
            return await session.get(AnalysisJob, job_id)

    async def list_jobs(
        self, state: Optional[JobState] = None, limit: int = 50
    ) -> list[AnalysisJob]:
        """Jobs newest first, optionally restricted to one state."""
        query = select(AnalysisJob).order_by(AnalysisJob.created_at.desc()).limit(limit)
        if state is not None:
            query = query.where(AnalysisJob.state == state)

        async with self.session_maker() as session:
            result = await session.execute(query)
            return list(result.scalars().all())

    async def remove(self, job_id: UUID) -> bool:
        """
        Delete a job and its audit trail.

        Returns:
            False if the job did not exist
        """
        async with self.session_maker() as session:
            job = await session.get(AnalysisJob, job_id)
            if job is None:
                return False
            await session.execute(delete(AuditEvent).where(AuditEvent.job_id == job_id))
            await session.execute(delete(AnalysisJob).where(AnalysisJob.id == job_id))
            await session.commit()

        logger.info(f"Job {job_id} removed")
        return True

    async def counts(self) -> dict[str, int]:
        """Number of jobs per state (every state present)."""
        async with self.session_maker() as session:
            result = await session.execute(
                select(AnalysisJob.state, func.count(AnalysisJob.id)).group_by(
                    AnalysisJob.state
                )
            )
            rows = result.all()

        counts = {state.value: 0 for state in JobState}
        for state, count in rows:
            counts[JobState(state).value] = count
        return counts

    async def audit_trail(self, job_id: UUID) -> list[AuditEvent]:
        async with self.session_maker() as session:
            result = await session.execute(
                select(AuditEvent)
                .where(AuditEvent.job_id == job_id)
                .order_by(AuditEvent.timestamp)
            )
            return list(result.scalars().all())

    async def drain(self) -> None:
        """Wait until every scheduled job has finished."""
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)

    async def close(self) -> None:
        """Cancel scheduled work that has not finished."""
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        self._tasks.clear()
