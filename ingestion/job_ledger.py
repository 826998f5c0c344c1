"""
Job Ledger client: durable record of ETL job lifecycle and results.

Lifecycle:
    scheduled -> running -> completed | failed

Terminal states are final: once a job is completed or failed, further
updates are refused and logged. ``fail_job`` never raises, so it is safe to
call from error handlers.
"""

from typing import Any, Dict, List, Optional, Union
from datetime import datetime
import uuid

from sqlalchemy import select
from sqlalchemy.ext.asyncio import async_sessionmaker

from core.exceptions import JobNotFoundError
from models.base import JobStatus
from models.etl_job import ETLJob
from schemas.etl import JobCreate, JobResult
import logging

logger = logging.getLogger(__name__)

_UPDATABLE_FIELDS = {
    "name", "type", "status", "start_time", "end_time",
    "duration_ms", "error", "parameters", "result",
}


def _result_dict(result: Union[JobResult, Dict[str, Any], None]) -> Optional[Dict[str, Any]]:
    if result is None:
        return None
    if isinstance(result, JobResult):
        return result.model_dump()
    return dict(result)


class JobLedger:
    """
    Create, update and query ETL job records.

    One session is opened per call from the shared session factory, so the
    ledger can be used by concurrently running jobs.
    """

    def __init__(self, session_factory: async_sessionmaker):
        self.session_factory = session_factory

    async def create_job(self, data: Union[JobCreate, Dict[str, Any]]) -> ETLJob:
        """Persist a new job; assigns the id and defaults start_time to now"""
        if not isinstance(data, JobCreate):
            data = JobCreate(**data)

        job = ETLJob(
            id=str(uuid.uuid4()),
            name=data.name,
            type=data.type,
            status=data.status,
            start_time=data.start_time or datetime.utcnow(),
            parameters=data.parameters,
        )
        async with self.session_factory() as session:
            session.add(job)
            await session.commit()
            await session.refresh(job)

        logger.info(f"Created ETL job {job.id} ({job.type}, {job.status.value})")
        return job

    async def update_job(self, job_id: str, data: Dict[str, Any]) -> ETLJob:
        """
        Apply a partial update to a job.

        When ``end_time`` is given without ``duration_ms``, the duration is
        derived from the stored start time.

        Raises:
            JobNotFoundError: If the job does not exist
        """
        unknown = set(data) - _UPDATABLE_FIELDS
        if unknown:
            raise ValueError(f"Unknown job fields: {', '.join(sorted(unknown))}")

        async with self.session_factory() as session:
            job = await session.get(ETLJob, job_id)
            if job is None:
                raise JobNotFoundError(f"ETL job {job_id} not found", context={"job_id": job_id})

            if job.status.is_terminal:
                logger.warning(
                    f"Ignoring update of ETL job {job_id}: already {job.status.value}",
                    extra={"etl_context": {"job_id": job_id, "fields": sorted(data)}}
                )
                return job

            updates = dict(data)
            if "status" in updates:
                updates["status"] = JobStatus(updates["status"])
            if "result" in updates:
                updates["result"] = _result_dict(updates["result"])

            if updates.get("end_time") is not None and updates.get("duration_ms") is None:
                elapsed = updates["end_time"] - job.start_time
                updates["duration_ms"] = elapsed.total_seconds() * 1000

            for field, value in updates.items():
                setattr(job, field, value)

            await session.commit()
            await session.refresh(job)
            return job

    async def start_job(self, job_id: str) -> ETLJob:
        """Move a scheduled job to running"""
        return await self.update_job(job_id, {"status": JobStatus.RUNNING})

    async def complete_job(self, job_id: str, result: Union[JobResult, Dict[str, Any]]) -> ETLJob:
        """Mark a job completed with its result"""
        job = await self.update_job(job_id, {
            "status": JobStatus.COMPLETED,
            "end_time": datetime.utcnow(),
            "result": result,
        })
        logger.info(f"ETL job {job_id} finished as {job.status.value}")
        return job

    async def fail_job(
        self,
        job_id: str,
        error: str,
        partial_result: Union[JobResult, Dict[str, Any], None] = None
    ) -> Optional[ETLJob]:
        """
        Mark a job failed. Never raises.

        The partial result is only written when it defines ``processed``;
        an incomplete result would be misleading.
        """
        try:
            update: Dict[str, Any] = {
                "status": JobStatus.FAILED,
                "end_time": datetime.utcnow(),
                "error": error,
            }

            partial = _result_dict(partial_result)
            if partial and partial.get("processed") is not None:
                update["result"] = {
                    "processed": partial.get("processed"),
                    "failed": partial.get("failed"),
                    "templates": partial.get("templates"),
                    "message": partial.get("message"),
                }

            job = await self.update_job(job_id, update)
            logger.info(f"ETL job {job_id} marked failed: {error}")
            return job

        except Exception as e:
            logger.error(
                f"Error marking ETL job {job_id} as failed: {str(e)}",
                extra={"etl_context": {"job_id": job_id, "job_error": error}}
            )
            return None

    # ------------------------------------------------------------------
    # Read surface (operator-facing; transport errors propagate)
    # ------------------------------------------------------------------

    async def get_recent_jobs(self, limit: int = 20) -> List[ETLJob]:
        return await self._query(limit=limit)

    async def get_jobs_by_status(self, status: Union[JobStatus, str], limit: int = 20) -> List[ETLJob]:
        return await self._query(ETLJob.status == JobStatus(status), limit=limit)

    async def get_jobs_by_type(self, job_type: str, limit: int = 20) -> List[ETLJob]:
        return await self._query(ETLJob.type == str(getattr(job_type, "value", job_type)), limit=limit)

    async def get_job_by_id(self, job_id: str) -> Optional[ETLJob]:
        async with self.session_factory() as session:
            return await session.get(ETLJob, job_id)

    async def _query(self, *criteria, limit: int) -> List[ETLJob]:
        query = select(ETLJob)
        if criteria:
            query = query.where(*criteria)
        query = query.order_by(ETLJob.start_time.desc()).limit(limit)

        async with self.session_factory() as session:
            result = await session.execute(query)
            return list(result.scalars().all())
