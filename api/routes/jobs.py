"""
Job ledger endpoints: job history, error statistics and recovery actions
"""

from fastapi import APIRouter, Depends, HTTPException, Query, Request
from api.dependencies import get_ledger, get_recovery_engine
from ingestion.job_ledger import JobLedger
from ingestion.recovery import RecoveryEngine
from models.base import JobStatus
from schemas.api import (
    JobResponse,
    JobListResponse,
    ErrorStatsResponse,
    RecoveryActionResponse,
    RecoveryActionListResponse,
)
from typing import Optional
import uuid
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/jobs", tags=["Jobs"])


async def _get_job_or_404(ledger: JobLedger, job_id: str):
    job = await ledger.get_job_by_id(job_id)
    if job is None:
        raise HTTPException(status_code=404, detail=f"Job {job_id} not found")
    return job


@router.get("", response_model=JobListResponse)
async def list_jobs(
    request: Request,
    status: Optional[JobStatus] = Query(None, description="Filter by job status"),
    type: Optional[str] = Query(None, description="Filter by job type"),
    limit: int = Query(20, ge=1, le=200, description="Maximum number of jobs"),
    ledger: JobLedger = Depends(get_ledger)
):
    """
    Recent jobs, newest first.

    ``status`` takes precedence over ``type`` when both are given.
    """
    request_id = getattr(request.state, "request_id", f"req_{uuid.uuid4().hex[:12]}")
    logger.info(f"[{request_id}] GET /jobs - status={status}, type={type}, limit={limit}")

    if status is not None:
        jobs = await ledger.get_jobs_by_status(status, limit=limit)
    elif type:
        jobs = await ledger.get_jobs_by_type(type, limit=limit)
    else:
        jobs = await ledger.get_recent_jobs(limit=limit)

    return JobListResponse(
        items=[JobResponse.model_validate(job) for job in jobs],
        count=len(jobs),
        filters_applied={k: v for k, v in {
            "status": status.value if status else None,
            "type": type,
        }.items() if v is not None}
    )


@router.get("/{job_id}", response_model=JobResponse)
async def get_job(job_id: str, ledger: JobLedger = Depends(get_ledger)):
    job = await _get_job_or_404(ledger, job_id)
    return JobResponse.model_validate(job)


@router.get("/{job_id}/errors", response_model=ErrorStatsResponse)
async def get_job_errors(
    job_id: str,
    ledger: JobLedger = Depends(get_ledger),
    engine: RecoveryEngine = Depends(get_recovery_engine)
):
    """Error counts of a job by error type and by pipeline phase"""
    await _get_job_or_404(ledger, job_id)
    stats = await engine.get_error_stats(job_id)
    return ErrorStatsResponse(job_id=job_id, **stats.model_dump())


@router.get("/{job_id}/recovery", response_model=RecoveryActionListResponse)
async def get_job_recovery_actions(
    job_id: str,
    ledger: JobLedger = Depends(get_ledger),
    engine: RecoveryEngine = Depends(get_recovery_engine)
):
    """Recovery actions taken for a job, oldest first"""
    await _get_job_or_404(ledger, job_id)
    actions = await engine.get_recovery_actions(job_id)
    items = [RecoveryActionResponse.model_validate(action) for action in actions]
    return RecoveryActionListResponse(job_id=job_id, items=items, count=len(items))
