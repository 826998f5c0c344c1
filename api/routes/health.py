"""
Health check endpoint with database and last job status
"""

from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from api.dependencies import get_db, get_ledger
from ingestion.job_ledger import JobLedger
from models.base import JobStatus
from schemas.api import HealthResponse
from datetime import datetime
import logging

logger = logging.getLogger(__name__)
router = APIRouter(tags=["Health"])


@router.get("/health", response_model=HealthResponse)
async def health_check(
    db: AsyncSession = Depends(get_db),
    ledger: JobLedger = Depends(get_ledger)
):
    """
    Health check endpoint.

    Returns:
    - Database connectivity status
    - Status of the most recent ETL job

    The service is degraded while the latest job has failed and unhealthy
    when the database is unreachable.
    """
    db_connected = False

    try:
        await db.execute(text("SELECT 1"))
        db_connected = True
    except Exception as e:
        logger.error(f"Database connection failed: {str(e)}")

    last_job = None
    if db_connected:
        try:
            recent = await ledger.get_recent_jobs(limit=1)
            last_job = recent[0] if recent else None
        except Exception as e:
            logger.error(f"Failed to fetch recent ETL jobs: {str(e)}")

    if not db_connected:
        status = "unhealthy"
    elif last_job is not None and last_job.status == JobStatus.FAILED:
        status = "degraded"
    else:
        status = "healthy"

    return HealthResponse(
        status=status,
        timestamp=datetime.utcnow(),
        database_connected=db_connected,
        last_job_id=last_job.id if last_job else None,
        last_job_type=last_job.type if last_job else None,
        last_job_status=last_job.status if last_job else None,
        last_job_at=last_job.start_time if last_job else None
    )
