"""
Manual ETL trigger endpoint
"""

from fastapi import APIRouter, BackgroundTasks, Depends, Request, status
from api.dependencies import get_runner
from ingestion.runner import ETLRunner
from models.base import JobType
from schemas.api import ETLTriggerRequest, ETLTriggerResponse
from typing import Any, Dict, Optional
import logging

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/etl", tags=["ETL"])


async def run_job_in_background(runner: ETLRunner, job_type: str, params: Dict[str, Any]):
    """Run a job after the response is sent; failures are already in the ledger"""
    try:
        await runner.run_job(job_type, **params)
    except Exception as e:
        logger.error(f"Background {job_type} job failed: {str(e)}")


@router.post("/{job_type}", response_model=ETLTriggerResponse, status_code=status.HTTP_202_ACCEPTED)
async def trigger_job(
    job_type: JobType,
    request: Request,
    background_tasks: BackgroundTasks,
    body: Optional[ETLTriggerRequest] = None,
    runner: ETLRunner = Depends(get_runner)
):
    """Start a hot-trends, category or stats-refresh job in the background"""
    params = body.model_dump(exclude_none=True) if body else {}
    request_id = getattr(request.state, "request_id", None)

    logger.info(f"[{request_id}] POST /etl/{job_type.value} - params={params}")
    background_tasks.add_task(run_job_in_background, runner, job_type.value, params)

    return ETLTriggerResponse(job_type=job_type.value, parameters=params, request_id=request_id)
