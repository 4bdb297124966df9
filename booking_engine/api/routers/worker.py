from fastapi import APIRouter, Depends, Query, status

from booking_engine.api.dependencies import get_use_cases
from booking_engine.api.schemas.bookings import (
    AutoUpdateResponse,
    ProcessRetryJobsResponse,
    RetryJobResponse,
)
from booking_engine.infrastructure.db.retry import retry_on_deadlock

router = APIRouter()


@router.post(
    "/workers/retry-jobs/run",
    response_model=ProcessRetryJobsResponse,
    status_code=status.HTTP_200_OK,
)
async def run_retry_jobs(
    use_cases=Depends(get_use_cases),
    worker_id: str | None = Query(default=None, alias="worker-id"),
) -> ProcessRetryJobsResponse:
    """
    Process one batch of due retry jobs with automatic deadlock retry.

    Intended to be called by a scheduler (cron) when no long-running worker is deployed.
    """

    async def execute():
        return await use_cases["process_retry_jobs"].execute(worker_id=worker_id)

    result = await retry_on_deadlock(execute, max_attempts=3, base_delay=0.1)
    return ProcessRetryJobsResponse.from_result(result)


@router.post(
    "/workers/auto-update",
    response_model=AutoUpdateResponse,
    status_code=status.HTTP_200_OK,
)
async def run_auto_update(use_cases=Depends(get_use_cases)) -> AutoUpdateResponse:
    result = await use_cases["auto_update"].execute()
    return AutoUpdateResponse.from_result(result)


@router.get(
    "/retry-jobs/dead",
    response_model=list[RetryJobResponse],
    status_code=status.HTTP_200_OK,
)
async def list_dead_retry_jobs(
    use_cases=Depends(get_use_cases),
    limit: int = Query(default=100, ge=1, le=1000),
) -> list[RetryJobResponse]:
    jobs = await use_cases["list_dead_retry_jobs"].execute(limit=limit)
    return [RetryJobResponse.from_entity(job) for job in jobs]


@router.post(
    "/retry-jobs/{job_id}/requeue",
    response_model=RetryJobResponse,
    status_code=status.HTTP_200_OK,
)
async def requeue_retry_job(job_id: str, use_cases=Depends(get_use_cases)) -> RetryJobResponse:
    job = await use_cases["requeue_retry_job"].execute(job_id)
    return RetryJobResponse.from_entity(job)
