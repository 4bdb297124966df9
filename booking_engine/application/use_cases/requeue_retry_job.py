import logging

from booking_engine.application.interfaces.clock import Clock
from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.domain.entities.retry_job import RetryJob, RetryJobStatus
from booking_engine.domain.errors import RetryJobNotFoundError, ValidationError


class ListDeadRetryJobsUseCase:
    def __init__(self, retry_job_repo: RetryJobRepo) -> None:
        self._retry_job_repo = retry_job_repo

    async def execute(self, limit: int = 100) -> list[RetryJob]:
        return await self._retry_job_repo.list_by_status(RetryJobStatus.DEAD.value, limit=limit)


class RequeueRetryJobUseCase:
    """Devuelve un job `dead` a `pending` con un presupuesto de intentos nuevo."""

    def __init__(self, retry_job_repo: RetryJobRepo, clock: Clock) -> None:
        self._retry_job_repo = retry_job_repo
        self._clock = clock
        self._logger = logging.getLogger(__name__)

    async def execute(self, job_id: str) -> RetryJob:
        job = await self._retry_job_repo.get_by_id(job_id)
        if job is None:
            raise RetryJobNotFoundError(job_id)
        if job.status != RetryJobStatus.DEAD:
            raise ValidationError("status", f"solo se pueden reencolar jobs 'dead' (actual: {job.status.value})")

        job.requeue(self._clock.now())
        await self._retry_job_repo.save(job)
        self._logger.info("Job reencolado", extra={"job_id": job.id, "job_type": job.type})
        return job
