from dataclasses import replace
from datetime import datetime
from typing import Any
from uuid import uuid4

from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.domain.entities.retry_job import RetryJob, RetryJobStatus


class InMemoryRetryJobRepo(RetryJobRepo):
    def __init__(self) -> None:
        self.jobs: dict[str, RetryJob] = {}

    async def enqueue(
        self,
        job_type: str,
        payload: dict[str, Any],
        priority: int,
        max_attempts: int,
        now: datetime,
    ) -> RetryJob:
        job = RetryJob(
            id=str(uuid4()),
            type=job_type,
            payload=dict(payload),
            priority=priority,
            max_attempts=max_attempts,
            next_run_at=now,
            created_at=now,
            updated_at=now,
        )
        self.jobs[job.id] = job
        return replace(job)

    async def get_by_id(self, job_id: str) -> RetryJob | None:
        job = self.jobs.get(job_id)
        return replace(job) if job else None

    async def claim_due(
        self,
        worker_id: str,
        now: datetime,
        limit: int = 10,
        lock_seconds: int = 300,
    ) -> list[RetryJob]:
        due = sorted(
            (job for job in self.jobs.values() if job.is_due(now)),
            key=lambda job: (job.priority, job.next_run_at or now),
        )[:limit]
        for job in due:
            job.claim(worker_id, now, lock_seconds)
        return [replace(job) for job in due]

    async def save(self, job: RetryJob, worker_id: str | None = None) -> bool:
        stored = self.jobs.get(job.id)
        if stored is None:
            raise ValueError("Retry job not found")
        if worker_id is not None and stored.locked_by != worker_id:
            return False
        self.jobs[job.id] = replace(job)
        return True

    async def list_by_status(self, status: str, limit: int = 100) -> list[RetryJob]:
        wanted = RetryJobStatus(status)
        jobs = [job for job in self.jobs.values() if job.status == wanted]
        jobs.sort(key=lambda job: job.updated_at or job.created_at)
        return [replace(job) for job in jobs[:limit]]
