from datetime import datetime, timedelta
from typing import Any
from uuid import uuid4

from sqlalchemy import and_, insert, or_, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from booking_engine.application.interfaces.retry_job_repo import RetryJobRepo
from booking_engine.domain.entities.retry_job import RetryJob, RetryJobStatus
from booking_engine.infrastructure.db.tables import retry_jobs
from booking_engine.infrastructure.db.timestamps import from_db, to_db


def _row_to_job(row) -> RetryJob:
    data = row._mapping
    return RetryJob(
        id=data["id"],
        type=data["type"],
        payload=data["payload"] or {},
        priority=data["priority"],
        attempts=data["attempts"],
        max_attempts=data["max_attempts"],
        next_run_at=from_db(data["next_run_at"]),
        status=RetryJobStatus(data["status"]),
        last_error=data["last_error"],
        locked_by=data["locked_by"],
        lock_expires_at=from_db(data["lock_expires_at"]),
        created_at=from_db(data["created_at"]),
        updated_at=from_db(data["updated_at"]),
    )


class RetryJobRepoSQL(RetryJobRepo):
    def __init__(self, session: AsyncSession) -> None:
        self._session = session

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
        await self._session.execute(
            insert(retry_jobs).values(
                id=job.id,
                type=job.type,
                payload=job.payload,
                priority=job.priority,
                attempts=0,
                max_attempts=job.max_attempts,
                next_run_at=to_db(now),
                status=RetryJobStatus.PENDING.value,
                created_at=to_db(now),
                updated_at=to_db(now),
            )
        )
        return job

    async def get_by_id(self, job_id: str) -> RetryJob | None:
        result = await self._session.execute(select(retry_jobs).where(retry_jobs.c.id == job_id))
        row = result.first()
        return _row_to_job(row) if row else None

    def _claimable(self, now: datetime):
        db_now = to_db(now)
        return and_(
            retry_jobs.c.status == RetryJobStatus.PENDING.value,
            or_(retry_jobs.c.next_run_at.is_(None), retry_jobs.c.next_run_at <= db_now),
            or_(retry_jobs.c.lock_expires_at.is_(None), retry_jobs.c.lock_expires_at <= db_now),
        )

    async def claim_due(
        self,
        worker_id: str,
        now: datetime,
        limit: int = 10,
        lock_seconds: int = 300,
    ) -> list[RetryJob]:
        result = await self._session.execute(
            select(retry_jobs.c.id)
            .where(self._claimable(now))
            .order_by(retry_jobs.c.priority, retry_jobs.c.next_run_at)
            .limit(limit)
        )
        candidate_ids = [row.id for row in result]

        lock_expires_at = now + timedelta(seconds=lock_seconds)
        claimed = []
        for job_id in candidate_ids:
            # Conditional update: a concurrent worker may have claimed the row meanwhile
            outcome = await self._session.execute(
                update(retry_jobs)
                .where(retry_jobs.c.id == job_id, self._claimable(now))
                .values(
                    locked_by=worker_id,
                    lock_expires_at=to_db(lock_expires_at),
                    updated_at=to_db(now),
                )
            )
            if outcome.rowcount == 1:
                job = await self.get_by_id(job_id)
                if job is not None:
                    claimed.append(job)
        return claimed

    async def save(self, job: RetryJob, worker_id: str | None = None) -> bool:
        conditions = [retry_jobs.c.id == job.id]
        if worker_id is not None:
            # Stale lease: another worker reclaimed the row after ours expired
            conditions.append(retry_jobs.c.locked_by == worker_id)

        outcome = await self._session.execute(
            update(retry_jobs)
            .where(*conditions)
            .values(
                status=job.status.value,
                attempts=job.attempts,
                max_attempts=job.max_attempts,
                next_run_at=to_db(job.next_run_at),
                last_error=job.last_error,
                locked_by=job.locked_by,
                lock_expires_at=to_db(job.lock_expires_at),
                updated_at=to_db(job.updated_at),
            )
        )
        return outcome.rowcount == 1

    async def list_by_status(self, status: str, limit: int = 100) -> list[RetryJob]:
        result = await self._session.execute(
            select(retry_jobs)
            .where(retry_jobs.c.status == RetryJobStatus(status).value)
            .order_by(retry_jobs.c.updated_at)
            .limit(limit)
        )
        return [_row_to_job(row) for row in result]
